import pytest
from marshmallow import ValidationError

from request_harness.options import RequestOptions, load_options, normalize_patterns


def test_defaults():
    opts = load_options({"url": "/api/health"})
    assert opts == RequestOptions(url="/api/health")
    assert opts.match == ()
    assert opts.not_match == ()


@pytest.mark.parametrize("value, expected", [
    (None, ()),
    ("ok", ("ok",)),
    (["ok", r"\d+"], ("ok", r"\d+")),
    (("a", "b"), ("a", "b")),
    ([], ()),
])
def test_normalize_patterns(value, expected):
    assert normalize_patterns(value) == expected


@pytest.mark.parametrize("value", [1, ["ok", None], {"a": "b"}])
def test_normalize_patterns_rejects(value):
    with pytest.raises(ValidationError):
        normalize_patterns(value)


def test_not_match_camel_case_alias():
    opts = load_options({"url": "/x", "notMatch": "error"})
    assert opts.not_match == ("error",)


def test_schema_key_is_loaded():
    schema = {"type": "object"}
    opts = load_options({"url": "/x", "schema": schema, "status": 0})
    assert opts.schema == schema
    assert opts.status == 0


def test_headers_are_copied():
    headers = {"X-Token": "t", "redirects": 1}
    opts = load_options({"url": "/x", "headers": headers})
    assert opts.headers == headers
    assert opts.headers is not headers


@pytest.mark.parametrize("typo", ["shcema", "stauts", "not_macth"])
def test_misspelled_directive_rejected(typo):
    with pytest.raises(ValidationError) as exc:
        load_options({"url": "/x", typo: 1})
    assert typo in exc.value.messages


def test_none_patterns_normalized():
    opts = load_options({"url": "/x", "match": None, "not_match": None})
    assert opts.match == () and opts.not_match == ()
