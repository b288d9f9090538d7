import json

import pytest

from request_harness.failures import CompletedTest, failure_message, on_failed

CONFTEST = """
pytest_plugins = ["request_harness.plugin"]
"""

RECORDING_MODULE = """
import json
from request_harness import on_failed

CALLS = {calls!r}

def record(errmsg, args):
    with open(CALLS, "a", encoding="utf-8") as f:
        f.write(json.dumps({{
            "errmsg": errmsg,
            "suite": args.get("suite"),
            "title": args["current_test"].title,
            "state": args["current_test"].state,
        }}) + "\\n")

notify_on_failure = on_failed(record, {{"suite": "demo"}})
"""


@pytest.fixture
def calls_file(pytester):
    pytester.makeconftest(CONFTEST)
    return pytester.path / "calls.jsonl"


def read_calls(path):
    if not path.exists():
        return []
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]


def test_callback_called_once_for_failed_test(pytester, calls_file):
    pytester.makepyfile(RECORDING_MODULE.format(calls=str(calls_file)) + """
def test_ok():
    assert True

def test_broken():
    assert 1 == 2, "boom"
""")
    result = pytester.runpytest()
    result.assert_outcomes(passed=1, failed=1)

    calls = read_calls(calls_file)
    assert len(calls) == 1
    call = calls[0]
    assert call["title"] == "test_broken"
    assert call["state"] == "failed"
    assert call["suite"] == "demo"
    assert call["errmsg"].startswith("Test [test_broken] failed, duration: ")
    assert "boom" in call["errmsg"]


def test_callback_not_called_when_all_pass(pytester, calls_file):
    pytester.makepyfile(RECORDING_MODULE.format(calls=str(calls_file)) + """
def test_one():
    pass

def test_two():
    pass
""")
    result = pytester.runpytest()
    result.assert_outcomes(passed=2)
    assert read_calls(calls_file) == []


def test_callback_scoped_to_its_module(pytester, calls_file):
    pytester.makepyfile(
        test_with_hook=RECORDING_MODULE.format(calls=str(calls_file)) + """
def test_hooked():
    assert False, "hooked failure"
""",
        test_without_hook="""
def test_plain():
    assert False, "plain failure"
""",
    )
    result = pytester.runpytest()
    result.assert_outcomes(failed=2)

    calls = read_calls(calls_file)
    assert [call["title"] for call in calls] == ["test_hooked"]


def test_harness_failure_message_reaches_callback(pytester, calls_file):
    pytester.makepyfile(RECORDING_MODULE.format(calls=str(calls_file)) + """
from request_harness import HarnessResponse, RequestHarness, RunMode

def test_status():
    res = HarnessResponse("GET", "/x", 500, {}, b"", "")
    RequestHarness(RunMode(), driver=object()).check_response(res)
""")
    result = pytester.runpytest()
    result.assert_outcomes(failed=1)

    calls = read_calls(calls_file)
    assert len(calls) == 1
    assert "expect status (200), but res.status (500)" in calls[0]["errmsg"]


def test_xfail_is_not_reported(pytester, calls_file):
    pytester.makepyfile(RECORDING_MODULE.format(calls=str(calls_file)) + """
import pytest

@pytest.mark.xfail(reason="known bug")
def test_known_bug():
    assert False
""")
    result = pytester.runpytest()
    result.assert_outcomes(xfailed=1)

    assert read_calls(calls_file) == []


def test_phase_error_kept_as_text(pytester):
    pytester.makeconftest(CONFTEST + """
import json

def pytest_runtest_teardown(item):
    with open("phase.json", "w", encoding="utf-8") as f:
        json.dump({
            "error": item.error_call,
            "has_excinfo": hasattr(item, "excinfo_call"),
        }, f)
""")
    pytester.makepyfile("""
def test_broken():
    assert 1 == 2, "boom"
""")
    pytester.runpytest().assert_outcomes(failed=1)

    phase = json.loads((pytester.path / "phase.json").read_text(encoding="utf-8"))
    assert "boom" in phase["error"]
    assert phase["has_excinfo"] is False


def test_no_callback_is_noop(pytester):
    pytester.makeconftest(CONFTEST)
    pytester.makepyfile("""
from request_harness import on_failed

silent = on_failed(None)

def test_broken():
    assert False
""")
    result = pytester.runpytest()
    result.assert_outcomes(failed=1)


def test_failure_message_format():
    test = CompletedTest(title="test_x", nodeid="t.py::test_x", state="failed", duration=0.25, error="boom")
    assert failure_message(test) == "Test [test_x] failed, duration: 250ms, err: boom"


def test_on_failed_returns_fixture():
    fixture = on_failed(lambda errmsg, args: None)
    assert callable(fixture)
