"""
Декларативные параметры запросов get/post.

Параметры валидируются marshmallow схемой до отправки запроса: пустой url,
статус не целым числом или паттерн не строкой отклоняются с ValidationError.
Паттерны match/not_match приводятся к кортежу строк.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from marshmallow import RAISE, Schema, ValidationError, fields, post_load, pre_load, validate


def normalize_patterns(value) -> Tuple[str, ...]:
    """Приводит паттерн (строку или последовательность строк) к кортежу."""
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    if isinstance(value, (list, tuple)) and all(isinstance(item, str) for item in value):
        return tuple(value)
    raise ValidationError("Pattern must be a string or a list of strings.")


class Patterns(fields.Field):
    """Поле marshmallow: str | list[str] -> tuple[str, ...]"""

    def _deserialize(self, value, attr, data, **kwargs):
        return normalize_patterns(value)


@dataclass(frozen=True)
class RequestOptions:
    url: str
    headers: Optional[Dict[str, Any]] = None
    args: Any = None
    body: Any = None
    status: Optional[int] = None
    schema: Optional[Dict[str, Any]] = None
    match: Tuple[str, ...] = ()
    not_match: Tuple[str, ...] = ()


class RequestOptionsSchema(Schema):
    class Meta:
        unknown = RAISE

    url = fields.Str(required=True, validate=validate.Length(min=1))
    headers = fields.Dict(keys=fields.Str(), load_default=None, allow_none=True)
    args = fields.Raw(load_default=None, allow_none=True)
    body = fields.Raw(load_default=None, allow_none=True)
    status = fields.Int(strict=True, load_default=None, allow_none=True)
    json_schema = fields.Dict(data_key="schema", load_default=None, allow_none=True)
    match = Patterns(load_default=(), allow_none=True)
    not_match = Patterns(load_default=(), allow_none=True)

    @pre_load
    def accept_camel_case(self, data, **kwargs):
        # notMatch - прежнее имя параметра
        if isinstance(data, dict) and "notMatch" in data and "not_match" not in data:
            data = dict(data)
            data["not_match"] = data.pop("notMatch")
        return data

    @post_load
    def make_options(self, data, **kwargs):
        return RequestOptions(
            url=data["url"],
            headers=data["headers"],
            args=data["args"],
            body=data["body"],
            status=data["status"],
            schema=data["json_schema"],
            match=data["match"] or (),
            not_match=data["not_match"] or (),
        )


def load_options(options: Dict[str, Any]) -> RequestOptions:
    """
    Валидирует и нормализует параметры запроса.

    ИСКЛЮЧЕНИЯ:
        marshmallow.ValidationError: При некорректных параметрах
    """
    return RequestOptionsSchema().load(options)
