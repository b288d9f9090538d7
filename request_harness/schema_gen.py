"""
Построение JSON схемы по образцу ответа (режим --schema).

Используется только для диагностики: вывод можно скопировать в тест
как заготовку схемы и доработать вручную.
"""

from typing import Any, Dict

DEFAULT_DEPTH = 4

_TYPES = (
    (bool, "boolean"),
    (int, "integer"),
    (float, "number"),
    (str, "string"),
    (list, "array"),
    (dict, "object"),
)


def json_type(value: Any) -> str:
    if value is None:
        return "null"
    # bool проверяется раньше int
    for python_type, name in _TYPES:
        if isinstance(value, python_type):
            return name
    return "string"


def auto_schema(value: Any, deep: int = DEFAULT_DEPTH) -> Dict[str, Any]:
    """
    Рекурсивно строит схему значения до глубины deep.

    На последнем уровне для объектов и массивов указывается только тип.
    Для массива схема элементов строится по первому элементу.

    ПРИМЕР:
        auto_schema({"id": 1, "tags": ["a"]}, deep=2)
        → {"type": "object",
           "properties": {"id": {"type": "integer"},
                          "tags": {"type": "array", "items": {"type": "string"}}},
           "required": ["id", "tags"]}
    """
    schema: Dict[str, Any] = {"type": json_type(value)}
    if deep <= 0:
        return schema

    if isinstance(value, dict):
        schema["properties"] = {key: auto_schema(item, deep - 1) for key, item in value.items()}
        schema["required"] = list(value.keys())
    elif isinstance(value, list) and value:
        schema["items"] = auto_schema(value[0], deep - 1)
    return schema
