"""
Исключения конфигурации request_harness.

Ошибки проверок ответа (статус, regex, схема) сюда не относятся:
они оформляются через pytest.fail и завершают текущий тест.
"""


class HarnessConfigError(Exception):
    """Некорректная конфигурация режима запуска (нет приложения, неверный --app и т.п.)."""
