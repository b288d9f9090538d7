"""
===================================================================================
RUN_MODE - Режим запуска тестового харнесса
===================================================================================

Единая конфигурация процесса, собираемая один раз из параметров pytest
(pytest_configure) и далее доступная только на чтение.

РЕЖИМЫ:
    - локальный: запросы идут в WSGI приложение внутри процесса (--app)
    - удалённый: запросы идут по сети на --server через requests.Session

ПАРАМЕТРЫ CLI:
    --server           URL удалённого сервера (например, http://127.0.0.1:10080)
    --app              WSGI приложение для локального режима в формате module:attr
    --log              Логирование запросов и ответов
    --schema           Вывод автоматически построенной схемы ответа
    --deep             Глубина построения схемы (по умолчанию: 4)
    --encrypt          Ожидание полной загрузки тела перед проверкой схемы
    --request-timeout  Таймаут HTTP запросов в секундах (по умолчанию: 60)

ИСПОЛЬЗОВАНИЕ:
    run_mode = RunMode.from_pytest_config(config)
    if run_mode.is_remote:
        ...
===================================================================================
"""

import importlib
from dataclasses import dataclass
from typing import Optional

from request_harness.errors import HarnessConfigError

DEFAULT_SCHEMA_DEPTH = 4
DEFAULT_REQUEST_TIMEOUT = 60


@dataclass(frozen=True)
class RunMode:
    """
    Неизменяемая конфигурация режима запуска.

    АТРИБУТЫ:
        server_url: str | None - URL удалённого сервера; None означает локальный режим
        log_enabled: bool - Логировать запрос и ответ
        schema_dump_enabled: bool - Печатать схему тела ответа
        schema_dump_depth: int - Глубина построения схемы
        content_encryption_expected: bool - Ждать догрузки тела перед проверкой схемы
        app_path: str | None - Путь к WSGI приложению (module:attr)
        request_timeout: float - Таймаут HTTP запросов в секундах
    """

    server_url: Optional[str] = None
    log_enabled: bool = False
    schema_dump_enabled: bool = False
    schema_dump_depth: int = DEFAULT_SCHEMA_DEPTH
    content_encryption_expected: bool = False
    app_path: Optional[str] = None
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT

    @property
    def is_remote(self) -> bool:
        return bool(self.server_url)

    @classmethod
    def from_pytest_config(cls, config) -> "RunMode":
        """
        Собирает RunMode из опций командной строки и ini-файла pytest.

        ПАРАМЕТРЫ:
            config: pytest.Config объект конфигурации

        ВОЗВРАЩАЕТ:
            RunMode: Конфигурация режима запуска
        """
        deep = config.getoption("--deep")
        app_path = config.getoption("--app") or config.getini("harness_app") or None
        return cls(
            server_url=config.getoption("--server") or None,
            log_enabled=bool(config.getoption("--log")),
            schema_dump_enabled=bool(config.getoption("--schema")),
            schema_dump_depth=int(deep) if deep is not None else DEFAULT_SCHEMA_DEPTH,
            content_encryption_expected=bool(config.getoption("--encrypt")),
            app_path=app_path,
            request_timeout=float(config.getoption("--request-timeout")),
        )


def load_app(app_path: str):
    """
    Импортирует WSGI приложение по строке вида "package.module:attr".

    Если атрибут не указан, используется "app". Фабрики вида
    "module:create_app()" не поддерживаются.

    ИСКЛЮЧЕНИЯ:
        HarnessConfigError: Модуль не импортируется или атрибут отсутствует
    """
    module_name, _, attr = app_path.partition(":")
    if not module_name:
        raise HarnessConfigError(f"Invalid application path: '{app_path}'. Expected 'module:attr'.")

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise HarnessConfigError(f"Cannot import application module '{module_name}': {e}") from e

    app = getattr(module, attr or "app", None)
    if app is None:
        raise HarnessConfigError(f"Module '{module_name}' has no attribute '{attr or 'app'}'.")
    return app
