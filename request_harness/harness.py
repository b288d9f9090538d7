"""
===================================================================================
HARNESS - Отправка запросов и проверка ответов в тестах
===================================================================================

Тонкая обёртка над драйвером (локальным или удалённым), которая отправляет
GET/POST запросы, проверяет ответ и возвращает его тесту для дальнейших проверок.

КОНВЕЙЕР ПРОВЕРОК (check_response):
1. Вывод схемы ответа (только при --schema, ничего не проверяет)
2. Статус: по умолчанию 200; 0 отключает проверку
3. match: каждый паттерн должен находиться в тексте ответа
4. not_match: ни один паттерн не должен находиться в тексте ответа
5. Схема: ожидание догрузки тела (при --encrypt) и валидация jsonschema

ИСПОЛЬЗОВАНИЕ:
    def test_items(harness):
        res = harness.get(url="/api/items", args={"limit": 2},
                          schema=ITEMS_SCHEMA, match=[r'"id"'])
        assert len(res.body["data"]) == 2

    # или через функции модуля, привязанные к харнессу плагина
    from request_harness import get, post
    res = post(url="/api/echo", headers={}, body={"a": 1})
===================================================================================
"""

import json
import logging
import re
import threading
from collections.abc import Mapping
from typing import Any, Optional

import jsonschema
import pytest

from request_harness.drivers import REDIRECTS_KEY, HarnessResponse, LocalDriver, PendingRequest, RemoteDriver
from request_harness.errors import HarnessConfigError
from request_harness.options import load_options, normalize_patterns
from request_harness.run_mode import RunMode, load_app
from request_harness.schema_gen import auto_schema

logger = logging.getLogger(__name__)

DEFAULT_STATUS = 200
JSON_CONTENT_TYPE = "application/json; charset=utf-8"

# Ожидание догрузки тела: не более 20 попыток по 100 мс
DRAIN_ATTEMPTS = 20
DRAIN_INTERVAL = 0.1


def set_headers(request: PendingRequest, headers: Optional[Mapping]) -> PendingRequest:
    """
    Переносит заголовки в подготавливаемый запрос.

    Ключ "redirects" заголовком не отправляется: он задаёт число редиректов,
    по которым драйвер пройдёт (0 - не следовать редиректам).

    ПАРАМЕТРЫ:
        request: PendingRequest - Запрос до отправки
        headers: Mapping | None - Заголовки теста

    ВОЗВРАЩАЕТ:
        PendingRequest: Тот же объект запроса
    """
    if headers:
        for key, value in headers.items():
            if key == REDIRECTS_KEY:
                continue
            request.set(key, value)
        if headers.get(REDIRECTS_KEY) is not None:
            request.redirects = int(headers[REDIRECTS_KEY])
    return request


def build_driver(run_mode: RunMode):
    """
    Создаёт драйвер по режиму запуска.

    ИСКЛЮЧЕНИЯ:
        HarnessConfigError: Локальный режим без --app
    """
    if run_mode.is_remote:
        return RemoteDriver(run_mode.server_url, timeout=run_mode.request_timeout)
    if not run_mode.app_path:
        raise HarnessConfigError(
            "Local mode requires an in-process application.\n"
            "Usage:\n"
            "  pytest --app=package.module:app      # local mode\n"
            "  pytest --server=http://127.0.0.1:10080  # remote mode"
        )
    return LocalDriver(load_app(run_mode.app_path))


class RequestHarness:
    """
    Харнесс запросов для одного режима запуска.

    АТРИБУТЫ:
        run_mode: RunMode - Конфигурация режима (только чтение)
        driver: LocalDriver | RemoteDriver - Создаётся при первом запросе, если не передан
        last_request: PendingRequest | None - Последний отправленный запрос
        last_response: HarnessResponse | None - Ответ на него
    """

    def __init__(self, run_mode: RunMode, driver=None):
        self.run_mode = run_mode
        self._driver = driver
        self.last_request: Optional[PendingRequest] = None
        self.last_response: Optional[HarnessResponse] = None
        self._stop = threading.Event()

    @property
    def driver(self):
        if self._driver is None:
            self._driver = build_driver(self.run_mode)
        return self._driver

    @property
    def base_url(self) -> str:
        """Базовый URL уже созданного драйвера; драйвер не создаётся."""
        return getattr(self._driver, "base_url", "")

    def cancel(self):
        """Прерывает текущее ожидание догрузки тела ответа."""
        self._stop.set()

    # -------------------------------------------------------------------------------
    # Низкоуровневые запросы
    # -------------------------------------------------------------------------------
    def http_get(self, url: str, headers: Optional[Mapping] = None, args: Any = None) -> HarnessResponse:
        request = set_headers(PendingRequest("GET", url, params=args), headers)
        return self._send(request)

    def http_post(self, url: str, headers: Optional[Mapping] = None, body: Any = None) -> HarnessResponse:
        data = json.dumps(body, separators=(",", ":"), ensure_ascii=False) if body is not None else None
        request = set_headers(PendingRequest("POST", url, data=data), headers)
        return self._send(request)

    def _send(self, request: PendingRequest) -> HarnessResponse:
        driver = self.driver
        self.last_request = request
        self.last_response = None
        response = driver.send(request)
        self.last_response = response
        return response

    # -------------------------------------------------------------------------------
    # Запросы с проверками
    # -------------------------------------------------------------------------------
    def get(self, options: Optional[Mapping] = None, **kwargs) -> HarnessResponse:
        """
        GET запрос с проверкой ответа.

        ПАРАМЕТРЫ (словарём options или именованными аргументами):
            url: str - Путь запроса (обязательный)
            headers: dict - Заголовки; ключ "redirects" задаёт лимит редиректов
            args: dict - Query-параметры
            status: int - Ожидаемый статус (по умолчанию 200, 0 - не проверять)
            schema: dict - JSON схема тела ответа
            match / not_match: str | list[str] - Регулярные выражения для текста ответа

        ВОЗВРАЩАЕТ:
            HarnessResponse: Ответ сервера

        ИСКЛЮЧЕНИЯ:
            marshmallow.ValidationError: Некорректные параметры
            requests.exceptions.RequestException: Сетевые ошибки (удалённый режим)
        """
        opts = load_options({**(options or {}), **kwargs})
        response = self.http_get(opts.url, opts.headers, opts.args)
        if self.run_mode.log_enabled:
            logger.info(">>> request [%s %s] headers: %s, args: %s", "GET", opts.url, opts.headers, opts.args)
            logger.info(">>> response status: %d, body: %s", response.status, response.body)

        self.check_response(response, opts.status, opts.schema, opts.match, opts.not_match)
        return response

    def post(self, options: Optional[Mapping] = None, **kwargs) -> HarnessResponse:
        """
        POST запрос с JSON телом и проверкой ответа.

        Параметры те же, что у get, вместо args - body. Если headers передан
        словарём и есть body, к заголовкам добавляется
        Content-Type: application/json; charset=utf-8. Словарь вызывающего
        кода не изменяется.
        """
        opts = load_options({**(options or {}), **kwargs})
        headers = opts.headers
        if isinstance(headers, Mapping) and opts.body is not None:
            headers = {k: v for k, v in headers.items() if k.lower() != "content-type"}
            headers["Content-Type"] = JSON_CONTENT_TYPE

        response = self.http_post(opts.url, headers, opts.body)
        if self.run_mode.log_enabled:
            logger.info(">>> request [%s %s] headers: %s, body: %s", "POST", opts.url, headers, opts.body)
            logger.info(">>> response status: %d, body: %s", response.status, response.body)

        self.check_response(response, opts.status, opts.schema, opts.match, opts.not_match)
        return response

    # -------------------------------------------------------------------------------
    # Проверки ответа
    # -------------------------------------------------------------------------------
    def check_response(self, response: HarnessResponse, status: Optional[int] = None,
                       schema: Optional[dict] = None, match=(), not_match=()):
        """
        Проверяет ответ; при нарушении завершает текущий тест через pytest.fail.

        ПАРАМЕТРЫ:
            response: HarnessResponse - Ответ драйвера
            status: int | None - None означает 200; 0 отключает проверку статуса
            schema: dict | None - JSON схема тела ответа
            match: str | list[str] - Все паттерны должны найтись в response.text
            not_match: str | list[str] - Ни один паттерн не должен найтись
        """
        if self.run_mode.schema_dump_enabled:
            self.dump_schema(response)

        if status is None:
            status = DEFAULT_STATUS
        if status and response.status != status:
            pytest.fail(f"expect status ({status}), but res.status ({response.status})", pytrace=False)

        for pattern in normalize_patterns(match):
            if not re.search(pattern, response.text):
                pytest.fail(f"response text not matched regex: {pattern}", pytrace=False)

        for pattern in normalize_patterns(not_match):
            if re.search(pattern, response.text):
                pytest.fail(f"response text matched regex: {pattern}", pytrace=False)

        if schema:
            if self.run_mode.content_encryption_expected:
                self.wait_for_body(response)
            try:
                jsonschema.validate(instance=response.body, schema=schema)
            except jsonschema.ValidationError as e:
                pytest.fail(
                    f"res.body[[{json.dumps(response.body, ensure_ascii=False)}]]\n{e.message}",
                    pytrace=False,
                )

    def wait_for_body(self, response: HarnessResponse) -> bool:
        """
        Ждёт, пока счётчик полученных байт дойдёт до Content-Length.

        Не более DRAIN_ATTEMPTS проверок с паузой DRAIN_INTERVAL; по истечении
        попыток (или после cancel() во время ожидания) управление возвращается
        без ошибки, дальнейшая проверка схемы упадёт сама, если тело неполное.
        Отмена прошлого ожидания на новое не влияет.

        ВОЗВРАЩАЕТ:
            bool: True если тело получено полностью
        """
        self._stop.clear()
        content_length = response.content_length
        if content_length is None:
            return True

        for _ in range(DRAIN_ATTEMPTS):
            received = response.recv_length
            if received >= content_length:
                return True
            logger.info("contentLength: %d, recvLength: %d, sleep(%s) for wait...",
                        content_length, received, DRAIN_INTERVAL)
            if self._stop.wait(DRAIN_INTERVAL):
                break
        return response.recv_length >= content_length

    def dump_schema(self, response: HarnessResponse):
        deep = self.run_mode.schema_dump_depth
        print(f"/************** request: [{response.method} {response.url}] ****************/")
        body = response.body
        if isinstance(body, dict) and body.get("data"):
            print(f"/***************** schema of data(deep: {deep}) ******************/")
            body = body["data"]
        print(json.dumps(auto_schema(body, deep=deep), indent=2, ensure_ascii=False))


# ===================================================================================
# ХАРНЕСС ПО УМОЛЧАНИЮ
# ===================================================================================
# Устанавливается плагином в pytest_configure; функции модуля ниже
# делегируют ему.
_default_harness: Optional[RequestHarness] = None


def install(harness: Optional[RequestHarness]) -> Optional[RequestHarness]:
    """Устанавливает харнесс по умолчанию и возвращает предыдущий."""
    global _default_harness
    previous = _default_harness
    _default_harness = harness
    return previous


def default_harness() -> RequestHarness:
    if _default_harness is None:
        raise HarnessConfigError(
            "request_harness is not configured. "
            "Add pytest_plugins = ['request_harness.plugin'] to the top-level conftest.py."
        )
    return _default_harness


def get(options: Optional[Mapping] = None, **kwargs) -> HarnessResponse:
    return default_harness().get(options, **kwargs)


def post(options: Optional[Mapping] = None, **kwargs) -> HarnessResponse:
    return default_harness().post(options, **kwargs)


def http_get(url: str, headers: Optional[Mapping] = None, args: Any = None) -> HarnessResponse:
    return default_harness().http_get(url, headers, args)


def http_post(url: str, headers: Optional[Mapping] = None, body: Any = None) -> HarnessResponse:
    return default_harness().http_post(url, headers, body)


def check_response(response: HarnessResponse, status: Optional[int] = None,
                   schema: Optional[dict] = None, match=(), not_match=()):
    return default_harness().check_response(response, status, schema, match, not_match)
