"""
===================================================================================
DRIVERS - Транспорт HTTP запросов харнесса
===================================================================================

Два драйвера с общим методом send(PendingRequest) -> HarnessResponse:

    LocalDriver   - WSGI приложение внутри процесса (тестовый клиент Flask/werkzeug)
    RemoteDriver  - удалённый сервер через requests.Session

Оба драйвера сами следуют редиректам, чтобы соблюдать лимит из заголовка
"redirects" (см. set_headers): после исчерпания лимита возвращается
сам ответ 3xx, а не исключение.

Сетевые ошибки requests пробрасываются вызывающему коду без повторов.
===================================================================================
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional
from urllib.parse import urlencode, urljoin, urlsplit

import requests
from requests.structures import CaseInsensitiveDict
from werkzeug.test import Client

logger = logging.getLogger(__name__)

REDIRECTS_KEY = "redirects"
DEFAULT_REDIRECTS = 5
REDIRECT_CODES = (301, 302, 303, 307, 308)
LOCAL_BASE_URL = "http://localhost"


@dataclass
class PendingRequest:
    """
    Запрос, подготовленный к отправке драйвером.

    АТРИБУТЫ:
        method: str - HTTP метод
        url: str - Относительный путь (например, "/api/items")
        headers: dict[str, str] - Заголовки запроса
        params: Any - Query-параметры (dict или строка)
        data: str | None - Сериализованное тело запроса
        redirects: int | None - Лимит редиректов; None - значение по умолчанию
    """

    method: str
    url: str
    headers: Dict[str, str] = field(default_factory=dict)
    params: Any = None
    data: Optional[str] = None
    redirects: Optional[int] = None

    def set(self, key: str, value) -> "PendingRequest":
        self.headers[key] = str(value)
        return self

    def as_curl(self, base_url: str) -> str:
        """Формирует эквивалентную cURL команду для ручного воспроизведения."""
        full_url = urljoin(f"{base_url.rstrip('/')}/", self.url.lstrip("/"))
        if self.params:
            query = self.params if isinstance(self.params, str) else urlencode(self.params, doseq=True)
            if query:
                full_url = f"{full_url}?{query}"

        parts = [f"curl -X {self.method.upper()} '{full_url}'"]
        for k, v in self.headers.items():
            parts.append(f"  -H '{k}: {v}'")
        if self.data is not None:
            parts.append(f"  -d '{self.data}'")
        return " \\\n".join(parts)


class HarnessResponse:
    """
    Ответ драйвера.

    АТРИБУТЫ:
        method, url: Метод и путь последнего запроса в цепочке редиректов
        status: int - HTTP статус
        reason: str - Текстовое описание статуса
        headers: CaseInsensitiveDict - Заголовки ответа
        content: bytes - Тело ответа
        text: str - Тело ответа как строка
        body: Any - Разобранный JSON или None
        recv_length: int - Счётчик полученных байт (читается при каждом обращении)
    """

    def __init__(self, method: str, url: str, status: int, headers, content: bytes, text: str,
                 reason: str = "", recv_counter: Optional[Callable[[], int]] = None):
        self.method = method
        self.url = url
        self.status = status
        self.reason = reason
        self.headers = CaseInsensitiveDict(headers)
        self.content = content
        self.text = text
        self._recv_counter = recv_counter
        self._body = None
        self._body_parsed = False

    @property
    def body(self):
        if not self._body_parsed:
            self._body_parsed = True
            if self.text:
                try:
                    self._body = json.loads(self.text)
                except ValueError:
                    self._body = None
        return self._body

    @property
    def recv_length(self) -> int:
        if self._recv_counter is None:
            return len(self.content)
        return self._recv_counter()

    @property
    def content_length(self) -> Optional[int]:
        value = self.headers.get("Content-Length")
        try:
            return int(value) if value is not None else None
        except ValueError:
            return None

    def __repr__(self):
        return f"<HarnessResponse [{self.status}] {self.method} {self.url}>"


def _redirect_limit(req: PendingRequest) -> int:
    return DEFAULT_REDIRECTS if req.redirects is None else max(req.redirects, 0)


class RemoteDriver:
    """
    Драйвер удалённого режима: requests.Session с базовым URL и таймаутом.

    ПАРАМЕТРЫ:
        base_url: str - URL сервера из --server
        timeout: float - Таймаут каждого запроса в секундах
        session: requests.Session | None - Готовая сессия (для тестов)
    """

    def __init__(self, base_url: str, timeout: float = 60, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        logger.debug(f"Remote driver for {self.base_url} (timeout {timeout}s)")

    def send(self, req: PendingRequest) -> HarnessResponse:
        full_url = urljoin(f"{self.base_url}/", req.url.lstrip("/"))
        response = self.session.request(
            req.method,
            full_url,
            params=req.params,
            data=req.data.encode("utf-8") if req.data is not None else None,
            headers=req.headers,
            timeout=self.timeout,
            allow_redirects=False,
        )

        # response.next заполняется requests только при allow_redirects=False
        hops = 0
        while response.is_redirect and response.next is not None and hops < _redirect_limit(req):
            hops += 1
            response = self.session.send(response.next, timeout=self.timeout, allow_redirects=False)

        return self._wrap(response)

    @staticmethod
    def _wrap(response: requests.Response) -> HarnessResponse:
        raw = response.raw
        tell = getattr(raw, "tell", None)
        content = response.content

        def received() -> int:
            # urllib3 считает байты, прочитанные из сокета (до распаковки)
            if callable(tell):
                try:
                    return int(tell())
                except (TypeError, ValueError, OSError):
                    pass
            return len(content)

        prepared = response.request
        return HarnessResponse(
            method=prepared.method if prepared is not None else "",
            url=prepared.url if prepared is not None else response.url,
            status=response.status_code,
            reason=response.reason or "",
            headers=response.headers,
            content=content,
            text=response.text,
            recv_counter=received,
        )


class LocalDriver:
    """
    Драйвер локального режима: тестовый клиент WSGI приложения.

    Для Flask приложения используется app.test_client(), для любого
    другого WSGI callable - werkzeug.test.Client.
    """

    base_url = LOCAL_BASE_URL

    def __init__(self, app):
        self.app = app
        self.client = app.test_client() if hasattr(app, "test_client") else Client(app)
        logger.debug(f"Local driver for {app!r}")

    def send(self, req: PendingRequest) -> HarnessResponse:
        method, url, params, data = req.method, req.url, req.params, req.data
        response = self._open(method, url, params, req.headers, data)

        hops = 0
        while (response.status_code in REDIRECT_CODES and "Location" in response.headers
               and hops < _redirect_limit(req)):
            hops += 1
            location = urlsplit(urljoin(f"{LOCAL_BASE_URL}{url}", response.headers["Location"]))
            url = location.path or "/"
            params = location.query or None
            if response.status_code not in (307, 308):
                method, data = "GET", None
            response = self._open(method, url, params, req.headers, data)

        content = response.get_data()
        return HarnessResponse(
            method=method,
            url=url,
            status=response.status_code,
            reason=response.status.partition(" ")[2],
            headers=list(response.headers.items()),
            content=content,
            text=response.get_data(as_text=True),
        )

    def _open(self, method, url, params, headers, data):
        return self.client.open(
            url,
            method=method,
            query_string=params,
            headers=list(headers.items()),
            data=data,
            follow_redirects=False,
        )
