"""
request_harness - HTTP запросы и проверки ответов для pytest.

Запросы уходят во WSGI приложение внутри процесса (--app) или на удалённый
сервер (--server); ответ проверяется по статусу, JSON схеме и регулярным
выражениям и возвращается тесту.
"""

from request_harness.drivers import HarnessResponse, LocalDriver, PendingRequest, RemoteDriver
from request_harness.errors import HarnessConfigError
from request_harness.failures import CompletedTest, on_failed
from request_harness.harness import (
    RequestHarness,
    check_response,
    get,
    http_get,
    http_post,
    post,
    set_headers,
)
from request_harness.run_mode import RunMode

__all__ = [
    "CompletedTest",
    "HarnessConfigError",
    "HarnessResponse",
    "LocalDriver",
    "PendingRequest",
    "RemoteDriver",
    "RequestHarness",
    "RunMode",
    "check_response",
    "get",
    "http_get",
    "http_post",
    "on_failed",
    "post",
    "set_headers",
]
