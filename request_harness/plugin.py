"""
===================================================================================
PLUGIN - pytest плагин request_harness
===================================================================================

Подключение в корневом conftest.py:
    pytest_plugins = ["request_harness.plugin"]

ЧТО РЕГИСТРИРУЕТ:
1. Опции CLI: --server, --app, --log, --schema, --deep, --encrypt, --request-timeout
2. pytest_configure - сборка RunMode и установка харнесса по умолчанию
3. Фикстуры run_mode и harness (scope="session")
4. pytest_runtest_makereport - сохранение отчётов для on_failed и
   добавление последнего запроса харнесса в отчёт об упавшем тесте

ИСПОЛЬЗОВАНИЕ:
    pytest tests/ --app=myservice.app:app
    pytest tests/ --server=http://127.0.0.1:10080 --log
    pytest tests/ --app=myservice.app:app --schema --deep=2 -s
===================================================================================
"""

import logging

import pytest

from request_harness import harness as harness_module
from request_harness.harness import RequestHarness
from request_harness.run_mode import DEFAULT_REQUEST_TIMEOUT, RunMode

logger = logging.getLogger(__name__)


def pytest_addoption(parser):
    group = parser.getgroup("request_harness", "HTTP request harness")
    group.addoption(
        "--server",
        action="store",
        help="Remote server URL (e.g., http://127.0.0.1:10080). Without it requests go to the in-process app."
    )
    group.addoption(
        "--app",
        action="store",
        help="In-process WSGI application for local mode, as 'module:attr'."
    )
    group.addoption("--log", action="store_true", help="Log every request and response.")
    group.addoption("--schema", action="store_true", help="Print a schema inferred from every response body.")
    group.addoption("--deep", action="store", type=int, default=None, help="Depth of the inferred schema (default: 4).")
    group.addoption(
        "--encrypt",
        action="store_true",
        help="Wait until the whole response body is received before schema validation."
    )
    group.addoption(
        "--request-timeout",
        action="store",
        default=str(DEFAULT_REQUEST_TIMEOUT),
        help="Request timeout in seconds (remote mode)."
    )
    parser.addini("harness_app", "In-process WSGI application for local mode, as 'module:attr'.", default="")


@pytest.hookimpl(tryfirst=True)
def pytest_configure(config):
    """
    Собирает RunMode один раз на процесс и устанавливает харнесс по умолчанию.

    Драйвер создаётся лениво, при первом запросе, поэтому приложение
    из --app импортируется только если тесты действительно шлют запросы.
    """
    run_mode = RunMode.from_pytest_config(config)
    config.harness_run_mode = run_mode
    config.harness_previous = harness_module.install(RequestHarness(run_mode))

    if run_mode.log_enabled:
        logging.getLogger("request_harness").setLevel(logging.INFO)
    logger.debug(f"Run mode: {run_mode}")


def pytest_unconfigure(config):
    if hasattr(config, "harness_run_mode"):
        harness_module.install(getattr(config, "harness_previous", None))


@pytest.fixture(scope="session")
def run_mode(pytestconfig):
    """Конфигурация режима запуска текущей сессии."""
    return pytestconfig.harness_run_mode


@pytest.fixture(scope="session")
def harness():
    """Харнесс по умолчанию, установленный в pytest_configure."""
    return harness_module.default_harness()


@pytest.hookimpl(tryfirst=True, hookwrapper=True)
def pytest_runtest_makereport(item, call):
    """
    Сохраняет отчёты фаз теста в item.rep_<when> (для on_failed) и при падении
    теста, использовавшего фикстуру harness, добавляет в отчёт последний
    запрос, ответ и эквивалентную cURL команду.
    """
    outcome = yield
    report = outcome.get_result()

    setattr(item, f"rep_{report.when}", report)
    # текст ошибки фазы для on_failed
    setattr(item, f"error_{report.when}", str(call.excinfo.value) if call.excinfo is not None else None)

    if report.when == "call" and report.failed and "harness" in getattr(item, "fixturenames", ()):
        harness_instance = item.funcargs.get("harness")
        last_request = getattr(harness_instance, "last_request", None)
        if last_request is None or not hasattr(report.longrepr, "addsection"):
            return

        report.longrepr.addsection(
            "Last Harness Request",
            f"-> {last_request.method} {last_request.url}\n\n{last_request.as_curl(harness_instance.base_url)}"
        )
        last_response = harness_instance.last_response
        if last_response is not None:
            report.longrepr.addsection(
                "Last Harness Response",
                f"<- {last_response.status} {last_response.reason}\n"
                f"{last_response.text}"
            )
