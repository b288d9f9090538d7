"""
Фикстуры для тестов request_harness.

local_harness  - харнесс поверх тестового клиента sample_app (локальный режим)
live_server    - sample_app, запущенный werkzeug сервером в отдельном потоке
remote_harness - харнесс поверх requests.Session к live_server (удалённый режим)
"""

import threading

import pytest
import requests
from werkzeug.serving import make_server

from request_harness import LocalDriver, RemoteDriver, RequestHarness, RunMode
from request_harness import harness as harness_module
from sample_app import create_app

pytest_plugins = [
    "request_harness.plugin",
    "pytester",
]


@pytest.fixture(scope="session")
def sample_app():
    return create_app()


@pytest.fixture
def make_harness(sample_app):
    """Фабрика харнессов локального режима с произвольным RunMode."""
    def _make(**run_mode_kwargs):
        return RequestHarness(RunMode(**run_mode_kwargs), driver=LocalDriver(sample_app))
    return _make


@pytest.fixture
def local_harness(make_harness):
    return make_harness()


@pytest.fixture
def harness(local_harness):
    # Переопределяет фикстуру плагина: тесты работают с sample_app
    return local_harness


@pytest.fixture(scope="session")
def live_server(sample_app):
    server = make_server("127.0.0.1", 0, sample_app, threaded=True)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield f"http://127.0.0.1:{server.server_port}"
    finally:
        server.shutdown()
        thread.join(timeout=5)


@pytest.fixture
def direct_session():
    # без прокси из окружения: сервер слушает 127.0.0.1
    session = requests.Session()
    session.trust_env = False
    yield session
    session.close()


@pytest.fixture
def remote_harness(live_server, direct_session):
    run_mode = RunMode(server_url=live_server, request_timeout=10)
    return RequestHarness(run_mode, driver=RemoteDriver(live_server, timeout=10, session=direct_session))


@pytest.fixture
def installed_harness(local_harness):
    """Временно делает local_harness харнессом по умолчанию для функций модуля."""
    previous = harness_module.install(local_harness)
    try:
        yield local_harness
    finally:
        harness_module.install(previous)
