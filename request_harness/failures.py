"""
===================================================================================
FAILURES - Уведомления об упавших тестах
===================================================================================

on_failed(callback, args) создаёт autouse фикстуру. Присвоенная переменной
модуля (или атрибуту класса), она действует на все тесты этого модуля
(класса) и после каждого не прошедшего теста вызывает callback(errmsg, args).

Тест не перезапускается: это только отчёт о падении.

Результат теста берётся из отчётов, которые сохраняет хук
pytest_runtest_makereport плагина request_harness.plugin.

ИСПОЛЬЗОВАНИЕ:
    from request_harness import on_failed

    def notify(errmsg, args):
        send_to_chat(args["channel"], errmsg)

    notify_on_failure = on_failed(notify, {"channel": "qa"})
===================================================================================
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import pytest

PHASES = ("setup", "call")


@dataclass(frozen=True)
class CompletedTest:
    """Сведения о завершённом тесте, передаются в args["current_test"]."""

    title: str
    nodeid: str
    state: str
    duration: float
    error: str = ""


def _test_state(node) -> Optional[CompletedTest]:
    reports = [getattr(node, f"rep_{phase}", None) for phase in PHASES]
    reports = [report for report in reports if report is not None]
    if not reports:
        return None

    state = "passed"
    error = ""
    for report in reports:
        if report.outcome != "passed":
            # xfail pytest отдаёт как skipped, это ожидаемое падение
            if hasattr(report, "wasxfail"):
                continue
            state = report.outcome
            error = getattr(node, f"error_{report.when}", None)
            if error is None:
                error = report.longreprtext or ""
            break

    return CompletedTest(
        title=node.name,
        nodeid=node.nodeid,
        state=state,
        duration=sum(report.duration for report in reports),
        error=error,
    )


def failure_message(test: CompletedTest) -> str:
    duration_ms = int(test.duration * 1000)
    return f"Test [{test.title}] {test.state}, duration: {duration_ms}ms, err: {test.error}"


def on_failed(callback: Optional[Callable[[str, Dict[str, Any]], Any]], args: Optional[Dict[str, Any]] = None):
    """
    Создаёт autouse фикстуру, уведомляющую callback о не прошедших тестах.

    ПАРАМЕТРЫ:
        callback: Callable[[str, dict], Any] | None - Получатель уведомления;
            при None фикстура ничего не делает
        args: dict | None - Дополнительные данные для callback; в копию
            добавляется ключ "current_test" (CompletedTest)

    ВОЗВРАЩАЕТ:
        Фикстура pytest; её нужно присвоить переменной модуля или класса
    """

    @pytest.fixture(autouse=True)
    def _notify_on_failure(request):
        yield
        if callback is None:
            return

        test = _test_state(request.node)
        if test is None or test.state == "passed":
            return

        payload = dict(args or {})
        payload["current_test"] = test
        callback(failure_message(test), payload)

    return _notify_on_failure
