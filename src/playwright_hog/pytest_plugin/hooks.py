from __future__ import annotations

import json
from typing import Any

import allure

from ..utils.logging import current_test_log_path, get_logger

_logger = get_logger(__name__)

_LOG_TAIL_LINES = 200


def _attach_captured_events(session: Any) -> None:
    events = [e.model_dump(mode="json") for e in session.captured_events()]
    allure.attach(
        json.dumps(events, ensure_ascii=False, indent=2, default=str),
        name=f"Captured analytics events ({len(events)})",
        attachment_type=allure.attachment_type.JSON,
    )


def _attach_log_tail(test_name: str | None) -> None:
    path = current_test_log_path(test_name)
    if path is None or not path.exists():
        return
    with path.open(encoding="utf-8", errors="ignore") as f:
        content = "".join(f.readlines()[-_LOG_TAIL_LINES:])
    if content:
        allure.attach(content, name="Recent logs", attachment_type=allure.attachment_type.TEXT)


def pytest_runtest_makereport(item: Any, call: Any) -> None:
    """
    Pytest hook: called after each test phase (setup, call, teardown).

    When the test body fails and the test used the `hog` fixture, attaches the
    captured events and the tail of the test log to the Allure report.
    """
    if getattr(call, "when", None) != "call" or getattr(call, "excinfo", None) is None:
        return

    funcargs = getattr(item, "funcargs", None) or {}
    session = funcargs.get("hog")
    settings = funcargs.get("hog_settings")
    if session is None:
        return

    reporting = getattr(settings, "reporting", None)
    try:
        if reporting is None or reporting.attach_events_on_failure:
            _attach_captured_events(session)
        if reporting is None or reporting.attach_logs_on_failure:
            _attach_log_tail(getattr(item, "name", None))
    except Exception as e:
        # Never fail a test because of reporting problems
        _logger.debug("hog_report_attach_failed", error=str(e))
