from __future__ import annotations

from collections.abc import Generator

import allure
import pytest
from playwright.sync_api import Page

from ..config.loader import load_settings
from ..config.models import Settings
from ..network.session import HogSession
from ..utils.logging import bind_context, clear_contextvars, get_logger, setup_logging

_logger = get_logger(__name__)


@pytest.fixture(scope="session")
def hog_settings(pytestconfig: pytest.Config) -> Settings:
    """
    Load capture configuration once per session and configure logging from it.

    Supports overriding via command-line options:
      --hog-config <path>
      --hog-debug
    """
    with allure.step("Load analytics capture configuration"):
        cfg_path: str | None = pytestconfig.getoption("--hog-config")
        s: Settings = load_settings(cfg_path)

        if pytestconfig.getoption("--hog-debug"):
            s.debug = True

        setup_logging(s.effective_log_level, s.log_dir, force=True)
        return s


@pytest.fixture(scope="function")
def hog_debug(hog_settings: Settings) -> bool:
    """
    Diagnostic toggle injected into each HogSession.

    Override this fixture in a conftest.py to enable traces for a module or a single test.
    """
    return hog_settings.debug


@pytest.fixture(scope="function")
def hog(
    page: Page,
    hog_settings: Settings,
    hog_debug: bool,
) -> Generator[HogSession, None, None]:
    """
    Capture analytics events sent by the test's page.

    - Registers a route on the page before the test body runs.
    - Each captured event lands in the session's own EventLog.
    - The route is removed after the test.
    """
    session = HogSession(
        page,
        patterns=hog_settings.capture.all_patterns,
        timeout=hog_settings.matching.timeout,
        poll_interval=hog_settings.matching.poll_interval,
        debug=hog_debug,
        attach_diagnostics=hog_settings.reporting.attach_diagnostics,
    )
    with allure.step("Start analytics capture"):
        session.start()
    try:
        yield session
    finally:
        session.stop()


# ----- Logging: context -----
@pytest.fixture(autouse=True)
def _bind_hog_logging_context(request: pytest.FixtureRequest) -> Generator[None, None, None]:
    """Bind the test name to the logging context and clear it afterwards."""
    bind_context(test_name=request.node.name)
    try:
        yield
    finally:
        clear_contextvars()
