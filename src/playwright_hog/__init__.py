"""
playwright-hog: assert on analytics events in Playwright tests.

    def test_signup(page, hog):
        page.goto("https://example.com")
        page.get_by_text("Sign Up").click()
        assert_fired(hog, "user_signed_up", {"plan": "pro"})
"""

from .api import (
    assert_captured_count,
    assert_fired,
    assert_not_fired,
    captured_events,
    clear_captured_events,
)
from .errors import HogUsageError
from .network import (
    AssertionOutcome,
    DiagnosticReport,
    Event,
    EventLog,
    EventVerifier,
    HogSession,
    is_tracked_endpoint,
    matches_properties,
)

__all__ = [
    "captured_events",
    "clear_captured_events",
    "assert_fired",
    "assert_not_fired",
    "assert_captured_count",
    "HogUsageError",
    "AssertionOutcome",
    "DiagnosticReport",
    "Event",
    "EventLog",
    "EventVerifier",
    "HogSession",
    "is_tracked_endpoint",
    "matches_properties",
]
