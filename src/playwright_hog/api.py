from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from .network.event_verifier import AssertionOutcome
from .network.events import Event
from .network.session import HogSession


def captured_events(session: HogSession) -> list[Event]:
    """Events captured so far for the session's page, in interception order."""
    return session.captured_events()


def clear_captured_events(session: HogSession) -> None:
    """Empty the session's event log. Calling it repeatedly is harmless."""
    session.clear()


def assert_fired(
    session: HogSession,
    event_name: str,
    expected_properties: Mapping[str, Any] | None = None,
    *,
    timeout: float | None = None,
    poll_interval: float | None = None,
    soft: bool = False,
) -> AssertionOutcome:
    """
    Wait until an event named `event_name` with (at least) `expected_properties` is captured.

    Raises AssertionError with a diagnostic on timeout, unless soft=True.
    """
    return session.fired(
        event_name,
        expected_properties,
        timeout=timeout,
        poll_interval=poll_interval,
        soft=soft,
    )


def assert_not_fired(
    session: HogSession,
    event_name: str,
    expected_properties: Mapping[str, Any] | None = None,
    *,
    timeout: float | None = None,
    poll_interval: float | None = None,
    soft: bool = False,
) -> AssertionOutcome:
    """Wait the full timeout and fail if a matching event was captured."""
    return session.not_fired(
        event_name,
        expected_properties,
        timeout=timeout,
        poll_interval=poll_interval,
        soft=soft,
    )


def assert_captured_count(
    session: HogSession, count: int | None = None, *, soft: bool = False
) -> AssertionOutcome:
    """Check that exactly `count` events (or at least one when None) were captured."""
    return session.captured_count(count, soft=soft)


__all__ = [
    "captured_events",
    "clear_captured_events",
    "assert_fired",
    "assert_not_fired",
    "assert_captured_count",
]
