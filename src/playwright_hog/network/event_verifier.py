from __future__ import annotations

import json
import math
import time
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from difflib import unified_diff
from enum import Enum
from typing import Any

import allure

from ..errors import HogUsageError
from ..utils.logging import get_logger, get_trace_logger
from .events import Event, EventLog
from .matching import matches_properties

logger = get_logger(__name__)

DEFAULT_TIMEOUT = 2.0
DEFAULT_POLL_INTERVAL = 0.1

Sleep = Callable[[float], None]
Clock = Callable[[], float]


def _dumps(value: Any, *, indent: int | None = None) -> str:
    return json.dumps(value, ensure_ascii=False, indent=indent, default=repr)


def _format_props(props: Any) -> str:
    if not props:
        return ""
    if isinstance(props, Mapping):
        return f" with properties {_dumps(dict(props))}"
    return f" with properties {props!r}"


# ---------- Match query ----------


@dataclass(frozen=True)
class MatchQuery:
    """One assertion's search: event name, expected property subset and timing (seconds)."""

    event_name: str
    expected_properties: Mapping[str, Any] | None = None
    timeout: float = DEFAULT_TIMEOUT
    poll_interval: float = DEFAULT_POLL_INTERVAL

    def __post_init__(self) -> None:
        if not isinstance(self.event_name, str) or not self.event_name:
            raise HogUsageError(f"event_name must be a non-empty string, got {self.event_name!r}")
        if self.expected_properties is not None and not isinstance(
            self.expected_properties, Mapping
        ):
            raise HogUsageError(
                "expected_properties must be a mapping, got "
                f"{type(self.expected_properties).__name__}"
            )
        if isinstance(self.timeout, bool) or not isinstance(self.timeout, int | float):
            raise HogUsageError(f"timeout must be a number of seconds, got {self.timeout!r}")
        if not math.isfinite(self.timeout) or self.timeout < 0:
            raise HogUsageError(f"timeout must be a finite number >= 0, got {self.timeout}")
        if isinstance(self.poll_interval, bool) or not isinstance(self.poll_interval, int | float):
            raise HogUsageError(
                f"poll_interval must be a number of seconds, got {self.poll_interval!r}"
            )
        if not math.isfinite(self.poll_interval) or self.poll_interval <= 0:
            raise HogUsageError(
                f"poll_interval must be a finite number > 0, got {self.poll_interval}"
            )

    def accepts(self, event: Event) -> bool:
        return event.name == self.event_name and matches_properties(
            event.properties, self.expected_properties
        )

    def find_first(self, events: Sequence[Event]) -> Event | None:
        for event in events:
            if self.accepts(event):
                return event
        return None


# ---------- Diagnostics ----------


class MismatchReason(str, Enum):
    """Best-guess category for a missing event."""

    MATCHED = "matched"
    NO_EVENTS = "no_events"
    NAME_MISMATCH = "name_mismatch"
    PROPERTY_MISMATCH = "property_mismatch"


@dataclass(frozen=True)
class DiagnosticReport:
    """
    Structured explanation of a poll-wait result, used to build failure messages.

    Attributes:
      - query: the search that was performed.
      - elapsed: seconds spent waiting.
      - total_captured: number of events in the log at the last scan.
      - captured_names: distinct captured event names, first-seen order.
      - near_misses: properties of events that had the target name but did not match.
      - matched_event: the event that satisfied the query, if any.
    """

    query: MatchQuery
    elapsed: float
    total_captured: int
    captured_names: list[str] = field(default_factory=list)
    near_misses: list[dict[str, Any]] = field(default_factory=list)
    matched_event: Event | None = None

    @classmethod
    def build(
        cls,
        query: MatchQuery,
        events: Sequence[Event],
        elapsed: float,
        matched_event: Event | None = None,
    ) -> DiagnosticReport:
        return cls(
            query=query,
            elapsed=elapsed,
            total_captured=len(events),
            captured_names=list(dict.fromkeys(e.name for e in events)),
            near_misses=[
                e.properties
                for e in events
                if e.name == query.event_name and e is not matched_event
            ],
            matched_event=matched_event,
        )

    @property
    def reason(self) -> MismatchReason:
        if self.matched_event is not None:
            return MismatchReason.MATCHED
        if self.total_captured == 0:
            return MismatchReason.NO_EVENTS
        if self.near_misses:
            return MismatchReason.PROPERTY_MISMATCH
        return MismatchReason.NAME_MISMATCH

    def _target(self) -> str:
        return f'event "{self.query.event_name}"{_format_props(self.query.expected_properties)}'

    def not_found_message(self) -> str:
        """Message for a positive assertion that failed (or a negative one that passed)."""
        lines = [
            f"Expected page to have fired {self._target()}, but it did not.",
            "",
            f"Waited {self.query.timeout:g}s and captured {self.total_captured} total event(s).",
            "",
        ]
        reason = self.reason
        if reason is MismatchReason.NO_EVENTS:
            lines += [
                "No analytics events were captured at all. Possible reasons:",
                "  - the analytics SDK is not initialized on the page",
                "  - the event is sent to an endpoint that is not tracked",
                "  - network interception is not active for this page",
            ]
        elif reason is MismatchReason.PROPERTY_MISMATCH:
            lines += [
                f'Found {len(self.near_misses)} event(s) named "{self.query.event_name}" '
                "but properties didn't match:",
                "",
            ]
            for i, props in enumerate(self.near_misses, start=1):
                lines.append(f"  Event {i}: {_dumps(props, indent=2)}")
            expected = dict(self.query.expected_properties or {})
            lines += ["", f"Expected: {_dumps(expected, indent=2)}"]
        else:
            lines += [
                f"Events captured: [{', '.join(self.captured_names)}]",
                "",
                "The event name did not match any captured events.",
            ]
        return "\n".join(lines)

    def found_message(self) -> str:
        """Message for a negative assertion that failed (or a positive one that passed)."""
        lines = [f"Expected page NOT to have fired {self._target()}, but it did."]
        if self.matched_event is not None:
            lines += [
                "",
                f"Matched after {self.elapsed:.3f}s: "
                f"{_dumps(self.matched_event.properties, indent=2)}",
                f"Captured {self.total_captured} total event(s).",
            ]
        return "\n".join(lines)


@dataclass(frozen=True)
class MatchOutcome:
    """Result of await_match: WAITING ended in found (matched=True) or expired."""

    matched: bool
    elapsed: float
    event: Event | None
    report: DiagnosticReport


def await_match(
    log: EventLog,
    event_name: str,
    expected_properties: Mapping[str, Any] | None = None,
    timeout: float = DEFAULT_TIMEOUT,
    poll_interval: float = DEFAULT_POLL_INTERVAL,
    *,
    sleep: Sleep = time.sleep,
    clock: Clock = time.monotonic,
    debug: bool = False,
) -> MatchOutcome:
    """
    Poll the event log until an event named `event_name` whose properties
    contain `expected_properties` shows up, or `timeout` seconds pass.

    The log is scanned in capture order and the first matching event wins.
    The wait between scans goes through `sleep`, so a browser session can pump
    its own event loop there and deliver pending interceptions.

    "Not found" is a normal outcome (matched=False), not an exception.

    Raises:
        HogUsageError: for invalid arguments, before any waiting.
    """
    query = MatchQuery(event_name, expected_properties, timeout, poll_interval)
    trace = get_trace_logger(__name__, enabled=debug)
    if debug:
        trace.info(
            "hog_wait_for_event",
            event_name=event_name,
            expected=dict(expected_properties) if expected_properties else None,
            timeout=timeout,
        )

    start = clock()
    while True:
        events = log.snapshot()
        found = query.find_first(events)
        elapsed = clock() - start
        if found is not None:
            if debug:
                trace.info("hog_event_found", event_name=event_name, elapsed=round(elapsed, 3))
            return MatchOutcome(
                True, elapsed, found, DiagnosticReport.build(query, events, elapsed, found)
            )
        if elapsed >= query.timeout:
            if debug:
                trace.info(
                    "hog_event_not_found",
                    event_name=event_name,
                    elapsed=round(elapsed, 3),
                    captured=len(events),
                )
            report = DiagnosticReport.build(query, events, elapsed)
            return MatchOutcome(False, elapsed, None, report)
        sleep(min(query.poll_interval, query.timeout - elapsed))


# ---------- Assertions ----------


@dataclass(frozen=True)
class AssertionOutcome:
    """Pass/fail plus the human-readable explanation."""

    passed: bool
    message: str
    match: MatchOutcome | None = None

    def __bool__(self) -> bool:
        return self.passed


class EventVerifier:
    """
    EventVerifier: assert on captured events with poll-wait, and attach diagnostics to Allure.
    """

    def __init__(
        self,
        log: EventLog | None = None,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        sleep: Sleep = time.sleep,
        clock: Clock = time.monotonic,
        debug: bool = False,
        attach_diagnostics: bool = True,
    ) -> None:
        if log is None:
            logger.warning("EventVerifier created without shared EventLog - using isolated log")
        self.log = log if log is not None else EventLog()
        self.timeout = timeout
        self.poll_interval = poll_interval
        self.debug = debug
        self.attach_diagnostics = attach_diagnostics
        self._sleep = sleep
        self._clock = clock

    # ----- Allure JSON artifacts -----
    def _attach_json_artifacts(
        self,
        *,
        expected: Mapping[str, Any] | None,
        actual: Any,
        name_prefix: str,
    ) -> None:
        """
        Attach expected/actual JSON and their unified diff to the Allure report.

        `actual` is the property mapping of the nearest same-name candidate when
        there is one, otherwise the list of captured event summaries.
        """
        if not self.attach_diagnostics:
            return
        try:
            exp_str = _dumps(dict(expected or {}), indent=2)
            act_str = _dumps(actual, indent=2)
            allure.attach(
                exp_str,
                name=f"{name_prefix} expected.json",
                attachment_type=allure.attachment_type.JSON,
            )
            allure.attach(
                act_str,
                name=f"{name_prefix} actual.json",
                attachment_type=allure.attachment_type.JSON,
            )
            diff = "".join(
                unified_diff(
                    exp_str.splitlines(True),
                    act_str.splitlines(True),
                    fromfile="expected",
                    tofile="actual",
                )
            )
            if diff:
                allure.attach(
                    diff,
                    name=f"{name_prefix} diff.txt",
                    attachment_type=allure.attachment_type.TEXT,
                )
        except Exception as e:
            logger.debug("allure_attach_failed", error=str(e))

    def _finish(self, outcome: AssertionOutcome, *, soft: bool) -> AssertionOutcome:
        if not outcome.passed and not soft:
            raise AssertionError(outcome.message)
        return outcome

    def _resolve(self, timeout: float | None, poll_interval: float | None) -> tuple[float, float]:
        return (
            self.timeout if timeout is None else timeout,
            self.poll_interval if poll_interval is None else poll_interval,
        )

    def wait_for(
        self,
        event_name: str,
        expected_properties: Mapping[str, Any] | None = None,
        *,
        timeout: float | None = None,
        poll_interval: float | None = None,
    ) -> MatchOutcome:
        """Run the poll-wait protocol against this verifier's log with its defaults."""
        t, p = self._resolve(timeout, poll_interval)
        return await_match(
            self.log,
            event_name,
            expected_properties,
            t,
            p,
            sleep=self._sleep,
            clock=self._clock,
            debug=self.debug,
        )

    def fired(
        self,
        event_name: str,
        expected_properties: Mapping[str, Any] | None = None,
        *,
        timeout: float | None = None,
        poll_interval: float | None = None,
        soft: bool = False,
    ) -> AssertionOutcome:
        """
        Wait for an event named `event_name` whose properties contain `expected_properties`.

        Args:
            event_name: exact event name.
            expected_properties: key/value subset to match, None matches any properties.
            timeout: wait timeout in seconds (verifier default when None).
            poll_interval: pause between scans in seconds (verifier default when None).
            soft: if True, return a failed outcome instead of raising.

        Returns:
            AssertionOutcome with passed=True when found.

        Raises:
            AssertionError with a multi-line diagnostic if not found and soft=False.
            HogUsageError for invalid arguments.
        """
        t, _ = self._resolve(timeout, poll_interval)
        title = f"Expect event '{event_name}'{_format_props(expected_properties)} (timeout={t}s)"
        with allure.step(title):
            match = self.wait_for(
                event_name, expected_properties, timeout=timeout, poll_interval=poll_interval
            )
            report = match.report
            if match.matched:
                return AssertionOutcome(True, report.found_message(), match)

            self._attach_failure(report, name_prefix="event_check")
            failed = AssertionOutcome(False, report.not_found_message(), match)
            return self._finish(failed, soft=soft)

    def not_fired(
        self,
        event_name: str,
        expected_properties: Mapping[str, Any] | None = None,
        *,
        timeout: float | None = None,
        poll_interval: float | None = None,
        soft: bool = False,
    ) -> AssertionOutcome:
        """
        Assert that no matching event fires within the timeout.

        Absence can only be confirmed once the whole window has passed, so a
        passing call always waits the full timeout.
        """
        t, _ = self._resolve(timeout, poll_interval)
        title = f"Expect NO event '{event_name}'{_format_props(expected_properties)} (timeout={t}s)"
        with allure.step(title):
            match = self.wait_for(
                event_name, expected_properties, timeout=timeout, poll_interval=poll_interval
            )
            report = match.report
            if not match.matched:
                return AssertionOutcome(True, report.not_found_message(), match)

            if self.attach_diagnostics and match.event is not None:
                self._attach_json_artifacts(
                    expected=expected_properties,
                    actual=match.event.properties,
                    name_prefix="event_absence_check",
                )
            return self._finish(AssertionOutcome(False, report.found_message(), match), soft=soft)

    def captured_count(self, count: int | None = None, *, soft: bool = False) -> AssertionOutcome:
        """
        Check how many events were captured: exactly `count`, or at least one when count is None.

        This is an immediate check, it does not wait.
        """
        if count is not None and (
            isinstance(count, bool) or not isinstance(count, int) or count < 0
        ):
            raise HogUsageError(f"count must be a non-negative integer, got {count!r}")

        events = self.log.snapshot()
        actual = len(events)
        passed = actual > 0 if count is None else actual == count
        names = ", ".join(e.name for e in events)

        with allure.step(f"Expect {'some' if count is None else count} captured event(s)"):
            if count is None:
                message = (
                    f"Expected no events, but captured {actual}."
                    if passed
                    else "Expected events, but none were captured."
                )
            else:
                message = (
                    f"Expected NOT to capture {count} event(s), but did."
                    if passed
                    else f"Expected {count} event(s), got {actual}. Events: [{names}]"
                )
            return self._finish(AssertionOutcome(passed, message), soft=soft)

    def _attach_failure(self, report: DiagnosticReport, *, name_prefix: str) -> None:
        if report.near_misses:
            actual: Any = report.near_misses[0]
        else:
            actual = [e.summary() for e in self.log.snapshot()]
        self._attach_json_artifacts(
            expected=report.query.expected_properties, actual=actual, name_prefix=name_prefix
        )


__all__ = [
    "DEFAULT_TIMEOUT",
    "DEFAULT_POLL_INTERVAL",
    "MatchQuery",
    "MismatchReason",
    "DiagnosticReport",
    "MatchOutcome",
    "await_match",
    "AssertionOutcome",
    "EventVerifier",
]
