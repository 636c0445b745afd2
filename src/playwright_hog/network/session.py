from __future__ import annotations

import time
from collections.abc import Iterable, Mapping
from types import TracebackType
from typing import Any

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import Page, Request, Route

from ..utils.logging import get_logger, get_trace_logger
from .endpoints import EndpointClassifier
from .event_verifier import (
    DEFAULT_POLL_INTERVAL,
    DEFAULT_TIMEOUT,
    AssertionOutcome,
    EventVerifier,
)
from .events import Event, EventLog
from .normalizer import normalize_payload
from .payload import DecodeStatus, decode_payload, encoding_hint

logger = get_logger(__name__)

ROUTE_PATTERN = "**/*"


class HogSession:
    """
    Analytics capture bound to one Playwright page.

    Owns the page's EventLog and the route handler feeding it. Every routed
    request is inspected and then continued unmodified, whether or not it
    targeted an ingestion endpoint.

    Typical use without the pytest plugin:

        with HogSession(page) as hog:
            page.goto(url)
            hog.fired("$pageview")
    """

    def __init__(
        self,
        page: Page,
        *,
        patterns: Iterable[str] | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        debug: bool = False,
        attach_diagnostics: bool = True,
    ) -> None:
        self.page = page
        self.debug = debug
        self._trace = get_trace_logger(__name__, enabled=debug)
        self.log = EventLog()
        self.classifier = EndpointClassifier(patterns)
        self.verifier = EventVerifier(
            self.log,
            timeout=timeout,
            poll_interval=poll_interval,
            sleep=self._wait,
            debug=debug,
            attach_diagnostics=attach_diagnostics,
        )
        self.requests_seen = 0
        self.requests_tracked = 0
        self._handler = self._handle_route
        self._started = False

    # ----- Lifecycle -----
    @property
    def started(self) -> bool:
        return self._started

    def start(self) -> HogSession:
        if self._started:
            return self
        if self.debug:
            self._trace.info("hog_capture_init", patterns=list(self.classifier.patterns))
        self.page.route(ROUTE_PATTERN, self._handler)
        self._started = True
        return self

    def stop(self) -> None:
        if not self._started:
            return
        self._started = False
        try:
            self.page.unroute(ROUTE_PATTERN, self._handler)
        except PlaywrightError as e:
            # Page or context already closed
            logger.debug("hog_unroute_failed", error=str(e))
        if self.debug:
            self._trace.info(
                "hog_capture_complete",
                total_events=len(self.log),
                event_names=self.log.names(),
                requests_seen=self.requests_seen,
                requests_tracked=self.requests_tracked,
            )

    def __enter__(self) -> HogSession:
        return self.start()

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.stop()

    # ----- Capture path -----
    def capture(self, url: str, body: Any, hint: str | None = None) -> list[Event]:
        """
        Inspect one outgoing request and append the events it carries.

        Returns the events appended (empty for untracked URLs, empty or
        undecodable bodies). Never raises for malformed payloads.
        """
        self.requests_seen += 1
        if not self.classifier.is_tracked(url):
            return []

        self.requests_tracked += 1
        if self.debug:
            self._trace.info("hog_request_intercepted", url=url, encoding=hint)

        decoded = decode_payload(body, hint)
        if decoded.status is DecodeStatus.FAILED:
            if self.debug:
                self._trace.info("payload_decode_failed", url=url, error=decoded.error)
            return []
        if decoded.status is DecodeStatus.EMPTY:
            if self.debug:
                self._trace.info("payload_empty", url=url)
            return []

        events = normalize_payload(decoded.data)
        total = self.log.append(events)
        if self.debug and events:
            self._trace.info(
                "hog_events_captured",
                count=len(events),
                total=total,
                events=[e.summary() for e in events],
            )
        return events

    def _handle_route(self, route: Route, request: Request) -> None:
        try:
            url = request.url
            headers: Mapping[str, str] = request.headers
            self.capture(url, request.post_data_buffer, encoding_hint(url, headers))
        except Exception as e:
            # Capture problems must never break the page under test
            logger.warning("hog_capture_error", error=str(e))
        finally:
            try:
                route.continue_()
            except PlaywrightError as e:
                logger.debug("hog_continue_failed", error=str(e))

    def _wait(self, seconds: float) -> None:
        """Sleep between polls while letting Playwright dispatch pending route callbacks."""
        try:
            self.page.wait_for_timeout(seconds * 1000)
        except PlaywrightError:
            time.sleep(seconds)

    # ----- Read / mutate -----
    def captured_events(self) -> list[Event]:
        return list(self.log.snapshot())

    def clear(self) -> None:
        self.log.clear()
        if self.debug:
            self._trace.info("hog_events_cleared")

    # ----- Assertions -----
    def fired(
        self,
        event_name: str,
        expected_properties: Mapping[str, Any] | None = None,
        *,
        timeout: float | None = None,
        poll_interval: float | None = None,
        soft: bool = False,
    ) -> AssertionOutcome:
        return self.verifier.fired(
            event_name,
            expected_properties,
            timeout=timeout,
            poll_interval=poll_interval,
            soft=soft,
        )

    def not_fired(
        self,
        event_name: str,
        expected_properties: Mapping[str, Any] | None = None,
        *,
        timeout: float | None = None,
        poll_interval: float | None = None,
        soft: bool = False,
    ) -> AssertionOutcome:
        return self.verifier.not_fired(
            event_name,
            expected_properties,
            timeout=timeout,
            poll_interval=poll_interval,
            soft=soft,
        )

    def captured_count(self, count: int | None = None, *, soft: bool = False) -> AssertionOutcome:
        return self.verifier.captured_count(count, soft=soft)


__all__ = ["HogSession", "ROUTE_PATTERN"]
