from __future__ import annotations

import base64
import gzip
import json
import time
from collections.abc import Callable, Iterator
from typing import Any

import pytest
from playwright.sync_api import Error as PlaywrightError

from playwright_hog.network.session import ROUTE_PATTERN, HogSession
from playwright_hog.utils.logging import setup_logging


class FakeRequest:
    def __init__(
        self, url: str, body: bytes | None = None, headers: dict[str, str] | None = None
    ) -> None:
        self.url = url
        self.post_data_buffer = body
        self.headers = headers or {}


class FakeRoute:
    def __init__(self, error: Exception | None = None) -> None:
        self.continued = 0
        self._error = error

    def continue_(self) -> None:
        self.continued += 1
        if self._error is not None:
            raise self._error


class FakePage:
    """Minimal sync Page: routes requests to its handlers and delivers queued ones on wait."""

    def __init__(self) -> None:
        self.handlers: list[tuple[str, Callable[..., None]]] = []
        self.pending: list[FakeRequest] = []
        self.waits: list[float] = []
        self.routes: list[FakeRoute] = []
        self.unroute_error: Exception | None = None

    def route(self, pattern: str, handler: Callable[..., None]) -> None:
        self.handlers.append((pattern, handler))

    def unroute(self, pattern: str, handler: Callable[..., None]) -> None:
        if self.unroute_error is not None:
            raise self.unroute_error
        self.handlers.remove((pattern, handler))

    def send(self, request: FakeRequest, route: FakeRoute | None = None) -> FakeRoute:
        route = route or FakeRoute()
        self.routes.append(route)
        for _, handler in self.handlers:
            handler(route, request)
        return route

    def wait_for_timeout(self, ms: float) -> None:
        self.waits.append(ms)
        while self.pending:
            self.send(self.pending.pop(0))
        time.sleep(ms / 1000)


def _json(value: Any) -> bytes:
    return json.dumps(value).encode()


@pytest.fixture
def page() -> FakePage:
    return FakePage()


@pytest.fixture
def hog(page: FakePage) -> HogSession:
    session = HogSession(
        page,  # type: ignore[arg-type]
        timeout=0.5,
        poll_interval=0.05,
        attach_diagnostics=False,
    )
    return session.start()


def test_start_registers_one_handler_and_stop_removes_it(page: FakePage) -> None:
    hog = HogSession(page)  # type: ignore[arg-type]
    hog.start()
    hog.start()
    assert [p for p, _ in page.handlers] == [ROUTE_PATTERN]
    assert hog.started

    hog.stop()
    assert page.handlers == []
    assert not hog.started


def test_stop_tolerates_closed_page(page: FakePage) -> None:
    hog = HogSession(page).start()  # type: ignore[arg-type]
    page.unroute_error = PlaywrightError("Target page, context or browser has been closed")
    hog.stop()
    assert not hog.started


def test_context_manager(page: FakePage) -> None:
    with HogSession(page) as hog:  # type: ignore[arg-type]
        assert len(page.handlers) == 1
        page.send(FakeRequest("https://app.posthog.com/e/", _json({"event": "$pageview"})))
        assert [e.name for e in hog.captured_events()] == ["$pageview"]
    assert page.handlers == []


def test_untracked_requests_are_continued_without_capture(
    page: FakePage, hog: HogSession
) -> None:
    route = page.send(FakeRequest("https://cdn.example.com/app.js"))
    page.send(FakeRequest("https://api.example.com/users", _json({"event": "nope"})))

    assert route.continued == 1
    assert all(r.continued == 1 for r in page.routes)
    assert hog.captured_events() == []
    assert hog.requests_seen == 2
    assert hog.requests_tracked == 0


def test_gzip_batch_is_captured_in_order(page: FakePage, hog: HogSession) -> None:
    body = gzip.compress(
        _json({"batch": [{"event": "a", "properties": {"i": 1}}, {"event": "b"}]})
    )
    route = page.send(
        FakeRequest("https://eu.i.posthog.com/batch/?compression=gzip-js", body)
    )

    assert route.continued == 1
    assert [e.name for e in hog.captured_events()] == ["a", "b"]
    assert hog.captured_events()[0].properties == {"i": 1}


def test_base64_form_body_is_captured(page: FakePage, hog: HogSession) -> None:
    data = base64.b64encode(_json([{"event": "signup", "properties": {"plan": "pro"}}]))
    page.send(
        FakeRequest(
            "https://app.posthog.com/e/",
            b"data=" + data,
            {"content-type": "application/x-www-form-urlencoded"},
        )
    )
    hog.fired("signup", {"plan": "pro"})


@pytest.mark.parametrize("body", [b"{not json", b"", None, b"\x1f\x8b broken gzip"])
def test_undecodable_bodies_capture_nothing_but_continue(
    page: FakePage, hog: HogSession, body: bytes | None
) -> None:
    route = page.send(FakeRequest("https://app.posthog.com/e/", body))
    assert route.continued == 1
    assert hog.captured_events() == []
    assert hog.requests_tracked == 1


def test_capture_failure_still_continues(
    page: FakePage, hog: HogSession, monkeypatch: pytest.MonkeyPatch
) -> None:
    def boom(*_: Any, **__: Any) -> None:
        raise RuntimeError("boom")

    monkeypatch.setattr(hog, "capture", boom)
    route = page.send(FakeRequest("https://app.posthog.com/e/", _json({"event": "x"})))
    assert route.continued == 1


def test_continue_failure_is_swallowed(page: FakePage, hog: HogSession) -> None:
    route = FakeRoute(error=PlaywrightError("Route is already handled!"))
    page.send(FakeRequest("https://app.posthog.com/e/", _json({"event": "x"})), route)
    assert route.continued == 1
    assert [e.name for e in hog.captured_events()] == ["x"]


def test_events_arriving_while_waiting_are_found(page: FakePage, hog: HogSession) -> None:
    page.pending.append(
        FakeRequest("https://app.posthog.com/e/", _json({"event": "checkout_completed"}))
    )

    outcome = hog.fired("checkout_completed")

    assert outcome.passed
    assert page.waits and page.waits[0] == pytest.approx(50)


def test_not_fired_and_count_through_session(page: FakePage, hog: HogSession) -> None:
    page.send(FakeRequest("https://app.posthog.com/e/", _json({"event": "$pageview"})))

    assert hog.not_fired("error_occurred", timeout=0.1).passed
    assert hog.captured_count(1).passed
    with pytest.raises(AssertionError, match="error_occurred"):
        hog.fired("error_occurred", timeout=0.1)


def test_clear_resets_captured_events(page: FakePage, hog: HogSession) -> None:
    page.send(FakeRequest("https://app.posthog.com/e/", _json({"event": "a"})))
    hog.clear()
    assert hog.captured_events() == []
    page.send(FakeRequest("https://app.posthog.com/e/", _json({"event": "b"})))
    assert [e.name for e in hog.captured_events()] == ["b"]


def test_wait_falls_back_to_sleep_when_page_is_gone(
    page: FakePage, hog: HogSession, monkeypatch: pytest.MonkeyPatch
) -> None:
    def closed(_: float) -> None:
        raise PlaywrightError("Target closed")

    slept: list[float] = []
    monkeypatch.setattr(page, "wait_for_timeout", closed)
    monkeypatch.setattr("playwright_hog.network.session.time.sleep", slept.append)
    hog._wait(0.05)
    assert slept == [0.05]


def _printed_events(out: str) -> list[str]:
    return [json.loads(line)["event"] for line in out.splitlines() if line.startswith("{")]


@pytest.fixture
def quiet_logging() -> Iterator[None]:
    setup_logging("WARNING", force=True)
    yield
    setup_logging("WARNING", force=True)


@pytest.mark.usefixtures("quiet_logging")
def test_debug_session_prints_traces_at_default_level(
    page: FakePage, capsys: pytest.CaptureFixture[str]
) -> None:
    hog = HogSession(page, debug=True, attach_diagnostics=False).start()  # type: ignore[arg-type]
    page.send(FakeRequest("https://app.posthog.com/e/", _json({"event": "a"})))
    page.send(FakeRequest("https://app.posthog.com/e/", b"garbage"))
    hog.stop()

    out = capsys.readouterr().out
    assert _printed_events(out) == [
        "hog_capture_init",
        "hog_request_intercepted",
        "hog_events_captured",
        "hog_request_intercepted",
        "payload_decode_failed",
        "hog_capture_complete",
    ]
    summary = json.loads(out.splitlines()[-1])
    assert summary["total_events"] == 1
    assert summary["event_names"] == ["a"]
    assert summary["requests_tracked"] == 2


@pytest.mark.usefixtures("quiet_logging")
def test_debug_wait_prints_poll_traces(
    page: FakePage, capsys: pytest.CaptureFixture[str]
) -> None:
    hog = HogSession(page, debug=True, attach_diagnostics=False).start()  # type: ignore[arg-type]
    page.send(FakeRequest("https://app.posthog.com/e/", _json({"event": "a"})))
    capsys.readouterr()

    hog.fired("a")

    out = capsys.readouterr().out
    assert _printed_events(out) == ["hog_wait_for_event", "hog_event_found"]


@pytest.mark.usefixtures("quiet_logging")
def test_silent_session_prints_nothing(page: FakePage, capsys: pytest.CaptureFixture[str]) -> None:
    hog = HogSession(page, attach_diagnostics=False).start()  # type: ignore[arg-type]
    page.send(FakeRequest("https://app.posthog.com/e/", _json({"event": "a"})))
    page.send(FakeRequest("https://app.posthog.com/e/", b"garbage"))
    hog.fired("a")
    hog.stop()

    assert capsys.readouterr().out == ""


@pytest.mark.usefixtures("quiet_logging")
def test_debug_is_per_session(page: FakePage, capsys: pytest.CaptureFixture[str]) -> None:
    other = FakePage()
    loud = HogSession(page, debug=True, attach_diagnostics=False).start()  # type: ignore[arg-type]
    quiet = HogSession(other, attach_diagnostics=False).start()  # type: ignore[arg-type]
    capsys.readouterr()

    other.send(FakeRequest("https://app.posthog.com/e/", _json({"event": "quiet"})))
    page.send(FakeRequest("https://app.posthog.com/e/", _json({"event": "loud"})))

    records = [json.loads(line) for line in capsys.readouterr().out.splitlines()]
    assert [r["event"] for r in records] == ["hog_request_intercepted", "hog_events_captured"]
    assert records[1]["events"] == [{"event": "loud", "properties": {}}]
    loud.stop()
    quiet.stop()


def test_captured_events_cannot_change_the_log(page: FakePage, hog: HogSession) -> None:
    page.send(
        FakeRequest("https://app.posthog.com/e/", _json({"event": "a", "properties": {"x": 1}}))
    )

    hog.captured_events()[0].properties["x"] = 2

    assert hog.captured_events()[0].properties == {"x": 1}
    assert hog.not_fired("a", {"x": 2}, timeout=0).passed
