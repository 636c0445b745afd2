from __future__ import annotations

import threading
from collections.abc import Iterable
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from playwright_hog.utils.logging import get_logger

logger = get_logger(__name__)


class Event(BaseModel):
    """
    Canonical analytics event captured from an ingestion request.

    Attributes:
      - name: Event type (e.g. "$pageview", "signup"); "unknown" when the payload had none.
      - properties: Event properties, empty when the payload had none.
      - timestamp: Time marker from the payload, else the capture instant (ISO 8601).
      - distinct_id: Originating user/session identifier, if present.

    Any other field of the raw event (uuid, $set, type, ...) is kept under its
    original key and is reachable as an attribute or through model_extra.
    Instances are frozen once built.
    """

    model_config = ConfigDict(extra="allow", frozen=True)

    name: str
    properties: dict[str, Any] = Field(default_factory=dict)
    timestamp: float | int | str
    distinct_id: str | None = None

    @property
    def extras(self) -> dict[str, Any]:
        return dict(self.model_extra or {})

    def summary(self) -> dict[str, Any]:
        return {"event": self.name, "properties": self.properties}


class EventLog:
    """
    Thread-safe, append-only log of the events captured for one page.

    Responsibilities:
      - Keep events in interception order (no reordering, no deduplication).
      - Hand out snapshots that are safe to iterate while captures continue.
      - Reset on explicit request.

    Stored events are private copies: appending copies the given events and
    every snapshot hands out fresh deep copies, so editing a returned event's
    properties never changes the log or later matches.
    """

    def __init__(self) -> None:
        self._events: list[Event] = []
        self._lock = threading.RLock()

    def append(self, new_events: Iterable[Event]) -> int:
        """Append events in order and return the new total."""
        batch = [e.model_copy(deep=True) for e in new_events]
        with self._lock:
            self._events.extend(batch)
            total = len(self._events)
        if batch:
            logger.debug("events_appended", count=len(batch), total=total)
        return total

    def snapshot(self) -> tuple[Event, ...]:
        with self._lock:
            stored = tuple(self._events)
        # Stored events are never modified in place, copying outside the lock is safe
        return tuple(e.model_copy(deep=True) for e in stored)

    def clear(self) -> None:
        with self._lock:
            self._events = []
        logger.debug("events_cleared")

    def names(self) -> list[str]:
        """Distinct event names in first-seen order."""
        with self._lock:
            return list(dict.fromkeys(e.name for e in self._events))

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)
