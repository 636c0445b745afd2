from __future__ import annotations

import copy
from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from typing import Any

from .events import Event

UNKNOWN_EVENT = "unknown"

# Raw field aliases, long form first
_NAME_KEYS = ("event", "e")
_PROPERTIES_KEYS = ("properties", "p")
_TIMESTAMP_KEYS = ("timestamp", "ts")
_DISTINCT_ID_KEYS = ("distinct_id", "d")

_CONSUMED_KEYS = frozenset(
    (*_NAME_KEYS, *_PROPERTIES_KEYS, *_TIMESTAMP_KEYS, *_DISTINCT_ID_KEYS, *Event.model_fields)
)

# Bound for {"data": {"data": ...}} chains
_MAX_DATA_DEPTH = 8


def _capture_instant() -> str:
    return datetime.now(UTC).isoformat()


def _first(raw: Mapping[str, Any], keys: tuple[str, ...]) -> Any:
    for key in keys:
        value = raw.get(key)
        if value not in (None, ""):
            return value
    return None


def normalize_event(
    raw: Mapping[str, Any],
    *,
    now: Callable[[], str] = _capture_instant,
) -> Event:
    """
    Map one raw event mapping onto the canonical Event shape.

    - name: event / e, else "unknown"
    - properties: properties / p, else {}
    - timestamp: timestamp / ts, else properties["$time"], else the capture instant
    - distinct_id: distinct_id / d, else properties["distinct_id"]
    - every other top-level key is carried through unchanged
    """
    name = _first(raw, _NAME_KEYS)
    props = _first(raw, _PROPERTIES_KEYS)
    properties: dict[str, Any] = copy.deepcopy(dict(props)) if isinstance(props, Mapping) else {}

    timestamp = _first(raw, _TIMESTAMP_KEYS)
    if timestamp is None:
        timestamp = properties.get("$time")
    if isinstance(timestamp, bool) or not isinstance(timestamp, int | float | str):
        timestamp = now()

    distinct_id = _first(raw, _DISTINCT_ID_KEYS)
    if distinct_id is None:
        distinct_id = properties.get("distinct_id")

    extras = {
        str(k): copy.deepcopy(v) for k, v in raw.items() if k not in _CONSUMED_KEYS
    }
    return Event(
        name=str(name) if name is not None else UNKNOWN_EVENT,
        properties=properties,
        timestamp=timestamp,
        distinct_id=str(distinct_id) if distinct_id is not None else None,
        **extras,
    )


def _has_marker(parsed: Mapping[str, Any]) -> bool:
    return any(parsed.get(k) for k in _NAME_KEYS)


def _raw_events(parsed: Any, depth: int = 0) -> list[Mapping[str, Any]]:
    """Pick the raw event elements out of a payload; the first matching rule wins."""
    if depth > _MAX_DATA_DEPTH:
        return []
    if isinstance(parsed, Mapping):
        batch = parsed.get("batch")
        if isinstance(batch, list):
            return [e for e in batch if isinstance(e, Mapping)]
    if isinstance(parsed, list):
        return [e for e in parsed if isinstance(e, Mapping)]
    if not isinstance(parsed, Mapping):
        return []
    if _has_marker(parsed):
        return [parsed]
    if "data" in parsed:
        return _raw_events(parsed["data"], depth + 1)
    return []


def normalize_payload(
    parsed: Any,
    *,
    now: Callable[[], str] = _capture_instant,
) -> list[Event]:
    """
    Turn a decoded payload into canonical events, in payload order.

    Rules, in priority order:
      1. {"batch": [...]}      - one event per element
      2. [...]                 - one event per element
      3. {"event"|"e": ...}    - the payload itself is one event
      4. {"data": ...}         - the rules are applied again to the value of `data`
      5. anything else         - no events

    Elements that are not mappings are dropped. Never raises on odd shapes.
    """
    return [normalize_event(raw, now=now) for raw in _raw_events(parsed)]


__all__ = ["UNKNOWN_EVENT", "normalize_event", "normalize_payload"]
