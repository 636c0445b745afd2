from __future__ import annotations

from collections.abc import Mapping
from typing import Any

_SCALARS = (str, int, float, bytes)


def _sequence(value: Any) -> bool:
    return isinstance(value, list | tuple)


def deep_equal(a: Any, b: Any, _active: set[tuple[int, int]] | None = None) -> bool:
    """
    Structural equality for JSON-like values.

    - None equals only None
    - booleans equal only booleans; numbers compare by value (1 == 1.0)
    - lists/tuples: same length, pointwise equal in order
    - mappings: same key set, pointwise equal
    - anything else: identity, or == when it does not raise

    Cyclic structures are compared without recursing forever: a pair already
    under comparison is assumed equal.
    """
    if a is b:
        return True
    if a is None or b is None:
        return False
    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool) and a == b
    if isinstance(a, int | float) and isinstance(b, int | float):
        return a == b
    if isinstance(a, _SCALARS) or isinstance(b, _SCALARS):
        return type(a) is type(b) and a == b

    if isinstance(a, Mapping) and isinstance(b, Mapping):
        pair = (id(a), id(b))
        active = _active if _active is not None else set()
        if pair in active:
            return True
        if len(a) != len(b) or set(a) != set(b):
            return False
        active.add(pair)
        try:
            return all(deep_equal(a[k], b[k], active) for k in a)
        finally:
            active.discard(pair)

    if _sequence(a) and _sequence(b):
        pair = (id(a), id(b))
        active = _active if _active is not None else set()
        if pair in active:
            return True
        if len(a) != len(b):
            return False
        active.add(pair)
        try:
            return all(deep_equal(x, y, active) for x, y in zip(a, b, strict=True))
        finally:
            active.discard(pair)

    if isinstance(a, Mapping) or isinstance(b, Mapping) or _sequence(a) or _sequence(b):
        return False

    try:
        return bool(a == b)
    except Exception:
        return False


def matches_properties(
    actual: Mapping[str, Any] | None, expected: Mapping[str, Any] | None
) -> bool:
    """
    Subset match: every key of `expected` must be present in `actual` with a
    deep-equal value. Extra keys in `actual` are ignored.

    An absent or empty `expected` always matches.
    """
    if not expected:
        return True
    if not isinstance(expected, Mapping) or not isinstance(actual, Mapping):
        return False
    for key, expected_value in expected.items():
        if key not in actual:
            return False
        if not deep_equal(actual[key], expected_value):
            return False
    return True


__all__ = ["deep_equal", "matches_properties"]
