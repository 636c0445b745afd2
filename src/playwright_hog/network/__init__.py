from .endpoints import DEFAULT_ENDPOINT_PATTERNS, EndpointClassifier, is_tracked_endpoint
from .event_verifier import (
    AssertionOutcome,
    DiagnosticReport,
    EventVerifier,
    MatchOutcome,
    MatchQuery,
    MismatchReason,
    await_match,
)
from .events import Event, EventLog
from .matching import deep_equal, matches_properties
from .normalizer import UNKNOWN_EVENT, normalize_event, normalize_payload
from .payload import DecodeResult, DecodeStatus, decode_payload, encoding_hint
from .session import HogSession

__all__ = [
    "DEFAULT_ENDPOINT_PATTERNS",
    "EndpointClassifier",
    "is_tracked_endpoint",
    "DecodeResult",
    "DecodeStatus",
    "decode_payload",
    "encoding_hint",
    "UNKNOWN_EVENT",
    "normalize_event",
    "normalize_payload",
    "Event",
    "EventLog",
    "deep_equal",
    "matches_properties",
    "MatchQuery",
    "MatchOutcome",
    "MismatchReason",
    "DiagnosticReport",
    "await_match",
    "AssertionOutcome",
    "EventVerifier",
    "HogSession",
]
