from __future__ import annotations

from collections.abc import Iterable
from urllib.parse import urlsplit

# Path fragments of known ingestion routes:
#   /e/       - single events and batches from posthog-js
#   /capture  - server-side and legacy capture
#   /batch    - explicit batch endpoint
#   /s/       - session recording snapshots
DEFAULT_ENDPOINT_PATTERNS: tuple[str, ...] = ("/e/", "/capture", "/batch", "/s/")

_NETWORK_SCHEMES = ("http", "https")


class EndpointClassifier:
    """
    Decide whether a request URL targets an analytics ingestion endpoint.

    Matching is done against the URL path only (query strings are ignored), so
    a tracked fragment inside a query parameter does not produce false positives.
    A path without a trailing slash is also tried with one, so "/e" matches "/e/".
    """

    def __init__(self, patterns: Iterable[str] | None = None) -> None:
        source = DEFAULT_ENDPOINT_PATTERNS if patterns is None else patterns
        self.patterns: tuple[str, ...] = tuple(p for p in source if p)

    def is_tracked(self, url: str) -> bool:
        if not url or not isinstance(url, str):
            return False
        try:
            parts = urlsplit(url)
        except ValueError:
            return False
        if parts.scheme.lower() not in _NETWORK_SCHEMES:
            return False

        path = parts.path or "/"
        candidates = (path,) if path.endswith("/") else (path, path + "/")
        return any(p in c for p in self.patterns for c in candidates)


_default_classifier = EndpointClassifier()


def is_tracked_endpoint(url: str, patterns: Iterable[str] | None = None) -> bool:
    """Return True if the URL points at a known analytics ingestion route."""
    if patterns is None:
        return _default_classifier.is_tracked(url)
    return EndpointClassifier(patterns).is_tracked(url)


__all__ = ["DEFAULT_ENDPOINT_PATTERNS", "EndpointClassifier", "is_tracked_endpoint"]
