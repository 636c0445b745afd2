from __future__ import annotations

import base64
import binascii
import gzip
import json
import zlib
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any
from urllib.parse import parse_qs, parse_qsl, urlsplit

_GZIP_MAGIC = b"\x1f\x8b"
_JSON_STARTS = (b"{", b"[")


class DecodeStatus(str, Enum):
    """Outcome of decoding one request body."""

    OK = "ok"
    EMPTY = "empty"
    FAILED = "failed"


@dataclass(frozen=True)
class DecodeResult:
    """
    Result of decode_payload.

    Attributes:
      - status: OK (data holds a mapping or a list), EMPTY (no body) or FAILED.
      - data: parsed JSON structure when status is OK.
      - error: short reason when status is FAILED.
    """

    status: DecodeStatus
    data: Any = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is DecodeStatus.OK

    @classmethod
    def empty(cls) -> DecodeResult:
        return cls(DecodeStatus.EMPTY)

    @classmethod
    def failed(cls, error: str) -> DecodeResult:
        return cls(DecodeStatus.FAILED, error=error)


def encoding_hint(url: str | None, headers: Mapping[str, str] | None = None) -> str | None:
    """
    Build the encoding hint for a request from its Content-Encoding header and
    the `compression` query parameter posthog-js appends (gzip-js, base64).

    Returns a lower-cased comma separated string, or None when nothing is known.
    """
    hints: list[str] = []
    for key, value in (headers or {}).items():
        if key.lower() == "content-encoding" and value:
            hints.append(value.strip().lower())
    if url:
        try:
            query = urlsplit(url).query
        except ValueError:
            query = ""
        for value in parse_qs(query).get("compression", []):
            if value:
                hints.append(value.strip().lower())
    return ",".join(hints) or None


def _decompress(raw: bytes, hint: str) -> bytes:
    if "gzip" in hint or raw.startswith(_GZIP_MAGIC):
        return gzip.decompress(raw)
    if "deflate" in hint:
        try:
            return zlib.decompress(raw)
        except zlib.error:
            # Raw deflate stream without zlib header
            return zlib.decompress(raw, -zlib.MAX_WBITS)
    return raw


def _b64decode(raw: bytes) -> bytes:
    compact = b"".join(raw.split())
    # Restore stripped padding
    compact += b"=" * (-len(compact) % 4)
    return base64.b64decode(compact, altchars=b"-_" if b"-" in compact or b"_" in compact else None)


def _unwrap_form(raw: bytes) -> bytes | None:
    """Return the `data` field of a URL-encoded form body, or None if there is none."""
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError:
        return None
    if "=" not in text:
        return None
    for key, value in parse_qsl(text, keep_blank_values=True):
        if key == "data":
            return value.encode("utf-8")
    return None


def _parse_json(raw: bytes) -> Any:
    return json.loads(raw.decode("utf-8-sig"))


def decode_payload(body: Any, hint: str | None = None) -> DecodeResult:
    """
    Turn a request body into a parsed JSON structure.

    Accepted inputs:
      - None / b"" / "" / whitespace: EMPTY
      - an already parsed mapping or list: returned as-is
      - bytes or str, possibly gzip/deflate compressed, base64 encoded, or wrapped
        in a URL-encoded form as `data=...`

    Never raises: any decompression or parsing problem becomes a FAILED result.
    """
    if body is None:
        return DecodeResult.empty()
    if isinstance(body, Mapping | list):
        return DecodeResult(DecodeStatus.OK, data=body)
    if isinstance(body, str):
        raw = body.encode("utf-8")
    elif isinstance(body, bytes | bytearray | memoryview):
        raw = bytes(body)
    else:
        return DecodeResult.failed(f"unsupported body type: {type(body).__name__}")

    if not raw.strip():
        return DecodeResult.empty()

    hint = (hint or "").lower()
    try:
        raw = _decompress(raw, hint)

        form_data = None if raw.lstrip().startswith(_JSON_STARTS) else _unwrap_form(raw)
        if form_data is not None:
            raw = form_data

        stripped = raw.strip()
        if not stripped:
            return DecodeResult.empty()
        if "base64" in hint or not stripped.startswith(_JSON_STARTS):
            raw = _b64decode(stripped)
            # posthog-js may gzip before base64-encoding
            if raw.startswith(_GZIP_MAGIC):
                raw = gzip.decompress(raw)

        data = _parse_json(raw)
    except (OSError, EOFError, zlib.error, binascii.Error, UnicodeDecodeError, ValueError) as e:
        return DecodeResult.failed(f"{type(e).__name__}: {e}")

    if not isinstance(data, dict | list):
        return DecodeResult.failed(f"payload is not an object or array: {type(data).__name__}")
    return DecodeResult(DecodeStatus.OK, data=data)


__all__ = ["DecodeStatus", "DecodeResult", "decode_payload", "encoding_hint"]
