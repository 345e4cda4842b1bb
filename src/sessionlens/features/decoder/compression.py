from __future__ import annotations

import base64
import binascii
import gzip
import json
import zlib
from typing import Any

GZIP_MAGIC = b"\x1f\x8b"

# base64 of 1f 8b 08 (gzip magic + deflate method)
B64_GZIP_PREFIX = "H4sI"

DEFAULT_MAX_DEPTH = 8

_MISSING = object()


def _gzip_bytes(value: str) -> bytes | None:
    """
    Return the gzip member behind `value` or None if it does not look like one.

    Two transports are recognised:
      - "binary" strings (each char is one byte) starting with the gzip magic
      - base64 text whose decoded bytes start with the gzip magic
    """
    if len(value) < 2:
        return None

    if ord(value[0]) == 0x1F and ord(value[1]) == 0x8B:
        try:
            return value.encode("latin-1")
        except UnicodeEncodeError:
            return None

    if value.startswith(B64_GZIP_PREFIX):
        try:
            raw = base64.b64decode(value, validate=True)
        except (binascii.Error, ValueError):
            return None
        if raw[:2] == GZIP_MAGIC:
            return raw

    return None


def gunzip_json(raw: bytes) -> Any:
    """Decompress a gzip member and parse it as UTF-8 JSON. Raises on failure."""
    return json.loads(gzip.decompress(raw).decode("utf-8"))


def try_decompress(value: str) -> Any:
    """
    Total leaf function: the decoded JSON value, or `_MISSING` when `value` is not
    a gzip payload or fails to decompress/parse. Never recurses.
    """
    raw = _gzip_bytes(value)
    if raw is None:
        return _MISSING
    try:
        return gunzip_json(raw)
    except (OSError, EOFError, zlib.error, UnicodeDecodeError, ValueError):
        return _MISSING


def is_decompressed(result: Any) -> bool:
    return result is not _MISSING


def decompress_nested(value: Any, *, max_depth: int = DEFAULT_MAX_DEPTH, _depth: int = 0) -> Any:
    """
    Walk dicts/lists and replace every gzip-looking string with its decoded value.
    Decoded values are walked again (double-compressed payloads) until `max_depth`.
    Inputs are never mutated; containers are rebuilt.
    """
    if isinstance(value, str):
        if _depth >= max_depth:
            return value
        decoded = try_decompress(value)
        if decoded is _MISSING:
            return value
        return decompress_nested(decoded, max_depth=max_depth, _depth=_depth + 1)

    if isinstance(value, list):
        return [decompress_nested(v, max_depth=max_depth, _depth=_depth) for v in value]

    if isinstance(value, dict):
        return {k: decompress_nested(v, max_depth=max_depth, _depth=_depth) for k, v in value.items()}

    return value


def encode_blob(value: Any) -> str:
    """gzip + base64 a JSON value the way blob_v2 sources ship `data`."""
    payload = json.dumps(value, separators=(",", ":")).encode("utf-8")
    return base64.b64encode(gzip.compress(payload, mtime=0)).decode("ascii")
