from __future__ import annotations

import hashlib
import json
from collections.abc import Iterable
from typing import Any


def canonical_json(obj: Any) -> str:
    # stable serialization for hashing
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=True, default=str)


def fingerprint(rows: Iterable[dict[str, Any]], length: int = 16) -> str:
    """
    Deterministic digest over a sequence of JSON-able rows.
    - Same rows in the same order -> same fingerprint.
    - Any change in content or order -> different fingerprint.
    """
    h = hashlib.sha1()
    for row in rows:
        h.update(canonical_json(row).encode("utf-8"))
        h.update(b"\n")
    return h.hexdigest()[:length]


def element_hash(value: str) -> int:
    """
    32-bit `(h << 5) - h + code` string hash, as analytics SDKs compute it.
    Used to derive a stable pseudo node id for elements seen without a DOM.
    """
    h = 0
    for ch in value:
        h = ((h << 5) - h + ord(ch)) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return abs(h) or 1
