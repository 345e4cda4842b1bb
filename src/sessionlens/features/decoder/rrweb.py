from __future__ import annotations

import base64
import binascii
import json
import zlib
from collections.abc import Iterable, Iterator
from typing import Any

from sessionlens.features.decoder.compression import (
    decompress_nested,
    gunzip_json,
    is_decompressed,
    try_decompress,
)
from sessionlens.features.decoder.types import BlobV2Item, DecodeError, NativeRRWebItem
from sessionlens.features.events.schema import CanonicalEvent
from sessionlens.features.events.service import coerce_event

DEFAULT_WINDOW_ID = "default"

_GUNZIP_ERRORS = (OSError, EOFError, zlib.error, UnicodeDecodeError, ValueError)


def _load_json(value: str, what: str) -> Any:
    try:
        return json.loads(value)
    except json.JSONDecodeError as e:
        raise DecodeError(f"{what} is not valid JSON: {e.msg}") from e


# ----------------------------
# Native rrweb
# ----------------------------


def decode_native(item: NativeRRWebItem) -> CanonicalEvent:
    raw = item.raw
    if isinstance(raw, str):
        raw = _load_json(raw, "rrweb item")
    if not isinstance(raw, dict):
        raise DecodeError(f"rrweb item must be an object, got {type(raw).__name__}")

    data = raw.get("data")
    if isinstance(data, str):
        # Some exports store snapshot data as a gzip or JSON string
        decoded = try_decompress(data)
        if is_decompressed(decoded):
            raw = {**raw, "data": decoded}
        else:
            try:
                raw = {**raw, "data": json.loads(data)}
            except json.JSONDecodeError:
                pass

    try:
        return coerce_event(raw)
    except ValueError as e:
        raise DecodeError(str(e)) from e


# ----------------------------
# blob_v2
# ----------------------------


def split_blob_lines(text: str) -> list[Any]:
    """
    Split an NDJSON blob body into parsed lines. Unparseable lines are kept as raw
    strings so the decoder can report them.
    """
    lines: list[Any] = []
    for line in text.splitlines():
        line = line.strip()
        if not line:
            continue
        try:
            lines.append(json.loads(line))
        except json.JSONDecodeError:
            lines.append(line)
    return lines


def iter_blob_items(lines: Iterable[Any]) -> Iterator[BlobV2Item | DecodeError]:
    """
    Flatten snapshot lines into per-event items, resolving window ids.

    Supported line shapes:
      - JSON string of any shape below
      - [window_id, event | [events]]
      - {"type": ..., "windowId"?: ...}   (a bare event)
      - {"window_id"|"windowId"?: ..., "data": event | [events]}

    Lines without a window id inherit the last one seen, else "default".
    Malformed lines are yielded as DecodeError so the caller can log and skip.
    """
    last_window_id: str | None = None

    for idx, line in enumerate(lines):
        if not line:
            continue

        if isinstance(line, str):
            try:
                line = json.loads(line)
            except json.JSONDecodeError:
                yield DecodeError(f"blob line {idx} is not valid JSON")
                continue

        window_id: str | None = None
        payload: Any = None

        if isinstance(line, list):
            if len(line) != 2:
                yield DecodeError(f"blob line {idx} must be a [window_id, data] pair")
                continue
            window_id = str(line[0]) if line[0] is not None else None
            payload = line[1]
        elif isinstance(line, dict):
            if line.get("type") is not None:
                payload = line
                window_id = line.get("windowId")
            elif line.get("data"):
                window_id = line.get("window_id") or line.get("windowId")
                payload = line.get("data")

        if not payload:
            yield DecodeError(f"blob line {idx} carries no event data")
            continue

        if window_id:
            last_window_id = str(window_id)
        resolved = last_window_id or DEFAULT_WINDOW_ID

        for evt in payload if isinstance(payload, list) else [payload]:
            if isinstance(evt, str):
                try:
                    evt = json.loads(evt)
                except json.JSONDecodeError:
                    yield DecodeError(f"blob line {idx} holds a non-JSON event")
                    continue
            if not isinstance(evt, dict):
                yield DecodeError(f"blob line {idx} holds a non-object event")
                continue
            yield BlobV2Item(event=evt, window_id=resolved)


def _unpack_compressed(data: str) -> Any:
    """base64 -> gunzip -> JSON, falling back to a latin-1 "binary" transport."""
    try:
        return gunzip_json(base64.b64decode(data, validate=True))
    except (binascii.Error, *_GUNZIP_ERRORS):
        pass
    try:
        return gunzip_json(data.encode("latin-1"))
    except (UnicodeEncodeError, *_GUNZIP_ERRORS) as e:
        raise DecodeError("compressed event data could not be unpacked") from e


def expand_blob_item(item: BlobV2Item, *, max_depth: int) -> dict[str, Any]:
    """
    Return an rrweb-shaped mapping for `item` with every compressed layer opened.
    If the outer layer cannot be opened the original item is returned as-is.
    """
    evt = item.event
    if item.is_compressed:
        try:
            data = _unpack_compressed(evt["data"])
        except DecodeError:
            return dict(evt)
        return {
            "type": evt.get("type"),
            "timestamp": evt.get("timestamp"),
            "data": decompress_nested(data, max_depth=max_depth),
        }

    if isinstance(evt.get("data"), dict | list):
        return {**evt, "data": decompress_nested(evt["data"], max_depth=max_depth)}
    return dict(evt)


def decode_blob_item(item: BlobV2Item, *, max_depth: int) -> CanonicalEvent:
    expanded = expand_blob_item(item, max_depth=max_depth)
    try:
        return coerce_event(expanded, window_id=item.window_id)
    except ValueError as e:
        raise DecodeError(str(e)) from e
