from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from sessionlens.core.logging import get_logger
from sessionlens.features.decoder.analytics import amplitude_to_events, mixpanel_to_events
from sessionlens.features.decoder.compression import DEFAULT_MAX_DEPTH
from sessionlens.features.decoder.rrweb import (
    decode_blob_item,
    decode_native,
    iter_blob_items,
    split_blob_lines,
)
from sessionlens.features.decoder.types import (
    AmplitudeEvent,
    DecodeError,
    DecodeResult,
    MixpanelEvent,
    NativeRRWebItem,
    NoValidEvents,
    SessionSource,
)
from sessionlens.features.events.schema import CanonicalEvent
from sessionlens.features.events.service import ensure_meta, sort_events


def _first_object(items: Sequence[Any]) -> Any:
    for item in items:
        if item:
            return item
    return None


def detect_source(payload: Any) -> SessionSource:
    """
    Infer the vendor from the shape of a payload.

    - NDJSON text, [window_id, data] pairs or compressed (`cv`) items -> blob_v2
    - {event_type, event_time} -> amplitude
    - {event, properties} -> mixpanel
    - anything else -> native rrweb
    """
    if isinstance(payload, str):
        return SessionSource.BLOB_V2
    if isinstance(payload, dict):
        payload = payload.get("events") or []
    if not isinstance(payload, list):
        return SessionSource.RRWEB

    first = _first_object(payload)
    if isinstance(first, list):
        return SessionSource.BLOB_V2
    if isinstance(first, dict):
        if "event_type" in first and "event_time" in first:
            return SessionSource.AMPLITUDE
        if "event" in first and "properties" in first:
            return SessionSource.MIXPANEL
        if first.get("cv") or ("type" not in first and ("window_id" in first or "windowId" in first)):
            return SessionSource.BLOB_V2
    return SessionSource.RRWEB


class DecoderService:
    """
    Vendor payload -> time-ordered canonical events.

    Malformed items are logged and skipped. A payload that yields nothing raises
    NoValidEvents so callers can tell it apart from an empty success.
    """

    def __init__(self, *, max_depth: int = DEFAULT_MAX_DEPTH, logger: logging.Logger | None = None) -> None:
        if max_depth < 1:
            raise ValueError("max_depth must be >= 1")
        self.max_depth = int(max_depth)
        self._logger = logger or get_logger(__name__)

    def decode(
        self,
        payload: Any,
        *,
        source: SessionSource | str = SessionSource.AUTO,
        session_id: str | None = None,
    ) -> DecodeResult:
        src = SessionSource(source)
        if src == SessionSource.AUTO:
            src = detect_source(payload)

        items = payload.get("events") or [] if isinstance(payload, dict) else payload

        errors: list[str] = []
        if src == SessionSource.RRWEB:
            events = self._decode_rrweb(items, errors)
        elif src == SessionSource.BLOB_V2:
            events = self._decode_blob(items, errors)
        elif src == SessionSource.AMPLITUDE:
            events = amplitude_to_events(self._collect(items, AmplitudeEvent.from_raw, errors))
        else:
            events = mixpanel_to_events(self._collect(items, MixpanelEvent.from_raw, errors))

        for err in errors:
            self._logger.warning(
                "skipped malformed item",
                extra={"session_id": session_id, "source": src.value, "error": err},
            )

        if not events:
            raise NoValidEvents(f"no decodable events in {src.value} payload ({len(errors)} skipped)")

        result = DecodeResult(
            source=src,
            events=tuple(ensure_meta(sort_events(events))),
            skipped=len(errors),
            errors=tuple(errors),
        )
        self._logger.debug(
            "decoded",
            extra={
                "session_id": session_id,
                "source": src.value,
                "event_count": result.event_count,
                "skipped": result.skipped,
            },
        )
        return result

    @staticmethod
    def _collect(items: Any, from_raw, errors: list[str]) -> list[Any]:
        if not isinstance(items, list):
            errors.append(f"expected a list of events, got {type(items).__name__}")
            return []
        out = []
        for raw in items:
            try:
                out.append(from_raw(raw))
            except DecodeError as e:
                errors.append(str(e))
        return out

    def _decode_rrweb(self, items: Any, errors: list[str]) -> list[CanonicalEvent]:
        if not isinstance(items, list):
            errors.append(f"expected a list of events, got {type(items).__name__}")
            return []
        events: list[CanonicalEvent] = []
        for raw in items:
            try:
                events.append(decode_native(NativeRRWebItem(raw)))
            except DecodeError as e:
                errors.append(str(e))
        return events

    def _decode_blob(self, items: Any, errors: list[str]) -> list[CanonicalEvent]:
        if isinstance(items, str):
            items = split_blob_lines(items)
        if not isinstance(items, list):
            errors.append(f"expected blob lines, got {type(items).__name__}")
            return []
        events: list[CanonicalEvent] = []
        for item in iter_blob_items(items):
            if isinstance(item, DecodeError):
                errors.append(str(item))
                continue
            try:
                events.append(decode_blob_item(item, max_depth=self.max_depth))
            except DecodeError as e:
                errors.append(str(e))
        return events


def decode_session(
    payload: Any,
    *,
    source: SessionSource | str = SessionSource.AUTO,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> DecodeResult:
    return DecoderService(max_depth=max_depth).decode(payload, source=source)
