from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from sessionlens.core.ids import fingerprint
from sessionlens.features.events.schema import CanonicalEvent, EventType

ABOUT_BLANK = "about:blank"


def coerce_event(item: Mapping[str, Any], *, window_id: str | None = None) -> CanonicalEvent:
    """
    Validate one rrweb-shaped mapping and turn it into a CanonicalEvent.

    Contracts enforced:
    - type must be one of EventType
    - timestamp must be numeric (bools rejected); fractional ms are truncated
    """
    raw_type = item.get("type")
    if isinstance(raw_type, bool) or not isinstance(raw_type, int):
        raise ValueError(f"event type must be an int, got {raw_type!r}")
    try:
        event_type = EventType(raw_type)
    except ValueError as e:
        raise ValueError(f"Unsupported event type={raw_type!r}") from e

    ts = item.get("timestamp")
    if isinstance(ts, bool) or not isinstance(ts, int | float):
        raise ValueError(f"event timestamp must be numeric, got {ts!r}")

    wid = window_id if window_id is not None else item.get("windowId")
    return CanonicalEvent(
        type=event_type,
        timestamp=int(ts),
        data=item.get("data"),
        window_id=str(wid) if wid is not None else None,
    )


def sort_events(events: Iterable[CanonicalEvent]) -> list[CanonicalEvent]:
    # stable: events sharing a timestamp keep their emission order
    return sorted(events, key=lambda e: e.timestamp)


def has_full_snapshot(events: Iterable[CanonicalEvent]) -> bool:
    return any(e.type == EventType.FULL_SNAPSHOT for e in events)


def _snapshot_href(data: Any) -> str:
    if not isinstance(data, dict):
        return ABOUT_BLANK
    href = data.get("href")
    if isinstance(href, str) and href:
        return href
    node = data.get("node")
    if isinstance(node, dict):
        href = node.get("href") or (node.get("attributes") or {}).get("href")
        if isinstance(href, str) and href:
            return href
    return ABOUT_BLANK


def _snapshot_dimension(data: Any, key: str) -> int:
    if isinstance(data, dict):
        v = data.get(key)
        if isinstance(v, int | float) and not isinstance(v, bool):
            return int(v)
    return 0


def ensure_meta(events: Sequence[CanonicalEvent]) -> list[CanonicalEvent]:
    """
    If the stream has a FullSnapshot but no Meta, insert a synthetic Meta right
    before the first FullSnapshot. The input sequence is not modified.
    """
    out = list(events)
    if any(e.type == EventType.META for e in out):
        return out

    for idx, evt in enumerate(out):
        if evt.type != EventType.FULL_SNAPSHOT:
            continue
        meta = CanonicalEvent(
            type=EventType.META,
            timestamp=evt.timestamp,
            data={
                "href": _snapshot_href(evt.data),
                "width": _snapshot_dimension(evt.data, "width"),
                "height": _snapshot_dimension(evt.data, "height"),
            },
            window_id=evt.window_id,
        )
        out.insert(idx, meta)
        break
    return out


def fingerprint_events(events: Iterable[CanonicalEvent]) -> str:
    return fingerprint(e.as_row() for e in events)
