from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from sessionlens.core.ids import element_hash
from sessionlens.features.decoder.types import AmplitudeEvent, MixpanelEvent
from sessionlens.features.events.schema import (
    CanonicalEvent,
    EventType,
    IncrementalSource,
    MouseInteraction,
    NodeType,
)

DEFAULT_WIDTH = 1920
DEFAULT_HEIGHT = 1080

# Amplitude auto-tracked properties carry this prefix
AMP = "[Amplitude] "


def _first(props: Mapping[str, Any], *keys: str, default: Any = "") -> Any:
    for key in keys:
        v = props.get(key)
        if v not in (None, ""):
            return v
    return default


def _number(value: Any, default: int) -> int:
    if isinstance(value, int | float) and not isinstance(value, bool) and value > 0:
        return int(value)
    return default


def synthetic_full_snapshot(vendor: str, page_url: str, width: int, height: int) -> dict[str, Any]:
    """
    Minimal static DOM tree, just enough for a replay player to initialise.
    """
    text = lambda content, node_id: {  # noqa: E731
        "type": NodeType.TEXT,
        "textContent": content,
        "id": node_id,
    }
    return {
        "node": {
            "type": NodeType.DOCUMENT,
            "id": 1,
            "childNodes": [
                {"type": NodeType.DOCUMENT_TYPE, "name": "html", "publicId": "", "systemId": "", "id": 2},
                {
                    "type": NodeType.ELEMENT,
                    "tagName": "html",
                    "attributes": {},
                    "id": 3,
                    "childNodes": [
                        {
                            "type": NodeType.ELEMENT,
                            "tagName": "head",
                            "attributes": {},
                            "id": 4,
                            "childNodes": [
                                {
                                    "type": NodeType.ELEMENT,
                                    "tagName": "title",
                                    "attributes": {},
                                    "id": 5,
                                    "childNodes": [text(f"{vendor} Session", 6)],
                                }
                            ],
                        },
                        {
                            "type": NodeType.ELEMENT,
                            "tagName": "body",
                            "attributes": {
                                "style": (
                                    f"margin:0;width:{width}px;height:{height}px;"
                                    "background:#f8fafc;font-family:system-ui,sans-serif;"
                                )
                            },
                            "id": 7,
                            "childNodes": [
                                {
                                    "type": NodeType.ELEMENT,
                                    "tagName": "div",
                                    "attributes": {"id": "app", "style": "padding:40px;color:#334155;"},
                                    "id": 8,
                                    "childNodes": [
                                        text(f"Session reconstructed from {vendor} events - {page_url}", 9)
                                    ],
                                }
                            ],
                        },
                    ],
                },
            ],
        },
        "initialOffset": {"top": 0, "left": 0},
    }


def _preamble(vendor: str, ts: int, page_url: str, width: int, height: int) -> list[CanonicalEvent]:
    return [
        CanonicalEvent(
            type=EventType.META,
            timestamp=ts,
            data={"href": page_url, "width": width, "height": height},
        ),
        CanonicalEvent(
            type=EventType.FULL_SNAPSHOT,
            timestamp=ts,
            data=synthetic_full_snapshot(vendor, page_url, width, height),
        ),
    ]


def _custom(ts: int, tag: str, payload: dict[str, Any]) -> CanonicalEvent:
    return CanonicalEvent(type=EventType.CUSTOM, timestamp=ts, data={"tag": tag, "payload": payload})


def _incremental(ts: int, data: dict[str, Any]) -> CanonicalEvent:
    return CanonicalEvent(type=EventType.INCREMENTAL_SNAPSHOT, timestamp=ts, data=data)


def _click(ts: int, node_id: int, x: Any, y: Any, element_info: dict[str, Any]) -> CanonicalEvent:
    return _incremental(
        ts,
        {
            "source": IncrementalSource.MOUSE_INTERACTION,
            "type": MouseInteraction.CLICK,
            "id": node_id,
            "x": x or 0,
            "y": y or 0,
            "_elementInfo": element_info,
        },
    )


def _input(ts: int, node_id: int, checked: Any) -> CanonicalEvent:
    data: dict[str, Any] = {"source": IncrementalSource.INPUT, "id": node_id, "text": "[REDACTED]"}
    if isinstance(checked, bool):
        data["isChecked"] = checked
    return _incremental(ts, data)


def _scroll(ts: int, x: Any, y: Any) -> CanonicalEvent:
    return _incremental(ts, {"source": IncrementalSource.SCROLL, "id": 1, "x": x or 0, "y": y or 0})


def _error(ts: int, message: Any) -> CanonicalEvent:
    return _custom(ts, "console_error", {"level": "error", "message": str(message), "type": "error"})


# ----------------------------
# Amplitude
# ----------------------------


def amplitude_page_url(props: Mapping[str, Any]) -> str:
    return str(_first(props, f"{AMP}Page URL", "$current_url", "page_url", "url"))


def amplitude_node_id(props: Mapping[str, Any]) -> int:
    tag = _first(props, f"{AMP}Element Tag", "element_tag")
    el_id = _first(props, f"{AMP}Element ID", "element_id")
    cls = _first(props, f"{AMP}Element Class", "element_class")
    return element_hash(f"{tag}-{el_id}-{cls}")


def _is(name: str, exact: Sequence[str], contains: str | None = None) -> bool:
    if name in exact:
        return True
    return contains is not None and contains in name.lower()


def map_amplitude_event(event: AmplitudeEvent) -> CanonicalEvent:
    """Map one analytics event onto the canonical event table (first match wins)."""
    ts = event.timestamp_ms
    name = event.event_type
    props = event.event_properties
    page_url = amplitude_page_url(props)

    if _is(name, (f"{AMP}Page Viewed", "Page View", "$pageview", "page_view")):
        return _custom(
            ts,
            "$pageview",
            {
                "$current_url": page_url,
                "$referrer": _first(props, f"{AMP}Page Referrer", "referrer"),
                "page_title": _first(props, f"{AMP}Page Title", "page_title"),
                "page_path": _first(props, f"{AMP}Page Path", "page_path"),
            },
        )

    if _is(name, (f"{AMP}Element Clicked", "click", "$click"), "click"):
        return _click(
            ts,
            amplitude_node_id(props),
            _first(props, f"{AMP}Element Position X", "x", default=0),
            _first(props, f"{AMP}Element Position Y", "y", default=0),
            {
                "tagName": _first(props, f"{AMP}Element Tag", "tag_name", default="div"),
                "textContent": _first(props, f"{AMP}Element Text", "element_text"),
                "className": _first(props, f"{AMP}Element Class", "element_class"),
                "id": _first(props, f"{AMP}Element ID", "element_id"),
                "href": _first(props, f"{AMP}Element Href"),
            },
        )

    if _is(name, (f"{AMP}Form Submitted", "form_submit", "$form_submit", "submit")):
        return _custom(
            ts,
            "form_submit",
            {
                "type": "submit",
                "formId": _first(props, f"{AMP}Form ID", "form_id"),
                "formAction": _first(props, f"{AMP}Form Action", "form_action"),
                "pageUrl": page_url,
            },
        )

    if _is(name, (f"{AMP}Element Changed", "input", "$input"), "input"):
        return _input(ts, amplitude_node_id(props), props.get("checked"))

    if _is(name, ("scroll", "$scroll", f"{AMP}Scroll")):
        return _scroll(ts, props.get("scroll_x"), _first(props, "scroll_y", "scroll_depth", default=0))

    if _is(name, (f"{AMP}Start Session", "session_start")):
        return _custom(
            ts,
            "session_start",
            {"sessionId": event.session_id, "userId": event.user_id or event.device_id},
        )

    if _is(name, (f"{AMP}End Session", "session_end")):
        return _custom(ts, "session_end", {"sessionId": event.session_id})

    if _is(name, ("$exception", "error"), "error") or "exception" in name.lower():
        return _error(
            ts, _first(props, "error_message", "message", "$exception_message", default="Unknown error")
        )

    if _is(name, ("search", "Search"), "search"):
        return _custom(
            ts,
            "search",
            {
                "query": _first(props, "search_query", "query", "term"),
                "results_count": _first(props, "results_count", "num_results", default=None),
                "pageUrl": page_url,
            },
        )

    # Generic: strip vendor-internal fields, pass the rest through
    clean = {k: v for k, v in props.items() if not k.startswith("$") and k != "amplitude_event_type"}
    clean["_page_url"] = page_url
    return _custom(ts, name, clean)


def amplitude_to_events(events: Sequence[AmplitudeEvent]) -> list[CanonicalEvent]:
    ordered = sorted(events, key=lambda e: e.timestamp_ms)
    if not ordered:
        return []
    first = ordered[0]
    props = first.event_properties
    out = _preamble(
        "Amplitude",
        first.timestamp_ms,
        amplitude_page_url(props),
        _number(props.get("$screen_width"), DEFAULT_WIDTH),
        _number(props.get("$screen_height"), DEFAULT_HEIGHT),
    )
    out.extend(map_amplitude_event(e) for e in ordered)
    return out


# ----------------------------
# Mixpanel
# ----------------------------


def mixpanel_node_id(props: Mapping[str, Any]) -> int:
    el_id = _first(props, "$element_id", "element_id")
    cls = _first(props, "$element_class", "element_class")
    tag = _first(props, "$element_tag", "tag_name")
    return element_hash(f"{tag}-{el_id}-{cls}")


# Mixpanel bookkeeping fields dropped from generic passthrough payloads
MIXPANEL_INTERNAL_KEYS: frozenset[str] = frozenset({"time", "distinct_id", "$insert_id"})


def map_mixpanel_event(event: MixpanelEvent) -> CanonicalEvent:
    ts = event.timestamp_ms
    name = event.event
    props = event.properties

    if _is(name, ("$mp_web_page_view", "Page View", "$pageview")):
        return _custom(
            ts,
            "$pageview",
            {
                "$current_url": _first(props, "$current_url", "url", "$url"),
                "$referrer": props.get("$referrer"),
                "$initial_referrer": props.get("$initial_referrer"),
            },
        )

    if _is(name, ("$click", "Click"), "click"):
        return _click(
            ts,
            mixpanel_node_id(props),
            _first(props, "$click_x", "x", default=0),
            _first(props, "$click_y", "y", default=0),
            {
                "tagName": _first(props, "$element_tag", "tag_name", default="div"),
                "textContent": _first(props, "$element_text", "element_text"),
                "className": _first(props, "$element_class", "element_class"),
                "id": _first(props, "$element_id", "element_id"),
            },
        )

    if _is(name, ("$form_submit", "Form Submit", "submit")):
        return _custom(
            ts,
            "form_submit",
            {
                "type": "submit",
                "formId": _first(props, "form_id", "$form_id"),
                "formAction": _first(props, "form_action", "$form_action"),
            },
        )

    if _is(name, ("$input", "Input"), "input"):
        return _input(ts, mixpanel_node_id(props), props.get("checked"))

    if _is(name, ("$scroll", "Scroll")):
        return _scroll(
            ts,
            _first(props, "scroll_x", "$scroll_x", default=0),
            _first(props, "scroll_y", "$scroll_y", "scroll_depth", default=0),
        )

    if _is(name, ("$exception", "Error"), "error"):
        return _error(
            ts, _first(props, "error_message", "$exception_message", "message", default="Unknown error")
        )

    if name == "$session_start":
        return _custom(
            ts,
            "session_start",
            {"sessionId": props.get("$session_id"), "userId": props.get("distinct_id")},
        )

    if name == "$session_end":
        return _custom(ts, "session_end", {"sessionId": props.get("$session_id")})

    clean = {k: v for k, v in props.items() if k not in MIXPANEL_INTERNAL_KEYS}
    return _custom(ts, name, clean)


def mixpanel_to_events(events: Sequence[MixpanelEvent]) -> list[CanonicalEvent]:
    ordered = sorted(events, key=lambda e: e.timestamp_ms)
    if not ordered:
        return []
    props = ordered[0].properties
    out = _preamble(
        "Mixpanel",
        ordered[0].timestamp_ms,
        str(props.get("$current_url") or ""),
        _number(props.get("$screen_width"), DEFAULT_WIDTH),
        _number(props.get("$screen_height"), DEFAULT_HEIGHT),
    )
    out.extend(map_mixpanel_event(e) for e in ordered)
    return out

