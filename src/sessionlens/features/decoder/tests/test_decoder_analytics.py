from __future__ import annotations


def _amp(event_type: str, event_time: str, **props):
    from sessionlens.features.decoder.types import AmplitudeEvent

    return AmplitudeEvent.from_raw(
        {"event_type": event_type, "event_time": event_time, "event_properties": props, "user_id": "u1"}
    )


def _title(snapshot: dict) -> str:
    from sessionlens.features.semantic_parser.node_map import find_title

    return find_title(snapshot["node"])


def test_amplitude_time_is_utc_milliseconds():
    e = _amp("Page View", "2024-01-15 10:30:00.250000")
    assert e.timestamp_ms == 1705314600250


def test_amplitude_session_gets_synthetic_preamble():
    from sessionlens.features.decoder.analytics import amplitude_to_events
    from sessionlens.features.events.schema import EventType

    events = amplitude_to_events(
        [
            _amp("[Amplitude] Page Viewed", "2024-01-15 10:30:00", **{"[Amplitude] Page URL": "https://shop.test/cart", "$screen_width": 390}),
            _amp("session_start", "2024-01-15 10:29:59"),
        ]
    )

    assert [e.type for e in events[:2]] == [EventType.META, EventType.FULL_SNAPSHOT]
    meta = events[0]
    assert meta.timestamp == events[2].timestamp
    # preamble comes from the earliest event, which has no page url or screen size
    assert meta.data == {"href": "", "width": 1920, "height": 1080}
    assert _title(events[1].data) == "Amplitude Session"
    assert events[2].data["tag"] == "session_start"
    assert events[3].data["tag"] == "$pageview"
    assert events[3].data["payload"]["$current_url"] == "https://shop.test/cart"


def test_amplitude_click_gets_stable_pseudo_node_id():
    from sessionlens.core.ids import element_hash
    from sessionlens.features.decoder.analytics import map_amplitude_event
    from sessionlens.features.events.schema import IncrementalSource, MouseInteraction

    props = {
        "[Amplitude] Element Tag": "button",
        "[Amplitude] Element ID": "pay",
        "[Amplitude] Element Class": "btn primary",
        "[Amplitude] Element Text": "Pay now",
    }
    a = map_amplitude_event(_amp("[Amplitude] Element Clicked", "2024-01-15 10:30:00", **props))
    b = map_amplitude_event(_amp("[Amplitude] Element Clicked", "2024-01-15 10:31:00", **props))

    assert a.data["source"] == IncrementalSource.MOUSE_INTERACTION
    assert a.data["type"] == MouseInteraction.CLICK
    assert a.data["id"] == b.data["id"] == element_hash("button-pay-btn primary")
    assert a.data["_elementInfo"]["textContent"] == "Pay now"


def test_amplitude_form_submit_and_errors():
    from sessionlens.features.decoder.analytics import map_amplitude_event

    submit = map_amplitude_event(
        _amp("[Amplitude] Form Submitted", "2024-01-15 10:30:00", **{"[Amplitude] Form ID": "checkout"})
    )
    assert submit.data["tag"] == "form_submit"
    assert submit.data["payload"]["type"] == "submit"
    assert submit.data["payload"]["formId"] == "checkout"

    err = map_amplitude_event(_amp("JS Exception", "2024-01-15 10:30:00", message="boom"))
    assert err.data["tag"] == "console_error"
    assert err.data["payload"] == {"level": "error", "message": "boom", "type": "error"}


def test_amplitude_unknown_events_pass_through_without_vendor_fields():
    from sessionlens.features.decoder.analytics import map_amplitude_event

    e = map_amplitude_event(_amp("Plan Selected", "2024-01-15 10:30:00", plan="pro", **{"$lib": "web"}))
    assert e.data["tag"] == "Plan Selected"
    assert e.data["payload"] == {"plan": "pro", "_page_url": ""}


def test_mixpanel_session_mapping():
    from sessionlens.features.decoder.analytics import mixpanel_to_events
    from sessionlens.features.decoder.types import MixpanelEvent
    from sessionlens.features.events.schema import EventType, IncrementalSource

    raw = [
        {"event": "$mp_web_page_view", "properties": {"time": 1700000000, "$current_url": "https://app.test/"}},
        {"event": "$scroll", "properties": {"time": 1700000002, "scroll_y": 800}},
        {"event": "Upgrade Clicked", "properties": {"time": 1700000003, "distinct_id": "d1", "tier": "gold"}},
    ]
    events = mixpanel_to_events([MixpanelEvent.from_raw(r) for r in raw])

    assert events[0].type == EventType.META
    assert events[0].data["href"] == "https://app.test/"
    assert _title(events[1].data) == "Mixpanel Session"
    assert events[2].timestamp == 1700000000000
    assert events[2].data["payload"]["$current_url"] == "https://app.test/"
    assert events[3].data["source"] == IncrementalSource.SCROLL
    assert events[3].data["y"] == 800
    # name contains "click" so it is mapped as a click
    assert events[4].data["type"] == 2
