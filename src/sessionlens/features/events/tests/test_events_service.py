from __future__ import annotations

import pytest


def _evt(type_: int, ts: int, data=None, window_id=None):
    from sessionlens.features.events.schema import CanonicalEvent, EventType

    return CanonicalEvent(type=EventType(type_), timestamp=ts, data=data if data is not None else {}, window_id=window_id)


def test_coerce_event_truncates_fractional_timestamps():
    from sessionlens.features.events.schema import EventType
    from sessionlens.features.events.service import coerce_event

    e = coerce_event({"type": 3, "timestamp": 1000.9, "data": {"source": 1}, "windowId": "w1"})
    assert e.type == EventType.INCREMENTAL_SNAPSHOT
    assert e.timestamp == 1000
    assert e.window_id == "w1"
    assert e.source == 1


def test_coerce_event_prefers_explicit_window_id():
    from sessionlens.features.events.service import coerce_event

    e = coerce_event({"type": 3, "timestamp": 1, "data": {}, "windowId": "inner"}, window_id="outer")
    assert e.window_id == "outer"


@pytest.mark.parametrize(
    "item",
    [
        {"type": 99, "timestamp": 1},
        {"type": True, "timestamp": 1},
        {"type": "3", "timestamp": 1},
        {"type": 3, "timestamp": "1"},
        {"type": 3, "timestamp": False},
        {"timestamp": 1},
    ],
)
def test_coerce_event_rejects_bad_items(item):
    from sessionlens.features.events.service import coerce_event

    with pytest.raises(ValueError):
        coerce_event(item)


def test_sort_events_is_stable_for_equal_timestamps():
    from sessionlens.features.events.service import sort_events

    a = _evt(3, 10, {"source": 1, "n": "a"})
    b = _evt(3, 5, {"source": 1, "n": "b"})
    c = _evt(3, 10, {"source": 1, "n": "c"})

    out = sort_events([a, b, c])
    assert [e.data["n"] for e in out] == ["b", "a", "c"]


def test_ensure_meta_inserts_before_first_full_snapshot():
    from sessionlens.features.events.schema import EventType
    from sessionlens.features.events.service import ABOUT_BLANK, ensure_meta

    events = [
        _evt(3, 90, {"source": 0}),
        _evt(2, 100, {"node": {"type": 0, "id": 1, "childNodes": []}, "initialOffset": {"top": 0, "left": 0}}),
        _evt(3, 110, {"source": 1}),
    ]
    out = ensure_meta(events)

    assert len(out) == 4
    assert len(events) == 3
    meta = out[1]
    assert meta.type == EventType.META
    assert meta.timestamp == 100
    assert meta.data == {"href": ABOUT_BLANK, "width": 0, "height": 0}
    assert out[2].type == EventType.FULL_SNAPSHOT


def test_ensure_meta_keeps_existing_meta():
    from sessionlens.features.events.service import ensure_meta

    events = [_evt(4, 1, {"href": "https://shop.test/", "width": 800, "height": 600}), _evt(2, 2, {"node": {}})]
    assert ensure_meta(events) == events


def test_ensure_meta_without_full_snapshot_is_noop():
    from sessionlens.features.events.service import ensure_meta

    events = [_evt(3, 1, {"source": 1})]
    assert ensure_meta(events) == events


def test_fingerprint_is_deterministic_and_order_sensitive():
    from sessionlens.features.events.service import fingerprint_events

    a = _evt(4, 1, {"href": "https://a.test/"})
    b = _evt(3, 2, {"source": 2, "type": 2, "id": 5})

    assert fingerprint_events([a, b]) == fingerprint_events([a, b])
    assert fingerprint_events([a, b]) != fingerprint_events([b, a])
    assert len(fingerprint_events([a])) == 16
