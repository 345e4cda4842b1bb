from __future__ import annotations

import pytest

FULL_SNAPSHOT = {"type": 2, "timestamp": 1000, "data": {"node": {"type": 0, "id": 1, "childNodes": []}, "initialOffset": {"top": 0, "left": 0}}}


@pytest.mark.parametrize(
    "payload,expected",
    [
        ('["w", {"type": 4}]', "blob_v2"),
        ([["w1", {"type": 4, "timestamp": 1, "data": {}}]], "blob_v2"),
        ([{"cv": "2024-10", "type": 3, "timestamp": 1, "data": "H4sI"}], "blob_v2"),
        ([{"window_id": "w1", "data": {}}], "blob_v2"),
        ([{"event_type": "Page View", "event_time": "2024-01-15 10:30:00"}], "amplitude"),
        ({"events": [{"event": "$pageview", "properties": {"time": 1}}]}, "mixpanel"),
        ([{"type": 4, "timestamp": 1, "data": {}}], "rrweb"),
        ([], "rrweb"),
    ],
)
def test_detect_source(payload, expected):
    from sessionlens.features.decoder.service import detect_source

    assert detect_source(payload).value == expected


def test_decode_rrweb_sorts_skips_and_adds_meta():
    from sessionlens.features.decoder.service import DecoderService
    from sessionlens.features.events.schema import EventType

    payload = [
        {"type": 3, "timestamp": 1500, "data": {"source": 1, "positions": []}},
        {"type": 99, "timestamp": 1200, "data": {}},
        "not an event",
        FULL_SNAPSHOT,
    ]
    result = DecoderService().decode(payload)

    assert result.source.value == "rrweb"
    assert result.skipped == 2
    assert len(result.errors) == 2
    assert [e.type for e in result.events] == [EventType.META, EventType.FULL_SNAPSHOT, EventType.INCREMENTAL_SNAPSHOT]
    assert result.events[0].data["href"] == "about:blank"


def test_decode_is_idempotent():
    from sessionlens.features.decoder.service import DecoderService

    svc = DecoderService()
    payload = [FULL_SNAPSHOT, {"type": 4, "timestamp": 999, "data": {"href": "https://a.test/", "width": 10, "height": 10}}]
    assert svc.decode(payload).events == svc.decode(payload).events


def test_decode_blob_text_payload():
    from sessionlens.features.decoder.compression import encode_blob
    from sessionlens.features.decoder.service import decode_session

    text = "\n".join(
        [
            '{"window_id": "w1", "data": [{"type": 4, "timestamp": 1000, "data": {"href": "https://a.test/", "width": 800, "height": 600}}]}',
            '{"cv": "2024-10", "type": 2, "timestamp": 1001, "data": "' + encode_blob(FULL_SNAPSHOT["data"]) + '"}',
            "garbage",
        ]
    )
    result = decode_session(text)

    assert result.source.value == "blob_v2"
    assert result.event_count == 2
    assert result.skipped == 1
    assert {e.window_id for e in result.events} == {"w1"}
    assert result.events[1].data["node"]["id"] == 1


def test_decode_nothing_usable_raises():
    from sessionlens.features.decoder.service import DecoderService
    from sessionlens.features.decoder.types import NoValidEvents

    svc = DecoderService()
    with pytest.raises(NoValidEvents):
        svc.decode([])
    with pytest.raises(NoValidEvents) as exc:
        svc.decode([{"type": "x"}], source="rrweb")
    assert exc.value.reason == "no_valid_events"
    with pytest.raises(NoValidEvents):
        svc.decode([{"event_type": "x"}], source="amplitude")


def test_decoder_rejects_bad_max_depth():
    from sessionlens.features.decoder.service import DecoderService

    with pytest.raises(ValueError):
        DecoderService(max_depth=0)
