from __future__ import annotations

SNAPSHOT = {
    "node": {
        "type": 0,
        "id": 1,
        "childNodes": [
            {
                "type": 2,
                "id": 2,
                "tagName": "html",
                "attributes": {},
                "childNodes": [
                    {"type": 2, "id": 3, "tagName": "button", "attributes": {}, "childNodes": [{"type": 3, "id": 4, "textContent": "Go"}]}
                ],
            }
        ],
    },
    "initialOffset": {"top": 0, "left": 0},
}


def _rrweb(*, with_click: bool = True, with_snapshot: bool = True) -> list[dict]:
    events = [{"type": 4, "timestamp": 1000, "data": {"href": "https://a.test/", "width": 1024, "height": 768}}]
    if with_snapshot:
        events.append({"type": 2, "timestamp": 1001, "data": SNAPSHOT})
    if with_click:
        events.append({"type": 3, "timestamp": 2000, "data": {"source": 2, "type": 2, "id": 3, "x": 1, "y": 1}})
    return events


def _amplitude() -> list[dict]:
    page = {"[Amplitude] Page URL": "https://shop.test/checkout"}
    return [
        {"event_type": "[Amplitude] Page Viewed", "event_time": "2024-01-15 10:30:00", "event_properties": page},
        {
            "event_type": "[Amplitude] Element Clicked",
            "event_time": "2024-01-15 10:30:05",
            "event_properties": {**page, "[Amplitude] Element Tag": "button", "[Amplitude] Element Text": "Pay"},
        },
        {
            "event_type": "[Amplitude] Form Submitted",
            "event_time": "2024-01-15 10:30:06",
            "event_properties": {**page, "[Amplitude] Form ID": "checkout"},
        },
    ]


def test_batch_continues_past_failures():
    from sessionlens.features.pipeline.service import FAILURE_MESSAGE, SessionPipeline

    items = [
        ("ok", _rrweb()),
        ("quiet", _rrweb(with_click=False)),
        ("blank", []),
        ("no_snapshot", _rrweb(with_snapshot=False)),
        ("ok2", _rrweb()),
    ]
    result = SessionPipeline().process_batch(items)

    assert [o.session_id for o in result.analyzed] == ["ok", "ok2"]
    assert [o.session_id for o in result.empty] == ["quiet"]
    assert result.errors == {"blank": "no_valid_events", "no_snapshot": "missing_full_snapshot"}
    assert all(f.message == FAILURE_MESSAGE for f in result.failed)
    assert result.total == 5


def test_empty_session_is_a_valid_result():
    from sessionlens.features.pipeline.service import OutcomeStatus, SessionPipeline

    outcome = SessionPipeline().process(_rrweb(with_click=False), session_id="quiet")

    assert outcome.status == OutcomeStatus.EMPTY
    assert outcome.session.logs == ()
    assert outcome.as_dict()["session"]["logs"] == []


def test_outcome_is_deterministic():
    from sessionlens.features.pipeline.service import SessionPipeline

    pipeline = SessionPipeline()
    a = pipeline.process(_rrweb(), session_id="s")
    b = pipeline.process(_rrweb(), session_id="s")

    assert a.fingerprint == b.fingerprint
    assert a.session == b.session
    assert a.source.value == "rrweb"


def test_amplitude_form_submission_end_to_end():
    from sessionlens.features.pipeline.service import OutcomeStatus, SessionPipeline

    outcome = SessionPipeline().process(_amplitude(), session_id="amp-1")
    session = outcome.session

    assert outcome.status == OutcomeStatus.ANALYZED
    assert outcome.source.value == "amplitude"
    assert session.page_url == "https://shop.test/checkout"
    assert session.page_title == "Amplitude Session"
    assert (session.viewport_width, session.viewport_height) == (1920, 1080)
    assert session.summary.total_clicks == 1
    assert session.summary.form_submissions == 1
    assert session.behavioral_signals.completed_goal
    assert session.total_duration == "00:06"

    actions = [e.action for e in session.logs]
    assert actions == ["Viewed page", "Clicked button", "Submitted"]
    assert session.logs[1].details == '"Pay" button'


def test_pipeline_persists_analyzed_sessions(tmp_path):
    from sessionlens.features.persistence.duckdb_adapter import DuckDBAdapter
    from sessionlens.features.persistence.service import PersistenceService
    from sessionlens.features.pipeline.service import SessionPipeline

    adapter = DuckDBAdapter(path=str(tmp_path / "sessions.duckdb"), clean_slate=True)
    persistence = PersistenceService(adapter=adapter, every_n_sessions=2, or_every_seconds=10_000.0)
    persistence.open()

    pipeline = SessionPipeline(persistence=persistence, project_id="demo")
    result = pipeline.process_batch([("a", _rrweb()), ("b", []), ("c", _rrweb(with_click=False))])

    assert result.total == 3
    assert adapter.count_sessions("demo") == 2
    stored = adapter.fetch_session("demo", "a")
    assert stored["source"] == "rrweb"
    assert stored["summary"]["totalClicks"] == 1

    persistence.close()


def test_batch_calls_loaders_inside_each_session():
    from sessionlens.features.decoder.types import UnreadablePayload
    from sessionlens.features.pipeline.service import SessionPipeline

    def broken():
        raise UnreadablePayload("cannot read broken.json")

    items = [("broken", broken), ("ok", lambda: _rrweb())]
    result = SessionPipeline().process_batch(items)

    assert result.errors == {"broken": "unreadable_payload"}
    assert [o.session_id for o in result.analyzed] == ["ok"]
