from __future__ import annotations

import json

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
                    {"type": 2, "id": 3, "tagName": "title", "attributes": {}, "childNodes": [{"type": 3, "id": 4, "textContent": "Docs"}]},
                    {"type": 2, "id": 5, "tagName": "button", "attributes": {}, "childNodes": [{"type": 3, "id": 6, "textContent": "Next"}]},
                ],
            }
        ],
    },
    "initialOffset": {"top": 0, "left": 0},
}

RRWEB = [
    {"type": 4, "timestamp": 1000, "data": {"href": "https://docs.test/", "width": 1024, "height": 768}},
    {"type": 2, "timestamp": 1001, "data": SNAPSHOT},
    {"type": 3, "timestamp": 2000, "data": {"source": 2, "type": 2, "id": 5, "x": 1, "y": 1}},
]


def _write_config(tmp_path) -> str:
    path = tmp_path / "sessionlens.yaml"
    path.write_text(
        "run:\n"
        "  project_id: cli\n"
        "storage:\n"
        f"  duckdb_path: {tmp_path / 'out' / 'sessions.duckdb'}\n"
        "  clean_slate: true\n"
        "  flush:\n"
        "    every_n_sessions: 2\n"
        "    or_every_seconds: 60\n"
        "logging:\n"
        "  level: WARNING\n"
    )
    return str(path)


def test_cli_parse_prints_semantic_session(tmp_path, capsys):
    from sessionlens.app.cli import main

    payload = tmp_path / "s1.json"
    payload.write_text(json.dumps(RRWEB))

    assert main(["parse", str(payload)]) == 0
    out = json.loads(capsys.readouterr().out)

    assert out["sessionId"] == "s1"
    assert out["status"] == "analyzed"
    assert out["session"]["pageTitle"] == "Docs"
    assert out["session"]["logs"][0]["action"] == "Clicked button"


def test_cli_parse_text_digest(tmp_path, capsys):
    from sessionlens.app.cli import main

    payload = tmp_path / "s1.json"
    payload.write_text(json.dumps(RRWEB))

    assert main(["parse", str(payload), "--text"]) == 0
    out = capsys.readouterr().out
    assert out.startswith('Page: https://docs.test/ ("Docs")')
    assert '[00:01] Clicked button: "Next" button [NO RESPONSE]' in out


def test_cli_parse_reports_unusable_session(tmp_path, capsys):
    from sessionlens.app.cli import main

    payload = tmp_path / "bad.json"
    payload.write_text(json.dumps([RRWEB[0]]))

    assert main(["parse", str(payload), "--source", "rrweb"]) == 2
    err = capsys.readouterr().err
    assert "Session could not be analyzed: missing_full_snapshot" in err


def test_cli_ingest_directory(tmp_path, capsys):
    import duckdb

    from sessionlens.app.cli import main
    from sessionlens.features.decoder.compression import encode_blob

    inbox = tmp_path / "inbox"
    inbox.mkdir()
    (inbox / "a.json").write_text(json.dumps(RRWEB))
    blob_lines = [
        json.dumps(["w1", RRWEB[0]]),
        json.dumps({"cv": "2024-10", "type": 2, "timestamp": 1001, "data": encode_blob(SNAPSHOT)}),
    ]
    (inbox / "b.ndjson").write_text("\n".join(blob_lines) + "\n")
    (inbox / "c.json").write_text("[]")
    (inbox / "notes.txt").write_text("ignored")

    code = main(["ingest", str(inbox), "--config", _write_config(tmp_path)])

    assert code == 1
    assert capsys.readouterr().out.strip() == "analyzed=1 empty=1 failed=1"

    con = duckdb.connect(str(tmp_path / "out" / "sessions.duckdb"))
    try:
        rows = con.execute("SELECT session_id, source FROM semantic_sessions ORDER BY session_id").fetchall()
    finally:
        con.close()
    assert rows == [("a", "rrweb"), ("b", "blob_v2")]


def test_cli_ingest_missing_directory(tmp_path, capsys):
    from sessionlens.app.cli import main

    assert main(["ingest", str(tmp_path / "nope"), "--config", _write_config(tmp_path)]) == 2
    assert "not a directory" in capsys.readouterr().err


def test_runner_ingest_returns_batch_result(tmp_path):
    from sessionlens.app.runner import ingest

    inbox = tmp_path / "inbox"
    inbox.mkdir()
    (inbox / "only.json").write_text(json.dumps(RRWEB))

    result = ingest(_write_config(tmp_path), str(inbox))

    assert result.total == 1
    assert result.analyzed[0].session.page_url == "https://docs.test/"


def test_ingest_skips_unreadable_file_and_continues(tmp_path, capsys):
    from sessionlens.app.cli import main

    inbox = tmp_path / "inbox"
    inbox.mkdir()
    (inbox / "a.json").write_bytes(b"\xff\xfe\x00garbage")
    (inbox / "b.json").write_text(json.dumps(RRWEB[:2]))
    (inbox / "c.json").write_text(json.dumps(RRWEB))

    code = main(["ingest", str(inbox), "--config", _write_config(tmp_path)])

    assert code == 1
    assert capsys.readouterr().out.strip() == "analyzed=1 empty=1 failed=1"


def test_runner_records_unreadable_payload_reason(tmp_path):
    from sessionlens.app.runner import ingest

    inbox = tmp_path / "inbox"
    inbox.mkdir()
    (inbox / "broken.json").write_bytes(b"\x80\x81")
    (inbox / "fine.json").write_text(json.dumps(RRWEB))

    result = ingest(_write_config(tmp_path), str(inbox))

    assert result.errors == {"broken": "unreadable_payload"}
    assert [o.session_id for o in result.analyzed] == ["fine"]


def test_cli_parse_unreadable_file_exits_2(tmp_path, capsys):
    from sessionlens.app.cli import main

    payload = tmp_path / "bin.json"
    payload.write_bytes(b"\xff\xfe")

    assert main(["parse", str(payload)]) == 2
    assert "unreadable_payload" in capsys.readouterr().err
