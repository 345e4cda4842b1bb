from __future__ import annotations

import json
from collections.abc import Callable, Iterator
from functools import partial
from pathlib import Path
from typing import Any

from sessionlens.core.config import SessionLensConfig, load_config
from sessionlens.core.logging import ROOT_LOGGER, get_logger
from sessionlens.features.decoder.service import DecoderService
from sessionlens.features.decoder.types import SessionSource, UnreadablePayload
from sessionlens.features.persistence.duckdb_adapter import DuckDBAdapter
from sessionlens.features.persistence.service import PersistenceService
from sessionlens.features.pipeline.service import BatchResult, SessionOutcome, SessionPipeline
from sessionlens.features.semantic_parser.service import SemanticSessionParser

# NDJSON bodies (blob_v2 snapshot lines) are handed to the decoder as text
TEXT_SUFFIXES = (".ndjson", ".jsonl")
PAYLOAD_SUFFIXES = (".json", *TEXT_SUFFIXES)


def read_payload(path: str | Path) -> Any:
    p = Path(path)
    try:
        text = p.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise UnreadablePayload(f"cannot read {p.name}: {e}") from e
    if p.suffix in TEXT_SUFFIXES:
        return text
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        # snapshot exports are often NDJSON even when named .json
        return text


def iter_payloads(input_dir: str | Path) -> Iterator[tuple[str, Callable[[], Any]]]:
    """
    (session_id, loader) for every payload file, sorted by name. Each file is read
    only when its loader is called, inside the batch loop's per-session handling.
    """
    for p in sorted(Path(input_dir).iterdir()):
        if p.is_file() and p.suffix in PAYLOAD_SUFFIXES:
            yield p.stem, partial(read_payload, p)


def build_pipeline(cfg: SessionLensConfig, *, persist: bool = True) -> SessionPipeline:
    get_logger(ROOT_LOGGER, cfg.logging.level)

    persistence = None
    if persist:
        adapter = DuckDBAdapter(path=cfg.storage.duckdb_path, clean_slate=cfg.storage.clean_slate)
        persistence = PersistenceService(
            adapter=adapter,
            every_n_sessions=cfg.storage.flush.every_n_sessions,
            or_every_seconds=cfg.storage.flush.or_every_seconds,
        )
        persistence.open()

    return SessionPipeline(
        decoder=DecoderService(),
        parser=SemanticSessionParser(thresholds=cfg.parser, signal_thresholds=cfg.signals),
        persistence=persistence,
        project_id=cfg.run.project_id,
    )


def parse_file(path: str | Path, *, source: str = "auto", config_path: str | None = None) -> SessionOutcome:
    p = Path(path)
    if config_path:
        pipeline = build_pipeline(load_config(config_path), persist=False)
    else:
        pipeline = SessionPipeline()
    return pipeline.process(read_payload(p), session_id=p.stem, source=SessionSource(source))


def ingest(config_path: str, input_dir: str, *, source: str = "auto") -> BatchResult:
    cfg = load_config(config_path)
    pipeline = build_pipeline(cfg)
    try:
        return pipeline.process_batch(iter_payloads(input_dir), source=SessionSource(source))
    finally:
        if pipeline.persistence is not None:
            pipeline.persistence.close()
