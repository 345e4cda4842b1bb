from __future__ import annotations

import json
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime

from sessionlens.core.logging import get_logger
from sessionlens.features.semantic_parser.types import SemanticSession

from .duckdb_adapter import DuckDBAdapter


@dataclass(frozen=True)
class StoredSession:
    """
    What gets persisted for one analyzed session: the semantic session plus the
    keys and payload fingerprint. Never the raw events.
    """

    project_id: str
    session_id: str
    source: str
    session: SemanticSession
    fingerprint: str
    stored_at: datetime | None = None


class PersistenceService:
    """
    Buffered session sink + flush policy.
    - Hot: buffer in memory
    - Cold: DuckDB
    Flushes when the buffer reaches `every_n_sessions`, when `or_every_seconds`
    have passed since the last flush (checked on each save), and on close.
    """

    def __init__(
        self,
        *,
        adapter: DuckDBAdapter,
        every_n_sessions: int,
        or_every_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.adapter = adapter
        self.every_n_sessions = int(every_n_sessions)
        self.or_every_seconds = float(or_every_seconds)
        self._clock = clock

        self._buf: list[StoredSession] = []
        self._logger = get_logger(__name__)

        self._is_open = False
        self._last_flush = clock()

    @property
    def pending(self) -> int:
        return len(self._buf)

    def open(self) -> None:
        if self._is_open:
            return
        self.adapter.open()
        self._is_open = True
        self._last_flush = self._clock()

    def save(self, s: StoredSession) -> None:
        if not self._is_open:
            raise RuntimeError("PersistenceService not open. Call open() first.")

        self._buf.append(s)

        if self.every_n_sessions > 0 and len(self._buf) >= self.every_n_sessions:
            self.flush(reason="count")
        elif self.or_every_seconds > 0 and self._clock() - self._last_flush >= self.or_every_seconds:
            self.flush(reason="timer")

    def flush(self, *, reason: str) -> None:
        self._last_flush = self._clock()
        if not self._buf:
            return

        rows = [self._session_to_row(s) for s in self._buf]
        self._buf.clear()

        result = self.adapter.write_sessions(rows)

        self._logger.info(
            "flush",
            extra={
                "reason": reason,
                "num_sessions": result.num_sessions,
                "duration_ms": result.duration_ms,
            },
        )

    def close(self) -> None:
        if not self._is_open:
            return
        self.flush(reason="shutdown")
        self.adapter.close()
        self._is_open = False

    @staticmethod
    def _session_to_row(s: StoredSession) -> tuple:
        sem = s.session

        def dumps(obj) -> str:
            return json.dumps(obj, separators=(",", ":"), ensure_ascii=False)

        return (
            s.project_id,
            s.session_id,
            s.source,
            s.stored_at or datetime.now(UTC),
            sem.page_url,
            sem.page_title,
            sem.total_duration,
            sem.event_count,
            sem.viewport_width,
            sem.viewport_height,
            len(sem.logs),
            dumps([e.as_dict() for e in sem.logs]),
            dumps(sem.summary.as_dict()),
            dumps(sem.behavioral_signals.as_dict()),
            s.fingerprint,
        )
