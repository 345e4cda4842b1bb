from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from sessionlens.core.logging import get_logger
from sessionlens.features.decoder.service import DecoderService
from sessionlens.features.decoder.types import SessionError, SessionSource
from sessionlens.features.events.service import fingerprint_events
from sessionlens.features.persistence.service import PersistenceService, StoredSession
from sessionlens.features.semantic_parser.service import SemanticSessionParser
from sessionlens.features.semantic_parser.types import SemanticSession

# Shown to users for any session that could not be analyzed
FAILURE_MESSAGE = "Session could not be analyzed"


class OutcomeStatus(str, Enum):
    ANALYZED = "analyzed"
    EMPTY = "empty"  # parsed fine, nothing behavioral happened


@dataclass(frozen=True)
class SessionOutcome:
    session_id: str
    status: OutcomeStatus
    source: SessionSource
    session: SemanticSession
    fingerprint: str
    skipped: int = 0

    def as_dict(self) -> dict[str, Any]:
        return {
            "sessionId": self.session_id,
            "status": self.status.value,
            "source": self.source.value,
            "fingerprint": self.fingerprint,
            "skipped": self.skipped,
            "session": self.session.as_dict(),
        }


@dataclass(frozen=True)
class SessionFailure:
    session_id: str
    reason: str
    message: str = FAILURE_MESSAGE


@dataclass
class BatchResult:
    analyzed: list[SessionOutcome] = field(default_factory=list)
    empty: list[SessionOutcome] = field(default_factory=list)
    failed: list[SessionFailure] = field(default_factory=list)

    @property
    def errors(self) -> dict[str, str]:
        return {f.session_id: f.reason for f in self.failed}

    @property
    def total(self) -> int:
        return len(self.analyzed) + len(self.empty) + len(self.failed)


class SessionPipeline:
    """
    decode -> parse -> (optionally) persist, one session at a time.

    Raw events live only inside `process`; what survives is the compact semantic
    session, so peak memory is bounded by the largest single session.
    """

    def __init__(
        self,
        *,
        decoder: DecoderService | None = None,
        parser: SemanticSessionParser | None = None,
        persistence: PersistenceService | None = None,
        project_id: str = "default",
        logger: logging.Logger | None = None,
    ) -> None:
        self.decoder = decoder or DecoderService()
        self.parser = parser or SemanticSessionParser()
        self.persistence = persistence
        self.project_id = project_id
        self._logger = logger or get_logger(__name__)

    def process(
        self,
        payload: Any,
        *,
        session_id: str,
        source: SessionSource | str = SessionSource.AUTO,
    ) -> SessionOutcome:
        """Raises SessionError subclasses for sessions that cannot be analyzed."""
        decoded = self.decoder.decode(payload, source=source, session_id=session_id)
        session = self.parser.parse(decoded.events, session_id=session_id)
        fp = fingerprint_events(decoded.events)
        src, skipped = decoded.source, decoded.skipped
        del decoded  # release raw events before persisting

        status = OutcomeStatus.ANALYZED if session.has_behavioral_content else OutcomeStatus.EMPTY
        outcome = SessionOutcome(
            session_id=session_id,
            status=status,
            source=src,
            session=session,
            fingerprint=fp,
            skipped=skipped,
        )

        if self.persistence is not None:
            self.persistence.save(
                StoredSession(
                    project_id=self.project_id,
                    session_id=session_id,
                    source=outcome.source.value,
                    session=session,
                    fingerprint=fp,
                )
            )

        self._logger.info(
            "session processed",
            extra={
                "project_id": self.project_id,
                "session_id": session_id,
                "source": outcome.source.value,
                "event_count": session.event_count,
                "reason": status.value,
            },
        )
        return outcome

    def process_batch(
        self,
        items: Iterable[tuple[str, Any]],
        *,
        source: SessionSource | str = SessionSource.AUTO,
    ) -> BatchResult:
        """
        Process (session_id, payload) pairs in order. A payload may also be a
        zero-argument loader, called here so that a failed load counts against its
        own session. A failing session is recorded and skipped; the rest of the batch
        continues.
        """
        result = BatchResult()
        for session_id, payload in items:
            try:
                if callable(payload):
                    payload = payload()
                outcome = self.process(payload, session_id=session_id, source=source)
            except SessionError as e:
                self._logger.warning(
                    "session failed",
                    extra={"project_id": self.project_id, "session_id": session_id, "reason": e.reason, "error": str(e)},
                )
                result.failed.append(SessionFailure(session_id=session_id, reason=e.reason))
                continue
            if outcome.status == OutcomeStatus.ANALYZED:
                result.analyzed.append(outcome)
            else:
                result.empty.append(outcome)

        self._logger.info(
            "batch complete",
            extra={"project_id": self.project_id, "num_sessions": result.total, "skipped": len(result.failed)},
        )
        return result
