from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from sessionlens.features.semantic_parser.node_map import clock_seconds
from sessionlens.features.semantic_parser.types import SemanticSession


class CohortType(str, Enum):
    TECHNICAL_VICTIM = "technical_victim"
    CONFUSED_BROWSER = "confused_browser"
    WRONG_FIT = "wrong_fit"
    HIGH_VALUE = "high_value"


class RecommendedAction(str, Enum):
    INTERVIEW = "interview"
    BUG_REPORT = "bug_report"


class Severity(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


# Recordings with more clicks than this read as frustrated clicking
HIGH_CLICK_ACTIVITY = 50


@dataclass(frozen=True)
class CohortSignal:
    type: str
    description: str
    weight: int
    metadata: dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def key(self) -> tuple[str, str]:
        # identity used for de-duplication
        return (self.type, self.description)

    def as_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "description": self.description,
            "weight": self.weight,
            "metadata": dict(self.metadata),
        }


@dataclass(frozen=True, slots=True)
class SessionRecording:
    duration_s: float = 0.0
    click_count: int = 0
    console_error_count: int = 0
    rage_clicks: int = 0
    session_id: str | None = None

    @classmethod
    def from_semantic_session(cls, session: SemanticSession, session_id: str | None = None) -> SessionRecording:
        s = session.summary
        return cls(
            duration_s=float(clock_seconds(session.total_duration)),
            click_count=s.total_clicks,
            console_error_count=s.console_errors + s.network_errors,
            rage_clicks=s.rage_clicks,
            session_id=session_id,
        )


@dataclass(frozen=True)
class SessionContext:
    """Recent recordings of one user, reduced to the numbers cohorting needs."""

    recordings: tuple[SessionRecording, ...] = ()

    @property
    def total_count(self) -> int:
        return len(self.recordings)

    @property
    def has_errors(self) -> bool:
        return any(r.console_error_count > 0 for r in self.recordings)

    @property
    def has_rage_clicks(self) -> bool:
        return any(r.rage_clicks > 0 or r.click_count > HIGH_CLICK_ACTIVITY for r in self.recordings)

    @property
    def average_duration(self) -> float:
        if not self.recordings:
            return 0.0
        return sum(r.duration_s for r in self.recordings) / len(self.recordings)

    @property
    def error_session_count(self) -> int:
        return sum(1 for r in self.recordings if r.console_error_count > 0)

    @property
    def max_click_count(self) -> int:
        return max((r.click_count for r in self.recordings), default=0)

    @classmethod
    def from_semantic_sessions(cls, sessions: Iterable[SemanticSession]) -> SessionContext:
        return cls(recordings=tuple(SessionRecording.from_semantic_session(s) for s in sessions))


# Properties that tie a correlation to a browser/device segment
DEVICE_PROPERTIES: tuple[str, ...] = ("$browser", "$device_type", "$os")
ERROR_MARKERS: tuple[str, ...] = ("error", "exception", "crash")


@dataclass(frozen=True)
class FunnelCorrelation:
    event_name: str
    odds_ratio: float
    properties: dict[str, Any] = field(default_factory=dict)
    success_count: int = 0
    failure_count: int = 0
    correlation_type: str = "failure"

    @property
    def is_error(self) -> bool:
        name = self.event_name.lower()
        return any(m in name for m in ERROR_MARKERS)

    @property
    def device_label(self) -> str | None:
        for key in DEVICE_PROPERTIES:
            if self.properties.get(key):
                return str(self.properties[key])
        return None

    @classmethod
    def from_raw(cls, raw: dict[str, Any]) -> FunnelCorrelation:
        """Accepts the analytics export shape: {"event": {"event", "properties"}, "odds_ratio", ...}."""
        event = raw.get("event") or {}
        if isinstance(event, str):
            event = {"event": event}
        return cls(
            event_name=str(event.get("event") or ""),
            odds_ratio=float(raw.get("odds_ratio") or 0.0),
            properties=dict(event.get("properties") or {}),
            success_count=int(raw.get("success_count") or 0),
            failure_count=int(raw.get("failure_count") or 0),
            correlation_type=str(raw.get("correlation_type") or "failure"),
        )


@dataclass(frozen=True)
class DropoffPerson:
    distinct_ids: tuple[str, ...]
    properties: dict[str, Any] = field(default_factory=dict)
    dropoff_step: int | None = None

    @property
    def distinct_id(self) -> str | None:
        return self.distinct_ids[0] if self.distinct_ids else None


@dataclass(frozen=True)
class ClassifiedUser:
    distinct_id: str
    cohort_type: CohortType
    cohort_reason: str
    signals: tuple[CohortSignal, ...] = ()
    properties: dict[str, Any] = field(default_factory=dict)
    correlations: tuple[FunnelCorrelation, ...] = ()

    @property
    def priority_score(self) -> int:
        # derived from the signal list on every read, never stored
        return sum(s.weight for s in self.signals)

    @property
    def recommended_action(self) -> RecommendedAction:
        if self.cohort_type == CohortType.TECHNICAL_VICTIM:
            return RecommendedAction.BUG_REPORT
        return RecommendedAction.INTERVIEW

    @property
    def email(self) -> str | None:
        return self.properties.get("email")

    @property
    def name(self) -> str | None:
        return self.properties.get("name")

    def as_dict(self) -> dict[str, Any]:
        return {
            "distinctId": self.distinct_id,
            "cohortType": self.cohort_type.value,
            "cohortReason": self.cohort_reason,
            "priorityScore": self.priority_score,
            "recommendedAction": self.recommended_action.value,
            "signals": [s.as_dict() for s in self.signals],
        }
