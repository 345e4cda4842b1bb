from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field, replace
from typing import Any

from sessionlens.core.logging import get_logger
from sessionlens.features.cohorts.types import (
    ClassifiedUser,
    CohortSignal,
    CohortType,
    DropoffPerson,
    FunnelCorrelation,
    SessionContext,
    Severity,
)

DEFAULT_WEIGHTS: dict[str, int] = {
    "session_errors": 35,
    "browser_correlation": 30,
    "rage_clicks": 45,
    "long_sessions": 40,
    "short_sessions": 10,
    "funnel_dropoff": 35,
    "repeat_visitor": 5,
}


@dataclass(frozen=True)
class CohortThresholds:
    long_session_s: float = 120.0
    short_session_s: float = 30.0
    wrong_fit_max_sessions: int = 2
    repeat_visitor_min_sessions: int = 3
    top_correlations: int = 5
    weights: dict[str, int] = field(default_factory=lambda: dict(DEFAULT_WEIGHTS))

    def weight(self, name: str) -> int:
        return int(self.weights.get(name, DEFAULT_WEIGHTS[name]))


def _session_tree(
    ctx: SessionContext, t: CohortThresholds
) -> tuple[CohortType, str, list[CohortSignal]] | None:
    """The session-evidence branches shared by both classifiers (errors aside)."""
    if ctx.has_rage_clicks:
        clicks = ctx.max_click_count
        reason = f"High click activity ({clicks} clicks) suggests frustration"
        return (
            CohortType.CONFUSED_BROWSER,
            reason,
            [CohortSignal("confused_browser", reason, t.weight("rage_clicks"), {"clickCount": clicks})],
        )
    if ctx.average_duration > t.long_session_s and ctx.total_count > 0:
        avg = round(ctx.average_duration)
        reason = f"Long average session ({avg}s) without conversion"
        return (
            CohortType.CONFUSED_BROWSER,
            reason,
            [CohortSignal("confused_browser", reason, t.weight("long_sessions"), {"avgDuration": avg})],
        )
    if ctx.average_duration < t.short_session_s and ctx.total_count <= t.wrong_fit_max_sessions:
        avg = round(ctx.average_duration)
        reason = f"Very short sessions (avg {avg}s) - low intent"
        return (
            CohortType.WRONG_FIT,
            reason,
            [CohortSignal("wrong_fit", reason, t.weight("short_sessions"), {"avgDuration": avg})],
        )
    return None


def _error_signal(ctx: SessionContext, t: CohortThresholds) -> tuple[str, CohortSignal]:
    reason = f"Encountered errors in {ctx.error_session_count} session(s)"
    return reason, CohortSignal(
        "technical_victim", reason, t.weight("session_errors"), {"sessionErrors": True}
    )


def classify_user(
    person: DropoffPerson,
    context: SessionContext,
    correlations: Sequence[FunnelCorrelation] = (),
    thresholds: CohortThresholds | None = None,
) -> ClassifiedUser:
    """
    Decision tree, first match wins:
      technical_victim -> confused_browser -> wrong_fit -> high_value
    """
    t = thresholds or CohortThresholds()
    if person.distinct_id is None:
        raise ValueError("dropoff person has no distinct id")

    top = list(correlations[: t.top_correlations])
    error_corr = next((c for c in top if c.is_error), None)
    device_corr = next((c for c in top if c.device_label), None)

    signals: list[CohortSignal]
    if context.has_errors or error_corr is not None:
        cohort = CohortType.TECHNICAL_VICTIM
        if error_corr is not None:
            reason = f"Dropped off with {error_corr.odds_ratio:.1f}x higher error rate"
            signals = [
                CohortSignal(
                    "technical_victim",
                    reason,
                    t.weight("session_errors"),
                    {"errorEvent": error_corr.event_name, "sessionErrors": context.has_errors},
                )
            ]
        else:
            reason, signal = _error_signal(context, t)
            signals = [signal]
    elif device_corr is not None:
        cohort = CohortType.TECHNICAL_VICTIM
        label = device_corr.device_label
        reason = f"Users on {label} are {device_corr.odds_ratio:.1f}x more likely to drop off"
        signals = [CohortSignal("technical_victim", reason, t.weight("browser_correlation"), {"browser": label})]
    elif (branch := _session_tree(context, t)) is not None:
        cohort, reason, signals = branch
    else:
        cohort = CohortType.HIGH_VALUE
        reason = "Standard drop-off - good interview candidate"
        signals = [
            CohortSignal(
                "funnel_dropoff", reason, t.weight("funnel_dropoff"), {"dropoffStep": person.dropoff_step}
            )
        ]
        if context.total_count >= t.repeat_visitor_min_sessions:
            signals.append(
                CohortSignal(
                    "repeat_visitor",
                    f"Returned for {context.total_count} sessions",
                    t.weight("repeat_visitor"),
                    {"sessions": context.total_count},
                )
            )

    return ClassifiedUser(
        distinct_id=person.distinct_id,
        cohort_type=cohort,
        cohort_reason=reason,
        signals=tuple(signals),
        properties=dict(person.properties),
        correlations=tuple(top),
    )


def classify_user_from_sessions(
    distinct_id: str,
    context: SessionContext,
    *,
    signals: Iterable[CohortSignal] = (),
    properties: Mapping[str, Any] | None = None,
    thresholds: CohortThresholds | None = None,
) -> ClassifiedUser:
    """Fallback when no funnel data exists: classify on session evidence alone."""
    t = thresholds or CohortThresholds()
    found = list(signals)

    if context.has_errors:
        cohort = CohortType.TECHNICAL_VICTIM
        reason, signal = _error_signal(context, t)
        found.append(signal)
    elif (branch := _session_tree(context, t)) is not None:
        cohort, reason, extra = branch
        found.extend(extra)
    else:
        cohort = CohortType.HIGH_VALUE
        reason = "Normal session patterns - good interview candidate"

    return ClassifiedUser(
        distinct_id=distinct_id,
        cohort_type=cohort,
        cohort_reason=reason,
        signals=tuple(_dedupe(found)),
        properties=dict(properties or {}),
    )


def _dedupe(signals: Iterable[CohortSignal]) -> list[CohortSignal]:
    seen: set[tuple[str, str]] = set()
    out = []
    for s in signals:
        if s.key in seen:
            continue
        seen.add(s.key)
        out.append(s)
    return out


def merge_user_signals(users: Iterable[ClassifiedUser]) -> dict[str, ClassifiedUser]:
    """
    Combine results from several detectors per user. Signals are de-duplicated on
    (type, description); the first classification of a user keeps its cohort.
    Scores follow from the merged signal list.
    """
    merged: dict[str, ClassifiedUser] = {}
    for user in users:
        existing = merged.get(user.distinct_id)
        if existing is None:
            merged[user.distinct_id] = user
            continue
        merged[user.distinct_id] = replace(
            existing,
            signals=tuple(_dedupe([*existing.signals, *user.signals])),
            properties={**user.properties, **existing.properties},
        )
    return merged


def rank_signals(signals: Iterable[CohortSignal]) -> list[CohortSignal]:
    # stable: equal weights keep detection order
    return sorted(signals, key=lambda s: -s.weight)


def signal_summary(signals: Sequence[CohortSignal]) -> str:
    if not signals:
        return "No signals detected"
    head = "; ".join(s.description for s in signals[:3])
    remaining = len(signals) - 3
    return f"{head} (+{remaining} more)" if remaining > 0 else head


def build_priority_queue(
    users: Iterable[ClassifiedUser], *, limit: int = 50, min_score: int = 10
) -> list[ClassifiedUser]:
    merged = merge_user_signals(users)
    eligible = [u for u in merged.values() if u.priority_score >= min_score]
    eligible.sort(key=lambda u: -u.priority_score)
    return eligible[:limit]


def calculate_severity(drop_off_rate: float, drop_off_count: int) -> Severity:
    """Drop-off rate is a percentage (0-100)."""
    if drop_off_rate > 50 or drop_off_count > 1000:
        return Severity.CRITICAL
    if drop_off_rate > 30 or drop_off_count > 500:
        return Severity.HIGH
    if drop_off_rate > 15 or drop_off_count > 100:
        return Severity.MEDIUM
    return Severity.LOW


class CohortService:
    """Classify a batch of dropped-off users against shared funnel correlations."""

    def __init__(self, *, thresholds: CohortThresholds | None = None, logger: logging.Logger | None = None) -> None:
        self.thresholds = thresholds or CohortThresholds()
        self._logger = logger or get_logger(__name__)

    def classify(
        self,
        persons: Iterable[DropoffPerson],
        contexts: Mapping[str, SessionContext],
        correlations: Sequence[FunnelCorrelation] = (),
    ) -> list[ClassifiedUser]:
        out: list[ClassifiedUser] = []
        for person in persons:
            if person.distinct_id is None:
                self._logger.warning("skipped person without distinct id", extra={"feature": "cohorts"})
                continue
            ctx = contexts.get(person.distinct_id, SessionContext())
            out.append(classify_user(person, ctx, correlations, self.thresholds))

        self._logger.info("classified", extra={"feature": "cohorts", "num_users": len(out)})
        return out

    def classify_from_sessions(self, contexts: Mapping[str, SessionContext]) -> list[ClassifiedUser]:
        """Used when the funnel yields no dropped-off persons."""
        out = [
            classify_user_from_sessions(distinct_id, ctx, thresholds=self.thresholds)
            for distinct_id, ctx in contexts.items()
        ]
        self._logger.info("classified from sessions", extra={"feature": "cohorts", "num_users": len(out)})
        return out
