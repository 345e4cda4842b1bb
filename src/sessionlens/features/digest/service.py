from __future__ import annotations

from collections.abc import Sequence

from sessionlens.features.semantic_parser.flags import FRICTION_FLAGS
from sessionlens.features.semantic_parser.types import SemanticLogEntry, SemanticSession

DEFAULT_MAX_ENTRIES = 50


def select_log_entries(
    logs: Sequence[SemanticLogEntry], max_entries: int = DEFAULT_MAX_ENTRIES
) -> list[SemanticLogEntry]:
    """
    Keep at most `max_entries` entries: friction-flagged first, then other flagged
    entries, then the rest in time order. The selection is returned chronologically.
    """
    if max_entries <= 0:
        return []
    if len(logs) <= max_entries:
        return list(logs)

    def rank(idx: int) -> int:
        flags = logs[idx].flags
        if any(f in FRICTION_FLAGS for f in flags):
            return 0
        return 1 if flags else 2

    chosen = sorted(range(len(logs)), key=lambda i: (rank(i), i))[:max_entries]
    return [logs[i] for i in sorted(chosen)]


def render_log_line(entry: SemanticLogEntry) -> str:
    line = f"{entry.timestamp} {entry.action}"
    if entry.details:
        line += f": {entry.details}"
    if entry.flags:
        line += " " + " ".join(entry.flags)
    return line


def render_session(session: SemanticSession, max_entries: int = DEFAULT_MAX_ENTRIES) -> str:
    """Plain-text digest of one session for prompt construction or terminals."""
    lines = [
        f"Page: {session.page_url or 'unknown'}" + (f' ("{session.page_title}")' if session.page_title else ""),
        f"Duration: {session.total_duration} | Events: {session.event_count}",
    ]
    active = session.behavioral_signals.active()
    if active:
        lines.append("Signals: " + ", ".join(active))
    counters = {k: v for k, v in session.summary.as_dict().items() if v}
    if counters:
        lines.append("Summary: " + ", ".join(f"{k}={v}" for k, v in counters.items()))

    selected = select_log_entries(session.logs, max_entries)
    if not selected:
        lines.append("No behavioral activity recorded.")
    else:
        omitted = len(session.logs) - len(selected)
        lines.append(f"Log ({len(selected)} of {len(session.logs)} entries):")
        lines.extend(render_log_line(e) for e in selected)
        if omitted:
            lines.append(f"... {omitted} lower-priority entries omitted")
    return "\n".join(lines)
