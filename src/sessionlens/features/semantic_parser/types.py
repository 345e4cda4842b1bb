from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any

from sessionlens.features.signals.types import BehavioralSignals


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


@dataclass(frozen=True)
class ParserThresholds:
    """Named detection thresholds. Times are in milliseconds, distances in pixels."""

    rage_click_count: int = 3
    rage_click_window_ms: int = 2000
    thrash_min_clicks: int = 3
    thrash_window_ms: int = 1500
    dead_click_window_ms: int = 1000
    dead_click_lookahead: int = 100
    idle_threshold_ms: int = 5000
    hover_log_interval_ms: int = 3000
    hesitation_ms: int = 2000
    rapid_scroll_px_per_ms: float = 5.0
    scroll_log_interval_ms: int = 2000
    scroll_log_min_px: int = 100
    scroll_reversal_window_ms: int = 1500
    horizontal_scroll_px: int = 100
    input_log_interval_ms: int = 500
    input_log_min_delta: int = 3
    tap_max_px: int = 10
    tap_max_ms: int = 300
    swipe_min_px: int = 50
    long_press_ms: int = 500
    slow_request_ms: int = 3000
    slow_lcp_ms: int = 4000
    content_loaded_min_adds: int = 10


@dataclass(frozen=True, slots=True)
class SemanticLogEntry:
    timestamp: str
    action: str
    details: str
    flags: tuple[str, ...] = ()

    # ms since the first event of the session
    raw_timestamp: int = 0

    def as_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "action": self.action,
            "details": self.details,
            "flags": list(self.flags),
            "rawTimestamp": self.raw_timestamp,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SemanticLogEntry:
        return cls(
            timestamp=str(data.get("timestamp", "[00:00]")),
            action=str(data.get("action", "")),
            details=str(data.get("details", "")),
            flags=tuple(data.get("flags") or ()),
            raw_timestamp=int(data.get("rawTimestamp", data.get("raw_timestamp", 0)) or 0),
        )


@dataclass(frozen=True)
class SessionSummary:
    # clicks
    total_clicks: int = 0
    rage_clicks: int = 0
    dead_clicks: int = 0
    double_clicks: int = 0
    right_clicks: int = 0
    click_thrashes: int = 0

    # inputs
    total_inputs: int = 0
    abandoned_inputs: int = 0
    cleared_inputs: int = 0
    corrections: int = 0

    # scrolling
    total_scrolls: int = 0
    scroll_depth_max: int = 0  # percent of an estimated 3-viewport page
    rapid_scrolls: int = 0
    scroll_reversals: int = 0
    horizontal_scrolls: int = 0

    # attention
    total_hovers: int = 0
    hesitations: int = 0
    hover_time: int = 0  # ms

    # touch
    total_touches: int = 0
    swipes: int = 0
    long_presses: int = 0
    pinch_zooms: int = 0

    # media
    total_media_interactions: int = 0
    video_plays: int = 0
    video_pauses: int = 0
    video_seeks: int = 0

    # selection / clipboard
    total_selections: int = 0
    copy_events: int = 0
    paste_events: int = 0

    # errors
    console_errors: int = 0
    console_warnings: int = 0
    network_errors: int = 0
    failed_requests: int = 0
    slow_network_events: int = 0
    slow_loads: int = 0

    # engagement
    tab_switches: int = 0
    exit_intents: int = 0
    offline_events: int = 0
    keyboard_shortcuts: int = 0
    idle_time: int = 0  # seconds
    form_submissions: int = 0

    # viewport
    resize_events: int = 0
    orientation_changes: int = 0

    def as_dict(self) -> dict[str, int]:
        return {_camel(f.name): getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SessionSummary:
        """Accepts camelCase (stored/JSON) or snake_case keys; missing keys are 0."""
        values: dict[str, int] = {}
        for f in fields(cls):
            v = data.get(_camel(f.name), data.get(f.name, 0))
            values[f.name] = int(v or 0)
        return cls(**values)


@dataclass(frozen=True)
class SemanticSession:
    page_url: str
    page_title: str
    total_duration: str
    event_count: int
    viewport_width: int
    viewport_height: int
    logs: tuple[SemanticLogEntry, ...] = ()
    summary: SessionSummary = field(default_factory=SessionSummary)
    behavioral_signals: BehavioralSignals = field(default_factory=BehavioralSignals)

    @property
    def has_behavioral_content(self) -> bool:
        # zero logs is a valid result meaning nothing interesting happened
        return len(self.logs) > 0

    @property
    def flagged_logs(self) -> list[SemanticLogEntry]:
        return [e for e in self.logs if e.flags]

    def as_dict(self) -> dict[str, Any]:
        return {
            "pageUrl": self.page_url,
            "pageTitle": self.page_title,
            "totalDuration": self.total_duration,
            "eventCount": self.event_count,
            "viewportSize": {"width": self.viewport_width, "height": self.viewport_height},
            "logs": [e.as_dict() for e in self.logs],
            "summary": self.summary.as_dict(),
            "behavioralSignals": self.behavioral_signals.as_dict(),
        }
