from __future__ import annotations

from sessionlens.features.semantic_parser.types import SessionSummary
from sessionlens.features.signals.types import BehavioralSignals, SignalThresholds


def classify_behavior(
    summary: SessionSummary, thresholds: SignalThresholds | None = None
) -> BehavioralSignals:
    """
    Pure mapping from session counters to behavioral flags. Every rule only reads
    counters with `>` against a fixed cut-off, so growing any frustration counter
    can never clear `is_frustrated`.
    """
    t = thresholds or SignalThresholds()
    s = summary

    frustrated = (
        s.rage_clicks > 0
        or s.dead_clicks > t.frustrated_min_dead_clicks
        or s.rapid_scrolls > t.frustrated_min_rapid_scrolls
        or s.console_errors > 0
        or s.network_errors > 0
    )
    confused = (
        s.hesitations > t.confused_min_hesitations
        or s.scroll_reversals > t.confused_min_scroll_reversals
        or s.abandoned_inputs > 0
    )

    return BehavioralSignals(
        is_exploring=s.total_scrolls > t.exploring_min_scrolls and s.total_clicks < t.exploring_max_clicks,
        is_frustrated=frustrated,
        is_engaged=not frustrated and not confused and s.total_clicks > t.engaged_min_clicks and s.total_inputs > 0,
        is_confused=confused,
        is_mobile=s.total_touches > 0 or s.swipes > 0 or s.orientation_changes > 0,
        completed_goal=s.form_submissions > 0,
    )
