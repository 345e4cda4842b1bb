from __future__ import annotations

from dataclasses import asdict, dataclass


@dataclass(frozen=True)
class SignalThresholds:
    """
    Cut-offs for the behavioral flags. Comparisons are strict (`>`), so the
    defaults read "more than 20 scrolls", "more than 3 rapid scrolls", etc.
    """

    exploring_min_scrolls: int = 20
    exploring_max_clicks: int = 5
    frustrated_min_dead_clicks: int = 0
    frustrated_min_rapid_scrolls: int = 3
    confused_min_hesitations: int = 2
    confused_min_scroll_reversals: int = 5
    engaged_min_clicks: int = 3


@dataclass(frozen=True, slots=True)
class BehavioralSignals:
    is_exploring: bool = False
    is_frustrated: bool = False
    is_engaged: bool = False
    is_confused: bool = False
    is_mobile: bool = False
    completed_goal: bool = False

    def as_dict(self) -> dict[str, bool]:
        return {
            "isExploring": self.is_exploring,
            "isFrustrated": self.is_frustrated,
            "isEngaged": self.is_engaged,
            "isConfused": self.is_confused,
            "isMobile": self.is_mobile,
            "completedGoal": self.completed_goal,
        }

    def active(self) -> list[str]:
        return [k for k, v in asdict(self).items() if v]
