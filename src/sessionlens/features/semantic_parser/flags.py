from __future__ import annotations

RAGE_CLICK = "[RAGE CLICK]"
NO_RESPONSE = "[NO RESPONSE]"
CLICK_THRASHING = "[CLICK THRASHING]"
CONSOLE_ERROR = "[CONSOLE ERROR]"
NETWORK_ERROR = "[NETWORK ERROR]"
SLOW_NETWORK = "[SLOW NETWORK]"
SLOW_LOAD = "[SLOW LOAD]"
ABANDONED_INPUT = "[ABANDONED INPUT]"
CLEARED_INPUT = "[CLEARED INPUT]"
CORRECTION = "[CORRECTION]"
HESITATION = "[HESITATION]"
RAPID_SCROLL = "[RAPID SCROLL]"
HORIZONTAL_SCROLL = "[HORIZONTAL SCROLL]"
TAB_SWITCH = "[TAB SWITCH]"
EXIT_INTENT = "[EXIT INTENT]"
SWIPE = "[SWIPE]"
LONG_PRESS = "[LONG PRESS]"
ORIENTATION_CHANGE = "[ORIENTATION CHANGE]"
OFFLINE = "[OFFLINE]"
KEYBOARD_SHORTCUT = "[KEYBOARD SHORTCUT]"
FORM_SUBMIT = "[FORM SUBMIT]"
VIDEO_SEEK = "[VIDEO SEEK]"

# Every flag maps to exactly one SessionSummary counter. The parser increments the
# counter when (and only when) an entry carrying the flag is emitted.
FLAG_COUNTERS: dict[str, str] = {
    RAGE_CLICK: "rage_clicks",
    NO_RESPONSE: "dead_clicks",
    CLICK_THRASHING: "click_thrashes",
    CONSOLE_ERROR: "console_errors",
    NETWORK_ERROR: "network_errors",
    SLOW_NETWORK: "slow_network_events",
    SLOW_LOAD: "slow_loads",
    ABANDONED_INPUT: "abandoned_inputs",
    CLEARED_INPUT: "cleared_inputs",
    CORRECTION: "corrections",
    HESITATION: "hesitations",
    RAPID_SCROLL: "rapid_scrolls",
    HORIZONTAL_SCROLL: "horizontal_scrolls",
    TAB_SWITCH: "tab_switches",
    EXIT_INTENT: "exit_intents",
    SWIPE: "swipes",
    LONG_PRESS: "long_presses",
    ORIENTATION_CHANGE: "orientation_changes",
    OFFLINE: "offline_events",
    KEYBOARD_SHORTCUT: "keyboard_shortcuts",
    FORM_SUBMIT: "form_submissions",
    VIDEO_SEEK: "video_seeks",
}

# Action used when a flag fires on an event that produced no action of its own
DEFAULT_ACTIONS: dict[str, str] = {
    RAPID_SCROLL: "Scrolled rapidly",
    HORIZONTAL_SCROLL: "Scrolled horizontally",
    NO_RESPONSE: "Clicked",
    RAGE_CLICK: "Clicked",
    CLICK_THRASHING: "Clicked",
}


def default_action(flag: str) -> str:
    return DEFAULT_ACTIONS.get(flag, "Flagged")


# Flags that point at something going wrong for the user (used by digests)
FRICTION_FLAGS: frozenset[str] = frozenset(
    {
        RAGE_CLICK,
        NO_RESPONSE,
        CLICK_THRASHING,
        CONSOLE_ERROR,
        NETWORK_ERROR,
        SLOW_NETWORK,
        SLOW_LOAD,
        ABANDONED_INPUT,
        HESITATION,
        RAPID_SCROLL,
    }
)
