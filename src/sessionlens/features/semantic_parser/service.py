from __future__ import annotations

import json
import logging
import math
from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass, field, fields
from typing import Any

from sessionlens.core.logging import get_logger
from sessionlens.features.decoder.compression import is_decompressed, try_decompress
from sessionlens.features.decoder.types import MissingFullSnapshot, NoValidEvents
from sessionlens.features.events.schema import (
    CanonicalEvent,
    EventType,
    IncrementalSource,
    MediaInteraction,
    MouseInteraction,
    USER_INPUT_SOURCES,
)
from sessionlens.features.events.service import has_full_snapshot, sort_events
from sessionlens.features.semantic_parser import flags as F
from sessionlens.features.semantic_parser.node_map import (
    MAX_INLINE_TEXT,
    MAX_NODE_TEXT,
    NodeInfo,
    build_node_map,
    find_title,
    format_clock,
    format_time,
    redact,
    semantic_name,
)
from sessionlens.features.semantic_parser.types import (
    ParserThresholds,
    SemanticLogEntry,
    SemanticSession,
    SessionSummary,
)
from sessionlens.features.signals.service import classify_behavior
from sessionlens.features.signals.types import SignalThresholds

# Custom tags the parser consumes without producing a log line
SILENT_TAGS: frozenset[str] = frozenset({"session_start", "session_end"})

# rrweb console plugin name prefix
CONSOLE_PLUGIN = "rrweb/console"


def _num(value: Any, default: float = 0) -> float:
    if isinstance(value, int | float) and not isinstance(value, bool):
        return value
    return default


def _truncate(text: str, limit: int) -> str:
    return text[:limit] + ("..." if len(text) > limit else "")


def _snapshot_node(data: Any) -> Any:
    """The serialized document of a FullSnapshot, opening string payloads if needed."""
    if isinstance(data, str):
        decoded = try_decompress(data)
        if is_decompressed(decoded):
            data = decoded
        else:
            try:
                data = json.loads(data)
            except json.JSONDecodeError:
                return None
    return data.get("node") if isinstance(data, dict) else None


def is_response(event: CanonicalEvent) -> bool:
    """Does this event show the page reacting (DOM change, navigation or network)?"""
    if event.type in (EventType.META, EventType.FULL_SNAPSHOT):
        return True
    if event.type == EventType.INCREMENTAL_SNAPSHOT:
        return event.source == IncrementalSource.MUTATION
    data = event.data if isinstance(event.data, dict) else {}
    payload = data.get("payload") if isinstance(data.get("payload"), dict) else {}
    if event.type == EventType.PLUGIN:
        return isinstance(payload.get("requests"), list)
    if event.type == EventType.CUSTOM:
        return data.get("tag") == "$pageview" or payload.get("type") == "navigation"
    return False


@dataclass
class _Draft:
    action: str = ""
    details: str = ""
    flags: list[str] = field(default_factory=list)

    def set(self, action: str, details: str = "") -> None:
        self.action = action
        self.details = details

    def flag(self, flag: str) -> None:
        self.flags.append(flag)


@dataclass
class _Click:
    node_id: Any
    ts: int


@dataclass
class _InputState:
    last_text: str
    logged_text: str
    logged_ts: int
    had_content: bool


@dataclass
class _Hover:
    node_id: int
    name: str
    since: int


class _Pass:
    """
    Mutable state for one forward pass over one session. Never shared.
    """

    def __init__(self, events: Sequence[CanonicalEvent], t: ParserThresholds) -> None:
        self.events = events
        self.t = t
        self.start = events[0].timestamp

        self.counts: Counter[str] = Counter()
        self.scroll_depth_max = 0
        self.hover_time = 0
        self.idle_ms = 0
        self.logs: list[SemanticLogEntry] = []

        self.node_map: dict[int, NodeInfo] = {}
        self.page_url = ""
        self.page_title = ""
        self.width = 0
        self.height = 0
        self.viewport = (0, 0)
        self._meta_idx: int | None = None
        self._snapshot_idx: int | None = None

        self.last_interaction = self.start
        self.clicks: list[_Click] = []
        self.rage_flagged_at: dict[Any, int] = {}
        self.inputs: dict[Any, _InputState] = {}
        self.hover: _Hover | None = None
        self.last_hover_log: int | None = None
        self.touch_start: tuple[float, float, int] | None = None

        self.last_scroll_y: float | None = None
        self.last_scroll_x: float = 0
        self.last_scroll_ts: int | None = None
        self.last_scroll_log: int | None = None
        self.last_rapid_flag: int | None = None
        self.last_direction = 0
        self.last_direction_ts = 0

    # ----------------------------
    # Setup
    # ----------------------------

    def read_context(self) -> None:
        for idx, evt in enumerate(self.events):
            if evt.type == EventType.META and self._meta_idx is None:
                self._meta_idx = idx
                data = evt.data if isinstance(evt.data, dict) else {}
                self.page_url = str(data.get("href") or "")
                self.width = int(_num(data.get("width")))
                self.height = int(_num(data.get("height")))
                self.viewport = (self.width, self.height)
            elif evt.type == EventType.FULL_SNAPSHOT and self._snapshot_idx is None:
                self._snapshot_idx = idx
                node = _snapshot_node(evt.data)
                if node is not None:
                    build_node_map(node, self.node_map)
                    self.page_title = find_title(node)

    # ----------------------------
    # Helpers
    # ----------------------------

    def name_of(self, node_id: Any, fallback: str) -> tuple[NodeInfo | None, str]:
        info = self.node_map.get(node_id)
        if info is None:
            return None, f"{fallback} #{node_id}"
        return info, semantic_name(info)

    def emit(self, ts: int, draft: _Draft) -> None:
        flags = tuple(dict.fromkeys(draft.flags))
        if not draft.action and not flags:
            return
        for flag in flags:
            self.counts[F.FLAG_COUNTERS[flag]] += 1
        offset = ts - self.start
        self.logs.append(
            SemanticLogEntry(
                timestamp=format_time(offset),
                action=draft.action or F.default_action(flags[0]),
                details=redact(draft.details),
                flags=flags,
                raw_timestamp=offset,
            )
        )

    # ----------------------------
    # Dispatch
    # ----------------------------

    def run(self) -> None:
        for idx, evt in enumerate(self.events):
            draft = _Draft()
            if evt.type == EventType.INCREMENTAL_SNAPSHOT and isinstance(evt.data, dict):
                self.on_incremental(idx, evt, evt.data, draft)
            elif evt.type == EventType.META and idx != self._meta_idx:
                self.on_navigation(evt, draft)
            elif evt.type == EventType.FULL_SNAPSHOT and idx != self._snapshot_idx:
                node = _snapshot_node(evt.data)
                if node is not None:
                    build_node_map(node, self.node_map)
            elif evt.type == EventType.CUSTOM and isinstance(evt.data, dict):
                self.on_custom(evt.data, draft)
            elif evt.type == EventType.PLUGIN and isinstance(evt.data, dict):
                self.on_plugin(evt.data, draft)
            self.emit(evt.timestamp, draft)

        if self.hover is not None:
            draft = _Draft()
            self.end_hover(self.events[-1].timestamp, draft)
            self.emit(self.events[-1].timestamp, draft)

    def on_navigation(self, evt: CanonicalEvent, d: _Draft) -> None:
        data = evt.data if isinstance(evt.data, dict) else {}
        if data.get("width") and data.get("height"):
            self.width = int(_num(data["width"]))
            self.height = int(_num(data["height"]))
        d.set("Navigated", f"to {data.get('href') or 'new page'}")

    def on_incremental(self, idx: int, evt: CanonicalEvent, data: dict[str, Any], d: _Draft) -> None:
        source = data.get("source")
        ts = evt.timestamp

        if source in USER_INPUT_SOURCES:
            gap = ts - self.last_interaction
            if gap > self.t.idle_threshold_ms:
                self.idle_ms += gap - self.t.idle_threshold_ms
            self.last_interaction = ts

        if source == IncrementalSource.MUTATION:
            self.on_mutation(data, d)
        elif source == IncrementalSource.MOUSE_INTERACTION:
            self.on_mouse_interaction(idx, ts, data, d)
        elif source == IncrementalSource.MOUSE_MOVE:
            self.on_mouse_move(ts, data, d)
        elif source == IncrementalSource.SCROLL:
            self.on_scroll(ts, data, d)
        elif source == IncrementalSource.VIEWPORT_RESIZE:
            self.on_resize(data, d)
        elif source == IncrementalSource.INPUT:
            self.on_input(ts, data, d)
        elif source == IncrementalSource.TOUCH_MOVE:
            if len(data.get("positions") or []) >= 2:
                self.counts["pinch_zooms"] += 1
                d.set("Pinch zoomed")
        elif source == IncrementalSource.MEDIA_INTERACTION:
            self.on_media(data, d)
        elif source == IncrementalSource.CANVAS_MUTATION:
            d.set("Drew on canvas", "interactive element")
        elif source == IncrementalSource.LOG:
            self.on_console(data.get("level"), data.get("payload"), data.get("trace"), d)
        elif source == IncrementalSource.DRAG:
            positions = data.get("positions") or []
            if positions:
                start, end = positions[0], positions[-1]
                dist = math.hypot(_num(end.get("x")) - _num(start.get("x")), _num(end.get("y")) - _num(start.get("y")))
                d.set("Dragged", f"{round(dist)}px")

    # ----------------------------
    # Incremental handlers
    # ----------------------------

    def on_mutation(self, data: dict[str, Any], d: _Draft) -> None:
        adds = data.get("adds")
        if not isinstance(adds, list):
            return
        for add in adds:
            if isinstance(add, dict) and add.get("node"):
                build_node_map(add["node"], self.node_map)
        if len(adds) > self.t.content_loaded_min_adds:
            d.set("Content loaded", f"{len(adds)} elements added")

    def on_mouse_interaction(self, idx: int, ts: int, data: dict[str, Any], d: _Draft) -> None:
        node_id = data.get("id")
        element_info = data.get("_elementInfo")
        if isinstance(element_info, dict) and node_id not in self.node_map:
            self.node_map[node_id] = NodeInfo.from_element_info(element_info)
        info, name = self.name_of(node_id, "element")
        kind = data.get("type")
        tag = info.tag if info else ""

        if kind == MouseInteraction.CLICK:
            self.on_click(idx, ts, node_id, info, name, d)
        elif kind == MouseInteraction.DBL_CLICK:
            self.counts["double_clicks"] += 1
            d.set("Double-clicked", name)
        elif kind == MouseInteraction.CONTEXT_MENU:
            self.counts["right_clicks"] += 1
            d.set("Right-clicked", name)
        elif kind == MouseInteraction.FOCUS:
            if tag in ("input", "textarea", "select"):
                d.set("Focused on", name)
                self.inputs.setdefault(node_id, _InputState("", "", ts, False))
        elif kind == MouseInteraction.BLUR:
            # field state lives for the whole session
            state = self.inputs.get(node_id) if tag in ("input", "textarea") else None
            if state is not None and not state.last_text:
                if not state.had_content:
                    d.set("Abandoned", f"{name} without entering anything")
                    d.flag(F.ABANDONED_INPUT)
                else:
                    d.set("Cleared and left", name)
        elif kind == MouseInteraction.TOUCH_START:
            self.counts["total_touches"] += 1
            self.touch_start = (_num(data.get("x")), _num(data.get("y")), ts)
            d.set("Touched", name)
        elif kind == MouseInteraction.TOUCH_END:
            self.on_touch_end(ts, data, name, d)
        elif kind == MouseInteraction.TOUCH_CANCEL:
            self.touch_start = None
            d.set("Touch cancelled", f"on {name}")

    def on_click(self, idx: int, ts: int, node_id: Any, info: NodeInfo | None, name: str, d: _Draft) -> None:
        t = self.t
        self.counts["total_clicks"] += 1
        d.set("Clicked", name)

        # a click ends a hover on the same element without hesitation
        if self.hover is not None and self.hover.node_id == node_id:
            self.hover_time += ts - self.hover.since
            self.hover = None

        # one flag per window per node, anchored at the previous flag
        same = [c for c in self.clicks if c.node_id == node_id and ts - c.ts < t.rage_click_window_ms]
        last = self.rage_flagged_at.get(node_id)
        if len(same) + 1 >= t.rage_click_count and (last is None or ts - last >= t.rage_click_window_ms):
            self.rage_flagged_at[node_id] = ts
            d.flag(F.RAGE_CLICK)

        recent = [c for c in self.clicks if ts - c.ts < t.thrash_window_ms]
        if len(recent) >= t.thrash_min_clicks and len({c.node_id for c in recent}) >= t.thrash_min_clicks:
            d.flag(F.CLICK_THRASHING)

        self.clicks.append(_Click(node_id, ts))
        horizon = max(t.rage_click_window_ms, t.thrash_window_ms)
        self.clicks = [c for c in self.clicks if ts - c.ts < horizon]

        if not self._has_response(idx, ts):
            d.flag(F.NO_RESPONSE)

        tag = info.tag if info else ""
        if tag == "a" or (info and info.href):
            d.set("Clicked link", name)
        elif tag == "button" or (info and info.role == "button"):
            d.set("Clicked button", name)
        elif tag == "input" and info and info.type == "submit":
            d.set("Clicked submit", name)
            d.flag(F.FORM_SUBMIT)
        elif tag == "input" and info and info.type in ("checkbox", "radio"):
            d.set("Toggled checkbox" if info.type == "checkbox" else "Selected radio", name)

    def _has_response(self, idx: int, ts: int) -> bool:
        end = min(idx + 1 + self.t.dead_click_lookahead, len(self.events))
        for nxt in self.events[idx + 1 : end]:
            if nxt.timestamp - ts > self.t.dead_click_window_ms:
                break
            if is_response(nxt):
                return True
        return False

    def on_touch_end(self, ts: int, data: dict[str, Any], name: str, d: _Draft) -> None:
        if self.touch_start is None:
            return
        x0, y0, t0 = self.touch_start
        self.touch_start = None
        dx = _num(data.get("x")) - x0
        dy = _num(data.get("y")) - y0
        distance = math.hypot(dx, dy)
        duration = ts - t0

        if distance < self.t.tap_max_px and duration < self.t.tap_max_ms:
            d.set("Tapped", name)
        elif distance > self.t.swipe_min_px:
            if abs(dx) > abs(dy):
                direction = "right" if dx > 0 else "left"
            else:
                direction = "down" if dy > 0 else "up"
            d.set("Swiped", direction)
            d.flag(F.SWIPE)
        elif duration > self.t.long_press_ms:
            d.set("Long pressed", name)
            d.flag(F.LONG_PRESS)

    def on_mouse_move(self, ts: int, data: dict[str, Any], d: _Draft) -> None:
        positions = data.get("positions") or []
        if not positions or not isinstance(positions[-1], dict):
            return
        node_id = positions[-1].get("id")
        if self.hover is not None and self.hover.node_id == node_id:
            return
        self.end_hover(ts, d)

        info = self.node_map.get(node_id) if node_id else None
        if info is None or not info.is_interactive:
            return
        name = semantic_name(info)
        self.hover = _Hover(node_id, name, ts)
        self.counts["total_hovers"] += 1
        if d.action:
            return
        if self.last_hover_log is None or ts - self.last_hover_log > self.t.hover_log_interval_ms:
            d.set("Hovered over", name)
            self.last_hover_log = ts

    def end_hover(self, ts: int, d: _Draft) -> None:
        hover = self.hover
        if hover is None:
            return
        duration = ts - hover.since
        self.hover_time += duration
        if duration > self.t.hesitation_ms:
            d.set("Hesitated over", hover.name)
            d.flag(F.HESITATION)
        self.hover = None

    def on_scroll(self, ts: int, data: dict[str, Any], d: _Draft) -> None:
        t = self.t
        self.counts["total_scrolls"] += 1
        y = _num(data.get("y"))
        x = _num(data.get("x"))

        if self.height > 0:
            depth = min(100, round(y / (self.height * 3) * 100))
            self.scroll_depth_max = max(self.scroll_depth_max, depth)

        if self.last_scroll_y is not None and self.last_scroll_ts is not None:
            elapsed = ts - self.last_scroll_ts
            if elapsed > 0 and abs(y - self.last_scroll_y) / elapsed > t.rapid_scroll_px_per_ms:
                if self.last_rapid_flag is None or ts - self.last_rapid_flag > t.scroll_log_interval_ms:
                    d.flag(F.RAPID_SCROLL)
                    self.last_rapid_flag = ts

            direction = (y > self.last_scroll_y) - (y < self.last_scroll_y)
            if direction:
                if (
                    self.last_direction
                    and direction != self.last_direction
                    and ts - self.last_direction_ts <= t.scroll_reversal_window_ms
                ):
                    self.counts["scroll_reversals"] += 1
                self.last_direction = direction
                self.last_direction_ts = ts

        if x > t.horizontal_scroll_px and self.last_scroll_x <= t.horizontal_scroll_px:
            d.flag(F.HORIZONTAL_SCROLL)
            d.details = f"{round(x)}px"

        self.last_scroll_y = y
        self.last_scroll_x = x
        self.last_scroll_ts = ts

        if y > t.scroll_log_min_px and (
            self.last_scroll_log is None or ts - self.last_scroll_log > t.scroll_log_interval_ms
        ):
            if y > self.height * 2:
                where = "deep into page"
            elif y > self.height:
                where = "down the page"
            else:
                where = "near top"
            if x > t.horizontal_scroll_px:
                where += f" (horizontal: {round(x)}px)"
            d.set("Scrolled", where)
            self.last_scroll_log = ts

    def on_resize(self, data: dict[str, Any], d: _Draft) -> None:
        old_w, old_h = self.width, self.height
        w, h = int(_num(data.get("width"))), int(_num(data.get("height")))
        self.width, self.height = w, h
        self.counts["resize_events"] += 1

        if (old_w or old_h) and (old_h > old_w) != (h > w):
            d.set("Rotated device", "to portrait" if h > w else "to landscape")
            d.flag(F.ORIENTATION_CHANGE)
        else:
            d.set("Resized window", f"to {w}x{h}")

    def on_input(self, ts: int, data: dict[str, Any], d: _Draft) -> None:
        t = self.t
        self.counts["total_inputs"] += 1
        node_id = data.get("id")
        info, name = self.name_of(node_id, "input")
        text = redact(str(data.get("text") or ""))

        prev = self.inputs.get(node_id)
        if prev is None:
            prev = self.inputs[node_id] = _InputState("", "", ts, False)
            first = True
        else:
            first = False

        if text != prev.last_text or first:
            if prev.last_text and not text:
                d.set("Cleared", name)
                d.flag(F.CLEARED_INPUT)
                prev.logged_text, prev.logged_ts = text, ts
            elif text:
                significant = (
                    first
                    or not prev.logged_text
                    or ts - prev.logged_ts > t.input_log_interval_ms
                    or abs(len(text) - len(prev.logged_text)) > t.input_log_min_delta
                )
                if significant:
                    masked = (info is not None and info.type == "password") or set(text) == {"*"}
                    if masked:
                        d.set("Typed", f"in {name} ({len(text)} characters, masked)")
                    else:
                        d.set("Typed", f'"{_truncate(text, MAX_INLINE_TEXT)}" in {name}')
                    if len(text) < len(prev.logged_text):
                        d.flag(F.CORRECTION)
                    prev.logged_text, prev.logged_ts = text, ts
            prev.last_text = text
            prev.had_content = prev.had_content or bool(text)

        checked = data.get("isChecked")
        if isinstance(checked, bool):
            d.set("Checked" if checked else "Unchecked", name)

    def on_media(self, data: dict[str, Any], d: _Draft) -> None:
        self.counts["total_media_interactions"] += 1
        _, name = self.name_of(data.get("id"), "media")
        kind = data.get("type")
        if kind == MediaInteraction.PLAY:
            self.counts["video_plays"] += 1
            d.set("Played", name)
        elif kind == MediaInteraction.PAUSE:
            self.counts["video_pauses"] += 1
            d.set("Paused", name)
        elif kind == MediaInteraction.SEEKED:
            d.set("Seeked", f"{name} to {round(_num(data.get('currentTime')))}s")
            d.flag(F.VIDEO_SEEK)
        elif kind == MediaInteraction.VOLUME_CHANGE:
            if data.get("muted"):
                d.set("Muted", name)
            else:
                d.set("Changed volume", f"on {name} to {round(_num(data.get('volume')) * 100)}%")
        elif kind == MediaInteraction.RATE_CHANGE:
            d.set("Changed playback speed", f"on {name} to {data.get('playbackRate') or 1}x")
        else:
            d.set("Interacted with", name)

    def on_console(self, level: Any, payload: Any, trace: Any, d: _Draft) -> None:
        if isinstance(payload, list):
            message = " ".join(str(p) for p in payload)
        else:
            message = str(payload or "")
        if level == "error":
            if not message and isinstance(trace, list) and trace:
                message = str(trace[0])
            d.set("Console Error", (message or "Unknown error")[:MAX_NODE_TEXT])
            d.flag(F.CONSOLE_ERROR)
        elif level == "warn":
            self.counts["console_warnings"] += 1
            d.set("Console Warning", message[:MAX_NODE_TEXT])

    # ----------------------------
    # Custom and plugin events
    # ----------------------------

    def on_custom(self, data: dict[str, Any], d: _Draft) -> None:
        tag = data.get("tag")
        payload = data.get("payload")
        p = payload if isinstance(payload, dict) else {}
        kind = p.get("type")

        if p.get("level") == "error" or kind == "error":
            message = str(p.get("message") or p.get("content") or "Unknown error")
            d.set("Console Error", message[:MAX_NODE_TEXT])
            d.flag(F.CONSOLE_ERROR)
        elif p.get("level") == "warn" or kind == "warning":
            self.counts["console_warnings"] += 1
            d.set("Console Warning", str(p.get("message") or p.get("content") or "")[:MAX_NODE_TEXT])

        if kind == "navigation" or p.get("href"):
            d.set("Navigated", f"to {p.get('href') or p.get('url') or 'new page'}")

        if kind == "selection" or p.get("selection"):
            self.counts["total_selections"] += 1
            selected = str(p.get("selection") or p.get("text") or "")
            if selected:
                d.set("Selected text", f'"{_truncate(selected, MAX_INLINE_TEXT)}"')

        if kind == "copy":
            self.counts["copy_events"] += 1
            d.set("Copied", "text to clipboard")
        elif kind == "paste":
            self.counts["paste_events"] += 1
            d.set("Pasted", "from clipboard")
        elif kind == "cut":
            d.set("Cut", "text to clipboard")
        elif kind in ("submit", "form_submit"):
            d.set("Submitted", "form")
            d.flag(F.FORM_SUBMIT)
        elif kind == "visibilitychange":
            if p.get("hidden"):
                d.set("Switched away", "from tab")
                d.flag(F.TAB_SWITCH)
            else:
                d.set("Returned", "to tab")
        elif kind == "pagehide":
            d.set("Left page")
        elif kind == "pageshow":
            d.set("Returned to page")
        elif kind in ("beforeunload", "mouseleave"):
            d.set("Attempted to leave", "page")
            d.flag(F.EXIT_INTENT)
        elif kind in ("print", "beforeprint"):
            d.set("Printed", "page")
        elif kind == "fullscreenchange":
            d.set("Entered fullscreen" if p.get("isFullscreen") else "Exited fullscreen")
        elif kind == "online":
            d.set("Came online")
        elif kind == "offline":
            d.set("Went offline")
            d.flag(F.OFFLINE)
        elif kind == "storage":
            d.set("Storage changed", str(p.get("key") or ""))
        elif kind in ("keydown", "keypress"):
            self.on_key(p, d)

        if tag == "$pageview":
            d.set("Viewed page", str(p.get("$current_url") or ""))
        elif tag == "$pageleave":
            d.set("Left page")
        elif tag == "$autocapture":
            text = str(p.get("$el_text") or "")
            if text:
                d.set("Interacted with", f'"{_truncate(text, MAX_INLINE_TEXT)}"')
        elif tag == "search":
            d.set("Searched", f'"{p.get("query") or ""}"')
        elif isinstance(tag, str) and tag and tag not in SILENT_TAGS and not d.action:
            d.set("Tracked event", tag)

    def on_key(self, p: dict[str, Any], d: _Draft) -> None:
        key = p.get("key") or p.get("code") or ""
        if not key or not (p.get("ctrlKey") or p.get("metaKey") or p.get("altKey")):
            return
        mods = [
            label
            for label, on in (
                ("Ctrl", p.get("ctrlKey")),
                ("Cmd", p.get("metaKey")),
                ("Alt", p.get("altKey")),
                ("Shift", p.get("shiftKey")),
            )
            if on
        ]
        d.set("Pressed", "+".join([*mods, str(key)]))
        d.flag(F.KEYBOARD_SHORTCUT)

    def on_plugin(self, data: dict[str, Any], d: _Draft) -> None:
        payload = data.get("payload")
        if not isinstance(payload, dict):
            return

        if str(data.get("plugin") or "").startswith(CONSOLE_PLUGIN):
            self.on_console(payload.get("level"), payload.get("payload"), payload.get("trace"), d)

        requests = payload.get("requests")
        if isinstance(requests, list):
            self.on_requests([r for r in requests if isinstance(r, dict)], d)

        if payload.get("type") == "performance" or payload.get("performanceEntries"):
            lcp = _num(payload.get("largestContentfulPaint") or payload.get("lcp"))
            if lcp > self.t.slow_lcp_ms:
                d.set("Slow page load", f"LCP: {round(lcp)}ms")
                d.flag(F.SLOW_LOAD)

    def on_requests(self, requests: list[dict[str, Any]], d: _Draft) -> None:
        def status(r: dict[str, Any]) -> float:
            return _num(r.get("responseStatus"), default=-1)

        failed = [r for r in requests if status(r) >= 400 or status(r) == 0]
        if failed:
            self.counts["failed_requests"] += len(failed)
            codes = list(dict.fromkeys(int(status(r)) for r in failed))
            d.set("Network error", f"{len(failed)} failed request(s) - {', '.join(map(str, codes))}")
            d.flag(F.NETWORK_ERROR)

        slow = [r for r in requests if _num(r.get("duration")) > self.t.slow_request_ms and 0 < status(r) < 400]
        if slow:
            d.set("Slow network", f"{len(slow)} slow request(s)")
            d.flag(F.SLOW_NETWORK)

    # ----------------------------
    # Result
    # ----------------------------

    def summary(self) -> SessionSummary:
        names = {f.name for f in fields(SessionSummary)}
        values = {k: v for k, v in self.counts.items() if k in names}
        values["scroll_depth_max"] = self.scroll_depth_max
        values["hover_time"] = self.hover_time
        values["idle_time"] = round(self.idle_ms / 1000)
        return SessionSummary(**values)


class SemanticSessionParser:
    """
    Reduce a canonical event stream to a SemanticSession in a single forward pass.

    Stateless between calls: every parse builds its own pass state, so one parser
    can be shared across sessions.
    """

    def __init__(
        self,
        *,
        thresholds: ParserThresholds | None = None,
        signal_thresholds: SignalThresholds | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.thresholds = thresholds or ParserThresholds()
        self.signal_thresholds = signal_thresholds or SignalThresholds()
        self._logger = logger or get_logger(__name__)

        for f in fields(self.thresholds):
            if getattr(self.thresholds, f.name) <= 0:
                raise ValueError(f"parser.{f.name} must be > 0")

    def parse(self, events: Sequence[CanonicalEvent], *, session_id: str | None = None) -> SemanticSession:
        if not events:
            raise NoValidEvents("cannot parse a session without events")
        ordered = sort_events(events)
        if not has_full_snapshot(ordered):
            raise MissingFullSnapshot("session has no full DOM snapshot")

        state = _Pass(ordered, self.thresholds)
        state.read_context()
        state.run()

        summary = state.summary()
        session = SemanticSession(
            page_url=state.page_url,
            page_title=state.page_title,
            total_duration=format_clock(ordered[-1].timestamp - ordered[0].timestamp),
            event_count=len(ordered),
            viewport_width=state.viewport[0],
            viewport_height=state.viewport[1],
            logs=tuple(state.logs),
            summary=summary,
            behavioral_signals=classify_behavior(summary, self.signal_thresholds),
        )
        self._logger.debug(
            "parsed",
            extra={"session_id": session_id, "event_count": session.event_count, "feature": "semantic_parser"},
        )
        return session


def parse_session(
    events: Sequence[CanonicalEvent],
    *,
    thresholds: ParserThresholds | None = None,
    signal_thresholds: SignalThresholds | None = None,
) -> SemanticSession:
    return SemanticSessionParser(thresholds=thresholds, signal_thresholds=signal_thresholds).parse(events)
