from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Any


class EventType(IntEnum):
    DOM_LOADED = 0
    LOAD = 1
    FULL_SNAPSHOT = 2
    INCREMENTAL_SNAPSHOT = 3
    META = 4
    CUSTOM = 5
    PLUGIN = 6


class NodeType(IntEnum):
    DOCUMENT = 0
    DOCUMENT_TYPE = 1
    ELEMENT = 2
    TEXT = 3
    CDATA = 4
    COMMENT = 5


class IncrementalSource(IntEnum):
    MUTATION = 0
    MOUSE_MOVE = 1
    MOUSE_INTERACTION = 2
    SCROLL = 3
    VIEWPORT_RESIZE = 4
    INPUT = 5
    TOUCH_MOVE = 6
    MEDIA_INTERACTION = 7
    STYLE_SHEET_RULE = 8
    CANVAS_MUTATION = 9
    FONT = 10
    LOG = 11
    DRAG = 12
    STYLE_DECLARATION = 13


class MouseInteraction(IntEnum):
    MOUSE_UP = 0
    MOUSE_DOWN = 1
    CLICK = 2
    CONTEXT_MENU = 3
    DBL_CLICK = 4
    FOCUS = 5
    BLUR = 6
    TOUCH_START = 7
    TOUCH_MOVE_DEPARTED = 8
    TOUCH_END = 9
    TOUCH_CANCEL = 10


class MediaInteraction(IntEnum):
    PLAY = 0
    PAUSE = 1
    SEEKED = 2
    VOLUME_CHANGE = 3
    RATE_CHANGE = 4


# Sources that count as the user doing something (idle timer resets on these)
USER_INPUT_SOURCES: frozenset[int] = frozenset(
    {
        IncrementalSource.MOUSE_MOVE,
        IncrementalSource.MOUSE_INTERACTION,
        IncrementalSource.SCROLL,
        IncrementalSource.INPUT,
        IncrementalSource.TOUCH_MOVE,
        IncrementalSource.MEDIA_INTERACTION,
        IncrementalSource.DRAG,
    }
)


@dataclass(frozen=True, slots=True)
class CanonicalEvent:
    type: EventType
    timestamp: int
    data: Any

    # Replay window the event was captured in (blob sources only)
    window_id: str | None = None

    @property
    def source(self) -> int | None:
        if self.type != EventType.INCREMENTAL_SNAPSHOT or not isinstance(self.data, dict):
            return None
        src = self.data.get("source")
        return src if isinstance(src, int) else None

    def as_row(self) -> dict[str, Any]:
        """
        rrweb-compatible representation (what a replay player consumes).
        """
        row: dict[str, Any] = {
            "type": int(self.type),
            "timestamp": int(self.timestamp),
            "data": self.data,
        }
        if self.window_id is not None:
            row["windowId"] = self.window_id
        return row

