from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from sessionlens.features.events.schema import CanonicalEvent

# ----------------------------
# Errors
# ----------------------------


class DecodeError(ValueError):
    """One vendor item could not be decoded. Skipped, never fatal to a session."""


class SessionError(Exception):
    """A whole session cannot be analyzed. Reported to the caller."""

    reason = "session_error"


class NoValidEvents(SessionError):
    reason = "no_valid_events"


class MissingFullSnapshot(SessionError):
    reason = "missing_full_snapshot"


class UnreadablePayload(SessionError):
    """The payload file could not be read as UTF-8 text."""

    reason = "unreadable_payload"


# ----------------------------
# Sources and input variants
# ----------------------------


class SessionSource(str, Enum):
    AUTO = "auto"
    RRWEB = "rrweb"
    BLOB_V2 = "blob_v2"
    AMPLITUDE = "amplitude"
    MIXPANEL = "mixpanel"


@dataclass(frozen=True, slots=True)
class NativeRRWebItem:
    """An rrweb event, either already a mapping or a JSON string."""

    raw: Any


@dataclass(frozen=True, slots=True)
class BlobV2Item:
    """
    One event out of a blob line. `cv` marks a gzip+base64 `data` field.
    """

    event: dict[str, Any]
    window_id: str

    @property
    def is_compressed(self) -> bool:
        return bool(self.event.get("cv")) and isinstance(self.event.get("data"), str)


def parse_amplitude_time(event_time: str) -> int:
    # Amplitude format: "2024-01-15 10:30:00.000000" (UTC, no zone suffix)
    dt = datetime.fromisoformat(event_time.strip().replace(" ", "T", 1))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return int(round(dt.timestamp() * 1000))


@dataclass(frozen=True, slots=True)
class AmplitudeEvent:
    event_type: str
    timestamp_ms: int
    event_properties: dict[str, Any]
    user_id: str | None = None
    device_id: str | None = None
    session_id: Any = None

    @classmethod
    def from_raw(cls, raw: Any) -> AmplitudeEvent:
        if not isinstance(raw, dict):
            raise DecodeError(f"amplitude event must be an object, got {type(raw).__name__}")
        event_type = raw.get("event_type")
        event_time = raw.get("event_time")
        if not isinstance(event_type, str) or not event_type:
            raise DecodeError("amplitude event is missing event_type")
        if not isinstance(event_time, str):
            raise DecodeError(f"amplitude event {event_type!r} is missing event_time")
        try:
            ts = parse_amplitude_time(event_time)
        except ValueError as e:
            raise DecodeError(f"unparseable event_time {event_time!r}") from e
        props = raw.get("event_properties") or {}
        if not isinstance(props, dict):
            raise DecodeError("event_properties must be an object")
        return cls(
            event_type=event_type,
            timestamp_ms=ts,
            event_properties=dict(props),
            user_id=raw.get("user_id"),
            device_id=raw.get("device_id"),
            session_id=raw.get("session_id"),
        )


@dataclass(frozen=True, slots=True)
class MixpanelEvent:
    event: str
    timestamp_ms: int
    properties: dict[str, Any]

    @classmethod
    def from_raw(cls, raw: Any) -> MixpanelEvent:
        if not isinstance(raw, dict):
            raise DecodeError(f"mixpanel event must be an object, got {type(raw).__name__}")
        name = raw.get("event")
        props = raw.get("properties")
        if not isinstance(name, str) or not name:
            raise DecodeError("mixpanel event is missing its name")
        if not isinstance(props, dict):
            raise DecodeError(f"mixpanel event {name!r} has no properties")
        t = props.get("time")
        if isinstance(t, bool) or not isinstance(t, int | float):
            raise DecodeError(f"mixpanel event {name!r} has no numeric time")
        # Mixpanel exports epoch seconds
        return cls(event=name, timestamp_ms=int(round(float(t) * 1000)), properties=dict(props))


# ----------------------------
# Results
# ----------------------------


@dataclass(frozen=True)
class DecodeResult:
    source: SessionSource
    events: tuple[CanonicalEvent, ...]
    skipped: int = 0
    errors: tuple[str, ...] = field(default_factory=tuple)

    @property
    def event_count(self) -> int:
        return len(self.events)
