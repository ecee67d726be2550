"""Conversation events, the capped event log and derived interaction state."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Iterator, Mapping

from .protocol import utc_timestamp

MAX_EVENTS = 50
DEFAULT_SENSITIVITY = 0.5

UNKNOWN_CONVERSATION = "unknown"


@dataclass(frozen=True)
class Event:
    """Something observed during a conversation, e.g. ``conversation.echo``."""

    event_type: str
    conversation_id: str = UNKNOWN_CONVERSATION
    timestamp: str = field(default_factory=utc_timestamp)
    properties: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "properties", MappingProxyType(dict(self.properties)))

    @property
    def is_error(self) -> bool:
        return self.event_type.endswith(".error")

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_type": self.event_type,
            "conversation_id": self.conversation_id,
            "timestamp": self.timestamp,
            "properties": dict(self.properties),
        }


class EventLog:
    """Append-only record of the most recent events, oldest evicted first."""

    def __init__(self, max_events: int = MAX_EVENTS):
        self._events: deque[Event] = deque(maxlen=max_events)

    @property
    def max_events(self) -> int:
        return self._events.maxlen or 0

    def append(self, event: Event) -> None:
        self._events.append(event)

    def events(self) -> list[Event]:
        return list(self._events)

    def clear(self) -> None:
        self._events.clear()

    def __iter__(self) -> Iterator[Event]:
        return iter(list(self._events))

    def __len__(self) -> int:
        return len(self._events)


def clamp_sensitivity(value: float) -> float:
    return max(0.0, min(1.0, float(value)))


@dataclass
class InteractionState:
    """Speaking/listening flags and sensitivity derived from the event stream.

    ``is_connected`` is owned by the session, not by event traffic.
    """

    is_connected: bool = False
    is_speaking: bool = False
    is_listening: bool = False
    sensitivity: float = DEFAULT_SENSITIVITY
    last_event: Event | None = None

    def apply(self, event: Event) -> None:
        """Update the state from one event.

        The two flags are independent; both can be true at once.
        """
        event_type = event.event_type
        started = "started" in event_type

        if "speaking" in event_type:
            # The user talking means the avatar is listening
            if "user_" in event_type:
                self.is_listening = started
            else:
                self.is_speaking = started
        elif "listening" in event_type:
            self.is_listening = started

        if "sensitivity" in event_type:
            value = event.properties.get("sensitivity")
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                self.sensitivity = clamp_sensitivity(value)

        self.last_event = event

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_connected": self.is_connected,
            "is_speaking": self.is_speaking,
            "is_listening": self.is_listening,
            "sensitivity": self.sensitivity,
            "last_event": self.last_event.to_dict() if self.last_event else None,
        }
