"""
Event log for registry operations.

Every phase of a tool call (receipt, validation, dispatch, execution,
result) is appended here so a session can be inspected after the fact.
The log is append-only; when a bound is configured the oldest events are
dropped first.
"""

import json
from collections import deque
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Any


class EventType(Enum):
    """Types of events in the registry event log."""
    TOOL_REGISTERED = "tool_registered"
    TOOL_OVERWRITTEN = "tool_overwritten"
    TOOL_UNREGISTERED = "tool_unregistered"
    TOOL_CALL_RECEIVED = "tool_call_received"
    SCHEMA_VALIDATION = "schema_validation"
    TOOL_DISPATCH = "tool_dispatch"
    TOOL_EXECUTION_START = "tool_execution_start"
    TOOL_EXECUTION_END = "tool_execution_end"
    TOOL_RESULT_RETURNED = "tool_result_returned"
    CONTEXT_SET = "context_set"
    TURN_START = "turn_start"
    TURN_END = "turn_end"
    TURN_CANCELLED = "turn_cancelled"
    ERROR = "error"


@dataclass
class RegistryEvent:
    """A single event in the registry event log."""
    timestamp: datetime
    event_type: EventType
    tool_name: str
    data: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "tool_name": self.tool_name,
            "data": self.data,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RegistryEvent":
        return cls(
            timestamp=datetime.fromisoformat(data["timestamp"]),
            event_type=EventType(data["event_type"]),
            tool_name=data.get("tool_name", ""),
            data=data.get("data", {}),
        )


@dataclass
class EventLog:
    """Append-only event log, optionally bounded to the newest max_events."""
    max_events: int | None = None
    events: deque[RegistryEvent] = field(default_factory=deque)

    def __post_init__(self) -> None:
        self.events = deque(self.events, maxlen=self.max_events)

    def append(self, event: RegistryEvent) -> None:
        self.events.append(event)

    def log_event(
        self,
        event_type: EventType,
        tool_name: str = "",
        **data: Any,
    ) -> RegistryEvent:
        event = RegistryEvent(
            timestamp=datetime.now(UTC),
            event_type=event_type,
            tool_name=tool_name,
            data=data,
        )
        self.append(event)
        return event

    def get_events_for_tool(self, tool_name: str) -> list[RegistryEvent]:
        return [e for e in self.events if e.tool_name == tool_name]

    def get_events_of_type(self, event_type: EventType) -> list[RegistryEvent]:
        return [e for e in self.events if e.event_type == event_type]

    def clear(self) -> None:
        self.events.clear()

    def __len__(self) -> int:
        return len(self.events)

    def save(self, path: Path) -> None:
        lines = [json.dumps(e.to_dict(), default=str) for e in self.events]
        path.write_text("\n".join(lines))

    @classmethod
    def load(cls, path: Path, max_events: int | None = None) -> "EventLog":
        log = cls(max_events=max_events)
        for line in path.read_text().strip().split("\n"):
            if line:
                log.append(RegistryEvent.from_dict(json.loads(line)))
        return log
