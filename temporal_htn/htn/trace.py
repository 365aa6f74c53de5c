"""Trace events for debugging and replay."""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from typing import Any, Optional

METHOD_SELECTED = "METHOD_SELECTED"
METHOD_DECLINED = "METHOD_DECLINED"
COMMAND_APPLIED = "COMMAND_APPLIED"
COMMAND_FAILED = "COMMAND_FAILED"
GOAL_SATISFIED = "GOAL_SATISFIED"
GOAL_VERIFIED = "GOAL_VERIFIED"
BACKTRACK = "BACKTRACK"
BUDGET_EXCEEDED = "BUDGET_EXCEEDED"
REPLAN = "REPLAN"
SOFT_BUDGET_BACKTRACKS = "SOFT_BUDGET_BACKTRACKS"


@dataclass
class TraceEvent:
    """Single trace event capturing planner activity."""

    event_type: str
    timestamp_ms: int
    data: dict[str, Any] = field(default_factory=dict)
    item: Optional[str] = None
    method_name: Optional[str] = None
    depth: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_type": self.event_type,
            "timestamp_ms": self.timestamp_ms,
            "data": self.data,
            "item": self.item,
            "method_name": self.method_name,
            "depth": self.depth,
        }


class TraceRecorder:
    """Records trace events during a planner run. Disabled recorders drop events."""

    def __init__(self, enabled: bool = True) -> None:
        self.enabled = enabled
        self.events: list[TraceEvent] = []

    def log(
        self,
        event_type: str,
        data: dict[str, Any],
        *,
        item: Optional[str] = None,
        method_name: Optional[str] = None,
        depth: int = 0,
    ) -> None:
        """Log a trace event."""
        if not self.enabled:
            return
        self.events.append(
            TraceEvent(
                event_type=event_type,
                timestamp_ms=int(time.time() * 1000),
                data=data,
                item=item,
                method_name=method_name,
                depth=depth,
            )
        )

    def clear(self) -> None:
        self.events.clear()

    def export_json(self, indent: int = 2) -> str:
        """Export trace as JSON string."""
        return json.dumps([e.to_dict() for e in self.events], indent=indent, default=str)

    def filter_by_type(self, event_type: str) -> list[TraceEvent]:
        return [e for e in self.events if e.event_type == event_type]

    def filter_by_item(self, item: str) -> list[TraceEvent]:
        """Get all events for one work item (matched on its string form)."""
        return [e for e in self.events if e.item == item]
