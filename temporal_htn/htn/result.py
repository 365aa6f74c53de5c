"""Planner outcome and result types."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import TYPE_CHECKING, Any, Optional, Union

if TYPE_CHECKING:
    from ..state.facts import State
    from ..temporal.bounds import Constraint
    from ..temporal.stn import SimpleTemporalNetwork
    from .task import Command, WorkItem
    from .trace import TraceEvent


class _NotApplicable:
    """Sentinel type for a method that declines to apply."""

    _instance: Optional["_NotApplicable"] = None

    def __new__(cls) -> "_NotApplicable":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "NOT_APPLICABLE"


NOT_APPLICABLE = _NotApplicable()
"""Returned by a method that does not apply. ``[]`` means "nothing left to do"."""


def declined(outcome: Any) -> bool:
    """
    True for NOT_APPLICABLE, None or False.

    All three mean the same thing from a method (it declines) and from a
    command (its preconditions do not hold). ``[]`` is never a decline.
    """
    return outcome is None or outcome is NOT_APPLICABLE or outcome is False


@dataclass(frozen=True)
class CommandFailure:
    """Returned by a command whose preconditions do not hold. Triggers a backtrack."""

    reason: str = "precondition failed"


@dataclass(frozen=True)
class DurativeEffect:
    """
    Result of a command that takes time.

    ``duration`` is a tick count or a ``(min, max)`` pair. ``deadline`` bounds
    the end and ``release`` the start, both as ticks from the network origin.
    """

    state: "State"
    duration: Union[int, float, "Constraint"]
    deadline: Optional[Union[int, float]] = None
    release: Optional[Union[int, float]] = None

    @property
    def duration_bounds(self) -> "Constraint":
        if isinstance(self.duration, tuple):
            return self.duration
        return (self.duration, self.duration)


class FailureKind(Enum):
    """Why a branch or the whole search failed."""

    METHOD_NOT_APPLICABLE = auto()  # Recoverable
    COMMAND_PRECONDITION = auto()  # Recoverable
    INCONSISTENT_NETWORK = auto()  # Recoverable
    GOAL_NOT_ACHIEVED = auto()  # Recoverable
    DEPTH_EXCEEDED = auto()  # Recoverable
    BLACKLISTED = auto()  # Recoverable
    SEARCH_EXHAUSTED = auto()  # Fatal, every branch failed
    UNKNOWN_METHOD = auto()  # Fatal, domain error
    TIMEOUT = auto()  # Fatal, budget exhausted

    @property
    def recoverable(self) -> bool:
        return self not in (FailureKind.SEARCH_EXHAUSTED, FailureKind.UNKNOWN_METHOD, FailureKind.TIMEOUT)


@dataclass(frozen=True)
class PlanningFailure:
    """A failure value. ``cause`` holds the last recoverable failure seen."""

    kind: FailureKind
    message: str
    item: Optional["WorkItem"] = None
    cause: Optional["PlanningFailure"] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.name,
            "message": self.message,
            "item": str(self.item) if self.item is not None else None,
            "cause": self.cause.to_dict() if self.cause is not None else None,
        }


@dataclass(frozen=True)
class ScheduledAction:
    """A durative command placed on the timeline."""

    command: "Command"
    start: Union[int, float]
    end: Union[int, float]


@dataclass
class PlannerStats:
    """Statistics from planner execution."""

    steps: int = 0
    backtracks: int = 0
    max_depth: int = 0
    commands_applied: int = 0
    elapsed_ms: int = 0
    replans: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "steps": self.steps,
            "backtracks": self.backtracks,
            "max_depth": self.max_depth,
            "commands_applied": self.commands_applied,
            "elapsed_ms": self.elapsed_ms,
            "replans": self.replans,
        }


@dataclass
class Plan:
    """A successful plan: primitive commands in order plus the resulting world."""

    commands: list["Command"]
    final_state: "State"
    schedule: list[ScheduledAction] = field(default_factory=list)
    network: Optional["SimpleTemporalNetwork"] = None
    stats: PlannerStats = field(default_factory=PlannerStats)

    def __len__(self) -> int:
        return len(self.commands)


@dataclass
class PlannerResult:
    """Final result from the HTN planner."""

    success: bool
    plan: Optional[Plan] = None
    failure: Optional[PlanningFailure] = None
    stats: PlannerStats = field(default_factory=PlannerStats)
    trace: list["TraceEvent"] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly summary."""
        from .task import item_to_dict

        out: dict[str, Any] = {
            "success": self.success,
            "plan": None,
            "schedule": [],
            "final_state": None,
            "stats": self.stats.to_dict(),
            "failure": self.failure.to_dict() if self.failure is not None else None,
        }
        if self.plan is not None:
            out["plan"] = [item_to_dict(c) for c in self.plan.commands]
            out["schedule"] = [
                {"command": item_to_dict(s.command), "start": s.start, "end": s.end}
                for s in self.plan.schedule
            ]
            out["final_state"] = self.plan.final_state.to_dict()
        return out
