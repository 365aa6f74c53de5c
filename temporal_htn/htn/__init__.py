"""HTN (Hierarchical Task Network) planner with backtracking decomposition."""

from .task import Command, ItemKind, Multigoal, Task, Unigoal, WorkItem, item_from_dict, items_from_list
from .budgets import PlannerBudgets, BudgetStatus
from .trace import TraceEvent, TraceRecorder
from .result import (
    NOT_APPLICABLE,
    CommandFailure,
    DurativeEffect,
    FailureKind,
    Plan,
    PlannerResult,
    PlannerStats,
    PlanningFailure,
    ScheduledAction,
)
from .registry import Domain, DomainError
from .multigoal import goals_not_achieved, split_multigoal
from .planner import HTNPlanner, PlannerConfig, plan

__all__ = [
    "Command",
    "ItemKind",
    "Multigoal",
    "Task",
    "Unigoal",
    "WorkItem",
    "item_from_dict",
    "items_from_list",
    "PlannerBudgets",
    "BudgetStatus",
    "TraceEvent",
    "TraceRecorder",
    "NOT_APPLICABLE",
    "CommandFailure",
    "DurativeEffect",
    "FailureKind",
    "Plan",
    "PlannerResult",
    "PlannerStats",
    "PlanningFailure",
    "ScheduledAction",
    "Domain",
    "DomainError",
    "goals_not_achieved",
    "split_multigoal",
    "HTNPlanner",
    "PlannerConfig",
    "plan",
]
