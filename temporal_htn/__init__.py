"""Temporal HTN planner package."""

__version__ = "0.1.0"
__author__ = "temporal-htn"

from .htn import (
    NOT_APPLICABLE,
    Command,
    CommandFailure,
    Domain,
    DomainError,
    DurativeEffect,
    HTNPlanner,
    Multigoal,
    PlannerBudgets,
    PlannerConfig,
    PlannerResult,
    Task,
    Unigoal,
    plan,
)
from .state import State
from .temporal import IntervalSpec, LODLevel, SimpleTemporalNetwork, TimeUnit

__all__ = [
    "NOT_APPLICABLE",
    "Command",
    "CommandFailure",
    "Domain",
    "DomainError",
    "DurativeEffect",
    "HTNPlanner",
    "Multigoal",
    "PlannerBudgets",
    "PlannerConfig",
    "PlannerResult",
    "Task",
    "Unigoal",
    "plan",
    "State",
    "IntervalSpec",
    "LODLevel",
    "SimpleTemporalNetwork",
    "TimeUnit",
]
