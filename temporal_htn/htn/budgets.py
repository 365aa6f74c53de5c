"""Planner budget configuration and status."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto


class BudgetStatus(Enum):
    """Status of budget checks."""

    OK = auto()
    STEP_LIMIT = auto()
    TIME_EXCEEDED = auto()


@dataclass
class PlannerBudgets:
    """
    Budget configuration for the HTN planner.

    Separates HARD (search stops with TIMEOUT) from SOFT (trace event and
    warning, search continues) limits. Depth is enforced per branch.
    """

    # Hard limits - checked between stack pops
    max_steps: int = 10000
    time_budget_ms: int = 60000  # 1 minute

    # Per-branch limit - deeper expansions fail the branch and backtrack
    max_depth: int = 64

    # Soft limits
    max_backtracks: int = 1000

    # Execution mode
    max_replans: int = 3
