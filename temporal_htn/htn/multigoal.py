"""Goal satisfaction helpers."""

from __future__ import annotations

from typing import TYPE_CHECKING, Union

from .task import Multigoal, Unigoal

if TYPE_CHECKING:
    from ..state.facts import State
    from .registry import Domain


def goals_not_achieved(domain: "Domain", state: "State", multigoal: Multigoal) -> list[Unigoal]:
    """Unigoals of ``multigoal`` that do not hold in ``state``, in declared order."""
    return [goal for goal in multigoal.goals if not domain.goal_holds(state, goal)]


def goal_achieved(domain: "Domain", state: "State", goal: Union[Unigoal, Multigoal]) -> bool:
    if isinstance(goal, Unigoal):
        return domain.goal_holds(state, goal)
    return not goals_not_achieved(domain, state, goal)


def split_multigoal(domain: "Domain", state: "State", multigoal: Multigoal) -> list[Unigoal]:
    """
    Default multigoal decomposition: the unachieved unigoals followed by the
    multigoal itself, so goals clobbered along the way are retried.

    Returns ``[]`` when everything already holds.
    """
    pending = goals_not_achieved(domain, state, multigoal)
    if not pending:
        return []
    return [*pending, multigoal]
