"""Bound arithmetic for STN constraints.

A constraint is a ``(min, max)`` pair of numbers where ``-math.inf`` and
``math.inf`` stand for an unconstrained side.
"""

from __future__ import annotations

import math
from typing import Optional, Union

Number = Union[int, float]
Constraint = tuple[Number, Number]

UNBOUNDED: Constraint = (-math.inf, math.inf)


def valid_constraint_bounds(min_dist: Number, max_dist: Number) -> bool:
    """Return True if the pair is a usable constraint (min <= max, no NaN)."""
    if isinstance(min_dist, bool) or isinstance(max_dist, bool):
        return False
    if not isinstance(min_dist, (int, float)) or not isinstance(max_dist, (int, float)):
        return False
    if math.isnan(min_dist) or math.isnan(max_dist):
        return False
    if min_dist == math.inf or max_dist == -math.inf:
        return False
    return min_dist <= max_dist


def negate(constraint: Constraint) -> Constraint:
    """Reverse-edge form of a constraint: bound on ``from - to``."""
    min_dist, max_dist = constraint
    return (-max_dist, -min_dist)


def intersect_constraints(first: Constraint, second: Constraint) -> Optional[Constraint]:
    """
    Most restrictive constraint compatible with both inputs.

    Returns None when the intersection is empty.
    """
    new_min = max(first[0], second[0])
    new_max = min(first[1], second[1])
    if new_min > new_max:
        return None
    return (new_min, new_max)


def tighten_constraint(existing: Constraint, tightening: Constraint) -> Constraint:
    """
    Narrow ``existing`` by ``tightening``.

    A looser or incompatible tightening leaves the existing bounds unchanged.
    """
    intersected = intersect_constraints(existing, tightening)
    if intersected is None:
        return existing
    return intersected


def contains(constraint: Constraint, value: Number) -> bool:
    return constraint[0] <= value <= constraint[1]


def is_finite(value: Number) -> bool:
    return not math.isinf(value)
