"""Simple Temporal Network engine: constraints, consistency, scheduling and units."""

from .bounds import UNBOUNDED, Constraint, intersect_constraints, tighten_constraint
from .consistency import ConsistencyReport, check_consistency
from .scheduling import (
    Interval,
    IntervalSequence,
    Slot,
    calculate_interval_gaps,
    merge_overlapping_intervals,
)
from .stn import ORIGIN, IntervalSpec, SimpleTemporalNetwork
from .units import LODLevel, TimeUnit, lod_resolution_for_level

__all__ = [
    "UNBOUNDED",
    "Constraint",
    "intersect_constraints",
    "tighten_constraint",
    "ConsistencyReport",
    "check_consistency",
    "Interval",
    "IntervalSequence",
    "Slot",
    "calculate_interval_gaps",
    "merge_overlapping_intervals",
    "ORIGIN",
    "IntervalSpec",
    "SimpleTemporalNetwork",
    "LODLevel",
    "TimeUnit",
    "lod_resolution_for_level",
]
