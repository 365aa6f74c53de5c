"""
Simple Temporal Network (STN) value type.

Time points are named anchors (``"move_start"``, ``"move_end"``); constraints
bound the distance ``to - from`` between two points as ``(min, max)``. Every
write returns a new network, so a version held by one search branch is never
changed by another.

Consistency has two levels:

- ``consistent`` is a cheap flag maintained on write. It goes False as soon as
  a constraint empties an existing bound or excludes 0 on a self-loop.
- ``is_consistent()`` runs the Floyd-Warshall closure and is authoritative.
  Call it after any batch of writes before trusting derived bounds.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Iterable, Mapping, Optional, Union

from . import units
from .bounds import Constraint, Number, intersect_constraints, negate, valid_constraint_bounds
from .consistency import ConsistencyReport, check_consistency, derived_constraint
from .units import LODLevel, TimeUnit

if TYPE_CHECKING:
    from .scheduling import Interval, IntervalSequence, Slot

logger = logging.getLogger(__name__)

ORIGIN = "origin"
"""Reference point that absolute start/end times are anchored to."""

START_SUFFIX = "_start"
END_SUFFIX = "_end"


def start_point(interval_id: str) -> str:
    return f"{interval_id}{START_SUFFIX}"


def end_point(interval_id: str) -> str:
    return f"{interval_id}{END_SUFFIX}"


@dataclass(frozen=True)
class IntervalSpec:
    """
    Description of a durative interval to add to a network.

    ``duration`` is a tick count, a ``(min, max)`` tick pair or a timedelta.
    ``start``/``end`` are tick offsets from the origin or datetimes. When
    ``duration`` is omitted both ``start`` and ``end`` must be given.
    """

    id: str
    duration: Union[Number, Constraint, timedelta, None] = None
    start: Union[Number, datetime, None] = None
    end: Union[Number, datetime, None] = None
    metadata: Optional[Mapping[str, Any]] = None


@dataclass(frozen=True)
class SimpleTemporalNetwork:
    """Immutable STN. Build with ``SimpleTemporalNetwork.new()``."""

    point_set: frozenset = frozenset()
    constraints: Mapping[tuple[str, str], Constraint] = field(
        default_factory=lambda: MappingProxyType({})
    )
    consistent: bool = True
    time_unit: TimeUnit = TimeUnit.SECOND
    lod_level: LODLevel = LODLevel.MEDIUM
    metadata: Mapping[str, Mapping[str, Any]] = field(
        default_factory=lambda: MappingProxyType({})
    )
    parallel: bool = False
    workers: int = 4

    @classmethod
    def new(
        cls,
        time_unit: Union[TimeUnit, str] = TimeUnit.SECOND,
        lod_level: Union[LODLevel, str] = LODLevel.MEDIUM,
        *,
        parallel: bool = False,
        workers: int = 4,
    ) -> "SimpleTemporalNetwork":
        return cls(
            time_unit=units.coerce_time_unit(time_unit),
            lod_level=units.coerce_lod_level(lod_level),
            parallel=parallel,
            workers=workers,
        )

    # =========================================================================
    # Time points and constraints
    # =========================================================================

    @property
    def lod_resolution(self) -> int:
        return self.lod_level.resolution

    @property
    def time_points(self) -> tuple[str, ...]:
        """All time points, sorted for a deterministic matrix layout."""
        return tuple(sorted(self.point_set))

    def __len__(self) -> int:
        return len(self.point_set)

    def add_time_point(self, point: str) -> "SimpleTemporalNetwork":
        if point in self.point_set:
            return self
        return replace(self, point_set=self.point_set | {point})

    def add_constraint(
        self, from_point: str, to_point: str, constraint: Constraint
    ) -> "SimpleTemporalNetwork":
        """
        Insert or tighten the bound on ``to_point - from_point``.

        Both directions are stored: (from, to) as given and (to, from) as
        ``(-max, -min)``. Existing bounds are only ever narrowed. Propagation
        does not run here.
        """
        min_dist, max_dist = constraint
        if not valid_constraint_bounds(min_dist, max_dist):
            raise ValueError(f"Invalid constraint bounds: {constraint!r}")

        constraints = dict(self.constraints)
        ok_forward = _tighten_into(constraints, (from_point, to_point), (min_dist, max_dist))
        ok_reverse = _tighten_into(constraints, (to_point, from_point), negate((min_dist, max_dist)))
        ok_self = from_point != to_point or min_dist <= 0 <= max_dist

        consistent = self.consistent and ok_forward and ok_reverse and ok_self
        if not consistent and self.consistent:
            logger.debug(
                "Constraint %s -> %s %r makes the network inconsistent",
                from_point,
                to_point,
                constraint,
            )

        return replace(
            self,
            point_set=self.point_set | {from_point, to_point},
            constraints=MappingProxyType(constraints),
            consistent=consistent,
        )

    def add_constraints(
        self, entries: Iterable[tuple[str, str, Constraint]]
    ) -> "SimpleTemporalNetwork":
        network = self
        for from_point, to_point, constraint in entries:
            network = network.add_constraint(from_point, to_point, constraint)
        return network

    def remove_constraint(self, from_point: str, to_point: str) -> "SimpleTemporalNetwork":
        """
        Drop both directions of a constraint. Unknown pairs return the network unchanged.

        The ``consistent`` flag is re-derived from the closure, since the
        removed bound may have been the one that made the network inconsistent.
        """
        key, reverse_key = (from_point, to_point), (to_point, from_point)
        if key not in self.constraints or reverse_key not in self.constraints:
            return self
        constraints = {k: v for k, v in self.constraints.items() if k not in (key, reverse_key)}
        reduced = replace(self, constraints=MappingProxyType(constraints))
        return replace(reduced, consistent=reduced.check_consistency().consistent)

    def get_constraint(self, from_point: str, to_point: str) -> Optional[Constraint]:
        return self.constraints.get((from_point, to_point))

    def add_interval(self, interval: IntervalSpec) -> "SimpleTemporalNetwork":
        """Add ``<id>_start``/``<id>_end`` with a duration constraint and optional anchors."""
        first, last = start_point(interval.id), end_point(interval.id)
        start_ticks = self._to_ticks(interval.start)
        end_ticks = self._to_ticks(interval.end)

        if interval.duration is None:
            if start_ticks is None or end_ticks is None:
                raise ValueError(
                    f"Interval {interval.id!r} needs a duration or both start and end"
                )
            duration: Constraint = (end_ticks - start_ticks, end_ticks - start_ticks)
        else:
            duration = self._duration_constraint(interval.duration)

        network = self.add_time_point(first).add_time_point(last)
        network = network.add_constraint(first, last, duration)
        if start_ticks is not None:
            network = network.add_constraint(ORIGIN, first, (start_ticks, start_ticks))
        if end_ticks is not None:
            network = network.add_constraint(ORIGIN, last, (end_ticks, end_ticks))
        if interval.metadata:
            network = network.with_metadata(interval.id, **interval.metadata)
        return network

    def with_metadata(self, interval_id: str, **data: Any) -> "SimpleTemporalNetwork":
        merged = dict(self.metadata)
        merged[interval_id] = MappingProxyType({**merged.get(interval_id, {}), **data})
        return replace(self, metadata=MappingProxyType(merged))

    def _to_ticks(self, value: Union[Number, datetime, None]) -> Optional[Number]:
        if value is None:
            return None
        if isinstance(value, datetime):
            return units.datetime_to_ticks(value, self.time_unit, self.lod_level)
        return value

    def _duration_constraint(self, duration: Union[Number, Constraint, timedelta]) -> Constraint:
        if isinstance(duration, timedelta):
            ticks = units.timedelta_to_ticks(duration, self.time_unit, self.lod_level)
            bound: Constraint = (ticks, ticks)
        elif isinstance(duration, tuple):
            bound = duration
        else:
            bound = (duration, duration)
        if bound[0] < 0:
            raise ValueError(f"Interval duration must be non-negative, got {bound!r}")
        return bound

    # =========================================================================
    # Consistency
    # =========================================================================

    def check_consistency(self) -> ConsistencyReport:
        """Full Floyd-Warshall closure over the current constraints."""
        return check_consistency(
            self.time_points, self.constraints, parallel=self.parallel, workers=self.workers
        )

    def is_consistent(self) -> bool:
        return self.check_consistency().consistent

    def derived_constraint(self, from_point: str, to_point: str) -> Constraint:
        """Tightest bound on ``to - from`` implied by every path in the network."""
        report = self.check_consistency()
        return derived_constraint(report, from_point, to_point)

    def propagate(self) -> "SimpleTemporalNetwork":
        """
        Replace stored bounds with the tightest derived ones.

        Pairs with no finite bound in either direction stay unstored. An
        inconsistent network comes back flagged and otherwise unchanged.
        """
        report = self.check_consistency()
        if not report.consistent:
            return replace(self, consistent=False)

        constraints: dict[tuple[str, str], Constraint] = {}
        points = report.points
        for i, from_point in enumerate(points):
            for j, to_point in enumerate(points):
                if i == j:
                    continue
                upper, lower = report.matrix[i][j], -report.matrix[j][i]
                if math.isinf(upper) and math.isinf(lower):
                    continue
                constraints[(from_point, to_point)] = (lower, upper)
        return replace(self, constraints=MappingProxyType(constraints), consistent=True)

    # =========================================================================
    # Scheduling queries
    # =========================================================================

    def get_intervals(self) -> "IntervalSequence":
        from .scheduling import IntervalSequence

        return IntervalSequence(self)

    def get_overlapping_intervals(self, query_start: Number, query_end: Number) -> list["Interval"]:
        from .scheduling import get_overlapping_intervals

        return get_overlapping_intervals(self, query_start, query_end)

    def check_interval_conflicts(self, new_start: Number, new_end: Number) -> list["Interval"]:
        from .scheduling import check_interval_conflicts

        return check_interval_conflicts(self, new_start, new_end)

    def find_free_slots(
        self, duration: Number, window_start: Number, window_end: Number
    ) -> list["Slot"]:
        from .scheduling import find_free_slots

        return find_free_slots(self, duration, window_start, window_end)

    def find_next_available_slot(
        self, duration: Number, earliest_start: Number, horizon: Optional[Number] = None
    ) -> Optional["Slot"]:
        from .scheduling import find_next_available_slot

        return find_next_available_slot(self, duration, earliest_start, horizon)

    # =========================================================================
    # Units and level of detail
    # =========================================================================

    def rescale_lod(self, new_level: Union[LODLevel, str]) -> "SimpleTemporalNetwork":
        """Re-express every bound at another level of detail, then re-check consistency."""
        new_level = units.coerce_lod_level(new_level)
        if new_level == self.lod_level:
            return self
        factor = units.lod_scale_factor(self.lod_level, new_level)
        return self._rescaled(factor, lod_level=new_level)

    def convert_units(self, new_unit: Union[TimeUnit, str]) -> "SimpleTemporalNetwork":
        """Re-express every bound in another time unit, then re-check consistency."""
        new_unit = units.coerce_time_unit(new_unit)
        if new_unit == self.time_unit:
            return self
        factor = units.unit_conversion_factor(self.time_unit, new_unit)
        return self._rescaled(factor, time_unit=new_unit)

    def _rescaled(self, factor, **changes: Any) -> "SimpleTemporalNetwork":
        scaled = replace(
            self,
            constraints=MappingProxyType(units.scale_constraints(self.constraints, factor)),
            **changes,
        )
        report = scaled.check_consistency()
        if not report.consistent:
            logger.warning("Rescaling by %s made the network inconsistent", factor)
        return replace(scaled, consistent=report.consistent)


def _tighten_into(
    constraints: dict[tuple[str, str], Constraint], key: tuple[str, str], bound: Constraint
) -> bool:
    """
    Narrow ``constraints[key]`` by ``bound`` in place.

    An empty intersection still stores the crossed pair (min > max) so the
    closure sees the conflict; the return value reports whether it was empty.
    """
    existing = constraints.get(key)
    if existing is None:
        constraints[key] = bound
        return True
    intersected = intersect_constraints(existing, bound)
    if intersected is None:
        constraints[key] = (max(existing[0], bound[0]), min(existing[1], bound[1]))
        return False
    constraints[key] = intersected
    return True
