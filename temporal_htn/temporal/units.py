"""Time units, level-of-detail (LOD) resolutions and bound rescaling.

A network stores bounds as integer *ticks*. One tick at level ``L`` is
``resolution(L) / resolution(MEDIUM)`` of the network's time unit, so at the
default MEDIUM level a tick is exactly one time unit.

Some STN tools count ticks from the finest level instead, so that one second
at MEDIUM is 100 ticks. Bounds here are anchored at MEDIUM, so a network built
at the default level reads in plain time units. ``rescale_lod`` uses the same
resolution ratio either way.

Rescaling is exact (``fractions.Fraction``); a non-integer result is rounded
half away from zero (``decimal.ROUND_HALF_UP``). That policy is odd-symmetric,
which keeps every reverse bound the exact negation of its forward bound.
"""

from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from fractions import Fraction
from typing import Mapping, Union

from .bounds import Constraint, Number


class TimeUnit(str, Enum):
    """Unit in which a network's bounds are expressed."""

    MICROSECOND = "microsecond"
    MILLISECOND = "millisecond"
    SECOND = "second"
    MINUTE = "minute"
    HOUR = "hour"
    DAY = "day"

    @property
    def microseconds(self) -> int:
        return _UNIT_MICROSECONDS[self]

    @property
    def precision(self) -> int:
        """Rank from finest (1) to coarsest (6)."""
        return list(TimeUnit).index(self) + 1


class LODLevel(str, Enum):
    """Coarseness tag controlling the numeric resolution of bounds."""

    ULTRA_HIGH = "ultra_high"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    VERY_LOW = "very_low"

    @property
    def resolution(self) -> int:
        return _LOD_RESOLUTIONS[self]

    @property
    def precision(self) -> int:
        """Rank from finest (1) to coarsest (5)."""
        return list(LODLevel).index(self) + 1


_UNIT_MICROSECONDS = {
    TimeUnit.MICROSECOND: 1,
    TimeUnit.MILLISECOND: 1_000,
    TimeUnit.SECOND: 1_000_000,
    TimeUnit.MINUTE: 60_000_000,
    TimeUnit.HOUR: 3_600_000_000,
    TimeUnit.DAY: 86_400_000_000,
}

_LOD_RESOLUTIONS = {
    LODLevel.ULTRA_HIGH: 1,
    LODLevel.HIGH: 10,
    LODLevel.MEDIUM: 100,
    LODLevel.LOW: 1000,
    LODLevel.VERY_LOW: 10000,
}

UNIX_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def coerce_time_unit(unit: Union[TimeUnit, str]) -> TimeUnit:
    """Accept either a TimeUnit or its string value."""
    return unit if isinstance(unit, TimeUnit) else TimeUnit(unit)


def coerce_lod_level(level: Union[LODLevel, str]) -> LODLevel:
    return level if isinstance(level, LODLevel) else LODLevel(level)


def lod_resolution_for_level(level: Union[LODLevel, str]) -> int:
    return coerce_lod_level(level).resolution


def unit_to_microseconds(unit: Union[TimeUnit, str]) -> int:
    return coerce_time_unit(unit).microseconds


def unit_conversion_factor(from_unit: Union[TimeUnit, str], to_unit: Union[TimeUnit, str]) -> Fraction:
    """How many ``to_unit`` make up one ``from_unit`` (minute -> second is 60)."""
    return Fraction(unit_to_microseconds(from_unit), unit_to_microseconds(to_unit))


def lod_scale_factor(old_level: Union[LODLevel, str], new_level: Union[LODLevel, str]) -> Fraction:
    """Multiplier that re-expresses ticks at ``old_level`` as ticks at ``new_level``."""
    return Fraction(lod_resolution_for_level(old_level), lod_resolution_for_level(new_level))


def round_half_away(value: Fraction) -> int:
    """Round to the nearest integer, ties away from zero."""
    if value.denominator == 1:
        return value.numerator
    quotient = Decimal(value.numerator) / Decimal(value.denominator)
    return int(quotient.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def scale_bound(bound: Number, factor: Fraction) -> Number:
    if math.isinf(bound):
        return bound
    return round_half_away(Fraction(bound) * factor)


def scale_constraint(constraint: Constraint, factor: Fraction) -> Constraint:
    return (scale_bound(constraint[0], factor), scale_bound(constraint[1], factor))


def scale_constraints(
    constraints: Mapping[tuple[str, str], Constraint], factor: Fraction
) -> dict[tuple[str, str], Constraint]:
    """Uniformly rescale every stored bound."""
    return {key: scale_constraint(value, factor) for key, value in constraints.items()}


def ticks_per_unit(level: Union[LODLevel, str]) -> Fraction:
    """Number of ticks in one time unit at the given level."""
    return Fraction(LODLevel.MEDIUM.resolution, lod_resolution_for_level(level))


def quantity_to_ticks(quantity: Number, level: Union[LODLevel, str]) -> int:
    """Convert an amount expressed in the network's time unit to ticks."""
    return round_half_away(Fraction(quantity) * ticks_per_unit(level))


def timedelta_to_ticks(
    delta: timedelta, unit: Union[TimeUnit, str], level: Union[LODLevel, str]
) -> int:
    micros = delta // timedelta(microseconds=1)
    quantity = Fraction(micros, unit_to_microseconds(unit))
    return round_half_away(quantity * ticks_per_unit(level))


def datetime_to_ticks(
    moment: datetime,
    unit: Union[TimeUnit, str],
    level: Union[LODLevel, str],
    epoch: datetime = UNIX_EPOCH,
) -> int:
    """Offset of ``moment`` from ``epoch`` in ticks. Naive datetimes are taken as UTC."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return timedelta_to_ticks(moment - epoch, unit, level)


def rounding_tolerance(fine_level: Union[LODLevel, str], coarse_level: Union[LODLevel, str]) -> Fraction:
    """Largest per-bound error of a fine -> coarse -> fine LOD round trip."""
    ratio = Fraction(lod_resolution_for_level(coarse_level), lod_resolution_for_level(fine_level))
    return ratio / 2
