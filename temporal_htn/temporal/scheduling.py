"""Interval queries over an STN: overlaps, conflicts and free slots.

Intervals are read from ``<id>_start`` / ``<id>_end`` point pairs. All spans
are half-open, so an interval ending at 10 does not overlap one starting at 10.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Iterable, Iterator, Mapping, Optional, Protocol

from .bounds import Number
from .stn import END_SUFFIX, ORIGIN, START_SUFFIX, end_point, start_point

if TYPE_CHECKING:
    from .stn import SimpleTemporalNetwork


class Span(Protocol):
    start_time: Number
    end_time: Number


@dataclass(frozen=True)
class Interval:
    """A scheduled interval read back from a network."""

    id: str
    start_time: Number
    end_time: Number
    metadata: Mapping[str, Any] = field(default_factory=dict)

    @property
    def duration(self) -> Number:
        return self.end_time - self.start_time

    def overlaps(self, start: Number, end: Number) -> bool:
        return overlaps(self.start_time, self.end_time, start, end)


@dataclass(frozen=True)
class Slot:
    """A free span. ``end_time`` is ``math.inf`` when open-ended."""

    start_time: Number
    end_time: Number

    @property
    def duration(self) -> Number:
        return self.end_time - self.start_time


class IntervalSequence:
    """
    Lazy, restartable view of a network's intervals.

    Every iteration re-reads the network, so the sequence can be consumed any
    number of times. Intervals come out sorted by (start_time, id).
    """

    def __init__(self, network: "SimpleTemporalNetwork") -> None:
        self.network = network

    def __iter__(self) -> Iterator[Interval]:
        for interval_id in _interval_ids(self.network):
            yield _read_interval(self.network, interval_id)

    def __repr__(self) -> str:
        return f"IntervalSequence({len(self.network)} points)"


def overlaps(start_a: Number, end_a: Number, start_b: Number, end_b: Number) -> bool:
    """Half-open overlap test."""
    return start_a < end_b and start_b < end_a


def _interval_ids(network: "SimpleTemporalNetwork") -> list[str]:
    starts = {p[: -len(START_SUFFIX)] for p in network.point_set if p.endswith(START_SUFFIX)}
    ends = {p[: -len(END_SUFFIX)] for p in network.point_set if p.endswith(END_SUFFIX)}
    ids = starts & ends
    ids.discard("")

    def sort_key(interval_id: str) -> tuple[Number, str]:
        return (_anchor(network, start_point(interval_id), 0), interval_id)

    return sorted(ids, key=sort_key)


def _anchor(network: "SimpleTemporalNetwork", point: str, default: Number) -> Number:
    constraint = network.get_constraint(ORIGIN, point)
    if constraint is None or math.isinf(constraint[0]):
        return default
    return constraint[0]


def _read_interval(network: "SimpleTemporalNetwork", interval_id: str) -> Interval:
    start = _anchor(network, start_point(interval_id), 0)
    duration = network.get_constraint(start_point(interval_id), end_point(interval_id))
    lower = 0 if duration is None or math.isinf(duration[0]) else duration[0]
    end = _anchor(network, end_point(interval_id), start + lower)
    return Interval(
        id=interval_id,
        start_time=start,
        end_time=end,
        metadata=dict(network.metadata.get(interval_id, {})),
    )


def get_overlapping_intervals(
    network: "SimpleTemporalNetwork", query_start: Number, query_end: Number
) -> list[Interval]:
    """Intervals overlapping ``[query_start, query_end)``."""
    return [i for i in network.get_intervals() if i.overlaps(query_start, query_end)]


def check_interval_conflicts(
    network: "SimpleTemporalNetwork", new_start: Number, new_end: Number
) -> list[Interval]:
    """Existing intervals that a new interval ``[new_start, new_end)`` would collide with."""
    return get_overlapping_intervals(network, new_start, new_end)


def merge_overlapping_intervals(spans: Iterable[Span]) -> list[Slot]:
    """Collapse overlapping or touching spans into disjoint busy blocks."""
    ordered = sorted(spans, key=lambda s: (s.start_time, s.end_time))
    merged: list[Slot] = []
    for span in ordered:
        if merged and span.start_time <= merged[-1].end_time:
            last = merged[-1]
            merged[-1] = Slot(last.start_time, max(last.end_time, span.end_time))
        else:
            merged.append(Slot(span.start_time, span.end_time))
    return merged


def calculate_interval_gaps(
    spans: Iterable[Span], horizon_end: Number, horizon_start: Number = 0
) -> list[Slot]:
    """
    Free gaps inside ``[horizon_start, horizon_end)``.

    Scans before the first span, between consecutive spans and after the
    last one.
    """
    gaps: list[Slot] = []
    cursor = horizon_start
    for block in merge_overlapping_intervals(spans):
        if block.end_time <= cursor:
            continue
        if block.start_time >= horizon_end:
            break
        if block.start_time > cursor:
            gaps.append(Slot(cursor, block.start_time))
        cursor = max(cursor, block.end_time)
    if cursor < horizon_end:
        gaps.append(Slot(cursor, horizon_end))
    return gaps


def find_free_slots(
    network: "SimpleTemporalNetwork",
    duration: Number,
    window_start: Number,
    window_end: Number,
) -> list[Slot]:
    """Gaps of at least ``duration`` inside ``[window_start, window_end)``."""
    if window_end <= window_start:
        return []
    gaps = calculate_interval_gaps(network.get_intervals(), window_end, window_start)
    return [gap for gap in gaps if gap.duration >= duration]


def find_next_available_slot(
    network: "SimpleTemporalNetwork",
    duration: Number,
    earliest_start: Number,
    horizon: Optional[Number] = None,
) -> Optional[Slot]:
    """
    First gap at or after ``earliest_start`` long enough for ``duration``.

    Without a horizon the search is unbounded, so a slot after the last
    interval always exists and its ``end_time`` is ``math.inf``.
    """
    end = math.inf if horizon is None else horizon
    if end <= earliest_start:
        return None
    for gap in calculate_interval_gaps(network.get_intervals(), end, earliest_start):
        if gap.duration >= duration:
            return gap
    return None
