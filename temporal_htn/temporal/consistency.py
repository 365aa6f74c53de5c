"""Floyd-Warshall closure and consistency checking for STNs."""

from __future__ import annotations

import concurrent.futures
import logging
import math
from dataclasses import dataclass, field
from typing import Mapping, Optional, Sequence

from .bounds import Constraint, Number

logger = logging.getLogger(__name__)

DistanceMatrix = list[list[Number]]


@dataclass(frozen=True)
class ConsistencyReport:
    """Outcome of a full consistency check."""

    consistent: bool
    points: tuple[str, ...] = ()
    matrix: DistanceMatrix = field(default_factory=list, compare=False, repr=False)
    negative_cycle_points: tuple[str, ...] = ()

    @property
    def reason(self) -> Optional[str]:
        if self.consistent:
            return None
        names = ", ".join(self.negative_cycle_points)
        return f"Negative cycle through time points: {names}"


def build_distance_matrix(
    points: Sequence[str], constraints: Mapping[tuple[str, str], Constraint]
) -> DistanceMatrix:
    """
    N x N matrix where cell (i, j) is the tightest known upper bound on t_j - t_i.

    The lower bound of a constraint (i, j) is entered as the reversed edge
    (j, i) with the negated value. Diagonal cells start at 0.
    """
    index = {name: i for i, name in enumerate(points)}
    size = len(points)
    matrix: DistanceMatrix = [[math.inf] * size for _ in range(size)]
    for i in range(size):
        matrix[i][i] = 0

    for (from_point, to_point), (min_dist, max_dist) in constraints.items():
        if from_point not in index or to_point not in index:
            continue
        i, j = index[from_point], index[to_point]
        if max_dist < matrix[i][j]:
            matrix[i][j] = max_dist
        if -min_dist < matrix[j][i]:
            matrix[j][i] = -min_dist

    return matrix


def _relax_rows(
    matrix: DistanceMatrix, k: int, row_k: Sequence[Number], rows: range
) -> None:
    """Relax ``rows`` through intermediate point ``k`` against a snapshot of row k."""
    for i in rows:
        row_i = matrix[i]
        d_ik = row_i[k]
        if d_ik == math.inf:
            continue
        for j, d_kj in enumerate(row_k):
            candidate = d_ik + d_kj
            if candidate < row_i[j]:
                row_i[j] = candidate


def floyd_warshall(matrix: DistanceMatrix) -> DistanceMatrix:
    """
    All-pairs shortest paths. Returns a new matrix; the input is untouched.

    Each pass k computes D(k) from D(k-1): row k is read from a snapshot
    taken before the pass, so no row depends on another row's progress.
    """
    closed = [list(row) for row in matrix]
    size = len(closed)
    for k in range(size):
        _relax_rows(closed, k, list(closed[k]), range(size))
    return closed


def floyd_warshall_parallel(matrix: DistanceMatrix, workers: int = 4) -> DistanceMatrix:
    """
    Row-parallel Floyd-Warshall.

    Within one pass every row only reads itself and the row-k snapshot, so
    rows are split into chunks relaxed on a thread pool. The result is
    identical to ``floyd_warshall(matrix)``.
    """
    closed = [list(row) for row in matrix]
    size = len(closed)
    if size == 0:
        return closed

    workers = max(1, min(workers, size))
    chunk = math.ceil(size / workers)
    chunks = [range(start, min(start + chunk, size)) for start in range(0, size, chunk)]

    with concurrent.futures.ThreadPoolExecutor(max_workers=workers) as executor:
        for k in range(size):
            row_k = list(closed[k])
            futures = [executor.submit(_relax_rows, closed, k, row_k, rows) for rows in chunks]
            for future in futures:
                future.result()

    return closed


def check_consistency(
    points: Sequence[str],
    constraints: Mapping[tuple[str, str], Constraint],
    *,
    parallel: bool = False,
    workers: int = 4,
) -> ConsistencyReport:
    """
    Run the closure and report whether any diagonal cell went negative.

    A network without time points is trivially consistent.
    """
    ordered = tuple(points)
    if not ordered:
        return ConsistencyReport(consistent=True)

    matrix = build_distance_matrix(ordered, constraints)
    if parallel:
        closed = floyd_warshall_parallel(matrix, workers=workers)
    else:
        closed = floyd_warshall(matrix)

    negative = tuple(ordered[i] for i in range(len(ordered)) if closed[i][i] < 0)
    if negative:
        logger.debug("STN inconsistent, negative cycle through %s", negative)

    return ConsistencyReport(
        consistent=not negative,
        points=ordered,
        matrix=closed,
        negative_cycle_points=negative,
    )


def derived_constraint(report: ConsistencyReport, from_point: str, to_point: str) -> Constraint:
    """Tightest (min, max) on ``to - from`` implied by a closed matrix."""
    index = {name: i for i, name in enumerate(report.points)}
    i, j = index[from_point], index[to_point]
    return (-report.matrix[j][i], report.matrix[i][j])
