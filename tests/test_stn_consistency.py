"""Tests for Floyd-Warshall consistency checking."""

import math

import pytest

from temporal_htn.temporal import SimpleTemporalNetwork, check_consistency
from temporal_htn.temporal.consistency import (
    build_distance_matrix,
    floyd_warshall,
    floyd_warshall_parallel,
)


@pytest.fixture
def stn():
    return SimpleTemporalNetwork.new()


def _chain(length, parallel=False):
    """Points p0..pN with p(i) -> p(i+1) in [1, 3] plus a few long-range edges."""
    stn = SimpleTemporalNetwork.new(parallel=parallel, workers=3)
    for i in range(length - 1):
        stn = stn.add_constraint(f"p{i:02d}", f"p{i + 1:02d}", (1, 3))
    for i in range(0, length - 3, 3):
        stn = stn.add_constraint(f"p{i:02d}", f"p{i + 3:02d}", (4, 7))
    return stn


class TestScenarios:
    def test_simple_network_consistent(self, stn):
        network = stn.add_constraint("A_start", "A_end", (10, 10))

        assert network.is_consistent()

        slots = network.find_free_slots(5, 0, 100)
        assert [(s.start_time, s.end_time) for s in slots] == [(10, 100)]

    def test_opposing_constraints_inconsistent(self, stn):
        network = stn.add_constraint("A", "B", (5, 5)).add_constraint("B", "A", (5, 5))

        assert not network.is_consistent()
        report = network.check_consistency()
        assert set(report.negative_cycle_points) == {"A", "B"}
        assert "Negative cycle" in report.reason

    def test_empty_network_consistent(self, stn):
        assert stn.is_consistent()
        assert check_consistency((), {}).consistent

    def test_path_inconsistency_not_caught_by_cheap_flag(self, stn):
        network = (
            stn.add_constraint("A", "B", (10, 20))
            .add_constraint("B", "C", (10, 20))
            .add_constraint("A", "C", (0, 15))
        )

        assert network.consistent
        assert not network.is_consistent()


class TestProperties:
    def test_symmetry(self, stn):
        entries = [("A", "B", (2, 8)), ("B", "C", (1, 4)), ("A", "D", (0, 20)), ("D", "C", (-3, 6))]
        network = stn.add_constraints(entries)

        report = network.check_consistency()

        assert report.consistent
        for u, v, _ in entries:
            low, high = network.derived_constraint(u, v)
            assert network.derived_constraint(v, u) == (-high, -low)

    def test_symmetry_of_stored_bounds(self, stn):
        network = stn.add_constraints([("A", "B", (2, 8)), ("B", "C", (1, math.inf))])
        for (u, v), (low, high) in network.constraints.items():
            assert network.get_constraint(v, u) == (-high, -low)

    def test_idempotence(self):
        network = _chain(10)

        first = network.check_consistency()
        second = network.check_consistency()

        assert first.matrix == second.matrix
        assert first == second

    def test_closure_is_a_fixpoint(self):
        closed = floyd_warshall(build_distance_matrix(*_matrix_inputs(_chain(8))))
        assert floyd_warshall(closed) == closed

    def test_monotonicity(self, stn):
        network = stn.add_constraint("A", "B", (0, 10)).add_constraint("B", "C", (0, 10))
        before = {
            (u, v): network.derived_constraint(u, v)
            for u in network.time_points
            for v in network.time_points
        }

        tighter = network.add_constraint("A", "C", (0, 12)).add_constraint("A", "B", (2, 50))

        for (u, v), (low, high) in before.items():
            new_low, new_high = tighter.derived_constraint(u, v)
            assert new_low >= low
            assert new_high <= high

    def test_input_matrix_untouched(self):
        matrix = build_distance_matrix(*_matrix_inputs(_chain(5)))
        snapshot = [list(row) for row in matrix]

        floyd_warshall(matrix)
        floyd_warshall_parallel(matrix, workers=2)

        assert matrix == snapshot


def _matrix_inputs(network):
    return network.time_points, network.constraints


class TestParallelEquivalence:
    @pytest.mark.parametrize("length", [1, 2, 7, 16])
    def test_same_matrix_as_sequential(self, length):
        sequential = _chain(length).check_consistency()
        parallel = _chain(length, parallel=True).check_consistency()

        assert parallel.consistent == sequential.consistent
        assert parallel.matrix == sequential.matrix

    @pytest.mark.parametrize("workers", [1, 2, 5, 32])
    def test_same_result_when_inconsistent(self, workers):
        network = _chain(9).add_constraint("p00", "p08", (0, 3))
        matrix = build_distance_matrix(network.time_points, network.constraints)

        assert floyd_warshall_parallel(matrix, workers=workers) == floyd_warshall(matrix)
        assert not network.is_consistent()

    def test_parallel_flag_on_network(self):
        network = _chain(12, parallel=True)
        assert network.parallel
        assert network.is_consistent()
