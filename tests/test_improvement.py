import random

import pytest

from conftest import planar_matrix
from routeplanner.errors import OptimizationTimeoutError
from routeplanner.models.domain import DistanceMatrix, MatrixCell, Tour
from routeplanner.services.routing.construction import build_initial_tour
from routeplanner.services.routing.improvement import improve_tour
from routeplanner.services.routing.retry import Deadline


def _random_points(seed: int, count: int) -> list[tuple[float, float]]:
    rng = random.Random(seed)
    return [(rng.uniform(0, 100), rng.uniform(0, 100)) for _ in range(count)]


def _assert_local_optimum(tour: Tour, matrix: DistanceMatrix) -> None:
    order = list(tour.order)
    last_mutable = len(order) - 2 if tour.locked_end else len(order) - 1
    base = matrix.path_cost(order)
    for i in range(1, last_mutable):
        for j in range(i + 1, last_mutable + 1):
            candidate = order[:i] + order[i:j + 1][::-1] + order[j + 1:]
            assert matrix.path_cost(candidate) >= base - 1e-6


def test_crossing_tour_is_uncrossed():
    matrix = planar_matrix([(0, 0), (0, 10), (10, 10), (10, 0)])
    crossed = Tour(order=(0, 2, 1, 3, 0), cost=matrix.path_cost((0, 2, 1, 3, 0)), locked_end=True)

    result = improve_tour(crossed, matrix)

    assert result.tour.cost == pytest.approx(40.0)
    assert result.reversals >= 1
    assert result.converged


@pytest.mark.parametrize("seed", range(8))
def test_random_tours_improve_to_local_optimum(seed):
    matrix = planar_matrix(_random_points(seed, 12))
    initial = build_initial_tour(matrix)

    result = improve_tour(initial, matrix)

    assert result.tour.cost <= initial.cost + 1e-9
    assert sorted(result.tour.order) == list(range(12))
    _assert_local_optimum(result.tour, matrix)


@pytest.mark.parametrize("seed", range(4))
def test_fixed_endpoints_never_move(seed):
    matrix = planar_matrix(_random_points(100 + seed, 10))
    initial = build_initial_tour(matrix, fixed_start=3, fixed_end=7)

    result = improve_tour(initial, matrix)

    assert result.tour.order[0] == 3
    assert result.tour.order[-1] == 7
    _assert_local_optimum(result.tour, matrix)


def test_round_trip_keeps_closing_repeat():
    matrix = planar_matrix(_random_points(7, 9))
    initial = build_initial_tour(matrix, round_trip=True)

    result = improve_tour(initial, matrix)

    assert result.tour.order[0] == result.tour.order[-1] == 0
    assert len(result.tour.order) == 10
    _assert_local_optimum(result.tour, matrix)


def test_asymmetric_costs_are_respected():
    # Travelling 1 -> 2 is cheap, 2 -> 1 is expensive.
    durations = [
        [0, 5, 5, 9],
        [5, 0, 1, 5],
        [5, 30, 0, 5],
        [9, 5, 5, 0],
    ]
    cells = tuple(tuple(MatrixCell(value, value) for value in row) for row in durations)
    matrix = DistanceMatrix(cells=cells)
    tour = Tour(order=(0, 2, 1, 3), cost=matrix.path_cost((0, 2, 1, 3)))

    result = improve_tour(tour, matrix)

    assert result.tour.order == (0, 1, 2, 3)
    assert result.tour.cost == pytest.approx(11.0)


def test_improvement_is_deterministic():
    matrix = planar_matrix(_random_points(42, 15))
    initial = build_initial_tour(matrix)

    first = improve_tour(initial, matrix)
    second = improve_tour(initial, matrix)

    assert first.tour == second.tour
    assert first.reversals == second.reversals


def test_sweep_limit_stops_early():
    matrix = planar_matrix(_random_points(3, 15))
    initial = build_initial_tour(matrix)

    result = improve_tour(initial, matrix, max_sweeps=1)

    assert result.sweeps == 1
    assert result.tour.cost <= initial.cost + 1e-9


def test_expired_deadline_aborts():
    matrix = planar_matrix(_random_points(5, 8))
    initial = build_initial_tour(matrix)
    deadline = Deadline(0.0, clock=lambda: 100.0)

    with pytest.raises(OptimizationTimeoutError):
        improve_tour(initial, matrix, deadline=deadline)


def test_tiny_tour_is_already_optimal():
    matrix = planar_matrix([(0, 0), (1, 1)])
    initial = build_initial_tour(matrix)

    result = improve_tour(initial, matrix)

    assert result.tour == initial
    assert result.converged


def test_zero_sweeps_leaves_tour_untouched():
    matrix = planar_matrix(_random_points(9, 10))
    initial = build_initial_tour(matrix)

    result = improve_tour(initial, matrix, max_sweeps=0)

    assert result.sweeps == 0
    assert result.tour.order == initial.order
    assert not result.converged
