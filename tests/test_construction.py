import pytest

from conftest import planar_matrix
from routeplanner.errors import InvalidInputError
from routeplanner.models.domain import DistanceMatrix, MatrixCell
from routeplanner.services.routing.construction import build_initial_tour, validate_endpoints


def _matrix(durations: list[list[float]]) -> DistanceMatrix:
    return DistanceMatrix(
        cells=tuple(
            tuple(MatrixCell(distance_meters=value, duration_seconds=value) for value in row) for row in durations
        )
    )


def test_nearest_neighbor_walks_to_closest_stop():
    matrix = planar_matrix([(0, 0), (5, 0), (1, 0), (3, 0)])
    tour = build_initial_tour(matrix)

    assert tour.order == (0, 2, 3, 1)
    assert tour.cost == pytest.approx(5.0)
    assert not tour.locked_end


def test_ties_resolve_to_lowest_index():
    matrix = _matrix(
        [
            [0, 7, 7, 7],
            [7, 0, 1, 1],
            [7, 1, 0, 1],
            [7, 1, 1, 0],
        ]
    )
    assert build_initial_tour(matrix).order == (0, 1, 2, 3)


def test_fixed_start_and_fixed_end():
    matrix = planar_matrix([(0, 0), (1, 0), (2, 0), (3, 0)])
    tour = build_initial_tour(matrix, fixed_start=2, fixed_end=3)

    assert tour.order[0] == 2
    assert tour.order[-1] == 3
    assert sorted(tour.order) == [0, 1, 2, 3]
    assert tour.locked_end


def test_round_trip_repeats_start_and_costs_closing_leg():
    matrix = planar_matrix([(0, 0), (0, 10), (10, 10), (10, 0)])
    tour = build_initial_tour(matrix, round_trip=True)

    assert tour.order[0] == tour.order[-1] == 0
    assert tour.is_round_trip
    assert tour.cost == pytest.approx(40.0)


def test_uses_traffic_durations_when_requested():
    cells = (
        (MatrixCell(0, 0, 0), MatrixCell(10, 10, 50), MatrixCell(20, 20, 20)),
        (MatrixCell(10, 10, 50), MatrixCell(0, 0, 0), MatrixCell(10, 10, 10)),
        (MatrixCell(20, 20, 20), MatrixCell(10, 10, 10), MatrixCell(0, 0, 0)),
    )
    matrix = DistanceMatrix(cells=cells)

    assert build_initial_tour(matrix, use_traffic=False).order == (0, 1, 2)
    assert build_initial_tour(matrix, use_traffic=True).order == (0, 2, 1)


@pytest.mark.parametrize(
    "size, fixed_start, fixed_end, round_trip",
    [
        (1, None, None, False),
        (3, 5, None, False),
        (3, None, -1, False),
        (3, 1, 1, False),
        (3, None, 0, False),
        (3, None, 2, True),
    ],
)
def test_invalid_endpoint_combinations(size, fixed_start, fixed_end, round_trip):
    with pytest.raises(InvalidInputError):
        validate_endpoints(size, fixed_start, fixed_end, round_trip)
