import math
import threading

import pytest

from routeplanner.errors import TransientProviderError
from routeplanner.models.domain import DistanceMatrix, MatrixCell, Stop
from routeplanner.services.routing.providers.base import ProviderLeg


def make_stop(index: int, lat: float, lon: float, name: str | None = None) -> Stop:
    label = name or f"Stop {index}"
    return Stop(
        stop_id=f"S{index}",
        address=f"{label} Street",
        display_name=label,
        latitude=lat,
        longitude=lon,
        input_index=index,
    )


def planar_matrix(points: list[tuple[float, float]]) -> DistanceMatrix:
    """Symmetric matrix with Euclidean distance as both metres and seconds."""
    rows = []
    for ax, ay in points:
        row = []
        for bx, by in points:
            d = math.hypot(ax - bx, ay - by)
            row.append(MatrixCell(distance_meters=d, duration_seconds=d))
        rows.append(tuple(row))
    return DistanceMatrix(cells=tuple(rows))


class PlanarProvider:
    """Treats latitude/longitude as plane coordinates; distance equals travel time."""

    name = "planar"

    def __init__(self, max_matrix_elements: int = 10_000, max_matrix_dimension: int = 100) -> None:
        self.max_matrix_elements = max_matrix_elements
        self.max_matrix_dimension = max_matrix_dimension
        self.matrix_calls: list[tuple[int, int]] = []
        self.route_calls: list[tuple[str, str]] = []

    @staticmethod
    def _distance(a: Stop, b: Stop) -> float:
        return math.hypot(a.latitude - b.latitude, a.longitude - b.longitude)

    def fetch_matrix(self, origins, destinations, *, departure_time, consider_traffic):
        self.matrix_calls.append((len(origins), len(destinations)))
        return [
            [MatrixCell(distance_meters=self._distance(o, d), duration_seconds=self._distance(o, d)) for d in destinations]
            for o in origins
        ]

    def fetch_route(self, origin, destination, *, departure_time, consider_traffic):
        self.route_calls.append((origin.stop_id, destination.stop_id))
        distance = self._distance(origin, destination)
        return ProviderLeg(
            distance_meters=distance,
            duration_seconds=distance,
            start_latitude=origin.latitude,
            start_longitude=origin.longitude,
            end_latitude=destination.latitude,
            end_longitude=destination.longitude,
        )

    def check_health(self) -> bool:
        return True


class BlockingProvider(PlanarProvider):
    """Matrix calls hang until ``release`` is set."""

    def __init__(self, **limits) -> None:
        super().__init__(**limits)
        self.release = threading.Event()

    def fetch_matrix(self, origins, destinations, *, departure_time, consider_traffic):
        self.release.wait()
        return super().fetch_matrix(
            origins, destinations, departure_time=departure_time, consider_traffic=consider_traffic
        )


class FlakyProvider(PlanarProvider):
    """Fails the first ``failures`` matrix calls with a transient fault."""

    def __init__(self, failures: int) -> None:
        super().__init__()
        self.failures = failures
        self.attempts = 0

    def fetch_matrix(self, origins, destinations, *, departure_time, consider_traffic):
        self.attempts += 1
        if self.attempts <= self.failures:
            raise TransientProviderError("HTTP 503")
        return super().fetch_matrix(
            origins, destinations, departure_time=departure_time, consider_traffic=consider_traffic
        )


@pytest.fixture
def planar_provider() -> PlanarProvider:
    return PlanarProvider()


@pytest.fixture
def blocking_provider():
    provider = BlockingProvider()
    yield provider
    provider.release.set()


@pytest.fixture
def square_payload() -> dict:
    """A(0,0), B(0,10), C(10,10), D(10,0) supplied in the order A, C, B, D."""
    return {
        "stops": [
            {"stop_id": "A", "address": "A Street", "latitude": 0.0, "longitude": 0.0},
            {"stop_id": "C", "address": "C Street", "latitude": 10.0, "longitude": 10.0},
            {"stop_id": "B", "address": "B Street", "latitude": 0.0, "longitude": 10.0},
            {"stop_id": "D", "address": "D Street", "latitude": 10.0, "longitude": 0.0},
        ],
        "round_trip": True,
        "consider_traffic": False,
    }
