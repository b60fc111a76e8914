"""Domain models for stops, travel-cost matrices, tours and assembled routes."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional, Sequence

from ..errors import InternalInvariantViolation


class StopRole(str, Enum):
    FIXED_START = "fixed_start"
    FIXED_END = "fixed_end"
    FREE = "free"


@dataclass(frozen=True, slots=True)
class Stop:
    """A place the traveler has to visit, as supplied for one planning request."""

    stop_id: str
    address: str
    display_name: str
    latitude: float
    longitude: float
    input_index: int
    place_id: Optional[str] = None
    role: StopRole = StopRole.FREE

    @property
    def location_key(self) -> str:
        """Identity of the place as the provider sees it; a place id wins over coordinates."""
        if self.place_id:
            return f"place:{self.place_id}"
        return f"{self.latitude:.6f},{self.longitude:.6f}"


@dataclass(frozen=True, slots=True)
class MatrixCell:
    distance_meters: float
    duration_seconds: float
    duration_in_traffic_seconds: Optional[float] = None

    def travel_time(self, use_traffic: bool) -> float:
        if use_traffic and self.duration_in_traffic_seconds is not None:
            return self.duration_in_traffic_seconds
        return self.duration_seconds


ZERO_CELL = MatrixCell(distance_meters=0.0, duration_seconds=0.0, duration_in_traffic_seconds=0.0)


@dataclass(frozen=True, slots=True)
class DistanceMatrix:
    """Complete pairwise travel costs between the stops of one request.

    The table is indexed by stop position and is generally asymmetric. It is
    validated on construction: it must be square, fully populated, zero on
    the diagonal and non-negative everywhere else.
    """

    cells: tuple[tuple[MatrixCell, ...], ...]

    def __post_init__(self) -> None:
        size = len(self.cells)
        for i, row in enumerate(self.cells):
            if len(row) != size:
                raise InternalInvariantViolation(
                    f"Distance matrix row {i} has {len(row)} cells, expected {size}."
                )
            for j, cell in enumerate(row):
                if cell is None:
                    raise InternalInvariantViolation(f"Distance matrix cell [{i}][{j}] is unset.")
                if i == j:
                    if cell.distance_meters != 0 or cell.duration_seconds != 0:
                        raise InternalInvariantViolation(f"Distance matrix diagonal [{i}][{i}] is not zero.")
                    continue
                values = (cell.distance_meters, cell.duration_seconds, cell.duration_in_traffic_seconds)
                if any(value is not None and value < 0 for value in values):
                    raise InternalInvariantViolation(f"Distance matrix cell [{i}][{j}] is negative.")

    @property
    def size(self) -> int:
        return len(self.cells)

    def cell(self, origin: int, destination: int) -> MatrixCell:
        return self.cells[origin][destination]

    def cost(self, origin: int, destination: int, use_traffic: bool = False) -> float:
        """Travel time in seconds, the quantity the tour heuristics minimise."""
        return self.cells[origin][destination].travel_time(use_traffic)

    def path_cost(self, order: Sequence[int], use_traffic: bool = False) -> float:
        return sum(self.cost(a, b, use_traffic) for a, b in zip(order[:-1], order[1:]))

    def path_distance(self, order: Sequence[int]) -> float:
        return sum(self.cells[a][b].distance_meters for a, b in zip(order[:-1], order[1:]))


@dataclass(frozen=True, slots=True)
class Tour:
    """Visiting order over stop positions with its cached travel-time cost.

    ``order[0]`` is always the start. For round trips the start is repeated
    as the last element. ``locked_end`` marks that the last element may not
    move (fixed end or round-trip closing repeat).
    """

    order: tuple[int, ...]
    cost: float
    locked_end: bool = False

    @property
    def is_round_trip(self) -> bool:
        return len(self.order) > 1 and self.order[0] == self.order[-1]


@dataclass(frozen=True, slots=True)
class RouteLeg:
    distance_meters: float
    duration_seconds: float
    distance_text: str
    duration_text: str
    start_address: str
    end_address: str
    start_latitude: float
    start_longitude: float
    end_latitude: float
    end_longitude: float
    duration_in_traffic_seconds: Optional[float] = None
    geometry: Optional[str] = None

    @property
    def effective_duration_seconds(self) -> float:
        if self.duration_in_traffic_seconds is not None:
            return self.duration_in_traffic_seconds
        return self.duration_seconds


@dataclass(frozen=True, slots=True)
class OptimizedRouteResult:
    """Everything a caller needs to display and export an optimized route.

    ``metadata`` is stored as a read-only mapping and left out of the hash.
    """

    stops: tuple[Stop, ...]
    legs: tuple[RouteLeg, ...]
    total_distance_meters: float
    total_duration_seconds: float
    total_distance_text: str
    total_duration_text: str
    waypoint_order: tuple[int, ...]
    route_polyline: Optional[str] = None
    metadata: Mapping[str, Any] = field(default_factory=dict, hash=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))
