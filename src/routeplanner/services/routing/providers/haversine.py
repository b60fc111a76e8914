"""Offline provider estimating travel from great-circle distance."""

from __future__ import annotations

from datetime import datetime
from typing import Sequence

from ....config import settings
from ....models.domain import MatrixCell, Stop
from ...geospatial import haversine_km
from ..polyline import encode_polyline
from .base import ProviderLeg


class HaversineProvider:
    """Straight-line estimates at a fixed average speed.

    Meant for local development and demos without provider credentials; it is
    only used when selected explicitly in configuration.
    """

    name = "haversine"
    max_matrix_elements = 10_000
    max_matrix_dimension = 100

    def __init__(self, average_speed_kmh: float | None = None) -> None:
        self.average_speed_kmh = average_speed_kmh or settings.haversine_speed_kmh

    def _estimate(self, origin: Stop, destination: Stop) -> tuple[float, float]:
        distance_km = haversine_km(origin.latitude, origin.longitude, destination.latitude, destination.longitude)
        duration_seconds = (distance_km / self.average_speed_kmh) * 3600.0
        return distance_km * 1000.0, duration_seconds

    def fetch_matrix(
        self,
        origins: Sequence[Stop],
        destinations: Sequence[Stop],
        *,
        departure_time: datetime,
        consider_traffic: bool,
    ) -> list[list[MatrixCell]]:
        matrix = []
        for origin in origins:
            row = []
            for destination in destinations:
                distance, duration = self._estimate(origin, destination)
                row.append(MatrixCell(distance_meters=distance, duration_seconds=duration))
            matrix.append(row)
        return matrix

    def fetch_route(
        self,
        origin: Stop,
        destination: Stop,
        *,
        departure_time: datetime,
        consider_traffic: bool,
    ) -> ProviderLeg:
        distance, duration = self._estimate(origin, destination)
        return ProviderLeg(
            distance_meters=distance,
            duration_seconds=duration,
            start_latitude=origin.latitude,
            start_longitude=origin.longitude,
            end_latitude=destination.latitude,
            end_longitude=destination.longitude,
            geometry=encode_polyline(
                [(origin.latitude, origin.longitude), (destination.latitude, destination.longitude)]
            ),
        )

    def check_health(self) -> bool:
        return True
