"""HTTP client for interacting with OSRM services."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Sequence

import httpx

from ....config import settings
from ....errors import ProviderDataError
from ....models.domain import MatrixCell, Stop
from .base import ProviderLeg, get_json

# OSRM table endpoint has URL length limits. Sources and destinations share one
# coordinate list, so a block of 80x80 puts up to 160 coordinates in the URL.
DEFAULT_MAX_COORDINATES_PER_REQUEST = 80

logger = logging.getLogger(__name__)


class OSRMClient:
    """OSRM provider. OSRM has no live traffic, so traffic durations stay empty."""

    name = "osrm"

    def __init__(
        self,
        base_url: str | None = None,
        profile: str | None = None,
        timeout: float | None = None,
        max_coordinates_per_request: int = DEFAULT_MAX_COORDINATES_PER_REQUEST,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = (base_url or settings.osrm_base_url or "").rstrip("/")
        if not self.base_url:
            raise ValueError("OSRM base URL is not configured.")
        self.profile = profile or settings.osrm_profile
        self.timeout = timeout if timeout is not None else settings.provider_timeout_seconds
        self.max_matrix_dimension = max_coordinates_per_request
        self.max_matrix_elements = max_coordinates_per_request * max_coordinates_per_request
        self._transport = transport

    def _get_client(self) -> httpx.Client:
        """Get a per-call HTTP client; matrix blocks run on worker threads."""
        return httpx.Client(
            timeout=httpx.Timeout(self.timeout, connect=10.0),
            limits=httpx.Limits(max_connections=1, max_keepalive_connections=0),
            transport=self._transport,
        )

    @staticmethod
    def _coordinate_string(stops: Sequence[Stop]) -> str:
        # OSRM expects "lon,lat;lon,lat;..."
        return ";".join(f"{stop.longitude},{stop.latitude}" for stop in stops)

    def fetch_matrix(
        self,
        origins: Sequence[Stop],
        destinations: Sequence[Stop],
        *,
        departure_time: datetime,
        consider_traffic: bool,
    ) -> list[list[MatrixCell]]:
        if not origins or not destinations:
            raise ValueError("At least one origin and one destination are required for OSRM table.")

        coordinates = [*origins, *destinations]
        params = {
            "annotations": "duration,distance",
            "sources": ";".join(str(i) for i in range(len(origins))),
            "destinations": ";".join(str(i) for i in range(len(origins), len(coordinates))),
        }
        url = f"{self.base_url}/table/v1/{self.profile}/{self._coordinate_string(coordinates)}"
        logger.debug(f"Requesting OSRM table {len(origins)}x{len(destinations)}")

        client = self._get_client()
        try:
            data = get_json(client, url, params, "OSRM table request")
        finally:
            client.close()

        if data.get("code") != "Ok":
            raise ProviderDataError(f"OSRM table request failed: {data.get('message', data.get('code'))}")
        durations = data.get("durations")
        distances = data.get("distances")
        if durations is None or distances is None:
            raise ProviderDataError("OSRM response missing durations/distances.")
        if len(durations) != len(origins) or len(distances) != len(origins):
            raise ProviderDataError(
                f"OSRM table returned {len(durations)} rows for {len(origins)} sources."
            )

        matrix: list[list[MatrixCell]] = []
        for i, (duration_row, distance_row) in enumerate(zip(durations, distances)):
            if len(duration_row) != len(destinations) or len(distance_row) != len(destinations):
                raise ProviderDataError(f"OSRM table row {i} does not cover every destination.")
            cells = []
            for j, (duration, distance) in enumerate(zip(duration_row, distance_row)):
                # OSRM reports unreachable pairs as null.
                if duration is None or distance is None:
                    raise ProviderDataError(f"OSRM found no route from source {i} to destination {j}.")
                cells.append(MatrixCell(distance_meters=float(distance), duration_seconds=float(duration)))
            matrix.append(cells)
        return matrix

    def fetch_route(
        self,
        origin: Stop,
        destination: Stop,
        *,
        departure_time: datetime,
        consider_traffic: bool,
    ) -> ProviderLeg:
        """Get the street-following route between two stops, with polyline geometry."""
        params = {
            "overview": "full",
            "geometries": "polyline",
            "steps": "false",
        }
        url = f"{self.base_url}/route/v1/{self.profile}/{self._coordinate_string([origin, destination])}"

        client = self._get_client()
        try:
            data = get_json(client, url, params, "OSRM route request")
        finally:
            client.close()

        if data.get("code") != "Ok":
            raise ProviderDataError(f"OSRM route request failed: {data.get('message', 'Unknown OSRM route error')}")
        routes = data.get("routes") or []
        if not routes:
            raise ProviderDataError(
                f"No route could be calculated from '{origin.display_name}' to '{destination.display_name}'."
            )

        route = routes[0]
        waypoints = data.get("waypoints") or []
        try:
            # Waypoints are snapped to the road network; fall back to the stop itself.
            start = waypoints[0]["location"] if len(waypoints) > 0 else [origin.longitude, origin.latitude]
            end = waypoints[1]["location"] if len(waypoints) > 1 else [destination.longitude, destination.latitude]
            return ProviderLeg(
                distance_meters=float(route["distance"]),
                duration_seconds=float(route["duration"]),
                start_latitude=float(start[1]),
                start_longitude=float(start[0]),
                end_latitude=float(end[1]),
                end_longitude=float(end[0]),
                geometry=route.get("geometry"),
            )
        except (KeyError, IndexError, TypeError, ValueError) as exc:
            raise ProviderDataError("Malformed OSRM route in provider response.") from exc

    def check_health(self) -> bool:
        """Check OSRM service health by making a simple table request.

        Public OSRM endpoints may not have a /health endpoint, so we test
        connectivity by making a minimal table request with two coordinates.
        """
        test_coords = "13.388860,52.517037;13.385983,52.496891"
        url = f"{self.base_url}/table/v1/{self.profile}/{test_coords}"
        client = httpx.Client(timeout=5.0, transport=self._transport)
        try:
            response = client.get(url, params={"annotations": "duration"})
            response.raise_for_status()
            data = response.json()
            return "durations" in data and isinstance(data.get("durations"), list)
        except (httpx.HTTPError, ValueError):
            return False
        finally:
            client.close()
