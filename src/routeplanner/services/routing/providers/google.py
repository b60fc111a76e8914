"""HTTP client for the Google Distance Matrix and Directions web services."""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Any, Sequence

import httpx

from ....config import settings
from ....errors import ProviderDataError, TransientProviderError
from ....models.domain import MatrixCell, Stop
from .base import ProviderLeg, get_json

logger = logging.getLogger(__name__)

# Statuses Google documents as temporary; everything else is final.
TRANSIENT_STATUSES = {"OVER_QUERY_LIMIT", "UNKNOWN_ERROR"}


class GoogleMapsClient:
    """Google Maps provider.

    The Distance Matrix API accepts at most 25 origins or destinations and
    100 elements per request on the standard plan.
    """

    name = "google"
    max_matrix_elements = 100
    max_matrix_dimension = 25

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        travel_mode: str | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.api_key = api_key or settings.google_maps_api_key
        if not self.api_key:
            raise ValueError("Google Maps API key is not configured.")
        self.base_url = (base_url or settings.google_maps_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.provider_timeout_seconds
        self.travel_mode = travel_mode or settings.travel_mode
        self._transport = transport

    def _get_client(self) -> httpx.Client:
        # One client per call; matrix blocks are fetched from worker threads.
        return httpx.Client(
            timeout=httpx.Timeout(self.timeout, connect=10.0),
            transport=self._transport,
        )

    @staticmethod
    def _location(stop: Stop) -> str:
        if stop.place_id:
            return f"place_id:{stop.place_id}"
        return f"{stop.latitude},{stop.longitude}"

    @staticmethod
    def _departure_param(departure_time: datetime) -> str:
        # Google rejects departure times in the past.
        if departure_time.tzinfo is None:
            departure_time = departure_time.replace(tzinfo=timezone.utc)
        timestamp = int(departure_time.timestamp())
        if timestamp <= int(time.time()):
            return "now"
        return str(timestamp)

    def _base_params(self, departure_time: datetime, consider_traffic: bool) -> dict[str, Any]:
        params: dict[str, Any] = {
            "mode": self.travel_mode,
            "units": "metric",
            "key": self.api_key,
        }
        if consider_traffic and self.travel_mode == "driving":
            params["departure_time"] = self._departure_param(departure_time)
            params["traffic_model"] = "best_guess"
        return params

    @staticmethod
    def _check_status(data: dict, description: str) -> None:
        status = data.get("status")
        if status == "OK":
            return
        message = data.get("error_message", "")
        if status in TRANSIENT_STATUSES:
            raise TransientProviderError(f"{description} returned {status} {message}".strip())
        raise ProviderDataError(f"{description} failed with status {status}. {message}".strip())

    def fetch_matrix(
        self,
        origins: Sequence[Stop],
        destinations: Sequence[Stop],
        *,
        departure_time: datetime,
        consider_traffic: bool,
    ) -> list[list[MatrixCell]]:
        if not origins or not destinations:
            raise ValueError("At least one origin and one destination are required.")

        params = self._base_params(departure_time, consider_traffic)
        params["origins"] = "|".join(self._location(stop) for stop in origins)
        params["destinations"] = "|".join(self._location(stop) for stop in destinations)
        url = f"{self.base_url}/distancematrix/json"
        logger.debug(f"Requesting Google distance matrix {len(origins)}x{len(destinations)} (traffic={consider_traffic})")

        client = self._get_client()
        try:
            data = get_json(client, url, params, "Google Distance Matrix request")
        finally:
            client.close()

        self._check_status(data, "Google Distance Matrix request")
        return self._parse_matrix(data, len(origins), len(destinations))

    @staticmethod
    def _parse_matrix(data: dict, origin_count: int, destination_count: int) -> list[list[MatrixCell]]:
        rows = data.get("rows") or []
        if len(rows) != origin_count:
            raise ProviderDataError(
                f"Google Distance Matrix returned {len(rows)} rows for {origin_count} origins."
            )

        matrix: list[list[MatrixCell]] = []
        for i, row in enumerate(rows):
            elements = row.get("elements") or []
            if len(elements) != destination_count:
                raise ProviderDataError(
                    f"Google Distance Matrix row {i} has {len(elements)} elements, expected {destination_count}."
                )
            cells = []
            for j, element in enumerate(elements):
                if element.get("status") != "OK":
                    raise ProviderDataError(
                        f"No route from origin {i} to destination {j}: {element.get('status')}"
                    )
                try:
                    traffic = element.get("duration_in_traffic")
                    cells.append(
                        MatrixCell(
                            distance_meters=float(element["distance"]["value"]),
                            duration_seconds=float(element["duration"]["value"]),
                            duration_in_traffic_seconds=float(traffic["value"]) if traffic else None,
                        )
                    )
                except (KeyError, TypeError, ValueError) as exc:
                    raise ProviderDataError(f"Malformed Distance Matrix element [{i}][{j}].") from exc
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
        params = self._base_params(departure_time, consider_traffic)
        params["origin"] = self._location(origin)
        params["destination"] = self._location(destination)
        url = f"{self.base_url}/directions/json"

        client = self._get_client()
        try:
            data = get_json(client, url, params, "Google Directions request")
        finally:
            client.close()

        self._check_status(data, "Google Directions request")
        routes = data.get("routes") or []
        if not routes or not routes[0].get("legs"):
            raise ProviderDataError(
                f"No route could be calculated from '{origin.display_name}' to '{destination.display_name}'."
            )

        route = routes[0]
        leg = route["legs"][0]
        try:
            traffic = leg.get("duration_in_traffic")
            return ProviderLeg(
                distance_meters=float(leg["distance"]["value"]),
                duration_seconds=float(leg["duration"]["value"]),
                duration_in_traffic_seconds=float(traffic["value"]) if traffic else None,
                start_address=leg.get("start_address", ""),
                end_address=leg.get("end_address", ""),
                start_latitude=float(leg["start_location"]["lat"]),
                start_longitude=float(leg["start_location"]["lng"]),
                end_latitude=float(leg["end_location"]["lat"]),
                end_longitude=float(leg["end_location"]["lng"]),
                geometry=(route.get("overview_polyline") or {}).get("points"),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise ProviderDataError("Malformed Directions leg in provider response.") from exc

    def check_health(self) -> bool:
        """Probe the Distance Matrix endpoint with a two-point request."""
        params = {
            "origins": "52.517037,13.388860",
            "destinations": "52.496891,13.385983",
            "key": self.api_key,
        }
        client = httpx.Client(timeout=5.0, transport=self._transport)
        try:
            response = client.get(f"{self.base_url}/distancematrix/json", params=params)
            response.raise_for_status()
            return response.json().get("status") == "OK"
        except (httpx.HTTPError, ValueError):
            return False
        finally:
            client.close()
