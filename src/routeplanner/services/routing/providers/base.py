"""Routing provider interface shared by the matrix builder and the route assembler."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional, Protocol, Sequence

import httpx

from ....errors import ProviderDataError, TransientProviderError
from ....models.domain import MatrixCell, Stop

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = {408, 429, 500, 502, 503, 504}


@dataclass(frozen=True, slots=True)
class ProviderLeg:
    """Road route between two consecutive stops as reported by the provider."""

    distance_meters: float
    duration_seconds: float
    start_latitude: float
    start_longitude: float
    end_latitude: float
    end_longitude: float
    start_address: str = ""
    end_address: str = ""
    duration_in_traffic_seconds: Optional[float] = None
    geometry: Optional[str] = None


class RoutingProvider(Protocol):
    name: str
    max_matrix_elements: int
    max_matrix_dimension: int

    def fetch_matrix(
        self,
        origins: Sequence[Stop],
        destinations: Sequence[Stop],
        *,
        departure_time: datetime,
        consider_traffic: bool,
    ) -> list[list[MatrixCell]]:
        """Return one row per origin, one cell per destination."""
        ...

    def fetch_route(
        self,
        origin: Stop,
        destination: Stop,
        *,
        departure_time: datetime,
        consider_traffic: bool,
    ) -> ProviderLeg:
        ...

    def check_health(self) -> bool: ...


def get_json(client: httpx.Client, url: str, params: dict[str, Any], description: str) -> dict:
    """GET ``url`` and decode the JSON body, classifying failures.

    Timeouts, network errors, 408/429 and 5xx answers become
    :class:`TransientProviderError`; any other HTTP error or an undecodable
    body is a :class:`ProviderDataError`.
    """
    try:
        response = client.get(url, params=params)
        response.raise_for_status()
    except httpx.TimeoutException as exc:
        raise TransientProviderError(f"{description} timed out: {exc}") from exc
    except httpx.HTTPStatusError as exc:
        code = exc.response.status_code
        if code in RETRYABLE_STATUS_CODES:
            raise TransientProviderError(f"{description} returned HTTP {code}") from exc
        raise ProviderDataError(f"{description} was rejected with HTTP {code}.") from exc
    except httpx.TransportError as exc:
        raise TransientProviderError(f"{description} network error: {exc}") from exc

    try:
        data = response.json()
    except ValueError as exc:
        raise ProviderDataError(f"{description} returned a response that is not valid JSON.") from exc
    if not isinstance(data, dict):
        raise ProviderDataError(f"{description} returned an unexpected payload.")
    return data
