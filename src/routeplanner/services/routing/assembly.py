"""Assembly of the final route: road legs, totals, geometry and waypoint order."""

from __future__ import annotations

import dataclasses
import logging
from datetime import datetime
from typing import Optional, Sequence

from ...config import settings
from ...errors import InvalidInputError, ProviderDataError
from ...models.domain import OptimizedRouteResult, RouteLeg, Stop
from .formatting import Units, format_distance, format_duration
from .polyline import encode_polyline, join_polylines
from .providers.base import ProviderLeg, RoutingProvider
from .retry import Deadline, RetryPolicy, call_with_retry

logger = logging.getLogger(__name__)


class RouteAssembler:
    """Resolve real road legs for a visiting order and package the result.

    Matrix cells are point-to-point estimates, so every consecutive pair is
    routed again to obtain display-quality geometry and leg detail. Any leg
    without a usable route, or any stop whose address cannot be resolved,
    fails the whole assembly.
    """

    def __init__(
        self,
        provider: RoutingProvider,
        *,
        retry_policy: RetryPolicy | None = None,
        units: Units | None = None,
    ) -> None:
        self.provider = provider
        self.retry_policy = retry_policy or RetryPolicy.from_settings()
        self.units: Units = units or settings.units

    def assemble(
        self,
        ordered_stops: Sequence[Stop],
        *,
        departure_time: datetime,
        consider_traffic: bool,
        deadline: Optional[Deadline] = None,
        metadata: Optional[dict] = None,
    ) -> OptimizedRouteResult:
        if len(ordered_stops) < 2:
            raise InvalidInputError("A route needs at least two stops to assemble.")
        deadline = deadline or Deadline.unbounded()

        legs: list[RouteLeg] = []
        resolved: list[Stop] = []
        for position, (origin, destination) in enumerate(zip(ordered_stops[:-1], ordered_stops[1:])):
            deadline.check("route assembly")
            provider_leg = call_with_retry(
                lambda: self.provider.fetch_route(
                    origin,
                    destination,
                    departure_time=departure_time,
                    consider_traffic=consider_traffic,
                ),
                policy=self.retry_policy,
                deadline=deadline,
                description=f"route leg {position} ({origin.display_name} -> {destination.display_name})",
            )
            leg = self._build_leg(provider_leg, origin, destination)
            if not resolved:
                resolved.append(self._resolve_stop(origin, leg.start_address))
            resolved.append(self._resolve_stop(destination, leg.end_address))
            legs.append(leg)

        total_distance = sum(leg.distance_meters for leg in legs)
        total_duration = sum(leg.effective_duration_seconds for leg in legs)
        route_polyline = join_polylines(
            [
                leg.geometry
                if leg.geometry
                else encode_polyline([(leg.start_latitude, leg.start_longitude), (leg.end_latitude, leg.end_longitude)])
                for leg in legs
            ]
        )

        logger.info(
            f"Assembled route: {len(legs)} legs, {format_distance(total_distance, self.units)}, "
            f"{format_duration(total_duration)}"
        )
        return OptimizedRouteResult(
            stops=tuple(resolved),
            legs=tuple(legs),
            total_distance_meters=total_distance,
            total_duration_seconds=total_duration,
            total_distance_text=format_distance(total_distance, self.units),
            total_duration_text=format_duration(total_duration),
            waypoint_order=tuple(stop.input_index for stop in resolved),
            route_polyline=route_polyline,
            metadata=dict(metadata or {}),
        )

    def _build_leg(self, provider_leg: ProviderLeg, origin: Stop, destination: Stop) -> RouteLeg:
        if provider_leg.distance_meters < 0 or provider_leg.duration_seconds < 0:
            raise ProviderDataError(
                f"Provider returned a negative leg from '{origin.display_name}' to '{destination.display_name}'."
            )
        start_address = _display_address(provider_leg.start_address, origin)
        end_address = _display_address(provider_leg.end_address, destination)
        duration = provider_leg.duration_seconds
        if provider_leg.duration_in_traffic_seconds is not None:
            duration = provider_leg.duration_in_traffic_seconds
        return RouteLeg(
            distance_meters=provider_leg.distance_meters,
            duration_seconds=provider_leg.duration_seconds,
            duration_in_traffic_seconds=provider_leg.duration_in_traffic_seconds,
            distance_text=format_distance(provider_leg.distance_meters, self.units),
            duration_text=format_duration(duration),
            start_address=start_address,
            end_address=end_address,
            start_latitude=provider_leg.start_latitude,
            start_longitude=provider_leg.start_longitude,
            end_latitude=provider_leg.end_latitude,
            end_longitude=provider_leg.end_longitude,
            geometry=provider_leg.geometry,
        )

    @staticmethod
    def _resolve_stop(stop: Stop, provider_address: str) -> Stop:
        """Fill in address/display name the caller left blank."""
        if stop.address and stop.display_name:
            return stop
        address = stop.address or provider_address
        return dataclasses.replace(stop, address=address, display_name=stop.display_name or address)


def _display_address(provider_address: str, stop: Stop) -> str:
    address = (provider_address or "").strip() or stop.address.strip()
    if not address:
        raise ProviderDataError(
            f"The address of stop '{stop.stop_id}' could not be resolved for display."
        )
    return address
