"""Routing provider implementations and factory."""

from __future__ import annotations

from ....config import Settings, settings as default_settings
from .base import ProviderLeg, RoutingProvider
from .google import GoogleMapsClient
from .haversine import HaversineProvider
from .osrm import OSRMClient


def build_provider(config: Settings | None = None) -> RoutingProvider:
    """Instantiate the provider selected by ``routing_provider``.

    Raises ``ValueError`` when the selected provider is missing its
    connection settings.
    """
    config = config or default_settings
    if config.routing_provider == "google":
        return GoogleMapsClient(
            api_key=config.google_maps_api_key,
            base_url=config.google_maps_base_url,
            timeout=config.provider_timeout_seconds,
            travel_mode=config.travel_mode,
        )
    if config.routing_provider == "osrm":
        return OSRMClient(
            base_url=config.osrm_base_url,
            profile=config.osrm_profile,
            timeout=config.provider_timeout_seconds,
        )
    return HaversineProvider(average_speed_kmh=config.haversine_speed_kmh)


__all__ = [
    "GoogleMapsClient",
    "HaversineProvider",
    "OSRMClient",
    "ProviderLeg",
    "RoutingProvider",
    "build_provider",
]
