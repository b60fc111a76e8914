"""Application configuration and settings management."""

from typing import Any, Literal, Optional

import json
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="ROUTEPLANNER_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "Route Planner API"
    api_prefix: str = "/api"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    routing_provider: Literal["google", "osrm", "haversine"] = Field(
        default="google",
        description="Which routing backend answers matrix and route requests.",
    )
    google_maps_api_key: Optional[str] = Field(default=None, description="Key for the Google Maps web services.")
    google_maps_base_url: str = Field(default="https://maps.googleapis.com/maps/api")
    osrm_base_url: Optional[str] = Field(
        default=None,
        description="Base URL for the OSRM routing service (e.g., http://localhost:5000).",
    )
    osrm_profile: Literal["driving", "driving-hgv"] = Field(
        default="driving",
        description="OSRM profile to use when computing travel times.",
    )
    travel_mode: Literal["driving", "walking", "bicycling"] = Field(default="driving")
    units: Literal["imperial", "metric"] = Field(
        default="imperial",
        description="Unit system used for human-readable distance text.",
    )
    haversine_speed_kmh: float = Field(default=40.0, gt=0.0)

    provider_timeout_seconds: float = Field(default=30.0, gt=0.0)
    provider_max_attempts: int = Field(default=3, ge=1, le=10)
    provider_backoff_seconds: float = Field(default=1.0, ge=0.0)
    provider_max_backoff_seconds: float = Field(default=8.0, ge=0.0)
    max_parallel_requests: int = Field(default=4, ge=1)

    cache_ttl_seconds: float = Field(default=900.0, ge=0.0)
    cache_max_entries: int = Field(default=20000, ge=1)
    cache_bucket_minutes: int = Field(default=15, ge=1)

    max_stops: int = Field(default=25, ge=2)
    two_opt_max_sweeps: int = Field(default=100, ge=1)
    request_timeout_seconds: float = Field(default=60.0, gt=0.0)

    frontend_allowed_origins: tuple[str, ...] = Field(
        default=(
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ),
        description="Permitted web origins for browser clients (CORS).",
    )

    @field_validator("frontend_allowed_origins", mode="before")
    @classmethod
    def _parse_str_tuple_from_env(cls, value: Any) -> tuple[str, ...]:
        """Parse string tuple from environment variable (comma-separated or JSON array)."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(str(item) for item in value)
        if isinstance(value, str):
            try:
                parsed = json.loads(value)
                if isinstance(parsed, list):
                    return tuple(str(item) for item in parsed)
            except (json.JSONDecodeError, TypeError):
                pass
            if "," in value:
                return tuple(item.strip() for item in value.split(",") if item.strip())
            if value.strip():
                return (value.strip(),)
        return tuple()


settings = Settings()
