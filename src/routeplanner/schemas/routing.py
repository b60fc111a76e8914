"""Routing request/response schemas."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator


class StopInput(BaseModel):
    """One stop as chosen in the address layer."""

    stop_id: Optional[str] = Field(default=None, description="Caller identifier echoed back in the result.")
    address: Optional[str] = Field(default=None, description="Formatted address text.")
    place_id: Optional[str] = Field(default=None, description="Provider place identifier, if known.")
    display_name: Optional[str] = Field(default=None, description="Name shown to the user (e.g. business name).")
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)

    @model_validator(mode="after")
    def _require_address_or_place(self) -> "StopInput":
        if not (self.address and self.address.strip()) and not self.place_id:
            raise ValueError("Each stop needs an address or a place_id.")
        return self


class OptimizationRequest(BaseModel):
    stops: List[StopInput]
    round_trip: bool = Field(default=False, description="Return to the starting stop at the end.")
    consider_traffic: bool = Field(default=True, description="Optimise on traffic-aware travel time.")
    departure_time: Optional[datetime] = Field(default=None, description="Defaults to now (UTC).")
    fixed_start_index: Optional[int] = Field(default=None, description="Input index pinned to the first position.")
    fixed_end_index: Optional[int] = Field(default=None, description="Input index pinned to the last position.")
    timeout_seconds: Optional[float] = Field(default=None, gt=0, description="Overall time budget for the request.")


class StopModel(BaseModel):
    stop_id: str
    address: str
    display_name: str
    latitude: float
    longitude: float
    input_index: int
    place_id: Optional[str] = None
    role: str = "free"


class RouteLegModel(BaseModel):
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


class OptimizedRouteResponse(BaseModel):
    stops: List[StopModel]
    legs: List[RouteLegModel]
    total_distance_meters: float
    total_duration_seconds: float
    total_distance_text: str
    total_duration_text: str
    waypoint_order: List[int]
    route_polyline: Optional[str] = None
    metadata: dict = Field(default_factory=dict)
