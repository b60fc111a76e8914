"""Human-readable distance and duration text."""

from __future__ import annotations

from typing import Literal

Units = Literal["imperial", "metric"]

METERS_TO_MILES = 0.000621371
METERS_TO_FEET = 3.28084


def format_distance(meters: float, units: Units = "imperial") -> str:
    if units == "imperial":
        miles = meters * METERS_TO_MILES
        if miles < 0.1:
            return f"{round(meters * METERS_TO_FEET)} ft"
        return f"{miles:.1f} mi"
    if meters < 1000:
        return f"{round(meters)} m"
    return f"{meters / 1000.0:.1f} km"


def format_duration(seconds: float) -> str:
    total = int(seconds)
    hours = total // 3600
    minutes = (total % 3600) // 60
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"
