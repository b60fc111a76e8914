"""Serializers for optimized route results."""

from __future__ import annotations

import csv
import io
from dataclasses import asdict

from ...models.domain import OptimizedRouteResult, RouteLeg, Stop, StopRole


def _stop_to_json(stop: Stop) -> dict:
    payload = asdict(stop)
    payload["role"] = stop.role.value
    return payload


def result_to_json(result: OptimizedRouteResult) -> dict:
    return {
        "stops": [_stop_to_json(stop) for stop in result.stops],
        "legs": [asdict(leg) for leg in result.legs],
        "total_distance_meters": result.total_distance_meters,
        "total_duration_seconds": result.total_duration_seconds,
        "total_distance_text": result.total_distance_text,
        "total_duration_text": result.total_duration_text,
        "waypoint_order": list(result.waypoint_order),
        "route_polyline": result.route_polyline,
        "metadata": dict(result.metadata),
    }


def result_from_json(data: dict) -> OptimizedRouteResult:
    """Inverse of :func:`result_to_json`."""
    stops = tuple(
        Stop(
            stop_id=item["stop_id"],
            address=item["address"],
            display_name=item["display_name"],
            latitude=float(item["latitude"]),
            longitude=float(item["longitude"]),
            input_index=int(item["input_index"]),
            place_id=item.get("place_id"),
            role=StopRole(item.get("role", StopRole.FREE.value)),
        )
        for item in data["stops"]
    )
    legs = tuple(RouteLeg(**item) for item in data["legs"])
    return OptimizedRouteResult(
        stops=stops,
        legs=legs,
        total_distance_meters=data["total_distance_meters"],
        total_duration_seconds=data["total_duration_seconds"],
        total_distance_text=data["total_distance_text"],
        total_duration_text=data["total_duration_text"],
        waypoint_order=tuple(int(index) for index in data["waypoint_order"]),
        route_polyline=data.get("route_polyline"),
        metadata=dict(data.get("metadata") or {}),
    )


def result_to_csv(result: OptimizedRouteResult) -> str:
    buffer = io.StringIO()
    fieldnames = [
        "sequence",
        "stop_id",
        "input_index",
        "display_name",
        "address",
        "latitude",
        "longitude",
        "leg_distance_text",
        "leg_duration_text",
    ]
    writer = csv.DictWriter(buffer, fieldnames=fieldnames)
    writer.writeheader()
    for sequence, stop in enumerate(result.stops):
        # Leg ``sequence - 1`` is the one arriving at this stop.
        leg = result.legs[sequence - 1] if sequence > 0 else None
        writer.writerow(
            {
                "sequence": sequence,
                "stop_id": stop.stop_id,
                "input_index": stop.input_index,
                "display_name": stop.display_name,
                "address": stop.address,
                "latitude": stop.latitude,
                "longitude": stop.longitude,
                "leg_distance_text": leg.distance_text if leg else "",
                "leg_duration_text": leg.duration_text if leg else "",
            }
        )
    return buffer.getvalue()
