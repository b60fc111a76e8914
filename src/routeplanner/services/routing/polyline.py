"""Google encoded polyline helpers.

Both Google Directions and OSRM (with ``geometries=polyline``) return leg
geometry in this format at 1e5 precision.
"""

from __future__ import annotations

from typing import Iterable, Sequence


def decode_polyline(polyline: str) -> list[tuple[float, float]]:
    """Decode Google polyline string to list of (lat, lon) coordinates.

    Args:
        polyline: Encoded polyline string

    Returns:
        List of (latitude, longitude) tuples
    """
    coordinates = []
    index = 0
    lat = 0
    lon = 0

    while index < len(polyline):
        shift = 0
        result = 0
        while True:
            b = ord(polyline[index]) - 63
            index += 1
            result |= (b & 0x1f) << shift
            shift += 5
            if b < 0x20:
                break
        dlat = ~(result >> 1) if (result & 1) else (result >> 1)
        lat += dlat

        shift = 0
        result = 0
        while True:
            b = ord(polyline[index]) - 63
            index += 1
            result |= (b & 0x1f) << shift
            shift += 5
            if b < 0x20:
                break
        dlon = ~(result >> 1) if (result & 1) else (result >> 1)
        lon += dlon

        coordinates.append((lat / 1e5, lon / 1e5))

    return coordinates


def _encode_value(value: int) -> str:
    value = ~(value << 1) if value < 0 else (value << 1)
    chunks = []
    while value >= 0x20:
        chunks.append(chr((0x20 | (value & 0x1f)) + 63))
        value >>= 5
    chunks.append(chr(value + 63))
    return "".join(chunks)


def encode_polyline(coordinates: Iterable[tuple[float, float]]) -> str:
    """Encode (lat, lon) pairs with the Google polyline algorithm."""
    encoded = []
    prev_lat = 0
    prev_lon = 0
    for lat, lon in coordinates:
        lat_e5 = int(round(lat * 1e5))
        lon_e5 = int(round(lon * 1e5))
        encoded.append(_encode_value(lat_e5 - prev_lat))
        encoded.append(_encode_value(lon_e5 - prev_lon))
        prev_lat, prev_lon = lat_e5, lon_e5
    return "".join(encoded)


def join_polylines(fragments: Sequence[str]) -> str:
    """Concatenate leg geometries into one path, dropping repeated junction points."""
    points: list[tuple[float, float]] = []
    for fragment in fragments:
        decoded = decode_polyline(fragment)
        if points and decoded and decoded[0] == points[-1]:
            decoded = decoded[1:]
        points.extend(decoded)
    return encode_polyline(points)
