"""Coordinate-order conversion between the map and the provider.

The drawing surface reports points as (lat, lon) while the provider's
GeoJSON expects (lon, lat). Every conversion in the project goes through
this module.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from typing import Any, Final

from ndvi.engines.types import Coordinate
from ndvi.errors import InvalidGeometry

COORDINATE_PRECISION: Final[int] = 6
MIN_RING_POINTS: Final[int] = 4


def _as_pair(point: Any, idx: int) -> Coordinate:
    if isinstance(point, str | bytes) or not isinstance(point, Sequence):
        raise InvalidGeometry(f"Point {idx} must be a coordinate pair.")
    if len(point) != 2:
        raise InvalidGeometry(f"Point {idx} must have exactly two values.")
    try:
        first, second = float(point[0]), float(point[1])
    except (TypeError, ValueError) as exc:
        raise InvalidGeometry(f"Point {idx} must be numeric.") from exc
    if not (math.isfinite(first) and math.isfinite(second)):
        raise InvalidGeometry(f"Point {idx} must be finite.")
    return first, second


def _rounded(point: Coordinate) -> Coordinate:
    return (
        round(point[0], COORDINATE_PRECISION),
        round(point[1], COORDINATE_PRECISION),
    )


def _check_ring(points: list[Coordinate]) -> None:
    if len(points) < MIN_RING_POINTS:
        raise InvalidGeometry(
            f"Polygon ring needs at least {MIN_RING_POINTS} points, "
            f"got {len(points)}."
        )
    if _rounded(points[0]) != _rounded(points[-1]):
        raise InvalidGeometry("Polygon must be closed properly.")


def to_provider_ring(drawn_ring: Sequence[Any]) -> list[list[float]]:
    """Convert a closed (lat, lon) ring into a provider (lon, lat) ring."""

    points = [_as_pair(point, idx) for idx, point in enumerate(drawn_ring)]
    for idx, (lat, lon) in enumerate(points):
        if not -90.0 <= lat <= 90.0:
            raise InvalidGeometry(
                f"Latitude of point {idx} must be between -90 and 90."
            )
        if not -180.0 <= lon <= 180.0:
            raise InvalidGeometry(
                f"Longitude of point {idx} must be between -180 and 180."
            )
    _check_ring(points)

    ring = [[lon, lat] for lat, lon in points]
    ring[-1] = list(ring[0])
    return ring


def to_provider_rings(
    drawn_rings: Sequence[Sequence[Any]],
) -> list[list[list[float]]]:
    """Normalize an outer ring followed by optional holes, keeping order."""

    if not drawn_rings:
        raise InvalidGeometry("Polygon must contain at least one ring.")
    return [to_provider_ring(ring) for ring in drawn_rings]


def to_map_ring(provider_ring: Sequence[Any]) -> list[list[float]]:
    """Convert a provider (lon, lat) ring back to map (lat, lon) order."""

    points = [_as_pair(point, idx) for idx, point in enumerate(provider_ring)]
    return [[lat, lon] for lon, lat in points]


def provider_center_to_map(center: Sequence[Any]) -> Coordinate:
    """Provider centers are reported as [lon, lat]; return (lat, lon)."""

    lon, lat = _as_pair(center, 0)
    return lat, lon


def parse_provider_rings(
    coordinates: Any,
) -> tuple[tuple[Coordinate, ...], ...]:
    """Validate rings received from the provider, keeping (lon, lat)."""

    if not isinstance(coordinates, Sequence) or not coordinates:
        raise InvalidGeometry("Provider geometry has no rings.")
    rings: list[tuple[Coordinate, ...]] = []
    for raw_ring in coordinates:
        if not isinstance(raw_ring, Sequence):
            raise InvalidGeometry("Provider ring must be a sequence.")
        points = [_as_pair(point, idx) for idx, point in enumerate(raw_ring)]
        _check_ring(points)
        rings.append(tuple(points))
    return tuple(rings)


def build_feature(provider_rings: Sequence[Sequence[Any]]) -> dict[str, Any]:
    """Return the GeoJSON feature the provider expects as `geo_json`."""

    return {
        "type": "Feature",
        "properties": {},
        "geometry": {
            "type": "Polygon",
            "coordinates": [
                [list(point) for point in ring] for ring in provider_rings
            ],
        },
    }


def bounds(provider_ring: Sequence[Any]) -> tuple[float, float, float, float]:
    """Return (south, west, north, east) for fitting the map view."""

    points = [_as_pair(point, idx) for idx, point in enumerate(provider_ring)]
    if not points:
        raise InvalidGeometry("Cannot compute bounds of an empty ring.")
    lons = [lon for lon, _ in points]
    lats = [lat for _, lat in points]
    return min(lats), min(lons), max(lats), max(lons)
