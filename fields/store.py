"""Polygon lifecycle against the provider, plus the local collection."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from datetime import datetime
from typing import Any

from ndvi.engines.base import AgroProvider
from ndvi.engines.types import Coordinate, Polygon
from ndvi.errors import InvalidGeometry, NotFound, UpstreamRejected
from ndvi.timeutils import from_unix_seconds

from .geometry import (
    build_feature,
    parse_provider_rings,
    provider_center_to_map,
    to_provider_rings,
)

logger = logging.getLogger(__name__)


def _ring_centroid(ring: Sequence[Coordinate]) -> Coordinate:
    # Closing point duplicates the first one.
    points = ring[:-1] or ring
    lon = sum(point[0] for point in points) / len(points)
    lat = sum(point[1] for point in points) / len(points)
    return lat, lon


def _parse_created_at(raw: Any) -> datetime | None:
    if isinstance(raw, bool) or not isinstance(raw, int | float):
        return None
    return from_unix_seconds(int(raw))


def parse_polygon(payload: Any, *, fallback_name: str = "") -> Polygon:
    """Build a `Polygon` from the provider's JSON record."""

    if not isinstance(payload, dict):
        raise UpstreamRejected("Polygon response is not an object.")
    polygon_id = payload.get("id")
    if not isinstance(polygon_id, str) or not polygon_id:
        raise UpstreamRejected("Polygon response is missing an id.")

    geo_json = payload.get("geo_json") or {}
    geometry = geo_json.get("geometry") if isinstance(geo_json, dict) else None
    coordinates = (
        geometry.get("coordinates") if isinstance(geometry, dict) else None
    )
    try:
        rings = parse_provider_rings(coordinates)
        raw_center = payload.get("center")
        center = (
            provider_center_to_map(raw_center)
            if raw_center is not None
            else _ring_centroid(rings[0])
        )
    except InvalidGeometry as exc:
        raise UpstreamRejected(
            f"Polygon {polygon_id} has invalid geometry: {exc.message}"
        ) from exc

    try:
        area = float(payload.get("area") or 0.0)
    except (TypeError, ValueError):
        area = 0.0

    name = payload.get("name")
    return Polygon(
        id=polygon_id,
        name=name if isinstance(name, str) else fallback_name,
        rings=rings,
        area=area,
        center=center,
        created_at=_parse_created_at(payload.get("created_at")),
    )


class PolygonStore:
    """Registered polygons of one account and the current selection.

    Mutating operations are serialized so that a create returning a new id
    can never interleave with a select or delete on the same store.
    """

    def __init__(self, provider: AgroProvider) -> None:
        self.provider = provider
        self._polygons: list[Polygon] = []
        self._selected_id: str | None = None
        self._lock = asyncio.Lock()

    @property
    def polygons(self) -> list[Polygon]:
        return list(self._polygons)

    @property
    def selected(self) -> Polygon | None:
        if self._selected_id is None:
            return None
        return self.get(self._selected_id)

    @property
    def selected_id(self) -> str | None:
        return self._selected_id

    def get(self, polygon_id: str) -> Polygon | None:
        for polygon in self._polygons:
            if polygon.id == polygon_id:
                return polygon
        return None

    async def list(self) -> list[Polygon]:
        async with self._lock:
            payload = await self.provider.list_polygons()
            if not isinstance(payload, list):
                raise UpstreamRejected("Polygon list is not an array.")
            polygons: list[Polygon] = []
            for item in payload:
                try:
                    polygons.append(parse_polygon(item))
                except UpstreamRejected as exc:
                    logger.warning("store.polygon_skipped reason=%s", exc)
            self._polygons = polygons
            if self._selected_id and self.get(self._selected_id) is None:
                self._selected_id = None
            return self.polygons

    async def create(
        self,
        name: str,
        drawn_rings: Sequence[Sequence[Any]],
    ) -> Polygon:
        """Register a drawn polygon (map order, outer ring then holes)."""

        if not name or not name.strip():
            raise InvalidGeometry("Polygon name must not be empty.")
        provider_rings = to_provider_rings(drawn_rings)
        feature = build_feature(provider_rings)

        async with self._lock:
            payload = await self.provider.create_polygon(
                name.strip(), feature
            )
            polygon = parse_polygon(payload, fallback_name=name.strip())
            self._polygons.append(polygon)
            logger.info(
                "store.polygon_created id=%s area=%s", polygon.id, polygon.area
            )
            return polygon

    async def select(self, polygon_id: str) -> Polygon:
        async with self._lock:
            payload = await self.provider.get_polygon(polygon_id)
            if not payload:
                raise NotFound(upstream_status=None)
            polygon = parse_polygon(payload)
            self._upsert(polygon)
            self._selected_id = polygon.id
            return polygon

    async def delete(self, polygon_id: str) -> bool:
        """Delete a polygon; returns True if it was the selected one."""

        async with self._lock:
            await self.provider.delete_polygon(polygon_id)
            self._polygons = [p for p in self._polygons if p.id != polygon_id]
            was_selected = self._selected_id == polygon_id
            if was_selected:
                self._selected_id = None
            logger.info(
                "store.polygon_deleted id=%s was_selected=%s",
                polygon_id,
                was_selected,
            )
            return was_selected

    def _upsert(self, polygon: Polygon) -> None:
        for idx, existing in enumerate(self._polygons):
            if existing.id == polygon.id:
                self._polygons[idx] = polygon
                return
        self._polygons.append(polygon)
