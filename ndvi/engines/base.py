"""Engine abstractions for the field analytics provider."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class AgroProvider(ABC):
    """Transport-level access to the provider's polygon, NDVI and imagery APIs.

    Implementations return decoded JSON and raise `ndvi.errors.AgroError`
    subclasses for every failure; parsing into entities happens in the
    store, history and imagery layers.
    """

    name: str

    @abstractmethod
    async def list_polygons(self) -> Any:
        """Return every polygon registered for the account."""

    @abstractmethod
    async def create_polygon(self, name: str, geo_json: dict[str, Any]) -> Any:
        """Register a polygon and return the provider's record."""

    @abstractmethod
    async def get_polygon(self, polygon_id: str) -> Any:
        """Return the full record of one polygon."""

    @abstractmethod
    async def delete_polygon(self, polygon_id: str) -> None:
        """Delete a polygon; returns once the provider confirmed."""

    @abstractmethod
    async def ndvi_history(
        self,
        *,
        polygon_id: str,
        start: int,
        end: int,
        satellite_type: str,
        zoom: int,
        coverage_min: int,
    ) -> Any:
        """Return NDVI history entries between two Unix timestamps."""

    @abstractmethod
    async def search_images(
        self,
        *,
        polygon_id: str,
        start: int,
        end: int,
        clouds_max: int,
        resolution_min: int,
    ) -> Any:
        """Return the scenes intersecting the polygon in a time range."""

    @abstractmethod
    async def index_stats(self, url: str) -> Any:
        """Fetch the statistics document behind a per-index stats URL."""
