from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from enum import Enum
from typing import Literal

Coordinate = tuple[float, float]
Ring = Sequence[Sequence[float]]

IndexName = Literal["ndvi", "evi", "evi2", "nri", "dswi", "ndwi"]

VEGETATION_INDICES: tuple[IndexName, ...] = (
    "ndvi",
    "evi",
    "evi2",
    "nri",
    "dswi",
    "ndwi",
)


def normalize_index_name(name: str) -> IndexName | None:
    """Return the canonical (lower case) index name or None if unknown."""

    candidate = name.strip().lower()
    for index in VEGETATION_INDICES:
        if index == candidate:
            return index
    return None


class Satellite(str, Enum):
    SENTINEL_2 = "Sentinel-2"
    LANDSAT_8 = "Landsat-8"


@dataclass(frozen=True)
class Polygon:
    """A field boundary registered with the provider.

    Rings are stored in provider order (lon, lat); `center` is (lat, lon).
    """

    id: str
    name: str
    rings: tuple[tuple[Coordinate, ...], ...]
    area: float
    center: Coordinate
    created_at: datetime | None = None

    @property
    def ring(self) -> tuple[Coordinate, ...]:
        return self.rings[0]


@dataclass(frozen=True)
class IndexStats:
    mean: float
    min: float | None = None
    max: float | None = None
    median: float | None = None
    std: float | None = None


@dataclass(frozen=True)
class ImageryRecord:
    """Statistics and overlay tiles for one scene of a polygon."""

    date: datetime
    source_satellite: Satellite
    stats_by_index: Mapping[IndexName, IndexStats]
    overlay_tile_url: str
    raw_ndvi_tile_url: str
    cloud_coverage: float | None = None
    data_coverage: float | None = None


@dataclass(frozen=True)
class NdviHistoryEntry:
    timestamp: int
    source: str
    mean: float
    min: float | None = None
    max: float | None = None
    std: float | None = None

    @property
    def observed_at(self) -> datetime:
        return datetime.fromtimestamp(self.timestamp, tz=UTC)

    @property
    def day(self) -> date:
        return self.observed_at.date()


@dataclass
class DateWindow:
    selected_date: date
    available_dates: list[date] = field(default_factory=list)
