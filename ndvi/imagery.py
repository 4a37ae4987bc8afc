"""Single-day imagery search with concurrent per-index statistics."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping, Sequence
from datetime import date, datetime
from typing import Any, Final
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from django.conf import settings
from django.utils import timezone

from .engines.base import AgroProvider
from .engines.types import (
    ImageryRecord,
    IndexName,
    IndexStats,
    Satellite,
    normalize_index_name,
)
from .errors import AgroError, UpstreamRejected
from .history import validate_polygon_id
from .metrics import imagery_scene_failures_total
from .timeutils import (
    from_unix_seconds,
    to_unix_seconds,
    to_utc,
    utc_day_bounds,
)

logger = logging.getLogger(__name__)

CLOUDS_MAX: Final[int] = int(getattr(settings, "IMAGERY_CLOUDS_MAX", 20))
RESOLUTION_MIN: Final[int] = int(
    getattr(settings, "IMAGERY_RESOLUTION_MIN", 10)
)
PALETTE_ID: Final[int] = int(getattr(settings, "IMAGERY_PALETTE_ID", 1))


def day_bounds(day: date, now: datetime) -> tuple[int, int]:
    """Unix-second bounds of a UTC day, with the end clamped to `now`.

    For a day that has not started in UTC yet, `start` exceeds `end`.
    """

    start, end = utc_day_bounds(day)
    now_utc = to_utc(now)
    if end > now_utc:
        end = now_utc
    return to_unix_seconds(start), to_unix_seconds(end)


def build_overlay_url(raw_tile_url: str, palette_id: int = PALETTE_ID) -> str:
    """Request a fixed color palette from a `{z}/{x}/{y}` tile template."""

    parts = urlsplit(raw_tile_url)
    query = [
        (key, value)
        for key, value in parse_qsl(parts.query, keep_blank_values=True)
        if key != "paletteid"
    ]
    query.append(("paletteid", str(palette_id)))
    return urlunsplit(parts._replace(query=urlencode(query)))


def default_overlay(records: Sequence[ImageryRecord]) -> str | None:
    if not records:
        return None
    return records[0].overlay_tile_url


def _to_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def parse_index_stats(index: IndexName, payload: Any) -> IndexStats:
    if not isinstance(payload, dict):
        payload = {}
    mean = _to_float(payload.get("mean"))
    if mean is None:
        raise UpstreamRejected(f"Statistics for {index} are missing a mean.")
    return IndexStats(
        mean=mean,
        min=_to_float(payload.get("min")),
        max=_to_float(payload.get("max")),
        median=_to_float(payload.get("median")),
        std=_to_float(payload.get("std")),
    )


def _satellite(scene: Mapping[str, Any], ndvi_tile: str) -> Satellite:
    raw_type = str(scene.get("type") or "").lower()
    if "sentinel" in raw_type:
        return Satellite.SENTINEL_2
    if "landsat" in raw_type:
        return Satellite.LANDSAT_8
    return Satellite.SENTINEL_2 if "s2" in ndvi_tile else Satellite.LANDSAT_8


def _lower_keys(raw: Any) -> dict[str, Any]:
    if not isinstance(raw, dict):
        return {}
    return {str(key).lower(): value for key, value in raw.items()}


class ImagerySearchEngine:
    def __init__(
        self,
        provider: AgroProvider,
        *,
        clock: Callable[[], datetime] = timezone.now,
    ) -> None:
        self.provider = provider
        self.clock = clock

    async def search(self, polygon_id: str, day: date) -> list[ImageryRecord]:
        """Return one record per fully-described scene, in provider order."""

        validate_polygon_id(polygon_id)
        start, end = day_bounds(day, self.clock())
        if start > end:
            logger.info(
                "imagery.day_not_started polygon=%s day=%s", polygon_id, day
            )
            return []
        scenes = await self.provider.search_images(
            polygon_id=polygon_id,
            start=start,
            end=end,
            clouds_max=CLOUDS_MAX,
            resolution_min=RESOLUTION_MIN,
        )
        if not isinstance(scenes, list):
            raise UpstreamRejected("Imagery search response is not an array.")
        if not scenes:
            logger.info(
                "imagery.no_scenes polygon=%s day=%s", polygon_id, day
            )
            return []

        outcomes = await asyncio.gather(
            *(self._build_record(scene) for scene in scenes),
            return_exceptions=True,
        )
        records: list[ImageryRecord] = []
        failures: list[AgroError] = []
        for idx, outcome in enumerate(outcomes):
            if isinstance(outcome, ImageryRecord):
                records.append(outcome)
                continue
            if not isinstance(outcome, AgroError):
                raise outcome
            failures.append(outcome)
            imagery_scene_failures_total.labels(
                error_type=outcome.code
            ).inc()
            logger.warning(
                "imagery.scene_failed polygon=%s day=%s scene=%s code=%s",
                polygon_id,
                day,
                idx,
                outcome.code,
            )
        if not records and failures:
            raise failures[0]
        return records

    async def _build_record(self, scene: Any) -> ImageryRecord:
        if not isinstance(scene, dict):
            raise UpstreamRejected("Imagery scene is not an object.")
        tiles = _lower_keys(scene.get("tile"))
        raw_ndvi_tile = tiles.get("ndvi")
        if not isinstance(raw_ndvi_tile, str) or not raw_ndvi_tile:
            raise UpstreamRejected("Imagery scene has no NDVI tile.")
        raw_dt = scene.get("dt")
        if isinstance(raw_dt, bool) or not isinstance(raw_dt, int | float):
            raise UpstreamRejected("Imagery scene has no timestamp.")

        stats_urls: dict[IndexName, str] = {}
        for key, url in _lower_keys(scene.get("stats")).items():
            index = normalize_index_name(key)
            if index is not None and isinstance(url, str) and url:
                stats_urls[index] = url

        stats = await self._fetch_all_stats(stats_urls)
        return ImageryRecord(
            date=from_unix_seconds(int(raw_dt)),
            source_satellite=_satellite(scene, raw_ndvi_tile),
            stats_by_index=stats,
            overlay_tile_url=build_overlay_url(raw_ndvi_tile),
            raw_ndvi_tile_url=raw_ndvi_tile,
            cloud_coverage=_to_float(scene.get("cl")),
            data_coverage=_to_float(scene.get("dc")),
        )

    async def _fetch_all_stats(
        self, stats_urls: Mapping[IndexName, str]
    ) -> dict[IndexName, IndexStats]:
        """Fetch all indices concurrently; one failure cancels the rest."""

        if not stats_urls:
            return {}
        tasks = {
            index: asyncio.ensure_future(self._fetch_stats(index, url))
            for index, url in stats_urls.items()
        }
        try:
            done, pending = await asyncio.wait(
                tasks.values(), return_when=asyncio.FIRST_EXCEPTION
            )
        finally:
            for task in tasks.values():
                if not task.done():
                    task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        errors = [task.exception() for task in done]
        for exc in errors:
            if exc is not None:
                raise exc
        return {index: task.result() for index, task in tasks.items()}

    async def _fetch_stats(self, index: IndexName, url: str) -> IndexStats:
        payload = await self.provider.index_stats(url)
        return parse_index_stats(index, payload)
