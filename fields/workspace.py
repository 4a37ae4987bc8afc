"""Operations offered to the map/dashboard UI for one user session.

A workspace wires the polygon store, history fetcher, imagery search and
date navigator together. Each selected polygon gets a fresh
`PolygonCache`; every history or imagery request is tagged with the cache
it was issued for (and, for imagery, a sequence number) so results that
resolve after the selection moved on are dropped instead of applied.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, date, datetime, tzinfo
from typing import Any

from django.utils import timezone

from ndvi.cache import PolygonCache
from ndvi.engines.base import AgroProvider
from ndvi.engines.types import (
    DateWindow,
    ImageryRecord,
    NdviHistoryEntry,
    Polygon,
)
from ndvi.errors import AgroError, NotFound
from ndvi.history import NdviHistoryFetcher, validate_polygon_id
from ndvi.imagery import ImagerySearchEngine, default_overlay
from ndvi.metrics import fields_cache_hit_total, fields_stale_results_total
from ndvi.navigation import DateNavigator
from ndvi.timeutils import to_utc

from .store import PolygonStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ImageryView:
    polygon_id: str
    day: date
    records: Sequence[ImageryRecord]
    default_overlay: str | None
    stale: bool = False


@dataclass(frozen=True)
class Selection:
    polygon: Polygon
    window: DateWindow
    history: Sequence[NdviHistoryEntry]
    imagery: ImageryView | None
    errors: dict[str, AgroError]
    stale: bool = False


@dataclass(frozen=True)
class Navigation:
    moved: bool
    window: DateWindow
    imagery: ImageryView | None


class FieldWorkspace:
    def __init__(
        self,
        provider: AgroProvider,
        *,
        tz: tzinfo = UTC,
        clock: Callable[[], datetime] = timezone.now,
    ) -> None:
        self.provider = provider
        self.tz = tz
        self.clock = clock
        self.store = PolygonStore(provider)
        self.history_fetcher = NdviHistoryFetcher(provider, clock=clock)
        self.imagery_engine = ImagerySearchEngine(provider, clock=clock)
        self._cache: PolygonCache | None = None

    @property
    def cache(self) -> PolygonCache | None:
        return self._cache

    @property
    def window(self) -> DateWindow | None:
        if self._cache is None:
            return None
        return self._cache.navigator.snapshot()

    def _require_cache(self) -> PolygonCache:
        if self._cache is None:
            raise NotFound("No polygon is selected.")
        return self._cache

    def _is_current(self, cache: PolygonCache) -> bool:
        return self._cache is cache

    def _drop_stale(self, kind: str, cache: PolygonCache) -> None:
        fields_stale_results_total.labels(kind=kind).inc()
        logger.debug(
            "workspace.stale_result kind=%s polygon=%s",
            kind,
            cache.polygon_id,
        )

    async def list_polygons(self) -> list[Polygon]:
        polygons = await self.store.list()
        cache = self._cache
        if cache is not None and self.store.selected_id != cache.polygon_id:
            logger.info(
                "workspace.selection_cleared polygon=%s", cache.polygon_id
            )
            self._cache = None
        return polygons

    async def create_polygon(
        self, name: str, drawn_rings: Sequence[Sequence[Any]]
    ) -> Polygon:
        return await self.store.create(name, drawn_rings)

    async def select_polygon(self, polygon_id: str) -> Selection:
        """Load polygon detail, its history and imagery for the newest day."""

        validate_polygon_id(polygon_id)
        polygon = await self.store.select(polygon_id)
        cache = self._new_cache(polygon)
        self._cache = cache
        logger.info("workspace.selected polygon=%s", polygon.id)

        errors: dict[str, AgroError] = {}
        try:
            await cache.navigator.refresh_available_dates()
        except AgroError as exc:
            errors["history"] = exc

        imagery: ImageryView | None = None
        if not self._is_current(cache):
            return Selection(
                polygon=polygon,
                window=cache.navigator.snapshot(),
                history=list(cache.history),
                imagery=None,
                errors=errors,
                stale=True,
            )
        try:
            imagery = await self._load_imagery(
                cache, cache.navigator.selected_date
            )
        except AgroError as exc:
            errors["imagery"] = exc

        return Selection(
            polygon=polygon,
            window=cache.navigator.snapshot(),
            history=list(cache.history),
            imagery=imagery,
            errors=errors,
            stale=not self._is_current(cache),
        )

    async def delete_polygon(self, polygon_id: str) -> bool:
        validate_polygon_id(polygon_id)
        was_selected = await self.store.delete(polygon_id)
        cache = self._cache
        if was_selected or (cache and cache.polygon_id == polygon_id):
            self._cache = None
            was_selected = True
        return was_selected

    async def navigate_date(
        self,
        *,
        delta: int | None = None,
        explicit: date | None = None,
    ) -> Navigation:
        if (delta is None) == (explicit is None):
            raise ValueError("Provide exactly one of delta or explicit.")
        cache = self._require_cache()
        navigator = cache.navigator
        if explicit is not None:
            await navigator.set_selected_date(explicit)
            moved = True
        else:
            moved = await navigator.step(int(delta or 0))
        return Navigation(
            moved=moved,
            window=navigator.snapshot(),
            imagery=self._current_view(cache),
        )

    async def get_current_imagery(self) -> ImageryView:
        cache = self._require_cache()
        return await self._load_imagery(
            cache, cache.navigator.selected_date
        )

    async def get_history(
        self, *, refresh: bool = False
    ) -> list[NdviHistoryEntry]:
        cache = self._require_cache()
        if refresh or not cache.history:
            await cache.navigator.refresh_available_dates()
        else:
            fields_cache_hit_total.labels(layer="history").inc()
        return list(cache.history)

    async def get_day_summary(self, day: date) -> NdviHistoryEntry | None:
        cache = self._require_cache()
        for entry in cache.history:
            if entry.day == day:
                fields_cache_hit_total.labels(layer="day_summary").inc()
                return entry
        return await self.history_fetcher.fetch_day(cache.polygon_id, day)

    def _new_cache(self, polygon: Polygon) -> PolygonCache:
        navigator = DateNavigator(tz=self.tz, clock=self.clock)
        cache = PolygonCache(polygon=polygon, navigator=navigator)

        async def load_history() -> list[NdviHistoryEntry]:
            return await self._load_history(cache)

        async def on_date_selected(day: date) -> ImageryView:
            return await self._load_imagery(cache, day)

        navigator.load_history = load_history
        navigator.on_date_selected = on_date_selected
        return cache

    async def _load_history(
        self, cache: PolygonCache
    ) -> list[NdviHistoryEntry]:
        async with cache.history_lock:
            entries = await self.history_fetcher.fetch_history(
                cache.polygon_id
            )
            if self._is_current(cache):
                cache.history = entries
            else:
                self._drop_stale("history", cache)
            return entries

    async def _load_imagery(
        self, cache: PolygonCache, day: date
    ) -> ImageryView:
        seq = cache.next_imagery_seq()
        async with cache.day_lock(day):
            records = cache.imagery.get(day)
            if records is None:
                records = await self.imagery_engine.search(
                    cache.polygon_id, day
                )
                # The search window of the current UTC day is still open.
                if day < to_utc(self.clock()).date():
                    cache.imagery[day] = records
            else:
                fields_cache_hit_total.labels(layer="imagery").inc()

        stale = not self._is_current(cache) or seq != cache.imagery_seq
        if stale:
            self._drop_stale("imagery", cache)
        else:
            cache.current_day = day
            cache.current_records = records
        return ImageryView(
            polygon_id=cache.polygon_id,
            day=day,
            records=records,
            default_overlay=default_overlay(records),
            stale=stale,
        )

    def _current_view(self, cache: PolygonCache) -> ImageryView | None:
        day = cache.current_day
        if day is None:
            return None
        records = cache.current_records
        return ImageryView(
            polygon_id=cache.polygon_id,
            day=day,
            records=records,
            default_overlay=default_overlay(records),
        )
