"""Rolling-window NDVI history for a polygon."""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from datetime import UTC, date, datetime, timedelta, tzinfo
from typing import Any, Final

from django.conf import settings
from django.utils import timezone

from .engines.base import AgroProvider
from .engines.types import NdviHistoryEntry
from .errors import InvalidIdentifier, NoData
from .timeutils import to_unix_seconds, to_utc, utc_day_bounds

logger = logging.getLogger(__name__)

HISTORY_WINDOW_DAYS: Final[int] = int(
    getattr(settings, "NDVI_HISTORY_WINDOW_DAYS", 364)
)
HISTORY_COVERAGE_MIN: Final[int] = int(
    getattr(settings, "NDVI_HISTORY_COVERAGE_MIN", 10)
)
HISTORY_TYPE: Final[str] = str(getattr(settings, "NDVI_HISTORY_TYPE", "s2"))
HISTORY_ZOOM: Final[int] = int(getattr(settings, "NDVI_HISTORY_ZOOM", 13))

POLYGON_ID_RE: Final[re.Pattern[str]] = re.compile(r"^[0-9a-fA-F]{24}$")


def validate_polygon_id(polygon_id: str) -> str:
    if not isinstance(polygon_id, str) or not POLYGON_ID_RE.match(polygon_id):
        raise InvalidIdentifier()
    return polygon_id


def history_window(
    now: datetime, days: int = HISTORY_WINDOW_DAYS
) -> tuple[datetime, datetime]:
    """Return the (start, end) UTC window ending one second before `now`."""

    end = to_utc(now).replace(microsecond=0) - timedelta(seconds=1)
    start = end - timedelta(days=days)
    return start, end


def _to_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def parse_entry(item: Any) -> NdviHistoryEntry | None:
    """Return an entry, or None when `dt` or `data.mean` is missing."""

    if not isinstance(item, dict):
        return None
    raw_dt = item.get("dt")
    if isinstance(raw_dt, bool) or not isinstance(raw_dt, int | float):
        return None
    data = item.get("data")
    if not isinstance(data, dict):
        return None
    mean = _to_float(data.get("mean"))
    if mean is None:
        return None
    source = item.get("source")
    return NdviHistoryEntry(
        timestamp=int(raw_dt),
        source=str(source) if source is not None else "",
        mean=mean,
        min=_to_float(data.get("min")),
        max=_to_float(data.get("max")),
        std=_to_float(data.get("std")),
    )


def parse_history(payload: Any) -> list[NdviHistoryEntry]:
    """Validate, deduplicate by timestamp and sort newest first."""

    if not isinstance(payload, list):
        return []
    seen: set[int] = set()
    entries: list[NdviHistoryEntry] = []
    for item in payload:
        entry = parse_entry(item)
        if entry is None or entry.timestamp in seen:
            continue
        seen.add(entry.timestamp)
        entries.append(entry)
    entries.sort(key=lambda e: e.timestamp, reverse=True)
    return entries


def available_days(
    entries: list[NdviHistoryEntry], tz: tzinfo = UTC
) -> list[date]:
    """Unique calendar days of the entries in `tz`, newest first."""

    days: list[date] = []
    for entry in sorted(entries, key=lambda e: e.timestamp, reverse=True):
        day = entry.observed_at.astimezone(tz).date()
        if day not in days:
            days.append(day)
    return days


class NdviHistoryFetcher:
    def __init__(
        self,
        provider: AgroProvider,
        *,
        clock: Callable[[], datetime] = timezone.now,
    ) -> None:
        self.provider = provider
        self.clock = clock

    async def fetch_history(self, polygon_id: str) -> list[NdviHistoryEntry]:
        validate_polygon_id(polygon_id)
        start, end = history_window(self.clock())
        payload = await self.provider.ndvi_history(
            polygon_id=polygon_id,
            start=to_unix_seconds(start),
            end=to_unix_seconds(end),
            satellite_type=HISTORY_TYPE,
            zoom=HISTORY_ZOOM,
            coverage_min=HISTORY_COVERAGE_MIN,
        )
        entries = parse_history(payload)
        raw_count = len(payload) if isinstance(payload, list) else 0
        logger.debug(
            "history.fetched polygon=%s raw=%s valid=%s",
            polygon_id,
            raw_count,
            len(entries),
        )
        if not entries:
            raise NoData()
        return entries

    async def fetch_day(
        self, polygon_id: str, day: date
    ) -> NdviHistoryEntry | None:
        """Return the first valid history entry recorded on a UTC day."""

        validate_polygon_id(polygon_id)
        start, end = utc_day_bounds(day)
        payload = await self.provider.ndvi_history(
            polygon_id=polygon_id,
            start=to_unix_seconds(start),
            end=to_unix_seconds(end),
            satellite_type=HISTORY_TYPE,
            zoom=HISTORY_ZOOM,
            coverage_min=HISTORY_COVERAGE_MIN,
        )
        if not isinstance(payload, list):
            return None
        for item in payload:
            entry = parse_entry(item)
            if entry is not None:
                return entry
        return None
