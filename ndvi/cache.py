"""Session cache owned by the currently selected polygon."""

from __future__ import annotations

import asyncio
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date

from .engines.types import ImageryRecord, NdviHistoryEntry, Polygon
from .navigation import DateNavigator


@dataclass
class PolygonCache:
    """Everything derived from one selected polygon.

    The workspace replaces the whole object when the selection changes, so
    results landing in a discarded cache never reach the active one.
    Each entry has its own lock: at most one fetch writes a given entry.
    """

    polygon: Polygon
    navigator: DateNavigator
    history: list[NdviHistoryEntry] = field(default_factory=list)
    imagery: dict[date, list[ImageryRecord]] = field(default_factory=dict)
    current_day: date | None = None
    current_records: list[ImageryRecord] = field(default_factory=list)
    imagery_seq: int = 0
    history_lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    _day_locks: defaultdict[date, asyncio.Lock] = field(
        default_factory=lambda: defaultdict(asyncio.Lock)
    )

    @property
    def polygon_id(self) -> str:
        return self.polygon.id

    def day_lock(self, day: date) -> asyncio.Lock:
        return self._day_locks[day]

    def next_imagery_seq(self) -> int:
        self.imagery_seq += 1
        return self.imagery_seq
