"""Date cursor over the days with NDVI observations."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, date, datetime, timedelta, tzinfo
from typing import Literal

from django.utils import timezone

from .engines.types import DateWindow, NdviHistoryEntry
from .history import available_days
from .timeutils import local_today

logger = logging.getLogger(__name__)

HistoryLoader = Callable[[], Awaitable[list[NdviHistoryEntry]]]
DateSelectedHook = Callable[[date], Awaitable[object]]

WindowState = Literal["has_dates", "empty"]


class DateNavigator:
    """Owns a `DateWindow` and keeps it consistent with fetched data.

    Moving the cursor triggers `on_date_selected` (the imagery search); a
    failing hook restores the previous selection. Refreshing replaces the
    available dates only after the history load succeeded.
    """

    def __init__(
        self,
        *,
        tz: tzinfo = UTC,
        clock: Callable[[], datetime] = timezone.now,
        load_history: HistoryLoader | None = None,
        on_date_selected: DateSelectedHook | None = None,
    ) -> None:
        self.tz = tz
        self.clock = clock
        self.load_history = load_history
        self.on_date_selected = on_date_selected
        self.window = DateWindow(selected_date=self.today())

    def today(self) -> date:
        return local_today(self.clock(), self.tz)

    @property
    def selected_date(self) -> date:
        return self.window.selected_date

    @property
    def available_dates(self) -> list[date]:
        return list(self.window.available_dates)

    @property
    def state(self) -> WindowState:
        return "has_dates" if self.window.available_dates else "empty"

    def snapshot(self) -> DateWindow:
        return DateWindow(
            selected_date=self.window.selected_date,
            available_dates=list(self.window.available_dates),
        )

    async def step(self, days: int) -> bool:
        """Move the cursor by `days`; refuses to move past today."""

        candidate = self.window.selected_date + timedelta(days=days)
        if candidate > self.today():
            logger.debug(
                "navigation.clamped selected=%s candidate=%s",
                self.window.selected_date,
                candidate,
            )
            return False
        await self.set_selected_date(candidate)
        return True

    async def step_backward(self) -> bool:
        return await self.step(-1)

    async def step_forward(self) -> bool:
        return await self.step(1)

    async def set_selected_date(self, day: date) -> None:
        previous = self.window.selected_date
        self.window.selected_date = day
        if self.on_date_selected is None:
            return
        try:
            await self.on_date_selected(day)
        except Exception:
            if self.window.selected_date == day:
                self.window.selected_date = previous
            raise

    async def refresh_available_dates(self) -> list[date]:
        if self.load_history is None:
            return self.available_dates
        entries = await self.load_history()
        was_empty = not self.window.available_dates
        self.window.available_dates = available_days(entries, self.tz)
        if was_empty and self.window.available_dates:
            # Provider timestamps may run ahead of the local clock.
            self.window.selected_date = min(
                self.window.available_dates[0], self.today()
            )
        return self.available_dates
