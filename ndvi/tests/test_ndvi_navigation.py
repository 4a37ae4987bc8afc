from __future__ import annotations

# ruff: noqa: S101
import asyncio
from datetime import UTC, date, datetime, timedelta
from zoneinfo import ZoneInfo

import pytest

from ndvi.engines.types import NdviHistoryEntry
from ndvi.errors import UpstreamUnavailable
from ndvi.navigation import DateNavigator
from ndvi.timeutils import to_unix_seconds

NOW = datetime(2025, 6, 15, 22, 0, tzinfo=UTC)
TODAY = date(2025, 6, 15)


def _entry(day: date, mean: float = 0.5) -> NdviHistoryEntry:
    observed = datetime(day.year, day.month, day.day, 10, tzinfo=UTC)
    return NdviHistoryEntry(
        timestamp=to_unix_seconds(observed),
        source="s2",
        mean=mean,
        min=None,
        max=None,
        std=None,
    )


def test_initial_window_is_today_and_empty() -> None:
    navigator = DateNavigator(clock=lambda: NOW)
    assert navigator.selected_date == TODAY
    assert navigator.available_dates == []
    assert navigator.state == "empty"


def test_today_uses_viewer_timezone() -> None:
    navigator = DateNavigator(
        tz=ZoneInfo("Africa/Nairobi"), clock=lambda: NOW
    )
    assert navigator.today() == TODAY + timedelta(days=1)


def test_step_forward_from_today_is_a_no_op() -> None:
    selected: list[date] = []

    async def on_date_selected(day: date) -> None:
        selected.append(day)

    navigator = DateNavigator(
        clock=lambda: NOW, on_date_selected=on_date_selected
    )
    assert asyncio.run(navigator.step_forward()) is False
    assert navigator.selected_date == TODAY
    assert selected == []


def test_step_forward_from_yesterday_advances() -> None:
    navigator = DateNavigator(clock=lambda: NOW)
    assert asyncio.run(navigator.step_backward()) is True
    assert navigator.selected_date == TODAY - timedelta(days=1)
    assert asyncio.run(navigator.step_forward()) is True
    assert navigator.selected_date == TODAY


def test_failed_date_load_restores_previous_selection() -> None:
    async def on_date_selected(day: date) -> None:
        raise UpstreamUnavailable()

    navigator = DateNavigator(
        clock=lambda: NOW, on_date_selected=on_date_selected
    )
    with pytest.raises(UpstreamUnavailable):
        asyncio.run(navigator.set_selected_date(date(2025, 6, 1)))
    assert navigator.selected_date == TODAY


def test_refresh_selects_newest_day_when_empty() -> None:
    async def load_history() -> list[NdviHistoryEntry]:
        return [_entry(date(2025, 6, 10)), _entry(date(2025, 5, 30))]

    navigator = DateNavigator(clock=lambda: NOW, load_history=load_history)
    days = asyncio.run(navigator.refresh_available_dates())

    assert days == [date(2025, 6, 10), date(2025, 5, 30)]
    assert navigator.selected_date == date(2025, 6, 10)
    assert navigator.state == "has_dates"


def test_refresh_keeps_selection_when_dates_exist() -> None:
    async def load_history() -> list[NdviHistoryEntry]:
        return [_entry(date(2025, 6, 12))]

    navigator = DateNavigator(clock=lambda: NOW, load_history=load_history)
    navigator.window.available_dates = [date(2025, 6, 1)]
    navigator.window.selected_date = date(2025, 6, 1)

    asyncio.run(navigator.refresh_available_dates())

    assert navigator.available_dates == [date(2025, 6, 12)]
    assert navigator.selected_date == date(2025, 6, 1)


def test_refresh_failure_keeps_previous_dates() -> None:
    async def load_history() -> list[NdviHistoryEntry]:
        raise UpstreamUnavailable()

    navigator = DateNavigator(clock=lambda: NOW, load_history=load_history)
    navigator.window.available_dates = [date(2025, 6, 1)]

    with pytest.raises(UpstreamUnavailable):
        asyncio.run(navigator.refresh_available_dates())
    assert navigator.available_dates == [date(2025, 6, 1)]


def test_snapshot_is_detached() -> None:
    navigator = DateNavigator(clock=lambda: NOW)
    snapshot = navigator.snapshot()
    snapshot.available_dates.append(TODAY)
    assert navigator.available_dates == []


def test_refresh_groups_entries_by_viewer_day() -> None:
    # 2026-10-19 01:00 UTC is the evening of 2026-10-18 in Los Angeles.
    observed = datetime(2026, 10, 19, 1, tzinfo=UTC)

    async def load_history() -> list[NdviHistoryEntry]:
        return [NdviHistoryEntry(to_unix_seconds(observed), "s2", 0.4)]

    navigator = DateNavigator(
        tz=ZoneInfo("America/Los_Angeles"),
        clock=lambda: datetime(2026, 10, 19, 3, tzinfo=UTC),
        load_history=load_history,
    )
    asyncio.run(navigator.refresh_available_dates())

    assert navigator.today() == date(2026, 10, 18)
    assert navigator.available_dates == [date(2026, 10, 18)]
    assert navigator.selected_date == date(2026, 10, 18)


def test_refresh_never_selects_past_viewer_today() -> None:
    observed = datetime(2026, 10, 19, 9, tzinfo=UTC)

    async def load_history() -> list[NdviHistoryEntry]:
        return [
            NdviHistoryEntry(to_unix_seconds(observed), "s2", 0.4),
            _entry(date(2026, 10, 10)),
        ]

    navigator = DateNavigator(
        tz=ZoneInfo("America/Los_Angeles"),
        clock=lambda: datetime(2026, 10, 19, 3, tzinfo=UTC),
        load_history=load_history,
    )
    asyncio.run(navigator.refresh_available_dates())

    assert navigator.available_dates[0] == date(2026, 10, 19)
    assert navigator.selected_date == navigator.today()
    assert navigator.selected_date == date(2026, 10, 18)
