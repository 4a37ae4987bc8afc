from __future__ import annotations

# ruff: noqa: S101
import asyncio
from datetime import UTC, date, datetime, timedelta
from zoneinfo import ZoneInfo

import pytest

from ndvi.errors import InvalidIdentifier, NoData, PermissionDenied
from ndvi.history import (
    HISTORY_WINDOW_DAYS,
    NdviHistoryFetcher,
    available_days,
    history_window,
    parse_history,
    validate_polygon_id,
)
from ndvi.tests.fakes import POLYGON_ID, FakeAgroProvider
from ndvi.timeutils import from_unix_seconds, to_unix_seconds

NOW = datetime(2025, 6, 15, 12, 30, 45, 500000, tzinfo=UTC)


def test_validate_polygon_id() -> None:
    assert validate_polygon_id("0123456789abcdef01234567")
    with pytest.raises(InvalidIdentifier, match="24-character hex"):
        validate_polygon_id("abc")
    with pytest.raises(InvalidIdentifier):
        validate_polygon_id("0123456789abcdef0123456z")


def test_history_window_ends_before_now_in_any_timezone() -> None:
    local_now = NOW.astimezone(ZoneInfo("Africa/Nairobi"))
    start, end = history_window(local_now)
    assert end < NOW
    assert end.tzinfo == UTC
    assert end == datetime(2025, 6, 15, 12, 30, 44, tzinfo=UTC)
    assert end - start == timedelta(days=HISTORY_WINDOW_DAYS)


def test_parse_history_skips_entries_without_mean() -> None:
    entries = parse_history(
        [{"dt": 1, "data": {"mean": 0.5}}, {"dt": 2, "data": {}}]
    )
    assert len(entries) == 1
    assert entries[0].mean == 0.5


def test_parse_history_deduplicates_and_sorts_newest_first() -> None:
    entries = parse_history(
        [
            {"dt": 100, "source": "s2", "data": {"mean": 0.1}},
            {"dt": 300, "source": "l8", "data": {"mean": 0.3}},
            {"dt": 100, "source": "s2", "data": {"mean": 0.9}},
            {"dt": True, "data": {"mean": 0.2}},
            "garbage",
        ]
    )
    assert [e.timestamp for e in entries] == [300, 100]
    assert entries[1].mean == 0.1


def test_parse_history_non_list_is_empty() -> None:
    assert parse_history({"message": "nope"}) == []


def test_available_days_unique_newest_first() -> None:
    day_one = to_unix_seconds(datetime(2025, 6, 1, 8, tzinfo=UTC))
    entries = parse_history(
        [
            {"dt": day_one, "data": {"mean": 0.1}},
            {"dt": day_one + 3600, "data": {"mean": 0.2}},
            {"dt": day_one + 86400 * 5, "data": {"mean": 0.3}},
        ]
    )
    assert available_days(entries) == [date(2025, 6, 6), date(2025, 6, 1)]


def test_available_days_use_viewer_calendar() -> None:
    late = to_unix_seconds(datetime(2025, 6, 1, 22, tzinfo=UTC))
    entries = parse_history(
        [
            {"dt": late, "data": {"mean": 0.1}},
            {"dt": late + 7200, "data": {"mean": 0.2}},
        ]
    )
    assert available_days(entries) == [date(2025, 6, 2), date(2025, 6, 1)]
    assert available_days(entries, ZoneInfo("Africa/Nairobi")) == [
        date(2025, 6, 2)
    ]
    assert available_days(entries, ZoneInfo("America/Chicago")) == [
        date(2025, 6, 1)
    ]


def test_fetch_history_requests_rolling_window() -> None:
    provider = FakeAgroProvider()
    provider.history = [{"dt": 1_749_000_000, "data": {"mean": 0.42}}]
    fetcher = NdviHistoryFetcher(provider, clock=lambda: NOW)

    entries = asyncio.run(fetcher.fetch_history(POLYGON_ID))

    assert entries[0].mean == 0.42
    _, kwargs = provider.calls[0]
    assert kwargs["polygon_id"] == POLYGON_ID
    assert from_unix_seconds(kwargs["end"]) < NOW
    assert kwargs["end"] - kwargs["start"] == HISTORY_WINDOW_DAYS * 86400
    assert kwargs["satellite_type"] == "s2"
    assert kwargs["coverage_min"] == 10


def test_fetch_history_empty_raises_no_data() -> None:
    provider = FakeAgroProvider()
    provider.history = [{"dt": 2, "data": {}}]
    fetcher = NdviHistoryFetcher(provider, clock=lambda: NOW)
    with pytest.raises(NoData):
        asyncio.run(fetcher.fetch_history(POLYGON_ID))


def test_fetch_history_rejects_bad_id_before_network() -> None:
    provider = FakeAgroProvider()
    fetcher = NdviHistoryFetcher(provider, clock=lambda: NOW)
    with pytest.raises(InvalidIdentifier):
        asyncio.run(fetcher.fetch_history("abc"))
    assert provider.calls == []


def test_fetch_history_propagates_classified_errors() -> None:
    provider = FakeAgroProvider()
    provider.history = PermissionDenied(upstream_status=403)
    fetcher = NdviHistoryFetcher(provider, clock=lambda: NOW)
    with pytest.raises(PermissionDenied):
        asyncio.run(fetcher.fetch_history(POLYGON_ID))


def test_fetch_day_returns_first_valid_entry() -> None:
    provider = FakeAgroProvider()
    provider.history = [
        {"dt": 10, "data": {}},
        {"dt": 20, "data": {"mean": 0.6}},
        {"dt": 30, "data": {"mean": 0.7}},
    ]
    fetcher = NdviHistoryFetcher(provider, clock=lambda: NOW)

    entry = asyncio.run(fetcher.fetch_day(POLYGON_ID, date(2025, 6, 1)))

    assert entry is not None
    assert entry.mean == 0.6
    _, kwargs = provider.calls[0]
    assert from_unix_seconds(kwargs["start"]) == datetime(
        2025, 6, 1, tzinfo=UTC
    )
    assert kwargs["end"] - kwargs["start"] == 86399


def test_fetch_day_without_entries_returns_none() -> None:
    provider = FakeAgroProvider()
    provider.history = []
    fetcher = NdviHistoryFetcher(provider, clock=lambda: NOW)
    assert asyncio.run(fetcher.fetch_day(POLYGON_ID, date(2025, 6, 1))) is None
