from __future__ import annotations

from datetime import UTC, date, datetime, time, tzinfo
from zoneinfo import ZoneInfo


def get_zone(tz_str: str) -> ZoneInfo:
    """Return a ZoneInfo instance or raise for invalid input."""

    try:
        return ZoneInfo(tz_str)
    except Exception as exc:  # pragma: no cover - zoneinfo raised
        raise ValueError(f"Invalid timezone: {tz_str}") from exc


def ensure_aware(dt: datetime, tz: tzinfo) -> datetime:
    """Attach or convert timezone information to a datetime."""

    if dt.tzinfo is None or dt.tzinfo.utcoffset(dt) is None:
        return dt.replace(tzinfo=tz)
    return dt.astimezone(tz)


def to_utc(dt: datetime) -> datetime:
    """Return `dt` in UTC, treating naive values as UTC."""

    return ensure_aware(dt, UTC)


def local_today(now: datetime, tz: tzinfo) -> date:
    """Return the calendar day of `now` in the viewer's timezone."""

    return to_utc(now).astimezone(tz).date()


def utc_day_bounds(day: date) -> tuple[datetime, datetime]:
    """Return the first and last instants of a UTC calendar day."""

    start = datetime.combine(day, time.min).replace(tzinfo=UTC)
    end = datetime.combine(day, time.max).replace(tzinfo=UTC)
    return start, end


def to_unix_seconds(dt: datetime) -> int:
    return int(to_utc(dt).timestamp())


def from_unix_seconds(value: int) -> datetime:
    return datetime.fromtimestamp(value, tz=UTC)
