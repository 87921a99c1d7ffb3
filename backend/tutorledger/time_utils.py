from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc_naive(dt: datetime) -> datetime:
    """Normalize a datetime to UTC-naive. Naive input is already UTC."""
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 datetime string and normalize to UTC-naive datetime.

    - None / "" -> None
    - "YYYY-MM-DDTHH:MM" (naive) is interpreted as UTC
    - "...Z" or "...+/-HH:MM" is converted to UTC and tzinfo is stripped
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None

    # Accept trailing Z
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"

    return to_utc_naive(datetime.fromisoformat(s))


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with trailing 'Z'.
    If dt is naive, it is treated as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")


def parse_hhmm(value: str) -> time:
    """Parse a wall-clock "HH:MM" (hour may be a single digit)."""
    hours, minutes = value.strip().split(":")
    return time(int(hours), int(minutes))


def local_week_start(now_utc: datetime, tz: ZoneInfo) -> datetime:
    """
    Monday 00:00 of the week containing now_utc, in tz.

    Returned as an aware datetime in tz. Monday is weekday 0, matching
    ScheduleSlot.day_of_week.
    """
    local_now = now_utc.replace(tzinfo=timezone.utc).astimezone(tz)
    monday = local_now.date() - timedelta(days=local_now.weekday())
    return datetime.combine(monday, time(0, 0), tzinfo=tz)


def local_wall_clock_to_utc(day: date, at: time, tz: ZoneInfo) -> datetime:
    """Convert a local calendar day + wall-clock time in tz to UTC-naive."""
    return to_utc_naive(datetime.combine(day, at, tzinfo=tz))


def week_range(now_utc: datetime, tz: ZoneInfo, weeks: int = 1) -> tuple[datetime, datetime]:
    """[start, end) of the current local week as UTC-naive instants."""
    start = local_week_start(now_utc, tz)
    end_day = start.date() + timedelta(days=7 * weeks)
    return to_utc_naive(start), local_wall_clock_to_utc(end_day, time(0, 0), tz)
