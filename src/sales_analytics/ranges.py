"""
Date-range resolution and timestamp filtering.

Every interval is anchored to a single ``now`` supplied by the caller so that
resolution and bucketing agree on one instant per computation.
"""

from __future__ import annotations

import calendar
import logging
from datetime import date, datetime, timedelta
from typing import Any, List, Optional, Sequence, Tuple, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .models import FILTERS, ResolvedInterval

logger = logging.getLogger(__name__)

DateLike = Union[date, str, None]


def coerce_timezone(name: Optional[str]) -> ZoneInfo:
    try:
        return ZoneInfo(name or "UTC")
    except (ZoneInfoNotFoundError, ValueError):
        return ZoneInfo("UTC")


def normalize_datetime(dt: datetime, tz: ZoneInfo) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=tz)
    return dt.astimezone(tz)


def anchor_now(now: Optional[datetime], tz: ZoneInfo) -> datetime:
    if now is None:
        return datetime.now(tz)
    return normalize_datetime(now, tz)


def parse_instant(value: Any, tz: ZoneInfo) -> Optional[datetime]:
    """
    Parse an ISO-8601 timestamp into an aware datetime in ``tz``.

    Returns ``None`` for anything unparseable instead of raising; naive
    values are taken to be wall-clock time in ``tz``.
    """

    if isinstance(value, datetime):
        return normalize_datetime(value, tz)
    if not isinstance(value, str):
        return None
    text = value.strip()
    if not text:
        return None
    if text[-1] in "zZ":
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    return normalize_datetime(parsed, tz)


def parse_day(value: DateLike) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        return date.fromisoformat(value.strip()[:10])
    except ValueError:
        return None


def start_of_day(dt: datetime) -> datetime:
    return dt.replace(hour=0, minute=0, second=0, microsecond=0)


def end_of_day(dt: datetime) -> datetime:
    return dt.replace(hour=23, minute=59, second=59, microsecond=999000)


def day_start(day: date, tz: ZoneInfo) -> datetime:
    return datetime(day.year, day.month, day.day, tzinfo=tz)


def shift_months(dt: datetime, months: int) -> datetime:
    """Move ``dt`` by whole calendar months, clamping to the last valid day."""

    index = dt.year * 12 + (dt.month - 1) + months
    year, month = divmod(index, 12)
    month += 1
    last_day = calendar.monthrange(year, month)[1]
    return dt.replace(year=year, month=month, day=min(dt.day, last_day))


def custom_bounds(custom_start: DateLike, custom_end: DateLike) -> Optional[tuple]:
    """
    Return ``(first_day, last_day)`` for a custom range or ``None`` when either
    bound is missing. Reversed bounds are swapped.
    """

    first = parse_day(custom_start)
    last = parse_day(custom_end)
    if first is None or last is None:
        return None
    if first > last:
        first, last = last, first
    return first, last


def resolve_date_range(
    date_filter: str,
    custom_start: DateLike = None,
    custom_end: DateLike = None,
    *,
    now: Optional[datetime] = None,
    timezone: str = "UTC",
) -> Optional[ResolvedInterval]:
    """
    Map a filter keyword to a concrete interval ending at the end of today.

    ``all`` resolves to ``None`` (no filtering). A ``custom`` filter missing
    either bound falls back to ``today``.
    """

    date_filter = (date_filter or "all").strip().lower()
    if date_filter not in FILTERS:
        raise ValueError(f"Unknown date filter: {date_filter!r}")
    if date_filter == "all":
        return None

    tz = coerce_timezone(timezone)
    current = anchor_now(now, tz)
    today = start_of_day(current)
    end_of_today = end_of_day(current)

    if date_filter == "week":
        return ResolvedInterval(start=today - timedelta(days=7), end=end_of_today)
    if date_filter == "month":
        return ResolvedInterval(start=shift_months(today, -1), end=end_of_today)
    if date_filter == "year":
        return ResolvedInterval(start=shift_months(today, -12), end=end_of_today)
    if date_filter == "custom":
        bounds = custom_bounds(custom_start, custom_end)
        if bounds is not None:
            first, last = bounds
            return ResolvedInterval(start=day_start(first, tz), end=end_of_day(day_start(last, tz)))
        logger.debug("Custom range is missing a bound; falling back to today")
    return ResolvedInterval(start=today, end=end_of_today)


def filter_timestamps(series: Sequence[Any], interval: Optional[ResolvedInterval]) -> Sequence[Any]:
    """
    Keep the timestamps whose instant lies inside ``interval``.

    With no interval the series is returned as-is, which is what makes the
    ``all`` filter a pure pass-through.
    """

    if interval is None:
        return series
    return select_timestamps(series, interval)[0]


def select_timestamps(series: Sequence[Any], interval: ResolvedInterval) -> Tuple[List[Any], int]:
    """Return ``(kept, unparseable)``, parsing every value once."""

    tz = interval.start.tzinfo
    kept = []
    unparseable = 0
    for value in series:
        instant = parse_instant(value, tz)
        if instant is None:
            unparseable += 1
        elif interval.contains(instant):
            kept.append(value)
    return kept, unparseable
