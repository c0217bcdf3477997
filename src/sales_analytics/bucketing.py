"""
Trend bucketing for chart series.

A :class:`BucketPlan` fixes the bucket boundaries for a filter once; the
per-timestamp and per-day-aggregate series only differ in how a bucket's
count is derived from it.
"""

from __future__ import annotations

import math
from bisect import bisect_right
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence

from .dataset import iter_daily_visits, iter_instants
from .models import TrendPoint, TrendSeries
from .ranges import (
    DateLike,
    anchor_now,
    coerce_timezone,
    custom_bounds,
    day_start,
    shift_months,
    start_of_day,
)
from .utils import clamp, round_half_up

DEFAULT_WINDOW_DAYS = 30
CUSTOM_DAILY_LIMIT = 7

_WEEKDAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


def hour_label(hour: int) -> str:
    if hour == 0:
        return "12 AM"
    if hour < 12:
        return f"{hour} AM"
    if hour == 12:
        return "12 PM"
    return f"{hour - 12} PM"


def day_label(day: date) -> str:
    return f"{_MONTHS[day.month - 1]} {day.day}"


@dataclass(frozen=True)
class Bucket:
    """Half-open slice ``[start, end)`` of a trend series."""

    label: str
    start: datetime
    end: datetime


@dataclass(frozen=True)
class BucketPlan:
    granularity: str
    buckets: Sequence[Bucket]

    def count_instants(self, instants: Iterable[datetime]) -> List[int]:
        """
        Count instants per bucket.

        Instants before the first bucket fold into it and instants after the
        last bucket fold into that one, so every instant lands in exactly one
        bucket.
        """

        counts = [0] * len(self.buckets)
        if not self.buckets:
            return counts
        starts = [bucket.start for bucket in self.buckets]
        last = len(self.buckets) - 1
        for instant in instants:
            index = bisect_right(starts, instant) - 1
            counts[min(max(index, 0), last)] += 1
        return counts

    def tally(self, value_at: Callable[[date], float]) -> List[float]:
        """
        Sum a per-day value over each bucket.

        Hourly buckets get an even 1/24 share of their day since no finer
        resolution exists.
        """

        totals: List[float] = []
        for bucket in self.buckets:
            if self.granularity == "hour":
                totals.append(value_at(bucket.start.date()) / 24)
                continue
            total = 0.0
            day = bucket.start.date()
            while day < bucket.end.date():
                total += value_at(day)
                day += timedelta(days=1)
            totals.append(total)
        return totals


def _hourly_plan(today: datetime) -> BucketPlan:
    buckets = []
    for hour in range(24):
        start = today.replace(hour=hour)
        end = today.replace(hour=hour + 1) if hour < 23 else day_start(today.date() + timedelta(days=1), today.tzinfo)
        buckets.append(Bucket(label=hour_label(hour), start=start, end=end))
    return BucketPlan(granularity="hour", buckets=tuple(buckets))


def _daily_plan(days: Sequence[date], tz: Any, label: Callable[[date], str]) -> BucketPlan:
    buckets = tuple(
        Bucket(label=label(day), start=day_start(day, tz), end=day_start(day + timedelta(days=1), tz)) for day in days
    )
    return BucketPlan(granularity="day", buckets=buckets)


def _trailing_days(today: date, count: int) -> List[date]:
    return [today - timedelta(days=offset) for offset in range(count - 1, -1, -1)]


def plan_buckets(
    date_filter: str,
    custom_start: DateLike = None,
    custom_end: DateLike = None,
    *,
    now: Optional[datetime] = None,
    timezone: str = "UTC",
    window_days: int = DEFAULT_WINDOW_DAYS,
) -> BucketPlan:
    """
    Choose bucket boundaries for a filter.

    ``today`` is 24 hours, ``week`` the last 7 days, ``month`` 4 Sunday-aligned
    weeks, ``year`` 12 calendar months. ``custom`` is daily up to a 7-day span
    and weekly beyond it. ``all`` shows the last ``window_days`` days.
    """

    tz = coerce_timezone(timezone)
    current = anchor_now(now, tz)
    today = start_of_day(current)
    date_filter = (date_filter or "all").strip().lower()

    if date_filter == "custom":
        bounds = custom_bounds(custom_start, custom_end)
        if bounds is None:
            return _hourly_plan(today)
        first, last = bounds
        span = (last - first).days
        if span <= CUSTOM_DAILY_LIMIT:
            return _daily_plan([first + timedelta(days=offset) for offset in range(span + 1)], tz, day_label)
        stop = day_start(last + timedelta(days=1), tz)
        weeks = math.ceil((span + 1) / 7)
        buckets = []
        for index in range(weeks):
            start = day_start(first + timedelta(days=index * 7), tz)
            end = min(day_start(first + timedelta(days=(index + 1) * 7), tz), stop)
            buckets.append(Bucket(label=f"Week {index + 1}", start=start, end=end))
        return BucketPlan(granularity="week", buckets=tuple(buckets))

    if date_filter == "today":
        return _hourly_plan(today)

    if date_filter == "week":
        days = _trailing_days(today.date(), 7)
        return _daily_plan(days, tz, lambda day: _WEEKDAYS[day.weekday()])

    if date_filter == "month":
        # date.weekday(): Monday == 0, Sunday == 6
        last_sunday = today.date() - timedelta(days=(today.weekday() + 1) % 7)
        buckets = []
        for index in range(4):
            first = last_sunday - timedelta(days=(3 - index) * 7)
            buckets.append(
                Bucket(
                    label=f"Week {index + 1}",
                    start=day_start(first, tz),
                    end=day_start(first + timedelta(days=7), tz),
                )
            )
        return BucketPlan(granularity="week", buckets=tuple(buckets))

    if date_filter == "year":
        first_of_month = today.replace(day=1)
        buckets = []
        for offset in range(11, -1, -1):
            start = shift_months(first_of_month, -offset)
            buckets.append(Bucket(label=_MONTHS[start.month - 1], start=start, end=shift_months(start, 1)))
        return BucketPlan(granularity="month", buckets=tuple(buckets))

    return _daily_plan(_trailing_days(today.date(), max(window_days, 1)), tz, day_label)


def bucket_timestamps(
    timestamps: Sequence[Any],
    date_filter: str,
    custom_start: DateLike = None,
    custom_end: DateLike = None,
    *,
    now: Optional[datetime] = None,
    timezone: str = "UTC",
    window_days: int = DEFAULT_WINDOW_DAYS,
    name: str = "",
) -> TrendSeries:
    """
    Count already-filtered timestamps per bucket.

    No filtering happens here; unparseable values are skipped, every other
    value is counted exactly once.
    """

    plan = plan_buckets(
        date_filter, custom_start, custom_end, now=now, timezone=timezone, window_days=window_days
    )
    counts = plan.count_instants(iter_instants(timestamps, coerce_timezone(timezone)))
    points = [
        TrendPoint(label=bucket.label, count=count, start=bucket.start) for bucket, count in zip(plan.buckets, counts)
    ]
    return TrendSeries(name=name, granularity=plan.granularity, points=points)


def estimate_source_trend(
    daily_visits: Mapping[str, int],
    source_visits: float,
    total_visits: float,
    date_filter: str,
    custom_start: DateLike = None,
    custom_end: DateLike = None,
    *,
    now: Optional[datetime] = None,
    timezone: str = "UTC",
    window_days: int = DEFAULT_WINDOW_DAYS,
    name: str = "",
) -> TrendSeries:
    """
    Approximate a per-source trend from day-level visit totals.

    Each bucket's visits are scaled by ``source_visits / total_visits``
    (clamped to ``[0, 1]``) and rounded. Hourly buckets assume visits are
    spread evenly across the day; this is an estimate, not a measurement.
    """

    ratio = clamp(source_visits / total_visits, 0.0, 1.0) if total_visits > 0 else 0.0
    by_day: Dict[date, int] = {}
    for day, count in iter_daily_visits(dict(daily_visits)):
        by_day[day] = by_day.get(day, 0) + count

    plan = plan_buckets(
        date_filter, custom_start, custom_end, now=now, timezone=timezone, window_days=window_days
    )
    totals = plan.tally(lambda day: by_day.get(day, 0))
    points = [
        TrendPoint(label=bucket.label, count=round_half_up(total * ratio), start=bucket.start)
        for bucket, total in zip(plan.buckets, totals)
    ]
    return TrendSeries(name=name, granularity=plan.granularity, points=points)
