from __future__ import annotations

from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Mapping, Optional, Tuple

from .dataset import iter_daily_visits
from .models import GrowthResult, SourceAnalytics
from .ranges import anchor_now, coerce_timezone
from .utils import format_tenths, round_half_up

GROWTH_THRESHOLD = 10.0


def _decimal(value: float) -> Decimal:
    return Decimal(str(value))


def growth_rate(current: float, previous: float) -> GrowthResult:
    """
    Period-over-period growth as a percentage string with one decimal.

    A zero baseline never divides: ``0 -> 0`` is flat, ``0 -> n`` is a new
    metric (``"∞"``) and ``n -> 0`` is a full decline. Exact halves round
    away from zero (``0.25 -> "0.3"``).
    """

    if previous == 0:
        if current == 0:
            return GrowthResult(growth_rate="0.0")
        return GrowthResult(growth_rate="∞", is_infinite=True, is_new=True)
    if current == 0:
        return GrowthResult(growth_rate="-100.0")
    rate = (_decimal(current) - _decimal(previous)) / _decimal(previous) * 100
    return GrowthResult(growth_rate=format_tenths(rate))


def classify_growth(result: GrowthResult, threshold: float = GROWTH_THRESHOLD) -> str:
    if result.is_new:
        return "New"
    rate = result.rate or 0.0
    if rate > threshold:
        return "Growing"
    if rate < -threshold:
        return "Declining"
    return "Active"


def week_windows(today: date) -> Tuple[Tuple[date, date], Tuple[date, date]]:
    """
    Monday-anchored current week and the 7 days before it, as inclusive
    ``(first_day, last_day)`` pairs.
    """

    current_start = today - timedelta(days=today.weekday())
    current_end = current_start + timedelta(days=6)
    previous_start = current_start - timedelta(days=7)
    previous_end = current_start - timedelta(days=1)
    return (current_start, current_end), (previous_start, previous_end)


def weekly_visit_totals(
    daily_visits: Mapping[str, int],
    *,
    now: Optional[datetime] = None,
    timezone: str = "UTC",
) -> Tuple[int, int]:
    """Sum daily visits for the current and previous week."""

    today = anchor_now(now, coerce_timezone(timezone)).date()
    (current_start, current_end), (previous_start, previous_end) = week_windows(today)
    current = previous = 0
    for day, count in iter_daily_visits(dict(daily_visits)):
        if current_start <= day <= current_end:
            current += count
        elif previous_start <= day <= previous_end:
            previous += count
    return current, previous


def source_trend_label(
    source: str,
    source_analytics: SourceAnalytics,
    *,
    now: Optional[datetime] = None,
    timezone: str = "UTC",
    threshold: float = GROWTH_THRESHOLD,
) -> str:
    """
    Week-over-week trend label for one traffic source.

    Weekly visit totals are scaled by the source's share of all visits
    before they are compared.
    """

    if not source_analytics.daily_visits:
        return "Active"
    current, previous = weekly_visit_totals(source_analytics.daily_visits, now=now, timezone=timezone)
    total = source_analytics.total_visits
    share = source_analytics.source_distribution.get(source, 0) / total if total > 0 else 0.0
    result = growth_rate(round_half_up(current * share), round_half_up(previous * share))
    return classify_growth(result, threshold=threshold)
