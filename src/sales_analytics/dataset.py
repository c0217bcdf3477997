from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple
from zoneinfo import ZoneInfo

from .models import TIMESTAMP_SERIES, AnalyticsSnapshot, FilteredTotals, ResolvedInterval
from .ranges import coerce_timezone, filter_timestamps, parse_day, parse_instant, select_timestamps

logger = logging.getLogger(__name__)


def iter_instants(values: Iterable[Any], tz: ZoneInfo) -> Iterator[datetime]:
    """Yield the parseable timestamps in ``values``; the rest are skipped."""

    for value in values:
        instant = parse_instant(value, tz)
        if instant is not None:
            yield instant


def iter_daily_visits(daily_visits: Dict[str, int]) -> Iterator[Tuple[date, int]]:
    for key, count in daily_visits.items():
        day = parse_day(key)
        if day is not None:
            yield day, count


def recalculate_totals(
    snapshot: AnalyticsSnapshot,
    interval: Optional[ResolvedInterval],
    timezone: str = "UTC",
) -> FilteredTotals:
    """
    Filter every timestamp series of ``snapshot`` once and count the result.

    The filtered arrays are returned alongside the counts so trend bucketing
    runs over exactly the data the totals were computed from. Fields without
    a timestamp series pass through untouched.
    """

    tz = interval.start.tzinfo if interval is not None else coerce_timezone(timezone)
    counts: Dict[str, int] = {}
    timestamps: Dict[str, Sequence[Any]] = {}

    for series_name, total_key in TIMESTAMP_SERIES.items():
        raw = snapshot.timestamps(series_name)
        if interval is None:
            filtered = filter_timestamps(raw, None)
            count = sum(1 for _ in iter_instants(raw, tz))
            dropped = len(raw) - count
        else:
            filtered, dropped = select_timestamps(raw, interval)
            count = len(filtered)
        if dropped:
            logger.debug("Dropped %d unparseable timestamps from %s", dropped, series_name)
        timestamps[series_name] = filtered
        counts[total_key] = count

    return FilteredTotals(counts=counts, timestamps=timestamps, passthrough=dict(snapshot.extras))


@dataclass
class AnalyticsDataset:
    """
    Read-only view over one analytics snapshot.

    Every query starts from the original snapshot; nothing is cached or
    mutated here.
    """

    snapshot: AnalyticsSnapshot
    timezone: str = "UTC"

    def recalculate(self, interval: Optional[ResolvedInterval]) -> FilteredTotals:
        return recalculate_totals(self.snapshot, interval, timezone=self.timezone)

    def daily_visits(self) -> List[Tuple[date, int]]:
        return sorted(iter_daily_visits(dict(self.snapshot.source.daily_visits)))

    def visits_between(self, first_day: date, last_day: date) -> int:
        """Sum daily visits over the inclusive calendar range."""

        return sum(count for day, count in self.daily_visits() if first_day <= day <= last_day)
