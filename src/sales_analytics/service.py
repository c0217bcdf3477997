from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Dict, Optional, Tuple

from .bucketing import bucket_timestamps, estimate_source_trend
from .config import EngineConfig
from .dataset import AnalyticsDataset
from .extrapolation import build_source_cards, extrapolate_source_metrics, source_share
from .growth import source_trend_label
from .models import (
    TIMESTAMP_SERIES,
    AnalyticsSnapshot,
    DashboardResult,
    DateRangeSelection,
    FilteredSourceMetrics,
    TrendSeries,
)
from .ranges import anchor_now, coerce_timezone, resolve_date_range

logger = logging.getLogger(__name__)

MAX_CACHE_ENTRIES = 32

_CacheKey = Tuple[str, Optional[date], Optional[date], int, date]


class SalesAnalyticsService:
    """
    Computes the sales dashboard analytics for one snapshot.

    Results are memoized per ``(filter, custom_start, custom_end, snapshot,
    anchor day)``; each new key is computed from the original snapshot,
    never from a previous result.
    """

    def __init__(self, snapshot: AnalyticsSnapshot, config: Optional[EngineConfig] = None) -> None:
        self.config = config or EngineConfig()
        self.dataset = AnalyticsDataset(snapshot=snapshot, timezone=self.config.timezone)
        self._cache: Dict[_CacheKey, DashboardResult] = {}

    @property
    def snapshot(self) -> AnalyticsSnapshot:
        return self.dataset.snapshot

    def build(self, selection: DateRangeSelection, now: Optional[datetime] = None) -> DashboardResult:
        current = anchor_now(now, coerce_timezone(self.config.timezone))
        key = (*selection.cache_key(), id(self.snapshot), current.date())
        cached = self._cache.get(key)
        if cached is not None:
            logger.debug("Analytics cache hit for %s", key[:3])
            return cached

        logger.debug("Analytics cache miss for %s", key[:3])
        result = self._compute(selection, current)
        if len(self._cache) >= MAX_CACHE_ENTRIES:
            self._cache.pop(next(iter(self._cache)))
        self._cache[key] = result
        return result

    def clear_cache(self) -> None:
        self._cache.clear()

    def trend(self, series_name: str, selection: DateRangeSelection, now: Optional[datetime] = None) -> TrendSeries:
        """Chart series for one ``*_with_timestamps`` metric."""

        return self.build(selection, now=now).trends[TIMESTAMP_SERIES[series_name]]

    def source_trend(
        self,
        selector: str,
        selection: DateRangeSelection,
        now: Optional[datetime] = None,
    ) -> TrendSeries:
        """Estimated chart series for a source card key or a named source."""

        result = self.build(selection, now=now)
        if selector in result.source_trends:
            return result.source_trends[selector]
        current = anchor_now(now, coerce_timezone(self.config.timezone))
        return self._source_trend(result.sources, selector, selection, current)

    def _compute(self, selection: DateRangeSelection, now: datetime) -> DashboardResult:
        cfg = self.config
        interval = resolve_date_range(
            selection.date_filter,
            selection.custom_start,
            selection.custom_end,
            now=now,
            timezone=cfg.timezone,
        )
        totals = self.dataset.recalculate(interval)
        trends = {
            total_key: bucket_timestamps(
                totals.timestamps[series_name],
                selection.date_filter,
                selection.custom_start,
                selection.custom_end,
                now=now,
                timezone=cfg.timezone,
                window_days=cfg.default_window_days,
                name=total_key,
            )
            for series_name, total_key in TIMESTAMP_SERIES.items()
        }

        sources = extrapolate_source_metrics(self.snapshot.source, interval, guard_band=cfg.guard_band)
        cards = build_source_cards(sources)
        source_trends = {card.key: self._source_trend(sources, card.key, selection, now) for card in cards}
        source_labels = {
            source: source_trend_label(
                source,
                self.snapshot.source,
                now=now,
                timezone=cfg.timezone,
                threshold=cfg.growth_threshold,
            )
            for source in self.snapshot.source.source_distribution
        }

        return DashboardResult(
            selection=selection,
            interval=interval,
            totals=totals,
            trends=trends,
            sources=sources,
            source_cards=cards,
            source_trends=source_trends,
            source_labels=source_labels,
        )

    def _source_trend(
        self,
        sources: FilteredSourceMetrics,
        selector: str,
        selection: DateRangeSelection,
        now: datetime,
    ) -> TrendSeries:
        source_visits, total_visits = source_share(sources, selector)
        return estimate_source_trend(
            self.snapshot.source.daily_visits,
            source_visits,
            total_visits,
            selection.date_filter,
            selection.custom_start,
            selection.custom_end,
            now=now,
            timezone=self.config.timezone,
            window_days=self.config.default_window_days,
            name=selector,
        )
