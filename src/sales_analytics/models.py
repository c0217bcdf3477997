from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from .utils import coerce_count


FILTERS = ("all", "today", "week", "month", "year", "custom")

# Snapshot field -> totals key read by the presentation layer.
TIMESTAMP_SERIES: Dict[str, str] = {
    "sellers_with_timestamps": "total_sellers",
    "buyers_with_timestamps": "total_buyers",
    "ads_with_timestamps": "total_ads",
    "reviews_with_timestamps": "total_reviews",
    "wishlists_with_timestamps": "total_ads_wish_listed",
    "paid_seller_tiers_with_timestamps": "subscription_countdowns",
    "unpaid_seller_tiers_with_timestamps": "without_subscription",
    "ad_clicks_with_timestamps": "total_ads_clicks",
    "buyer_ad_clicks_with_timestamps": "buyer_ad_clicks",
    "reveal_clicks_with_timestamps": "total_reveal_clicks",
}

DISTRIBUTIONS = (
    "source_distribution",
    "utm_source_distribution",
    "utm_medium_distribution",
    "utm_campaign_distribution",
    "referrer_distribution",
)


def _count_mapping(raw: Any) -> Dict[str, int]:
    if not isinstance(raw, Mapping):
        return {}
    return {str(key): coerce_count(value) for key, value in raw.items()}


@dataclass(frozen=True)
class ResolvedInterval:
    """
    Closed instant interval ``[start, end]`` produced for a date filter.

    ``end`` is the last millisecond of its day, so ``contains`` is inclusive
    on both sides.
    """

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise ValueError("interval start must not be after its end")

    def contains(self, instant: datetime) -> bool:
        return self.start <= instant <= self.end

    def contains_day(self, day: date) -> bool:
        return self.start.date() <= day <= self.end.date()


@dataclass(frozen=True)
class DateRangeSelection:
    """
    The user's filter choice. ``custom_start``/``custom_end`` only matter for
    ``custom`` and are inclusive calendar dates.
    """

    date_filter: str = "all"
    custom_start: Optional[date] = None
    custom_end: Optional[date] = None

    def __post_init__(self) -> None:
        normalized = (self.date_filter or "all").strip().lower()
        if normalized not in FILTERS:
            raise ValueError(f"Unknown date filter: {self.date_filter!r}")
        object.__setattr__(self, "date_filter", normalized)

    def cache_key(self) -> Tuple[str, Optional[date], Optional[date]]:
        return self.date_filter, self.custom_start, self.custom_end


@dataclass(frozen=True)
class SourceAnalytics:
    """
    Visit analytics without per-event timestamps.

    ``daily_visits`` is the only time-resolved field; every distribution and
    visitor count is a cumulative snapshot total.
    """

    daily_visits: Mapping[str, int] = field(default_factory=dict)
    source_distribution: Mapping[str, int] = field(default_factory=dict)
    utm_source_distribution: Mapping[str, int] = field(default_factory=dict)
    utm_medium_distribution: Mapping[str, int] = field(default_factory=dict)
    utm_campaign_distribution: Mapping[str, int] = field(default_factory=dict)
    referrer_distribution: Mapping[str, int] = field(default_factory=dict)
    total_visits: int = 0
    unique_visitors: int = 0
    returning_visitors: int = 0
    new_visitors: int = 0

    @classmethod
    def from_payload(cls, payload: Optional[Mapping[str, Any]]) -> "SourceAnalytics":
        payload = payload if isinstance(payload, Mapping) else {}
        distributions = {name: _count_mapping(payload.get(name)) for name in DISTRIBUTIONS}
        return cls(
            daily_visits=_count_mapping(payload.get("daily_visits")),
            total_visits=coerce_count(payload.get("total_visits")),
            unique_visitors=coerce_count(payload.get("unique_visitors")),
            returning_visitors=coerce_count(payload.get("returning_visitors")),
            new_visitors=coerce_count(payload.get("new_visitors")),
            **distributions,
        )


@dataclass(frozen=True)
class AnalyticsSnapshot:
    """
    Immutable analytics payload fetched once per dashboard load.

    ``series`` maps each ``*_with_timestamps`` field to its raw values.
    ``extras`` keeps every other top-level field so it can pass through
    unfiltered.
    """

    series: Mapping[str, Tuple[Any, ...]] = field(default_factory=dict)
    source: SourceAnalytics = field(default_factory=SourceAnalytics)
    extras: Mapping[str, Any] = field(default_factory=dict)
    snapshot_id: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Optional[Mapping[str, Any]], snapshot_id: Optional[str] = None) -> "AnalyticsSnapshot":
        payload = payload if isinstance(payload, Mapping) else {}
        series: Dict[str, Tuple[Any, ...]] = {}
        for name in TIMESTAMP_SERIES:
            raw = payload.get(name)
            series[name] = tuple(raw) if isinstance(raw, (list, tuple)) else ()
        extras = {
            key: value
            for key, value in payload.items()
            if key not in TIMESTAMP_SERIES and key != "source_analytics"
        }
        return cls(
            series=series,
            source=SourceAnalytics.from_payload(payload.get("source_analytics")),
            extras=extras,
            snapshot_id=snapshot_id,
        )

    def timestamps(self, name: str) -> Tuple[Any, ...]:
        return self.series.get(name, ())


@dataclass(frozen=True)
class FilteredTotals:
    counts: Mapping[str, int]
    timestamps: Mapping[str, Sequence[Any]]
    passthrough: Mapping[str, Any] = field(default_factory=dict)

    def count(self, series_name: str) -> int:
        return self.counts.get(TIMESTAMP_SERIES[series_name], 0)

    def as_dict(self) -> Dict[str, Any]:
        merged: Dict[str, Any] = dict(self.passthrough)
        merged.update(self.counts)
        merged.update({name: list(values) for name, values in self.timestamps.items()})
        return merged


@dataclass(frozen=True)
class FilteredSourceMetrics:
    """
    Source analytics rescaled to a date range.

    ``filter_ratio`` is the raw in-range share of all visits; ``extrapolated``
    tells whether it was inside the guard band and therefore applied.
    """

    total_visits: int
    original_total_visits: int
    filter_ratio: float
    extrapolated: bool
    daily_visits: Mapping[str, int]
    distributions: Mapping[str, Mapping[str, int]]
    unique_visitors: int
    returning_visitors: int
    new_visitors: int
    avg_visits_per_visitor: int

    @property
    def source_distribution(self) -> Mapping[str, int]:
        return self.distributions.get("source_distribution", {})

    def as_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "total_visits": self.total_visits,
            "original_total_visits": self.original_total_visits,
            "filter_ratio": self.filter_ratio,
            "extrapolated": self.extrapolated,
            "daily_visits": dict(self.daily_visits),
            "unique_visitors": self.unique_visitors,
            "returning_visitors": self.returning_visitors,
            "new_visitors": self.new_visitors,
            "avg_visits_per_visitor": self.avg_visits_per_visitor,
        }
        for name, distribution in self.distributions.items():
            data[name] = dict(distribution)
        return data


@dataclass(frozen=True)
class TrendPoint:
    label: str
    count: int
    start: datetime


@dataclass(frozen=True)
class TrendSeries:
    name: str
    granularity: str
    points: Sequence[TrendPoint]

    @property
    def data(self) -> List[int]:
        return [point.count for point in self.points]

    @property
    def labels(self) -> List[str]:
        return [point.label for point in self.points]

    def as_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "granularity": self.granularity,
            "data": self.data,
            "labels": self.labels,
        }


@dataclass(frozen=True)
class GrowthResult:
    growth_rate: str
    is_infinite: bool = False
    is_new: bool = False

    @property
    def rate(self) -> Optional[float]:
        if self.is_infinite:
            return None
        return float(self.growth_rate)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "growthRate": self.growth_rate,
            "isInfinite": self.is_infinite,
            "isNew": self.is_new,
        }


@dataclass(frozen=True)
class SourceCard:
    key: str
    title: str
    value: int
    description: str
    sources: Sequence[str] = field(default_factory=tuple)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "title": self.title,
            "value": self.value,
            "description": self.description,
            "sources": list(self.sources),
        }


@dataclass(frozen=True)
class DashboardResult:
    selection: DateRangeSelection
    interval: Optional[ResolvedInterval]
    totals: FilteredTotals
    trends: Mapping[str, TrendSeries]
    sources: FilteredSourceMetrics
    source_cards: Sequence[SourceCard]
    source_trends: Mapping[str, TrendSeries]
    source_labels: Mapping[str, str]

    def as_dict(self) -> Dict[str, Any]:
        """
        Convert the nested dataclasses into a JSON-serialisable structure.

        Dates and instants are emitted as ISO-8601 strings so the chart
        components can consume the result directly.
        """

        def _iso(value: Optional[date]) -> Optional[str]:
            return None if value is None else value.isoformat()

        return {
            "filter": {
                "dateFilter": self.selection.date_filter,
                "customStart": _iso(self.selection.custom_start),
                "customEnd": _iso(self.selection.custom_end),
            },
            "interval": (
                None
                if self.interval is None
                else {"start": self.interval.start.isoformat(), "end": self.interval.end.isoformat()}
            ),
            "totals": self.totals.as_dict(),
            "trends": {name: series.as_dict() for name, series in self.trends.items()},
            "sources": self.sources.as_dict(),
            "sourceCards": [card.as_dict() for card in self.source_cards],
            "sourceTrends": {key: series.as_dict() for key, series in self.source_trends.items()},
            "sourceLabels": dict(self.source_labels),
        }