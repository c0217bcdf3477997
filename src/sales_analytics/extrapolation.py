"""
Proportional extrapolation for metrics that only exist as cumulative totals.

Source distributions and visitor counts carry no timestamps. For a date range
they are estimated by scaling with the share of daily visits that fall in the
range, but only while that share is plausible.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from .models import DISTRIBUTIONS, FilteredSourceMetrics, ResolvedInterval, SourceAnalytics, SourceCard
from .ranges import parse_day
from .utils import round_half_up

logger = logging.getLogger(__name__)

GUARD_BAND: Tuple[float, float] = (0.1, 10.0)
DIRECT_SOURCE = "direct"


def _scale(distribution: Mapping[str, int], ratio: float) -> Dict[str, int]:
    return {key: round_half_up(count * ratio) for key, count in distribution.items()}


def _avg_visits(total_visits: int, unique_visitors: int) -> int:
    if unique_visitors <= 0:
        return 0
    return round_half_up(total_visits / unique_visitors)


def extrapolate_source_metrics(
    source: SourceAnalytics,
    interval: Optional[ResolvedInterval],
    guard_band: Tuple[float, float] = GUARD_BAND,
) -> FilteredSourceMetrics:
    """
    Rescale ``source`` to ``interval``.

    ``filter_ratio`` is the in-range share of all visits. Counts are scaled
    by it only when ``low < ratio < high``; otherwise the original totals are
    kept unscaled. Average visits per visitor is recomputed from the
    in-range visits and the resulting unique visitor count.
    """

    distributions = {name: dict(getattr(source, name)) for name in DISTRIBUTIONS}
    original_total = source.total_visits

    if interval is None:
        return FilteredSourceMetrics(
            total_visits=original_total,
            original_total_visits=original_total,
            filter_ratio=1.0,
            extrapolated=False,
            daily_visits=dict(source.daily_visits),
            distributions=distributions,
            unique_visitors=source.unique_visitors,
            returning_visitors=source.returning_visitors,
            new_visitors=source.new_visitors,
            avg_visits_per_visitor=_avg_visits(original_total, source.unique_visitors),
        )

    daily_in_range = {
        key: count
        for key, count in source.daily_visits.items()
        if (day := parse_day(key)) is not None and interval.contains_day(day)
    }
    visits_in_range = sum(daily_in_range.values())
    ratio = visits_in_range / original_total if original_total > 0 else 0.0

    low, high = guard_band
    extrapolated = low < ratio < high
    if not extrapolated:
        logger.info("Extrapolation ratio %.3f outside guard band (%s, %s); keeping original values", ratio, low, high)
    effective = ratio if extrapolated else 1.0

    unique_visitors = round_half_up(source.unique_visitors * effective)
    return FilteredSourceMetrics(
        total_visits=visits_in_range,
        original_total_visits=original_total,
        filter_ratio=ratio,
        extrapolated=extrapolated,
        daily_visits=daily_in_range,
        distributions={name: _scale(values, effective) for name, values in distributions.items()},
        unique_visitors=unique_visitors,
        returning_visitors=round_half_up(source.returning_visitors * effective),
        new_visitors=round_half_up(source.new_visitors * effective),
        avg_visits_per_visitor=_avg_visits(visits_in_range, unique_visitors),
    )


def top_source(distribution: Mapping[str, int]) -> Tuple[str, int]:
    """Largest non-direct source; ties keep the first one seen."""

    name, count = "", 0
    for source, visits in distribution.items():
        if source == DIRECT_SOURCE:
            continue
        if not name or visits > count:
            name, count = source, visits
    return name, count


def external_sources(distribution: Mapping[str, int]) -> List[str]:
    return [source for source in distribution if source != DIRECT_SOURCE]


def build_source_cards(metrics: FilteredSourceMetrics) -> Sequence[SourceCard]:
    """
    Total, external, direct and top-source cards.

    The total card always shows the in-range visits. The other cards read the
    distribution, which stays unscaled when the guard band suppressed
    extrapolation, so in that case they show all-time counts and external can
    exceed total.
    """

    distribution = metrics.source_distribution
    external = external_sources(distribution)
    top_name, top_count = top_source(distribution)
    return [
        SourceCard(
            key="total",
            title="Total Page Visits",
            value=metrics.total_visits,
            description="Filtered by time period",
        ),
        SourceCard(
            key="external",
            title="External Sources",
            value=sum(distribution[source] for source in external),
            description=f"Combined traffic from {len(external)} sources",
            sources=tuple(external),
        ),
        SourceCard(
            key="direct",
            title="Direct Visits",
            value=distribution.get(DIRECT_SOURCE, 0),
            description="Direct traffic",
            sources=(DIRECT_SOURCE,),
        ),
        SourceCard(
            key="top",
            title="Top Source",
            value=top_count,
            description=f"Most popular: {top_name}" if top_name else "No external sources",
            sources=(top_name,) if top_name else (),
        ),
    ]


def source_share(metrics: FilteredSourceMetrics, selector: str) -> Tuple[int, int]:
    """
    ``(source_visits, total_visits)`` for a card key (``total``, ``external``,
    ``direct``, ``top``) or a named source.
    """

    total = metrics.total_visits
    distribution = metrics.source_distribution
    if selector == "total":
        return total, total
    if selector == "external":
        direct = distribution.get(DIRECT_SOURCE, 0)
        return max(0, total - direct), total
    if selector == "top":
        return top_source(distribution)[1], total
    return distribution.get(selector, 0), total
