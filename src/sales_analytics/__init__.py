"""
Sales dashboard analytics engine.

Pure computations over an already-fetched analytics snapshot: date-range
filtering, trend bucketing, proportional extrapolation of aggregate-only
metrics and period-over-period growth.
"""

from .bucketing import BucketPlan, bucket_timestamps, estimate_source_trend, plan_buckets  # noqa: F401
from .config import EngineConfig, RepositoryConfig, load_engine_config  # noqa: F401
from .dataset import AnalyticsDataset, recalculate_totals  # noqa: F401
from .extrapolation import build_source_cards, extrapolate_source_metrics, source_share  # noqa: F401
from .growth import classify_growth, growth_rate, source_trend_label, weekly_visit_totals  # noqa: F401
from .models import (  # noqa: F401
    AnalyticsSnapshot,
    DashboardResult,
    DateRangeSelection,
    FilteredSourceMetrics,
    FilteredTotals,
    GrowthResult,
    ResolvedInterval,
    SourceAnalytics,
    SourceCard,
    TrendPoint,
    TrendSeries,
)
from .ranges import filter_timestamps, parse_instant, resolve_date_range  # noqa: F401
from .repository import SnapshotRepository, SQLSnapshotRepository, build_repository_from_env  # noqa: F401
from .service import SalesAnalyticsService  # noqa: F401
