"""Tests for trend bucketing and source trend estimation."""

import pytest

from sales_analytics.bucketing import (
    bucket_timestamps,
    estimate_source_trend,
    hour_label,
    plan_buckets,
)
from sales_analytics.dataset import recalculate_totals
from sales_analytics.ranges import resolve_date_range
from tests.helpers import NOW, utc


def test_today_scenario_buckets_by_hour():
    series = bucket_timestamps(["2024-01-01T08:00:00Z", "2024-01-01T08:30:00Z"], "today", now=NOW)
    assert series.granularity == "hour"
    assert len(series.data) == 24
    assert series.labels[8] == "8 AM"
    assert series.data[8] == 2
    assert sum(series.data) == 2


def test_hour_labels_use_twelve_hour_clock():
    assert [hour_label(hour) for hour in (0, 1, 11, 12, 13, 23)] == ["12 AM", "1 AM", "11 AM", "12 PM", "1 PM", "11 PM"]
    labels = plan_buckets("today", now=NOW).buckets
    assert labels[0].label == "12 AM" and labels[-1].label == "11 PM"


def test_bucket_boundaries_are_half_open():
    series = bucket_timestamps(["2024-01-01T09:00:00Z", "2024-01-01T08:59:59.999Z"], "today", now=NOW)
    assert series.data[8] == 1
    assert series.data[9] == 1


def test_week_has_seven_days_ending_today():
    timestamps = ["2023-12-28T00:00:00Z", "2024-01-01T09:00:00Z"]
    series = bucket_timestamps(timestamps, "week", now=NOW)
    assert series.labels == ["Tue", "Wed", "Thu", "Fri", "Sat", "Sun", "Mon"]
    assert series.data == [0, 0, 1, 0, 0, 0, 1]


def test_week_folds_eighth_day_into_first_bucket():
    """The week interval spans 8 calendar days; the oldest lands in bucket one."""
    series = bucket_timestamps(["2023-12-25T12:00:00Z"], "week", now=NOW)
    assert series.data[0] == 1


def test_month_has_four_sunday_aligned_weeks():
    plan = plan_buckets("month", now=NOW)
    assert [bucket.label for bucket in plan.buckets] == ["Week 1", "Week 2", "Week 3", "Week 4"]
    assert [bucket.start for bucket in plan.buckets] == [
        utc(2023, 12, 10),
        utc(2023, 12, 17),
        utc(2023, 12, 24),
        utc(2023, 12, 31),
    ]
    series = bucket_timestamps(
        ["2023-12-01T00:00:00Z", "2023-12-17T00:00:00Z", "2023-12-30T23:59:59Z", "2024-01-01T09:00:00Z"],
        "month",
        now=NOW,
    )
    assert series.data == [1, 1, 1, 1]


def test_year_has_twelve_months_ending_this_month():
    series = bucket_timestamps(
        ["2023-01-05T00:00:00Z", "2023-02-15T00:00:00Z", "2023-12-31T23:00:00Z", "2024-01-01T01:00:00Z"],
        "year",
        now=NOW,
    )
    assert series.granularity == "month"
    assert series.labels == ["Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec", "Jan"]
    assert series.data[0] == 2
    assert series.data[10] == 1
    assert series.data[11] == 1


def test_short_custom_range_is_daily():
    series = bucket_timestamps(["2024-01-03T12:00:00Z"], "custom", "2024-01-01", "2024-01-05", now=NOW)
    assert series.labels == ["Jan 1", "Jan 2", "Jan 3", "Jan 4", "Jan 5"]
    assert series.data == [0, 0, 1, 0, 0]


def test_custom_span_of_seven_days_stays_daily():
    plan = plan_buckets("custom", "2024-01-01", "2024-01-08", now=NOW)
    assert plan.granularity == "day"
    assert len(plan.buckets) == 8


def test_long_custom_range_is_weekly_and_capped():
    plan = plan_buckets("custom", "2024-01-01", "2024-01-20", now=NOW)
    assert plan.granularity == "week"
    assert [bucket.label for bucket in plan.buckets] == ["Week 1", "Week 2", "Week 3"]
    assert plan.buckets[-1].start == utc(2024, 1, 15)
    assert plan.buckets[-1].end == utc(2024, 1, 21)


def test_custom_without_bounds_matches_today():
    plan = plan_buckets("custom", None, "2024-01-05", now=NOW)
    assert plan == plan_buckets("today", now=NOW)


def test_all_shows_fixed_trailing_window():
    series = bucket_timestamps(["2020-05-05T00:00:00Z", "2024-01-01T09:00:00Z"], "all", now=NOW)
    assert len(series.data) == 30
    assert series.labels[0] == "Dec 3"
    assert series.labels[-1] == "Jan 1"
    assert series.data[0] == 1
    assert series.data[-1] == 1


def test_all_window_length_is_configurable():
    assert len(plan_buckets("all", now=NOW, window_days=7).buckets) == 7


def test_unparseable_timestamps_are_skipped():
    series = bucket_timestamps(["2024-01-01T08:00:00Z", "nope", None], "today", now=NOW)
    assert sum(series.data) == 1


@pytest.mark.parametrize("date_filter", ["all", "today", "week", "month", "year", "custom"])
def test_bucket_sum_matches_filtered_total(snapshot, date_filter):
    """Every filtered timestamp is counted in exactly one bucket."""
    custom = ("2023-12-01", "2024-01-01") if date_filter == "custom" else (None, None)
    interval = resolve_date_range(date_filter, *custom, now=NOW)
    totals = recalculate_totals(snapshot, interval)
    for series_name, total_key in [("sellers_with_timestamps", "total_sellers"), ("buyers_with_timestamps", "total_buyers")]:
        series = bucket_timestamps(totals.timestamps[series_name], date_filter, *custom, now=NOW)
        assert sum(series.data) == totals.counts[total_key]


def test_source_trend_spreads_today_evenly_over_hours():
    series = estimate_source_trend({"2024-01-01": 48}, 50, 100, "today", now=NOW)
    assert series.data == [1] * 24


def test_source_trend_sums_days_in_each_bucket():
    daily = {"2023-12-26": 10, "2024-01-01": 20, "2023-12-25": 99}
    series = estimate_source_trend(daily, 100, 100, "week", now=NOW)
    assert series.data == [10, 0, 0, 0, 0, 0, 20]


def test_source_trend_year_groups_by_month():
    daily = {"2023-12-05": 3, "2023-12-20": 4, "2024-01-01": 5}
    series = estimate_source_trend(daily, 1, 1, "year", now=NOW)
    assert series.data[10] == 7
    assert series.data[11] == 5


def test_source_ratio_is_clamped_and_rounded_per_bucket():
    assert estimate_source_trend({"2024-01-01": 5}, 300, 100, "week", now=NOW).data[-1] == 5
    assert estimate_source_trend({"2024-01-01": 5}, 50, 100, "week", now=NOW).data[-1] == 3
    assert estimate_source_trend({"2024-01-01": 5}, 50, 0, "week", now=NOW).data == [0] * 7
