from datetime import datetime

import pytest

from sales_analytics.models import AnalyticsSnapshot
from tests.helpers import NOW


@pytest.fixture()
def now() -> datetime:
    return NOW


@pytest.fixture()
def payload() -> dict:
    return {
        "sellers_with_timestamps": [
            "2024-01-01T08:00:00Z",
            "2024-01-01T08:30:00Z",
            "2023-12-28T12:00:00Z",
            "2023-12-10T09:00:00Z",
            "2023-06-15T09:00:00Z",
            "not-a-timestamp",
        ],
        "buyers_with_timestamps": ["2024-01-01T09:15:00Z", "2023-12-31T23:59:59Z"],
        "ads_with_timestamps": None,
        "reviews_with_timestamps": [],
        "category_click_events": [{"category": "Phones", "clicks": 4}],
        "source_analytics": {
            "daily_visits": {
                "2024-01-01": 200,
                "2023-12-28": 100,
                "2023-06-15": 700,
            },
            "source_distribution": {"google": 500, "direct": 300, "facebook": 200},
            "referrer_distribution": {"news.example.com": 40},
            "total_visits": 1000,
            "unique_visitors": 400,
            "returning_visitors": 150,
            "new_visitors": 250,
        },
    }


@pytest.fixture()
def snapshot(payload: dict) -> AnalyticsSnapshot:
    return AnalyticsSnapshot.from_payload(payload)
