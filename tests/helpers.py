"""Shared test helpers for the analytics tests."""

from datetime import datetime, timezone

# Monday; tests pin "now" to this instant unless they say otherwise.
NOW = datetime(2024, 1, 1, 10, 0, tzinfo=timezone.utc)


def utc(*args: int) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)
