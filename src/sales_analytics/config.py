"""
Engine and snapshot-store configuration.

Engine defaults come from the model, then an optional overrides mapping, then
the ``ANALYTICS_*`` environment variables.
"""

from __future__ import annotations

import os
from typing import Any, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator


class EngineConfig(BaseModel):
    timezone: str = "UTC"
    """Timezone used for day, week and month boundaries."""

    guard_band_low: float = 0.1
    """Lower bound of the trusted extrapolation ratio (exclusive)."""

    guard_band_high: float = 10.0
    """Upper bound of the trusted extrapolation ratio (exclusive)."""

    default_window_days: int = Field(default=30, ge=1)
    """Number of trailing days charted for the ``all`` filter."""

    growth_threshold: float = Field(default=10.0, ge=0)
    """Growth percentage beyond which a trend is Growing/Declining."""

    @model_validator(mode="after")
    def _check_guard_band(self) -> "EngineConfig":
        if self.guard_band_low >= self.guard_band_high:
            raise ValueError("guard_band_low must be smaller than guard_band_high")
        return self

    @property
    def guard_band(self) -> Tuple[float, float]:
        return self.guard_band_low, self.guard_band_high


class RepositoryConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    database_url: Optional[str] = None
    """SQLAlchemy URL of the database holding ``analytics_snapshots``."""

    @classmethod
    def from_env(cls) -> "RepositoryConfig":
        return cls(database_url=os.getenv("ANALYTICS_SNAPSHOT_DATABASE_URL") or None)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def load_engine_config(overrides: Optional[Mapping[str, Any]] = None) -> EngineConfig:
    base = EngineConfig(**dict(overrides or {}))
    return EngineConfig(
        timezone=os.getenv("ANALYTICS_TIMEZONE", base.timezone),
        guard_band_low=_env_float("ANALYTICS_GUARD_BAND_LOW", base.guard_band_low),
        guard_band_high=_env_float("ANALYTICS_GUARD_BAND_HIGH", base.guard_band_high),
        default_window_days=_env_int("ANALYTICS_DEFAULT_WINDOW_DAYS", base.default_window_days),
        growth_threshold=_env_float("ANALYTICS_GROWTH_THRESHOLD", base.growth_threshold),
    )
