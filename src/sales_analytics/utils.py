from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Union


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero (``2.5 -> 3``)."""

    if value < 0:
        return -int(math.floor(-value + 0.5))
    return int(math.floor(value + 0.5))


def format_tenths(value: Union[Decimal, float]) -> str:
    """One-decimal string with halves rounded away from zero (``12.25 -> "12.3"``)."""

    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return format(value.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP), "f")


def clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(upper, value))


def coerce_count(value: Any) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return 0 if math.isnan(value) or math.isinf(value) else int(value)
    if isinstance(value, str):
        try:
            return int(float(value))
        except (ValueError, OverflowError):
            return 0
    return 0
