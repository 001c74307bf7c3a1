from __future__ import annotations

import math


def pct_change(current: float, prior: float) -> float:
    if prior == 0:
        return 0.0
    return (current - prior) * 100 / prior


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def mid_price(bid: float, ask: float) -> float:
    return (bid + ask) / 2


def as_number(value: object, default: float = 0.0) -> float:
    """Coerce provider numbers, treating None, NaN, infinities and garbage as ``default``."""
    if value is None or isinstance(value, bool):
        return default
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default
    if not math.isfinite(number):
        return default
    return number
