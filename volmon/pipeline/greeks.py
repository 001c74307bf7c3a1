"""Approximate option sensitivities.

This is a deliberately simplified surrogate, not a Black-Scholes solver. It
only runs when the provider does not return Greeks for a contract, and it is
kept isolated so a real pricing model can replace it without touching the
normalizer.
"""
from __future__ import annotations

import math
from typing import NamedTuple

from volmon.errors import GreeksInputError
from volmon.pipeline.entities import OptionType
from volmon.utils.math import clamp

TIME_EPSILON = 0.01
DAYS_PER_YEAR = 365


class Greeks(NamedTuple):
    delta: float
    gamma: float
    theta: float
    vega: float


def _check_inputs(spot: float, strike: float, days_to_expiry: float, iv: float) -> None:
    for name, value in (("spot", spot), ("strike", strike), ("days_to_expiry", days_to_expiry), ("iv", iv)):
        if not math.isfinite(value):
            raise GreeksInputError(f"{name} must be finite, got {value!r}")
    if spot < 0:
        raise GreeksInputError(f"spot must be >= 0, got {spot!r}")
    if strike <= 0:
        raise GreeksInputError(f"strike must be > 0, got {strike!r}")


def _delta(moneyness: float, option_type: OptionType) -> float:
    if option_type is OptionType.CALL:
        if moneyness > 1:
            delta = 0.5 + (moneyness - 1) * 0.3
        else:
            delta = 0.5 * moneyness
        return clamp(delta, 0.01, 0.99)

    if moneyness < 1:
        delta = -0.5 - (1 - moneyness) * 0.3
    else:
        delta = -0.5 * (2 - moneyness)
    return clamp(delta, -0.99, -0.01)


def approximate_greeks(
    spot: float,
    strike: float,
    days_to_expiry: float,
    iv: float,
    option_type: OptionType,
) -> Greeks:
    """Return rounded ``(delta, gamma, theta, vega)`` estimates.

    Args:
        spot: Underlying price.
        strike: Contract strike, must be positive.
        days_to_expiry: Calendar days left; negative values count as zero.
        iv: Implied volatility in percent units (32.5 == 32.5%).
        option_type: Call or put.
    """
    _check_inputs(spot, strike, days_to_expiry, iv)

    time_to_exp = max(days_to_expiry, 0) / DAYS_PER_YEAR
    moneyness = spot / strike
    atm = math.exp(-((5 * (moneyness - 1)) ** 2))
    decay_root = math.sqrt(time_to_exp + TIME_EPSILON)

    delta = _delta(moneyness, option_type)
    gamma = (0.1 + 0.15 * atm) / decay_root
    theta = -(iv * spot * 0.01) / (2 * decay_root)
    vega = spot * math.sqrt(time_to_exp) * 0.01 * atm

    return Greeks(
        delta=round(delta, 3),
        gamma=round(gamma, 3),
        theta=round(theta, 2),
        vega=round(vega, 2),
    )
