from __future__ import annotations

import math
from datetime import date, datetime, timezone
from decimal import ROUND_FLOOR, Decimal, InvalidOperation
from typing import Any, Iterable, List, Mapping, Tuple

from loguru import logger

from volmon.errors import ContractValidationError, GreeksInputError
from volmon.pipeline.entities import OptionSnapshot, OptionType
from volmon.pipeline.greeks import approximate_greeks
from volmon.utils.math import as_number

SECONDS_PER_DAY = 86400
GREEK_FIELDS = ("delta", "gamma", "theta", "vega")


def expiry_to_date(expiry: int | float | date) -> date:
    if isinstance(expiry, datetime):
        return expiry.astimezone(timezone.utc).date() if expiry.tzinfo else expiry.date()
    if isinstance(expiry, date):
        return expiry
    return datetime.fromtimestamp(int(expiry), tz=timezone.utc).date()


def days_to_expiry(expiry_epoch: int | float, now: datetime) -> int:
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return math.ceil((float(expiry_epoch) - now.timestamp()) / SECONDS_PER_DAY)


def format_option_ticker(symbol: str, expiry: int | float | date, strike: float, option_type: OptionType | str) -> str:
    """Build ``SYMBOL YYMMDD{C|P}########`` with the strike in thousandths."""
    cp = OptionType.parse(option_type).value
    expiry_date = expiry_to_date(expiry)
    try:
        strike_milli = (Decimal(str(strike)) * 1000).to_integral_value(rounding=ROUND_FLOOR)
    except InvalidOperation as exc:
        raise ContractValidationError(f"invalid strike {strike!r}") from exc
    return f"{symbol.upper()} {expiry_date:%y%m%d}{cp}{int(strike_milli):08d}"


def _provider_greeks(raw: Mapping[str, Any]) -> dict[str, float]:
    supplied: dict[str, float] = {}
    for name in GREEK_FIELDS:
        value = raw.get(name)
        if value is None:
            continue
        number = as_number(value, default=math.nan)
        if math.isfinite(number):
            supplied[name] = number
    return supplied


def normalize_contract(
    raw: Mapping[str, Any],
    *,
    symbol: str,
    option_type: OptionType | str,
    spot_price: float,
    now: datetime,
    expiry: int | float | None = None,
) -> OptionSnapshot:
    """Turn one raw provider contract into an :class:`OptionSnapshot`.

    Strike and expiry are mandatory; every other numeric field defaults to
    zero. Raises :class:`ContractValidationError` instead of zeroing bad input.
    """
    cp = OptionType.parse(option_type)
    label = raw.get("contractSymbol") or f"{symbol} {cp.value} {raw.get('strike')}"

    strike = as_number(raw.get("strike"), default=math.nan)
    if not math.isfinite(strike) or strike <= 0:
        raise ContractValidationError(f"non-positive or missing strike: {raw.get('strike')!r}", contract=label)

    raw_expiry = raw.get("expiration") if raw.get("expiration") is not None else expiry
    expiry_epoch = as_number(raw_expiry, default=math.nan)
    if raw_expiry is None or math.isnan(expiry_epoch):
        raise ContractValidationError(f"missing or non-numeric expiry: {raw_expiry!r}", contract=label)
    try:
        expiry_date = expiry_to_date(expiry_epoch)
    except (OverflowError, OSError, ValueError) as exc:
        raise ContractValidationError(f"invalid expiry: {raw_expiry!r}", contract=label) from exc

    spot = as_number(spot_price, default=math.nan)
    if not math.isfinite(spot) or spot < 0:
        raise ContractValidationError(f"invalid spot price: {spot_price!r}", contract=label)

    iv_pct = as_number(raw.get("impliedVolatility")) * 100
    days = days_to_expiry(expiry_epoch, now)

    supplied = _provider_greeks(raw)
    if len(supplied) == len(GREEK_FIELDS):
        greeks = supplied
        greeks_source = "provider"
    else:
        try:
            approx = approximate_greeks(spot, strike, days, iv_pct, cp)._asdict()
        except GreeksInputError as exc:
            raise ContractValidationError(f"greeks approximation failed: {exc}", contract=label) from exc
        greeks = {**approx, **supplied}
        greeks_source = "approximation"

    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    return OptionSnapshot(
        ticker=format_option_ticker(symbol, expiry_date, strike, cp),
        underlying_ticker=f"{symbol.upper()} US Equity",
        snapshot_date=now.astimezone(timezone.utc).date(),
        expiry_date=expiry_date,
        strike=strike,
        option_type=cp,
        bid=max(as_number(raw.get("bid")), 0.0),
        ask=max(as_number(raw.get("ask")), 0.0),
        last=max(as_number(raw.get("lastPrice", raw.get("last"))), 0.0),
        implied_volatility=round(iv_pct, 1),
        delta=greeks["delta"],
        gamma=greeks["gamma"],
        theta=greeks["theta"],
        vega=greeks["vega"],
        volume=max(int(as_number(raw.get("volume"))), 0),
        open_interest=max(int(as_number(raw.get("openInterest"))), 0),
        greeks_source=greeks_source,
    )


def normalize_contracts(
    records: Iterable[Mapping[str, Any]],
    *,
    symbol: str,
    option_type: OptionType | str,
    spot_price: float,
    now: datetime,
    expiry: int | float | None = None,
) -> Tuple[List[OptionSnapshot], List[ContractValidationError]]:
    snapshots: List[OptionSnapshot] = []
    errors: List[ContractValidationError] = []
    for raw in records:
        try:
            snapshots.append(
                normalize_contract(
                    raw,
                    symbol=symbol,
                    option_type=option_type,
                    spot_price=spot_price,
                    now=now,
                    expiry=expiry,
                )
            )
        except ContractValidationError as exc:
            errors.append(exc)
            logger.warning("contract dropped", symbol=symbol, contract=exc.contract, reason=str(exc))
        except (AttributeError, OverflowError, TypeError, ValueError) as exc:
            label = raw.get("contractSymbol") if isinstance(raw, Mapping) else None
            error = ContractValidationError(f"malformed contract: {exc}", contract=label)
            errors.append(error)
            logger.warning("contract dropped", symbol=symbol, contract=label, reason=str(error))
    return snapshots, errors
