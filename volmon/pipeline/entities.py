from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict

from volmon.utils.math import mid_price


class OptionType(str, Enum):
    CALL = "C"
    PUT = "P"

    @classmethod
    def parse(cls, value: Any) -> "OptionType":
        if isinstance(value, OptionType):
            return value
        cp = str(value or "").strip().upper()
        if cp in {"C", "CALL", "CALLS"}:
            return cls.CALL
        if cp in {"P", "PUT", "PUTS"}:
            return cls.PUT
        raise ValueError(f"Unknown option type: {value!r}")


@dataclass(frozen=True)
class OptionSnapshot:
    """One observation of one contract inside a snapshot generation."""

    ticker: str
    underlying_ticker: str
    snapshot_date: date
    expiry_date: date
    strike: float
    option_type: OptionType
    bid: float
    ask: float
    last: float
    implied_volatility: float  # percent units, 32.5 == 32.5%
    delta: float
    gamma: float
    theta: float
    vega: float
    volume: int
    open_interest: int
    greeks_source: str = "approximation"

    @property
    def mid(self) -> float:
        return mid_price(self.bid, self.ask)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "ticker": self.ticker,
            "underlying_ticker": self.underlying_ticker,
            "snapshot_date": self.snapshot_date.isoformat(),
            "expiry_date": self.expiry_date.isoformat(),
            "strike": self.strike,
            "option_type": self.option_type.value,
            "bid": self.bid,
            "ask": self.ask,
            "last": self.last,
            "mid": self.mid,
            "implied_volatility": self.implied_volatility,
            "delta": self.delta,
            "gamma": self.gamma,
            "theta": self.theta,
            "vega": self.vega,
            "volume": self.volume,
            "open_interest": self.open_interest,
            "greeks_source": self.greeks_source,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OptionSnapshot":
        """Inverse of :meth:`as_dict`; the derived ``mid`` is ignored."""
        return cls(
            ticker=data["ticker"],
            underlying_ticker=data["underlying_ticker"],
            snapshot_date=date.fromisoformat(data["snapshot_date"]),
            expiry_date=date.fromisoformat(data["expiry_date"]),
            strike=float(data["strike"]),
            option_type=OptionType.parse(data["option_type"]),
            bid=float(data["bid"]),
            ask=float(data["ask"]),
            last=float(data["last"]),
            implied_volatility=float(data["implied_volatility"]),
            delta=float(data["delta"]),
            gamma=float(data["gamma"]),
            theta=float(data["theta"]),
            vega=float(data["vega"]),
            volume=int(data["volume"]),
            open_interest=int(data["open_interest"]),
            greeks_source=data.get("greeks_source", "approximation"),
        )


@dataclass
class VolumeAlert:
    """A per-contract volume spike between two consecutive generations.

    ``id`` is the per-run sequence number assigned by the detector and
    restarts at 1 every cycle. ``ledger_id`` is assigned once the alert is
    stored and is the only key that is unique across cycles.
    """

    id: int
    ticker: str
    underlying_ticker: str
    snapshot_date: date
    current_volume: int
    prior_volume: int
    volume_pct_change: float
    alert_timestamp: datetime
    notification_sent: bool = False
    ledger_id: int | None = None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "ledger_id": self.ledger_id,
            "ticker": self.ticker,
            "underlying_ticker": self.underlying_ticker,
            "snapshot_date": self.snapshot_date.isoformat(),
            "current_volume": self.current_volume,
            "prior_volume": self.prior_volume,
            "volume_pct_change": self.volume_pct_change,
            "alert_timestamp": self.alert_timestamp.isoformat(),
            "notification_sent": self.notification_sent,
        }
