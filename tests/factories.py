from datetime import date

from volmon.pipeline.entities import OptionSnapshot, OptionType


def make_snapshot(ticker: str = "AAPL 240115C00175000", volume: int = 1000, **overrides) -> OptionSnapshot:
    fields = {
        "ticker": ticker,
        "underlying_ticker": f"{ticker.split()[0]} US Equity",
        "snapshot_date": date(2024, 1, 10),
        "expiry_date": date(2024, 1, 15),
        "strike": 175.0,
        "option_type": OptionType.CALL,
        "bid": 1.0,
        "ask": 1.2,
        "last": 1.1,
        "implied_volatility": 30.0,
        "delta": 0.5,
        "gamma": 0.1,
        "theta": -0.2,
        "vega": 0.1,
        "volume": volume,
        "open_interest": 500,
    }
    fields.update(overrides)
    return OptionSnapshot(**fields)
