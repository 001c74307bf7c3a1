import math
from datetime import date, datetime, timezone

import pytest

from volmon.errors import ContractValidationError
from volmon.pipeline.entities import OptionType
from volmon.pipeline.greeks import approximate_greeks
from volmon.pipeline.normalizer import (
    days_to_expiry,
    format_option_ticker,
    normalize_contract,
    normalize_contracts,
)

EXPIRY_2024_01_15 = 1705276800  # 2024-01-15 00:00 UTC
NOW = datetime(2024, 1, 10, 15, 0, tzinfo=timezone.utc)


def raw_contract(**overrides):
    raw = {
        "contractSymbol": "AAPL240115C00175000",
        "strike": 175.0,
        "bid": 1.2,
        "ask": 1.4,
        "lastPrice": 1.3,
        "impliedVolatility": 0.3254,
        "volume": 1500,
        "openInterest": 9000,
        "expiration": EXPIRY_2024_01_15,
    }
    raw.update(overrides)
    return raw


def test_ticker_format_matches_example():
    assert format_option_ticker("AAPL", date(2024, 1, 15), 175.00, OptionType.CALL) == "AAPL 240115C00175000"


def test_ticker_is_deterministic_for_epoch_and_date():
    first = format_option_ticker("AAPL", EXPIRY_2024_01_15, 175.0, "C")
    second = format_option_ticker("aapl", EXPIRY_2024_01_15, 175.0, "call")

    assert first == second == "AAPL 240115C00175000"


def test_ticker_strike_uses_exact_thousandths():
    assert format_option_ticker("F", date(2024, 1, 15), 4.35, OptionType.PUT) == "F 240115P00004350"
    assert format_option_ticker("SPY", date(2024, 1, 15), 472.5, OptionType.PUT) == "SPY 240115P00472500"


def test_days_to_expiry_rounds_up():
    assert days_to_expiry(EXPIRY_2024_01_15, NOW) == 5
    assert days_to_expiry(EXPIRY_2024_01_15, datetime(2024, 1, 16, tzinfo=timezone.utc)) == -1


def test_normalize_contract_builds_snapshot():
    snap = normalize_contract(raw_contract(), symbol="AAPL", option_type="C", spot_price=180.0, now=NOW)

    assert snap.ticker == "AAPL 240115C00175000"
    assert snap.underlying_ticker == "AAPL US Equity"
    assert snap.snapshot_date == date(2024, 1, 10)
    assert snap.expiry_date == date(2024, 1, 15)
    assert snap.option_type is OptionType.CALL
    assert snap.implied_volatility == pytest.approx(32.5)
    assert snap.mid == (1.2 + 1.4) / 2
    assert snap.volume == 1500
    assert snap.open_interest == 9000
    assert snap.greeks_source == "approximation"

    expected = approximate_greeks(180.0, 175.0, 5, 0.3254 * 100, OptionType.CALL)
    assert (snap.delta, snap.gamma, snap.theta, snap.vega) == tuple(expected)


def test_mid_cannot_be_set():
    snap = normalize_contract(raw_contract(), symbol="AAPL", option_type="C", spot_price=180.0, now=NOW)

    with pytest.raises(AttributeError):
        snap.mid = 99.0  # type: ignore[misc]


def test_upstream_mid_is_ignored():
    snap = normalize_contract(raw_contract(mid=50.0), symbol="AAPL", option_type="C", spot_price=180.0, now=NOW)

    assert snap.mid == pytest.approx(1.3)


def test_provider_greeks_used_when_complete():
    raw = raw_contract(delta=0.61, gamma=0.04, theta=-0.12, vega=0.2)

    snap = normalize_contract(raw, symbol="AAPL", option_type="C", spot_price=180.0, now=NOW)

    assert snap.greeks_source == "provider"
    assert (snap.delta, snap.gamma, snap.theta, snap.vega) == (0.61, 0.04, -0.12, 0.2)


def test_partial_provider_greeks_are_kept_and_rest_approximated():
    snap = normalize_contract(raw_contract(delta=0.61), symbol="AAPL", option_type="C", spot_price=180.0, now=NOW)

    expected = approximate_greeks(180.0, 175.0, 5, 0.3254 * 100, OptionType.CALL)
    assert snap.greeks_source == "approximation"
    assert snap.delta == 0.61
    assert snap.gamma == expected.gamma


def test_missing_optional_fields_default_to_zero():
    raw = {"strike": 100, "expiration": EXPIRY_2024_01_15, "volume": math.nan, "bid": None}

    snap = normalize_contract(raw, symbol="TSLA", option_type=OptionType.PUT, spot_price=0, now=NOW)

    assert snap.bid == 0
    assert snap.ask == 0
    assert snap.last == 0
    assert snap.volume == 0
    assert snap.open_interest == 0
    assert snap.implied_volatility == 0
    assert snap.ticker == "TSLA 240115P00100000"


def test_expiry_argument_used_when_record_has_none():
    raw = raw_contract()
    raw.pop("expiration")

    snap = normalize_contract(raw, symbol="AAPL", option_type="C", spot_price=180.0, now=NOW, expiry=EXPIRY_2024_01_15)

    assert snap.expiry_date == date(2024, 1, 15)


@pytest.mark.parametrize(
    "overrides,spot",
    [
        ({"strike": 0}, 180.0),
        ({"strike": -5}, 180.0),
        ({"strike": None}, 180.0),
        ({"expiration": None}, 180.0),
        ({"expiration": 10**15}, 180.0),
        ({"expiration": "soon"}, 180.0),
        ({"expiration": math.inf}, 180.0),
        ({}, -1.0),
        ({}, math.nan),
    ],
)
def test_invalid_contracts_raise_validation_error(overrides, spot):
    with pytest.raises(ContractValidationError):
        normalize_contract(raw_contract(**overrides), symbol="AAPL", option_type="C", spot_price=spot, now=NOW)


def test_batch_normalization_reports_and_continues():
    records = [raw_contract(), raw_contract(strike=0, contractSymbol="BAD"), raw_contract(strike=180.0)]

    snapshots, errors = normalize_contracts(records, symbol="AAPL", option_type="C", spot_price=180.0, now=NOW)

    assert [s.ticker for s in snapshots] == ["AAPL 240115C00175000", "AAPL 240115C00180000"]
    assert len(errors) == 1
    assert errors[0].contract == "BAD"


def test_non_finite_numbers_are_treated_as_missing():
    raw = raw_contract(volume=math.inf, openInterest=-math.inf, bid=math.inf, lastPrice="n/a")

    snap = normalize_contract(raw, symbol="AAPL", option_type="C", spot_price=180.0, now=NOW)

    assert snap.volume == 0
    assert snap.open_interest == 0
    assert snap.bid == 0
    assert snap.last == 0


def test_batch_survives_unparseable_records():
    records = [
        raw_contract(expiration=10**15, contractSymbol="FAR"),
        "not-a-contract",
        raw_contract(volume=math.inf),
    ]

    snapshots, errors = normalize_contracts(records, symbol="AAPL", option_type="C", spot_price=180.0, now=NOW)

    assert [s.ticker for s in snapshots] == ["AAPL 240115C00175000"]
    assert [e.contract for e in errors] == ["FAR", None]
