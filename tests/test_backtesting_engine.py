"""
Tests for the backtest orchestrator.

This module tests the orchestrator's ability to:
  - Validate requests (type, amount, dates) before fetching anything.
  - Answer each of the six request shapes with the right result variant.
  - Convert value-mode amounts into the asset currency and back.
  - Reinvest dividends (DRIP) with both pricing modes.
  - Abort on the first upstream failure.

All tests use small dict-backed fake sources with known prices, so expected
outcomes can be computed by hand.
"""

import datetime as dt
from datetime import datetime, timezone

import numpy as np
import pytest

from src.backtesting.engine import BacktestOrchestrator
from src.backtesting.errors import (
    DividendsUnavailable,
    InvalidAmount,
    InvalidDate,
    InvalidRequest,
    InvalidType,
    NonPositivePriceError,
    PriceUnavailable,
    RateUnavailable,
    UpstreamError,
)
from src.backtesting.results import (
    QuantityBuyResult,
    QuantityBuySellResult,
    QuantityDripResult,
    ValueBuyResult,
    ValueBuySellResult,
    ValueDripResult,
)
from src.config.settings import BacktestSettings
from src.data.schemas import BacktestRequest, DividendEvent
from src.utils.time import FrozenClock


BUY = dt.date(2025, 3, 31)
SELL = dt.date(2025, 7, 18)


class FakePriceSource:
    """Dict-backed PriceSource recording every lookup."""

    def __init__(self, closes):
        self.closes = closes
        self.calls = []

    def close_price(self, ticker, on):
        self.calls.append((ticker, on))
        try:
            return self.closes[(ticker, on)]
        except KeyError:
            raise PriceUnavailable(f"no close price for {ticker} on {on}") from None


class FakeFXSource:
    """Dict-backed FXRateSource recording every lookup."""

    def __init__(self, rates):
        self.rates = rates
        self.calls = []

    def fx_rate(self, from_currency, to_currency, on):
        self.calls.append((from_currency, to_currency, on))
        try:
            return self.rates[(from_currency, to_currency, on)]
        except KeyError:
            raise RateUnavailable(f"no rate {from_currency}->{to_currency} on {on}") from None


class FakeDividendSource:
    def __init__(self, events):
        self.events = events
        self.calls = []

    def dividend_schedule(self, ticker, start, end):
        self.calls.append((ticker, start, end))
        return list(self.events)


@pytest.fixture
def prices():
    return FakePriceSource({
        ("AAPL", dt.date(2025, 7, 18)): 211.18,
        ("AAPL", dt.date(2025, 7, 17)): 210.02,
        ("AAPL", dt.date(2025, 3, 31)): 200.50,
        ("AAPL", dt.date(2025, 6, 20)): 205.75,
        ("AAPL", dt.date(2025, 5, 12)): 210.79,
        ("BTC", dt.date(2025, 3, 31)): 82000.0,
        ("BTC", dt.date(2025, 7, 18)): 118000.0,
    })


@pytest.fixture
def fx():
    return FakeFXSource({
        ("EUR", "USD", dt.date(2025, 7, 18)): 1.0815,
        ("EUR", "USD", dt.date(2025, 3, 31)): 1.0800,
        ("USD", "EUR", dt.date(2025, 7, 18)): 1 / 1.0815,
    })


@pytest.fixture
def dividends():
    return FakeDividendSource([
        DividendEvent(dt.date(2025, 2, 10), 0.25),
        DividendEvent(dt.date(2025, 5, 12), 0.26),
    ])


@pytest.fixture
def clock():
    return FrozenClock(datetime(2025, 7, 20, tzinfo=timezone.utc))


@pytest.fixture
def orchestrator(prices, fx, dividends, clock):
    return BacktestOrchestrator(
        price_sources={"stock": prices, "crypto": prices},
        fx_source=fx,
        dividend_source=dividends,
        settings=BacktestSettings(),
        clock=clock,
    )


# ---------------------------------------------------------------------------
# Buy-only
# ---------------------------------------------------------------------------

def test_quantity_buy(orchestrator):
    """10 units of AAPL on 2025-07-18 at 211.18."""
    result = orchestrator.run(BacktestRequest("10", "AAPL", "2025-07-18"))

    assert isinstance(result, QuantityBuyResult)
    assert result.quantity == 10.0
    assert result.close_price == 211.18

    record = result.to_response()
    assert record == {
        "message": "Backtest result (quantity buy only)",
        "ticker": "AAPL",
        "buyDate": "2025-07-18",
        "type": "stock",
        "quantity": 10.0,
        "closePrice": 211.18,
    }


def test_value_buy_in_foreign_currency(orchestrator, fx):
    """1000 EUR at 1.0815 is 1081.50 USD, about 5.1212 shares at 211.18."""
    result = orchestrator.run(BacktestRequest("1000EUR", "AAPL", "2025-07-18"))

    assert isinstance(result, ValueBuyResult)
    assert result.currency == "EUR"
    assert result.stock_currency == "USD"
    assert result.fx_rate == 1.0815
    assert np.isclose(result.shares, 1081.5 / 211.18)
    assert np.isclose(result.shares, 5.1212, atol=1e-4)
    assert fx.calls == [("EUR", "USD", dt.date(2025, 7, 18))]

    record = result.to_response()
    assert record["fxRate"] == 1.0815
    assert record["closePrice"] == 211.18


def test_value_buy_with_symbol_resolves_iso_code(orchestrator, fx):
    """"$500" is USD, the asset's own currency: no FX lookup."""
    result = orchestrator.run(BacktestRequest("$500", "AAPL", "2025-07-18"))

    assert isinstance(result, ValueBuyResult)
    assert result.currency == "USD"
    assert result.fx_rate == 1.0
    assert fx.calls == []


def test_value_marker_without_currency_uses_asset_currency(orchestrator, fx):
    """/1000/of/AAPL/...: a bare value in the asset's currency."""
    result = orchestrator.run(
        BacktestRequest("1000", "AAPL", "2025-03-31", value_marker=True)
    )

    assert isinstance(result, ValueBuyResult)
    assert result.currency == "USD"
    assert np.isclose(result.shares, 1000.0 / 200.50)
    assert fx.calls == []


def test_ticker_is_normalised(orchestrator, prices):
    orchestrator.run(BacktestRequest("1", " aapl ", "2025-07-18"))

    assert prices.calls == [("AAPL", dt.date(2025, 7, 18))]


# ---------------------------------------------------------------------------
# Buy/sell
# ---------------------------------------------------------------------------

def test_quantity_buy_sell(orchestrator):
    """10 units from 200.50 to 211.18 is worth 2111.80."""
    result = orchestrator.run(BacktestRequest("10", "AAPL", "2025-03-31", "2025-07-18"))

    assert isinstance(result, QuantityBuySellResult)
    assert result.buy_price == 200.50
    assert result.sell_price == 211.18
    assert np.isclose(result.final_value, 2111.80)
    assert np.isclose(result.total_return_pct, (2111.80 / 2005.0 - 1) * 100)

    record = result.to_response()
    assert record["sellDate"] == "2025-07-18"
    assert np.isclose(record["finalValue"], 2111.80)


def test_value_buy_sell_converts_back_at_sell_date_rate(orchestrator, fx):
    result = orchestrator.run(BacktestRequest("1000EUR", "AAPL", "2025-03-31", "2025-07-18"))

    assert isinstance(result, ValueBuySellResult)
    shares = 1000.0 * 1.0800 / 200.50
    assert np.isclose(result.shares, shares)
    assert np.isclose(result.final_value_in_stock_currency, shares * 211.18)
    assert np.isclose(result.final_value_in_original_currency, shares * 211.18 / 1.0815)
    assert result.fx_rate_buy == 1.0800
    assert np.isclose(result.fx_rate_sell, 1 / 1.0815)
    assert fx.calls == [
        ("EUR", "USD", dt.date(2025, 3, 31)),
        ("USD", "EUR", dt.date(2025, 7, 18)),
    ]


def test_same_day_buy_sell(orchestrator):
    result = orchestrator.run(BacktestRequest("10", "AAPL", "2025-07-18", "2025-07-18"))

    assert np.isclose(result.final_value, 2111.80)
    assert result.total_return_pct == 0.0


# ---------------------------------------------------------------------------
# DRIP
# ---------------------------------------------------------------------------

def test_quantity_drip(orchestrator, dividends):
    """Only the 2025-05-12 dividend falls in the window; reinvested at the buy close."""
    result = orchestrator.run(
        BacktestRequest("10", "AAPL", "2025-03-31", "2025-07-18", drip=True)
    )

    assert isinstance(result, QuantityDripResult)
    reinvested = 10.0 * 0.26 / 200.50
    assert result.initial_shares == 10.0
    assert np.isclose(result.reinvested_shares, reinvested)
    assert np.isclose(result.total_shares, 10.0 + reinvested)
    assert np.isclose(result.final_value, (10.0 + reinvested) * 211.18)
    assert [e.date for e in result.dividends] == [dt.date(2025, 5, 12)]
    assert dividends.calls == [("AAPL", BUY, SELL)]

    record = result.to_response()
    assert record["drip"] is True
    assert record["dividends"][0]["date"] == "2025-05-12"
    assert record["dividends"][0]["reinvestmentPrice"] == 200.50


def test_value_drip(orchestrator):
    result = orchestrator.run(
        BacktestRequest("1000EUR", "AAPL", "2025-03-31", "2025-07-18", drip=True)
    )

    assert isinstance(result, ValueDripResult)
    initial = 1000.0 * 1.0800 / 200.50
    total = initial * (1 + 0.26 / 200.50)
    assert np.isclose(result.initial_shares, initial)
    assert np.isclose(result.total_shares, total)
    assert np.isclose(result.final_value_in_stock_currency, total * 211.18)
    assert np.isclose(result.final_value_in_original_currency, total * 211.18 / 1.0815)


def test_drip_without_dividends_equals_buy_sell(prices, fx, clock):
    orchestrator = BacktestOrchestrator(
        {"stock": prices}, fx, FakeDividendSource([]), clock=clock
    )
    drip = orchestrator.run(BacktestRequest("10", "AAPL", "2025-03-31", "2025-07-18", drip=True))

    assert drip.reinvested_shares == 0.0
    assert drip.dividends == ()
    assert np.isclose(drip.final_value, 2111.80)


def test_drip_ex_date_pricing(prices, fx, dividends, clock):
    """With ex_date_close, each dividend is reinvested at that day's close."""
    orchestrator = BacktestOrchestrator(
        {"stock": prices}, fx, dividends,
        settings=BacktestSettings(drip_pricing="ex_date_close"),
        clock=clock,
    )
    result = orchestrator.run(BacktestRequest("10", "AAPL", "2025-03-31", "2025-07-18", drip=True))

    assert result.dividends[0].reinvestment_price == 210.79
    assert np.isclose(result.reinvested_shares, 10.0 * 0.26 / 210.79)
    assert ("AAPL", dt.date(2025, 5, 12)) in prices.calls


def test_same_day_drip_skips_dividend_fetch(orchestrator, dividends):
    result = orchestrator.run(BacktestRequest("10", "AAPL", "2025-07-18", "2025-07-18", drip=True))

    assert result.reinvested_shares == 0.0
    assert dividends.calls == []


def test_crypto_drip_never_consults_dividends(orchestrator, dividends):
    result = orchestrator.run(
        BacktestRequest("1", "BTC", "2025-03-31", "2025-07-18", drip=True, asset_type="crypto")
    )

    assert result.asset_type == "crypto"
    assert result.reinvested_shares == 0.0
    assert np.isclose(result.final_value, 118000.0)
    assert dividends.calls == []


def test_drip_requires_sell_date(orchestrator, prices):
    with pytest.raises(InvalidDate, match="sellDate is required"):
        orchestrator.run(BacktestRequest("10", "AAPL", "2025-03-31", drip=True))
    assert prices.calls == []


# ---------------------------------------------------------------------------
# Validation happens before any fetch
# ---------------------------------------------------------------------------

def test_invalid_type_rejected_before_fetch(orchestrator, prices, fx):
    with pytest.raises(InvalidType) as excinfo:
        orchestrator.run(BacktestRequest("10", "AAPL", "2025-07-18", asset_type="banana"))

    assert excinfo.value.to_response() == {
        "error": "Invalid type parameter: must be 'stock' or 'crypto'",
        "details": "got 'banana'",
    }
    assert prices.calls == []
    assert fx.calls == []


def test_type_checked_before_amount(orchestrator):
    with pytest.raises(InvalidType):
        orchestrator.run(BacktestRequest("zero", "AAPL", "not-a-date", asset_type="bond"))


def test_amount_checked_before_dates(orchestrator):
    with pytest.raises(InvalidAmount):
        orchestrator.run(BacktestRequest("-5", "AAPL", "not-a-date"))


@pytest.mark.parametrize("amount", ["0", "-5", "abc", "₿100"])
def test_invalid_amount_rejected_before_fetch(orchestrator, prices, amount):
    with pytest.raises(InvalidAmount):
        orchestrator.run(BacktestRequest(amount, "AAPL", "2025-07-18"))
    assert prices.calls == []


@pytest.mark.parametrize(
    "buy, sell",
    [
        ("2025-07-32", None),
        ("2025-07-21", None),
        ("2025-07-18", "2025-07-17"),
        ("2025-07-18", "2025-08-01"),
    ],
)
def test_invalid_dates_rejected_before_fetch(orchestrator, prices, buy, sell):
    with pytest.raises(InvalidDate):
        orchestrator.run(BacktestRequest("10", "AAPL", buy, sell))
    assert prices.calls == []


def test_missing_ticker(orchestrator):
    with pytest.raises(InvalidRequest, match="ticker is required"):
        orchestrator.run(BacktestRequest("10", "  ", "2025-07-18"))


def test_missing_price_source_for_asset_type(prices, fx, dividends, clock):
    orchestrator = BacktestOrchestrator({"stock": prices}, fx, dividends, clock=clock)

    with pytest.raises(UpstreamError, match="no price source configured"):
        orchestrator.run(BacktestRequest("1", "BTC", "2025-07-18", asset_type="crypto"))


# ---------------------------------------------------------------------------
# Upstream failures abort the request
# ---------------------------------------------------------------------------

def test_missing_price_aborts(orchestrator):
    """2025-07-19 is a Saturday: no close."""
    with pytest.raises(PriceUnavailable) as excinfo:
        orchestrator.run(BacktestRequest("10", "AAPL", "2025-07-19"))

    assert excinfo.value.error == "Failed to fetch stock price"
    assert excinfo.value.status_code == 502


def test_missing_sell_price_aborts_without_result(orchestrator, fx):
    with pytest.raises(PriceUnavailable):
        orchestrator.run(BacktestRequest("1000EUR", "AAPL", "2025-03-31", "2025-07-19"))


def test_missing_fx_rate_aborts(orchestrator):
    with pytest.raises(RateUnavailable) as excinfo:
        orchestrator.run(BacktestRequest("1000GBP", "AAPL", "2025-07-18"))

    assert excinfo.value.to_response()["error"] == "Failed to fetch FX rate"


def test_unexpected_price_source_error_becomes_price_unavailable(fx, dividends, clock):
    class BrokenSource:
        def close_price(self, ticker, on):
            raise ConnectionError("connection reset")

    orchestrator = BacktestOrchestrator({"stock": BrokenSource()}, fx, dividends, clock=clock)

    with pytest.raises(PriceUnavailable, match="connection reset"):
        orchestrator.run(BacktestRequest("10", "AAPL", "2025-07-18"))


def test_dividend_failure_aborts(prices, fx, clock):
    class BrokenDividends:
        def dividend_schedule(self, ticker, start, end):
            raise DividendsUnavailable("throttled", transient=True)

    orchestrator = BacktestOrchestrator({"stock": prices}, fx, BrokenDividends(), clock=clock)

    with pytest.raises(DividendsUnavailable) as excinfo:
        orchestrator.run(BacktestRequest("10", "AAPL", "2025-03-31", "2025-07-18", drip=True))

    assert excinfo.value.transient is True
    assert "transient" not in excinfo.value.to_response()


def test_non_positive_close_is_upstream_error(fx, dividends, clock):
    prices = FakePriceSource({("AAPL", dt.date(2025, 7, 18)): 0.0})
    orchestrator = BacktestOrchestrator({"stock": prices}, fx, dividends, clock=clock)

    with pytest.raises(UpstreamError):
        orchestrator.run(BacktestRequest("$100", "AAPL", "2025-07-18"))


def test_quantity_buy_sell_rejects_negative_sell_close(fx, dividends, clock):
    """Quantity mode never divides by the price, so the fetch itself must reject it."""
    prices = FakePriceSource({
        ("AAPL", BUY): 200.50,
        ("AAPL", SELL): -3.0,
    })
    orchestrator = BacktestOrchestrator({"stock": prices}, fx, dividends, clock=clock)

    with pytest.raises(NonPositivePriceError) as excinfo:
        orchestrator.run(BacktestRequest("10", "AAPL", "2025-03-31", "2025-07-18"))

    assert excinfo.value.status_code == 502
    assert excinfo.value.to_response()["error"] == "Invalid price data"


def test_quantity_buy_rejects_zero_close(fx, dividends, clock):
    prices = FakePriceSource({("AAPL", dt.date(2025, 7, 18)): 0.0})
    orchestrator = BacktestOrchestrator({"stock": prices}, fx, dividends, clock=clock)

    with pytest.raises(NonPositivePriceError):
        orchestrator.run(BacktestRequest("10", "AAPL", "2025-07-18"))
