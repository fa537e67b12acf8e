"""
What-if backtest orchestrator.

**Conceptual**: The orchestrator answers one question per request: "what
would this investment have been worth?" It validates the request, asks the
collaborators for the handful of historical facts it needs (closes, FX
rates, dividends), and hands them to the pure calculators:

    amount token ──parse_amount──> ParsedAmount
    value in investor currency ──FXConverter──> value in asset currency
    value ──shares_from_value──> shares
    shares + dividends ──simulate_drip──> reinvested shares
    shares ──value_from_shares──> final value ──FXConverter──> investor currency

**Request shapes** (three shapes × {quantity, value}):
  1. Buy-only: price of the position on the purchase date.
  2. Buy/sell: position bought on buy_date, liquidated on sell_date.
  3. Buy/sell + DRIP: as (2), with every dividend in between reinvested.

**Invariants**:
  - All validation (type, then amount, then dates) happens before the first
    fetch. A bad request never costs an upstream call.
  - A value-mode amount is converted into the asset's currency BEFORE any
    share arithmetic, and proceeds are converted back at the sell-date rate
    (asset → investor currency), never at the buy-date rate.
  - Any fetch failure aborts the request. There are no partial results.
  - No state is kept between requests; one orchestrator can serve many.
"""

import datetime as dt
import logging
from typing import Callable, Mapping, Optional

from src.backtesting.amount_parser import parse_amount, resolve_currency_code
from src.backtesting.drip import ReinvestmentPrice, dividends_in_window, simulate_drip
from src.backtesting.errors import (
    BacktestError,
    DividendsUnavailable,
    InvalidDate,
    InvalidRequest,
    InvalidType,
    NonPositivePriceError,
    PriceUnavailable,
    UpstreamError,
)
from src.backtesting.fx import FXConverter
from src.backtesting.results import (
    BacktestResult,
    QuantityBuyResult,
    QuantityBuySellResult,
    QuantityDripResult,
    ValueBuyResult,
    ValueBuySellResult,
    ValueDripResult,
)
from src.config.settings import BacktestSettings
from src.data.schemas import ASSET_TYPES, CRYPTO, STOCK, BacktestRequest, DripResult, ParsedAmount
from src.utils.math import compute_total_return_pct, shares_from_value, value_from_shares
from src.utils.time import Clock, RealClock, parse_iso_date, validate_holding_period
from src.venues.base import DividendSource, FXRateSource, PriceSource


logger = logging.getLogger(__name__)


class BacktestOrchestrator:
    """
    Runs what-if backtest requests against injected collaborators.

    **Collaborators**:
      - price_sources: one PriceSource per asset type ({"stock": ..., "crypto": ...}).
      - fx_source: FXRateSource, wrapped in an FXConverter.
      - dividend_source: DividendSource for stocks. Crypto pays no dividends,
        so it is never consulted for crypto requests.

    **Example usage**:
        >>> orchestrator = BacktestOrchestrator(
        ...     price_sources={"stock": alphavantage},
        ...     fx_source=frankfurter,
        ...     dividend_source=alphavantage,
        ... )
        >>> result = orchestrator.run(BacktestRequest("10", "AAPL", "2025-07-18"))
        >>> result.to_response()["closePrice"]
        211.18
    """

    def __init__(
        self,
        price_sources: Mapping[str, PriceSource],
        fx_source: FXRateSource,
        dividend_source: DividendSource,
        settings: Optional[BacktestSettings] = None,
        clock: Optional[Clock] = None,
    ):
        """
        Args:
            price_sources: PriceSource per asset type ("stock", "crypto").
            fx_source: Historical FX rates.
            dividend_source: Historical dividend schedules (stocks).
            settings: Asset currencies and DRIP pricing (defaults if None).
            clock: Time source for the "not in the future" check (RealClock if None).
        """
        self.price_sources = dict(price_sources)
        self.fx = FXConverter(fx_source)
        self.dividend_source = dividend_source
        self.settings = settings or BacktestSettings()
        self.clock = clock or RealClock()

    def asset_currency(self, asset_type: str) -> str:
        """Native currency of prices for an asset type."""
        if asset_type == CRYPTO:
            return self.settings.crypto_currency
        return self.settings.stock_currency

    def run(self, request: BacktestRequest) -> BacktestResult:
        """
        Validate and answer one backtest request.

        Args:
            request: Raw request (string fields, as received).

        Returns:
            One of the six BacktestResult variants, chosen by request shape.

        Raises:
            InvalidType: Asset type is not "stock" or "crypto".
            InvalidAmount: Amount token is unusable.
            InvalidDate: Dates are malformed, in the future, or reversed.
            InvalidRequest: Ticker missing.
            UpstreamError: Any collaborator failure (price, FX, dividends).
        """
        # Validation, in order: type, amount, dates. Nothing is fetched yet.
        asset_type = (request.asset_type or STOCK).strip().lower()
        if asset_type not in ASSET_TYPES:
            raise InvalidType(f"got '{request.asset_type}'")

        parsed = parse_amount(request.amount, request.value_marker)
        stock_currency = self.asset_currency(asset_type)
        currency = (
            resolve_currency_code(parsed.currency_token)
            if parsed.currency_token
            else stock_currency
        )

        buy_date = parse_iso_date(request.buy_date, "buyDate")
        sell_date = parse_iso_date(request.sell_date, "sellDate") if request.sell_date else None
        if request.drip and sell_date is None:
            raise InvalidDate("sellDate is required for dividend reinvestment")
        validate_holding_period(buy_date, sell_date, self.clock)

        ticker = (request.ticker or "").strip().upper()
        if not ticker:
            raise InvalidRequest("ticker is required")

        price_source = self.price_sources.get(asset_type)
        if price_source is None:
            raise UpstreamError(f"no price source configured for asset type '{asset_type}'")

        logger.info(
            "Backtest %s %s %s on %s%s%s (%s)",
            "value" if parsed.is_monetary_value else "quantity",
            request.amount,
            ticker,
            buy_date,
            f" sold {sell_date}" if sell_date else "",
            " with DRIP" if request.drip else "",
            asset_type,
        )

        fetch_close = self._price_fetcher(price_source, ticker)

        if sell_date is None:
            return self._buy_only(parsed, ticker, buy_date, asset_type, currency, stock_currency, fetch_close)

        if request.drip:
            return self._buy_sell_drip(
                parsed, ticker, buy_date, sell_date, asset_type, currency, stock_currency, fetch_close
            )

        return self._buy_sell(
            parsed, ticker, buy_date, sell_date, asset_type, currency, stock_currency, fetch_close
        )

    def _price_fetcher(self, source: PriceSource, ticker: str) -> Callable[[dt.date], float]:
        """Bind `source` to `ticker`, normalizing any non-taxonomy failure to PriceUnavailable."""

        def fetch_close(on: dt.date) -> float:
            logger.debug("Fetching close %s on %s", ticker, on)
            try:
                price = float(source.close_price(ticker, on))
            except BacktestError:
                raise
            except Exception as e:
                raise PriceUnavailable(
                    f"No close price for {ticker} on {on.isoformat()}: {e}"
                ) from e
            if not price > 0:
                raise NonPositivePriceError(
                    f"close price for {ticker} on {on.isoformat()} is {price}, expected > 0"
                )
            return price

        return fetch_close

    def _buy_only(self, parsed: ParsedAmount, ticker, buy_date, asset_type, currency,
                  stock_currency, fetch_close) -> BacktestResult:
        close_price = fetch_close(buy_date)

        if not parsed.is_monetary_value:
            return QuantityBuyResult(
                ticker=ticker,
                buy_date=buy_date,
                asset_type=asset_type,
                quantity=parsed.magnitude,
                close_price=close_price,
            )

        fx_rate = self.fx.rate(currency, stock_currency, buy_date)
        shares = shares_from_value(parsed.magnitude * fx_rate, close_price)
        return ValueBuyResult(
            ticker=ticker,
            buy_date=buy_date,
            asset_type=asset_type,
            value=parsed.magnitude,
            currency=currency,
            fx_rate=fx_rate,
            shares=shares,
            stock_currency=stock_currency,
            close_price=close_price,
        )

    def _buy_sell(self, parsed: ParsedAmount, ticker, buy_date, sell_date, asset_type,
                  currency, stock_currency, fetch_close) -> BacktestResult:
        buy_price = fetch_close(buy_date)
        sell_price = fetch_close(sell_date)

        if not parsed.is_monetary_value:
            final_value = value_from_shares(parsed.magnitude, sell_price)
            return QuantityBuySellResult(
                ticker=ticker,
                buy_date=buy_date,
                asset_type=asset_type,
                sell_date=sell_date,
                quantity=parsed.magnitude,
                buy_price=buy_price,
                sell_price=sell_price,
                final_value=final_value,
                total_return_pct=compute_total_return_pct(
                    value_from_shares(parsed.magnitude, buy_price), final_value
                ),
            )

        fx_rate_buy = self.fx.rate(currency, stock_currency, buy_date)
        fx_rate_sell = self.fx.rate(stock_currency, currency, sell_date)
        shares = shares_from_value(parsed.magnitude * fx_rate_buy, buy_price)
        final_in_stock = value_from_shares(shares, sell_price)
        final_in_original = final_in_stock * fx_rate_sell
        return ValueBuySellResult(
            ticker=ticker,
            buy_date=buy_date,
            asset_type=asset_type,
            sell_date=sell_date,
            value=parsed.magnitude,
            currency=currency,
            stock_currency=stock_currency,
            fx_rate_buy=fx_rate_buy,
            fx_rate_sell=fx_rate_sell,
            shares=shares,
            buy_price=buy_price,
            sell_price=sell_price,
            final_value_in_stock_currency=final_in_stock,
            final_value_in_original_currency=final_in_original,
            total_return_pct=compute_total_return_pct(parsed.magnitude, final_in_original),
        )

    def _buy_sell_drip(self, parsed: ParsedAmount, ticker, buy_date, sell_date, asset_type,
                       currency, stock_currency, fetch_close) -> BacktestResult:
        buy_price = fetch_close(buy_date)
        sell_price = fetch_close(sell_date)

        if parsed.is_monetary_value:
            fx_rate_buy = self.fx.rate(currency, stock_currency, buy_date)
            fx_rate_sell = self.fx.rate(stock_currency, currency, sell_date)
            initial_shares = shares_from_value(parsed.magnitude * fx_rate_buy, buy_price)
        else:
            initial_shares = parsed.magnitude

        drip = self._reinvest(ticker, buy_date, sell_date, asset_type, initial_shares,
                              buy_price, fetch_close)
        total_shares = initial_shares + drip.reinvested_shares
        final_in_stock = value_from_shares(total_shares, sell_price)

        if not parsed.is_monetary_value:
            return QuantityDripResult(
                ticker=ticker,
                buy_date=buy_date,
                asset_type=asset_type,
                sell_date=sell_date,
                quantity=parsed.magnitude,
                buy_price=buy_price,
                sell_price=sell_price,
                initial_shares=initial_shares,
                reinvested_shares=drip.reinvested_shares,
                total_shares=total_shares,
                dividends=drip.reinvestment_log,
                final_value=final_in_stock,
                total_return_pct=compute_total_return_pct(
                    value_from_shares(initial_shares, buy_price), final_in_stock
                ),
            )

        final_in_original = final_in_stock * fx_rate_sell
        return ValueDripResult(
            ticker=ticker,
            buy_date=buy_date,
            asset_type=asset_type,
            sell_date=sell_date,
            value=parsed.magnitude,
            currency=currency,
            stock_currency=stock_currency,
            fx_rate_buy=fx_rate_buy,
            fx_rate_sell=fx_rate_sell,
            buy_price=buy_price,
            sell_price=sell_price,
            initial_shares=initial_shares,
            reinvested_shares=drip.reinvested_shares,
            total_shares=total_shares,
            dividends=drip.reinvestment_log,
            final_value_in_stock_currency=final_in_stock,
            final_value_in_original_currency=final_in_original,
            total_return_pct=compute_total_return_pct(parsed.magnitude, final_in_original),
        )

    def _reinvest(self, ticker, buy_date, sell_date, asset_type, initial_shares,
                  buy_price, fetch_close) -> DripResult:
        """Fetch the dividend schedule and simulate reinvestment over [buy_date, sell_date]."""
        if asset_type == CRYPTO:
            logger.debug("No dividends for crypto asset %s", ticker)
            return DripResult()

        if buy_date >= sell_date:
            return DripResult()

        logger.debug("Fetching dividends %s [%s, %s]", ticker, buy_date, sell_date)
        try:
            schedule = self.dividend_source.dividend_schedule(ticker, buy_date, sell_date)
        except BacktestError:
            raise
        except Exception as e:
            raise DividendsUnavailable(f"Failed to fetch dividends for {ticker}: {e}") from e

        events = dividends_in_window(schedule, buy_date, sell_date)

        price: ReinvestmentPrice = buy_price
        if self.settings.drip_pricing == "ex_date_close":
            price = fetch_close

        drip = simulate_drip(initial_shares, events, price)
        logger.info(
            "DRIP %s: %d dividends, %.6f shares reinvested",
            ticker, len(drip.reinvestment_log), drip.reinvested_shares,
        )
        return drip
