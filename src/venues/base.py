"""
Collaborator protocols for prices, dividends, and FX rates.

**Conceptual**: The backtest core never talks to a vendor directly. It depends
on three small protocols, and anything that implements the right method is a
valid collaborator - an HTTP adapter, a yfinance wrapper, or a dict-backed
fake in a test.

**Why protocols over inheritance?**
  - Protocols are structural typing - no need to inherit from a base class.
  - Fakes for tests are a few lines (no mocking framework required).
  - Each adapter can raise its own vendor errors internally and translate
    them at the protocol boundary.

**Error contract** (all adapters MUST honour it):
  - PriceSource.close_price raises PriceUnavailable when there is no close
    for that ticker/date (date missing, ticker unknown, vendor error).
  - DividendSource.dividend_schedule raises DividendsUnavailable when the
    schedule cannot be fetched. "No dividends in range" is an empty list,
    not an error.
  - FXRateSource.fx_rate raises RateUnavailable when the pair/date has no
    rate (date before data availability, unsupported currency).
  - Rate-limit responses set `transient=True` on the raised error.
"""

import datetime as dt
from typing import List, Protocol

from src.data.schemas import DividendEvent


class PriceSource(Protocol):
    """
    Historical close prices for one asset class.

    **Example usage**:
        >>> provider = AlphaVantageDataProvider(settings.alphavantage)
        >>> provider.close_price("AAPL", dt.date(2025, 7, 18))
        211.18
    """

    def close_price(self, ticker: str, on: dt.date) -> float:
        """
        Close price of `ticker` on `on`, in the asset's native currency.

        Raises:
            PriceUnavailable: If no close exists for that ticker/date.
        """
        ...


class DividendSource(Protocol):
    """Historical cash-dividend schedules."""

    def dividend_schedule(
        self,
        ticker: str,
        start: dt.date,
        end: dt.date,
    ) -> List[DividendEvent]:
        """
        Dividends of `ticker` with ex-date in [start, end], oldest first.

        Raises:
            DividendsUnavailable: If the schedule cannot be fetched.
        """
        ...


class FXRateSource(Protocol):
    """Historical foreign-exchange rates."""

    def fx_rate(self, from_currency: str, to_currency: str, on: dt.date) -> float:
        """
        Rate such that 1 `from_currency` = rate `to_currency` on `on`.

        Raises:
            RateUnavailable: If there is no rate for the pair/date.
        """
        ...
