"""
Stock closes and dividend history from Alpha Vantage.

**Conceptual**: Two query functions cover everything a what-if backtest
needs from a stock vendor:

  - TIME_SERIES_DAILY: one JSON object per trading day, keyed by "YYYY-MM-DD",
    whose "4. close" is the raw exchange close.
  - DIVIDENDS: a list of payouts, each with "ex_dividend_date" and "amount".

Both go to the same endpoint (default https://www.alphavantage.co/query) with
the key in the `apikey` query parameter. Failures rarely show up as HTTP
errors: a bad symbol answers 200 with "Error Message", and throttling answers
200 with "Note" (older) or "Information" (current).

**Quota**: the free key allows 25 calls a day and 5 a minute. A buy/sell
request with DRIP costs three calls (two closes, one dividend list).

The pandas-level methods raise AlphaVantageApiError; the protocol methods
(close_price, dividend_schedule) turn that into PriceUnavailable /
DividendsUnavailable, transient when the cause was throttling.
"""

import datetime as dt
import logging
from typing import Any, Dict, List

import pandas as pd
import requests

from src.backtesting.errors import DividendsUnavailable, PriceUnavailable
from src.config.settings import AlphaVantageSettings
from src.data.schemas import DividendEvent


logger = logging.getLogger(__name__)

DIVIDEND_COLUMNS = ['ex_date', 'amount']


class AlphaVantageApiError(RuntimeError):
    """A query failed: network, unparseable body, or an "Error Message" payload."""
    pass


class AlphaVantageRateLimitError(AlphaVantageApiError):
    """
    The key is throttled (per-minute or per-day quota).

    Alpha Vantage still answers HTTP 200; the body carries a "Note" or
    "Information" message instead of data. Retrying later succeeds.
    """
    pass


def _check_window(ticker: str, start_date: dt.date, end_date: dt.date) -> str:
    if not ticker or not ticker.strip():
        raise ValueError("Ticker cannot be empty")
    if start_date > end_date:
        raise ValueError(f"start_date ({start_date}) must be <= end_date ({end_date})")
    return ticker.strip().upper()


class AlphaVantageDataProvider:
    """
    PriceSource and DividendSource backed by Alpha Vantage.

    **TIME_SERIES_DAILY payload** (abridged):
    ```json
    {
      "Meta Data": {"2. Symbol": "AAPL"},
      "Time Series (Daily)": {
        "2025-07-18": {"1. open": "210.87", "4. close": "211.18", "5. volume": "48974591"}
      }
    }
    ```

    **DIVIDENDS payload** (abridged):
    ```json
    {"symbol": "AAPL", "data": [{"ex_dividend_date": "2025-05-12", "amount": "0.26"}]}
    ```

    **Example usage**:
        >>> from src.config.settings import get_settings
        >>> provider = AlphaVantageDataProvider(get_settings(require_alphavantage=True).alphavantage)
        >>> provider.close_price("AAPL", dt.date(2025, 7, 18))
        211.18
    """

    def __init__(self, settings: AlphaVantageSettings):
        self.settings = settings

    def _query(self, function: str, symbol: str, **extra: str) -> Dict[str, Any]:
        """
        Run one query and return its payload once the error shapes are ruled out.

        Raises:
            AlphaVantageRateLimitError: On a "Note"/"Information" payload.
            AlphaVantageApiError: On network errors, HTTP errors, non-JSON or
                                  non-object bodies, or an "Error Message" payload.
        """
        params = {"function": function, "symbol": symbol, "apikey": self.settings.api_key}
        params.update(extra)
        logger.debug("Alpha Vantage %s %s", function, symbol)

        try:
            response = requests.get(
                self.settings.base_url, params=params, timeout=self.settings.timeout_seconds
            )
            response.raise_for_status()
        except requests.exceptions.Timeout:
            raise AlphaVantageApiError(
                f"{function} {symbol} timed out after {self.settings.timeout_seconds} seconds"
            ) from None
        except requests.exceptions.RequestException as e:
            raise AlphaVantageApiError(f"Network error calling Alpha Vantage {function}: {e}") from e

        try:
            data = response.json()
        except ValueError as e:
            raise AlphaVantageApiError(
                f"Alpha Vantage {function} returned a non-JSON body: {response.text[:200]}"
            ) from e

        if not isinstance(data, dict):
            raise AlphaVantageApiError(
                f"Alpha Vantage {function} returned a {type(data).__name__}, expected an object"
            )

        notice = data.get("Note") or data.get("Information")
        if notice:
            raise AlphaVantageRateLimitError(f"Alpha Vantage quota exhausted: {notice}")

        if "Error Message" in data:
            raise AlphaVantageApiError(f"Alpha Vantage rejected {symbol}: {data['Error Message']}")

        return data

    def get_daily_closes(
        self,
        ticker: str,
        start_date: dt.date,
        end_date: dt.date,
    ) -> pd.Series:
        """
        Raw daily closes of `ticker` between two dates, inclusive.

        outputsize=full returns the whole history whatever the window, so
        the window is applied here.

        Returns:
            Float Series named "closing_price", indexed by datetime.date,
            oldest first. Empty when no trading day falls in the window.

        Raises:
            ValueError: If the ticker is blank or the window is reversed.
            AlphaVantageRateLimitError: If throttled.
            AlphaVantageApiError: If the payload has no time series, or a close
                                  in the window is missing or non-positive.
        """
        symbol = _check_window(ticker, start_date, end_date)
        data = self._query(self.settings.function, symbol, outputsize=self.settings.outputsize)

        # "Time Series (Daily)" for TIME_SERIES_DAILY, similar keys for the other series
        series_key = next((k for k in data if k.lower().startswith("time series")), None)
        if series_key is None:
            raise AlphaVantageApiError(
                f"Time series data missing for '{symbol}'; payload keys: {sorted(data)}"
            )

        days = data[series_key] or {}
        logger.debug("Alpha Vantage %s: %d trading days", symbol, len(days))

        closes = pd.Series(
            {day: entry.get("4. close") for day, entry in days.items()},
            dtype=object,
            name="closing_price",
        )
        if closes.empty:
            return closes.astype(float)

        closes.index = pd.to_datetime(closes.index, format="%Y-%m-%d").date
        closes = closes[(closes.index >= start_date) & (closes.index <= end_date)]
        closes = pd.to_numeric(closes, errors="coerce").sort_index()

        if closes.isna().any() or (closes <= 0).any():
            bad = closes[closes.isna() | (closes <= 0)]
            raise AlphaVantageApiError(
                f"{symbol} has missing or non-positive closes on {[d.isoformat() for d in bad.index]}"
            )

        return closes

    def get_dividends(
        self,
        ticker: str,
        start_date: dt.date,
        end_date: dt.date,
    ) -> pd.DataFrame:
        """
        Cash dividends of `ticker` with ex-date between two dates, inclusive.

        Returns:
            DataFrame (ex_date: datetime.date, amount: float) sorted by ex_date.
            Alpha Vantage writes "None" for unknown fields; such rows are dropped.

        Raises:
            AlphaVantageRateLimitError: If throttled.
            AlphaVantageApiError: If the payload has no "data" list.
        """
        symbol = _check_window(ticker, start_date, end_date)
        data = self._query("DIVIDENDS", symbol)

        if "data" not in data:
            raise AlphaVantageApiError(
                f"Dividend data missing for '{symbol}'; payload keys: {sorted(data)}"
            )

        df = pd.DataFrame(
            [(row.get('ex_dividend_date'), row.get('amount')) for row in data["data"]],
            columns=DIVIDEND_COLUMNS,
        )
        if df.empty:
            return df

        df['ex_date'] = pd.to_datetime(df['ex_date'], format='%Y-%m-%d', errors='coerce').dt.date
        df['amount'] = pd.to_numeric(df['amount'], errors='coerce')
        df = df.dropna()

        in_window = (df['ex_date'] >= start_date) & (df['ex_date'] <= end_date)
        return df.loc[in_window].sort_values('ex_date').reset_index(drop=True)

    def close_price(self, ticker: str, on: dt.date) -> float:
        """
        Close of `ticker` on `on` (PriceSource protocol).

        Raises:
            PriceUnavailable: If `on` was not a trading day for `ticker`
                              (weekend, holiday, before listing) or the query failed.
        """
        try:
            closes = self.get_daily_closes(ticker, on, on)
        except AlphaVantageRateLimitError as e:
            raise PriceUnavailable(str(e), transient=True) from e
        except AlphaVantageApiError as e:
            raise PriceUnavailable(str(e)) from e

        if closes.empty:
            raise PriceUnavailable(f"no close price for {ticker} on {on.isoformat()}")

        return float(closes.iloc[0])

    def dividend_schedule(
        self,
        ticker: str,
        start: dt.date,
        end: dt.date,
    ) -> List[DividendEvent]:
        """
        Dividends of `ticker` in [start, end] (DividendSource protocol).

        Raises:
            DividendsUnavailable: If the query failed.
        """
        try:
            df = self.get_dividends(ticker, start, end)
        except AlphaVantageRateLimitError as e:
            raise DividendsUnavailable(str(e), transient=True) from e
        except AlphaVantageApiError as e:
            raise DividendsUnavailable(str(e)) from e

        return [
            DividendEvent(ex_date=row.ex_date, per_share_amount=float(row.amount))
            for row in df.itertuples(index=False)
        ]
