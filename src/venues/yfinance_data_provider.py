"""
Stock closes and dividends from Yahoo Finance, through the yfinance library.

**Conceptual**: the keyless stock provider (HINDSIGHT_STOCK_PROVIDER=yfinance).
Prices come from yf.download, dividends from yf.Ticker(...).dividends.

**Caveats**:
  - Yahoo's endpoints are unofficial and change without notice.
  - Throttling is indistinguishable from "no data" (an empty frame or a
    generic exception), so errors raised here are never transient.
  - Closes are raw (auto_adjust=False) unless YFINANCE_AUTO_ADJUST says otherwise.
"""

import datetime as dt
import logging
from typing import List

import pandas as pd

try:
    import yfinance as yf
except ImportError:
    raise ImportError(
        "yfinance library not installed. Install it with: pip install yfinance"
    )

from src.backtesting.errors import DividendsUnavailable, PriceUnavailable
from src.config.settings import YFinanceSettings
from src.data.schemas import DividendEvent


logger = logging.getLogger(__name__)


class YFinanceError(RuntimeError):
    """yf.download or yf.Ticker failed, or returned something unusable."""
    pass


class YFinanceEmptyDataError(YFinanceError):
    """
    No trading day of the ticker falls in the requested window.

    Yahoo answers an unknown ticker, a delisted one, and a weekend or
    holiday window the same way: with an empty frame.
    """
    pass


class YFinanceDataProvider:
    """
    PriceSource and DividendSource backed by Yahoo Finance.

    yf.download returns a frame indexed by trading date; recent yfinance
    releases use (field, ticker) MultiIndex columns even for one ticker, so
    the "Close" column is looked up on the first level.

    **Example usage**:
        >>> from src.config.settings import YFinanceSettings
        >>> provider = YFinanceDataProvider(YFinanceSettings())
        >>> provider.close_price("AAPL", dt.date(2025, 7, 18))
        211.18
    """

    def __init__(self, settings: YFinanceSettings):
        self.settings = settings

    def get_daily_closes(
        self,
        ticker: str,
        start_date: dt.date,
        end_date: dt.date,
    ) -> pd.Series:
        """
        Daily closes of `ticker` between two dates, inclusive.

        Returns:
            Float Series named "closing_price", indexed by datetime.date,
            oldest first. Never empty.

        Raises:
            ValueError: If the ticker is blank or the window is reversed.
            YFinanceEmptyDataError: If Yahoo has no bar in the window.
            YFinanceError: If the download fails or a close is missing/non-positive.
        """
        if not ticker or not ticker.strip():
            raise ValueError("Ticker cannot be empty")
        if start_date > end_date:
            raise ValueError(f"start_date ({start_date}) must be <= end_date ({end_date})")

        symbol = ticker.strip().upper()
        logger.debug("yfinance download %s [%s, %s]", symbol, start_date, end_date)

        # yfinance raises a wide, undocumented range of exceptions
        try:
            frame = yf.download(
                symbol,
                start=start_date.isoformat(),
                end=(end_date + dt.timedelta(days=1)).isoformat(),  # exclusive
                interval="1d",
                auto_adjust=self.settings.auto_adjust,
                progress=False,
                threads=False,
                timeout=self.settings.timeout_seconds,
            )
        except Exception as e:
            raise YFinanceError(f"yfinance download of '{symbol}' failed: {e}") from e

        if frame is None or frame.empty:
            raise YFinanceEmptyDataError(
                f"No data returned by yfinance for '{symbol}' in [{start_date}, {end_date}]"
            )

        if isinstance(frame.columns, pd.MultiIndex):
            frame.columns = frame.columns.get_level_values(0)
        if "Close" not in frame.columns:
            raise YFinanceError(
                f"yfinance frame for '{symbol}' has no Close column: {list(frame.columns)}"
            )

        index = pd.DatetimeIndex(frame.index)
        if index.tz is not None:
            index = index.tz_convert('UTC').tz_localize(None)

        closes = pd.Series(
            pd.to_numeric(frame["Close"], errors="coerce").to_numpy(),
            index=index.date,
            name="closing_price",
        )
        closes = closes[(closes.index >= start_date) & (closes.index <= end_date)].sort_index()

        if closes.empty:
            raise YFinanceEmptyDataError(
                f"No data returned by yfinance for '{symbol}' in [{start_date}, {end_date}]"
            )
        if closes.isna().any() or (closes <= 0).any():
            raise YFinanceError(f"{symbol} has missing or non-positive closes in the window")

        return closes

    def close_price(self, ticker: str, on: dt.date) -> float:
        """
        Close of `ticker` on `on` (PriceSource protocol).

        Raises:
            PriceUnavailable: If there is no bar for that date or yfinance fails.
        """
        try:
            closes = self.get_daily_closes(ticker, on, on)
        except YFinanceError as e:
            raise PriceUnavailable(str(e)) from e

        return float(closes.iloc[0])

    def dividend_schedule(
        self,
        ticker: str,
        start: dt.date,
        end: dt.date,
    ) -> List[DividendEvent]:
        """
        Dividends of `ticker` with ex-date in [start, end] (DividendSource protocol).

        yf.Ticker(...).dividends is a Series of per-share cash amounts indexed
        by (tz-aware) ex-date. A ticker that never paid returns an empty Series.

        Raises:
            DividendsUnavailable: If yfinance fails.
        """
        symbol = ticker.strip().upper()
        logger.debug("yfinance dividends %s [%s, %s]", symbol, start, end)

        try:
            series = yf.Ticker(symbol).dividends
        except Exception as e:
            raise DividendsUnavailable(
                f"Error fetching dividends from yfinance for ticker '{ticker}': {e}"
            ) from e

        events = []
        for ts, amount in series.items():
            ex_date = pd.Timestamp(ts).date()
            if start <= ex_date <= end and pd.notna(amount):
                events.append(DividendEvent(ex_date=ex_date, per_share_amount=float(amount)))

        return sorted(events, key=lambda e: e.ex_date)
