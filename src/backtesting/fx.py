"""
Currency conversion on historical dates.

**Conceptual**: FXConverter wraps an FXRateSource (any object with
`fx_rate(from_currency, to_currency, on)`) and adds the rules the backtest
core relies on:
  - Same-currency conversion is exactly 1.0 and never consults the source.
  - Currency codes are compared case-insensitively (normalised upper-case).
  - Any failure of the source surfaces as RateUnavailable, with the source's
    message attached as details.
  - A rate must be strictly positive; anything else is an upstream data error.

**Direction**: `rate("EUR", "USD", d)` is how many USD one EUR bought on day d.
Converting a value-mode amount into the asset's currency uses
investor-currency -> asset-currency; converting sale proceeds back uses the
reverse direction on the sell date.
"""

import datetime as dt
import logging

from src.backtesting.errors import RateUnavailable, UpstreamError
from src.data.schemas import FXRate
from src.venues.base import FXRateSource


logger = logging.getLogger(__name__)


class FXConverter:
    """
    Historical currency converter backed by an FXRateSource.

    Example:
        >>> converter = FXConverter(FrankfurterClient(settings.frankfurter))
        >>> converter.rate("EUR", "USD", dt.date(2025, 7, 18))
        1.0815
        >>> converter.convert(1000.0, "EUR", "USD", dt.date(2025, 7, 18))
        1081.5
    """

    def __init__(self, source: FXRateSource):
        self.source = source

    def rate(self, from_currency: str, to_currency: str, on: dt.date) -> float:
        """
        Rate such that 1 `from_currency` = rate `to_currency` on `on`.

        Raises:
            RateUnavailable: If the source has no usable rate for the pair/date.
        """
        base = from_currency.strip().upper()
        quote = to_currency.strip().upper()
        if base == quote:
            return 1.0

        logger.debug("Fetching FX rate %s->%s on %s", base, quote, on)
        try:
            rate = self.source.fx_rate(base, quote, on)
        except RateUnavailable:
            raise
        except UpstreamError as e:
            raise RateUnavailable(e.details, transient=e.transient) from e
        except Exception as e:
            raise RateUnavailable(
                f"No rate found for {base} to {quote} on {on.isoformat()}: {e}"
            ) from e

        if rate is None or rate <= 0:
            raise RateUnavailable(
                f"Non-positive rate {rate!r} for {base} to {quote} on {on.isoformat()}"
            )
        return float(rate)

    def quote(self, from_currency: str, to_currency: str, on: dt.date) -> FXRate:
        """Same as `rate`, returned as a full FXRate record."""
        return FXRate(
            from_currency=from_currency.strip().upper(),
            to_currency=to_currency.strip().upper(),
            date=on,
            rate=self.rate(from_currency, to_currency, on),
        )

    def convert(self, amount: float, from_currency: str, to_currency: str, on: dt.date) -> float:
        """Convert `amount` of `from_currency` into `to_currency` at the rate on `on`."""
        return amount * self.rate(from_currency, to_currency, on)
