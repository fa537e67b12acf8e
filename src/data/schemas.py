"""
Domain records shared by the backtest core and the data adapters.

**Conceptual**: This module defines the "data contracts" passed between the
pieces of a what-if backtest: the parsed amount, the price/FX/dividend facts
returned by collaborators, the DRIP simulation output, and the request itself.
Every record is a frozen dataclass - once built it is never mutated, so a
record can be handed from an adapter to the core (or logged, or compared in a
test) without anyone worrying about aliasing.

**Conventions**:
  - Dates are `datetime.date` (calendar days, no time component, no timezone).
    Adapters convert vendor timestamps to dates at the boundary.
  - Money and share counts are plain floats.
  - Currency codes are upper-case ISO-like strings ("USD", "EUR").
"""

import datetime as dt
from dataclasses import dataclass
from typing import Optional, Tuple


STOCK = "stock"
CRYPTO = "crypto"
ASSET_TYPES = (STOCK, CRYPTO)


@dataclass(frozen=True)
class ParsedAmount:
    """
    Structured form of a free-form amount token ("10", "1000EUR", "$250.5").

    Attributes:
        magnitude: Numeric part of the token. Strictly positive once parsed.
        currency_token: The currency indicator exactly as it appeared - a
                        3-letter code ("EUR") or a symbol ("€"). Empty when no
                        currency was found.
        is_monetary_value: True for value mode (amount of money), False for
                           quantity mode (raw share/unit count).
    """
    magnitude: float
    currency_token: str = ""
    is_monetary_value: bool = False


@dataclass(frozen=True)
class PricePoint:
    """A close price observed on a calendar date."""
    date: dt.date
    close_price: float


@dataclass(frozen=True)
class FXRate:
    """
    Historical exchange rate: 1 unit of `from_currency` = `rate` units of
    `to_currency` on `date`.
    """
    from_currency: str
    to_currency: str
    date: dt.date
    rate: float


@dataclass(frozen=True)
class DividendEvent:
    """Cash dividend of `per_share_amount` going ex on `ex_date`."""
    ex_date: dt.date
    per_share_amount: float


@dataclass(frozen=True)
class ReinvestmentEntry:
    """
    One dividend that was reinvested during a DRIP simulation.

    Attributes:
        date: Ex-dividend date of the event.
        cash_amount: Cash paid on the shares held at that point.
        shares_purchased: Shares bought with `cash_amount`.
        reinvestment_price: Price per share used for the purchase.
    """
    date: dt.date
    cash_amount: float
    shares_purchased: float
    reinvestment_price: float


@dataclass(frozen=True)
class DripResult:
    """
    Outcome of a DRIP simulation.

    Attributes:
        reinvested_shares: Shares accrued through reinvestment (never negative).
        reinvestment_log: Reinvested dividends in chronological order.
    """
    reinvested_shares: float = 0.0
    reinvestment_log: Tuple[ReinvestmentEntry, ...] = ()


@dataclass(frozen=True)
class BacktestRequest:
    """
    Raw request as handed over by a routing layer or the command line.

    Fields are kept as the caller supplied them (strings); the orchestrator
    validates and parses them before any collaborator is consulted.

    Attributes:
        amount: Amount token, e.g. "10", "1000EUR", "$500".
        ticker: Asset symbol ("AAPL", "BTC").
        buy_date: Purchase date, ISO YYYY-MM-DD.
        sell_date: Optional sale date, ISO YYYY-MM-DD.
        drip: Reinvest dividends between buy and sell date.
        asset_type: "stock" or "crypto".
        value_marker: True when the request came through a "value" template
                      (the `/of/` form). Only consulted when the amount has
                      no currency token.
    """
    amount: str
    ticker: str
    buy_date: str
    sell_date: Optional[str] = None
    drip: bool = False
    asset_type: str = STOCK
    value_marker: bool = False
