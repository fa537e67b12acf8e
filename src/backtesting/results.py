"""
Backtest result variants, one per request shape.

**Conceptual**: A what-if request can take six shapes - {buy-only, buy/sell,
buy/sell with DRIP} crossed with {quantity mode, value mode} - and each shape
reports a different set of facts. Instead of assembling an untyped dict ad hoc,
each shape is its own frozen dataclass with a fixed field set and a `kind` tag.
`BacktestResult` is the union of the six.

**Rendering**: `to_response()` flattens a result into the key/value record a
transport layer returns (camelCase keys, ISO dates). Every record carries
`message`, `ticker`, `buyDate` and `type`.
"""

import datetime as dt
from dataclasses import dataclass
from typing import Any, ClassVar, Dict, List, Tuple, Union

from src.data.schemas import ReinvestmentEntry


def _render_log(log: Tuple[ReinvestmentEntry, ...]) -> List[Dict[str, Any]]:
    return [
        {
            "date": entry.date.isoformat(),
            "cashAmount": entry.cash_amount,
            "sharesPurchased": entry.shares_purchased,
            "reinvestmentPrice": entry.reinvestment_price,
        }
        for entry in log
    ]


@dataclass(frozen=True)
class _ResultBase:
    ticker: str
    buy_date: dt.date
    asset_type: str

    kind: ClassVar[str] = ""
    message: ClassVar[str] = ""

    def _common(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "ticker": self.ticker,
            "buyDate": self.buy_date.isoformat(),
            "type": self.asset_type,
        }


@dataclass(frozen=True)
class QuantityBuyResult(_ResultBase):
    """N units bought on buy_date at close_price."""
    quantity: float
    close_price: float

    kind: ClassVar[str] = "quantity_buy"
    message: ClassVar[str] = "Backtest result (quantity buy only)"

    def to_response(self) -> Dict[str, Any]:
        record = self._common()
        record.update({
            "quantity": self.quantity,
            "closePrice": self.close_price,
        })
        return record


@dataclass(frozen=True)
class ValueBuyResult(_ResultBase):
    """
    A monetary amount invested on buy_date.

    `value` is in `currency` (the investor's currency); `shares` were bought
    with `value * fx_rate` units of `stock_currency`.
    """
    value: float
    currency: str
    fx_rate: float
    shares: float
    stock_currency: str
    close_price: float

    kind: ClassVar[str] = "value_buy"
    message: ClassVar[str] = "Backtest result (value buy only)"

    def to_response(self) -> Dict[str, Any]:
        record = self._common()
        record.update({
            "value": self.value,
            "currency": self.currency,
            "fxRate": self.fx_rate,
            "shares": self.shares,
            "stockCurrency": self.stock_currency,
            "closePrice": self.close_price,
        })
        return record


@dataclass(frozen=True)
class QuantityBuySellResult(_ResultBase):
    """N units bought on buy_date and sold on sell_date."""
    sell_date: dt.date
    quantity: float
    buy_price: float
    sell_price: float
    final_value: float
    total_return_pct: float

    kind: ClassVar[str] = "quantity_buy_sell"
    message: ClassVar[str] = "Backtest result (quantity buy/sell)"

    def to_response(self) -> Dict[str, Any]:
        record = self._common()
        record.update({
            "sellDate": self.sell_date.isoformat(),
            "quantity": self.quantity,
            "buyPrice": self.buy_price,
            "sellPrice": self.sell_price,
            "finalValue": self.final_value,
            "totalReturnPct": self.total_return_pct,
        })
        return record


@dataclass(frozen=True)
class ValueBuySellResult(_ResultBase):
    """
    A monetary amount invested on buy_date and liquidated on sell_date.

    Proceeds are reported both in the asset's currency and converted back to
    the investor's currency at the sell-date rate.
    """
    sell_date: dt.date
    value: float
    currency: str
    stock_currency: str
    fx_rate_buy: float
    fx_rate_sell: float
    shares: float
    buy_price: float
    sell_price: float
    final_value_in_stock_currency: float
    final_value_in_original_currency: float
    total_return_pct: float

    kind: ClassVar[str] = "value_buy_sell"
    message: ClassVar[str] = "Backtest result (value buy/sell)"

    def to_response(self) -> Dict[str, Any]:
        record = self._common()
        record.update({
            "sellDate": self.sell_date.isoformat(),
            "value": self.value,
            "currency": self.currency,
            "stockCurrency": self.stock_currency,
            "fxRateBuy": self.fx_rate_buy,
            "fxRateSell": self.fx_rate_sell,
            "shares": self.shares,
            "buyPrice": self.buy_price,
            "sellPrice": self.sell_price,
            "finalValueInStockCurrency": self.final_value_in_stock_currency,
            "finalValueInOriginalCurrency": self.final_value_in_original_currency,
            "totalReturnPct": self.total_return_pct,
        })
        return record


@dataclass(frozen=True)
class QuantityDripResult(_ResultBase):
    """N units held from buy_date to sell_date with dividends reinvested."""
    sell_date: dt.date
    quantity: float
    buy_price: float
    sell_price: float
    initial_shares: float
    reinvested_shares: float
    total_shares: float
    dividends: Tuple[ReinvestmentEntry, ...]
    final_value: float
    total_return_pct: float

    kind: ClassVar[str] = "quantity_drip"
    message: ClassVar[str] = "Backtest result (quantity buy/sell with DRIP)"

    def to_response(self) -> Dict[str, Any]:
        record = self._common()
        record.update({
            "sellDate": self.sell_date.isoformat(),
            "drip": True,
            "quantity": self.quantity,
            "buyPrice": self.buy_price,
            "sellPrice": self.sell_price,
            "initialShares": self.initial_shares,
            "reinvestedShares": self.reinvested_shares,
            "totalShares": self.total_shares,
            "dividends": _render_log(self.dividends),
            "finalValue": self.final_value,
            "totalReturnPct": self.total_return_pct,
        })
        return record


@dataclass(frozen=True)
class ValueDripResult(_ResultBase):
    """A monetary amount held from buy_date to sell_date with dividends reinvested."""
    sell_date: dt.date
    value: float
    currency: str
    stock_currency: str
    fx_rate_buy: float
    fx_rate_sell: float
    buy_price: float
    sell_price: float
    initial_shares: float
    reinvested_shares: float
    total_shares: float
    dividends: Tuple[ReinvestmentEntry, ...]
    final_value_in_stock_currency: float
    final_value_in_original_currency: float
    total_return_pct: float

    kind: ClassVar[str] = "value_drip"
    message: ClassVar[str] = "Backtest result (value buy/sell with DRIP)"

    def to_response(self) -> Dict[str, Any]:
        record = self._common()
        record.update({
            "sellDate": self.sell_date.isoformat(),
            "drip": True,
            "value": self.value,
            "currency": self.currency,
            "stockCurrency": self.stock_currency,
            "fxRateBuy": self.fx_rate_buy,
            "fxRateSell": self.fx_rate_sell,
            "buyPrice": self.buy_price,
            "sellPrice": self.sell_price,
            "initialShares": self.initial_shares,
            "reinvestedShares": self.reinvested_shares,
            "totalShares": self.total_shares,
            "dividends": _render_log(self.dividends),
            "finalValueInStockCurrency": self.final_value_in_stock_currency,
            "finalValueInOriginalCurrency": self.final_value_in_original_currency,
            "totalReturnPct": self.total_return_pct,
        })
        return record


BacktestResult = Union[
    QuantityBuyResult,
    ValueBuyResult,
    QuantityBuySellResult,
    ValueBuySellResult,
    QuantityDripResult,
    ValueDripResult,
]
