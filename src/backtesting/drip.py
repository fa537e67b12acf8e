"""
Dividend reinvestment (DRIP) simulation.

**Conceptual**: Under a dividend reinvestment plan, every cash dividend is
immediately used to buy more shares of the same asset. Those new shares then
receive the next dividend too, so the position compounds:

    shares_0 = initial shares
    for each dividend i (chronological):
        cash_i   = shares_{i-1} * per_share_amount_i
        bought_i = cash_i / reinvestment_price_i
        shares_i = shares_{i-1} + bought_i

This is compounding DRIP - each dividend is paid on everything held at that
point, including shares bought with earlier dividends - not "simple" DRIP on
the original share count.

**Reinvestment price**: the default is a single constant price for every event
- the close on the purchase date. This is an approximation (the real
reinvestment happens near each ex-date at that day's price). Callers wanting
higher fidelity pass a callable `date -> price` instead of a float; the
orchestrator does this when `HINDSIGHT_DRIP_PRICING=ex_date_close`.

**Window**: only dividends going ex inside the holding period count. The
window is [buy_date, sell_date] inclusive, except that a zero-length holding
(buy_date == sell_date) has no window at all.
"""

import datetime as dt
import logging
from typing import Callable, Iterable, List, Union

from src.data.schemas import DividendEvent, DripResult, ReinvestmentEntry
from src.utils.math import shares_from_value


logger = logging.getLogger(__name__)

ReinvestmentPrice = Union[float, Callable[[dt.date], float]]


def dividends_in_window(
    events: Iterable[DividendEvent],
    buy_date: dt.date,
    sell_date: dt.date,
) -> List[DividendEvent]:
    """
    Restrict a dividend schedule to a holding period, oldest first.

    Args:
        events: Dividend events in any order (may extend beyond the period).
        buy_date: First day of the holding period (inclusive).
        sell_date: Last day of the holding period (inclusive).

    Returns:
        Events with buy_date <= ex_date <= sell_date, sorted by ex_date.
        Empty when buy_date >= sell_date.
    """
    if buy_date >= sell_date:
        return []
    in_window = [e for e in events if buy_date <= e.ex_date <= sell_date]
    return sorted(in_window, key=lambda e: e.ex_date)


def simulate_drip(
    initial_shares: float,
    dividends: Iterable[DividendEvent],
    reinvestment_price: ReinvestmentPrice,
) -> DripResult:
    """
    Reinvest each dividend into additional shares, compounding.

    Args:
        initial_shares: Shares held before the first dividend (>= 0).
        dividends: Dividend events already restricted to the holding period.
                   Processed in ex-date order regardless of input order.
        reinvestment_price: Constant price per share for every event, or a
                            callable returning the price for an ex-date.

    Returns:
        DripResult with the shares accrued through reinvestment and one log
        entry per reinvested dividend. Dividends that pay no cash (zero
        per-share amount, or no shares held) are skipped and not logged.

    Raises:
        NonPositivePriceError: If a reinvestment price is <= 0.

    Example:
        >>> events = [DividendEvent(dt.date(2025, 5, 12), 0.26),
        ...           DividendEvent(dt.date(2025, 8, 11), 0.26)]
        >>> result = simulate_drip(10.0, events, 200.50)
        >>> round(result.reinvested_shares, 6)
        0.025952
    """
    price_for = reinvestment_price if callable(reinvestment_price) else (
        lambda _on: reinvestment_price
    )

    shares_held = initial_shares
    reinvested = 0.0
    log: List[ReinvestmentEntry] = []

    for event in sorted(dividends, key=lambda e: e.ex_date):
        cash = shares_held * event.per_share_amount
        if cash <= 0:
            continue

        price = price_for(event.ex_date)
        bought = shares_from_value(cash, price)
        shares_held += bought
        reinvested += bought

        logger.debug(
            "DRIP %s: %.6f cash -> %.6f shares at %.4f (holding %.6f)",
            event.ex_date, cash, bought, price, shares_held,
        )
        log.append(ReinvestmentEntry(
            date=event.ex_date,
            cash_amount=cash,
            shares_purchased=bought,
            reinvestment_price=price,
        ))

    return DripResult(reinvested_shares=reinvested, reinvestment_log=tuple(log))
