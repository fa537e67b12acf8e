"""
Position arithmetic for what-if backtests.

This module holds the pure functions that turn money into shares and shares
back into money at a given close price, plus the headline return figure.
Nothing here fetches data or keeps state; every function is a one-liner in
spirit, but the edge cases (non-positive prices, zero initial value) are
handled explicitly so callers never get a silent NaN or inf.
"""

from src.backtesting.errors import NonPositivePriceError


def shares_from_value(value: float, close_price: float) -> float:
    """
    Convert a monetary value into a (fractional) share count.

    **Conceptual**: Answers "how many shares would this much money have bought
    at that day's close?" Fractional shares are allowed - the what-if question
    is about exposure, not about broker lot sizes.

    **Mathematical**:
        shares = value / close_price

    **Functionally**:
    - `value` must already be expressed in the asset's native currency; FX
      conversion happens before this call, never after.
    - A close price <= 0 can only come from a broken price source. It is
      raised as NonPositivePriceError (an upstream data error that is also a
      ZeroDivisionError) rather than coerced to 0 shares.

    Args:
        value: Money to invest, in the asset's currency.
        close_price: Close price per share on the purchase date.

    Returns:
        Number of shares bought.

    Raises:
        NonPositivePriceError: If close_price <= 0.

    Example:
        >>> shares_from_value(1081.5, 211.18)
        5.121223600719765
    """
    if close_price <= 0:
        raise NonPositivePriceError(
            f"close price must be positive to compute shares, got {close_price}"
        )
    return value / close_price


def value_from_shares(shares: float, close_price: float) -> float:
    """
    Value of a share count at a close price (shares * close_price).

    Example:
        >>> value_from_shares(10, 211.18)
        2111.8
    """
    return shares * close_price


def compute_total_return_pct(initial_value: float, final_value: float) -> float:
    """
    Total return of a holding period, in percent.

    **Mathematical**:
        return_pct = (final_value / initial_value - 1) * 100

    Both values must be in the same currency. An initial value of 0 has no
    meaningful return; 0.0 is reported instead of dividing by zero.

    Args:
        initial_value: Amount invested.
        final_value: Amount at the end of the holding period.

    Returns:
        Percentage return (e.g. 5.33 for +5.33%).
    """
    if initial_value == 0:
        return 0.0
    return (final_value / initial_value - 1.0) * 100.0
