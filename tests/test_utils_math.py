"""
Tests for src/utils/math.py

These tests verify the position arithmetic using small, hand-crafted numbers
where expected values are easy to reason about.
"""

import numpy as np
import pytest

from src.backtesting.errors import NonPositivePriceError, UpstreamError
from src.utils.math import (
    compute_total_return_pct,
    shares_from_value,
    value_from_shares,
)


def test_shares_from_value_simple():
    """1000 at 200 per share is 5 shares."""
    assert shares_from_value(1000.0, 200.0) == 5.0


def test_shares_from_value_fractional():
    """1000 EUR at 1.0815 is 1081.50 USD, which buys ~5.1212 shares at 211.18."""
    shares = shares_from_value(1000.0 * 1.0815, 211.18)

    assert np.isclose(shares, 5.121223, atol=1e-6)


@pytest.mark.parametrize("value, price", [(1000.0, 211.18), (1.0, 3.0), (12345.67, 0.0001)])
def test_shares_times_price_recovers_value(value, price):
    assert np.isclose(value_from_shares(shares_from_value(value, price), price), value)


@pytest.mark.parametrize("price", [0.0, -1.0])
def test_shares_from_value_rejects_non_positive_price(price):
    with pytest.raises(NonPositivePriceError):
        shares_from_value(1000.0, price)


def test_non_positive_price_error_is_upstream_and_zero_division():
    """Callers may catch it either as a data error or as a division error."""
    with pytest.raises(ZeroDivisionError):
        shares_from_value(1.0, 0.0)
    with pytest.raises(UpstreamError):
        shares_from_value(1.0, 0.0)


def test_value_from_shares():
    assert np.isclose(value_from_shares(10, 211.18), 2111.80)


def test_compute_total_return_pct():
    assert np.isclose(compute_total_return_pct(2005.0, 2111.80), (2111.80 / 2005.0 - 1) * 100)
    assert compute_total_return_pct(100.0, 100.0) == 0.0
    assert np.isclose(compute_total_return_pct(100.0, 50.0), -50.0)


def test_compute_total_return_pct_zero_initial():
    assert compute_total_return_pct(0.0, 100.0) == 0.0
