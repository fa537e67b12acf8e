"""
Tests for src/utils/time.py

These tests verify the clock abstraction, strict date parsing, and the
holding-period checks that run before any data is fetched.
"""

import datetime as dt
from datetime import datetime, timedelta, timezone
import time

import pytest

from src.backtesting.errors import InvalidDate
from src.utils.time import (
    FrozenClock,
    RealClock,
    parse_iso_date,
    validate_holding_period,
)


@pytest.fixture
def clock():
    """Frozen at 2025-07-20 12:00 UTC."""
    return FrozenClock(datetime(2025, 7, 20, 12, 0, tzinfo=timezone.utc))


def test_real_clock_returns_current_time():
    """Test that RealClock returns a time close to actual current time."""
    clock = RealClock()

    before = datetime.now(timezone.utc)
    clock_time = clock.now()
    after = datetime.now(timezone.utc)

    assert before <= clock_time <= after
    assert clock_time.tzinfo == timezone.utc


def test_real_clock_advances():
    clock = RealClock()

    time1 = clock.now()
    time.sleep(0.01)
    time2 = clock.now()

    assert time2 > time1


def test_frozen_clock_returns_fixed_time():
    fixed_time = datetime(2015, 1, 5, 12, 30, 45, tzinfo=timezone.utc)
    clock = FrozenClock(fixed_time)

    assert clock.now() == fixed_time
    assert clock.now() == fixed_time


def test_parse_iso_date_valid():
    assert parse_iso_date("2025-07-18") == dt.date(2025, 7, 18)
    assert parse_iso_date(" 2024-02-29 ") == dt.date(2024, 2, 29)


@pytest.mark.parametrize(
    "raw",
    ["2025-13-01", "2025-02-30", "18-07-2025", "2025/07/18", "yesterday", "", "2025-7-1", "2025-07-1"],
)
def test_parse_iso_date_invalid(raw):
    with pytest.raises(InvalidDate) as excinfo:
        parse_iso_date(raw, "buyDate")

    assert "buyDate" in excinfo.value.details
    assert excinfo.value.status_code == 400


def test_holding_period_buy_only_ok(clock):
    validate_holding_period(dt.date(2025, 7, 18), None, clock)


def test_holding_period_today_is_not_future(clock):
    validate_holding_period(dt.date(2025, 7, 20), dt.date(2025, 7, 20), clock)


def test_holding_period_same_day_sale_ok(clock):
    validate_holding_period(dt.date(2025, 7, 18), dt.date(2025, 7, 18), clock)


def test_holding_period_future_buy(clock):
    with pytest.raises(InvalidDate, match="buyDate 2025-07-21 is in the future"):
        validate_holding_period(dt.date(2025, 7, 21), None, clock)


def test_holding_period_future_sell(clock):
    with pytest.raises(InvalidDate, match="sellDate .* is in the future"):
        validate_holding_period(dt.date(2025, 7, 18), dt.date(2025, 8, 1), clock)


def test_holding_period_sell_before_buy(clock):
    with pytest.raises(InvalidDate, match="before buyDate"):
        validate_holding_period(dt.date(2025, 7, 18), dt.date(2025, 7, 17), clock)


def test_holding_period_uses_utc_date():
    """A clock in another timezone is compared on its UTC date."""
    tz_plus_ten = timezone(timedelta(hours=10))
    # 2025-07-21 05:00 at +10 is still 2025-07-20 in UTC
    clock = FrozenClock(datetime(2025, 7, 21, 5, 0, tzinfo=tz_plus_ten))

    with pytest.raises(InvalidDate):
        validate_holding_period(dt.date(2025, 7, 21), None, clock)
