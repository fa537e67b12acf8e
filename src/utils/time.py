"""
Date parsing and clock abstractions for what-if backtests.

This module provides two things:
  1. Strict parsing of the ISO YYYY-MM-DD dates a request carries, raising
     InvalidDate (a client-input error) instead of a bare ValueError.
  2. A Clock protocol, so "is this date in the future?" can be answered
     deterministically in tests by injecting a FrozenClock instead of calling
     datetime.now() directly.

The key insight: a holding period is checked before any data is fetched.
A sale before the purchase, or a date that has not happened yet, can never
produce a price - rejecting it up front saves an upstream call and gives the
caller a clear message.
"""

import datetime as dt
import re
from datetime import datetime, timezone
from typing import Optional, Protocol

from src.backtesting.errors import InvalidDate

_ISO_DATE_PATTERN = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2}")


class Clock(Protocol):
    """
    Abstract time source protocol.

    **Conceptual**: A Clock is any object that can answer "what time is it
    right now?" Consumers accept a Clock (injected via constructor) and call
    clock.now(). In production, pass a RealClock; in tests, a FrozenClock.
    """

    def now(self) -> datetime:
        """Return the current time (timezone-aware, UTC)."""
        ...


class RealClock:
    """Clock that returns the actual current system time (UTC)."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FrozenClock:
    """
    Clock that always returns a fixed timestamp (for deterministic tests).

    **Usage**:
        clock = FrozenClock(datetime(2025, 7, 20, tzinfo=timezone.utc))
        clock.now()  # Always 2025-07-20T00:00:00+00:00
    """

    def __init__(self, fixed_now: datetime):
        """
        Args:
            fixed_now: The datetime to return on every call to now().
                       Should be timezone-aware (UTC recommended).
        """
        self._fixed_now = fixed_now

    def now(self) -> datetime:
        return self._fixed_now


def parse_iso_date(value: str, field_name: str = "date") -> dt.date:
    """
    Parse a strict ISO calendar date (YYYY-MM-DD).

    Args:
        value: Date string from the request.
        field_name: Name used in the error message ("buyDate", "sellDate").

    Returns:
        The parsed date.

    Raises:
        InvalidDate: If the value is missing or not a valid YYYY-MM-DD date.

    Example:
        >>> parse_iso_date("2025-07-18")
        datetime.date(2025, 7, 18)
    """
    if not value:
        raise InvalidDate(f"{field_name} is required (YYYY-MM-DD)")
    message = f"{field_name} '{value}' is not a valid date, expected YYYY-MM-DD"
    text = value.strip()

    # strptime alone accepts unpadded dates such as "2025-7-1"
    if not _ISO_DATE_PATTERN.fullmatch(text):
        raise InvalidDate(message)
    try:
        return datetime.strptime(text, "%Y-%m-%d").date()
    except ValueError:
        raise InvalidDate(message) from None


def validate_holding_period(
    buy_date: dt.date,
    sell_date: Optional[dt.date],
    clock: Clock,
) -> None:
    """
    Reject holding periods that can never be priced.

    **Rules**:
      - The purchase date must not be in the future (relative to `clock`).
      - The sale date, if any, must not be in the future either.
      - The sale date must not be before the purchase date. Selling on the
        purchase date is allowed (zero-length holding).

    Raises:
        InvalidDate: On any violation.
    """
    today = clock.now().astimezone(timezone.utc).date()

    if buy_date > today:
        raise InvalidDate(f"buyDate {buy_date.isoformat()} is in the future")

    if sell_date is None:
        return

    if sell_date > today:
        raise InvalidDate(f"sellDate {sell_date.isoformat()} is in the future")

    if sell_date < buy_date:
        raise InvalidDate(
            f"sellDate {sell_date.isoformat()} is before buyDate {buy_date.isoformat()}"
        )
