"""
Tests for src/backtesting/amount_parser.py

The amount token decides quantity vs value mode, so these tests pin down the
number scan, the currency scan, and how the `/of/` marker interacts with them.
"""

import pytest

from src.backtesting.amount_parser import (
    find_currency_token,
    parse_amount,
    resolve_currency_code,
)
from src.backtesting.errors import InvalidAmount
from src.data.schemas import ParsedAmount


@pytest.mark.parametrize(
    "raw, magnitude, token",
    [
        ("1000", 1000.0, ""),
        ("1000EUR", 1000.0, "EUR"),
        ("$1000", 1000.0, "$"),
        ("€1000", 1000.0, "€"),
        ("£1000", 1000.0, "£"),
        ("1000.50", 1000.5, ""),
        ("1000,50", 1000.0, ""),
        ("EUR1000", 1000.0, "EUR"),
        (".5", 0.5, ""),
    ],
)
def test_parse_amount_examples(raw, magnitude, token):
    """Representative tokens from real requests."""
    parsed = parse_amount(raw)

    assert parsed.magnitude == magnitude
    assert parsed.currency_token == token
    assert parsed.is_monetary_value == bool(token)


def test_bare_number_is_quantity():
    assert parse_amount("10") == ParsedAmount(magnitude=10.0, currency_token="", is_monetary_value=False)


def test_value_marker_makes_bare_number_monetary():
    """The /of/ form marks a bare number as money (in the asset's currency)."""
    parsed = parse_amount("1000", value_marker=True)

    assert parsed.is_monetary_value is True
    assert parsed.currency_token == ""


def test_currency_token_wins_regardless_of_marker():
    assert parse_amount("1000EUR", value_marker=False).is_monetary_value is True
    assert parse_amount("1000EUR", value_marker=True).currency_token == "EUR"


@pytest.mark.parametrize("raw", ["0", "-5", "0.0", "EUR", "", "abc", "-0.01USD", "9" * 400, "9" * 400 + "EUR"])
def test_invalid_amounts_raise(raw):
    with pytest.raises(InvalidAmount) as excinfo:
        parse_amount(raw)

    assert excinfo.value.error == "Invalid amount format"
    assert excinfo.value.status_code == 400


def test_none_amount_raises():
    with pytest.raises(InvalidAmount):
        parse_amount(None)


def test_leftmost_currency_token_is_chosen():
    """Scan is left to right; a symbol before a code wins."""
    assert find_currency_token("$100EUR") == "$"
    assert find_currency_token("100EUR$") == "EUR"


def test_lowercase_letters_are_not_a_currency_code():
    assert find_currency_token("100eur") == ""
    assert parse_amount("100eur").is_monetary_value is False


def test_two_letter_run_is_not_a_currency_code():
    assert find_currency_token("100EU") == ""


@pytest.mark.parametrize(
    "token, code",
    [("EUR", "EUR"), ("$", "USD"), ("€", "EUR"), ("£", "GBP"), ("¥", "JPY"), ("₹", "INR")],
)
def test_resolve_currency_code(token, code):
    assert resolve_currency_code(token) == code


def test_resolve_unknown_symbol_raises():
    """A currency symbol we cannot map to an ISO code is a client error."""
    with pytest.raises(InvalidAmount, match="unsupported currency symbol"):
        resolve_currency_code("₿")
