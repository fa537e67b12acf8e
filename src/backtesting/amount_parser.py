"""
Amount parsing: turn a free-form amount token into a ParsedAmount.

**Conceptual**: Users type amounts the way they think about them - "10"
(ten shares), "1000EUR", "$250", "€1000". The parser answers two questions
about such a token:
  1. What is the number? (first signed decimal in the token)
  2. Is there a currency? (first currency symbol or 3-letter upper-case code)

If there is a currency, the amount is a monetary value (value mode); if not,
it is a raw unit count (quantity mode). A request path may additionally carry
a coarse "value" marker (the `/of/` URL form). Currency-token presence is
authoritative; the marker only matters when no currency was found, in which
case the bare number is a value in the priced asset's own currency.

**Deliberately narrow number grammar**:
  - Pattern: optional sign, digits, optional decimal point with digits.
  - A comma is NOT a decimal separator and there is no thousands-separator
    support: "1000,50" parses to 1000, "$1,000" parses to 1.
  - Zero and negative amounts are rejected (InvalidAmount), never treated
    as a zero-value investment.

The two scans (number, currency) are independent: "EUR1000", "1000EUR" and
"1000 EUR" all parse the same way.
"""

import math
import re
import unicodedata

from src.backtesting.errors import InvalidAmount
from src.data.schemas import ParsedAmount


_NUMBER_PATTERN = re.compile(r"[-+]?[0-9]*\.?[0-9]+")
_CURRENCY_CODE_PATTERN = re.compile(r"[A-Z]{3}")

# Symbols we can price; anything else in Unicode category Sc is rejected
CURRENCY_SYMBOLS = {
    "$": "USD",
    "€": "EUR",
    "£": "GBP",
    "¥": "JPY",
    "₹": "INR",
    "₩": "KRW",
    "₽": "RUB",
    "₺": "TRY",
    "₪": "ILS",
    "₱": "PHP",
    "₫": "VND",
    "₦": "NGN",
    "฿": "THB",
    "₴": "UAH",
}


def find_currency_token(raw: str) -> str:
    """
    Return the first currency indicator in `raw`, or "" if there is none.

    A currency indicator is either a single Unicode currency-symbol character
    (category "Sc": $, €, £, ¥, ...) or a run of three upper-case ASCII letters.
    When both occur, whichever starts first wins.

    Example:
        >>> find_currency_token("1000EUR")
        'EUR'
        >>> find_currency_token("€1000")
        '€'
        >>> find_currency_token("1000")
        ''
    """
    for index, char in enumerate(raw):
        if unicodedata.category(char) == "Sc":
            return char
        match = _CURRENCY_CODE_PATTERN.match(raw, index)
        if match:
            return match.group(0)
    return ""


def parse_amount(raw: str, value_marker: bool = False) -> ParsedAmount:
    """
    Parse an amount token.

    Args:
        raw: Amount token as typed by the user ("10", "1000EUR", "$250.5").
        value_marker: True when the request used the value template (`/of/`).
                      Marks a bare number as monetary; ignored when a
                      currency token is present.

    Returns:
        ParsedAmount with a strictly positive magnitude.

    Raises:
        InvalidAmount: If no number can be extracted, it does not parse, or it
                       is zero or negative.

    Example:
        >>> parse_amount("1000EUR")
        ParsedAmount(magnitude=1000.0, currency_token='EUR', is_monetary_value=True)
        >>> parse_amount("10")
        ParsedAmount(magnitude=10.0, currency_token='', is_monetary_value=False)
        >>> parse_amount("1000", value_marker=True).is_monetary_value
        True
    """
    if raw is None:
        raise InvalidAmount("amount is missing")

    number_match = _NUMBER_PATTERN.search(raw)
    if number_match is None:
        raise InvalidAmount(f"no numeric value found in amount '{raw}'")

    try:
        magnitude = float(number_match.group(0))
    except ValueError as e:
        raise InvalidAmount(f"cannot parse '{number_match.group(0)}' as a number: {e}") from e

    if not math.isfinite(magnitude):
        raise InvalidAmount(f"amount '{number_match.group(0)[:20]}...' is out of range")

    if magnitude <= 0:
        raise InvalidAmount(f"amount must be positive, got {magnitude:g}")

    currency_token = find_currency_token(raw)
    is_monetary_value = bool(currency_token) or value_marker

    return ParsedAmount(
        magnitude=magnitude,
        currency_token=currency_token,
        is_monetary_value=is_monetary_value,
    )


def resolve_currency_code(token: str) -> str:
    """
    Map a currency token to the ISO code used for FX lookups.

    Three-letter codes pass through unchanged; known symbols are translated
    ("$" -> "USD", "€" -> "EUR", ...).

    Raises:
        InvalidAmount: If the token is a symbol we have no code for.
    """
    if _CURRENCY_CODE_PATTERN.fullmatch(token):
        return token
    try:
        return CURRENCY_SYMBOLS[token]
    except KeyError:
        raise InvalidAmount(f"unsupported currency symbol '{token}'") from None
