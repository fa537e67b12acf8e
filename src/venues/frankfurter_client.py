"""
HTTP client for the Frankfurter FX-rate API.

**Conceptual**: Frankfurter publishes the European Central Bank reference
rates, free and without an API key. One call answers "what was 1 X worth in
Y on this date?":

    GET {base_url}/2025-07-18?from=EUR&to=USD
    → {"amount": 1.0, "base": "EUR", "date": "2025-07-18", "rates": {"USD": 1.1635}}

**Date semantics**: on weekends and ECB holidays Frankfurter answers with the
most recent earlier fixing (and reports that date in "date"). Dates before
the series start (1999-01-04) return 404.

This is a thin client: it wraps a requests.Session, maps status codes to
exceptions, and supports the `with` statement.
"""

import datetime as dt
import logging
from typing import Any, Dict

import requests

from src.backtesting.errors import RateUnavailable
from src.config.settings import FrankfurterSettings


logger = logging.getLogger(__name__)


class FrankfurterClientError(Exception):
    """Base exception for Frankfurter API client errors."""
    pass


class FrankfurterNotFoundError(FrankfurterClientError):
    """
    Raised on 404: unsupported currency, or a date outside the ECB series.
    """
    pass


class FrankfurterRateLimitError(FrankfurterClientError):
    """Raised on 429 Too Many Requests."""
    pass


class FrankfurterServerError(FrankfurterClientError):
    """Raised when the API returns a 5xx status."""
    pass


class FrankfurterClient:
    """
    Thin HTTP client for Frankfurter, implementing the FXRateSource protocol.

    **Example usage**:
        >>> with FrankfurterClient(FrankfurterSettings()) as client:
        ...     client.fx_rate("EUR", "USD", dt.date(2025, 7, 18))
        1.0815
    """

    def __init__(self, settings: FrankfurterSettings):
        self.settings = settings
        self.session = requests.Session()
        self.session.headers.update({
            "Accept": "application/json",
            "User-Agent": "hindsight/1.0",
        })

    def get_rates(self, base: str, symbols: str, on: dt.date) -> Dict[str, Any]:
        """
        Fetch the raw rate payload for `base` → `symbols` on `on`.

        Args:
            base: Source currency code (e.g. "EUR").
            symbols: Target currency code(s), comma separated (e.g. "USD").
            on: Fixing date.

        Returns:
            Parsed JSON payload.

        Raises:
            FrankfurterNotFoundError: On 404 (unknown currency or date).
            FrankfurterRateLimitError: On 429.
            FrankfurterServerError: On 5xx.
            FrankfurterClientError: On other errors, timeouts and bad JSON.
        """
        url = f"{self.settings.base_url.rstrip('/')}/{on.isoformat()}"
        params = {"from": base, "to": symbols}
        logger.debug("Frankfurter %s %s->%s", on, base, symbols)

        try:
            response = self.session.get(url, params=params, timeout=self.settings.timeout_seconds)
        except requests.Timeout as e:
            raise FrankfurterClientError(
                f"Request to Frankfurter timed out after {self.settings.timeout_seconds}s"
            ) from e
        except requests.RequestException as e:
            raise FrankfurterClientError(f"HTTP request to Frankfurter failed: {e}") from e

        if response.status_code == 404:
            raise FrankfurterNotFoundError(
                f"No rate for {base}->{symbols} on {on}. Response: {response.text}"
            )
        if response.status_code == 429:
            raise FrankfurterRateLimitError(
                f"Frankfurter rate limit exceeded. Response: {response.text}"
            )
        if response.status_code >= 500:
            raise FrankfurterServerError(
                f"Frankfurter server error (status {response.status_code}). "
                f"Response: {response.text}"
            )
        if response.status_code >= 400:
            raise FrankfurterClientError(
                f"Client error (status {response.status_code}). Response: {response.text}"
            )

        try:
            return response.json()
        except ValueError as e:
            raise FrankfurterClientError(
                f"Failed to parse JSON response: {e}. Response: {response.text[:500]}"
            ) from e

    def fx_rate(self, from_currency: str, to_currency: str, on: dt.date) -> float:
        """
        Rate such that 1 `from_currency` = rate `to_currency` (FXRateSource protocol).

        Raises:
            RateUnavailable: On any client error or when the payload lacks
                             the target currency. Rate limits and 5xx are
                             marked transient.
        """
        try:
            payload = self.get_rates(from_currency, to_currency, on)
        except (FrankfurterRateLimitError, FrankfurterServerError) as e:
            raise RateUnavailable(str(e), transient=True) from e
        except FrankfurterClientError as e:
            raise RateUnavailable(str(e)) from e

        rates = payload.get("rates") or {}
        if to_currency not in rates:
            raise RateUnavailable(
                f"Frankfurter response for {from_currency}->{to_currency} on {on} "
                f"has no '{to_currency}' rate. Keys: {list(rates.keys())}"
            )

        try:
            return float(rates[to_currency])
        except (TypeError, ValueError) as e:
            raise RateUnavailable(
                f"Frankfurter returned a non-numeric rate: {rates[to_currency]!r}"
            ) from e

    def close(self):
        """Close the HTTP session and release resources."""
        self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False  # Don't suppress exceptions
