"""
Error taxonomy for what-if backtest requests.

**Conceptual**: Every failure a backtest request can hit falls into one of two
families:
  - Client-input errors (InvalidRequest): the request itself is malformed
    (bad amount, unsupported asset type, unparseable date, unknown route).
    These are detected before any data is fetched.
  - Upstream errors (UpstreamError): a collaborator (price source, FX source,
    dividend source) could not answer, or answered with data that breaks an
    integrity rule (e.g. a non-positive close price).

Both families derive from BacktestError, which carries a short `error` title,
a `details` string with the causing message, and the HTTP-style status code a
transport layer should use. `to_response()` renders the error record
`{"error": ..., "details": ...}`.

**Error scope**: an error only ever affects the request that raised it. There
are no retries and no partial results - the first failure ends the request.
"""

from typing import Dict, Optional


class BacktestError(Exception):
    """
    Base class for every error raised while answering a backtest request.

    Attributes:
        error: Short human-readable title (e.g. "Invalid amount format").
        details: The underlying cause (upstream message, offending input).
        status_code: Status a transport layer should answer with.
    """

    status_code = 500
    default_error = "Backtest failed"

    def __init__(self, details: str = "", error: Optional[str] = None):
        self.error = error or self.default_error
        self.details = details
        super().__init__(f"{self.error}: {details}" if details else self.error)

    def to_response(self) -> Dict[str, str]:
        """Render the flat error record returned to callers."""
        return {"error": self.error, "details": self.details}


class InvalidRequest(BacktestError):
    """Client-input error, detected before any collaborator is consulted."""

    status_code = 400
    default_error = "Invalid request"


class InvalidAmount(InvalidRequest):
    """Amount token has no parseable number, or the number is not positive."""

    default_error = "Invalid amount format"


class InvalidType(InvalidRequest):
    """Asset type is neither 'stock' nor 'crypto'."""

    default_error = "Invalid type parameter: must be 'stock' or 'crypto'"


class InvalidDate(InvalidRequest):
    """Date is not ISO YYYY-MM-DD, or the holding period is impossible."""

    default_error = "Invalid date"


class RouteNotFound(InvalidRequest):
    """Request path matches none of the supported templates."""

    status_code = 404
    default_error = "Not found"


class UpstreamError(BacktestError):
    """
    A collaborator failed to answer (or answered with unusable data).

    **Transient vs permanent**: the response record does not distinguish a
    rate-limited upstream from a permanently missing date - both render the
    same `{error, details}` shape. The `transient` flag lets in-process
    callers tell them apart without parsing `details`.
    """

    status_code = 502
    default_error = "Upstream data source failed"

    def __init__(self, details: str = "", error: Optional[str] = None, transient: bool = False):
        super().__init__(details, error)
        self.transient = transient


class PriceUnavailable(UpstreamError):
    """No close price for the ticker on the requested date."""

    default_error = "Failed to fetch stock price"


class RateUnavailable(UpstreamError):
    """No FX rate for the currency pair on the requested date."""

    default_error = "Failed to fetch FX rate"


class DividendsUnavailable(UpstreamError):
    """Dividend schedule could not be fetched."""

    default_error = "Failed to fetch dividends"


class NonPositivePriceError(UpstreamError, ZeroDivisionError):
    """
    A price source returned a close price <= 0.

    Share arithmetic divides by the close price, so this is both a
    data-integrity failure of the upstream source and a division-by-zero.
    """

    default_error = "Invalid price data"
