"""
URL-style request paths for what-if backtests.

**Conceptual**: A request is phrased as a readable path, e.g.

    /10/AAPL/on/2025-07-18
    /1000EUR/of/AAPL/on/2025-03-31/and-sold-on/2025-07-18
    /1000EUR/of/AAPL/on/2025-03-31/and-sold-on/2025-07-18/with-drip?type=stock

Six templates are recognized:

    /{amount}/{ticker}/on/{buyDate}
    /{amount}/{ticker}/on/{buyDate}/and-sold-on/{sellDate}
    /{amount}/{ticker}/on/{buyDate}/and-sold-on/{sellDate}/with-drip
    /{amount}/of/{ticker}/on/{buyDate}                      (+ the same two suffixes)

The `/of/` form reads "1000 of AAPL" and marks the amount as a monetary
value even without a currency token. The optional `type` query parameter
selects the asset class and defaults to "stock".

This module is transport-agnostic: any web framework (or the command line)
can hand it a path and a query mapping and send back the (status, record)
pair from handle_request_path().
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple
from urllib.parse import parse_qsl, unquote

from src.backtesting.engine import BacktestOrchestrator
from src.backtesting.errors import BacktestError, RouteNotFound
from src.data.schemas import STOCK, BacktestRequest


logger = logging.getLogger(__name__)

ON = "on"
OF = "of"
SOLD_ON = "and-sold-on"
WITH_DRIP = "with-drip"


def _match_dates(tail: List[str]) -> Optional[Tuple[str, Optional[str], bool]]:
    """Match `on/{buy}[/and-sold-on/{sell}[/with-drip]]`, returning (buy, sell, drip)."""
    if len(tail) == 2 and tail[0] == ON:
        return tail[1], None, False
    if len(tail) == 4 and tail[0] == ON and tail[2] == SOLD_ON:
        return tail[1], tail[3], False
    if len(tail) == 5 and tail[0] == ON and tail[2] == SOLD_ON and tail[4] == WITH_DRIP:
        return tail[1], tail[3], True
    return None


def parse_request_path(path: str, query: Optional[Mapping[str, str]] = None) -> BacktestRequest:
    """
    Turn a request path into a BacktestRequest.

    Only the route shape is checked here; amount, ticker and dates are passed
    through as strings and validated by the orchestrator.

    Args:
        path: Request path, optionally with a "?type=..." query string.
        query: Extra query parameters (override those in `path`).

    Returns:
        BacktestRequest for the matched template.

    Raises:
        RouteNotFound: If the path matches none of the templates.

    Example:
        >>> parse_request_path("/1000EUR/of/AAPL/on/2025-03-31")
        BacktestRequest(amount='1000EUR', ticker='AAPL', buy_date='2025-03-31', sell_date=None, drip=False, asset_type='stock', value_marker=True)
    """
    raw_path, _, raw_query = path.partition("?")
    params: Dict[str, str] = dict(parse_qsl(raw_query))
    params.update(query or {})

    segments = [unquote(s) for s in raw_path.strip("/").split("/")]
    if any(not s for s in segments):
        raise RouteNotFound(f"no route for '{raw_path}'")

    asset_type = params.get("type", STOCK)

    # The static "of" segment wins over a ticker literally named "of"
    if len(segments) >= 3 and segments[1] == OF:
        matched = _match_dates(segments[3:])
        if matched is not None:
            buy, sell, drip = matched
            return BacktestRequest(
                amount=segments[0],
                ticker=segments[2],
                buy_date=buy,
                sell_date=sell,
                drip=drip,
                asset_type=asset_type,
                value_marker=True,
            )

    if len(segments) >= 2:
        matched = _match_dates(segments[2:])
        if matched is not None:
            buy, sell, drip = matched
            return BacktestRequest(
                amount=segments[0],
                ticker=segments[1],
                buy_date=buy,
                sell_date=sell,
                drip=drip,
                asset_type=asset_type,
            )

    raise RouteNotFound(f"no route for '{raw_path}'")


def handle_request_path(
    orchestrator: BacktestOrchestrator,
    path: str,
    query: Optional[Mapping[str, str]] = None,
) -> Tuple[int, Dict[str, Any]]:
    """
    Answer a request path end to end.

    Returns:
        (status_code, record): 200 with the result record, or the error's
        status code with its {error, details} record. Errors outside the
        BacktestError taxonomy propagate.
    """
    try:
        request = parse_request_path(path, query)
        result = orchestrator.run(request)
    except BacktestError as e:
        logger.warning("%s -> %d %s: %s", path, e.status_code, e.error, e.details)
        return e.status_code, e.to_response()

    logger.info("%s -> 200 %s", path, result.kind)
    return 200, result.to_response()
