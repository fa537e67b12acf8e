#!/usr/bin/env python3
"""
Answer a what-if backtest request from the command line.

**Conceptual**: "If I had bought 1000 EUR of AAPL on 2025-03-31 and sold on
2025-07-18, reinvesting dividends, what would it be worth?" This script takes
that question in request-path form, runs it against the configured data
providers, and prints the JSON response record.

**Usage**:
    # Quantity, buy only
    python actions/run_what_if_backtest.py /10/AAPL/on/2025-07-18

    # Value in EUR, buy and sell, with dividend reinvestment
    python actions/run_what_if_backtest.py \\
        /1000EUR/of/AAPL/on/2025-03-31/and-sold-on/2025-07-18/with-drip

    # Crypto
    python actions/run_what_if_backtest.py /500USD/of/BTC/on/2024-01-02 --type crypto

**Configuration** (.env or environment):
    ALPHAVANTAGE_API_KEY        required unless HINDSIGHT_STOCK_PROVIDER=yfinance
    HINDSIGHT_STOCK_PROVIDER    alphavantage (default) or yfinance
    HINDSIGHT_DRIP_PRICING      buy_close (default) or ex_date_close
    HINDSIGHT_LOG_LEVEL         INFO (default)

**Exit codes**:
    - 0: Success (result record printed)
    - 1: Client error (bad amount, type, date or path; error record printed)
    - 2: Upstream or configuration error
"""

import argparse
import json
import sys
from pathlib import Path

# Add project root to Python path so we can import src modules
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from src.config.settings import get_settings
from src.orchestration.request_paths import handle_request_path
from src.orchestration.wiring import build_orchestrator
from src.utils.logging_setup import configure_logging


def exit_code_for(status_code: int) -> int:
    """Map a response status code to the script's exit code."""
    if status_code < 400:
        return 0
    if status_code < 500:
        return 1
    return 2


def main(argv=None) -> int:
    """
    Main entry point.

    **Workflow**:
      1. Parse command-line arguments
      2. Load settings from environment and configure logging
      3. Wire the orchestrator (data providers per settings)
      4. Run the request path and print the response record as JSON

    Returns:
        Exit code (see module docstring).
    """
    parser = argparse.ArgumentParser(
        description="Run a what-if backtest given a request path.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "path",
        help="Request path, e.g. /1000EUR/of/AAPL/on/2025-03-31/and-sold-on/2025-07-18",
    )
    parser.add_argument(
        "--type",
        dest="asset_type",
        default=None,
        help="Asset type: stock (default) or crypto.",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Override HINDSIGHT_LOG_LEVEL (DEBUG, INFO, WARNING, ...).",
    )

    args = parser.parse_args(argv)

    # Load settings
    try:
        settings = get_settings()
        configure_logging(args.log_level or settings.backtest.log_level)
        orchestrator = build_orchestrator(settings)
    except ValueError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2

    query = {"type": args.asset_type} if args.asset_type else None
    status_code, record = handle_request_path(orchestrator, args.path, query)

    print(json.dumps(record, indent=2))
    return exit_code_for(status_code)


if __name__ == "__main__":
    sys.exit(main())
