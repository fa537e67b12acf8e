"""
Build a BacktestOrchestrator from configuration.

The core never picks its own collaborators; this is the one place that maps
Settings onto concrete adapters:

    stock prices + dividends  →  Alpha Vantage or yfinance (HINDSIGHT_STOCK_PROVIDER)
    crypto prices             →  CoinGecko
    FX rates                  →  Frankfurter
"""

import logging
from typing import Optional

from src.backtesting.engine import BacktestOrchestrator
from src.config.settings import Settings
from src.data.schemas import CRYPTO, STOCK
from src.utils.time import Clock
from src.venues.alphavantage_data_provider import AlphaVantageDataProvider
from src.venues.coingecko_data_provider import CoinGeckoDataProvider
from src.venues.frankfurter_client import FrankfurterClient
from src.venues.yfinance_data_provider import YFinanceDataProvider


logger = logging.getLogger(__name__)


def build_orchestrator(settings: Settings, clock: Optional[Clock] = None) -> BacktestOrchestrator:
    """
    Wire adapters into an orchestrator according to `settings`.

    Args:
        settings: Loaded settings (Settings.from_env() or hand-built in tests).
        clock: Optional clock override (tests).

    Returns:
        Ready-to-use BacktestOrchestrator.

    Raises:
        ValueError: If the selected stock provider is not configured, or the
                    crypto currency disagrees with CoinGecko's quote currency.
    """
    backtest = settings.backtest

    if backtest.stock_provider == "alphavantage":
        if settings.alphavantage is None:
            raise ValueError(
                "HINDSIGHT_STOCK_PROVIDER=alphavantage but ALPHAVANTAGE_API_KEY is not set. "
                "Set the key or use HINDSIGHT_STOCK_PROVIDER=yfinance."
            )
        stock_source = AlphaVantageDataProvider(settings.alphavantage)
    else:
        stock_source = YFinanceDataProvider(settings.yfinance)

    if settings.coingecko.vs_currency.upper() != backtest.crypto_currency:
        raise ValueError(
            f"HINDSIGHT_CRYPTO_CURRENCY ({backtest.crypto_currency}) must match "
            f"COINGECKO_VS_CURRENCY ({settings.coingecko.vs_currency})"
        )

    logger.debug(
        "Wiring orchestrator: stocks via %s, crypto via CoinGecko, FX via Frankfurter",
        backtest.stock_provider,
    )

    return BacktestOrchestrator(
        price_sources={
            STOCK: stock_source,
            CRYPTO: CoinGeckoDataProvider(settings.coingecko),
        },
        fx_source=FrankfurterClient(settings.frankfurter),
        dividend_source=stock_source,
        settings=backtest,
        clock=clock,
    )
