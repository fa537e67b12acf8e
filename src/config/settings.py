"""
Configuration settings for hindsight.

**Conceptual**: This module provides strongly-typed configuration objects that
load from environment variables (via .env files). All settings are validated
at construction, so a bad value fails at startup rather than in the middle of
a request.

**Why centralized config?**
  - Single source of truth for vendor URLs, API keys, timeouts and defaults.
  - Easy to test (build Settings(...) directly instead of reading the environment).
  - Secrets management (API keys loaded from .env, never hardcoded).

Configuration is a value: it is built once (Settings.from_env()) and passed
into the adapters and the orchestrator. Nothing below reads the environment
after that.

This module uses python-dotenv to load .env files and dataclasses for type safety.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

# Try to load .env file if present (dev/local environments)
try:
    from dotenv import load_dotenv
    # Load .env from project root
    env_path = Path(__file__).parent.parent.parent / ".env"
    load_dotenv(dotenv_path=env_path)
except ImportError:
    # python-dotenv not installed; assume environment variables are set externally
    pass


STOCK_PROVIDERS = ("alphavantage", "yfinance")
DRIP_PRICING_MODES = ("buy_close", "ex_date_close")

_TRUE_VALUES = ("true", "1", "yes")


def _env_int(name: str, default: str) -> int:
    raw = os.getenv(name, default)
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got: {raw}") from None


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in _TRUE_VALUES


def _check_timeout(name: str, value: int) -> None:
    if value <= 0:
        raise ValueError(f"{name} must be positive, got: {value}")


@dataclass(frozen=True)
class AlphaVantageSettings:
    """
    Configuration for the Alpha Vantage data provider.

    **Conceptual**: Alpha Vantage serves daily stock closes (TIME_SERIES_DAILY)
    and dividend history (DIVIDENDS) over a REST API keyed by an API token.

    **Rate limiting**: the free tier is strict (25 calls/day, 5/minute). A
    throttled call comes back as HTTP 200 with a "Note"/"Information" payload;
    the provider surfaces it as a transient upstream error.

    Attributes:
        api_key: Alpha Vantage API token. REQUIRED - raises ValueError if empty.
        base_url: Query endpoint (default: https://www.alphavantage.co/query).
        function: Price series function (default: TIME_SERIES_DAILY).
        outputsize: "compact" (last 100 days) or "full" (all available).
                   Default "full" - purchase dates can be years back.
        timeout_seconds: HTTP request timeout in seconds (default 30).
    """
    api_key: str
    base_url: str = "https://www.alphavantage.co/query"
    function: str = "TIME_SERIES_DAILY"
    outputsize: str = "full"
    timeout_seconds: int = 30

    def __post_init__(self):
        """Validate settings after initialization."""
        if not self.api_key:
            raise ValueError(
                "ALPHAVANTAGE_API_KEY is required but not set. "
                "Please set it in your .env file or environment variables. "
                "Get a free API key at https://www.alphavantage.co/support/#api-key"
            )
        if self.outputsize not in ("compact", "full"):
            raise ValueError(
                f"ALPHAVANTAGE_OUTPUTSIZE must be 'compact' or 'full', got: {self.outputsize}"
            )
        _check_timeout("ALPHAVANTAGE_TIMEOUT_SECONDS", self.timeout_seconds)

    @classmethod
    def from_env(cls) -> "AlphaVantageSettings":
        """
        Load Alpha Vantage settings from environment variables.

        **Environment variables**:
          - ALPHAVANTAGE_API_KEY (required): Your Alpha Vantage API token.
          - ALPHAVANTAGE_BASE_URL (optional): defaults to the public endpoint.
          - ALPHAVANTAGE_FUNCTION (optional): defaults to TIME_SERIES_DAILY.
          - ALPHAVANTAGE_OUTPUTSIZE (optional): "compact" or "full" (default).
          - ALPHAVANTAGE_TIMEOUT_SECONDS (optional): defaults to 30.

        Raises:
            ValueError: If ALPHAVANTAGE_API_KEY is missing or a value is malformed.
        """
        return cls(
            api_key=os.getenv("ALPHAVANTAGE_API_KEY", ""),
            base_url=os.getenv("ALPHAVANTAGE_BASE_URL", "https://www.alphavantage.co/query"),
            function=os.getenv("ALPHAVANTAGE_FUNCTION", "TIME_SERIES_DAILY"),
            outputsize=os.getenv("ALPHAVANTAGE_OUTPUTSIZE", "full"),
            timeout_seconds=_env_int("ALPHAVANTAGE_TIMEOUT_SECONDS", "30"),
        )


@dataclass(frozen=True)
class YFinanceSettings:
    """
    Configuration for the Yahoo Finance (yfinance) data provider.

    No API key: yfinance talks to Yahoo's public endpoints.

    Attributes:
        auto_adjust: Return split/dividend-adjusted closes (default: False).
                    Left off so closes match the raw exchange close, which is
                    what a what-if purchase would actually have paid.
        timeout_seconds: Request timeout passed to yfinance (default 30).
    """
    auto_adjust: bool = False
    timeout_seconds: int = 30

    def __post_init__(self):
        _check_timeout("YFINANCE_TIMEOUT_SECONDS", self.timeout_seconds)

    @classmethod
    def from_env(cls) -> "YFinanceSettings":
        """Load from YFINANCE_AUTO_ADJUST and YFINANCE_TIMEOUT_SECONDS (both optional)."""
        return cls(
            auto_adjust=_env_bool("YFINANCE_AUTO_ADJUST", "false"),
            timeout_seconds=_env_int("YFINANCE_TIMEOUT_SECONDS", "30"),
        )


@dataclass(frozen=True)
class FrankfurterSettings:
    """
    Configuration for the Frankfurter FX-rate API (ECB reference rates).

    Attributes:
        base_url: API root (default: https://api.frankfurter.app).
        timeout_seconds: HTTP request timeout in seconds (default 30).
    """
    base_url: str = "https://api.frankfurter.app"
    timeout_seconds: int = 30

    def __post_init__(self):
        if not self.base_url:
            raise ValueError("FRANKFURTER_BASE_URL must not be empty")
        _check_timeout("FRANKFURTER_TIMEOUT_SECONDS", self.timeout_seconds)

    @classmethod
    def from_env(cls) -> "FrankfurterSettings":
        return cls(
            base_url=os.getenv("FRANKFURTER_BASE_URL", "https://api.frankfurter.app"),
            timeout_seconds=_env_int("FRANKFURTER_TIMEOUT_SECONDS", "30"),
        )


@dataclass(frozen=True)
class CoinGeckoSettings:
    """
    Configuration for the CoinGecko crypto price API.

    Attributes:
        base_url: API root (default: https://api.coingecko.com/api/v3).
        api_key: Optional demo/pro key, sent as the x-cg-demo-api-key header.
        vs_currency: Quote currency for historical prices (default "usd").
        timeout_seconds: HTTP request timeout in seconds (default 30).
    """
    base_url: str = "https://api.coingecko.com/api/v3"
    api_key: Optional[str] = None
    vs_currency: str = "usd"
    timeout_seconds: int = 30

    def __post_init__(self):
        if not self.vs_currency:
            raise ValueError("COINGECKO_VS_CURRENCY must not be empty")
        _check_timeout("COINGECKO_TIMEOUT_SECONDS", self.timeout_seconds)

    @classmethod
    def from_env(cls) -> "CoinGeckoSettings":
        return cls(
            base_url=os.getenv("COINGECKO_BASE_URL", "https://api.coingecko.com/api/v3"),
            api_key=os.getenv("COINGECKO_API_KEY") or None,
            vs_currency=os.getenv("COINGECKO_VS_CURRENCY", "usd").lower(),
            timeout_seconds=_env_int("COINGECKO_TIMEOUT_SECONDS", "30"),
        )


@dataclass(frozen=True)
class BacktestSettings:
    """
    Behaviour of the backtest core itself.

    Attributes:
        stock_provider: Which adapter prices stocks and supplies dividends:
                        "alphavantage" (default) or "yfinance".
        stock_currency: Native currency of stock prices (default "USD").
        crypto_currency: Native currency of crypto prices (default "USD").
                         Must agree with CoinGeckoSettings.vs_currency.
        drip_pricing: "buy_close" (default) reinvests every dividend at the
                      purchase-date close; "ex_date_close" fetches the close
                      on each ex-date instead.
        log_level: Level passed to configure_logging (default "INFO").
    """
    stock_provider: str = "alphavantage"
    stock_currency: str = "USD"
    crypto_currency: str = "USD"
    drip_pricing: str = "buy_close"
    log_level: str = "INFO"

    def __post_init__(self):
        if self.stock_provider not in STOCK_PROVIDERS:
            raise ValueError(
                f"HINDSIGHT_STOCK_PROVIDER must be one of {STOCK_PROVIDERS}, "
                f"got: {self.stock_provider}"
            )
        if self.drip_pricing not in DRIP_PRICING_MODES:
            raise ValueError(
                f"HINDSIGHT_DRIP_PRICING must be one of {DRIP_PRICING_MODES}, "
                f"got: {self.drip_pricing}"
            )
        for name, code in (
            ("HINDSIGHT_STOCK_CURRENCY", self.stock_currency),
            ("HINDSIGHT_CRYPTO_CURRENCY", self.crypto_currency),
        ):
            if len(code) != 3 or not code.isalpha() or not code.isupper():
                raise ValueError(f"{name} must be a 3-letter ISO code, got: {code}")

    @classmethod
    def from_env(cls) -> "BacktestSettings":
        """
        Load from HINDSIGHT_* environment variables (all optional).

        **Environment variables**:
          - HINDSIGHT_STOCK_PROVIDER: "alphavantage" or "yfinance".
          - HINDSIGHT_STOCK_CURRENCY / HINDSIGHT_CRYPTO_CURRENCY: ISO codes.
          - HINDSIGHT_DRIP_PRICING: "buy_close" or "ex_date_close".
          - HINDSIGHT_LOG_LEVEL: logging level name.
        """
        return cls(
            stock_provider=os.getenv("HINDSIGHT_STOCK_PROVIDER", "alphavantage").strip().lower(),
            stock_currency=os.getenv("HINDSIGHT_STOCK_CURRENCY", "USD").strip().upper(),
            crypto_currency=os.getenv("HINDSIGHT_CRYPTO_CURRENCY", "USD").strip().upper(),
            drip_pricing=os.getenv("HINDSIGHT_DRIP_PRICING", "buy_close").strip().lower(),
            log_level=os.getenv("HINDSIGHT_LOG_LEVEL", "INFO").strip().upper(),
        )


@dataclass(frozen=True)
class Settings:
    """
    Global settings for hindsight.

    Aggregates every subsystem's settings behind one object, so the entry
    point loads the environment once and hands the result to
    build_orchestrator().

    **Usage pattern**:
      ```python
      from src.config.settings import Settings

      settings = Settings.from_env()
      settings.backtest.stock_provider  # "alphavantage"
      ```

    Attributes:
        alphavantage: Alpha Vantage settings. None when ALPHAVANTAGE_API_KEY
                     is not configured (optional unless required).
        yfinance: Yahoo Finance settings. Always available (no API key).
        frankfurter: FX-rate API settings. Always available (no API key).
        coingecko: Crypto price API settings. Always available (key optional).
        backtest: Core behaviour settings.
    """
    alphavantage: Optional[AlphaVantageSettings] = None
    yfinance: YFinanceSettings = field(default_factory=YFinanceSettings)
    frankfurter: FrankfurterSettings = field(default_factory=FrankfurterSettings)
    coingecko: CoinGeckoSettings = field(default_factory=CoinGeckoSettings)
    backtest: BacktestSettings = field(default_factory=BacktestSettings)

    @classmethod
    def from_env(cls, require_alphavantage: bool = False) -> "Settings":
        """
        Load global settings from environment variables.

        **Design decision**: Alpha Vantage is the only provider that needs a
        key, so it is the only optional subsystem. It becomes required when
        require_alphavantage=True, or implicitly when
        HINDSIGHT_STOCK_PROVIDER=alphavantage (the default) - the stock
        provider must be usable.

        Args:
            require_alphavantage: If True, raise error if Alpha Vantage settings
                                is missing regardless of the stock provider.

        Returns:
            Settings object with all subsystem settings loaded from environment.

        Raises:
            ValueError: If a required subsystem is missing or any value is invalid.
        """
        backtest = BacktestSettings.from_env()
        require_alphavantage = require_alphavantage or backtest.stock_provider == "alphavantage"

        alphavantage_settings = None
        try:
            alphavantage_settings = AlphaVantageSettings.from_env()
        except ValueError as e:
            if require_alphavantage:
                raise ValueError(
                    f"Alpha Vantage settings are required but could not be loaded: {e}"
                ) from e
            # Otherwise, Alpha Vantage is optional - continue without it

        return cls(
            alphavantage=alphavantage_settings,
            yfinance=YFinanceSettings.from_env(),
            frankfurter=FrankfurterSettings.from_env(),
            coingecko=CoinGeckoSettings.from_env(),
            backtest=backtest,
        )


# Convenience singleton; tests build Settings(...) directly or call reset_settings()
_default_settings: Optional[Settings] = None


def get_settings(require_alphavantage: bool = False) -> Settings:
    """
    Get the global settings singleton.

    Settings are loaded from environment on first call, then cached for reuse.

    Args:
        require_alphavantage: If True, raise error if Alpha Vantage is not configured.

    Returns:
        Global Settings singleton.

    Raises:
        ValueError: If loading fails, or Alpha Vantage is required but missing.
    """
    global _default_settings

    if _default_settings is None:
        _default_settings = Settings.from_env(require_alphavantage=require_alphavantage)

    # If already loaded but require_alphavantage is True, check that Alpha Vantage is present
    if require_alphavantage and _default_settings.alphavantage is None:
        raise ValueError(
            "Alpha Vantage settings are required but not configured. "
            "Please set ALPHAVANTAGE_API_KEY in your .env file. "
            "Get a free API key at https://www.alphavantage.co/support/#api-key"
        )

    return _default_settings


def reset_settings():
    """
    Reset the global settings singleton (for testing).

    Clears the cached settings so the next get_settings() call re-reads the
    environment.
    """
    global _default_settings
    _default_settings = None
