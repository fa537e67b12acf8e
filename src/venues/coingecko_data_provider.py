"""
CoinGecko crypto price provider.

**Conceptual**: Crypto assets have no exchange close, so the "close price" of
a coin on a date is CoinGecko's daily snapshot for that date (00:00 UTC):

    GET {base_url}/coins/bitcoin/history?date=18-07-2025&localization=false
    → {"id": "bitcoin", "market_data": {"current_price": {"usd": 117000.5, ...}}}

Note the DD-MM-YYYY date format. CoinGecko identifies coins by id
("bitcoin"), not by ticker ("BTC"); common tickers are mapped below and
anything else is passed through lower-cased, so "solana" works as a ticker too.

Crypto pays no dividends, so this provider is only ever a PriceSource.
"""

import datetime as dt
import logging
from typing import Any, Dict

import requests

from src.backtesting.errors import NonPositivePriceError, PriceUnavailable
from src.config.settings import CoinGeckoSettings


logger = logging.getLogger(__name__)

COIN_IDS: Dict[str, str] = {
    "BTC": "bitcoin",
    "ETH": "ethereum",
    "SOL": "solana",
    "XRP": "ripple",
    "ADA": "cardano",
    "DOGE": "dogecoin",
    "DOT": "polkadot",
    "LTC": "litecoin",
    "BNB": "binancecoin",
    "AVAX": "avalanche-2",
    "LINK": "chainlink",
    "MATIC": "matic-network",
    "TRX": "tron",
    "XLM": "stellar",
    "BCH": "bitcoin-cash",
}


def coin_id_for(ticker: str) -> str:
    """
    Map a ticker to a CoinGecko coin id.

    Example:
        >>> coin_id_for("btc")
        'bitcoin'
        >>> coin_id_for("Solana")
        'solana'
    """
    symbol = ticker.strip()
    return COIN_IDS.get(symbol.upper(), symbol.lower())


class CoinGeckoDataProvider:
    """
    PriceSource for crypto assets, backed by CoinGecko.

    **Example usage**:
        >>> with CoinGeckoDataProvider(CoinGeckoSettings()) as provider:
        ...     provider.close_price("BTC", dt.date(2025, 7, 18))
    """

    def __init__(self, settings: CoinGeckoSettings):
        self.settings = settings
        self.session = requests.Session()
        self.session.headers.update({
            "Accept": "application/json",
            "User-Agent": "hindsight/1.0",
        })
        if settings.api_key:
            self.session.headers["x-cg-demo-api-key"] = settings.api_key

    def get_history(self, coin_id: str, on: dt.date) -> Dict[str, Any]:
        """
        Fetch the raw daily snapshot of `coin_id` on `on`.

        Raises:
            PriceUnavailable: On network errors, non-2xx status codes (429 and
                              5xx marked transient), or bad JSON.
        """
        url = f"{self.settings.base_url.rstrip('/')}/coins/{coin_id}/history"
        params = {"date": on.strftime("%d-%m-%Y"), "localization": "false"}
        logger.debug("CoinGecko history %s %s", coin_id, params["date"])

        try:
            response = self.session.get(url, params=params, timeout=self.settings.timeout_seconds)
        except requests.RequestException as e:
            raise PriceUnavailable(f"HTTP request to CoinGecko failed: {e}") from e

        if response.status_code == 429 or response.status_code >= 500:
            raise PriceUnavailable(
                f"CoinGecko unavailable (status {response.status_code}). "
                f"Response: {response.text[:200]}",
                transient=True,
            )
        if response.status_code == 404:
            raise PriceUnavailable(f"Unknown CoinGecko coin id '{coin_id}'")
        if response.status_code >= 400:
            raise PriceUnavailable(
                f"CoinGecko client error (status {response.status_code}). "
                f"Response: {response.text[:200]}"
            )

        try:
            return response.json()
        except ValueError as e:
            raise PriceUnavailable(f"Failed to parse CoinGecko response: {e}") from e

    def close_price(self, ticker: str, on: dt.date) -> float:
        """
        Daily snapshot price of `ticker` on `on`, in the configured vs_currency.

        Raises:
            PriceUnavailable: If the coin has no market data for that date.
            NonPositivePriceError: If the snapshot price is not positive.
        """
        coin_id = coin_id_for(ticker)
        payload = self.get_history(coin_id, on)

        # Dates before a coin's listing come back 200 without market_data
        prices = (payload.get("market_data") or {}).get("current_price") or {}
        price = prices.get(self.settings.vs_currency)
        if price is None:
            raise PriceUnavailable(
                f"no {self.settings.vs_currency} price for {coin_id} on {on.isoformat()}"
            )
        price = float(price)
        if not price > 0:
            raise NonPositivePriceError(
                f"non-positive {self.settings.vs_currency} price {price} for {coin_id} on {on.isoformat()}"
            )
        return price

    def close(self):
        """Close the HTTP session and release resources."""
        self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
