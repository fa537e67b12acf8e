"""
Data-source protocols and concrete adapters.

Defines the price, FX-rate and dividend source protocols, plus adapters for
Alpha Vantage, Yahoo Finance, CoinGecko and Frankfurter.
"""
