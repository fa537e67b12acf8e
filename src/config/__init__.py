"""
Configuration loading and validation.

Provides strongly typed settings objects for vendor endpoints, API keys,
timeouts and backtest behaviour, validated upfront at startup.
"""
