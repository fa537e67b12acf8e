"""
Request routing and dependency wiring.

Maps URL-style request paths onto backtest requests, and settings onto the
concrete data providers the orchestrator runs against.
"""
