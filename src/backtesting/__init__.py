"""
What-if backtest core: amount parsing, FX conversion, DRIP simulation and
the orchestrator that turns a request into one of six result records.

Pure computation over injected price, FX and dividend sources; no module in
this package performs I/O.
"""
