"""
Shared record types: requests, parsed amounts, prices, FX rates and dividends.
"""
