"""
Sparesti Ledger

Bank account ledger for the Sparesti personal-finance application:
per-account balances, an immutable transaction log, and atomic
two-leg transfers using Decimal amounts throughout.
"""

__version__ = "1.0.0"
