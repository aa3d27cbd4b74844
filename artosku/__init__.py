"""
ArtosKu - Ledger Package

The ledger reconciliation engine behind a personal-finance tracker:
wallets, transactions, and debt/receivable positions.

DESIGN PRINCIPLES:
1. Wallet balances always equal opening balance plus the transaction log
2. One polarity convention everywhere (the type tag is the cash-flow direction)
3. Multi-entry operations apply all-or-nothing, or fail loudly
4. Validate before mutating, never correct silently
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "ArtosKu Team"
