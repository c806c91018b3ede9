"""
Wallet Banking

A small banking backend with an account ledger (deposits, withdrawals,
transfers, loans, closures) and a client state store that applies optimistic
updates and reconciles them against the server.
"""

__version__ = "1.0.0"
