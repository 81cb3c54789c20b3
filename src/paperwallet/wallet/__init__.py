"""Wallet package.

Public API:
- WalletLedger: cash + average-cost positions with buy/sell/valuation.
- Stores: MemoryStore, JsonFileStore, SQLiteStore, build_store.
- Errors: InsufficientFunds, InsufficientPosition, InvalidOrder.
"""

from .errors import LedgerError, InsufficientFunds, InsufficientPosition, InvalidOrder
from .ledger import WalletLedger
from .store import WalletStore, MemoryStore, JsonFileStore, SQLiteStore, build_store

__all__ = [
    "WalletLedger",
    "LedgerError",
    "InsufficientFunds",
    "InsufficientPosition",
    "InvalidOrder",
    "WalletStore",
    "MemoryStore",
    "JsonFileStore",
    "SQLiteStore",
    "build_store",
]
