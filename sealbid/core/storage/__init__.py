"""
Persistent Storage Module.

Provides SQLite-backed persistence for:
- Auction Registry and Bid Ledger
- Reference ledger balances
- Chain Metadata (clock height)
"""

from sealbid.core.storage.sqlite_adapter import SQLiteAdapter
from sealbid.core.storage.storage_manager import StorageManager

__all__ = ["SQLiteAdapter", "StorageManager"]
