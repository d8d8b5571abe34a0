import sqlite3
import threading
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from sealbid.utils.logger import get_logger

logger = get_logger("storage.sqlite")


class SQLiteAdapter:
    """
    SQLite backend for persistent storage.

    Provides:
    1. Auction registry rows and the id counter.
    2. Bid ledger rows (tombstones included, never deleted).
    3. Account balances for the reference transfer service.
    4. Chain metadata (logical clock height).

    Amounts and heights are unsigned 128-bit values, wider than SQLite
    INTEGER, so they are stored as decimal TEXT.
    """

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self._conn_local = threading.local()

        if not db_path.parent.exists():
            db_path.parent.mkdir(parents=True, exist_ok=True)

        self._init_schema()

    def _get_conn(self) -> sqlite3.Connection:
        """Get or create connection for current thread."""
        if not hasattr(self._conn_local, "conn"):
            self._conn_local.conn = sqlite3.connect(
                self.db_path,
                timeout=30.0,
                check_same_thread=False
            )
            self._conn_local.conn.row_factory = sqlite3.Row
            self._conn_local.conn.execute("PRAGMA journal_mode=WAL;")
            self._conn_local.conn.execute("PRAGMA synchronous=NORMAL;")
        return self._conn_local.conn

    def _init_schema(self):
        """Initialize database schema."""
        conn = self._get_conn()
        with conn:
            # 1. Auction Registry
            conn.execute("""
                CREATE TABLE IF NOT EXISTS auctions (
                    auction_id INTEGER PRIMARY KEY,
                    seller TEXT NOT NULL,
                    item TEXT NOT NULL,
                    start_height TEXT NOT NULL,
                    end_height TEXT NOT NULL,
                    highest_bidder TEXT NOT NULL,
                    highest_bid TEXT NOT NULL,
                    active INTEGER NOT NULL
                )
            """)

            # 2. Bid Ledger
            conn.execute("""
                CREATE TABLE IF NOT EXISTS bids (
                    auction_id INTEGER NOT NULL,
                    bidder TEXT NOT NULL,
                    amount TEXT NOT NULL,
                    PRIMARY KEY (auction_id, bidder)
                )
            """)

            # 3. House scalars (last_auction_id)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS house_state (
                    key TEXT PRIMARY KEY,
                    value TEXT
                )
            """)

            # 4. Balances
            conn.execute("""
                CREATE TABLE IF NOT EXISTS balances (
                    account TEXT PRIMARY KEY,
                    amount TEXT NOT NULL,
                    frozen INTEGER NOT NULL DEFAULT 0
                )
            """)

            # 5. Chain metadata
            conn.execute("""
                CREATE TABLE IF NOT EXISTS chain_state (
                    key TEXT PRIMARY KEY,
                    value TEXT
                )
            """)

    def close(self):
        """Close the connection owned by the current thread."""
        conn = getattr(self._conn_local, "conn", None)
        if conn is not None:
            conn.close()
            del self._conn_local.conn

    # =========================================================================
    # Auction Registry / Bid Ledger
    # =========================================================================

    def get_all_auctions(self) -> List[sqlite3.Row]:
        conn = self._get_conn()
        cursor = conn.execute("SELECT * FROM auctions ORDER BY auction_id ASC")
        return list(cursor)

    def get_all_bids(self) -> List[sqlite3.Row]:
        conn = self._get_conn()
        cursor = conn.execute("SELECT auction_id, bidder, amount FROM bids")
        return list(cursor)

    def get_house_meta(self, key: str) -> Optional[str]:
        conn = self._get_conn()
        cursor = conn.execute("SELECT value FROM house_state WHERE key = ?", (key,))
        row = cursor.fetchone()
        return row['value'] if row else None

    def persist_house_update(
        self,
        auction_rows: Iterable[Tuple],
        bid_rows: Iterable[Tuple],
        meta: Dict[str, str],
    ):
        """
        Atomically write auction rows, bid rows and house scalars.

        Args:
            auction_rows: (auction_id, seller, item, start, end,
                highest_bidder, highest_bid, active) tuples
            bid_rows: (auction_id, bidder, amount) tuples
            meta: house_state key/value pairs
        """
        conn = self._get_conn()
        with conn:
            conn.executemany(
                "INSERT OR REPLACE INTO auctions (auction_id, seller, item, start_height, end_height, "
                "highest_bidder, highest_bid, active) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                list(auction_rows)
            )
            conn.executemany(
                "INSERT OR REPLACE INTO bids (auction_id, bidder, amount) VALUES (?, ?, ?)",
                list(bid_rows)
            )
            conn.executemany(
                "INSERT OR REPLACE INTO house_state (key, value) VALUES (?, ?)",
                list(meta.items())
            )

    # =========================================================================
    # Balances
    # =========================================================================

    def get_all_balances(self) -> List[sqlite3.Row]:
        conn = self._get_conn()
        cursor = conn.execute("SELECT account, amount, frozen FROM balances")
        return list(cursor)

    def persist_balances(self, rows: Iterable[Tuple[str, str, int]]):
        """Atomically upsert (account, amount, frozen) rows."""
        conn = self._get_conn()
        with conn:
            conn.executemany(
                "INSERT OR REPLACE INTO balances (account, amount, frozen) VALUES (?, ?, ?)",
                list(rows)
            )

    # =========================================================================
    # Chain State Operations
    # =========================================================================

    def set_chain_meta(self, key: str, value: str):
        conn = self._get_conn()
        with conn:
            conn.execute("INSERT OR REPLACE INTO chain_state (key, value) VALUES (?, ?)", (key, value))

    def get_chain_meta(self, key: str) -> Optional[str]:
        conn = self._get_conn()
        cursor = conn.execute("SELECT value FROM chain_state WHERE key = ?", (key,))
        row = cursor.fetchone()
        return row['value'] if row else None
