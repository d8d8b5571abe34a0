from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from sealbid.core.auction.models import Auction, BidRecord
from sealbid.core.storage.sqlite_adapter import SQLiteAdapter
from sealbid.utils.logger import get_logger

logger = get_logger("storage.manager")


class StorageManager:
    """
    Manages persistent storage for an auction house deployment.

    Coordinates data persistence using SQLite adapter.
    Handles:
    - Auction registry, bid ledger and the id counter (one transaction per commit)
    - Reference ledger balances
    - Logical clock height
    """

    def __init__(self, data_dir: Path, db_name: str = "sealbid.db"):
        self.data_dir = Path(data_dir)
        self.db_path = self.data_dir / db_name
        self.adapter = SQLiteAdapter(self.db_path)

        logger.info(f"StorageManager initialized at {self.db_path}")

    def close(self):
        self.adapter.close()

    # =========================================================================
    # Auction House State
    # =========================================================================

    def persist_house_update(
        self,
        auctions: Iterable[Auction],
        bids: Iterable[BidRecord],
        last_auction_id: Optional[int] = None,
    ):
        """Atomically persist changed auctions, bid records and the counter."""
        auction_rows = [
            (
                a.auction_id, a.seller, a.item, str(a.start), str(a.end),
                a.highest_bidder, str(a.highest_bid), int(a.active),
            )
            for a in auctions
        ]
        bid_rows = [(b.auction_id, b.bidder, str(b.amount)) for b in bids]
        meta = {}
        if last_auction_id is not None:
            meta["last_auction_id"] = str(last_auction_id)
        self.adapter.persist_house_update(auction_rows, bid_rows, meta)

    def load_house_state(self) -> Tuple[List[Auction], List[BidRecord], Optional[int]]:
        """
        Load full house state.

        Returns:
            (auctions, bids, last_auction_id); last_auction_id is None on a
            fresh store
        """
        auctions = [
            Auction(
                auction_id=row['auction_id'],
                seller=row['seller'],
                item=row['item'],
                start=int(row['start_height']),
                end=int(row['end_height']),
                highest_bidder=row['highest_bidder'],
                highest_bid=int(row['highest_bid']),
                active=bool(row['active']),
            )
            for row in self.adapter.get_all_auctions()
        ]
        bids = [
            BidRecord(auction_id=row['auction_id'], bidder=row['bidder'], amount=int(row['amount']))
            for row in self.adapter.get_all_bids()
        ]
        last = self.adapter.get_house_meta("last_auction_id")
        return auctions, bids, int(last) if last is not None else None

    # =========================================================================
    # Balances
    # =========================================================================

    def persist_balances(self, balances: Dict[str, int], frozen: Iterable[str] = ()):
        """Persist the given account balances in one transaction."""
        frozen = set(frozen)
        self.adapter.persist_balances(
            (account, str(amount), int(account in frozen))
            for account, amount in balances.items()
        )

    def load_balances(self) -> Tuple[Dict[str, int], List[str]]:
        """Returns (balances, frozen_accounts)."""
        balances = {}
        frozen = []
        for row in self.adapter.get_all_balances():
            balances[row['account']] = int(row['amount'])
            if row['frozen']:
                frozen.append(row['account'])
        return balances, frozen

    # =========================================================================
    # Clock
    # =========================================================================

    def save_clock_height(self, height: int):
        self.adapter.set_chain_meta("clock_height", str(height))

    def get_clock_height(self) -> Optional[int]:
        value = self.adapter.get_chain_meta("clock_height")
        return int(value) if value is not None else None

    # =========================================================================
    # Caller Nonces
    # =========================================================================

    def save_nonce(self, caller: str, nonce: int):
        self.adapter.set_chain_meta(f"nonce:{caller}", str(nonce))

    def get_nonce(self, caller: str) -> Optional[int]:
        value = self.adapter.get_chain_meta(f"nonce:{caller}")
        return int(value) if value is not None else None
