"""
Bid Ledger - (auction_id, bidder) -> escrowed amount.

There is no delete: settling a record stores a zero-amount tombstone so
"never bid" (no record) stays distinguishable from "already settled".
"""

from typing import Dict, List, Optional, Tuple

from sealbid.core.auction.models import BidRecord


class BidLedger:
    """In-memory bid records keyed by (auction_id, bidder)."""

    def __init__(self):
        self.records: Dict[Tuple[int, str], BidRecord] = {}

    def get(self, auction_id: int, bidder: str) -> Optional[BidRecord]:
        return self.records.get((auction_id, bidder))

    def set(self, record: BidRecord) -> None:
        """Upsert a record."""
        if record.amount < 0:
            raise ValueError("Bid amount cannot be negative")
        self.records[record.key] = record

    def records_for(self, auction_id: int) -> List[BidRecord]:
        return [r for (aid, _), r in self.records.items() if aid == auction_id]

    def escrowed_for(self, auction_id: int) -> int:
        """Sum of live (non-tombstone) amounts in one auction."""
        return sum(r.amount for r in self.records_for(auction_id))

    def total_escrowed(self) -> int:
        return sum(r.amount for r in self.records.values())

    def __len__(self) -> int:
        return len(self.records)
