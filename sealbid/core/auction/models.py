"""
Auction and bid record values.

Records are frozen: every change produces a new value through
dataclasses.replace, and the registry/bid ledger swap the stored value.
"""

from dataclasses import dataclass, replace
from typing import Any, Dict


# Id 0 is a permanently inactive placeholder; live auctions start at 1
SENTINEL_AUCTION_ID = 0


@dataclass(frozen=True)
class Auction:
    """
    A listed item and its current leader.

    Attributes:
        auction_id: Unique identifier from the registry counter
        seller: Identity that created the auction
        item: Opaque bounded description
        start: First height at which bids are accepted
        end: First height at which bids are rejected (end > start)
        highest_bidder: Current leader; the seller until the first bid
        highest_bid: Amount escrowed for the leader; 0 until the first bid
        active: False once finalized or cancelled
    """
    auction_id: int
    seller: str
    item: str
    start: int
    end: int
    highest_bidder: str
    highest_bid: int = 0
    active: bool = True

    @property
    def has_bids(self) -> bool:
        return self.highest_bid > 0

    def is_open_at(self, height: int) -> bool:
        """Whether bids are accepted at this height."""
        return self.active and self.start <= height < self.end

    def with_leader(self, bidder: str, amount: int) -> "Auction":
        return replace(self, highest_bidder=bidder, highest_bid=amount)

    def closed(self) -> "Auction":
        return replace(self, active=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "auction_id": self.auction_id,
            "seller": self.seller,
            "item": self.item,
            "start": self.start,
            "end": self.end,
            "highest_bidder": self.highest_bidder,
            "highest_bid": self.highest_bid,
            "active": self.active,
        }


@dataclass(frozen=True)
class BidRecord:
    """
    Escrow held for one bidder in one auction.

    An amount of 0 is a tombstone: the bidder took part but has nothing
    left in escrow (refunded, or paid out to the seller).
    """
    auction_id: int
    bidder: str
    amount: int

    @property
    def key(self):
        return (self.auction_id, self.bidder)

    @property
    def settled(self) -> bool:
        return self.amount == 0

    def tombstone(self) -> "BidRecord":
        return replace(self, amount=0)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "auction_id": self.auction_id,
            "bidder": self.bidder,
            "amount": self.amount,
        }


def create_sentinel_auction(owner: str) -> Auction:
    """The inactive placeholder stored at id 0 on a fresh house."""
    return Auction(
        auction_id=SENTINEL_AUCTION_ID,
        seller=owner,
        item="",
        start=0,
        end=1,
        highest_bidder=owner,
        highest_bid=0,
        active=False,
    )


__all__ = [
    "Auction",
    "BidRecord",
    "SENTINEL_AUCTION_ID",
    "create_sentinel_auction",
]
