"""
Auction Registry - id -> Auction mapping plus the id counter.

The registry is a plain in-memory store. Mutual exclusion and persistence
belong to the AuctionHouse, which owns the registry and writes registry
changes together with bid ledger changes.
"""

from typing import Dict, Iterator, Optional

from sealbid.core.auction.models import Auction, SENTINEL_AUCTION_ID


class AuctionRegistry:
    """
    Durable-by-owner mapping of auction id to Auction.

    Attributes:
        auctions: id -> Auction
        last_auction_id: Highest id handed out so far
    """

    def __init__(self):
        self.auctions: Dict[int, Auction] = {}
        self.last_auction_id: int = SENTINEL_AUCTION_ID

    def get(self, auction_id: int) -> Optional[Auction]:
        return self.auctions.get(auction_id)

    def put(self, auction: Auction) -> None:
        """Insert or replace the stored value for auction.auction_id."""
        self.auctions[auction.auction_id] = auction
        if auction.auction_id > self.last_auction_id:
            self.last_auction_id = auction.auction_id

    def allocate_id(self) -> int:
        """Increment the counter and return the new id."""
        self.last_auction_id += 1
        return self.last_auction_id

    def __contains__(self, auction_id: int) -> bool:
        return auction_id in self.auctions

    def __len__(self) -> int:
        return len(self.auctions)

    def __iter__(self) -> Iterator[Auction]:
        return iter(sorted(self.auctions.values(), key=lambda a: a.auction_id))
