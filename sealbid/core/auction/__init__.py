"""
Sealbid Auction Module.

This module provides the escrowed auction system:
- Auction and bid record values
- Auction Registry and Bid Ledger stores
- The AuctionHouse state machine
- The pydantic-typed operation surface
"""

from sealbid.core.auction.models import (
    Auction,
    BidRecord,
    SENTINEL_AUCTION_ID,
    create_sentinel_auction,
)
from sealbid.core.auction.registry import AuctionRegistry
from sealbid.core.auction.bid_ledger import BidLedger
from sealbid.core.auction.house import AuctionHouse, EscrowIntegrityError
from sealbid.core.auction.surface import (
    OperationResult,
    OperationSurface,
    parse_call,
)

__all__ = [
    # Records
    "Auction",
    "BidRecord",
    "SENTINEL_AUCTION_ID",
    "create_sentinel_auction",
    # Stores
    "AuctionRegistry",
    "BidLedger",
    # State machine
    "AuctionHouse",
    "EscrowIntegrityError",
    # Entry surface
    "OperationResult",
    "OperationSurface",
    "parse_call",
]
