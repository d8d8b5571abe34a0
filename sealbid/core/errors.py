"""
Outcome taxonomy for auction operations.

Every rejected operation reports exactly one AuctionError and leaves state
untouched. Errors are values, never raised.
"""

from enum import IntEnum


class AuctionError(IntEnum):
    """Reason an auction operation was rejected."""
    NOT_FOUND = 1        # Unknown auction or missing bid record
    INACTIVE = 2         # Auction closed, or window not yet open
    ENDED = 3            # Closing bound passed; bidding over
    NOT_ENDED = 4        # Closing bound not reached / auction still active
    BID_TOO_LOW = 5      # Bid not above leader, or nothing left to refund
    UNAUTHORIZED = 6     # Caller lacks the required role
    INVALID_RANGE = 7    # Malformed auction window
    TRANSFER_FAILED = 8  # Transfer service rejected a fund movement
    INVALID_INPUT = 9    # Malformed argument

    @property
    def wire_name(self) -> str:
        """CamelCase name used on the operation surface (e.g. BidTooLow)."""
        return "".join(part.capitalize() for part in self.name.split("_"))

    @property
    def message(self) -> str:
        return _MESSAGES[self]

    @classmethod
    def from_wire_name(cls, name: str) -> "AuctionError":
        for error in cls:
            if error.wire_name == name:
                return error
        raise ValueError(f"Unknown auction error: {name}")


_MESSAGES = {
    AuctionError.NOT_FOUND: "auction or bid record does not exist",
    AuctionError.INACTIVE: "auction is not active or has not opened yet",
    AuctionError.ENDED: "auction closing height has passed",
    AuctionError.NOT_ENDED: "auction has not ended yet",
    AuctionError.BID_TOO_LOW: "amount does not exceed the current bid, or nothing to refund",
    AuctionError.UNAUTHORIZED: "caller is not allowed to perform this operation",
    AuctionError.INVALID_RANGE: "auction window is malformed",
    AuctionError.TRANSFER_FAILED: "transfer service rejected a fund movement",
    AuctionError.INVALID_INPUT: "malformed operation argument",
}


__all__ = ["AuctionError"]
