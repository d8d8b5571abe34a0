"""
Auction House - the escrow state machine.

Operations
----------
create(item, start, end)      -> (auction_id, error)
bid(auction_id, amount)       -> (ok, error)
finalize(auction_id)          -> (ok, error)
cancel_auction(auction_id)    -> (ok, error)
claim_refund(auction_id)      -> (ok, error)

Every operation runs as one unit under the house lock:

1. Validate arguments (INVALID_INPUT)
2. Read the current records and check preconditions, in a fixed order
3. Build the replacement records and the list of transfers
4. Run the transfers through a journal; on any rejection reverse the
   completed ones and report TRANSFER_FAILED
5. Persist the replacement records in one storage transaction
6. Swap the in-memory records

Nothing is visible to other callers until step 6, so a rejected call has
no observable effect.

Escrow
------
Bid funds are pulled into the house's own escrow account. A displaced
leader is refunded in the same call that displaces them, so while an
auction is active its escrow is exactly its highest bid. Finalize forwards
that amount to the seller. Settled bid records are kept with amount 0.
"""

import threading
from typing import TYPE_CHECKING, List, Optional, Tuple

from sealbid.core.auction.bid_ledger import BidLedger
from sealbid.core.auction.models import (
    Auction,
    BidRecord,
    SENTINEL_AUCTION_ID,
    create_sentinel_auction,
)
from sealbid.core.auction.registry import AuctionRegistry
from sealbid.core.config import HouseConfig
from sealbid.core.errors import AuctionError
from sealbid.core.ledger.balances import TransferService
from sealbid.core.ledger.clock import Clock
from sealbid.utils.logger import get_audit_logger, get_logger
from sealbid.utils.validation import (
    validate_amount,
    validate_auction_id,
    validate_height,
    validate_identity,
    validate_item,
)

if TYPE_CHECKING:
    from sealbid.core.storage.storage_manager import StorageManager

logger = get_logger("house")
audit = get_audit_logger()


Transfer = Tuple[int, str, str]  # (amount, sender, recipient)


class EscrowIntegrityError(RuntimeError):
    """A compensating transfer failed; escrow no longer matches the records."""


class _TransferJournal:
    """Applies transfers in order and can reverse the ones that succeeded."""

    def __init__(self, service: TransferService):
        self.service = service
        self.completed: List[Transfer] = []

    def apply(self, transfers: List[Transfer]) -> bool:
        for amount, sender, recipient in transfers:
            if not self.service.transfer(amount, sender, recipient):
                logger.warning(f"Transfer of {amount} {sender} -> {recipient} rejected")
                return False
            self.completed.append((amount, sender, recipient))
            audit.info(f"transfer {amount} {sender} -> {recipient}")
        return True

    def rollback(self) -> None:
        while self.completed:
            amount, sender, recipient = self.completed.pop()
            if not self.service.transfer(amount, recipient, sender):
                logger.critical(f"Could not reverse transfer of {amount} {sender} -> {recipient}")
                raise EscrowIntegrityError(
                    f"Failed to reverse transfer of {amount} from {sender} to {recipient}"
                )
            audit.info(f"reverse {amount} {recipient} -> {sender}")
            logger.warning(f"Reversed transfer of {amount} {sender} -> {recipient}")


class AuctionHouse:
    """
    Auction Registry + Bid Ledger behind one lock, with escrow settlement.

    Attributes:
        config: House configuration (owner, escrow account, bounds)
        registry: Auction records and the id counter
        bids: Bid records
        transfers: External transfer service
        clock: External logical clock
    """

    def __init__(
        self,
        transfers: TransferService,
        clock: Clock,
        config: Optional[HouseConfig] = None,
        storage_manager: Optional["StorageManager"] = None,
    ):
        """
        Initialize the house.

        Args:
            transfers: Moves value between identities
            clock: Supplies the current height
            config: House configuration; defaults when None
            storage_manager: Persistence manager. None = in-memory only.
        """
        self.config = config or HouseConfig()
        self.transfers = transfers
        self.clock = clock
        self.registry = AuctionRegistry()
        self.bids = BidLedger()
        self.storage_manager = storage_manager
        self._lock = threading.RLock()

        if storage_manager:
            self._load_from_storage()

        if SENTINEL_AUCTION_ID not in self.registry:
            sentinel = create_sentinel_auction(self.owner)
            if self.storage_manager:
                self.storage_manager.persist_house_update([sentinel], [], self.registry.last_auction_id)
            self.registry.put(sentinel)

        logger.info(f"AuctionHouse ready: owner={self.owner}, escrow={self.escrow_account}, "
                    f"last_auction_id={self.registry.last_auction_id}")

    @property
    def owner(self) -> str:
        return self.config.owner

    @property
    def escrow_account(self) -> str:
        return self.config.escrow_account

    # =========================================================================
    # Operations
    # =========================================================================

    def create(
        self,
        caller: str,
        item: str,
        start: int,
        end: int,
    ) -> Tuple[Optional[int], Optional[AuctionError]]:
        """
        List an item; the caller becomes the seller.

        Args:
            caller: Seller identity
            item: Bounded description
            start: First bidding height (not in the past)
            end: First height after bidding closes (> start)

        Returns:
            (auction_id, error) - auction_id is None on failure
        """
        for valid, err in (
            validate_identity(caller),
            validate_item(item, self.config.max_item_length),
            validate_height(start, "start"),
            validate_height(end, "end"),
        ):
            if not valid:
                return None, self._reject("create", None, AuctionError.INVALID_INPUT, err)

        if end <= start:
            return None, self._reject("create", None, AuctionError.INVALID_RANGE, f"end {end} <= start {start}")

        with self._lock:
            now = self.clock.current_height()
            if start < now:
                return None, self._reject("create", None, AuctionError.INVALID_RANGE,
                                          f"start {start} before current height {now}")

            auction_id = self.registry.allocate_id()
            auction = Auction(
                auction_id=auction_id,
                seller=caller,
                item=item,
                start=start,
                end=end,
                highest_bidder=caller,
            )
            self._commit([], [auction], [], last_auction_id=auction_id)

        logger.info(f"Auction {auction_id} created by {caller}: window [{start}, {end})")
        return auction_id, None

    def bid(
        self,
        caller: str,
        auction_id: int,
        amount: int,
    ) -> Tuple[bool, Optional[AuctionError]]:
        """
        Escrow a bid above the current leader and refund the displaced leader.

        The caller's record is replaced by the new amount; the displaced
        leader's record becomes a tombstone.

        Returns:
            (success, error)
        """
        for valid, err in (
            validate_identity(caller),
            validate_auction_id(auction_id),
            validate_amount(amount, self.config.max_amount),
        ):
            if not valid:
                return False, self._reject("bid", None, AuctionError.INVALID_INPUT, err)

        with self._lock:
            auction = self.registry.get(auction_id)
            if auction is None:
                return False, self._reject("bid", auction_id, AuctionError.NOT_FOUND)
            if not auction.active:
                return False, self._reject("bid", auction_id, AuctionError.INACTIVE)

            now = self.clock.current_height()
            if now < auction.start:
                return False, self._reject("bid", auction_id, AuctionError.INACTIVE,
                                           f"opens at {auction.start}, now {now}")
            if now >= auction.end:
                return False, self._reject("bid", auction_id, AuctionError.ENDED,
                                           f"closed at {auction.end}, now {now}")
            if amount <= auction.highest_bid:
                return False, self._reject("bid", auction_id, AuctionError.BID_TOO_LOW,
                                           f"{amount} <= {auction.highest_bid}")

            transfers: List[Transfer] = [(amount, caller, self.escrow_account)]
            records: List[BidRecord] = []

            previous = auction.highest_bidder
            if auction.has_bids:
                transfers.append((auction.highest_bid, self.escrow_account, previous))
                records.append(self._record(auction_id, previous).tombstone())
            records.append(BidRecord(auction_id=auction_id, bidder=caller, amount=amount))

            error = self._commit(transfers, [auction.with_leader(caller, amount)], records)
            if error:
                return False, self._reject("bid", auction_id, error)

        if auction.has_bids:
            logger.debug(f"Auction {auction_id}: {caller} bid {amount}, refunded {auction.highest_bid} to {previous}")
        else:
            logger.debug(f"Auction {auction_id}: {caller} opened bidding at {amount}")
        return True, None

    def finalize(self, caller: str, auction_id: int) -> Tuple[bool, Optional[AuctionError]]:
        """
        Close an ended auction and forward the winning bid to the seller.

        Allowed for the seller and the owner.

        Returns:
            (success, error)
        """
        for valid, err in (validate_identity(caller), validate_auction_id(auction_id)):
            if not valid:
                return False, self._reject("finalize", None, AuctionError.INVALID_INPUT, err)

        with self._lock:
            auction = self.registry.get(auction_id)
            if auction is None:
                return False, self._reject("finalize", auction_id, AuctionError.NOT_FOUND)
            if not auction.active:
                return False, self._reject("finalize", auction_id, AuctionError.INACTIVE)

            now = self.clock.current_height()
            if now < auction.end:
                return False, self._reject("finalize", auction_id, AuctionError.NOT_ENDED,
                                           f"ends at {auction.end}, now {now}")
            if caller != auction.seller and caller != self.owner:
                return False, self._reject("finalize", auction_id, AuctionError.UNAUTHORIZED,
                                           f"{caller} is neither seller nor owner")

            transfers: List[Transfer] = []
            records: List[BidRecord] = []
            if auction.has_bids:
                transfers.append((auction.highest_bid, self.escrow_account, auction.seller))
                records.append(self._record(auction_id, auction.highest_bidder).tombstone())

            error = self._commit(transfers, [auction.closed()], records)
            if error:
                return False, self._reject("finalize", auction_id, error)

        if auction.has_bids:
            logger.info(f"Auction {auction_id} finalized: {auction.highest_bidder} won, "
                        f"{auction.highest_bid} paid to {auction.seller}")
        else:
            logger.info(f"Auction {auction_id} finalized without bids")
        return True, None

    def cancel_auction(self, caller: str, auction_id: int) -> Tuple[bool, Optional[AuctionError]]:
        """
        Withdraw an auction that has not received a bid. Seller only.

        Returns:
            (success, error)
        """
        for valid, err in (validate_identity(caller), validate_auction_id(auction_id)):
            if not valid:
                return False, self._reject("cancel", None, AuctionError.INVALID_INPUT, err)

        with self._lock:
            auction = self.registry.get(auction_id)
            if auction is None:
                return False, self._reject("cancel", auction_id, AuctionError.NOT_FOUND)
            if not auction.active:
                return False, self._reject("cancel", auction_id, AuctionError.INACTIVE)
            if caller != auction.seller:
                return False, self._reject("cancel", auction_id, AuctionError.UNAUTHORIZED,
                                           f"{caller} is not the seller")
            if auction.highest_bid != 0:
                return False, self._reject("cancel", auction_id, AuctionError.UNAUTHORIZED,
                                           "bids already placed")

            self._commit([], [auction.closed()], [])

        logger.info(f"Auction {auction_id} cancelled by {caller}")
        return True, None

    def claim_refund(self, caller: str, auction_id: int) -> Tuple[bool, Optional[AuctionError]]:
        """
        Return a closed auction's remaining escrow to a non-winning bidder.

        Displaced leaders are refunded when outbid, so this only pays out
        records that still hold funds after the auction closed.

        Returns:
            (success, error)
        """
        for valid, err in (validate_identity(caller), validate_auction_id(auction_id)):
            if not valid:
                return False, self._reject("refund", None, AuctionError.INVALID_INPUT, err)

        with self._lock:
            auction = self.registry.get(auction_id)
            record = self.bids.get(auction_id, caller)
            if auction is None or record is None:
                return False, self._reject("refund", auction_id, AuctionError.NOT_FOUND,
                                           f"no bid record for {caller}")
            if auction.active:
                return False, self._reject("refund", auction_id, AuctionError.NOT_ENDED)
            # Winner check first: the winner's record is already a tombstone
            if caller == auction.highest_bidder:
                return False, self._reject("refund", auction_id, AuctionError.UNAUTHORIZED,
                                           f"{caller} won the auction")
            if record.settled:
                return False, self._reject("refund", auction_id, AuctionError.BID_TOO_LOW,
                                           "nothing left to refund")

            transfers = [(record.amount, self.escrow_account, caller)]
            error = self._commit(transfers, [], [record.tombstone()])
            if error:
                return False, self._reject("refund", auction_id, error)

        logger.info(f"Auction {auction_id}: refunded {record.amount} to {caller}")
        return True, None

    # =========================================================================
    # Read Accessors
    # =========================================================================

    def get_auction(self, auction_id: int) -> Optional[Auction]:
        """Auction by id, or None."""
        with self._lock:
            return self.registry.get(auction_id)

    def get_last_auction_id(self) -> int:
        with self._lock:
            return self.registry.last_auction_id

    def get_bid(self, auction_id: int, bidder: str) -> Optional[BidRecord]:
        """Bid record for (auction_id, bidder), or None if the bidder never bid."""
        with self._lock:
            return self.bids.get(auction_id, bidder)

    def outstanding_escrow(self) -> int:
        """Total the house owes bidders; equals the escrow account balance."""
        with self._lock:
            return self.bids.total_escrowed()

    # =========================================================================
    # Internals
    # =========================================================================

    def _record(self, auction_id: int, bidder: str) -> BidRecord:
        record = self.bids.get(auction_id, bidder)
        if record is None:
            return BidRecord(auction_id=auction_id, bidder=bidder, amount=0)
        return record

    def _commit(
        self,
        transfers: List[Transfer],
        auctions: List[Auction],
        records: List[BidRecord],
        last_auction_id: Optional[int] = None,
    ) -> Optional[AuctionError]:
        """
        Run transfers, then persist and swap in the new records.

        Must be called with the house lock held.

        Returns:
            None on success, TRANSFER_FAILED if a transfer was rejected
        """
        journal = _TransferJournal(self.transfers)
        try:
            if not journal.apply(transfers):
                journal.rollback()
                return AuctionError.TRANSFER_FAILED
            if self.storage_manager:
                self.storage_manager.persist_house_update(auctions, records, last_auction_id)
        except EscrowIntegrityError:
            raise
        except Exception:
            logger.exception("Commit failed; reversing transfers")
            journal.rollback()
            raise

        for auction in auctions:
            self.registry.put(auction)
        for record in records:
            self.bids.set(record)
        return None

    def _reject(
        self,
        operation: str,
        auction_id: Optional[int],
        error: AuctionError,
        detail: str = "",
    ) -> AuctionError:
        target = f"auction {auction_id}" if auction_id is not None else "request"
        logger.debug(f"Rejected {operation} on {target}: {error.wire_name}"
                     + (f" ({detail})" if detail else ""))
        return error

    def _load_from_storage(self) -> None:
        """Load registry, bid ledger and counter from storage."""
        auctions, records, last_auction_id = self.storage_manager.load_house_state()
        for auction in auctions:
            self.registry.put(auction)
        for record in records:
            self.bids.set(record)
        if last_auction_id is not None:
            self.registry.last_auction_id = max(self.registry.last_auction_id, last_auction_id)

        logger.info(f"Loaded house: {len(self.registry)} auctions, {len(self.bids)} bid records")

    # =========================================================================
    # Utility
    # =========================================================================

    def __repr__(self) -> str:
        return (f"AuctionHouse(auctions={len(self.registry)}, bids={len(self.bids)}, "
                f"last_auction_id={self.registry.last_auction_id})")

    def stats(self) -> dict:
        """Get house statistics (the sentinel is not counted)."""
        with self._lock:
            live = [a for a in self.registry if a.auction_id != SENTINEL_AUCTION_ID]
            return {
                "auctions": len(live),
                "active_auctions": sum(1 for a in live if a.active),
                "closed_auctions": sum(1 for a in live if not a.active),
                "bid_records": len(self.bids),
                "outstanding_escrow": self.bids.total_escrowed(),
                "last_auction_id": self.registry.last_auction_id,
            }
