"""
Balances - account ledger acting as the external transfer service.

The auction house only needs one primitive from its host ledger:

    transfer(amount, sender, recipient) -> bool

which either moves the full amount or changes nothing. BalanceLedger is an
in-process reference implementation with optional SQLite persistence, used
by the CLI, the demo and the tests. Hosts embedding the house elsewhere can
pass any object satisfying TransferService.

Accounts can be frozen by the host; a frozen account can neither send nor
receive, which is how a host-side rejection reaches the auction house.
"""

import threading
from typing import TYPE_CHECKING, Dict, Iterable, Optional, Protocol, Set, runtime_checkable

from sealbid.utils.logger import get_logger
from sealbid.utils.validation import MAX_UINT

if TYPE_CHECKING:
    from sealbid.core.storage.storage_manager import StorageManager

logger = get_logger("ledger")


@runtime_checkable
class TransferService(Protocol):
    """All-or-nothing value movement between identities."""

    def transfer(self, amount: int, sender: str, recipient: str) -> bool:
        ...


class BalanceLedger:
    """
    Account-based balances with atomic transfers.

    Attributes:
        balances: account -> balance
        frozen: accounts that currently reject transfers
    """

    def __init__(self, storage_manager: Optional["StorageManager"] = None):
        """
        Initialize the ledger.

        Args:
            storage_manager: Persistence manager. None = in-memory only.
        """
        self.balances: Dict[str, int] = {}
        self.frozen: Set[str] = set()
        self._lock = threading.RLock()

        self.storage_manager = storage_manager
        if storage_manager:
            self._load_from_storage()

    # =========================================================================
    # State Access
    # =========================================================================

    def get_balance(self, account: str) -> int:
        with self._lock:
            return self.balances.get(account, 0)

    def total_supply(self) -> int:
        with self._lock:
            return sum(self.balances.values())

    def is_frozen(self, account: str) -> bool:
        with self._lock:
            return account in self.frozen

    # =========================================================================
    # Host Operations
    # =========================================================================

    def mint(self, account: str, amount: int) -> None:
        """Credit new funds to an account (host funding, not an auction operation)."""
        if amount <= 0:
            raise ValueError("Mint amount must be positive")
        with self._lock:
            new_balance = self.balances.get(account, 0) + amount
            if new_balance > MAX_UINT:
                raise ValueError("Balance would overflow")
            self.balances[account] = new_balance
            self._persist([account])
        logger.info(f"Minted {amount} to {account}")

    def freeze(self, account: str) -> None:
        with self._lock:
            self.frozen.add(account)
            self._persist([account])
        logger.warning(f"Account {account} frozen")

    def unfreeze(self, account: str) -> None:
        with self._lock:
            self.frozen.discard(account)
            self._persist([account])
        logger.info(f"Account {account} unfrozen")

    # =========================================================================
    # Transfers
    # =========================================================================

    def transfer(self, amount: int, sender: str, recipient: str) -> bool:
        """
        Move amount from sender to recipient.

        Returns:
            True if applied, False if rejected (balances unchanged)
        """
        if not isinstance(amount, int) or amount <= 0:
            logger.warning(f"Rejected transfer of invalid amount {amount!r}")
            return False
        if sender == recipient:
            logger.warning(f"Rejected self-transfer for {sender}")
            return False

        with self._lock:
            if sender in self.frozen or recipient in self.frozen:
                logger.warning(f"Rejected transfer {sender} -> {recipient}: account frozen")
                return False

            available = self.balances.get(sender, 0)
            if available < amount:
                logger.warning(f"Rejected transfer {sender} -> {recipient}: balance {available} < {amount}")
                return False

            self.balances[sender] = available - amount
            self.balances[recipient] = self.balances.get(recipient, 0) + amount
            self._persist([sender, recipient])

        logger.debug(f"Transferred {amount} {sender} -> {recipient}")
        return True

    # =========================================================================
    # Persistence
    # =========================================================================

    def _persist(self, accounts: Iterable[str]) -> None:
        if not self.storage_manager:
            return
        self.storage_manager.persist_balances(
            {account: self.balances.get(account, 0) for account in accounts},
            frozen=self.frozen,
        )

    def _load_from_storage(self) -> None:
        balances, frozen = self.storage_manager.load_balances()
        self.balances.update(balances)
        self.frozen.update(frozen)
        logger.info(f"Loaded balances: {len(self.balances)} accounts, {len(self.frozen)} frozen")

    def __repr__(self) -> str:
        return f"BalanceLedger(accounts={len(self.balances)}, supply={self.total_supply()})"
