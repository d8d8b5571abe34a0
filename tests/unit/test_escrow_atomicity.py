"""
Tests for all-or-nothing escrow settlement.

A call either applies every transfer and record change or none of them,
whether the failure is a rejected transfer, an exception from the transfer
service, or a storage error.
"""

import sqlite3

import pytest

from sealbid.core.auction import AuctionHouse, EscrowIntegrityError
from sealbid.core.config import HouseConfig
from sealbid.core.errors import AuctionError
from sealbid.core.ledger import BalanceLedger, BlockClock
from sealbid.core.storage import StorageManager


class ScriptedLedger(BalanceLedger):
    """BalanceLedger whose Nth transfer call can be rejected or raise."""

    def __init__(self, reject_calls=(), raise_calls=()):
        super().__init__()
        self.calls = 0
        self.reject_calls = set(reject_calls)
        self.raise_calls = set(raise_calls)

    def transfer(self, amount, sender, recipient):
        self.calls += 1
        if self.calls in self.raise_calls:
            raise RuntimeError("transfer service unavailable")
        if self.calls in self.reject_calls:
            return False
        return super().transfer(amount, sender, recipient)


def build_house(ledger, clock=None, storage_manager=None):
    for account in ("seller", "x", "y"):
        ledger.mint(account, 1000)
    clock = clock or BlockClock(height=5)
    house = AuctionHouse(ledger, clock, config=HouseConfig(), storage_manager=storage_manager)
    auction_id, _ = house.create("seller", "Art", 10, 20)
    clock.set_height(12)
    return house, clock, auction_id


def snapshot(house, ledger, auction_id):
    return (
        dict(ledger.balances),
        house.get_auction(auction_id),
        {key: rec.amount for key, rec in house.bids.records.items()},
    )


# =============================================================================
# Rejected Transfers
# =============================================================================


class TestRejectedTransfers:
    """A rejected transfer leaves no trace."""

    def test_refund_rejection_reverses_bid_escrow(self):
        ledger = BalanceLedger()
        house, _, auction_id = build_house(ledger)
        house.bid("x", auction_id, 100)
        ledger.freeze("x")
        before = snapshot(house, ledger, auction_id)

        assert house.bid("y", auction_id, 150) == (False, AuctionError.TRANSFER_FAILED)
        assert snapshot(house, ledger, auction_id) == before
        assert ledger.get_balance("y") == 1000

    def test_second_transfer_rejected(self):
        # Call 1: x escrow, call 2: y escrow, call 3: refund of x
        ledger = ScriptedLedger(reject_calls={3})
        house, _, auction_id = build_house(ledger)
        house.bid("x", auction_id, 100)
        before = snapshot(house, ledger, auction_id)

        assert house.bid("y", auction_id, 150) == (False, AuctionError.TRANSFER_FAILED)
        assert snapshot(house, ledger, auction_id) == before

    def test_failed_reversal_raises(self):
        ledger = ScriptedLedger()
        house, _, auction_id = build_house(ledger)
        house.bid("x", auction_id, 100)

        # Next calls: y escrow (ok), refund x (rejected), reversal of y (rejected)
        base = ledger.calls
        ledger.reject_calls = {base + 2, base + 3}

        with pytest.raises(EscrowIntegrityError):
            house.bid("y", auction_id, 150)

        # Records were never swapped in
        assert house.get_auction(auction_id).highest_bidder == "x"


# =============================================================================
# Exceptions
# =============================================================================


class TestTransferExceptions:
    """Exceptions from the transfer service propagate after compensation."""

    def test_exception_mid_call_restores_balances(self):
        ledger = ScriptedLedger()
        house, _, auction_id = build_house(ledger)
        house.bid("x", auction_id, 100)
        before = snapshot(house, ledger, auction_id)

        ledger.raise_calls = {ledger.calls + 2}

        with pytest.raises(RuntimeError):
            house.bid("y", auction_id, 150)

        assert snapshot(house, ledger, auction_id) == before

    def test_exception_on_first_transfer(self):
        ledger = ScriptedLedger()
        house, _, auction_id = build_house(ledger)
        before = snapshot(house, ledger, auction_id)

        ledger.raise_calls = {ledger.calls + 1}

        with pytest.raises(RuntimeError):
            house.bid("x", auction_id, 100)

        assert snapshot(house, ledger, auction_id) == before


# =============================================================================
# Storage Failures
# =============================================================================


class TestStorageFailures:
    """A failed storage write reverses the transfers already made."""

    @pytest.fixture
    def storage(self, tmp_path):
        manager = StorageManager(tmp_path / "data")
        yield manager
        manager.close()

    def test_persist_failure_reverses_transfers(self, storage, monkeypatch):
        ledger = BalanceLedger()
        house, _, auction_id = build_house(ledger, storage_manager=storage)
        house.bid("x", auction_id, 100)
        before = snapshot(house, ledger, auction_id)

        def failing_persist(*args, **kwargs):
            raise sqlite3.OperationalError("database is locked")

        monkeypatch.setattr(storage, "persist_house_update", failing_persist)

        with pytest.raises(sqlite3.OperationalError):
            house.bid("y", auction_id, 150)

        assert snapshot(house, ledger, auction_id) == before

    def test_persist_failure_on_finalize(self, storage, monkeypatch):
        ledger = BalanceLedger()
        house, clock, auction_id = build_house(ledger, storage_manager=storage)
        house.bid("x", auction_id, 100)
        clock.set_height(20)
        before = snapshot(house, ledger, auction_id)

        def failing_persist(*args, **kwargs):
            raise sqlite3.OperationalError("disk I/O error")

        monkeypatch.setattr(storage, "persist_house_update", failing_persist)

        with pytest.raises(sqlite3.OperationalError):
            house.finalize("seller", auction_id)

        assert snapshot(house, ledger, auction_id) == before
        assert house.get_auction(auction_id).active

        monkeypatch.undo()
        assert house.finalize("seller", auction_id) == (True, None)
        assert ledger.get_balance("seller") == 1100
