"""
Tests for the reference transfer service and logical clock.
"""

import pytest

from sealbid.core.ledger import BalanceLedger, BlockClock, Clock, TransferService
from sealbid.core.storage import StorageManager
from sealbid.utils.validation import MAX_UINT


class TestBalanceLedger:
    """Tests for balances and transfers."""

    def test_satisfies_protocol(self):
        assert isinstance(BalanceLedger(), TransferService)

    def test_unknown_account_is_zero(self):
        assert BalanceLedger().get_balance("nobody") == 0

    def test_mint(self):
        ledger = BalanceLedger()
        ledger.mint("alice", 50)
        ledger.mint("alice", 25)

        assert ledger.get_balance("alice") == 75
        assert ledger.total_supply() == 75

    def test_mint_rejects_non_positive(self):
        with pytest.raises(ValueError):
            BalanceLedger().mint("alice", 0)

    def test_mint_overflow(self):
        ledger = BalanceLedger()
        ledger.mint("alice", MAX_UINT)
        with pytest.raises(ValueError):
            ledger.mint("alice", 1)

    def test_transfer(self):
        ledger = BalanceLedger()
        ledger.mint("alice", 100)

        assert ledger.transfer(40, "alice", "bob")
        assert ledger.get_balance("alice") == 60
        assert ledger.get_balance("bob") == 40
        assert ledger.total_supply() == 100

    @pytest.mark.parametrize("amount", [0, -1, 1.5, "10"])
    def test_transfer_invalid_amount(self, amount):
        ledger = BalanceLedger()
        ledger.mint("alice", 100)

        assert not ledger.transfer(amount, "alice", "bob")
        assert ledger.get_balance("alice") == 100

    def test_insufficient_balance(self):
        ledger = BalanceLedger()
        ledger.mint("alice", 10)

        assert not ledger.transfer(11, "alice", "bob")
        assert ledger.get_balance("alice") == 10
        assert ledger.get_balance("bob") == 0

    def test_self_transfer_rejected(self):
        ledger = BalanceLedger()
        ledger.mint("alice", 10)
        assert not ledger.transfer(5, "alice", "alice")

    def test_frozen_sender_and_recipient(self):
        ledger = BalanceLedger()
        ledger.mint("alice", 10)
        ledger.mint("bob", 10)

        ledger.freeze("bob")
        assert ledger.is_frozen("bob")
        assert not ledger.transfer(5, "alice", "bob")
        assert not ledger.transfer(5, "bob", "alice")

        ledger.unfreeze("bob")
        assert ledger.transfer(5, "alice", "bob")

    def test_persistence(self, tmp_path):
        storage = StorageManager(tmp_path)
        ledger = BalanceLedger(storage_manager=storage)
        ledger.mint("alice", 2**100)
        ledger.transfer(2**99, "alice", "bob")
        ledger.freeze("bob")
        storage.close()

        storage = StorageManager(tmp_path)
        restored = BalanceLedger(storage_manager=storage)
        storage.close()

        assert restored.get_balance("alice") == 2**99
        assert restored.get_balance("bob") == 2**99
        assert restored.is_frozen("bob")


class TestBlockClock:
    """Tests for the logical clock."""

    def test_satisfies_protocol(self):
        assert isinstance(BlockClock(), Clock)

    def test_advance(self):
        clock = BlockClock(height=3)
        assert clock.advance() == 4
        assert clock.advance(6) == 10
        assert clock.current_height() == 10

    def test_never_moves_backwards(self):
        clock = BlockClock(height=10)
        with pytest.raises(ValueError):
            clock.set_height(9)
        with pytest.raises(ValueError):
            clock.advance(-1)
        assert clock.current_height() == 10

    def test_set_same_height(self):
        assert BlockClock(height=10).set_height(10) == 10

    def test_negative_start(self):
        with pytest.raises(ValueError):
            BlockClock(height=-1)

    def test_height_persists(self, tmp_path):
        storage = StorageManager(tmp_path)
        BlockClock(storage_manager=storage).set_height(42)
        storage.close()

        storage = StorageManager(tmp_path)
        clock = BlockClock(height=5, storage_manager=storage)
        storage.close()

        assert clock.current_height() == 42
