"""
Tests for the operation surface: payload parsing, dispatch, signed calls
and queries.
"""

import json

import pytest
from pydantic import ValidationError

from sealbid.core.auction import AuctionHouse, OperationResult, OperationSurface, parse_call
from sealbid.core.auction.surface import BidCall, CreateCall, result_to_json
from sealbid.core.config import HouseConfig
from sealbid.core.errors import AuctionError
from sealbid.core.identity import CallContext, create_signed_call
from sealbid.core.ledger import BalanceLedger, BlockClock
from sealbid.crypto import generate_keypair


@pytest.fixture
def ledger():
    ledger = BalanceLedger()
    for account in ("seller", "x", "y"):
        ledger.mint(account, 1000)
    return ledger


@pytest.fixture
def clock():
    return BlockClock(height=5)


@pytest.fixture
def surface(ledger, clock):
    return OperationSurface(AuctionHouse(ledger, clock, config=HouseConfig()))


# =============================================================================
# Parsing
# =============================================================================


class TestParseCall:
    """Tests for payload parsing."""

    def test_mapping(self):
        call = parse_call({"op": "bid", "auction_id": 1, "amount": 5})
        assert isinstance(call, BidCall)
        assert call.amount == 5

    def test_json_text(self):
        call = parse_call('{"op": "create", "item": "Art", "start": 10, "end": 20}')
        assert isinstance(call, CreateCall)
        assert call.end == 20

    def test_unknown_op(self):
        with pytest.raises(ValidationError):
            parse_call({"op": "withdraw", "auction_id": 1})

    def test_string_amount_not_coerced(self):
        with pytest.raises(ValidationError):
            parse_call({"op": "bid", "auction_id": 1, "amount": "5"})

    def test_negative_rejected(self):
        with pytest.raises(ValidationError):
            parse_call({"op": "bid", "auction_id": 1, "amount": -5})

    def test_extra_field_rejected(self):
        with pytest.raises(ValidationError):
            parse_call({"op": "finalize", "auction_id": 1, "caller": "owner"})


# =============================================================================
# Dispatch
# =============================================================================


class TestHandle:
    """Tests for host-identified calls."""

    def test_create_returns_id(self, surface):
        result = surface.handle({"op": "create", "item": "Art", "start": 10, "end": 20}, "seller")

        assert result.ok
        assert result.value == 1
        assert result.error is None

    def test_call_context_accepted(self, surface):
        result = surface.handle(
            {"op": "create", "item": "Art", "start": 10, "end": 20},
            CallContext(caller="seller"),
        )
        assert result.ok

    def test_error_wire_names(self, surface, clock):
        surface.handle({"op": "create", "item": "Art", "start": 10, "end": 20}, "seller")
        clock.set_height(12)
        surface.handle({"op": "bid", "auction_id": 1, "amount": 100}, "x")

        result = surface.handle({"op": "bid", "auction_id": 1, "amount": 50}, "y")

        assert not result.ok
        assert result.error == "BidTooLow"
        assert result.auction_error == AuctionError.BID_TOO_LOW
        assert result.message

    def test_malformed_payload_is_invalid_input(self, surface):
        result = surface.handle({"op": "bid", "auction_id": "one", "amount": 5}, "x")

        assert not result.ok
        assert result.auction_error == AuctionError.INVALID_INPUT
        assert "auction_id" in result.message

    def test_full_lifecycle(self, surface, ledger, clock):
        surface.handle({"op": "create", "item": "Art", "start": 10, "end": 20}, "seller")
        clock.set_height(12)
        assert surface.handle({"op": "bid", "auction_id": 1, "amount": 100}, "x").ok
        assert surface.handle({"op": "bid", "auction_id": 1, "amount": 150}, "y").ok
        clock.set_height(21)

        assert surface.handle({"op": "finalize", "auction_id": 1}, "seller").ok
        assert ledger.get_balance("seller") == 1150

        refund = surface.handle({"op": "claim_refund", "auction_id": 1}, "y")
        assert refund.error == "Unauthorized"

    def test_cancel(self, surface):
        surface.handle({"op": "create", "item": "Art", "start": 10, "end": 20}, "seller")

        assert surface.handle({"op": "cancel_auction", "auction_id": 1}, "seller").ok
        assert surface.query("auction", auction_id=1)["active"] is False

    def test_result_json(self):
        text = result_to_json(OperationResult.failure(AuctionError.NOT_FOUND))
        data = json.loads(text)

        assert data["ok"] is False
        assert data["error"] == "NotFound"


# =============================================================================
# Signed Calls
# =============================================================================


class TestHandleSigned:
    """Tests for authenticated calls."""

    def test_signer_becomes_seller(self, surface):
        kp = generate_keypair()
        call = create_signed_call({"op": "create", "item": "Art", "start": 10, "end": 20}, 0, kp)

        result = surface.handle_signed(call)

        assert result.ok
        assert surface.query("auction", auction_id=result.value)["seller"] == kp.address

    def test_dict_form(self, surface):
        kp = generate_keypair()
        call = create_signed_call({"op": "create", "item": "Art", "start": 10, "end": 20}, 0, kp)

        assert surface.handle_signed(call.to_dict()).ok

    def test_replay_unauthorized(self, surface):
        kp = generate_keypair()
        call = create_signed_call({"op": "create", "item": "Art", "start": 10, "end": 20}, 0, kp)
        surface.handle_signed(call)

        result = surface.handle_signed(call)

        assert result.auction_error == AuctionError.UNAUTHORIZED
        assert surface.query("last_auction_id") == {"last_auction_id": 1}

    def test_bad_signature_unauthorized(self, surface):
        kp = generate_keypair()
        call = create_signed_call({"op": "finalize", "auction_id": 0}, 0, kp)
        call.payload["auction_id"] = 1

        assert surface.handle_signed(call).auction_error == AuctionError.UNAUTHORIZED

    def test_malformed_envelope(self, surface):
        result = surface.handle_signed({"payload": {}, "nonce": 0})
        assert result.auction_error == AuctionError.INVALID_INPUT

    def test_signed_malformed_payload(self, surface):
        kp = generate_keypair()
        call = create_signed_call({"op": "bid", "auction_id": 1}, 0, kp)

        assert surface.handle_signed(call).auction_error == AuctionError.INVALID_INPUT


# =============================================================================
# Queries
# =============================================================================


class TestQuery:
    """Tests for read-only lookups."""

    def test_missing_records(self, surface):
        assert surface.query("auction", auction_id=9) is None
        assert surface.query("bid", auction_id=9, bidder="x") is None

    def test_bid_record(self, surface, clock):
        surface.handle({"op": "create", "item": "Art", "start": 10, "end": 20}, "seller")
        clock.set_height(10)
        surface.handle({"op": "bid", "auction_id": 1, "amount": 30}, "x")

        assert surface.query("bid", auction_id=1, bidder="x") == {
            "auction_id": 1, "bidder": "x", "amount": 30,
        }

    def test_unknown_query(self, surface):
        with pytest.raises(ValueError):
            surface.query("balances")
