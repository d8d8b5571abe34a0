"""
Tests for signed calls and the authenticator.

Tests cover:
1. Caller identity derivation
2. Signature checks and tampering
3. Nonce replay protection (in memory and persisted)
"""

import pytest

from sealbid.core.identity import (
    Authenticator,
    CallContext,
    SignedCall,
    create_signed_call,
)
from sealbid.core.storage import StorageManager
from sealbid.crypto import generate_keypair


@pytest.fixture
def keypair():
    return generate_keypair()


@pytest.fixture
def payload():
    return {"op": "bid", "auction_id": 1, "amount": 100}


class TestSignedCall:
    """Tests for call construction."""

    def test_caller_is_signer_address(self, keypair, payload):
        call = create_signed_call(payload, 0, keypair)
        assert call.caller == keypair.address

    def test_signing_hash_is_canonical(self, keypair):
        a = create_signed_call({"op": "bid", "auction_id": 1, "amount": 5}, 3, keypair)
        b = create_signed_call({"amount": 5, "auction_id": 1, "op": "bid"}, 3, keypair)
        assert a.signing_hash() == b.signing_hash()

    def test_nonce_is_signed(self, keypair, payload):
        assert (create_signed_call(payload, 0, keypair).signing_hash()
                != create_signed_call(payload, 1, keypair).signing_hash())

    def test_dict_round_trip(self, keypair, payload):
        call = create_signed_call(payload, 4, keypair)
        restored = SignedCall.from_dict(call.to_dict())

        assert restored == call
        assert call.to_dict()["public_key"].startswith("0x")


class TestAuthenticator:
    """Tests for signature and nonce checks."""

    def test_accepts_valid_call(self, keypair, payload):
        auth = Authenticator()
        context, err = auth.authenticate(create_signed_call(payload, 0, keypair))

        assert err == ""
        assert context == CallContext(caller=keypair.address)

    def test_tampered_payload_rejected(self, keypair, payload):
        call = create_signed_call(payload, 0, keypair)
        call.payload["amount"] = 1

        context, err = Authenticator().authenticate(call)
        assert context is None
        assert err == "Invalid signature"

    def test_impersonation_rejected(self, keypair, payload):
        """Swapping in another public key changes the caller and breaks the signature."""
        victim = generate_keypair()
        call = create_signed_call(payload, 0, keypair)
        call.public_key = victim.public_key

        context, _ = Authenticator().authenticate(call)
        assert context is None

    def test_malformed_public_key(self, keypair, payload):
        call = create_signed_call(payload, 0, keypair)
        call.public_key = b"\x01" * 10

        context, err = Authenticator().authenticate(call)
        assert context is None
        assert "64 bytes" in err

    def test_negative_nonce(self, keypair, payload):
        context, err = Authenticator().authenticate(create_signed_call(payload, -1, keypair))
        assert context is None
        assert err == "Invalid nonce"

    def test_replay_rejected(self, keypair, payload):
        auth = Authenticator()
        call = create_signed_call(payload, 0, keypair)
        auth.authenticate(call)

        context, err = auth.authenticate(call)
        assert context is None
        assert err.startswith("Stale nonce")

    def test_nonce_must_increase(self, keypair, payload):
        auth = Authenticator()
        assert auth.authenticate(create_signed_call(payload, 5, keypair))[0] is not None
        assert auth.authenticate(create_signed_call(payload, 3, keypair))[0] is None
        assert auth.authenticate(create_signed_call(payload, 6, keypair))[0] is not None

    def test_nonces_are_per_caller(self, keypair, payload):
        auth = Authenticator()
        other = generate_keypair()
        auth.authenticate(create_signed_call(payload, 0, keypair))

        assert auth.authenticate(create_signed_call(payload, 0, other))[0] is not None

    def test_next_nonce(self, keypair, payload):
        auth = Authenticator()
        assert auth.next_nonce(keypair.address) == 0

        auth.authenticate(create_signed_call(payload, 0, keypair))
        assert auth.next_nonce(keypair.address) == 1

    def test_nonce_survives_restart(self, tmp_path, keypair, payload):
        storage = StorageManager(tmp_path)
        call = create_signed_call(payload, 7, keypair)
        Authenticator(storage_manager=storage).authenticate(call)
        storage.close()

        storage = StorageManager(tmp_path)
        auth = Authenticator(storage_manager=storage)
        context, err = auth.authenticate(call)
        storage.close()

        assert context is None
        assert err.startswith("Stale nonce")
        assert auth.next_nonce(keypair.address) == 8
