"""
Identity - who is calling an auction operation.

A host that already knows its caller builds a CallContext directly. A host
that receives calls over an untrusted channel uses signed calls instead:

    digest    = sha256(canonical_json({"payload": ..., "nonce": ...}))
    signature = ECDSA-secp256k1(digest, private_key)
    caller    = 0x || keccak256(public_key)[-20:]

The Authenticator checks the signature and requires each caller's nonce to
increase strictly, so a captured call cannot be replayed.
"""

import json
import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, Optional, Tuple

from sealbid.crypto import (
    KeyPair,
    address_from_public_key,
    bytes_to_hex,
    hex_to_bytes,
    sha256,
    sign,
    verify,
)
from sealbid.utils.logger import get_logger

if TYPE_CHECKING:
    from sealbid.core.storage.storage_manager import StorageManager

logger = get_logger("identity")


@dataclass(frozen=True)
class CallContext:
    """Immutable identity of the caller of one invocation."""
    caller: str


@dataclass
class SignedCall:
    """
    An operation payload bound to its signer.

    Attributes:
        payload: Operation arguments, e.g. {"op": "bid", "auction_id": 1, "amount": 5}
        nonce: Per-caller sequence number
        public_key: 64-byte signer public key
        signature: 64-byte signature over signing_hash()
    """
    payload: Dict[str, Any]
    nonce: int
    public_key: bytes
    signature: bytes = field(default=b"", repr=False)

    def signing_hash(self) -> bytes:
        body = json.dumps(
            {"payload": self.payload, "nonce": self.nonce},
            sort_keys=True,
            separators=(",", ":"),
        )
        return sha256(body.encode("utf-8"))

    @property
    def caller(self) -> str:
        return address_from_public_key(self.public_key)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "payload": self.payload,
            "nonce": self.nonce,
            "public_key": bytes_to_hex(self.public_key),
            "signature": bytes_to_hex(self.signature),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SignedCall":
        return cls(
            payload=data["payload"],
            nonce=data["nonce"],
            public_key=hex_to_bytes(data["public_key"]),
            signature=hex_to_bytes(data["signature"]),
        )


def create_signed_call(payload: Dict[str, Any], nonce: int, keypair: KeyPair) -> SignedCall:
    """Build and sign a call for keypair's identity."""
    call = SignedCall(payload=dict(payload), nonce=nonce, public_key=keypair.public_key)
    call.signature = sign(call.signing_hash(), keypair.private_key)
    return call


class Authenticator:
    """
    Turns signed calls into caller identities.

    Tracks the last accepted nonce per caller, persisted when a storage
    manager is supplied so replay protection survives restarts.
    """

    def __init__(self, storage_manager: Optional["StorageManager"] = None):
        self.last_nonce: Dict[str, int] = {}
        self._lock = threading.Lock()
        self.storage_manager = storage_manager

    def _last_nonce(self, caller: str) -> Optional[int]:
        if caller not in self.last_nonce and self.storage_manager:
            stored = self.storage_manager.get_nonce(caller)
            if stored is not None:
                self.last_nonce[caller] = stored
        return self.last_nonce.get(caller)

    def authenticate(self, call: SignedCall) -> Tuple[Optional[CallContext], str]:
        """
        Verify a signed call and consume its nonce.

        Returns:
            (context, error_message) - context is None on failure
        """
        if not isinstance(call.nonce, int) or isinstance(call.nonce, bool) or call.nonce < 0:
            return None, "Invalid nonce"

        try:
            caller = call.caller
        except ValueError as e:
            return None, str(e)

        if not verify(call.signing_hash(), call.signature, call.public_key):
            logger.warning(f"Rejected call with bad signature for {caller}")
            return None, "Invalid signature"

        with self._lock:
            last = self._last_nonce(caller)
            if last is not None and call.nonce <= last:
                logger.warning(f"Rejected replayed call for {caller}: nonce {call.nonce} <= {last}")
                return None, f"Stale nonce: {call.nonce} <= {last}"
            self.last_nonce[caller] = call.nonce
            if self.storage_manager:
                self.storage_manager.save_nonce(caller, call.nonce)

        return CallContext(caller=caller), ""

    def next_nonce(self, caller: str) -> int:
        """Smallest nonce the caller may use next."""
        with self._lock:
            last = self._last_nonce(caller)
            return 0 if last is None else last + 1


__all__ = [
    "CallContext",
    "SignedCall",
    "Authenticator",
    "create_signed_call",
]
