"""
Cryptographic primitives for Sealbid.

This module provides:
- Hashing (SHA-256 for call digests, Keccak-256 for addresses)
- secp256k1 key generation
- ECDSA signatures used to authenticate operation callers

Addresses follow the Ethereum convention: the last 20 bytes of
keccak256(public_key), rendered as 0x-prefixed hex.
"""

import hashlib
import secrets
from dataclasses import dataclass
from typing import Optional

from Crypto.Hash import keccak
from py_ecc.secp256k1 import secp256k1


# secp256k1 group order
SECP256K1_ORDER = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141

PUBLIC_KEY_SIZE = 64
SIGNATURE_SIZE = 64


# =============================================================================
# Hashing
# =============================================================================


def sha256(data: bytes) -> bytes:
    """Compute SHA-256 hash."""
    return hashlib.sha256(data).digest()


def keccak256(data: bytes) -> bytes:
    """Compute Keccak-256 hash (Ethereum-style)."""
    k = keccak.new(digest_bits=256)
    k.update(data)
    return k.digest()


# =============================================================================
# Keys
# =============================================================================


def _point_to_bytes(point) -> bytes:
    return point[0].to_bytes(32, byteorder="big") + point[1].to_bytes(32, byteorder="big")


def address_from_public_key(public_key: bytes) -> str:
    """
    Derive the caller identity for a public key.

    Args:
        public_key: 64-byte uncompressed public key (x || y)

    Returns:
        0x-prefixed 20-byte hex address
    """
    if len(public_key) != PUBLIC_KEY_SIZE:
        raise ValueError(f"Public key must be {PUBLIC_KEY_SIZE} bytes")
    return "0x" + keccak256(public_key)[-20:].hex()


@dataclass
class KeyPair:
    """
    An ECDSA keypair on secp256k1.

    Attributes:
        private_key: 32-byte secret scalar
        public_key: 64-byte uncompressed public key (no 0x04 prefix)
    """
    private_key: bytes
    public_key: bytes

    @property
    def address(self) -> str:
        """Identity this keypair signs for."""
        return address_from_public_key(self.public_key)


def private_key_to_public_key(private_key: bytes) -> bytes:
    """Derive the 64-byte public key for a 32-byte private key."""
    if len(private_key) != 32:
        raise ValueError("Private key must be 32 bytes")
    return _point_to_bytes(secp256k1.privtopub(private_key))


def generate_keypair() -> KeyPair:
    """Generate a new random keypair."""
    scalar = secrets.randbelow(SECP256K1_ORDER - 1) + 1
    private_key = scalar.to_bytes(32, byteorder="big")
    return KeyPair(private_key=private_key, public_key=private_key_to_public_key(private_key))


# =============================================================================
# Signatures
# =============================================================================


def sign(message_hash: bytes, private_key: bytes) -> bytes:
    """
    Sign a 32-byte digest.

    Returns:
        64-byte signature (r || s) with s in the lower half of the order
    """
    if len(message_hash) != 32:
        raise ValueError("Message hash must be 32 bytes")
    if len(private_key) != 32:
        raise ValueError("Private key must be 32 bytes")

    _, r, s = secp256k1.ecdsa_raw_sign(message_hash, private_key)

    # Low-s form rules out the malleable twin signature
    if s > SECP256K1_ORDER // 2:
        s = SECP256K1_ORDER - s

    return r.to_bytes(32, byteorder="big") + s.to_bytes(32, byteorder="big")


def recover_public_key(message_hash: bytes, signature: bytes, recovery_id: int) -> Optional[bytes]:
    """
    Recover a candidate signer public key.

    Args:
        message_hash: 32-byte digest
        signature: 64-byte signature (r || s)
        recovery_id: 0 or 1

    Returns:
        64-byte public key, or None if recovery fails
    """
    if len(message_hash) != 32 or len(signature) != SIGNATURE_SIZE:
        return None

    r = int.from_bytes(signature[:32], byteorder="big")
    s = int.from_bytes(signature[32:], byteorder="big")
    if not (1 <= r < SECP256K1_ORDER and 1 <= s < SECP256K1_ORDER):
        return None

    try:
        point = secp256k1.ecdsa_raw_recover(message_hash, (27 + recovery_id, r, s))
    except (ValueError, ZeroDivisionError):
        return None
    if not point:
        return None
    return _point_to_bytes(point)


def verify(message_hash: bytes, signature: bytes, public_key: bytes) -> bool:
    """Check that signature over message_hash was made by public_key."""
    if len(public_key) != PUBLIC_KEY_SIZE:
        return False
    # Signatures carry no recovery id, so either candidate may match
    for recovery_id in (0, 1):
        if recover_public_key(message_hash, signature, recovery_id) == public_key:
            return True
    return False


# =============================================================================
# Utility Functions
# =============================================================================


def bytes_to_hex(data: bytes) -> str:
    """Convert bytes to hex string with 0x prefix."""
    return "0x" + data.hex()


def hex_to_bytes(hex_str: str) -> bytes:
    """Convert hex string (with or without 0x prefix) to bytes."""
    if hex_str.startswith("0x") or hex_str.startswith("0X"):
        hex_str = hex_str[2:]
    return bytes.fromhex(hex_str)


__all__ = [
    "sha256",
    "keccak256",
    "KeyPair",
    "generate_keypair",
    "private_key_to_public_key",
    "address_from_public_key",
    "sign",
    "verify",
    "recover_public_key",
    "bytes_to_hex",
    "hex_to_bytes",
    "SECP256K1_ORDER",
]
