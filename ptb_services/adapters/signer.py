"""
Default signer (Ed25519).

Address   = 0x + blake2b-256(flag 0x00 || public key)
Signature = base64(flag 0x00 || ed25519 signature || public key), where the
            signed message is blake2b-256(intent [0, 0, 0] || tx bytes).

The seed comes from ``DEFAULT_SIGNER_KEY`` (base64 or 0x-hex, 32 bytes).
Without it the service still validates, builds and simulates; submissions
fail with ``SignerUnavailable``.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import logging
from typing import Optional

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

log = logging.getLogger(__name__)

ED25519_FLAG = 0x00
TRANSACTION_INTENT = bytes([0, 0, 0])
SEED_LEN = 32


def _blake2b256(data: bytes) -> bytes:
    return hashlib.blake2b(data, digest_size=32).digest()


def decode_seed(text: str) -> bytes:
    """Accept 0x-hex, bare hex or base64; the result must be exactly 32 bytes."""
    s = text.strip()
    raw: Optional[bytes] = None
    hex_part = s[2:] if s.lower().startswith("0x") else s
    if len(hex_part) == SEED_LEN * 2:
        try:
            raw = bytes.fromhex(hex_part)
        except ValueError:
            raw = None
    if raw is None:
        try:
            raw = base64.b64decode(s, validate=True)
        except (binascii.Error, ValueError):
            raise ValueError("signer key must be a 32-byte seed in hex or base64") from None
    if len(raw) != SEED_LEN:
        raise ValueError(f"signer key must be {SEED_LEN} bytes, got {len(raw)}")
    return raw


class Ed25519Signer:
    def __init__(self, private_key: Ed25519PrivateKey):
        self._sk = private_key
        self._pk = private_key.public_key().public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw,
        )
        self._address = "0x" + _blake2b256(bytes([ED25519_FLAG]) + self._pk).hex()

    @classmethod
    def from_seed(cls, seed: bytes) -> "Ed25519Signer":
        return cls(Ed25519PrivateKey.from_private_bytes(seed))

    @classmethod
    def from_text(cls, text: str) -> "Ed25519Signer":
        return cls.from_seed(decode_seed(text))

    @classmethod
    def generate(cls) -> "Ed25519Signer":
        return cls(Ed25519PrivateKey.generate())

    @property
    def address(self) -> str:
        return self._address

    @property
    def public_key(self) -> bytes:
        return self._pk

    def seed(self) -> bytes:
        return self._sk.private_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PrivateFormat.Raw,
            encryption_algorithm=serialization.NoEncryption(),
        )

    def sign(self, tx_bytes: bytes) -> str:
        digest = _blake2b256(TRANSACTION_INTENT + tx_bytes)
        sig = self._sk.sign(digest)
        return base64.b64encode(bytes([ED25519_FLAG]) + sig + self._pk).decode("ascii")

    def __repr__(self) -> str:
        return f"Ed25519Signer(address={self._address})"


def load_signer(settings) -> Optional[Ed25519Signer]:
    """Signer from ``settings.default_signer_key``, or None when unset."""
    key = getattr(settings, "default_signer_key", None)
    if not key:
        log.info("no default signer configured; submissions are disabled")
        return None
    signer = Ed25519Signer.from_text(key)
    log.info("default signer loaded address=%s", signer.address)
    return signer


__all__ = ["Ed25519Signer", "decode_seed", "load_signer", "ED25519_FLAG", "TRANSACTION_INTENT"]
