#!/usr/bin/env python3
"""disputes.crypto

Key rings used to bind a dispute to the trader and the arbitrator.

Profile / invariants:
- A ``PubKeyRing`` holds two raw 32-byte public keys: Ed25519 for signatures
  and X25519 for encryption of direct messages.
- Signatures are raw 64-byte Ed25519 signatures, carried as unpadded base64url
  strings (the same shape used for ``offerer_contract_signature`` and
  ``taker_contract_signature``).
- The signing input for a contract is the UTF-8 bytes of ``contract_as_json``
  exactly as stored on the dispute; collaborators verify against that text,
  never against a re-serialization.

The dispute record only consumes ``PubKeyRing`` values; key generation here is
for the opening peer and for tests.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Any, Dict

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey, Ed25519PublicKey
from cryptography.hazmat.primitives.asymmetric.x25519 import X25519PrivateKey

from disputes.core import b64url_decode, b64url_encode

_RAW = serialization.Encoding.Raw
_RAW_PUB = serialization.PublicFormat.Raw


@dataclass(frozen=True)
class PubKeyRing:
    """Public identity of a peer: signature key plus encryption key."""
    signature_pub_key: bytes
    encryption_pub_key: bytes

    def __post_init__(self):
        for name in ("signature_pub_key", "encryption_pub_key"):
            value = getattr(self, name)
            if not isinstance(value, bytes):
                raise TypeError(f"{name} must be bytes, got {type(value).__name__}")
            if len(value) != 32:
                raise ValueError(f"{name} must be 32 bytes, got {len(value)}")

    @property
    def key_id(self) -> str:
        """Short stable identifier derived from the signature key."""
        return hashlib.sha256(self.signature_pub_key).hexdigest()[:16]

    def verify(self, data: bytes, signature: str) -> bool:
        """Check a base64url Ed25519 signature over ``data``."""
        try:
            sig = b64url_decode(signature)
        except (ValueError, TypeError):
            return False
        if len(sig) != 64:
            return False
        pub = Ed25519PublicKey.from_public_bytes(self.signature_pub_key)
        try:
            pub.verify(sig, data)
        except InvalidSignature:
            return False
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "signature_pub_key": b64url_encode(self.signature_pub_key),
            "encryption_pub_key": b64url_encode(self.encryption_pub_key),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "PubKeyRing":
        return cls(
            signature_pub_key=b64url_decode(d["signature_pub_key"]),
            encryption_pub_key=b64url_decode(d["encryption_pub_key"]),
        )

    def __repr__(self) -> str:
        return f"PubKeyRing(key_id={self.key_id})"


class KeyRing:
    """Private counterpart of a PubKeyRing, held only by its owner."""

    def __init__(self, signature_key: Ed25519PrivateKey, encryption_key: X25519PrivateKey):
        self._signature_key = signature_key
        self._encryption_key = encryption_key
        self.pub_key_ring = PubKeyRing(
            signature_pub_key=signature_key.public_key().public_bytes(_RAW, _RAW_PUB),
            encryption_pub_key=encryption_key.public_key().public_bytes(_RAW, _RAW_PUB),
        )

    @classmethod
    def generate(cls) -> "KeyRing":
        return cls(Ed25519PrivateKey.generate(), X25519PrivateKey.generate())

    def sign(self, data: bytes) -> str:
        return b64url_encode(self._signature_key.sign(data))

    def __repr__(self) -> str:
        return f"KeyRing(key_id={self.pub_key_ring.key_id})"


def sign_contract(contract_as_json: str, key_ring: KeyRing) -> str:
    """Sign the canonical contract text."""
    return key_ring.sign(contract_as_json.encode("utf-8"))


def verify_contract_signature(contract_as_json: str, signature: str, pub_key_ring: PubKeyRing) -> bool:
    """Verify a contract signature against the stored contract text."""
    return pub_key_ring.verify(contract_as_json.encode("utf-8"), signature)
