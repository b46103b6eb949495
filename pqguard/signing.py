"""
pqguard Classical Signatures

Classical-signature recovery is a trusted primitive to the core. It is
implemented here on Ed25519 (RFC 8032) via PyNaCl. Ed25519 has no public
key recovery, so a ClassicalSignature carries the signer's verify key and
"recovery" means: verify, then report the identity of that key.

Every classical signature covers ``H(SIGNED_DIGEST_PREFIX || digest)``,
never the bare digest.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional

from nacl.exceptions import BadSignatureError
from nacl.signing import SigningKey, VerifyKey

from .hashing import signed_digest
from .util import b64d, b64e

VERIFY_KEY_SIZE = 32
SIGNATURE_SIZE = 64


def identity_of(verify_key: bytes) -> str:
    """Identity of a classical key: its lowercase hex verify key."""
    return bytes(verify_key).hex()


@dataclass(frozen=True)
class ClassicalSignature:
    """Ed25519 signature plus the verify key it claims to come from."""
    verify_key: bytes
    signature: bytes

    def __post_init__(self):
        if len(self.verify_key) != VERIFY_KEY_SIZE:
            raise ValueError(f"verify_key must be {VERIFY_KEY_SIZE} bytes")
        if len(self.signature) != SIGNATURE_SIZE:
            raise ValueError(f"signature must be {SIGNATURE_SIZE} bytes")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "verify_key": self.verify_key.hex(),
            "sig_b64": b64e(self.signature),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ClassicalSignature':
        return cls(
            verify_key=bytes.fromhex(data["verify_key"]),
            signature=b64d(data["sig_b64"]),
        )


class SignatureRecovery(ABC):
    """Recovers the identity that produced a classical signature over a digest."""

    @abstractmethod
    def recover(self, digest: bytes, signature: ClassicalSignature) -> Optional[str]:
        """
        Returns:
            The signer identity, or None if the signature does not verify
        """
        pass


class Ed25519Recovery(SignatureRecovery):
    """Ed25519 recovery using PyNaCl."""

    def recover(self, digest: bytes, signature: ClassicalSignature) -> Optional[str]:
        try:
            VerifyKey(signature.verify_key).verify(signed_digest(digest), signature.signature)
        except (BadSignatureError, ValueError):
            return None
        return identity_of(signature.verify_key)


@dataclass
class ClassicalKeyPair:
    """Ed25519 key pair."""
    signing_key: bytes
    verify_key: bytes

    @classmethod
    def generate(cls) -> 'ClassicalKeyPair':
        sk = SigningKey.generate()
        return cls(signing_key=bytes(sk), verify_key=bytes(sk.verify_key))

    @property
    def identity(self) -> str:
        return identity_of(self.verify_key)

    def sign_digest(self, digest: bytes) -> ClassicalSignature:
        return sign_digest(self.signing_key, digest)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "identity": self.identity,
            "private_key_b64": b64e(self.signing_key),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ClassicalKeyPair':
        sk = SigningKey(b64d(data["private_key_b64"]))
        return cls(signing_key=bytes(sk), verify_key=bytes(sk.verify_key))


def sign_digest(signing_key: bytes, digest: bytes) -> ClassicalSignature:
    """Sign ``H(prefix || digest)`` with an Ed25519 signing key."""
    sk = SigningKey(signing_key)
    signed = sk.sign(signed_digest(digest))
    return ClassicalSignature(verify_key=bytes(sk.verify_key), signature=signed.signature)
