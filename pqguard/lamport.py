"""
pqguard Lamport One-Time Signatures

Public key: 2 x 256 hash commitments, one pair per digest bit.
Private key: 2 x 256 random preimages.
A signature reveals exactly one preimage per bit position, selected by the
digest bit at that position.

Revealing preimages for one digest discloses nothing about commitments that
were never referenced. Signing two digests that disagree on any bit leaks the
private material at that index, so a key may be consumed at most once.
"""

import secrets
import threading
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence, Tuple

from .hashing import DIGEST_BITS, DIGEST_SIZE, digest_bit, hash256

KEY_WIDTH = DIGEST_BITS
PREIMAGE_SIZE = 32


def _validate_entries(entries: Sequence[bytes], size: int, what: str) -> Tuple[bytes, ...]:
    if len(entries) != KEY_WIDTH:
        raise ValueError(f"{what} must have exactly {KEY_WIDTH} entries, got {len(entries)}")
    out = tuple(bytes(e) for e in entries)
    for i, e in enumerate(out):
        if len(e) != size:
            raise ValueError(f"{what}[{i}] must be {size} bytes, got {len(e)}")
    return out


@dataclass(frozen=True)
class LamportPublicKey:
    """
    Two fixed-length commitment sequences indexed by bit position 0..255.

    ``zeros[i]`` commits to the preimage revealed when bit i is 0,
    ``ones[i]`` when bit i is 1. Lengths are validated once here, never
    per verification.
    """
    zeros: Tuple[bytes, ...]
    ones: Tuple[bytes, ...]

    def __post_init__(self):
        object.__setattr__(self, "zeros", _validate_entries(self.zeros, DIGEST_SIZE, "zeros"))
        object.__setattr__(self, "ones", _validate_entries(self.ones, DIGEST_SIZE, "ones"))

    def commitment(self, bit: int, index: int) -> bytes:
        return self.ones[index] if bit else self.zeros[index]

    def to_bytes(self) -> bytes:
        """All bit-0 commitments followed by all bit-1 commitments."""
        return b"".join(self.zeros) + b"".join(self.ones)

    @classmethod
    def from_bytes(cls, data: bytes) -> 'LamportPublicKey':
        expected = 2 * KEY_WIDTH * DIGEST_SIZE
        if len(data) != expected:
            raise ValueError(f"public key must be {expected} bytes, got {len(data)}")
        chunks = [data[i:i + DIGEST_SIZE] for i in range(0, expected, DIGEST_SIZE)]
        return cls(zeros=tuple(chunks[:KEY_WIDTH]), ones=tuple(chunks[KEY_WIDTH:]))

    def leaf_hash(self) -> bytes:
        """Merkle leaf binding this key into a registry."""
        return hash256(self.to_bytes())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "zeros": [c.hex() for c in self.zeros],
            "ones": [c.hex() for c in self.ones],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'LamportPublicKey':
        return cls(
            zeros=tuple(bytes.fromhex(c) for c in data["zeros"]),
            ones=tuple(bytes.fromhex(c) for c in data["ones"]),
        )


@dataclass(frozen=True)
class LamportSignature:
    """256 preimages, one per bit position of the signed digest."""
    preimages: Tuple[bytes, ...]

    def __post_init__(self):
        object.__setattr__(
            self, "preimages", _validate_entries(self.preimages, PREIMAGE_SIZE, "preimages")
        )

    def __getitem__(self, index: int) -> bytes:
        return self.preimages[index]

    def to_bytes(self) -> bytes:
        return b"".join(self.preimages)

    @classmethod
    def from_bytes(cls, data: bytes) -> 'LamportSignature':
        expected = KEY_WIDTH * PREIMAGE_SIZE
        if len(data) != expected:
            raise ValueError(f"signature must be {expected} bytes, got {len(data)}")
        return cls(tuple(data[i:i + PREIMAGE_SIZE] for i in range(0, expected, PREIMAGE_SIZE)))

    def to_list(self):
        return [p.hex() for p in self.preimages]

    @classmethod
    def from_list(cls, items: Sequence[str]) -> 'LamportSignature':
        return cls(tuple(bytes.fromhex(p) for p in items))


def verify(digest: bytes, signature: LamportSignature, public_key: LamportPublicKey) -> bool:
    """
    Verify a Lamport signature over a 32-byte digest.

    Fails fast on the first mismatching position; accepts only if all 256
    positions match.
    """
    if len(digest) != DIGEST_SIZE:
        return False
    for i in range(KEY_WIDTH):
        bit = digest_bit(digest, i)
        if hash256(signature[i]) != public_key.commitment(bit, i):
            return False
    return True


class KeyReuseError(Exception):
    """Raised when a one-time private key is asked to sign a second digest."""
    pass


class LamportPrivateKey:
    """
    2 x 256 random preimages.

    Refuses to sign a second, different digest. Re-signing the digest it
    already signed returns the same signature and leaks nothing new.
    """

    def __init__(self, zeros: Sequence[bytes], ones: Sequence[bytes]):
        self._zeros = _validate_entries(zeros, PREIMAGE_SIZE, "zeros")
        self._ones = _validate_entries(ones, PREIMAGE_SIZE, "ones")
        self._signed_digest: Optional[bytes] = None
        self._lock = threading.Lock()

    @classmethod
    def generate(cls) -> 'LamportPrivateKey':
        return cls(
            zeros=[secrets.token_bytes(PREIMAGE_SIZE) for _ in range(KEY_WIDTH)],
            ones=[secrets.token_bytes(PREIMAGE_SIZE) for _ in range(KEY_WIDTH)],
        )

    @property
    def used(self) -> bool:
        return self._signed_digest is not None

    def public_key(self) -> LamportPublicKey:
        return LamportPublicKey(
            zeros=tuple(hash256(p) for p in self._zeros),
            ones=tuple(hash256(p) for p in self._ones),
        )

    def sign(self, digest: bytes) -> LamportSignature:
        if len(digest) != DIGEST_SIZE:
            raise ValueError(f"digest must be {DIGEST_SIZE} bytes, got {len(digest)}")
        with self._lock:
            if self._signed_digest is not None and self._signed_digest != digest:
                raise KeyReuseError("one-time key already signed a different digest")
            self._signed_digest = digest
        return LamportSignature(tuple(
            self._ones[i] if digest_bit(digest, i) else self._zeros[i]
            for i in range(KEY_WIDTH)
        ))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "zeros": [p.hex() for p in self._zeros],
            "ones": [p.hex() for p in self._ones],
            "signed_digest": self._signed_digest.hex() if self._signed_digest else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'LamportPrivateKey':
        key = cls(
            zeros=[bytes.fromhex(p) for p in data["zeros"]],
            ones=[bytes.fromhex(p) for p in data["ones"]],
        )
        if data.get("signed_digest"):
            key._signed_digest = bytes.fromhex(data["signed_digest"])
        return key


def generate_keypair() -> Tuple[LamportPrivateKey, LamportPublicKey]:
    """Generate a fresh one-time key pair."""
    private_key = LamportPrivateKey.generate()
    return private_key, private_key.public_key()
