"""
pqguard Hashing

One fixed 256-bit hash primitive (SHA-256) is used identically for Lamport
preimage hashing, digest computation, leaf hashing and Merkle combination.
Mixing primitives across components breaks commitment interoperability.
"""

import hashlib
from typing import Any, Union

from .canonicalization import canonicalize

DIGEST_SIZE = 32
DIGEST_BITS = DIGEST_SIZE * 8

# Domain-separating prefix applied before classical signing:
#   signed_digest = H(SIGNED_DIGEST_PREFIX || digest)
SIGNED_DIGEST_PREFIX = b"\x19pqguard Signed Digest:\n32"


def hash256(data: Union[bytes, str]) -> bytes:
    """Compute the raw 32-byte SHA-256 digest."""
    if isinstance(data, str):
        data = data.encode('utf-8')
    return hashlib.sha256(data).digest()


def hash_hex(data: Union[bytes, str]) -> str:
    """SHA-256 as lowercase hex."""
    return hash256(data).hex()


def content_hash(obj: Any) -> bytes:
    """Hash of the canonical JSON encoding of ``obj``."""
    return hash256(canonicalize(obj))


def signed_digest(digest: bytes) -> bytes:
    """Apply the classical-signature prefix convention to a digest."""
    if len(digest) != DIGEST_SIZE:
        raise ValueError(f"digest must be {DIGEST_SIZE} bytes, got {len(digest)}")
    return hash256(SIGNED_DIGEST_PREFIX + digest)


def digest_bit(digest: bytes, index: int) -> int:
    """
    Bit ``index`` of a digest read as a big-endian 256-bit integer.

    Index 0 is the least significant bit.
    """
    if not 0 <= index < DIGEST_BITS:
        raise IndexError(f"bit index out of range: {index}")
    byte = digest[DIGEST_SIZE - 1 - (index // 8)]
    return (byte >> (index % 8)) & 1
