"""
Utility functions for pqguard.

Encoding, time and comparison helpers shared by the core, the service and
the CLI.
"""

import base64
import hmac
import time
from typing import Union


def now_epoch() -> int:
    """Get current Unix timestamp as integer."""
    return int(time.time())


def b64e(b: bytes) -> str:
    """Base64 encode bytes to string."""
    return base64.b64encode(b).decode('ascii')


def b64d(s: str) -> bytes:
    """Base64 decode string to bytes."""
    return base64.b64decode(s.encode('ascii'))


def hex_to_bytes(s: str, expected_length: int = None) -> bytes:
    """
    Decode a hex string (an optional ``0x`` prefix is accepted).

    Raises ValueError on malformed input or a length mismatch.
    """
    if s.startswith("0x"):
        s = s[2:]
    raw = bytes.fromhex(s)
    if expected_length is not None and len(raw) != expected_length:
        raise ValueError(f"expected {expected_length} bytes, got {len(raw)}")
    return raw


def constant_time_compare(a: Union[str, bytes], b: Union[str, bytes]) -> bool:
    """
    Compare two strings/bytes in constant time to prevent timing attacks.
    """
    if isinstance(a, str):
        a = a.encode('utf-8')
    if isinstance(b, str):
        b = b.encode('utf-8')
    return hmac.compare_digest(a, b)

