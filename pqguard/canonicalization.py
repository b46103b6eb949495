"""
pqguard Canonical JSON Encoding

Two actions that mean the same thing must hash to the same digest, since
the digest is also the replay key. Encoding rules:

- object keys must be strings and are emitted in code point order
- compact separators, UTF-8 output, non-ASCII left unescaped
- ``bytes`` become lowercase hex strings
- tuples encode like lists; order is preserved
- floats are refused: an amount must be an int (or a decimal string)
"""

import json
from typing import Any


def _normalize(value: Any, path: str = "$") -> Any:
    if value is None or isinstance(value, (bool, str)):
        return value
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        raise ValueError(f"{path}: floats have no canonical form; use int or str")
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).hex()
    if isinstance(value, dict):
        out = {}
        for key in sorted(value, key=_require_str_key(path)):
            out[key] = _normalize(value[key], f"{path}.{key}")
        return out
    if isinstance(value, (list, tuple)):
        return [_normalize(item, f"{path}[{i}]") for i, item in enumerate(value)]
    raise ValueError(f"{path}: cannot canonicalize {type(value).__name__}")


def _require_str_key(path: str):
    def check(key: Any) -> str:
        if not isinstance(key, str):
            raise ValueError(f"{path}: object keys must be strings, got {type(key).__name__}")
        return key
    return check


def canonicalize(obj: Any) -> bytes:
    """Canonical JSON bytes of ``obj``."""
    return json.dumps(_normalize(obj), separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def canonicalize_str(obj: Any) -> str:
    return canonicalize(obj).decode("utf-8")
