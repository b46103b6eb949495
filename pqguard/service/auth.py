"""
Operator authentication for the pqguard service.

Guardian and owner operations carry an Ed25519 signature over a canonical
operation message:

    {"audience": <deployment id>, "operation": <name>,
     "params": {...}, "issued_at": <epoch seconds>}

Messages outside the clock-skew window, or already seen, are rejected.
A replayed "unfreeze" must never undo a later freeze.
"""

from typing import Any, Callable, Dict, Optional

from ..errors import AuthorizationDenied, ReplayRejected
from ..hashing import content_hash, hash256
from ..signing import ClassicalSignature, Ed25519Recovery, SignatureRecovery
from ..used_set import InMemoryUsedSet, UsedSet
from ..util import now_epoch


def operation_digest(audience: str, operation: str, params: Dict[str, Any], issued_at: int) -> bytes:
    """Digest an operator signs to authorize ``operation``."""
    return content_hash({
        "audience": audience,
        "operation": operation,
        "params": params,
        "issued_at": int(issued_at),
    })


class OperatorAuthenticator:
    """Recovers the caller identity of a signed operator message."""

    def __init__(
        self,
        audience: str,
        max_skew_seconds: int,
        recovery: Optional[SignatureRecovery] = None,
        clock: Callable[[], int] = now_epoch,
        seen: Optional[UsedSet] = None
    ):
        self.audience = audience
        self._max_skew = max_skew_seconds
        self._recovery = recovery or Ed25519Recovery()
        self._clock = clock
        self._seen = seen if seen is not None else InMemoryUsedSet()

    def authenticate(
        self,
        operation: str,
        params: Dict[str, Any],
        issued_at: int,
        signature: ClassicalSignature
    ) -> str:
        """
        Raises:
            AuthorizationDenied: stale message or signature does not verify
            ReplayRejected: message already used
        """
        if abs(int(self._clock()) - int(issued_at)) > self._max_skew:
            raise AuthorizationDenied("operator message outside clock skew window")
        digest = operation_digest(self.audience, operation, params, issued_at)
        signer = self._recovery.recover(digest, signature)
        if signer is None:
            raise AuthorizationDenied("operator signature invalid", digest=digest)
        # Replay key covers the signer as well as the message
        if not self._seen.mark_used(hash256(digest + signature.verify_key)):
            raise ReplayRejected("operator message already used", digest=digest)
        return signer
