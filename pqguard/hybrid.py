"""
pqguard Hybrid Authorizer

Two independent proof obligations guard the executor: a classical
signature from the owner, and the reveal of a secret matching a hash
commitment. The commitment slot is where a stronger post-quantum proof can
be swapped in later without touching the dispatch path.

This path has no replay protection. The owner's signature over an action
digest authorizes that action for as long as the commitment stands.
"""

import threading
from typing import Any, Dict, Optional

from .action import Action, ActionExecutor, dispatch
from .audit import AuditLog, AuditRecord, RecordKind
from .errors import AuthorizationDenied, CommitmentMismatch, ExecutionFailed
from .guard import Guard
from .hashing import DIGEST_SIZE, hash256
from .logging_config import AuditLogger
from .signing import ClassicalSignature, Ed25519Recovery, SignatureRecovery
from .util import constant_time_compare


def make_commitment(secret: bytes) -> bytes:
    """PQ commitment to a secret preimage."""
    return hash256(secret)


class HybridAuthorizer(Guard):
    """
    Owner identity plus a mutable PQ commitment.

    ``identity`` names this authorizer instance; every digest is bound to it
    so a signature for one instance cannot be replayed against another.
    """

    kind = "hybrid"

    def __init__(
        self,
        identity: str,
        owner: str,
        commitment: bytes,
        executor: ActionExecutor,
        recovery: Optional[SignatureRecovery] = None,
        audit_log: Optional[AuditLog] = None,
        audit_logger: Optional[AuditLogger] = None
    ):
        super().__init__(audit_log, audit_logger)
        if not identity:
            raise ValueError("identity must not be empty")
        if len(commitment) != DIGEST_SIZE:
            raise ValueError(f"commitment must be {DIGEST_SIZE} bytes")
        self._identity = identity
        self._owner = owner
        self._commitment = bytes(commitment)
        self._executor = executor
        self._recovery = recovery or Ed25519Recovery()
        self._lock = threading.RLock()

    @property
    def identity(self) -> str:
        return self._identity

    @property
    def owner(self) -> str:
        return self._owner

    @property
    def commitment(self) -> bytes:
        return self._commitment

    def digest_for(self, action: Action) -> bytes:
        """The digest the owner must sign to authorize ``action`` here."""
        return action.bound_digest(self._identity)

    def execute(
        self,
        action: Action,
        classical_signature: ClassicalSignature,
        secret_preimage: bytes
    ) -> AuditRecord:
        """
        Raises:
            AuthorizationDenied: recovered signer is not the owner
            CommitmentMismatch: secret does not open the commitment
            ExecutionFailed: executor failed
        """
        digest = self.digest_for(action)

        with self._lock:
            signer = self._recovery.recover(digest, classical_signature)
            if signer is None or signer != self._owner:
                self._reject(AuthorizationDenied("signer is not the owner", digest=digest))
            if not constant_time_compare(hash256(secret_preimage), self._commitment):
                self._reject(CommitmentMismatch("secret does not match commitment", digest=digest))

        try:
            dispatch(self._executor, action, digest)
        except ExecutionFailed as e:
            self._reject(e)

        self._events.guarded_execution(
            self.kind, signer, digest=digest.hex(),
            destination=action.destination, value=action.value
        )
        return self._emit(AuditRecord(
            kind=RecordKind.HYBRID_EXECUTED,
            actor=signer,
            parameters=action.to_dict(),
            digest=digest,
        ))

    def update_commitment(self, caller: str, new_commitment: bytes) -> AuditRecord:
        """Owner-only. Takes effect immediately."""
        with self._lock:
            if caller != self._owner:
                self._reject(AuthorizationDenied("only the owner may update the commitment"))
            if len(new_commitment) != DIGEST_SIZE:
                raise ValueError(f"commitment must be {DIGEST_SIZE} bytes")
            self._commitment = bytes(new_commitment)

        self._events.commitment_updated(caller, new_commitment.hex())
        return self._emit(AuditRecord(
            kind=RecordKind.COMMITMENT_UPDATED,
            actor=caller,
            parameters={"commitment": new_commitment.hex()},
        ))

    def to_dict(self) -> Dict[str, Any]:
        """Persisted state: owner and commitment."""
        return {
            "identity": self._identity,
            "owner": self._owner,
            "commitment": self._commitment.hex(),
        }
