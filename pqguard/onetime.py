"""
pqguard One-Time Key Store

Guards an executor behind a single Lamport public key. Each message digest
is accepted at most once.

Ordering invariant: the digest is inserted into the used set BEFORE the
action is delegated, so a reentrant call from the executor observes the
digest as used and is rejected as replay.
"""

import threading
from typing import Any, Dict, Optional

from .action import Action, ActionExecutor, dispatch
from .audit import AuditLog, AuditRecord, RecordKind
from .errors import ExecutionFailed, ReplayRejected, SignatureInvalid
from .guard import Guard
from .lamport import LamportPublicKey, LamportSignature, verify
from .logging_config import AuditLogger
from .used_set import InMemoryUsedSet, UsedSet


class OneTimeKeyStore(Guard):
    """
    One immutable LamportPublicKey plus its used set.

    Usage:
        store = OneTimeKeyStore(public_key, executor)
        record = store.execute(action, private_key.sign(action.digest()))
    """

    kind = "one_time"

    def __init__(
        self,
        public_key: LamportPublicKey,
        executor: ActionExecutor,
        used_set: Optional[UsedSet] = None,
        audit_log: Optional[AuditLog] = None,
        audit_logger: Optional[AuditLogger] = None
    ):
        super().__init__(audit_log, audit_logger)
        self._public_key = public_key
        self._executor = executor
        self._used = used_set if used_set is not None else InMemoryUsedSet()
        self._lock = threading.RLock()

    @property
    def public_key(self) -> LamportPublicKey:
        return self._public_key

    def is_used(self, digest: bytes) -> bool:
        return self._used.is_used(digest)

    def execute(self, action: Action, signature: LamportSignature) -> AuditRecord:
        """
        Verify, consume and delegate.

        Raises:
            ReplayRejected: digest already consumed
            SignatureInvalid: signature does not verify
            ExecutionFailed: executor failed; the digest stays consumed
        """
        digest = action.digest()

        with self._lock:
            if self._used.is_used(digest):
                self._reject(ReplayRejected("digest already used", digest=digest))
            if not verify(digest, signature, self._public_key):
                self._reject(SignatureInvalid("lamport signature mismatch", digest=digest))
            if not self._used.mark_used(digest):
                self._reject(ReplayRejected("digest already used", digest=digest))

        try:
            dispatch(self._executor, action, digest)
        except ExecutionFailed as e:
            self._reject(e)

        self._events.guarded_execution(
            self.kind, "lamport", digest=digest.hex(),
            destination=action.destination, value=action.value
        )
        return self._emit(AuditRecord(
            kind=RecordKind.ONE_TIME_EXECUTED,
            actor=self._public_key.leaf_hash().hex(),
            parameters=action.to_dict(),
            digest=digest,
        ))

    def to_dict(self) -> Dict[str, Any]:
        """Persisted state: public key and used set."""
        return {
            "public_key": self._public_key.to_dict(),
            "used": [d.hex() for d in self._used.keys()],
        }
