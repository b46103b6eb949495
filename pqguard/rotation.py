"""
pqguard Key Rotation Controller

Guardian-driven, time-delayed rotation of a standing classical key, plus
an emergency freeze.

States: IDLE (no pending proposal) and PROPOSED, crossed with an
orthogonal frozen flag. Initial state: IDLE, unfrozen.

    propose(K)  IDLE|PROPOSED -> PROPOSED   (overwrites any pending proposal)
    finalize()  PROPOSED -> IDLE            (only once now >= proposed_at + delay)
    freeze() / unfreeze()                   (idempotent, independent of rotation)

Any single guardian may propose, finalize, freeze or unfreeze. There is no
quorum. The delay is a minimum dwell time, not an expiry: a proposal never
lapses and has no cancel operation, it can only be superseded.
"""

import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, Iterable, Optional

from .action import SELF_DESTINATION, Action, ActionExecutor, dispatch
from .audit import AuditLog, AuditRecord, RecordKind
from .errors import AuthorizationDenied, ExecutionFailed, StateInvalid
from .guard import Guard
from .hashing import content_hash
from .logging_config import AuditLogger
from .signing import ClassicalSignature, Ed25519Recovery, SignatureRecovery
from .util import now_epoch


def protected_digest(payload: bytes) -> bytes:
    """
    Digest the current key signs to authorize ``payload``.

    The payload is wrapped in a tagged object, so a signature made for a
    hybrid authorization or an operator message never verifies here.
    """
    return content_hash({"protected_payload": bytes(payload)})


class RotationState(str, Enum):
    IDLE = "IDLE"
    PROPOSED = "PROPOSED"


@dataclass(frozen=True)
class RotationProposal:
    proposed_key: str
    proposed_at: int

    def to_dict(self) -> Dict[str, Any]:
        return {"proposed_key": self.proposed_key, "proposed_at": self.proposed_at}


class KeyRotationController(Guard):
    """
    Rotation/freeze state machine guarding actions signed by the current key.

    Args:
        current_key: identity of the standing classical key
        guardians: identities allowed to drive rotation and freeze
        rotation_delay: minimum seconds between propose and finalize
        clock: returns the current time in epoch seconds
        executor: optional; receives payloads of authenticated actions
    """

    kind = "rotation"

    def __init__(
        self,
        current_key: str,
        guardians: Iterable[str],
        rotation_delay: int,
        recovery: Optional[SignatureRecovery] = None,
        clock: Callable[[], int] = now_epoch,
        executor: Optional[ActionExecutor] = None,
        audit_log: Optional[AuditLog] = None,
        audit_logger: Optional[AuditLogger] = None
    ):
        super().__init__(audit_log, audit_logger)
        guardian_set = frozenset(guardians)
        if not guardian_set:
            raise ValueError("at least one guardian is required")
        if rotation_delay < 0:
            raise ValueError("rotation_delay must be non-negative")
        self._current_key = current_key
        self._guardians: FrozenSet[str] = guardian_set
        self._delay = int(rotation_delay)
        self._recovery = recovery or Ed25519Recovery()
        self._clock = clock
        self._executor = executor
        self._proposal: Optional[RotationProposal] = None
        self._frozen = False
        self._lock = threading.RLock()

    # -- queries --------------------------------------------------------

    @property
    def current_key(self) -> str:
        return self._current_key

    @property
    def guardians(self) -> FrozenSet[str]:
        return self._guardians

    @property
    def rotation_delay(self) -> int:
        return self._delay

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def pending_proposal(self) -> Optional[RotationProposal]:
        return self._proposal

    @property
    def state(self) -> RotationState:
        return RotationState.PROPOSED if self._proposal else RotationState.IDLE

    def is_guardian(self, identity: str) -> bool:
        return identity in self._guardians

    # -- guardian operations -------------------------------------------

    def _require_guardian(self, caller: str) -> None:
        if caller not in self._guardians:
            self._reject(AuthorizationDenied(f"caller is not a guardian: {caller}"))

    def propose(self, caller: str, new_key: str) -> AuditRecord:
        with self._lock:
            self._require_guardian(caller)
            if not new_key:
                raise ValueError("new_key must not be empty")
            self._proposal = RotationProposal(proposed_key=new_key, proposed_at=int(self._clock()))
            proposal = self._proposal

        self._events.rotation_proposed(caller, new_key, proposal.proposed_at)
        return self._emit(AuditRecord(
            kind=RecordKind.ROTATION_PROPOSED,
            actor=caller,
            parameters=proposal.to_dict(),
        ))

    def finalize(self, caller: str) -> AuditRecord:
        with self._lock:
            self._require_guardian(caller)
            proposal = self._proposal
            if proposal is None:
                self._reject(StateInvalid("no pending proposal"))
            if int(self._clock()) < proposal.proposed_at + self._delay:
                self._reject(StateInvalid("delay not elapsed"))
            old_key = self._current_key
            self._current_key = proposal.proposed_key
            self._proposal = None

        self._events.rotation_finalized(caller, old_key, proposal.proposed_key)
        return self._emit(AuditRecord(
            kind=RecordKind.ROTATION_FINALIZED,
            actor=caller,
            parameters={"old_key": old_key, "new_key": proposal.proposed_key},
        ))

    def freeze(self, caller: str) -> AuditRecord:
        return self._set_frozen(caller, True)

    def unfreeze(self, caller: str) -> AuditRecord:
        return self._set_frozen(caller, False)

    def _set_frozen(self, caller: str, frozen: bool) -> AuditRecord:
        with self._lock:
            self._require_guardian(caller)
            self._frozen = frozen

        self._events.freeze_changed(caller, frozen)
        return self._emit(AuditRecord(
            kind=RecordKind.FROZEN if frozen else RecordKind.UNFROZEN,
            actor=caller,
            parameters={"frozen": frozen},
        ))

    # -- guarded action ------------------------------------------------

    def protected_action(self, payload: bytes, classical_signature: ClassicalSignature) -> AuditRecord:
        """
        Authenticate ``payload`` against the current key.

        No replay protection: this authenticates a standing key, not a
        one-time key.

        Raises:
            StateInvalid: controller is frozen
            AuthorizationDenied: signer is not the current key
            ExecutionFailed: configured executor failed
        """
        payload = bytes(payload)
        digest = protected_digest(payload)

        with self._lock:
            if self._frozen:
                self._reject(StateInvalid("frozen", digest=digest))
            signer = self._recovery.recover(digest, classical_signature)
            if signer is None or signer != self._current_key:
                self._reject(AuthorizationDenied("signer is not the current key", digest=digest))

        if self._executor is not None:
            try:
                dispatch(self._executor, Action(SELF_DESTINATION, 0, payload), digest)
            except ExecutionFailed as e:
                self._reject(e)

        self._events.guarded_execution(self.kind, signer, digest=digest.hex())
        return self._emit(AuditRecord(
            kind=RecordKind.PROTECTED_ACTION,
            actor=signer,
            parameters={"payload": payload.hex()},
            digest=digest,
        ))

    def to_dict(self) -> Dict[str, Any]:
        """Persisted state."""
        with self._lock:
            return {
                "current_key": self._current_key,
                "guardians": sorted(self._guardians),
                "rotation_delay": self._delay,
                "proposal": self._proposal.to_dict() if self._proposal else None,
                "frozen": self._frozen,
            }
