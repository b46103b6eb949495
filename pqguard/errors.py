"""
pqguard rejection taxonomy.

Every rejection is terminal and synchronous: the operation aborts with no
state change, except ExecutionFailed, which is raised after the one-time
usage mark has already been committed.
"""

from enum import Enum
from typing import Any, Dict, Optional


class RejectionCode(str, Enum):
    """Distinct, observable outcome of a rejected operation."""
    REPLAY_REJECTED = "REPLAY_REJECTED"
    SIGNATURE_INVALID = "SIGNATURE_INVALID"
    PROOF_INVALID = "PROOF_INVALID"
    COMMITMENT_MISMATCH = "COMMITMENT_MISMATCH"
    AUTHORIZATION_DENIED = "AUTHORIZATION_DENIED"
    STATE_INVALID = "STATE_INVALID"
    EXECUTION_FAILED = "EXECUTION_FAILED"


class GuardError(Exception):
    """Base class for all guarded-operation rejections."""

    code: RejectionCode

    def __init__(self, details: str = "", digest: Optional[bytes] = None):
        self.details = details
        self.digest = digest
        message = self.code.value if not details else f"{self.code.value}: {details}"
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code.value,
            "details": self.details,
            "digest": self.digest.hex() if self.digest else None,
        }


class ReplayRejected(GuardError):
    """The digest (or one-time leaf) has already been consumed."""
    code = RejectionCode.REPLAY_REJECTED


class SignatureInvalid(GuardError):
    """A Lamport signature did not verify against its public key."""
    code = RejectionCode.SIGNATURE_INVALID


class ProofInvalid(GuardError):
    """A Merkle inclusion proof did not reconstruct the registry root."""
    code = RejectionCode.PROOF_INVALID


class CommitmentMismatch(GuardError):
    """A revealed secret does not hash to the stored commitment."""
    code = RejectionCode.COMMITMENT_MISMATCH


class AuthorizationDenied(GuardError):
    """The recovered signer or caller is not authorized."""
    code = RejectionCode.AUTHORIZATION_DENIED


class StateInvalid(GuardError):
    """The operation is not allowed in the current state."""
    code = RejectionCode.STATE_INVALID


class ExecutionFailed(GuardError):
    """The delegated action failed. The usage mark is not rolled back."""
    code = RejectionCode.EXECUTION_FAILED
