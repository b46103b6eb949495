"""
pqguard Reference Implementation

Version: 0.1.0
License: Apache 2.0

Authorization core for accounts that must resist both classical and
quantum-capable forgery during a cryptographic transition period.

A guarded action ``(destination, value, payload)`` is delegated to an
external executor only after one of these schemes accepts it:

- OneTimeKeyStore: a single Lamport one-time signature
- MerkleKeyRegistry: many Lamport keys aggregated under one Merkle root
- HybridAuthorizer: a classical signature plus a committed-secret reveal
- KeyRotationController: a guardian-rotated standing key with a freeze switch

Invariants: no forgery, no replay, no premature rotation, no action while
frozen.

Usage:
    from pqguard import Action, OneTimeKeyStore, CallableExecutor, generate_keypair

    private_key, public_key = generate_keypair()
    store = OneTimeKeyStore(public_key, CallableExecutor(bank.transfer))

    action = Action(destination="acct-42", value=1000, payload=b"")
    record = store.execute(action, private_key.sign(action.digest()))

    store.execute(action, private_key.sign(action.digest()))  # ReplayRejected
"""

__version__ = "0.1.0"
__license__ = "Apache-2.0"

# Hashing and encoding
from .canonicalization import canonicalize, canonicalize_str
from .hashing import (
    DIGEST_SIZE,
    SIGNED_DIGEST_PREFIX,
    hash256,
    hash_hex,
    content_hash,
    signed_digest,
    digest_bit,
)

# Errors
from .errors import (
    RejectionCode,
    GuardError,
    ReplayRejected,
    SignatureInvalid,
    ProofInvalid,
    CommitmentMismatch,
    AuthorizationDenied,
    StateInvalid,
    ExecutionFailed,
)

# Actions and audit
from .action import (
    Action,
    ActionExecutor,
    CallableExecutor,
    LoggingExecutor,
    SELF_DESTINATION,
)
from .audit import AuditRecord, AuditLog, InMemoryAuditLog, RecordKind
from .used_set import UsedSet, InMemoryUsedSet, SqliteUsedSet, create_used_set

# Lamport
from .lamport import (
    LamportPublicKey,
    LamportPrivateKey,
    LamportSignature,
    KeyReuseError,
    generate_keypair,
    verify,
)

# Classical signatures
from .signing import (
    ClassicalSignature,
    ClassicalKeyPair,
    SignatureRecovery,
    Ed25519Recovery,
    identity_of,
    sign_digest,
)

# Guards
from .onetime import OneTimeKeyStore
from .merkle import (
    MerkleKeyRegistry,
    LeafBinding,
    combine,
    merkle_root,
    merkle_proof,
    compute_root,
    verify_inclusion,
)
from .hybrid import HybridAuthorizer, make_commitment
from .rotation import KeyRotationController, RotationProposal, RotationState, protected_digest


__all__ = [
    "__version__",

    # Hashing
    "canonicalize",
    "canonicalize_str",
    "DIGEST_SIZE",
    "SIGNED_DIGEST_PREFIX",
    "hash256",
    "hash_hex",
    "content_hash",
    "signed_digest",
    "digest_bit",

    # Errors
    "RejectionCode",
    "GuardError",
    "ReplayRejected",
    "SignatureInvalid",
    "ProofInvalid",
    "CommitmentMismatch",
    "AuthorizationDenied",
    "StateInvalid",
    "ExecutionFailed",

    # Actions
    "Action",
    "ActionExecutor",
    "CallableExecutor",
    "LoggingExecutor",
    "SELF_DESTINATION",
    "AuditRecord",
    "AuditLog",
    "InMemoryAuditLog",
    "RecordKind",
    "UsedSet",
    "InMemoryUsedSet",
    "SqliteUsedSet",
    "create_used_set",

    # Lamport
    "LamportPublicKey",
    "LamportPrivateKey",
    "LamportSignature",
    "KeyReuseError",
    "generate_keypair",
    "verify",

    # Classical
    "ClassicalSignature",
    "ClassicalKeyPair",
    "SignatureRecovery",
    "Ed25519Recovery",
    "identity_of",
    "sign_digest",

    # Guards
    "OneTimeKeyStore",
    "MerkleKeyRegistry",
    "LeafBinding",
    "combine",
    "merkle_root",
    "merkle_proof",
    "compute_root",
    "verify_inclusion",
    "HybridAuthorizer",
    "make_commitment",
    "KeyRotationController",
    "RotationProposal",
    "RotationState",
    "protected_digest",
]
