"""
pqguard Merkle Key Registry

Aggregates many one-time Lamport public keys under a single Merkle root.

Canonical commitment rules:
1. Leaf hashing: H(LamportPublicKey.to_bytes())
2. Parent hashing: H(min(a, b) || max(a, b)), ordered numerically
   (big-endian), so the result does not depend on which node sits "left"
3. Padding: an unpaired last node is promoted to the next level unchanged
4. Single leaf: root = leaf

The root is fixed at construction. There is no root-rotation operation.
"""

import threading
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from .action import Action, ActionExecutor, dispatch
from .audit import AuditLog, AuditRecord, RecordKind
from .errors import ExecutionFailed, ProofInvalid, ReplayRejected, SignatureInvalid
from .guard import Guard
from .hashing import DIGEST_SIZE, hash256
from .lamport import LamportPublicKey, LamportSignature, verify
from .logging_config import AuditLogger
from .used_set import InMemoryUsedSet, UsedSet


def combine(a: bytes, b: bytes) -> bytes:
    """Hash two nodes, numerically smaller first."""
    if a <= b:
        return hash256(a + b)
    return hash256(b + a)


def merkle_root(leaves: Sequence[bytes]) -> bytes:
    """Compute the root over an ordered list of leaf hashes."""
    if not leaves:
        raise ValueError("cannot build a Merkle tree with no leaves")
    level = [bytes(leaf) for leaf in leaves]
    while len(level) > 1:
        level = _next_level(level)
    return level[0]


def merkle_proof(leaves: Sequence[bytes], index: int) -> List[bytes]:
    """Sibling hashes from leaf ``index`` up to the root."""
    if not 0 <= index < len(leaves):
        raise IndexError(f"leaf index out of range: {index}")
    proof: List[bytes] = []
    level = [bytes(leaf) for leaf in leaves]
    while len(level) > 1:
        sibling = index ^ 1
        if sibling < len(level):
            proof.append(level[sibling])
        level = _next_level(level)
        index //= 2
    return proof


def _next_level(level: List[bytes]) -> List[bytes]:
    nxt = [combine(level[i], level[i + 1]) for i in range(0, len(level) - 1, 2)]
    if len(level) % 2:
        nxt.append(level[-1])
    return nxt


def compute_root(leaf: bytes, proof: Sequence[bytes]) -> bytes:
    """Fold a proof from a leaf, one sibling at a time."""
    node = bytes(leaf)
    for sibling in proof:
        node = combine(node, bytes(sibling))
    return node


def verify_inclusion(leaf: bytes, proof: Sequence[bytes], root: bytes) -> bool:
    return compute_root(leaf, proof) == root


class LeafBinding(str, Enum):
    """
    How a registry binds the revealed signature to the proven leaf.

    INCLUSION_ONLY treats leaf inclusion alone as sufficient authorization:
    the Lamport signature is not checked against the key the leaf commits to.

    LAMPORT_VERIFIED requires the raw public key alongside the proof, checks
    that it hashes to the leaf, verifies the signature against it and
    consumes the leaf so the one-time key cannot sign again.
    """
    INCLUSION_ONLY = "INCLUSION_ONLY"
    LAMPORT_VERIFIED = "LAMPORT_VERIFIED"


class MerkleKeyRegistry(Guard):
    """
    Immutable Merkle root plus a used set keyed by digest.

    Under LAMPORT_VERIFIED a second used set tracks consumed leaves.
    """

    kind = "merkle"

    def __init__(
        self,
        root: bytes,
        executor: ActionExecutor,
        used_set: Optional[UsedSet] = None,
        leaf_binding: LeafBinding = LeafBinding.LAMPORT_VERIFIED,
        used_leaves: Optional[UsedSet] = None,
        audit_log: Optional[AuditLog] = None,
        audit_logger: Optional[AuditLogger] = None
    ):
        super().__init__(audit_log, audit_logger)
        if len(root) != DIGEST_SIZE:
            raise ValueError(f"root must be {DIGEST_SIZE} bytes, got {len(root)}")
        self._root = bytes(root)
        self._executor = executor
        self._used = used_set if used_set is not None else InMemoryUsedSet()
        self._used_leaves = used_leaves if used_leaves is not None else InMemoryUsedSet()
        self._binding = LeafBinding(leaf_binding)
        self._lock = threading.RLock()

    @classmethod
    def from_public_keys(
        cls,
        public_keys: Sequence[LamportPublicKey],
        executor: ActionExecutor,
        **kwargs
    ) -> 'MerkleKeyRegistry':
        return cls(merkle_root([pk.leaf_hash() for pk in public_keys]), executor, **kwargs)

    @property
    def root(self) -> bytes:
        return self._root

    @property
    def leaf_binding(self) -> LeafBinding:
        return self._binding

    def is_used(self, digest: bytes) -> bool:
        return self._used.is_used(digest)

    def execute(
        self,
        action: Action,
        signature: Optional[LamportSignature],
        leaf_hash: bytes,
        proof: Sequence[bytes],
        public_key: Optional[LamportPublicKey] = None
    ) -> AuditRecord:
        """
        Check replay, prove inclusion, bind the leaf, consume and delegate.

        Raises:
            ReplayRejected: digest (or leaf) already consumed
            ProofInvalid: proof does not reach the root, or the supplied
                public key is not the key the leaf commits to
            SignatureInvalid: signature does not verify against the leaf key
            ExecutionFailed: executor failed; consumption is not rolled back
        """
        digest = action.digest()
        leaf_hash = bytes(leaf_hash)

        with self._lock:
            if self._used.is_used(digest):
                self._reject(ReplayRejected("digest already used", digest=digest))
            if not verify_inclusion(leaf_hash, proof, self._root):
                self._reject(ProofInvalid("proof does not reconstruct root", digest=digest))

            if self._binding is LeafBinding.LAMPORT_VERIFIED:
                if public_key is None or signature is None:
                    self._reject(SignatureInvalid("public key and signature required", digest=digest))
                if public_key.leaf_hash() != leaf_hash:
                    self._reject(ProofInvalid("public key does not match leaf", digest=digest))
                if self._used_leaves.is_used(leaf_hash):
                    self._reject(ReplayRejected("one-time leaf already consumed", digest=digest))
                if not verify(digest, signature, public_key):
                    self._reject(SignatureInvalid("lamport signature mismatch", digest=digest))

            if not self._used.mark_used(digest):
                self._reject(ReplayRejected("digest already used", digest=digest))
            if self._binding is LeafBinding.LAMPORT_VERIFIED:
                self._used_leaves.mark_used(leaf_hash)

        try:
            dispatch(self._executor, action, digest)
        except ExecutionFailed as e:
            self._reject(e)

        self._events.guarded_execution(
            self.kind, leaf_hash.hex(), digest=digest.hex(),
            destination=action.destination, value=action.value
        )
        return self._emit(AuditRecord(
            kind=RecordKind.MERKLE_EXECUTED,
            actor=leaf_hash.hex(),
            parameters={**action.to_dict(), "proof_length": len(proof)},
            digest=digest,
        ))

    def to_dict(self) -> Dict[str, Any]:
        """Persisted state: root, binding policy and used sets."""
        return {
            "root": self._root.hex(),
            "leaf_binding": self._binding.value,
            "used": [d.hex() for d in self._used.keys()],
            "used_leaves": [leaf.hex() for leaf in self._used_leaves.keys()],
        }
