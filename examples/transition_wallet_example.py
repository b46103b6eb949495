#!/usr/bin/env python3
"""
pqguard Example - Guarding a Treasury Account Through a Transition

Walks one account through every guard:
1. A Lamport one-time key authorizes a single payout
2. A Merkle registry of one-time keys authorizes a batch
3. The hybrid authorizer requires the owner's signature AND a secret
4. Guardians rotate the standing key and freeze it during an incident

Run with: python examples/transition_wallet_example.py
"""

from typing import List, Tuple

from pqguard import (
    Action,
    CallableExecutor,
    ClassicalKeyPair,
    GuardError,
    HybridAuthorizer,
    KeyRotationController,
    MerkleKeyRegistry,
    OneTimeKeyStore,
    generate_keypair,
    make_commitment,
    merkle_proof,
    protected_digest,
)
from pqguard.logging_config import configure_logging


class Ledger:
    """Stand-in for the system that actually moves funds."""

    def __init__(self):
        self.transfers: List[Tuple[str, int]] = []

    def transfer(self, destination: str, value: int, payload: bytes) -> bool:
        self.transfers.append((destination, value))
        print(f"    ledger: {value} -> {destination}")
        return True


def attempt(label: str, fn) -> None:
    try:
        record = fn()
        print(f"  ✓ {label}: {record.kind}")
    except GuardError as e:
        print(f"  ✗ {label}: {e.code.value} ({e.details})")


def one_time_demo(executor) -> None:
    print("\n[1] One-time key")
    private_key, public_key = generate_keypair()
    store = OneTimeKeyStore(public_key, executor)

    payout = Action(destination="supplier-17", value=25_000, payload=b"invoice-2291")
    signature = private_key.sign(payout.digest())

    attempt("payout", lambda: store.execute(payout, signature))
    attempt("replayed payout", lambda: store.execute(payout, signature))


def merkle_demo(executor) -> None:
    print("\n[2] Merkle key registry")
    keys = [generate_keypair() for _ in range(4)]
    leaves = [pk.leaf_hash() for _, pk in keys]
    registry = MerkleKeyRegistry.from_public_keys([pk for _, pk in keys], executor)
    print(f"  root: {registry.root.hex()[:16]}...")

    for i, (private_key, public_key) in enumerate(keys[:2]):
        action = Action(destination=f"payroll-{i}", value=3_000)
        attempt(f"batch item {i}", lambda: registry.execute(
            action, private_key.sign(action.digest()), leaves[i],
            merkle_proof(leaves, i), public_key,
        ))


def hybrid_demo(executor) -> None:
    print("\n[3] Hybrid authorizer")
    owner = ClassicalKeyPair.generate()
    secret = b"transition-secret-2026"
    hybrid = HybridAuthorizer(
        identity="treasury/hybrid",
        owner=owner.identity,
        commitment=make_commitment(secret),
        executor=executor,
    )
    action = Action(destination="cold-storage", value=1_000_000)
    signature = owner.sign_digest(hybrid.digest_for(action))

    attempt("signature without secret", lambda: hybrid.execute(action, signature, b"guess"))
    attempt("signature with secret", lambda: hybrid.execute(action, signature, secret))


def rotation_demo(executor) -> None:
    print("\n[4] Guardian rotation and freeze")
    now = [1_000]
    standing = ClassicalKeyPair.generate()
    successor = ClassicalKeyPair.generate()
    controller = KeyRotationController(
        current_key=standing.identity,
        guardians=["guardian-a", "guardian-b"],
        rotation_delay=86_400,
        clock=lambda: now[0],
        executor=executor,
    )
    payload = b"sweep-fees"

    attempt("protected action", lambda: controller.protected_action(
        payload, standing.sign_digest(protected_digest(payload))))

    attempt("freeze", lambda: controller.freeze("guardian-a"))
    attempt("protected action while frozen", lambda: controller.protected_action(
        payload, standing.sign_digest(protected_digest(payload))))
    attempt("unfreeze", lambda: controller.unfreeze("guardian-b"))

    attempt("propose successor", lambda: controller.propose("guardian-a", successor.identity))
    attempt("finalize immediately", lambda: controller.finalize("guardian-b"))
    now[0] += 86_400
    attempt("finalize after delay", lambda: controller.finalize("guardian-b"))
    attempt("old key after rotation", lambda: controller.protected_action(
        payload, standing.sign_digest(protected_digest(payload))))


def main():
    configure_logging(level="WARNING", json_format=False)
    ledger = Ledger()
    executor = CallableExecutor(ledger.transfer)

    print("=" * 60)
    print("pqguard transition wallet")
    print("=" * 60)

    one_time_demo(executor)
    merkle_demo(executor)
    hybrid_demo(executor)
    rotation_demo(executor)

    print(f"\nLedger transfers: {len(ledger.transfers)}")


if __name__ == "__main__":
    main()
