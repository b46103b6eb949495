"""
pqguard Adversarial Attack Simulation Suite

Each test is a concrete attack against a guard. Tests are designed to
FAIL if the defense is inadequate.

Attackers modelled:
- A malicious executor that calls back into the guard
- An observer who captured a valid signature
- A key holder trying to stretch a one-time key over two messages
- A stale or replayed operator message
- A signature captured in one role and replayed in another
"""

import unittest

from pqguard import (
    Action,
    ActionExecutor,
    AuthorizationDenied,
    ClassicalKeyPair,
    CommitmentMismatch,
    ExecutionFailed,
    HybridAuthorizer,
    KeyReuseError,
    KeyRotationController,
    LamportSignature,
    MerkleKeyRegistry,
    OneTimeKeyStore,
    ProofInvalid,
    RejectionCode,
    ReplayRejected,
    SignatureInvalid,
    StateInvalid,
    canonicalize,
    generate_keypair,
    make_commitment,
    merkle_proof,
    protected_digest,
)
from pqguard.service.auth import OperatorAuthenticator, operation_digest


class ReentrantExecutor(ActionExecutor):
    """Calls ``reenter`` from inside perform and records what it raised."""

    def __init__(self):
        self.reenter = None
        self.inner_errors = []
        self.calls = 0

    def perform(self, destination, value, payload):
        self.calls += 1
        if self.reenter is not None and self.calls == 1:
            try:
                self.reenter()
            except Exception as e:
                self.inner_errors.append(e)
        return True


class TestReentrancyAttacks(unittest.TestCase):
    """
    Attack Vector: executor re-enters the guard with the same authorization.

    Defense: usage mark committed before dispatch.
    """

    def test_onetime_reentry_rejected_as_replay(self):
        private_key, public_key = generate_keypair()
        executor = ReentrantExecutor()
        store = OneTimeKeyStore(public_key, executor)
        action = Action(destination="attacker", value=10 ** 6)
        signature = private_key.sign(action.digest())

        executor.reenter = lambda: store.execute(action, signature)
        store.execute(action, signature)

        self.assertEqual(executor.calls, 1)
        self.assertEqual(len(executor.inner_errors), 1)
        self.assertIsInstance(executor.inner_errors[0], ReplayRejected)

    def test_merkle_reentry_rejected_as_replay(self):
        keys = [generate_keypair() for _ in range(3)]
        leaves = [pk.leaf_hash() for _, pk in keys]
        executor = ReentrantExecutor()
        registry = MerkleKeyRegistry.from_public_keys([pk for _, pk in keys], executor)
        action = Action(destination="attacker", value=5)
        private_key, public_key = keys[1]
        args = (action, private_key.sign(action.digest()), leaves[1], merkle_proof(leaves, 1), public_key)

        executor.reenter = lambda: registry.execute(*args)
        registry.execute(*args)

        self.assertEqual(executor.calls, 1)
        self.assertIsInstance(executor.inner_errors[0], ReplayRejected)

    def test_failed_reentrant_dispatch_still_burns_digest(self):
        private_key, public_key = generate_keypair()

        class Exploding(ActionExecutor):
            def perform(self, destination, value, payload):
                raise RuntimeError("revert")

        store = OneTimeKeyStore(public_key, Exploding())
        action = Action(destination="x", value=1)
        signature = private_key.sign(action.digest())
        with self.assertRaises(ExecutionFailed):
            store.execute(action, signature)
        with self.assertRaises(ReplayRejected):
            store.execute(action, signature)


class TestForgeryAttacks(unittest.TestCase):
    """
    Attack Vector: reuse revealed preimages to authorize a different action.
    """

    def setUp(self):
        self.private_key, self.public_key = generate_keypair()
        self.executor = ReentrantExecutor()
        self.store = OneTimeKeyStore(self.public_key, self.executor)
        self.action = Action(destination="acct-1", value=100)
        self.signature = self.private_key.sign(self.action.digest())

    def test_captured_signature_on_modified_action(self):
        tampered = Action(destination="acct-1", value=101)
        with self.assertRaises(SignatureInvalid):
            self.store.execute(tampered, self.signature)
        self.assertEqual(self.executor.calls, 0)

    def test_private_key_refuses_second_message(self):
        with self.assertRaises(KeyReuseError):
            self.private_key.sign(Action(destination="acct-2", value=100).digest())

    def test_truncated_signature_rejected_at_construction(self):
        with self.assertRaises(ValueError):
            LamportSignature(tuple(self.signature.preimages[:255]))

    def test_merkle_leaf_from_foreign_tree(self):
        tree_a = [generate_keypair() for _ in range(2)]
        tree_b = [generate_keypair() for _ in range(2)]
        leaves_b = [pk.leaf_hash() for _, pk in tree_b]
        registry = MerkleKeyRegistry.from_public_keys([pk for _, pk in tree_a], self.executor)

        private_key, public_key = tree_b[0]
        with self.assertRaises(ProofInvalid):
            registry.execute(
                self.action, private_key.sign(self.action.digest()),
                leaves_b[0], merkle_proof(leaves_b, 0), public_key,
            )


class TestHybridAttacks(unittest.TestCase):
    """
    Attack Vector: a quantum adversary forges the classical signature but
    does not know the committed secret, or the owner's key is stolen.
    """

    def setUp(self):
        self.owner = ClassicalKeyPair.generate()
        self.executor = ReentrantExecutor()
        self.hybrid = HybridAuthorizer(
            identity="vault",
            owner=self.owner.identity,
            commitment=make_commitment(b"s3cret"),
            executor=self.executor,
        )
        self.action = Action(destination="attacker", value=1)

    def test_valid_signature_without_secret(self):
        signature = self.owner.sign_digest(self.hybrid.digest_for(self.action))
        with self.assertRaises(CommitmentMismatch) as ctx:
            self.hybrid.execute(self.action, signature, b"guess")
        self.assertEqual(ctx.exception.code, RejectionCode.COMMITMENT_MISMATCH)
        self.assertEqual(self.executor.calls, 0)

    def test_signature_over_unbound_digest(self):
        """Signing the bare action digest does not authorize anything."""
        signature = self.owner.sign_digest(self.action.digest())
        with self.assertRaises(AuthorizationDenied):
            self.hybrid.execute(self.action, signature, b"s3cret")

    def test_attacker_cannot_rotate_commitment(self):
        attacker = ClassicalKeyPair.generate()
        with self.assertRaises(AuthorizationDenied):
            self.hybrid.update_commitment(attacker.identity, make_commitment(b"mine"))


class TestFreezeAttacks(unittest.TestCase):
    """
    Attack Vector: compromised standing key races guardians.

    Defense: freeze blocks protected actions regardless of signature.
    """

    def setUp(self):
        self.now = [1000]
        self.key = ClassicalKeyPair.generate()
        self.controller = KeyRotationController(
            current_key=self.key.identity,
            guardians=["G1", "G2"],
            rotation_delay=3600,
            clock=lambda: self.now[0],
        )

    def test_stolen_key_blocked_after_freeze(self):
        self.controller.freeze("G2")
        with self.assertRaises(StateInvalid):
            self.controller.protected_action(b"drain", self.key.sign_digest(protected_digest(b"drain")))

    def test_malicious_proposal_cannot_be_finalized_early(self):
        attacker_key = ClassicalKeyPair.generate()
        self.controller.propose("G1", attacker_key.identity)
        self.now[0] += 3599
        with self.assertRaises(StateInvalid):
            self.controller.finalize("G1")

    def test_honest_guardian_supersedes_malicious_proposal(self):
        attacker_key = ClassicalKeyPair.generate()
        self.controller.propose("G1", attacker_key.identity)
        self.now[0] += 1800
        self.controller.propose("G2", self.key.identity)
        self.now[0] += 1800
        with self.assertRaises(StateInvalid):
            self.controller.finalize("G1")
        self.assertEqual(self.controller.current_key, self.key.identity)


class TestOperatorMessageAttacks(unittest.TestCase):
    """
    Attack Vector: replay a captured guardian "unfreeze" after a re-freeze.
    """

    def setUp(self):
        self.now = [5000]
        self.guardian = ClassicalKeyPair.generate()
        self.auth = OperatorAuthenticator(
            audience="vault-01", max_skew_seconds=300, clock=lambda: self.now[0]
        )

    def _signed(self, operation, issued_at, audience="vault-01"):
        return self.guardian.sign_digest(operation_digest(audience, operation, {}, issued_at))

    def test_replayed_message_rejected(self):
        signature = self._signed("rotation.unfreeze", 5000)
        self.assertEqual(
            self.auth.authenticate("rotation.unfreeze", {}, 5000, signature),
            self.guardian.identity,
        )
        with self.assertRaises(ReplayRejected):
            self.auth.authenticate("rotation.unfreeze", {}, 5000, signature)

    def test_stale_message_rejected(self):
        signature = self._signed("rotation.unfreeze", 4000)
        with self.assertRaises(AuthorizationDenied):
            self.auth.authenticate("rotation.unfreeze", {}, 4000, signature)

    def test_message_for_other_deployment_rejected(self):
        signature = self._signed("rotation.freeze", 5000, audience="vault-02")
        with self.assertRaises(AuthorizationDenied):
            self.auth.authenticate("rotation.freeze", {}, 5000, signature)

    def test_operation_substitution_rejected(self):
        signature = self._signed("rotation.freeze", 5000)
        with self.assertRaises(AuthorizationDenied):
            self.auth.authenticate("rotation.unfreeze", {}, 5000, signature)


class TestCrossDomainSignatureAttacks(unittest.TestCase):
    """
    Attack Vector: one key serves two roles, e.g. hybrid owner and standing
    key, or guardian and standing key. A signature captured in one role is
    replayed as a protected action, with the signed message as payload.

    Defense: protected actions sign a tagged digest of the payload.
    """

    def setUp(self):
        self.key = ClassicalKeyPair.generate()
        self.executor = ReentrantExecutor()
        self.controller = KeyRotationController(
            current_key=self.key.identity,
            guardians=[self.key.identity],
            rotation_delay=3600,
            clock=lambda: 5000,
            executor=self.executor,
        )
        self.hybrid_executor = ReentrantExecutor()
        self.hybrid = HybridAuthorizer(
            identity="vault",
            owner=self.key.identity,
            commitment=make_commitment(b"s3cret"),
            executor=self.hybrid_executor,
        )

    def test_hybrid_signature_rejected_as_protected_action(self):
        action = Action(destination="attacker", value=10**6)
        signature = self.key.sign_digest(self.hybrid.digest_for(action))
        payload = canonicalize({"authorizer": self.hybrid.identity, "action": action.to_dict()})

        with self.assertRaises(AuthorizationDenied):
            self.controller.protected_action(payload, signature)
        self.assertEqual(self.executor.calls, 0)

    def test_operator_signature_rejected_as_protected_action(self):
        signature = self.key.sign_digest(operation_digest("vault-01", "rotation.freeze", {}, 5000))
        payload = canonicalize({
            "audience": "vault-01",
            "operation": "rotation.freeze",
            "params": {},
            "issued_at": 5000,
        })

        with self.assertRaises(AuthorizationDenied):
            self.controller.protected_action(payload, signature)
        self.assertEqual(self.executor.calls, 0)

    def test_protected_signature_rejected_by_hybrid(self):
        action = Action(destination="attacker", value=1)
        payload = canonicalize({"authorizer": self.hybrid.identity, "action": action.to_dict()})
        signature = self.key.sign_digest(protected_digest(payload))

        self.controller.protected_action(payload, signature)
        with self.assertRaises(AuthorizationDenied):
            self.hybrid.execute(action, signature, b"s3cret")
        self.assertEqual(self.hybrid_executor.calls, 0)


if __name__ == "__main__":
    unittest.main()
