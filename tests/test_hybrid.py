"""
Hybrid Authorizer Test Suite

Two independent proof obligations: owner signature AND secret reveal.
"""

import unittest

from pqguard import (
    Action,
    AuthorizationDenied,
    ClassicalKeyPair,
    CommitmentMismatch,
    ExecutionFailed,
    HybridAuthorizer,
    RecordKind,
    make_commitment,
)

from helpers import RecordingExecutor


class TestHybridAuthorizer(unittest.TestCase):

    def setUp(self):
        self.owner = ClassicalKeyPair.generate()
        self.secret = b"pq-secret-v1"
        self.executor = RecordingExecutor()
        self.hybrid = HybridAuthorizer(
            identity="vault-a",
            owner=self.owner.identity,
            commitment=make_commitment(self.secret),
            executor=self.executor,
        )
        self.action = Action(destination="acct-3", value=77, payload=b"memo")

    def _sign(self, hybrid=None, action=None, signer=None):
        hybrid = hybrid or self.hybrid
        signer = signer or self.owner
        return signer.sign_digest(hybrid.digest_for(action or self.action))

    def test_both_factors_execute(self):
        record = self.hybrid.execute(self.action, self._sign(), self.secret)
        self.assertEqual(self.executor.calls, [("acct-3", 77, b"memo")])
        self.assertEqual(record.kind, RecordKind.HYBRID_EXECUTED)
        self.assertEqual(record.actor, self.owner.identity)

    def test_non_owner_signature_denied(self):
        stranger = ClassicalKeyPair.generate()
        with self.assertRaises(AuthorizationDenied):
            self.hybrid.execute(self.action, self._sign(signer=stranger), self.secret)
        self.assertEqual(self.executor.calls, [])

    def test_signature_over_other_action_denied(self):
        other = Action(destination="acct-3", value=78, payload=b"memo")
        with self.assertRaises(AuthorizationDenied):
            self.hybrid.execute(self.action, self._sign(action=other), self.secret)

    def test_wrong_secret_mismatch(self):
        with self.assertRaises(CommitmentMismatch):
            self.hybrid.execute(self.action, self._sign(), b"wrong")
        self.assertEqual(self.executor.calls, [])

    def test_signature_bound_to_instance(self):
        """A signature for one authorizer cannot be replayed on another."""
        other = HybridAuthorizer(
            identity="vault-b",
            owner=self.owner.identity,
            commitment=make_commitment(self.secret),
            executor=self.executor,
        )
        with self.assertRaises(AuthorizationDenied):
            other.execute(self.action, self._sign(hybrid=self.hybrid), self.secret)

    def test_no_replay_protection_on_hybrid_path(self):
        signature = self._sign()
        self.hybrid.execute(self.action, signature, self.secret)
        self.hybrid.execute(self.action, signature, self.secret)
        self.assertEqual(len(self.executor.calls), 2)

    def test_owner_updates_commitment_immediately(self):
        new_secret = b"pq-secret-v2"
        record = self.hybrid.update_commitment(self.owner.identity, make_commitment(new_secret))
        self.assertEqual(record.kind, RecordKind.COMMITMENT_UPDATED)

        with self.assertRaises(CommitmentMismatch):
            self.hybrid.execute(self.action, self._sign(), self.secret)
        self.hybrid.execute(self.action, self._sign(), new_secret)

    def test_non_owner_cannot_update_commitment(self):
        before = self.hybrid.commitment
        with self.assertRaises(AuthorizationDenied):
            self.hybrid.update_commitment("someone-else", make_commitment(b"x"))
        self.assertEqual(self.hybrid.commitment, before)

    def test_non_owner_with_malformed_commitment_denied(self):
        with self.assertRaises(AuthorizationDenied):
            self.hybrid.update_commitment("someone-else", b"short")

    def test_owner_with_malformed_commitment_rejected(self):
        before = self.hybrid.commitment
        with self.assertRaises(ValueError):
            self.hybrid.update_commitment(self.owner.identity, b"short")
        self.assertEqual(self.hybrid.commitment, before)

    def test_execution_failure_surfaces(self):
        self.executor.succeed = False
        with self.assertRaises(ExecutionFailed):
            self.hybrid.execute(self.action, self._sign(), self.secret)

    def test_persisted_state(self):
        self.assertEqual(self.hybrid.to_dict(), {
            "identity": "vault-a",
            "owner": self.owner.identity,
            "commitment": make_commitment(self.secret).hex(),
        })


if __name__ == "__main__":
    unittest.main()
