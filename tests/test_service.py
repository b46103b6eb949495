import logging

import pytest

from pqguard import Action, make_commitment, merkle_proof, protected_digest
from pqguard.service import operation_digest

AUDIENCE = "vault-test"


def action_json(value=500, destination="acct-7", payload=""):
    return {"destination": destination, "value": value, "payload": payload}


def signed(pair, operation, params, issued_at):
    digest = operation_digest(AUDIENCE, operation, params, issued_at)
    return {"issued_at": issued_at, "signature": pair.sign_digest(digest).to_dict()}


def lamport_sig(private_key, action):
    return private_key.sign(Action.from_dict(action).digest()).to_list()


def test_health_reports_components(client):
    r = client.get("/health")
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "ok"
    assert body["deployment_id"] == AUDIENCE
    assert body["one_time"] and body["merkle"] and body["hybrid"] and body["rotation"]


def test_request_id_echoed(client):
    r = client.get("/health", headers={"x-request-id": "req-123"})
    assert r.headers["x-request-id"] == "req-123"


# One-time: execute once, replay -> 409
def test_onetime_execute_then_replay(client, keys):
    private_key, _ = keys.one_time
    action = action_json()
    body = {"action": action, "signature": lamport_sig(private_key, action)}

    r1 = client.post("/onetime/execute", json=body)
    assert r1.status_code == 200
    assert r1.json()["kind"] == "ONE_TIME_EXECUTED"

    r2 = client.post("/onetime/execute", json=body)
    assert r2.status_code == 409
    assert r2.json()["code"] == "REPLAY_REJECTED"


def test_onetime_bad_signature(client, keys):
    private_key, _ = keys.one_time
    signature = lamport_sig(private_key, action_json(value=1))
    r = client.post("/onetime/execute", json={"action": action_json(value=2), "signature": signature})
    assert r.status_code == 403
    assert r.json()["code"] == "SIGNATURE_INVALID"


def test_malformed_signature_is_422(client):
    r = client.post("/onetime/execute", json={"action": action_json(), "signature": ["00"]})
    assert r.status_code == 422
    assert r.json()["code"] == "MALFORMED"


def test_negative_value_rejected_by_model(client, keys):
    r = client.post("/onetime/execute", json={"action": action_json(value=-1), "signature": []})
    assert r.status_code == 422


# Merkle: leaf proof + lamport binding
def test_merkle_execute(client, keys):
    private_key, public_key = keys.merkle[2]
    action = action_json(destination="acct-m")
    body = {
        "action": action,
        "leaf_hash": keys.merkle_leaves[2].hex(),
        "proof": [p.hex() for p in merkle_proof(keys.merkle_leaves, 2)],
        "signature": lamport_sig(private_key, action),
        "public_key": public_key.to_dict(),
    }
    r = client.post("/merkle/execute", json=body)
    assert r.status_code == 200
    assert r.json()["parameters"]["proof_length"] == 2

    r2 = client.post("/merkle/execute", json=body)
    assert r2.status_code == 409


def test_merkle_bad_proof(client, keys):
    private_key, public_key = keys.merkle[0]
    action = action_json()
    body = {
        "action": action,
        "leaf_hash": keys.merkle_leaves[0].hex(),
        "proof": [p.hex() for p in merkle_proof(keys.merkle_leaves, 3)],
        "signature": lamport_sig(private_key, action),
        "public_key": public_key.to_dict(),
    }
    r = client.post("/merkle/execute", json=body)
    assert r.status_code == 403
    assert r.json()["code"] == "PROOF_INVALID"


# Hybrid: signature + secret; owner-signed commitment update
def test_hybrid_execute_and_mismatch(client, keys, deployment):
    action = action_json(value=9)
    digest = deployment.hybrid.digest_for(Action.from_dict(action))
    signature = keys.owner.sign_digest(digest).to_dict()

    r = client.post("/hybrid/execute", json={
        "action": action, "signature": signature, "secret": keys.secret.hex()
    })
    assert r.status_code == 200
    assert r.json()["actor"] == keys.owner.identity

    r = client.post("/hybrid/execute", json={
        "action": action, "signature": signature, "secret": b"nope".hex()
    })
    assert r.status_code == 403
    assert r.json()["code"] == "COMMITMENT_MISMATCH"


def test_hybrid_commitment_update_owner_only(client, keys, clock, deployment):
    new_commitment = make_commitment(b"next").hex()
    params = {"commitment": new_commitment}

    body = {"commitment": new_commitment, **signed(keys.guardian, "hybrid.update_commitment", params, clock.now)}
    r = client.post("/hybrid/commitment", json=body)
    assert r.status_code == 403

    body = {"commitment": new_commitment, **signed(keys.owner, "hybrid.update_commitment", params, clock.now)}
    r = client.post("/hybrid/commitment", json=body)
    assert r.status_code == 200
    assert deployment.hybrid.commitment.hex() == new_commitment

    # Captured message cannot be replayed
    r = client.post("/hybrid/commitment", json=body)
    assert r.status_code == 409


def test_hybrid_commitment_non_owner_denied_before_length_check(client, keys, clock):
    params = {"commitment": "abcd"}
    body = {"commitment": "abcd", **signed(keys.guardian, "hybrid.update_commitment", params, clock.now)}
    r = client.post("/hybrid/commitment", json=body)
    assert r.status_code == 403
    assert r.json()["code"] == "AUTHORIZATION_DENIED"


# Rotation: propose, early finalize -> 423, finalize after delay
def test_rotation_lifecycle(client, keys, clock):
    params = {"new_key": keys.successor.identity}
    r = client.post("/rotation/propose", json={
        "new_key": keys.successor.identity,
        **signed(keys.guardian, "rotation.propose", params, clock.now),
    })
    assert r.status_code == 200
    assert client.get("/rotation/state").json()["state"] == "PROPOSED"

    clock.now += 50
    r = client.post("/rotation/finalize", json=signed(keys.guardian, "rotation.finalize", {}, clock.now))
    assert r.status_code == 423
    assert r.json()["code"] == "STATE_INVALID"

    clock.now += 50
    r = client.post("/rotation/finalize", json=signed(keys.guardian, "rotation.finalize", {}, clock.now))
    assert r.status_code == 200

    state = client.get("/rotation/state").json()
    assert state["state"] == "IDLE"
    assert state["current_key"] == keys.successor.identity


def test_non_guardian_cannot_freeze(client, keys, clock):
    r = client.post("/rotation/freeze", json=signed(keys.owner, "rotation.freeze", {}, clock.now))
    assert r.status_code == 403
    assert r.json()["code"] == "AUTHORIZATION_DENIED"


class _Collector(logging.Handler):

    def __init__(self):
        super().__init__(logging.DEBUG)
        self.records = []

    def emit(self, record):
        self.records.append(record)


@pytest.fixture
def security_events():
    audit_logger = logging.getLogger("pqguard.audit")
    handler = _Collector()
    audit_logger.addHandler(handler)
    try:
        yield lambda: [
            r.event for r in handler.records
            if getattr(r, "event", {}).get("event_type") == "SECURITY_EVENT"
        ]
    finally:
        audit_logger.removeHandler(handler)


def test_freeze_security_event_only_on_success(client, keys, clock, security_events):
    r = client.post("/rotation/freeze", json=signed(keys.owner, "rotation.freeze", {}, clock.now))
    assert r.status_code == 403
    assert security_events() == []

    r = client.post("/rotation/freeze", json=signed(keys.guardian, "rotation.freeze", {}, clock.now))
    assert r.status_code == 200
    events = security_events()
    assert len(events) == 1
    assert events[0]["security_event"] == "frozen"
    assert events[0]["guardian"] == keys.guardian.identity


def test_stale_operator_message(client, keys, clock):
    r = client.post("/rotation/freeze", json=signed(keys.guardian, "rotation.freeze", {}, clock.now - 1000))
    assert r.status_code == 403


def test_freeze_blocks_protected_action(client, keys, clock):
    payload = b"rebalance"
    body = {"payload": payload.hex(), "signature": keys.standing.sign_digest(protected_digest(payload)).to_dict()}

    assert client.post("/rotation/protected", json=body).status_code == 200

    r = client.post("/rotation/freeze", json=signed(keys.guardian, "rotation.freeze", {}, clock.now))
    assert r.status_code == 200
    r = client.post("/rotation/protected", json=body)
    assert r.status_code == 423

    r = client.post("/rotation/unfreeze", json=signed(keys.guardian, "rotation.unfreeze", {}, clock.now))
    assert r.status_code == 200
    assert client.post("/rotation/protected", json=body).status_code == 200


def test_audit_query(client, keys):
    private_key, _ = keys.one_time
    action = action_json()
    client.post("/onetime/execute", json={"action": action, "signature": lamport_sig(private_key, action)})

    records = client.get("/audit", params={"kind": "ONE_TIME_EXECUTED"}).json()
    assert len(records) == 1
    assert records[0]["parameters"]["value"] == 500
    assert client.get("/audit", params={"kind": "FROZEN"}).json() == []


def test_unconfigured_component_is_404(keys, clock):
    from fastapi.testclient import TestClient
    from pqguard.service import build_deployment, create_app

    dep = build_deployment({"deployment_id": "bare"}, backend="memory", clock=clock)
    client = TestClient(create_app(dep))
    r = client.get("/rotation/state")
    assert r.status_code == 404
    assert r.json()["detail"] == "ROTATION_NOT_CONFIGURED"
