import pytest
from fastapi.testclient import TestClient

from pqguard import ClassicalKeyPair, generate_keypair, make_commitment, merkle_root
from pqguard.service import create_app
from pqguard.service.deployment import build_deployment

from helpers import FakeClock


class Keys:
    """Key material for one test deployment."""

    def __init__(self):
        self.owner = ClassicalKeyPair.generate()
        self.guardian = ClassicalKeyPair.generate()
        self.standing = ClassicalKeyPair.generate()
        self.successor = ClassicalKeyPair.generate()
        self.one_time = generate_keypair()
        self.merkle = [generate_keypair() for _ in range(4)]
        self.merkle_leaves = [pk.leaf_hash() for _, pk in self.merkle]
        self.secret = b"hybrid-secret"


@pytest.fixture
def keys():
    return Keys()


@pytest.fixture
def clock():
    return FakeClock(1_700_000_000)


@pytest.fixture
def deployment(keys, clock):
    data = {
        "deployment_id": "vault-test",
        "one_time": {"public_key": keys.one_time[1].to_dict()},
        "merkle": {"root": merkle_root(keys.merkle_leaves).hex()},
        "hybrid": {
            "owner": keys.owner.identity,
            "commitment": make_commitment(keys.secret).hex(),
        },
        "rotation": {
            "current_key": keys.standing.identity,
            "guardians": [keys.guardian.identity],
            "rotation_delay": 100,
        },
    }
    return build_deployment(data, backend="memory", clock=clock)


@pytest.fixture
def client(deployment):
    return TestClient(create_app(deployment))
