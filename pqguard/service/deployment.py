"""
Deployment wiring for the pqguard service.

A deployment file describes which guards are active and their key
material. Every section is optional:

    {
      "deployment_id": "vault-01",
      "one_time": {"public_key": {"zeros": [...], "ones": [...]}},
      "merkle": {"root": "<hex>", "leaf_binding": "LAMPORT_VERIFIED"},
      "hybrid": {"identity": "vault-01/hybrid", "owner": "<hex>", "commitment": "<hex>"},
      "rotation": {"current_key": "<hex>", "guardians": ["<hex>", ...],
                   "rotation_delay": 86400}
    }
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from .. import config
from ..action import ActionExecutor, LoggingExecutor
from ..audit import AuditLog, InMemoryAuditLog
from ..hybrid import HybridAuthorizer
from ..lamport import LamportPublicKey
from ..merkle import LeafBinding, MerkleKeyRegistry
from ..onetime import OneTimeKeyStore
from ..rotation import KeyRotationController
from ..used_set import create_used_set
from ..util import hex_to_bytes, now_epoch
from .auth import OperatorAuthenticator


@dataclass
class Deployment:
    deployment_id: str
    authenticator: OperatorAuthenticator
    audit_log: AuditLog = field(default_factory=InMemoryAuditLog)
    one_time: Optional[OneTimeKeyStore] = None
    merkle: Optional[MerkleKeyRegistry] = None
    hybrid: Optional[HybridAuthorizer] = None
    rotation: Optional[KeyRotationController] = None

    def status(self) -> Dict[str, Any]:
        return {
            "deployment_id": self.deployment_id,
            "one_time": self.one_time is not None,
            "merkle": self.merkle is not None,
            "hybrid": self.hybrid is not None,
            "rotation": self.rotation is not None,
        }


def build_deployment(
    data: Dict[str, Any],
    executor: Optional[ActionExecutor] = None,
    backend: Optional[str] = None,
    db_path: Optional[str] = None,
    **rotation_kwargs
) -> Deployment:
    """
    Build a Deployment from its JSON description.

    ``rotation_kwargs`` are passed to KeyRotationController (e.g. ``clock``).
    """
    executor = executor or LoggingExecutor()
    backend = backend or config.USED_SET_BACKEND
    db_path = db_path or config.DB_PATH
    deployment_id = data.get("deployment_id")
    if not deployment_id:
        raise ValueError("deployment_id required")

    def used_set(name: str):
        return create_used_set(backend, db_path, namespace=f"{deployment_id}/{name}")

    audit_log = InMemoryAuditLog()
    authenticator = OperatorAuthenticator(
        audience=deployment_id,
        max_skew_seconds=config.MAX_CLOCK_SKEW_SECONDS,
        clock=rotation_kwargs.get("clock") or now_epoch,
        seen=used_set("operator"),
    )
    dep = Deployment(deployment_id=deployment_id, authenticator=authenticator, audit_log=audit_log)

    if "one_time" in data:
        dep.one_time = OneTimeKeyStore(
            LamportPublicKey.from_dict(data["one_time"]["public_key"]),
            executor,
            used_set=used_set("one_time"),
            audit_log=audit_log,
        )

    if "merkle" in data:
        section = data["merkle"]
        dep.merkle = MerkleKeyRegistry(
            hex_to_bytes(section["root"], 32),
            executor,
            used_set=used_set("merkle"),
            used_leaves=used_set("merkle_leaves"),
            leaf_binding=LeafBinding(section.get("leaf_binding", LeafBinding.LAMPORT_VERIFIED.value)),
            audit_log=audit_log,
        )

    if "hybrid" in data:
        section = data["hybrid"]
        dep.hybrid = HybridAuthorizer(
            identity=section.get("identity", f"{deployment_id}/hybrid"),
            owner=section["owner"],
            commitment=hex_to_bytes(section["commitment"], 32),
            executor=executor,
            audit_log=audit_log,
        )

    if "rotation" in data:
        section = data["rotation"]
        dep.rotation = KeyRotationController(
            current_key=section["current_key"],
            guardians=section["guardians"],
            rotation_delay=int(section.get("rotation_delay", config.ROTATION_DELAY)),
            executor=executor if section.get("dispatch_payloads") else None,
            audit_log=audit_log,
            **rotation_kwargs,
        )

    return dep


def load_configured_deployment() -> Deployment:
    """Build the deployment described at ``config.DEPLOYMENT_PATH``."""
    return build_deployment(config.load_deployment())
