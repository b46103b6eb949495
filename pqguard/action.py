"""
pqguard Guarded Actions

An action is the parameterized operation a guard protects:
``(destination, value, payload)``. Performing it is delegated to an
external ActionExecutor, an untrusted collaborator that may call back
into the guard. Every guard commits its state before delegating.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict

from .errors import ExecutionFailed
from .hashing import content_hash

logger = logging.getLogger(__name__)

# Destination used when a guard dispatches a bare payload to its own account
SELF_DESTINATION = "self"


@dataclass(frozen=True)
class Action:
    """A guarded action. Immutable once constructed."""
    destination: str
    value: int
    payload: bytes = b""

    def __post_init__(self):
        if not isinstance(self.destination, str):
            raise ValueError("destination must be a string")
        if isinstance(self.value, bool) or not isinstance(self.value, int) or self.value < 0:
            raise ValueError("value must be a non-negative integer")
        if not isinstance(self.payload, (bytes, bytearray)):
            raise ValueError("payload must be bytes")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "destination": self.destination,
            "value": self.value,
            "payload": bytes(self.payload).hex(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Action':
        required = ["destination", "value"]
        missing = [f for f in required if f not in data]
        if missing:
            raise ValueError(f"Missing required fields: {missing}")
        payload = data.get("payload") or ""
        if not isinstance(payload, str):
            raise ValueError("payload must be a hex string")
        if payload.startswith("0x"):
            payload = payload[2:]
        return cls(
            destination=data["destination"],
            value=int(data["value"]),
            payload=bytes.fromhex(payload),
        )

    def digest(self) -> bytes:
        """Canonical message digest; doubles as the replay key."""
        return content_hash(self.to_dict())

    def bound_digest(self, authorizer_id: str) -> bytes:
        """Digest bound to one authorizer instance to prevent cross-instance replay."""
        return content_hash({"authorizer": authorizer_id, "action": self.to_dict()})


class ActionExecutor(ABC):
    """External collaborator that performs a delegated action."""

    @abstractmethod
    def perform(self, destination: str, value: int, payload: bytes) -> bool:
        """
        Perform the action.

        Returns:
            True on success, False on failure
        """
        pass


class CallableExecutor(ActionExecutor):
    """Adapts a plain function ``fn(destination, value, payload) -> bool``."""

    def __init__(self, fn: Callable[[str, int, bytes], bool]):
        self._fn = fn

    def perform(self, destination: str, value: int, payload: bytes) -> bool:
        return bool(self._fn(destination, value, payload))


class LoggingExecutor(ActionExecutor):
    """
    Executor that only logs the delegated action and reports success.

    Used by the HTTP service when no real executor is wired in.
    """

    def perform(self, destination: str, value: int, payload: bytes) -> bool:
        logger.info(
            "delegated action destination=%s value=%d payload_len=%d",
            destination, value, len(payload)
        )
        return True


def dispatch(executor: ActionExecutor, action: Action, digest: bytes) -> None:
    """
    Delegate an action whose usage mark is already committed.

    Any failure is fatal to the operation and surfaces as ExecutionFailed.
    Nothing is rolled back.
    """
    try:
        ok = executor.perform(action.destination, action.value, bytes(action.payload))
    except Exception as e:
        raise ExecutionFailed(f"executor raised {type(e).__name__}: {e}", digest=digest) from e
    if not ok:
        raise ExecutionFailed("executor reported failure", digest=digest)
