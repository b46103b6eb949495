"""
pqguard Audit Records

Each successful guarded operation emits an immutable record
``{kind, actor, parameters, digest}``. Records are purely observational:
the core never reads them back to make a decision.
"""

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


class RecordKind:
    """Audit record kinds."""
    ONE_TIME_EXECUTED = "ONE_TIME_EXECUTED"
    MERKLE_EXECUTED = "MERKLE_EXECUTED"
    HYBRID_EXECUTED = "HYBRID_EXECUTED"
    COMMITMENT_UPDATED = "COMMITMENT_UPDATED"
    ROTATION_PROPOSED = "ROTATION_PROPOSED"
    ROTATION_FINALIZED = "ROTATION_FINALIZED"
    FROZEN = "FROZEN"
    UNFROZEN = "UNFROZEN"
    PROTECTED_ACTION = "PROTECTED_ACTION"


@dataclass(frozen=True)
class AuditRecord:
    """Immutable record of a successful guarded operation."""
    kind: str
    actor: str
    parameters: Dict[str, Any]
    digest: Optional[bytes] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "actor": self.actor,
            "parameters": dict(self.parameters),
            "digest": self.digest.hex() if self.digest else None,
            "timestamp": self.timestamp.isoformat().replace("+00:00", "Z"),
        }


class AuditLog(ABC):
    """Abstract sink for audit records."""

    @abstractmethod
    def record(self, audit_record: AuditRecord):
        """Append a record."""
        pass

    @abstractmethod
    def query(
        self,
        kind: Optional[str] = None,
        actor: Optional[str] = None,
        start_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None
    ) -> List[AuditRecord]:
        """Query records."""
        pass


class InMemoryAuditLog(AuditLog):
    """
    In-memory audit log for development/testing.

    Bounded: the oldest records are dropped past ``max_records``.
    """

    def __init__(self, max_records: int = 10000):
        self._records: List[AuditRecord] = []
        self._lock = threading.Lock()
        self._max_records = max_records

    def record(self, audit_record: AuditRecord):
        with self._lock:
            self._records.append(audit_record)
            if len(self._records) > self._max_records:
                self._records = self._records[-self._max_records:]

    def query(
        self,
        kind: Optional[str] = None,
        actor: Optional[str] = None,
        start_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None
    ) -> List[AuditRecord]:
        with self._lock:
            records = self._records[:]

        if kind:
            records = [r for r in records if r.kind == kind]
        if actor:
            records = [r for r in records if r.actor == actor]
        if start_time:
            records = [r for r in records if r.timestamp >= start_time]
        if end_time:
            records = [r for r in records if r.timestamp <= end_time]

        return records

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
