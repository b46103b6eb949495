"""
Shared plumbing for the guards: audit emission and rejection reporting.

Every rejection is logged and re-raised. Nothing is swallowed.
"""

from typing import NoReturn, Optional

from .audit import AuditLog, AuditRecord, InMemoryAuditLog
from .errors import GuardError
from .logging_config import AuditLogger, audit_events


class Guard:
    """Base class for components that guard entry into an ActionExecutor."""

    kind = "guard"

    def __init__(
        self,
        audit_log: Optional[AuditLog] = None,
        audit_logger: Optional[AuditLogger] = None
    ):
        self.audit_log = audit_log if audit_log is not None else InMemoryAuditLog()
        self._events = audit_logger or audit_events

    def _emit(self, record: AuditRecord) -> AuditRecord:
        self.audit_log.record(record)
        return record

    def _reject(self, error: GuardError) -> NoReturn:
        self._events.rejected(
            self.kind,
            error.code.value,
            details=error.details,
            digest=error.digest.hex() if error.digest else None,
        )
        raise error
