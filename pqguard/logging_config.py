"""
Logging configuration for pqguard.

Every guard decision is written to the ``pqguard.audit`` logger as one
JSON line carrying an ``event_type`` and the fields of that event, so an
accept or a rejection can be traced by digest across guards.
"""

import json
import logging
import sys
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional, TextIO

# Request ID of the HTTP call being served, if any
_request_id: ContextVar[str] = ContextVar("pqguard_request_id", default="")

EVENT_LEVELS = {
    "GUARDED_EXECUTION": logging.INFO,
    "COMMITMENT_UPDATED": logging.INFO,
    "ROTATION_PROPOSED": logging.WARNING,
    "ROTATION_FINALIZED": logging.WARNING,
}

SEVERITY_LEVELS = {
    "low": logging.INFO,
    "medium": logging.WARNING,
    "high": logging.ERROR,
    "critical": logging.CRITICAL,
}


class StructuredFormatter(logging.Formatter):
    """
    One JSON object per record.

    Event fields attached by AuditLogger are merged at the top level.
    """

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        entry: Dict[str, Any] = {
            "ts": created.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        rid = getattr(record, "request_id", None) or _request_id.get()
        if rid:
            entry["request_id"] = rid
        entry.update(getattr(record, "event", None) or {})
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str, sort_keys=True)


class AuditLogger:
    """
    Typed security events for guards and the service.

    The persistent record of what was executed is the AuditLog; this is the
    operational trail, including rejections, which the AuditLog never sees.
    """

    def __init__(self, name: str = "pqguard.audit"):
        self._logger = logging.getLogger(name)

    def _event(self, level: int, event_type: str, message: str, **fields) -> None:
        if not self._logger.isEnabledFor(level):
            return
        event = {"event_type": event_type, **{k: v for k, v in fields.items() if v is not None}}
        self._logger.log(
            level,
            "%s: %s", event_type, message,
            extra={"event": event, "request_id": _request_id.get()},
        )

    def guarded_execution(
        self,
        kind: str,
        actor: str,
        digest: Optional[str] = None,
        destination: Optional[str] = None,
        value: Optional[int] = None
    ) -> None:
        """An action passed its guard and was delegated."""
        self._event(
            EVENT_LEVELS["GUARDED_EXECUTION"], "GUARDED_EXECUTION", f"{kind} executed by {actor}",
            kind=kind, actor=actor, digest=digest, destination=destination, value=value,
        )

    def rejected(self, kind: str, code: str, details: str = "", digest: Optional[str] = None) -> None:
        # Executor failures have already consumed the digest
        level = logging.ERROR if code == "EXECUTION_FAILED" else logging.WARNING
        self._event(
            level, "REJECTED", f"{kind} rejected: {code}",
            kind=kind, code=code, details=details, digest=digest,
        )

    def rotation_proposed(self, guardian: str, proposed_key: str, proposed_at: int) -> None:
        self._event(
            EVENT_LEVELS["ROTATION_PROPOSED"], "ROTATION_PROPOSED", f"rotation proposed by {guardian}",
            guardian=guardian, proposed_key=proposed_key, proposed_at=proposed_at,
        )

    def rotation_finalized(self, guardian: str, old_key: str, new_key: str) -> None:
        self._event(
            EVENT_LEVELS["ROTATION_FINALIZED"], "ROTATION_FINALIZED", f"rotation finalized by {guardian}",
            guardian=guardian, old_key=old_key, new_key=new_key,
        )

    def freeze_changed(self, guardian: str, frozen: bool) -> None:
        self._event(
            logging.CRITICAL if frozen else logging.WARNING,
            "FREEZE_CHANGED",
            f"{'frozen' if frozen else 'unfrozen'} by {guardian}",
            guardian=guardian, frozen=frozen,
        )

    def commitment_updated(self, owner: str, commitment: str) -> None:
        self._event(
            EVENT_LEVELS["COMMITMENT_UPDATED"], "COMMITMENT_UPDATED", f"commitment replaced by {owner}",
            owner=owner, commitment=commitment,
        )

    def security_event(self, event: str, severity: str = "medium", **details) -> None:
        self._event(
            SEVERITY_LEVELS.get(severity, logging.WARNING),
            "SECURITY_EVENT",
            event,
            security_event=event, severity=severity, **details,
        )


def configure_logging(
    level: str = "INFO",
    json_format: bool = True,
    log_file: Optional[str] = None,
    stream: Optional[TextIO] = None
) -> None:
    """
    Install handlers on the ``pqguard`` logger tree.

    Calling again replaces the handlers installed by a previous call.
    """
    package_logger = logging.getLogger("pqguard")
    package_logger.setLevel(level.upper())
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()

    if json_format:
        formatter: logging.Formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s %(levelname)-8s %(name)s %(message)s")

    handlers = [logging.StreamHandler(stream or sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    for handler in handlers:
        handler.setFormatter(formatter)
        package_logger.addHandler(handler)
    package_logger.propagate = False


def set_request_id(request_id: Optional[str] = None) -> str:
    """Bind a request ID (generated if absent) to the current context."""
    rid = request_id or uuid.uuid4().hex
    _request_id.set(rid)
    return rid


def get_request_id() -> str:
    return _request_id.get()


audit_events = AuditLogger()
