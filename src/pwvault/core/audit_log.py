# Core - Audit Trail
#
# Append-only, size-bounded record of vault authentication and lifecycle
# events. Records are kept as a JSON array in an owner-only file and mirrored
# to a structured (structlog) event stream.
#
# The audit trail is observability only: every read/write failure is logged
# and swallowed so it can never block or fail a vault operation.

import json
import logging
import os
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import structlog

logger = logging.getLogger(__name__)

AUDIT_FILENAME = ".pwvault-audit.json"


def default_audit_path() -> Path:
    return Path.home() / AUDIT_FILENAME


class EventType(str, Enum):
    """Actions recorded in the audit trail."""
    VAULT_CREATE = "vault_create"
    VAULT_ACCESS = "vault_access"
    VAULT_REKEY = "vault_rekey"
    VAULT_MOVE = "vault_move"
    VAULT_DESTROY = "vault_destroy"
    VAULT_EXPORT = "vault_export"
    VAULT_IMPORT = "vault_import"


class AuditResult(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


def configure_structlog() -> None:
    """Set up JSON structured logging unless the host app already did."""
    if structlog.is_configured():
        return
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


class AuditTrail:
    """
    Bounded audit log of vault events.

    Each record is ``{timestamp, action, details, result, processId}``.
    Once more than ``max_entries`` records exist the oldest are dropped.

    Args:
        audit_file: Path of the JSON log (default: ~/.pwvault-audit.json)
        max_entries: Number of most recent records retained
    """

    MAX_ENTRIES = 1000

    def __init__(self, audit_file: Optional[Union[str, Path]] = None, max_entries: int = MAX_ENTRIES):
        self.audit_file = Path(audit_file) if audit_file else default_audit_path()
        self.max_entries = max_entries

        configure_structlog()
        self.events = structlog.get_logger("pwvault.audit")

    def _read(self) -> List[Dict[str, Any]]:
        """Load existing records; a missing file is an empty log.

        Raises:
            OSError, ValueError: If the file exists but is unreadable or not
                a JSON array.
        """
        try:
            raw = self.audit_file.read_text(encoding="utf-8")
        except FileNotFoundError:
            return []
        records = json.loads(raw)
        if not isinstance(records, list):
            raise ValueError("audit log is not a JSON array")
        return records

    def _write(self, records: List[Dict[str, Any]]) -> None:
        payload = json.dumps(records, indent=2)
        fd = os.open(str(self.audit_file), os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(payload)

    def log(
        self,
        action: Union[EventType, str],
        details: str = "",
        result: Union[AuditResult, str] = AuditResult.SUCCESS,
    ) -> Optional[Dict[str, Any]]:
        """
        Append one record.

        Never log secrets in ``details``: paths and counts only.

        Returns:
            The record written, or None if the log could not be updated.
        """
        record = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "action": action.value if isinstance(action, EventType) else str(action),
            "details": details,
            "result": result.value if isinstance(result, AuditResult) else str(result),
            "processId": os.getpid(),
        }

        self.events.info("vault_event", **record)

        try:
            records = self._read()
        except (OSError, ValueError) as e:
            # Leave an unreadable log as-is rather than clobbering it
            logger.warning("Could not read audit file: %s", e)
            return None

        records.append(record)
        if len(records) > self.max_entries:
            records = records[-self.max_entries:]

        try:
            self._write(records)
        except (OSError, TypeError, ValueError) as e:
            logger.warning("Could not write audit log: %s", e)
            return None
        return record

    def success(self, action: Union[EventType, str], details: str = "") -> Optional[Dict[str, Any]]:
        return self.log(action, details, AuditResult.SUCCESS)

    def failure(self, action: Union[EventType, str], details: str = "") -> Optional[Dict[str, Any]]:
        return self.log(action, details, AuditResult.FAILURE)

    def recent(self, limit: int = 50) -> List[Dict[str, Any]]:
        """Most recent records, oldest first. Empty if the log is unreadable."""
        try:
            records = self._read()
        except (OSError, ValueError) as e:
            logger.warning("Could not read audit file: %s", e)
            return []
        if limit <= 0:
            return []
        return records[-limit:]

    def clear(self) -> bool:
        """Delete the audit log. Returns True if nothing is left on disk."""
        try:
            self.audit_file.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("Could not clear audit log: %s", e)
            return False
        return True
