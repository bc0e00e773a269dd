"""Audit logging for configuration applies.

Every create/update/delete writes one JSON line to the ``setconf.audit``
logger, whether it succeeded or not:
- Timestamped entries with device, feature and identity
- The statement batch sent (and its checksum)
- The read-after-write tree on success, the error (and rollback error)
  on failure
"""
import json
import logging
import os
from datetime import datetime, timezone
from dataclasses import dataclass, asdict, field
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

# Dedicated audit logger
audit_logger = logging.getLogger("setconf.audit")

DEFAULT_AUDIT_DIR = "~/.setconf"


def setup_audit_logging(log_dir: Optional[str] = None) -> Path:
    """Configure audit logging to file.

    Args:
        log_dir: Directory for audit logs. Defaults to ~/.setconf/

    Returns:
        Path of the audit log file
    """
    log_dir = os.path.expanduser(log_dir or DEFAULT_AUDIT_DIR)
    Path(log_dir).mkdir(parents=True, exist_ok=True)

    audit_file = Path(log_dir) / "audit.log"

    audit_logger.setLevel(logging.INFO)
    for handler in list(audit_logger.handlers):
        audit_logger.removeHandler(handler)
        handler.close()

    handler = RotatingFileHandler(
        audit_file,
        maxBytes=10 * 1024 * 1024,  # 10MB
        backupCount=10,
        encoding="utf-8",
    )
    # One JSON object per line
    handler.setFormatter(logging.Formatter("%(message)s"))
    audit_logger.addHandler(handler)
    audit_logger.propagate = False

    return audit_file


@dataclass
class ChangeRecord:
    """Record of one apply."""
    timestamp: str
    device_id: str
    operation: str  # create, update, delete
    feature: str
    identity: str
    user: str
    offline: bool
    success: bool
    statements: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    checksum: Optional[str] = None
    after_state: Optional[dict] = None
    error: Optional[str] = None
    rollback_error: Optional[str] = None

    def to_json(self) -> str:
        """Convert to JSON string."""
        return json.dumps(asdict(self), indent=None)

    @classmethod
    def from_json(cls, json_str: str) -> "ChangeRecord":
        """Parse from JSON string."""
        data = json.loads(json_str)
        return cls(**data)


class ChangeTracker:
    """Log applies made on one device."""

    def __init__(self, device_id: str, user: str = "system"):
        self.device_id = device_id
        self.user = user

    def log_change(
        self,
        operation: str,
        feature: str,
        identity: str,
        success: bool,
        statements: Optional[list[str]] = None,
        warnings: Optional[list[str]] = None,
        checksum: Optional[str] = None,
        offline: bool = False,
        after_state: Optional[dict] = None,
        error: Optional[str] = None,
        rollback_error: Optional[str] = None,
    ) -> ChangeRecord:
        """Log an apply.

        Args:
            operation: The operation performed ("create", "update", "delete")
            feature: Feature name
            identity: Object identity
            success: Whether the apply succeeded
            statements: Lines sent to the device (or the set file)
            warnings: Commit and compile warnings
            checksum: Checksum of the statement batch
            offline: Whether the batch went to the set file
            after_state: Tree read back after the apply
            error: Error message if failed
            rollback_error: Error of the discard after a failure

        Returns:
            The ChangeRecord that was logged
        """
        record = ChangeRecord(
            timestamp=datetime.now(timezone.utc).isoformat(),
            device_id=self.device_id,
            operation=operation,
            feature=feature,
            identity=identity,
            user=self.user,
            offline=offline,
            success=success,
            statements=list(statements or []),
            warnings=list(warnings or []),
            checksum=checksum,
            after_state=after_state,
            error=error,
            rollback_error=rollback_error,
        )

        audit_logger.info(record.to_json())

        return record


def get_recent_changes(
    log_file: Optional[str] = None,
    device_id: Optional[str] = None,
    feature: Optional[str] = None,
    limit: int = 100,
) -> list[ChangeRecord]:
    """Read recent applies from the audit log.

    Args:
        log_file: Path to audit log. Defaults to ~/.setconf/audit.log
        device_id: Filter by device ID
        feature: Filter by feature name
        limit: Maximum number of records to return

    Returns:
        List of ChangeRecords, most recent first
    """
    if log_file is None:
        log_file = os.path.join(os.path.expanduser(DEFAULT_AUDIT_DIR), "audit.log")

    if not os.path.exists(log_file):
        return []

    records = []
    with open(log_file, "r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            try:
                record = ChangeRecord.from_json(line)
            except (json.JSONDecodeError, TypeError):
                continue  # Skip malformed lines

            if device_id and record.device_id != device_id:
                continue
            if feature and record.feature != feature:
                continue
            records.append(record)

    # Most recent first, limited
    return list(reversed(records[-limit:]))
