"""
Shared types for eventlog-archiver.

Usage:
    from eventlog_archiver.models import (
        LogType, ClearStatus, StepStatus,
        BackupPath, ClearResult, HostOutcome,
        now_utc
    )
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


# Hostname or address of a machine to act on. No uniqueness is enforced.
HostTarget = str


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def now_utc() -> datetime:
    """Get current UTC time with timezone info."""
    return datetime.now(timezone.utc)


# =============================================================================
# ENUMS
# =============================================================================


class LogType(str, Enum):
    """Event logs that can be archived. Values are the Windows log names."""
    SECURITY = "Security"
    APPLICATION = "Application"
    SYSTEM = "System"


class ClearStatus(str, Enum):
    """Outcome of the archive-and-clear call."""
    SUCCESS = "success"
    PERMISSION_DENIED = "permission_denied"
    INVALID_PARAMETER = "invalid_parameter"
    UNCLASSIFIED = "unclassified"
    NOT_ATTEMPTED = "not_attempted"


class StepStatus(str, Enum):
    """Outcome of an optional step (registry fix, reboot)."""
    APPLIED = "applied"
    SKIPPED = "skipped"
    FAILED = "failed"
    NOT_ATTEMPTED = "not_attempted"


# =============================================================================
# RESULT RECORDS
# =============================================================================


@dataclass(frozen=True)
class BackupPath:
    """Resolved backup location on the target host."""
    directory: str  # always ends with a path separator
    filename: str

    @property
    def full_path(self) -> str:
        return f"{self.directory}{self.filename}"

    def __str__(self) -> str:
        return self.full_path


@dataclass(frozen=True)
class ClearResult:
    """Result of archiving and clearing one event log."""
    status: ClearStatus
    backup_path: Optional[BackupPath] = None
    return_code: Optional[int] = None
    message: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.status == ClearStatus.SUCCESS


@dataclass(frozen=True)
class HostOutcome:
    """
    Aggregate record for one host.

    Built once at the end of HostWorkflow.run and never mutated afterward.
    registry_reset and rebooted record whether the command was issued; the
    remote side is not queried to verify either.
    """
    host: HostTarget
    log_type: LogType
    backup_path: Optional[BackupPath]
    clear_result: ClearResult
    registry_reset: StepStatus
    rebooted: StepStatus
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        """True if any step failed or the workflow aborted."""
        return (
            self.error is not None
            or not self.clear_result.success
            or self.registry_reset == StepStatus.FAILED
            or self.rebooted == StepStatus.FAILED
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "host": self.host,
            "log_type": self.log_type.value,
            "backup_path": self.backup_path.full_path if self.backup_path else None,
            "clear_status": self.clear_result.status.value,
            "return_code": self.clear_result.return_code,
            "message": self.clear_result.message,
            "registry_reset": self.registry_reset.value,
            "rebooted": self.rebooted.value,
            "error": self.error,
        }
