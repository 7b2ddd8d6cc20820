"""
Backup location resolution.

Decides which directory on the target host receives the exported log and
builds the archive file name.
"""

from datetime import datetime
from enum import Enum
from typing import Iterable, Optional

from .models import BackupPath, LogType, now_utc


# Sentinel accepted in place of an explicit backup directory
AUTO_DETECT = "unset"

ARCHIVE_EXTENSION = "evtx"

Q_DRIVE_DIRECTORY = "Q:\\Windows\\System32\\winevt\\logs\\"
D_DRIVE_DIRECTORY = "D:\\EventLogs\\"
C_DRIVE_DIRECTORY = "C:\\EventLogs\\"


class DriveFallbackPolicy(str, Enum):
    """Preference order used when no explicit backup directory is given."""
    Q_THEN_C = "q-c"
    Q_THEN_D_THEN_C = "q-d-c"


def is_auto_detect(explicit_path: Optional[str]) -> bool:
    """True if the caller left the backup directory to auto-detection."""
    if explicit_path is None:
        return True
    stripped = explicit_path.strip()
    return not stripped or stripped.lower() == AUTO_DETECT


def ensure_trailing_separator(path: str) -> str:
    """Append a backslash unless the path already ends with a separator."""
    if path.endswith("\\") or path.endswith("/"):
        return path
    return path + "\\"


def normalize_drives(drives: Iterable[str]) -> frozenset:
    """Reduce drive names like 'q', 'Q:' or 'Q:\\' to upper-case letters."""
    letters = set()
    for drive in drives:
        letter = drive.strip().rstrip(":\\/").upper()
        if letter:
            letters.add(letter)
    return frozenset(letters)


def resolve_backup_directory(
    explicit_path: Optional[str],
    drives: Iterable[str],
    policy: DriveFallbackPolicy = DriveFallbackPolicy.Q_THEN_C,
) -> str:
    """
    Pick the backup directory for one host.

    Args:
        explicit_path: Operator-supplied directory, or None / "unset"
        drives: Filesystem drives reported by the host
        policy: Fallback order applied when auto-detecting

    Returns:
        Directory string terminated by a path separator
    """
    if not is_auto_detect(explicit_path):
        return ensure_trailing_separator(explicit_path.strip())

    letters = normalize_drives(drives)
    if "Q" in letters:
        return Q_DRIVE_DIRECTORY
    if policy == DriveFallbackPolicy.Q_THEN_D_THEN_C and "D" in letters:
        return D_DRIVE_DIRECTORY
    return C_DRIVE_DIRECTORY


def backup_filename(log_type: LogType, now: Optional[datetime] = None) -> str:
    """Build '<LogType>-<yyyyMMdd_HHmmss>_UTC.evtx' from a UTC timestamp."""
    if now is None:
        now = now_utc()
    return f"{log_type.value}-{now.strftime('%Y%m%d_%H%M%S')}_UTC.{ARCHIVE_EXTENSION}"


def build_backup_path(
    directory: str,
    log_type: LogType,
    now: Optional[datetime] = None,
) -> BackupPath:
    return BackupPath(
        directory=ensure_trailing_separator(directory),
        filename=backup_filename(log_type, now),
    )
