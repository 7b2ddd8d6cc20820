"""
Event log archive-and-clear.

The event log service can report failure two ways: a non-zero status code
from ClearEventlog, or a fault thrown by the call itself. Both are reduced to
a ClearStatus here.
"""

import logging
from typing import Optional

from .exceptions import RemoteCommandError
from .models import BackupPath, ClearResult, ClearStatus, LogType
from .remote import RemoteAccessor

logger = logging.getLogger(__name__)


# Win32_NTEventlogFile.ClearEventlog return codes
RETURN_CODE_STATUS = {
    0: ClearStatus.SUCCESS,
    8: ClearStatus.PERMISSION_DENIED,
    21: ClearStatus.INVALID_PARAMETER,
}

E_ACCESSDENIED = 0x80070005

# Fallback for transports that only expose fault text
ACCESS_DENIED_MARKERS = ("access is denied", "access denied", "unauthorizedaccess")


def classify_return_code(code: int) -> ClearStatus:
    """Map a ClearEventlog status code to a ClearStatus. Total over int."""
    return RETURN_CODE_STATUS.get(code, ClearStatus.UNCLASSIFIED)


def _is_access_denied_hresult(hresult: Optional[int]) -> bool:
    if hresult is None:
        return False
    return (hresult & 0xFFFFFFFF) == E_ACCESSDENIED


def classify_fault(error: RemoteCommandError) -> ClearStatus:
    """
    Map a thrown fault to a ClearStatus.

    Uses the HRESULT when the remote side exposed one, otherwise matches
    known access-denied phrases in the fault text.
    """
    if _is_access_denied_hresult(error.hresult):
        return ClearStatus.PERMISSION_DENIED

    text = f"{error.message} {error.stderr}".lower()
    if any(marker in text for marker in ACCESS_DENIED_MARKERS):
        return ClearStatus.PERMISSION_DENIED

    return ClearStatus.UNCLASSIFIED


class LogArchiver:
    """Archive and clear one event log on one host. Never retries."""

    def __init__(self, accessor: RemoteAccessor):
        self.accessor = accessor

    async def archive_and_clear(
        self,
        host: str,
        log_type: LogType,
        backup_path: BackupPath,
    ) -> ClearResult:
        """
        Save log_type to backup_path on host, then clear it.

        Returns:
            ClearResult with the classified status

        Raises:
            RemoteUnreachableError: host could not be contacted
        """
        try:
            code = await self.accessor.clear_event_log(
                host, log_type.value, backup_path.full_path
            )
        except RemoteCommandError as e:
            status = classify_fault(e)
            logger.error(f"{host}: clearing {log_type.value} log faulted ({status.value}): {e.message}")
            return ClearResult(
                status=status,
                backup_path=backup_path,
                return_code=None,
                message=e.message,
            )

        status = classify_return_code(code)
        if status == ClearStatus.SUCCESS:
            logger.info(f"{host}: {log_type.value} log archived to {backup_path} and cleared")
        else:
            logger.error(
                f"{host}: clearing {log_type.value} log failed with code {code} ({status.value})"
            )

        return ClearResult(
            status=status,
            backup_path=backup_path,
            return_code=code,
            message=None if status == ClearStatus.SUCCESS else f"ClearEventlog returned {code}",
        )
