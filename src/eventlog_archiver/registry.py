"""Crash-on-audit-failure registry remediation."""

import logging

from .remote import RemoteAccessor

logger = logging.getLogger(__name__)

LSA_KEY_PATH = "HKLM:\\SYSTEM\\CurrentControlSet\\Control\\Lsa"
CRASH_ON_AUDIT_FAIL = "CrashOnAuditFail"
CRASH_ON_AUDIT_FAIL_VALUE = 1


class RegistryRemediator:
    """Write CrashOnAuditFail = 1. The value is not read back."""

    def __init__(self, accessor: RemoteAccessor):
        self.accessor = accessor

    async def apply_crash_on_audit_fix(self, host: str) -> None:
        await self.accessor.set_registry_dword(
            host, LSA_KEY_PATH, CRASH_ON_AUDIT_FAIL, CRASH_ON_AUDIT_FAIL_VALUE
        )
        logger.info(f"{host}: set {CRASH_ON_AUDIT_FAIL}={CRASH_ON_AUDIT_FAIL_VALUE}")
