"""
Per-host remediation workflow.

Each host goes through, in order:
1. Drive discovery
2. Backup path resolution (directory created if absent)
3. Archive and clear of the requested event log
4. CrashOnAuditFail reset (unless opted out)
5. Reboot (only if opted in)

A failed archive does not stop steps 4-5; those follow configuration, not
archive success. Losing contact with the host in steps 1-3 ends the workflow
for that host only.
"""

import asyncio
import logging
from datetime import datetime
from typing import Callable, List, Optional, Sequence

from .archiver import LogArchiver
from .config import RemediationRequest
from .exceptions import RemoteAccessError
from .models import (
    BackupPath,
    ClearResult,
    ClearStatus,
    HostOutcome,
    HostTarget,
    StepStatus,
    now_utc,
)
from .paths import build_backup_path, resolve_backup_directory
from .registry import RegistryRemediator
from .remote import RemoteAccessor
from .utils import SECTION_SEPARATOR

logger = logging.getLogger(__name__)


class HostWorkflow:
    """
    Run the remediation steps against one host at a time.

    Holds no per-host state between calls, so one instance can serve
    concurrent runs.
    """

    def __init__(
        self,
        accessor: RemoteAccessor,
        request: RemediationRequest,
        clock: Callable[[], datetime] = now_utc,
    ):
        self.accessor = accessor
        self.request = request
        self.clock = clock
        self.archiver = LogArchiver(accessor)
        self.remediator = RegistryRemediator(accessor)

    def aborted_outcome(
        self,
        host: HostTarget,
        error: str,
        backup_path: Optional[BackupPath] = None,
    ) -> HostOutcome:
        """Terminal outcome for a host whose workflow stopped early."""
        return HostOutcome(
            host=host,
            log_type=self.request.log_type,
            backup_path=backup_path,
            clear_result=ClearResult(
                status=ClearStatus.NOT_ATTEMPTED,
                backup_path=backup_path,
                message=error,
            ),
            registry_reset=StepStatus.NOT_ATTEMPTED,
            rebooted=StepStatus.NOT_ATTEMPTED,
            error=error,
        )

    async def _ensure_directory(self, host: HostTarget, directory: str) -> None:
        if await self.accessor.path_exists(host, directory):
            return
        logger.info(f"{host}: creating backup directory {directory}")
        await self.accessor.create_directory(host, directory)

    async def _remediate(self, host: HostTarget) -> StepStatus:
        if not self.request.fix_crash_on_audit_fail:
            logger.info(f"{host}: CrashOnAuditFail reset skipped by configuration")
            return StepStatus.SKIPPED
        try:
            await self.remediator.apply_crash_on_audit_fix(host)
        except RemoteAccessError as e:
            logger.error(f"{host}: CrashOnAuditFail reset failed: {e.message}")
            return StepStatus.FAILED
        return StepStatus.APPLIED

    async def _reboot(self, host: HostTarget) -> StepStatus:
        if not self.request.reboot:
            return StepStatus.SKIPPED
        try:
            await self.accessor.reboot_now(host)
        except RemoteAccessError as e:
            logger.error(f"{host}: reboot command failed: {e.message}")
            return StepStatus.FAILED
        logger.info(f"{host}: reboot issued")
        return StepStatus.APPLIED

    async def run(self, host: HostTarget) -> HostOutcome:
        """Process one host and return its outcome."""
        log_type = self.request.log_type
        logger.info(SECTION_SEPARATOR)
        logger.info(f"{host}: archiving {log_type.value} log")

        backup_path: Optional[BackupPath] = None
        try:
            drives = await self.accessor.list_filesystem_drives(host)
            logger.info(f"{host}: filesystem drives {', '.join(sorted(drives)) or 'none'}")

            directory = resolve_backup_directory(
                self.request.backup_path, drives, self.request.drive_policy
            )
            await self._ensure_directory(host, directory)
            backup_path = build_backup_path(directory, log_type, self.clock())
            logger.info(f"{host}: backup file {backup_path}")

            clear_result = await self.archiver.archive_and_clear(host, log_type, backup_path)
        except RemoteAccessError as e:
            logger.error(f"{host}: aborting, {e.message}")
            return self.aborted_outcome(host, e.message, backup_path)

        registry_reset = await self._remediate(host)
        rebooted = await self._reboot(host)

        return HostOutcome(
            host=host,
            log_type=log_type,
            backup_path=backup_path,
            clear_result=clear_result,
            registry_reset=registry_reset,
            rebooted=rebooted,
        )


async def run_fleet(
    targets: Sequence[HostTarget],
    workflow: HostWorkflow,
    max_concurrent: int = 1,
) -> List[HostOutcome]:
    """
    Run the workflow over every target.

    Hosts are processed one after another in list order unless
    max_concurrent > 1. Outcomes are always returned in input order.
    """

    async def run_one(host: HostTarget) -> HostOutcome:
        try:
            return await workflow.run(host)
        except Exception as e:
            logger.exception(f"{host}: unexpected failure")
            return workflow.aborted_outcome(host, f"Unexpected error: {e}")

    if max_concurrent <= 1:
        outcomes = []
        for host in targets:
            outcomes.append(await run_one(host))
        return outcomes

    semaphore = asyncio.Semaphore(max_concurrent)

    async def bounded(host: HostTarget) -> HostOutcome:
        async with semaphore:
            return await run_one(host)

    return list(await asyncio.gather(*(bounded(host) for host in targets)))
