"""
Remote access to Windows targets.

RemoteAccessor is the capability the workflow depends on. WinRMRemoteAccessor
implements it with PowerShell over WinRM (pywinrm); tests substitute an
in-memory fake.
"""

import asyncio
import json
import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, FrozenSet, Optional

import requests
import winrm
from winrm import transport as winrm_transport
from winrm.exceptions import (
    AuthenticationError,
    WinRMError,
    WinRMOperationTimeoutError,
    WinRMTransportError,
)

from .config import WinRMSettings
from .exceptions import ConfigurationError, RemoteCommandError, RemoteUnreachableError
from .paths import normalize_drives

logger = logging.getLogger(__name__)


def ps_quote(value: str) -> str:
    """Quote a value as a PowerShell single-quoted string literal."""
    return "'" + str(value).replace("'", "''") + "'"


class RemoteAccessor(ABC):
    """Operations the host workflow performs against one remote host."""

    @abstractmethod
    async def list_filesystem_drives(self, host: str) -> FrozenSet[str]:
        """Return upper-case drive letters of the host's filesystem drives."""

    @abstractmethod
    async def path_exists(self, host: str, path: str) -> bool:
        """Check whether a path exists on the host."""

    @abstractmethod
    async def create_directory(self, host: str, path: str) -> None:
        """Create a directory (and parents) on the host."""

    @abstractmethod
    async def set_registry_dword(
        self, host: str, key_path: str, name: str, value: int
    ) -> None:
        """Write a REG_DWORD value under key_path."""

    @abstractmethod
    async def reboot_now(self, host: str) -> None:
        """Schedule a forced restart and return without waiting for it."""

    @abstractmethod
    async def clear_event_log(self, host: str, log_name: str, archive_file: str) -> int:
        """
        Save the named event log to archive_file, then clear it.

        Returns:
            Status code reported by the event log service

        Raises:
            RemoteCommandError: The clear call faulted instead of returning a code
            RemoteUnreachableError: The host could not be contacted
        """


# =============================================================================
# PowerShell scripts
# =============================================================================

LIST_DRIVES_SCRIPT = r'''
Get-PSDrive -PSProvider FileSystem | Select-Object -ExpandProperty Name
'''

REBOOT_DELAY_SECONDS = 5

# Schedules the restart and returns; the shell closes before the host goes down
REBOOT_SCRIPT = f'''
shutdown.exe /r /f /t {REBOOT_DELAY_SECONDS} /c "eventlog-archiver maintenance restart"
exit $LASTEXITCODE
'''


def _clear_log_script(log_name: str, archive_file: str) -> str:
    # The Security log needs SeSecurityPrivilege enabled for the call, which
    # only the WMI cmdlets can do (-EnableAllPrivileges)
    filter_expr = ps_quote(f"LogFileName='{log_name}'")
    return f'''
$ErrorActionPreference = 'Stop'
try {{
    $Log = Get-WmiObject -Class Win32_NTEventlogFile -Filter {filter_expr} -EnableAllPrivileges
    if (-not $Log) {{ throw "Event log not found: {log_name}" }}
    $Result = $Log.ClearEventlog({ps_quote(archive_file)})
    @{{ ReturnValue = [int]$Result.ReturnValue }} | ConvertTo-Json -Compress
}} catch {{
    @{{ Error = $_.Exception.Message; HResult = $_.Exception.HResult }} | ConvertTo-Json -Compress
}}
'''


class WinRMRemoteAccessor(RemoteAccessor):
    """
    Execute remote operations as PowerShell via WinRM.

    pywinrm is synchronous, so each call runs in the event loop's default
    executor. Sessions are cached per host for the lifetime of the accessor,
    and calls to the same host are serialized because a winrm.Session is not
    safe to share between threads.

    Raises:
        ConfigurationError: the configured transport's optional pywinrm
            dependency is not installed
    """

    def __init__(self, settings: Optional[WinRMSettings] = None):
        self.settings = settings or WinRMSettings()
        self._check_transport_support()
        self._session_cache: Dict[str, Any] = {}
        self._host_locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _check_transport_support(self) -> None:
        transport = self.settings.transport
        if transport == "kerberos" and not winrm_transport.HAVE_KERBEROS:
            raise ConfigurationError(
                "WinRM transport 'kerberos' requires pywinrm[kerberos]; "
                "install it or set EVENTLOG_WINRM_TRANSPORT"
            )
        if transport == "credssp" and not winrm_transport.HAVE_CREDSSP:
            raise ConfigurationError(
                "WinRM transport 'credssp' requires pywinrm[credssp]; "
                "install it or set EVENTLOG_WINRM_TRANSPORT"
            )

    def _host_lock(self, host: str) -> threading.Lock:
        with self._locks_guard:
            return self._host_locks.setdefault(host, threading.Lock())

    def _endpoint(self, host: str) -> str:
        protocol = "https" if self.settings.use_ssl else "http"
        return f"{protocol}://{host}:{self.settings.port}/wsman"

    def _get_session(self, host: str):
        """Get or create the winrm.Session for host."""
        if host not in self._session_cache:
            kwargs: Dict[str, Any] = {
                "transport": self.settings.transport,
                "server_cert_validation": "validate" if self.settings.verify_ssl else "ignore",
            }
            if self.settings.read_timeout_sec is not None:
                kwargs["read_timeout_sec"] = self.settings.read_timeout_sec
            if self.settings.operation_timeout_sec is not None:
                kwargs["operation_timeout_sec"] = self.settings.operation_timeout_sec

            self._session_cache[host] = winrm.Session(
                self._endpoint(host),
                auth=(self.settings.username, self.settings.password),
                **kwargs,
            )
        return self._session_cache[host]

    def _run_sync(self, host: str, script: str) -> str:
        """Run a script and return its stdout (runs in thread pool)."""
        with self._host_lock(host):
            try:
                session = self._get_session(host)
                result = session.run_ps(script)
            except (
                WinRMTransportError,
                WinRMOperationTimeoutError,
                AuthenticationError,
                requests.exceptions.RequestException,
            ) as e:
                self._session_cache.pop(host, None)
                raise RemoteUnreachableError(host, f"WinRM connection failed: {e}") from e
            except WinRMError as e:
                raise RemoteCommandError(host, f"WinRM request failed: {e}", stderr=str(e)) from e

        std_out = result.std_out.decode("utf-8", errors="replace") if result.std_out else ""
        std_err = result.std_err.decode("utf-8", errors="replace") if result.std_err else ""

        if result.status_code != 0:
            raise RemoteCommandError(
                host,
                f"Remote command exited with {result.status_code}: {std_err.strip()}",
                stderr=std_err,
                exit_code=result.status_code,
            )
        return std_out.strip()

    async def _run(self, host: str, script: str) -> str:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._run_sync, host, script)

    async def list_filesystem_drives(self, host: str) -> FrozenSet[str]:
        output = await self._run(host, LIST_DRIVES_SCRIPT)
        drives = normalize_drives(line for line in output.splitlines() if line.strip())
        logger.debug(f"{host}: filesystem drives {sorted(drives)}")
        return drives

    async def path_exists(self, host: str, path: str) -> bool:
        output = await self._run(host, f"Test-Path -LiteralPath {ps_quote(path)}")
        return output.strip().lower() == "true"

    async def create_directory(self, host: str, path: str) -> None:
        await self._run(
            host,
            f"New-Item -ItemType Directory -Path {ps_quote(path)} -Force -ErrorAction Stop | Out-Null",
        )

    async def set_registry_dword(
        self, host: str, key_path: str, name: str, value: int
    ) -> None:
        await self._run(
            host,
            f"Set-ItemProperty -Path {ps_quote(key_path)} -Name {ps_quote(name)} "
            f"-Value {int(value)} -Type DWord -ErrorAction Stop",
        )

    async def reboot_now(self, host: str) -> None:
        await self._run(host, REBOOT_SCRIPT)

    async def clear_event_log(self, host: str, log_name: str, archive_file: str) -> int:
        output = await self._run(host, _clear_log_script(log_name, archive_file))

        try:
            parsed = json.loads(output)
        except json.JSONDecodeError as e:
            raise RemoteCommandError(
                host, f"Unexpected output from ClearEventlog: {output!r}", stderr=output
            ) from e
        if not isinstance(parsed, dict):
            raise RemoteCommandError(
                host, f"Unexpected output from ClearEventlog: {output!r}", stderr=output
            )

        if parsed.get("Error"):
            raise RemoteCommandError(
                host,
                parsed["Error"],
                stderr=parsed["Error"],
                hresult=parsed.get("HResult"),
            )
        if parsed.get("ReturnValue") is None:
            raise RemoteCommandError(
                host, f"ClearEventlog returned no status: {output!r}", stderr=output
            )
        return int(parsed["ReturnValue"])
