"""
Error taxonomy for event log archiving runs.

Per-host errors (RemoteAccessError and subclasses) are caught by the host
workflow and recorded on the outcome. ConfigurationError is global and stops
the run before any host is touched.
"""

from typing import Optional


class ArchiverError(Exception):
    """Base class for all eventlog-archiver errors."""


class ConfigurationError(ArchiverError):
    """Run configuration is invalid or a required input is unreadable."""


class RemoteAccessError(ArchiverError):
    """A call against a remote host failed."""

    def __init__(self, host: str, message: str):
        self.host = host
        self.message = message
        super().__init__(f"{host}: {message}")


class RemoteUnreachableError(RemoteAccessError):
    """Host could not be contacted (connectivity, credentials, transport timeout)."""


class RemoteCommandError(RemoteAccessError):
    """
    The remote command ran but faulted.

    Attributes:
        stderr: Error text reported by the remote shell
        hresult: COM/WMI HRESULT of the fault, if the remote side exposed one
        exit_code: Shell exit code, if known
    """

    def __init__(
        self,
        host: str,
        message: str,
        stderr: str = "",
        hresult: Optional[int] = None,
        exit_code: Optional[int] = None,
    ):
        self.stderr = stderr
        self.hresult = hresult
        self.exit_code = exit_code
        super().__init__(host, message)
