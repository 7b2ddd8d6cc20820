"""
Configuration management for eventlog-archiver.

RunConfig holds what the operator asked for on the command line and is
validated before any host is contacted. Transport and SMTP settings are read
from environment variables so credentials never appear in process arguments.
"""

from pathlib import Path
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError
from .models import HostTarget, LogType
from .paths import DriveFallbackPolicy, is_auto_detect


WINRM_TRANSPORTS = ("kerberos", "ntlm", "credssp", "basic", "ssl", "certificate", "plaintext")


class RemediationRequest(BaseModel):
    """Immutable per-run settings consumed by HostWorkflow."""

    log_type: LogType = LogType.SECURITY
    backup_path: Optional[str] = Field(
        default=None,
        description="Explicit backup directory; None means auto-detect"
    )
    fix_crash_on_audit_fail: bool = True
    reboot: bool = False
    drive_policy: DriveFallbackPolicy = DriveFallbackPolicy.Q_THEN_C

    model_config = ConfigDict(frozen=True, extra='forbid')

    @field_validator('backup_path')
    @classmethod
    def normalize_auto_detect(cls, v):
        return None if is_auto_detect(v) else v.strip()


class RunConfig(BaseModel):
    """Run configuration assembled from command-line arguments."""

    # ========================================================================
    # Targets
    # ========================================================================

    host_list_path: Optional[Path] = Field(
        default=None,
        description="File with one hostname or address per line"
    )
    computer_name: Optional[str] = Field(
        default=None,
        description="Single target host"
    )

    # ========================================================================
    # Remediation
    # ========================================================================

    log_type: LogType = Field(
        default=LogType.SECURITY,
        description="Event log to archive and clear"
    )
    backup_path: Optional[str] = Field(
        default=None,
        description="Backup directory on each host; unset means auto-detect"
    )
    fix_crash_on_audit_fail: bool = Field(
        default=True,
        description="Reset CrashOnAuditFail to 1 after clearing"
    )
    reboot: bool = Field(
        default=False,
        description="Restart each host after processing"
    )
    drive_policy: DriveFallbackPolicy = Field(
        default=DriveFallbackPolicy.Q_THEN_C,
        description="Drive preference order for auto-detected backup paths"
    )
    max_concurrent: int = Field(
        default=1,
        ge=1,
        le=64,
        description="Hosts processed at the same time"
    )

    # ========================================================================
    # Output
    # ========================================================================

    run_log_path: Path = Field(
        default=Path("ClearEventLog.log"),
        description="Append-only run log"
    )
    report_path: Optional[Path] = Field(
        default=None,
        description="Write the HTML report here as well"
    )
    quiet: bool = Field(
        default=False,
        description="Suppress console echo"
    )
    send_mail: bool = Field(
        default=True,
        description="Email the HTML report"
    )
    mail_to: Optional[str] = Field(
        default=None,
        description="Report recipient"
    )
    mail_subject: str = Field(
        default="Event log archive report",
        description="Report email subject"
    )
    log_level: str = Field(
        default="INFO",
        description="Log level"
    )

    model_config = ConfigDict(extra='forbid')

    # ========================================================================
    # Validators
    # ========================================================================

    @field_validator('log_type', mode='before')
    @classmethod
    def parse_log_type(cls, v):
        if isinstance(v, str):
            for member in LogType:
                if member.value.lower() == v.strip().lower():
                    return member
            raise ValueError(
                f"log_type must be one of {', '.join(m.value for m in LogType)}"
            )
        return v

    @field_validator('backup_path')
    @classmethod
    def normalize_auto_detect(cls, v):
        return None if is_auto_detect(v) else v.strip()

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v):
        v = v.upper()
        if v not in ['DEBUG', 'INFO', 'WARNING', 'ERROR']:
            raise ValueError('log_level must be DEBUG, INFO, WARNING, or ERROR')
        return v

    @model_validator(mode='after')
    def check_single_target_source(self):
        """Exactly one of host_list_path / computer_name must be given."""
        has_list = self.host_list_path is not None
        has_name = bool(self.computer_name and self.computer_name.strip())
        if has_list == has_name:
            raise ValueError('specify exactly one of host_list_path or computer_name')
        return self

    def to_request(self) -> RemediationRequest:
        return RemediationRequest(
            log_type=self.log_type,
            backup_path=self.backup_path,
            fix_crash_on_audit_fail=self.fix_crash_on_audit_fail,
            reboot=self.reboot,
            drive_policy=self.drive_policy,
        )


class WinRMSettings(BaseSettings):
    """
    WinRM transport settings, read from EVENTLOG_WINRM_* variables.

    The default kerberos transport with no username uses the caller's ambient
    domain credentials.
    """

    username: Optional[str] = None
    password: Optional[str] = None
    transport: str = "kerberos"
    port: int = Field(default=5985, ge=1, le=65535)
    use_ssl: bool = False
    verify_ssl: bool = True
    read_timeout_sec: Optional[int] = Field(default=None, ge=1)
    operation_timeout_sec: Optional[int] = Field(default=None, ge=1)

    model_config = SettingsConfigDict(env_prefix="EVENTLOG_WINRM_", extra="ignore")

    @field_validator('transport')
    @classmethod
    def validate_transport(cls, v):
        v = v.lower()
        if v not in WINRM_TRANSPORTS:
            raise ValueError(f"transport must be one of {', '.join(WINRM_TRANSPORTS)}")
        return v

    @model_validator(mode='after')
    def check_timeouts(self):
        """pywinrm requires the read timeout to exceed the operation timeout."""
        if (
            self.read_timeout_sec is not None
            and self.operation_timeout_sec is not None
            and self.read_timeout_sec <= self.operation_timeout_sec
        ):
            raise ValueError('read_timeout_sec must be greater than operation_timeout_sec')
        return self


class MailSettings(BaseSettings):
    """SMTP relay settings, read from SMTP_* variables."""

    host: str = "localhost"
    port: int = Field(default=25, ge=1, le=65535)
    user: str = ""
    password: str = ""
    sender: str = Field(
        default="eventlog-archiver@localhost",
        validation_alias=AliasChoices("SMTP_FROM", "sender"),
    )
    starttls: bool = False

    model_config = SettingsConfigDict(env_prefix="SMTP_", extra="ignore")

    @property
    def requires_login(self) -> bool:
        return bool(self.user and self.password)


def load_targets(config: RunConfig) -> List[HostTarget]:
    """
    Build the ordered host list for a run.

    Raises:
        ConfigurationError: Host list file unreadable or empty
    """
    if config.computer_name:
        return [config.computer_name.strip()]

    path = config.host_list_path
    try:
        content = path.read_text(encoding="utf-8-sig")
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigurationError(f"Cannot read host list {path}: {e}") from e

    targets = [line.strip() for line in content.splitlines() if line.strip()]
    if not targets:
        raise ConfigurationError(f"Host list {path} contains no hosts")
    return targets
