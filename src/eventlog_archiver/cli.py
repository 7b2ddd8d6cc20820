"""
Command-line entry point.

Archives and clears an event log on each target host, optionally resets
CrashOnAuditFail and reboots, then logs and mails a report.

Exit codes:
    0   run completed (per-host failures are in the report)
    1   unexpected orchestration failure
    2   configuration error, no host was processed
    130 interrupted
"""

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from . import __version__
from .config import MailSettings, RunConfig, WinRMSettings, load_targets
from .exceptions import ConfigurationError
from .mailer import SmtpMailer
from .models import HostOutcome, LogType
from .paths import AUTO_DETECT, DriveFallbackPolicy
from .remote import RemoteAccessor, WinRMRemoteAccessor
from .report import ReportDelivery, RunReporter
from .utils import setup_logging
from .workflow import HostWorkflow, run_fleet

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG_ERROR = 2
EXIT_INTERRUPTED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="eventlog-archiver",
        description="Archive and clear Windows event logs across a fleet of hosts",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Archive and clear the Security log on every host in servers.txt
  eventlog-archiver --host-list servers.txt

  # Single host, explicit backup directory, reboot afterwards, no email
  eventlog-archiver --computer-name WEB01 --backup-path D:\\Logs --reboot --no-mail

WinRM credentials come from EVENTLOG_WINRM_* environment variables and SMTP
settings from SMTP_* variables.
        """
    )

    targets = parser.add_mutually_exclusive_group(required=True)
    targets.add_argument(
        "-f", "--host-list",
        type=Path,
        metavar="FILE",
        help="File with one hostname or address per line"
    )
    targets.add_argument(
        "-c", "--computer-name",
        metavar="HOST",
        help="Single host to process"
    )

    parser.add_argument(
        "--log-type",
        default=LogType.SECURITY.value,
        choices=[t.value for t in LogType],
        help="Event log to archive and clear (default: Security)"
    )
    parser.add_argument(
        "--backup-path",
        default=AUTO_DETECT,
        help="Backup directory on each host (default: unset, auto-detect from drives)"
    )
    parser.add_argument(
        "--drive-policy",
        default=DriveFallbackPolicy.Q_THEN_C.value,
        choices=[p.value for p in DriveFallbackPolicy],
        help="Drive preference when auto-detecting (default: q-c)"
    )
    parser.add_argument(
        "--no-registry-fix",
        action="store_true",
        help="Do not reset CrashOnAuditFail"
    )
    parser.add_argument(
        "--reboot",
        action="store_true",
        help="Restart each host after processing"
    )
    parser.add_argument(
        "--max-concurrent",
        type=int,
        default=1,
        help="Hosts processed at the same time (default: 1)"
    )

    parser.add_argument(
        "--log-file",
        type=Path,
        default=Path("ClearEventLog.log"),
        help="Append-only run log (default: ClearEventLog.log)"
    )
    parser.add_argument(
        "--report-file",
        type=Path,
        help="Also write the HTML report to this file"
    )
    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Suppress console output"
    )
    parser.add_argument(
        "--no-mail",
        action="store_true",
        help="Do not email the report"
    )
    parser.add_argument(
        "--mail-to",
        default=os.environ.get("EVENTLOG_MAIL_TO"),
        help="Report recipient(s), comma separated (default: $EVENTLOG_MAIL_TO)"
    )
    parser.add_argument(
        "--mail-subject",
        default="Event log archive report",
        help="Report email subject"
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level"
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )
    return parser


def build_config(args: argparse.Namespace) -> RunConfig:
    """
    Validate parsed arguments into a RunConfig.

    Raises:
        ConfigurationError: arguments fail validation
    """
    try:
        return RunConfig(
            host_list_path=args.host_list,
            computer_name=args.computer_name,
            log_type=args.log_type,
            backup_path=args.backup_path,
            fix_crash_on_audit_fail=not args.no_registry_fix,
            reboot=args.reboot,
            drive_policy=args.drive_policy,
            max_concurrent=args.max_concurrent,
            run_log_path=args.log_file,
            report_path=args.report_file,
            quiet=args.quiet,
            send_mail=not args.no_mail,
            mail_to=args.mail_to,
            mail_subject=args.mail_subject,
            log_level=args.log_level,
        )
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e


async def run(
    config: RunConfig,
    accessor: RemoteAccessor,
    delivery: Optional[ReportDelivery] = None,
) -> List[HostOutcome]:
    """Process every target host and publish the report."""
    targets = load_targets(config)
    request = config.to_request()

    logger.info(
        f"Starting run: {len(targets)} host(s), log={request.log_type.value}, "
        f"backup_path={request.backup_path or 'auto-detect'}, "
        f"registry_fix={request.fix_crash_on_audit_fail}, reboot={request.reboot}"
    )

    reporter = RunReporter()
    workflow = HostWorkflow(accessor, request)
    outcomes = await run_fleet(targets, workflow, max_concurrent=config.max_concurrent)

    reporter.publish(
        outcomes,
        report_path=config.report_path,
        delivery=delivery if config.send_mail else None,
        recipient=config.mail_to,
        subject=config.mail_subject,
    )
    return outcomes


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    try:
        setup_logging(args.log_file, quiet=args.quiet, level=args.log_level)
    except OSError as e:
        # Logging is not configured yet
        print(f"Cannot open run log {args.log_file}: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    try:
        config = build_config(args)
        accessor = WinRMRemoteAccessor(WinRMSettings())
        delivery = SmtpMailer(MailSettings()) if config.send_mail else None
        asyncio.run(run(config, accessor, delivery))
        return EXIT_OK

    except ConfigurationError as e:
        logger.error(str(e))
        return EXIT_CONFIG_ERROR
    except ValidationError as e:
        logger.error(f"Invalid environment settings: {e}")
        return EXIT_CONFIG_ERROR
    except KeyboardInterrupt:
        logger.warning("Interrupted by user - remaining hosts not processed")
        return EXIT_INTERRUPTED
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        return EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
