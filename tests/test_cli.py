"""
Tests for the command-line entry point.
"""

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from eventlog_archiver.cli import (
    EXIT_CONFIG_ERROR,
    EXIT_FAILURE,
    EXIT_INTERRUPTED,
    EXIT_OK,
    build_config,
    build_parser,
    main,
    run,
)
from eventlog_archiver.exceptions import ConfigurationError
from eventlog_archiver.models import ClearStatus, LogType
from eventlog_archiver.paths import DriveFallbackPolicy

from conftest import FakeRemoteAccessor


@pytest.fixture
def no_logging_setup():
    with patch("eventlog_archiver.cli.setup_logging") as setup:
        yield setup


@pytest.fixture
def fake_remote(no_logging_setup):
    accessor = FakeRemoteAccessor(drives={"WEB01": {"C", "Q"}})
    with patch("eventlog_archiver.cli.WinRMRemoteAccessor", return_value=accessor):
        yield accessor


class TestParser:
    """Argument parsing and config mapping."""

    def test_defaults(self):
        config = build_config(build_parser().parse_args(["-c", "WEB01"]))

        assert config.computer_name == "WEB01"
        assert config.log_type == LogType.SECURITY
        assert config.backup_path is None
        assert config.fix_crash_on_audit_fail is True
        assert config.reboot is False
        assert config.send_mail is True
        assert config.run_log_path == Path("ClearEventLog.log")

    def test_full_mapping(self, tmp_path):
        args = build_parser().parse_args([
            "--host-list", str(tmp_path / "hosts.txt"),
            "--log-type", "Application",
            "--backup-path", "D:\\Logs",
            "--drive-policy", "q-d-c",
            "--no-registry-fix",
            "--reboot",
            "--max-concurrent", "4",
            "--no-mail",
            "--mail-to", "ops@corp.example",
        ])
        config = build_config(args)

        assert config.host_list_path == tmp_path / "hosts.txt"
        assert config.log_type == LogType.APPLICATION
        assert config.backup_path == "D:\\Logs"
        assert config.drive_policy == DriveFallbackPolicy.Q_THEN_D_THEN_C
        assert config.fix_crash_on_audit_fail is False
        assert config.reboot is True
        assert config.max_concurrent == 4
        assert config.send_mail is False
        assert config.mail_to == "ops@corp.example"

    def test_target_source_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_target_sources_mutually_exclusive(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["-c", "WEB01", "-f", "hosts.txt"])

    def test_unknown_log_type_rejected(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["-c", "WEB01", "--log-type", "Setup"])

    def test_invalid_values_become_configuration_error(self):
        args = build_parser().parse_args(["-c", "WEB01", "--max-concurrent", "0"])
        with pytest.raises(ConfigurationError):
            build_config(args)


class TestRun:
    """The async run driver."""

    @pytest.mark.asyncio
    async def test_processes_hosts_and_mails_report(self, tmp_path):
        host_file = tmp_path / "hosts.txt"
        host_file.write_text("WEB01\nWEB02\n")
        accessor = FakeRemoteAccessor(drives={"WEB01": {"C", "Q"}, "WEB02": {"C"}})
        delivery = MagicMock()
        delivery.deliver.return_value = True
        config = build_config(build_parser().parse_args([
            "-f", str(host_file), "--mail-to", "ops@corp.example",
        ]))

        outcomes = await run(config, accessor, delivery)

        assert [o.host for o in outcomes] == ["WEB01", "WEB02"]
        assert all(o.clear_result.status == ClearStatus.SUCCESS for o in outcomes)
        delivery.deliver.assert_called_once()
        assert delivery.deliver.call_args[0][2] == "ops@corp.example"

    @pytest.mark.asyncio
    async def test_no_mail_skips_delivery(self):
        delivery = MagicMock()
        config = build_config(build_parser().parse_args(["-c", "WEB01", "--no-mail"]))

        await run(config, FakeRemoteAccessor(), delivery)

        delivery.deliver.assert_not_called()


class TestMain:
    """Exit codes and wiring."""

    def test_single_host_writes_report(self, fake_remote, tmp_path):
        report = tmp_path / "report.html"

        code = main(["-c", "WEB01", "--no-mail", "--report-file", str(report)])

        assert code == EXIT_OK
        assert "Q:\\Windows\\System32\\winevt\\logs\\Security-" in report.read_text(encoding="utf-8")
        assert fake_remote.calls_for("clear_event_log")

    def test_logging_configured_from_args(self, fake_remote, no_logging_setup, tmp_path):
        log_file = tmp_path / "run.log"

        main(["-c", "WEB01", "--no-mail", "--log-file", str(log_file), "-q", "--log-level", "DEBUG"])

        no_logging_setup.assert_called_once_with(log_file, quiet=True, level="DEBUG")

    def test_host_failure_still_exits_ok(self, no_logging_setup):
        accessor = FakeRemoteAccessor(clear_codes={"WEB01": 8})
        with patch("eventlog_archiver.cli.WinRMRemoteAccessor", return_value=accessor):
            assert main(["-c", "WEB01", "--no-mail"]) == EXIT_OK

    def test_missing_host_list(self, fake_remote, tmp_path):
        code = main(["-f", str(tmp_path / "missing.txt"), "--no-mail"])

        assert code == EXIT_CONFIG_ERROR
        assert fake_remote.calls == []

    def test_unusable_run_log_path(self, restore_root_logger, tmp_path, capsys):
        not_a_directory = tmp_path / "occupied"
        not_a_directory.write_text("", encoding="utf-8")
        accessor = FakeRemoteAccessor()

        with patch("eventlog_archiver.cli.WinRMRemoteAccessor", return_value=accessor):
            code = main([
                "-c", "WEB01", "--no-mail", "-q",
                "--log-file", str(not_a_directory / "run.log"),
            ])

        assert code == EXIT_CONFIG_ERROR
        assert "Cannot open run log" in capsys.readouterr().err
        assert accessor.calls == []

    def test_missing_transport_support(self, no_logging_setup):
        with patch(
            "eventlog_archiver.cli.WinRMRemoteAccessor",
            side_effect=ConfigurationError("WinRM transport 'kerberos' requires pywinrm[kerberos]"),
        ):
            assert main(["-c", "WEB01", "--no-mail"]) == EXIT_CONFIG_ERROR

    def test_invalid_environment_settings(self, no_logging_setup, monkeypatch):
        monkeypatch.setenv("EVENTLOG_WINRM_TRANSPORT", "telnet")

        assert main(["-c", "WEB01", "--no-mail"]) == EXIT_CONFIG_ERROR

    def test_interrupt(self, fake_remote):
        def interrupted(coro):
            coro.close()
            raise KeyboardInterrupt

        with patch("eventlog_archiver.cli.asyncio.run", side_effect=interrupted):
            assert main(["-c", "WEB01", "--no-mail"]) == EXIT_INTERRUPTED

    def test_unexpected_error(self, fake_remote):
        with patch("eventlog_archiver.cli.RunReporter", side_effect=RuntimeError("boom")):
            assert main(["-c", "WEB01", "--no-mail"]) == EXIT_FAILURE
