"""Shared fixtures: an in-memory RemoteAccessor with scripted answers."""

import asyncio
import logging
from datetime import datetime, timezone

import pytest

from eventlog_archiver.remote import RemoteAccessor


FIXED_NOW = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


class FakeRemoteAccessor(RemoteAccessor):
    """
    Scripted accessor for workflow tests.

    Args:
        drives: host -> drive letters (default {"C"})
        existing_paths: (host, path) pairs that already exist
        clear_codes: host -> ClearEventlog status code (default 0)
        faults: (host, operation) -> exception raised by that call
        delays: host -> seconds to sleep in list_filesystem_drives
    """

    def __init__(self, drives=None, existing_paths=None, clear_codes=None, faults=None, delays=None):
        self.drives = drives or {}
        self.existing_paths = set(existing_paths or ())
        self.clear_codes = clear_codes or {}
        self.faults = faults or {}
        self.delays = delays or {}
        self.calls = []
        self.active = 0
        self.peak_active = 0

    def _record(self, operation, host, *args):
        self.calls.append((operation, host) + args)
        fault = self.faults.get((host, operation))
        if fault is not None:
            raise fault

    def calls_for(self, operation):
        return [call for call in self.calls if call[0] == operation]

    async def list_filesystem_drives(self, host):
        self.active += 1
        self.peak_active = max(self.peak_active, self.active)
        try:
            if host in self.delays:
                await asyncio.sleep(self.delays[host])
            self._record("list_filesystem_drives", host)
            return frozenset(self.drives.get(host, {"C"}))
        finally:
            self.active -= 1

    async def path_exists(self, host, path):
        self._record("path_exists", host, path)
        return (host, path) in self.existing_paths

    async def create_directory(self, host, path):
        self._record("create_directory", host, path)
        self.existing_paths.add((host, path))

    async def set_registry_dword(self, host, key_path, name, value):
        self._record("set_registry_dword", host, key_path, name, value)

    async def reboot_now(self, host):
        self._record("reboot_now", host)

    async def clear_event_log(self, host, log_name, archive_file):
        self._record("clear_event_log", host, log_name, archive_file)
        return self.clear_codes.get(host, 0)


@pytest.fixture
def fake_accessor():
    return FakeRemoteAccessor()


@pytest.fixture
def fixed_clock():
    return lambda: FIXED_NOW


@pytest.fixture
def restore_root_logger():
    """Put the root logger back after a test calls setup_logging."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield root
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)
