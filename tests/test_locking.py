# Author: PB & Claude
# Maintainer: PB
# Original date: 2026.10.18
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# tests/test_locking.py

"""
Tests for the installation lock.

Tests cover acquisition, release, conflicts with live holders, stale lock
takeover and unreadable lock files.
"""

import os
import socket
from datetime import datetime, timedelta, UTC

import orjson
import pytest

from nextup.system.exceptions import LockConflictError, LockError
from nextup.system.locking import InstallLock, LockInfo


def write_lock(path, **overrides):
    info = {
        "operation": "update",
        "timestamp": datetime.now(UTC).isoformat(),
        "pid": os.getpid(),
        "hostname": socket.gethostname(),
        "lock_id": "someone-else",
    }
    info.update(overrides)
    path.write_bytes(orjson.dumps(info))


class TestLockInfo:
    def test_round_trip(self):
        info = LockInfo("update", "2026-01-01T00:00:00+00:00", 42, "host", "abc")
        again = LockInfo.from_dict(info.to_dict())
        assert again.to_dict() == info.to_dict()


class TestInstallLock:
    def test_acquire_and_release(self, install_root):
        lock = InstallLock(install_root)
        lock.acquire()
        assert lock.acquired
        info = lock.read_info()
        assert info.pid == os.getpid()
        assert info.operation == "update"

        lock.release()
        assert not lock.acquired
        assert not (install_root / ".updater.lock").exists()

    def test_context_manager_releases_on_error(self, install_root):
        with pytest.raises(RuntimeError):
            with InstallLock(install_root):
                assert (install_root / ".updater.lock").exists()
                raise RuntimeError("boom")
        assert not (install_root / ".updater.lock").exists()

    def test_live_holder_conflicts(self, install_root):
        write_lock(install_root / ".updater.lock")
        with pytest.raises(LockConflictError, match="locked for update"):
            InstallLock(install_root).acquire()
        # The other holder's lock is untouched
        assert (install_root / ".updater.lock").exists()

    def test_old_lock_is_taken_over(self, install_root):
        old = (datetime.now(UTC) - timedelta(hours=2)).isoformat()
        write_lock(install_root / ".updater.lock", timestamp=old, hostname="elsewhere")

        with InstallLock(install_root) as lock:
            assert lock.read_info().lock_id != "someone-else"

    def test_dead_process_lock_is_taken_over(self, install_root, monkeypatch):
        write_lock(install_root / ".updater.lock", pid=999999)
        monkeypatch.setattr("nextup.system.locking._pid_alive", lambda pid: False)

        with InstallLock(install_root) as lock:
            assert lock.acquired

    def test_unreadable_lock_is_replaced(self, install_root):
        (install_root / ".updater.lock").write_text("not json")
        with InstallLock(install_root) as lock:
            assert lock.acquired

    def test_release_does_not_remove_foreign_lock(self, install_root):
        lock = InstallLock(install_root)
        lock.acquire()
        write_lock(install_root / ".updater.lock", lock_id="intruder")

        lock.release()

        assert (install_root / ".updater.lock").exists()
        assert not lock.acquired

    def test_missing_directory(self, tmp_path):
        with pytest.raises(LockError):
            InstallLock(tmp_path / "does-not-exist").acquire()

    def test_custom_lock_file_name(self, install_root):
        with InstallLock(install_root, operation="switch", lock_file="custom.lock") as lock:
            assert (install_root / "custom.lock").exists()
            assert lock.read_info().operation == "switch"
