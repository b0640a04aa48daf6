# Author: PB & Claude
# Maintainer: PB
# Original date: 2026.10.18
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/nextup/system/locking.py

"""
Installation lock.

Keeps two updater processes (for example a scheduled check and a manual run)
from applying to the same installation at once. The lock is a file in the
installation root created with O_CREAT|O_EXCL, holding JSON lock info.
A lock whose process is gone (same host) or that is older than
STALE_LOCK_MINUTES is considered stale and taken over.
"""

from __future__ import annotations

import os
import socket
import uuid
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Optional

import loguru
import orjson

from nextup.system.exceptions import LockConflictError, LockError

logger = loguru.logger


class LockInfo:
    """Information about an active lock."""

    def __init__(self, operation: str, timestamp: str, pid: int, hostname: str, lock_id: str):
        self.operation = operation
        self.timestamp = timestamp
        self.pid = pid
        self.hostname = hostname
        self.lock_id = lock_id

    def to_dict(self) -> dict[str, str | int]:
        return {
            "operation": self.operation,
            "timestamp": self.timestamp,
            "pid": self.pid,
            "hostname": self.hostname,
            "lock_id": self.lock_id,
        }

    @classmethod
    def from_dict(cls, data: dict[str, str | int]) -> LockInfo:
        return cls(
            operation=str(data["operation"]),
            timestamp=str(data["timestamp"]),
            pid=int(data["pid"]),
            hostname=str(data["hostname"]),
            lock_id=str(data["lock_id"]),
        )


def _pid_alive(pid: int) -> bool:
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # Exists, owned by someone else
        return True
    except OSError:
        return False
    return True


class InstallLock:
    """
    Exclusive lock on one installation directory.

    Usage as context manager:
        with InstallLock(install_root, operation="update"):
            # apply changes
            pass
    """

    LOCK_FILE = ".updater.lock"
    STALE_LOCK_MINUTES = 30

    def __init__(self, install_root: Path, operation: str = "update", lock_file: str = LOCK_FILE):
        self.path = Path(install_root) / lock_file
        self.operation = operation
        self.stale_threshold = timedelta(minutes=self.STALE_LOCK_MINUTES)
        self._lock_id: Optional[str] = None

    def __enter__(self) -> InstallLock:
        self.acquire()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.release()

    @property
    def acquired(self) -> bool:
        return self._lock_id is not None

    def acquire(self) -> None:
        """
        Take the lock, replacing a stale one.

        Raises:
            LockConflictError: If another live process holds the lock
            LockError: If the lock file cannot be created
        """
        if self.acquired:
            logger.warning("Lock already acquired by this instance")
            return

        lock_id = str(uuid.uuid4())
        info = LockInfo(
            operation=self.operation,
            timestamp=datetime.now(UTC).isoformat(),
            pid=os.getpid(),
            hostname=socket.gethostname(),
            lock_id=lock_id,
        )

        # Second attempt only after removing a stale lock
        for _ in range(2):
            try:
                fd = os.open(self.path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
            except FileExistsError:
                current = self.read_info()
                if current is not None and not self.is_stale(current):
                    raise LockConflictError(
                        f"Installation locked for {current.operation} by pid {current.pid} "
                        f"on {current.hostname} since {current.timestamp}"
                    )
                logger.info(f"Removing stale lock {self.path}")
                self.path.unlink(missing_ok=True)
                continue
            except OSError as e:
                raise LockError(f"Failed to create lock file {self.path}: {e}") from e

            with os.fdopen(fd, "wb") as f:
                f.write(orjson.dumps(info.to_dict()))
            self._lock_id = lock_id
            logger.debug(f"Acquired {self.operation} lock (lock_id: {lock_id})")
            return

        raise LockConflictError(f"Lost race for installation lock {self.path}")

    def release(self) -> None:
        """Remove the lock file if this instance still owns it."""
        if not self.acquired:
            return

        current = self.read_info()
        if current is not None and current.lock_id != self._lock_id:
            logger.warning(f"Lock held by different process (their id: {current.lock_id})")
        else:
            try:
                self.path.unlink(missing_ok=True)
            except OSError as e:
                logger.warning(f"Error releasing lock: {e}")
            else:
                logger.debug(f"Released lock {self._lock_id}")
        self._lock_id = None

    def read_info(self) -> Optional[LockInfo]:
        """Current lock info, or None if there is no readable lock."""
        try:
            return LockInfo.from_dict(orjson.loads(self.path.read_bytes()))
        except FileNotFoundError:
            return None
        except (OSError, orjson.JSONDecodeError, KeyError, ValueError, TypeError) as e:
            logger.warning(f"Error reading lock file: {e}")
            return None

    def is_stale(self, info: LockInfo) -> bool:
        try:
            age = datetime.now(UTC) - datetime.fromisoformat(info.timestamp)
        except (ValueError, TypeError):
            return True
        if age > self.stale_threshold:
            return True
        return info.hostname == socket.gethostname() and not _pid_alive(info.pid)
