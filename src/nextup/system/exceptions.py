# Author: PB & Claude
# Maintainer: PB
# Original date: 2026.10.18
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/nextup/system/exceptions.py

"""
nextup-specific exception classes.

The hierarchy mirrors how each failure is handled: expected absence is
recovered locally, corrupt persisted state is surfaced, path traversal is
always fatal, and transfer failures are either collected (per-file mode) or
fatal (bulk mode).
"""


class NextupError(Exception):
    """Base exception for all nextup errors."""
    pass


class ConfigError(NextupError):
    """Raised when there are configuration validation or loading errors."""
    pass


# === PERSISTED STATE ===

class ManifestError(NextupError):
    """Base class for local manifest errors."""

    def __init__(self, message: str, path: str = None):
        self.path = path
        super().__init__(message)


class ManifestNotFoundError(ManifestError, FileNotFoundError):
    """The manifest file does not exist. Callers treat this as 'nothing installed yet'."""
    pass


class ManifestParseError(ManifestError):
    """The manifest file exists but could not be decoded."""
    pass


class VersionError(NextupError):
    """Raised when a version tag or version file cannot be parsed."""
    pass


class ChannelError(NextupError):
    """Raised when a channel switch is refused or a channel cannot be resolved."""
    pass


# === APPLY ERRORS ===

class PathTraversalError(NextupError):
    """A resolved target path escapes the installation root."""

    def __init__(self, message: str, path: str = None):
        self.path = path
        super().__init__(message)


class TransportError(NextupError):
    """Base class for transport layer errors."""

    def __init__(self, message: str, url: str = None, retry_possible: bool = True):
        self.url = url
        self.retry_possible = retry_possible
        super().__init__(message)


class NetworkError(TransportError):
    """Network connectivity issues (DNS, refused connections, timeouts)."""
    pass


class TransferError(TransportError):
    """A single file or archive download failed."""
    pass


class HTTPStatusError(TransferError):
    """The server answered with a non-success status."""

    def __init__(self, message: str, status_code: int, **kwargs):
        self.status_code = status_code
        # 4xx answers will not change on retry; 429 and 5xx might.
        kwargs.setdefault('retry_possible', status_code == 429 or status_code >= 500)
        super().__init__(message, **kwargs)


class ArchiveError(TransferError):
    """The downloaded archive could not be opened or read."""

    def __init__(self, message: str, **kwargs):
        kwargs['retry_possible'] = False
        super().__init__(message, **kwargs)


class AggregateTransferError(NextupError):
    """One or more per-file transfers failed during an apply pass."""

    def __init__(self, errors: list[Exception]):
        self.errors = list(errors)
        self.count = len(self.errors)
        self.sample = self.errors[0] if self.errors else None
        super().__init__(f"failed to update {self.count} files: {self.sample}")


# === LOCKING ===

class LockError(NextupError):
    """Base exception for installation lock errors."""
    pass


class LockConflictError(LockError):
    """Raised when the installation is locked by another live process."""
    pass
