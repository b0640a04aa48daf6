# Author: PB & Claude
# Maintainer: PB
# Original date: 2026.10.18
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/nextup/storage/io_transports.py

"""
Download transports for the apply engine.

FileTransport fetches one file with full-overwrite semantics (never a resume).
ArchiveTransport fetches a whole repository snapshot as a zip into a
temporary file. HttpTransport implements both over httpx streaming, with
retry and exponential backoff for transient failures.
"""

from __future__ import annotations

import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, Protocol

import httpx
import loguru

from nextup.core.retry import TRANSFER_RETRY_CONFIG, RetryableOperation, RetryConfig
from nextup.system.exceptions import HTTPStatusError, NetworkError, TransferError
from nextup.system.progress import NullProgress, PercentThrottle, ProgressEvent, ProgressObserver

logger = loguru.logger

CHUNK_SIZE = 64 * 1024
USER_AGENT = "nextup-updater"


class FileTransport(Protocol):
    def fetch(self, url: str, destination: Path) -> None: ...


class ArchiveTransport(Protocol):
    def fetch_archive(self, url: str, progress: Optional[ProgressObserver] = None) -> Path: ...


@contextmanager
def translate_httpx_errors(url: str) -> Iterator[None]:
    """Re-raise httpx failures as nextup transport errors."""
    try:
        yield
    except httpx.HTTPStatusError as e:
        code = e.response.status_code
        raise HTTPStatusError(f"HTTP {code} fetching {url}", status_code=code, url=url) from e
    except httpx.TransportError as e:
        # Connection, DNS, timeout and protocol failures
        raise NetworkError(f"network error fetching {url}: {e}", url=url) from e
    except httpx.HTTPError as e:
        raise TransferError(f"failed to download {url}: {e}", url=url) from e


class HttpTransport:
    """httpx-based FileTransport and ArchiveTransport."""

    def __init__(
        self,
        client: Optional[httpx.Client] = None,
        timeout: float = 120.0,
        retry_config: Optional[RetryConfig] = None,
    ):
        self._owns_client = client is None
        self.client = client or httpx.Client(
            timeout=timeout,
            follow_redirects=True,
            headers={"User-Agent": USER_AGENT},
        )
        self.retry_config = retry_config or TRANSFER_RETRY_CONFIG

    def close(self) -> None:
        if self._owns_client:
            self.client.close()

    def __enter__(self) -> HttpTransport:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def _stream_to(self, url: str, fh, progress: Optional[ProgressObserver], stage: str) -> int:
        written = 0
        with translate_httpx_errors(url):
            with self.client.stream("GET", url) as resp:
                resp.raise_for_status()
                length = resp.headers.get("Content-Length")
                total = int(length) if length and length.isdigit() else None
                for chunk in resp.iter_bytes(CHUNK_SIZE):
                    fh.write(chunk)
                    written += len(chunk)
                    if progress is not None:
                        progress.on_progress(ProgressEvent(stage, written, total))
        return written

    def _fetch_once(self, url: str, destination: Path) -> None:
        # Write beside the target then rename, so a failed transfer never
        # leaves a truncated file in place.
        destination.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=".nextup-", suffix=".part", dir=destination.parent)
        try:
            with os.fdopen(fd, "wb") as fh:
                size = self._stream_to(url, fh, None, "file")
            os.replace(tmp_name, destination)
        except OSError as e:
            Path(tmp_name).unlink(missing_ok=True)
            raise TransferError(
                f"failed to write {destination}: {e}", url=url, retry_possible=False
            ) from e
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        logger.debug(f"Downloaded {url} -> {destination} ({size} bytes)")

    def fetch(self, url: str, destination: Path) -> None:
        """Download url over destination, replacing any existing content."""
        op = RetryableOperation(f"download {url}", self.retry_config)
        op.execute(self._fetch_once, url, Path(destination))

    def _fetch_archive_once(self, url: str, progress: ProgressObserver) -> Path:
        fd, tmp_name = tempfile.mkstemp(prefix="nextup-", suffix=".zip")
        try:
            with os.fdopen(fd, "wb") as fh:
                size = self._stream_to(url, fh, PercentThrottle(progress), "download")
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        logger.info(f"Downloaded archive {url} ({size} bytes)")
        return Path(tmp_name)

    def fetch_archive(self, url: str, progress: Optional[ProgressObserver] = None) -> Path:
        """Download a zip archive to a temporary file and return its path.

        The caller owns the returned file and must delete it.
        """
        op = RetryableOperation(f"archive download {url}", self.retry_config)
        return op.execute(self._fetch_archive_once, url, progress or NullProgress())
