# Author: PB & Claude
# Maintainer: PB
# Original date: 2026.10.18
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/nextup/selfupdate.py

"""
Background check for a newer updater binary.

This is a non-critical convenience, so every failure (network, HTTP status,
malformed answer, digest mismatch) collapses to "nothing to do": the
functions here return None instead of raising. Replacing and restarting the
running binary is left to the caller.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import httpx
import loguru

from nextup.config.manager import UpdaterConfig

logger = loguru.logger

SHA256_HEX_LENGTH = 64
OLD_BINARY_SUFFIX = ".old"


@dataclass(frozen=True)
class UpdaterRelease:
    version: str
    binary_url: str
    hash_url: str


def _get(client: httpx.Client, url: str, timeout: float) -> Optional[httpx.Response]:
    try:
        resp = client.get(url, timeout=timeout)
    except httpx.HTTPError as e:
        logger.debug(f"Self-update request to {url} failed: {e}")
        return None
    if resp.status_code != 200:
        logger.debug(f"Self-update request to {url} returned HTTP {resp.status_code}")
        return None
    return resp


def check_for_updater_update(
    config: UpdaterConfig,
    current: str,
    client: Optional[httpx.Client] = None,
) -> Optional[UpdaterRelease]:
    """Published updater release when it differs from ``current``, else None. Never raises."""
    with _client(client) as http:
        resp = _get(http, config.updater_version_url, config.self_update_timeout)
        if resp is None:
            return None

        remote = resp.text.strip()
        if not remote or remote == current:
            return None

    logger.info(f"Updater {remote} is available (running {current})")
    return UpdaterRelease(remote, config.updater_binary_url, config.updater_hash_url)


def parse_published_digest(text: str) -> Optional[str]:
    """First token of a 'sha256sum'-style line, lower-cased; None unless it is 64 hex chars."""
    tokens = text.strip().split()
    if not tokens:
        return None
    digest = tokens[0].lower()
    if len(digest) != SHA256_HEX_LENGTH:
        return None
    try:
        int(digest, 16)
    except ValueError:
        return None
    return digest


def download_verified_binary(
    release: UpdaterRelease,
    client: Optional[httpx.Client] = None,
    timeout: float = 30.0,
) -> Optional[bytes]:
    """Binary content when its SHA-256 matches the published digest, else None. Never raises."""
    with _client(client) as http:
        hash_resp = _get(http, release.hash_url, timeout)
        if hash_resp is None:
            return None
        expected = parse_published_digest(hash_resp.text)
        if expected is None:
            logger.debug("Published updater digest is malformed; refusing to update")
            return None

        binary_resp = _get(http, release.binary_url, timeout)
        if binary_resp is None:
            return None
        data = binary_resp.content

    actual = hashlib.sha256(data).hexdigest()
    if actual != expected:
        logger.warning("Downloaded updater does not match its published digest; discarding it")
        return None
    return data


def cleanup_old_binary(executable: Path) -> bool:
    """Remove the '<exe>.old' left by a previous self-replacement. Never raises."""
    old = Path(str(executable) + OLD_BINARY_SUFFIX)
    try:
        old.unlink()
    except FileNotFoundError:
        return False
    except OSError as e:
        logger.debug(f"Could not remove {old}: {e}")
        return False
    logger.debug(f"Removed {old}")
    return True


class _client:
    """Use the given client, or a short-lived one closed on exit."""

    def __init__(self, client: Optional[httpx.Client]):
        self._given = client
        self._own: Optional[httpx.Client] = None

    def __enter__(self) -> httpx.Client:
        if self._given is not None:
            return self._given
        self._own = httpx.Client(follow_redirects=True)
        return self._own

    def __exit__(self, *args: object) -> None:
        if self._own is not None:
            self._own.close()
