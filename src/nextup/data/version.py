# Author: PB & Claude
# Maintainer: PB
# Original date: 2026.10.18
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/nextup/data/version.py

from __future__ import annotations

from pathlib import Path

import loguru
import orjson
from pydantic import BaseModel, ValidationError

from nextup.data.channel import ref_for_channel
from nextup.system.exceptions import TransportError, VersionError

logger = loguru.logger

COMMIT_ID_LENGTH = 16


class Version(BaseModel):
    """Installed or available release: tag numbers plus, off the stable channel, a commit id."""
    major: int = 0
    minor: int = 0
    patch: int = 0
    commit: str = ""
    date: str = ""

    def __str__(self) -> str:
        ver = f"{self.major}.{self.minor}.{self.patch:02d}"
        if self.commit:
            ver += f"+{self.commit[:7]}"
        return ver

    def to_json(self) -> bytes:
        data = self.model_dump()
        for key in ("commit", "date"):
            if not data[key]:
                del data[key]
        return orjson.dumps(data, option=orjson.OPT_INDENT_2)


def parse_tag(tag: str) -> tuple[int, int, int]:
    """Split a 'vX.Y.Z' tag into integers.

    Raises:
        VersionError: If the tag does not have exactly three numeric parts
    """
    parts = tag.removeprefix("v").split(".")
    if len(parts) != 3:
        raise VersionError(f"invalid tag format: {tag} (expected vX.Y.Z)")
    try:
        major, minor, patch = (int(p) for p in parts)
    except ValueError as e:
        raise VersionError(f"invalid version number in tag {tag}: {e}") from e
    return major, minor, patch


def load_local(install_root: Path, filename: str = "version.json") -> Version:
    """Read the installed version.

    Raises:
        VersionError: If the file is missing or unreadable
    """
    path = Path(install_root) / filename
    try:
        return Version.model_validate(orjson.loads(path.read_bytes()))
    except OSError as e:
        raise VersionError(f"failed to read local version: {e}") from e
    except (orjson.JSONDecodeError, ValidationError) as e:
        raise VersionError(f"failed to parse local version: {e}") from e


def save(install_root: Path, version: Version, filename: str = "version.json") -> Path:
    path = Path(install_root) / filename
    path.write_bytes(version.to_json())
    logger.debug(f"Saved version {version} to {path}")
    return path


def latest_version(catalog, channel: str) -> Version:
    """Version the channel currently points to.

    Stable is the latest tag. Other channels take their numbers from the
    latest tag when it parses (0.0.00 otherwise) plus the first
    COMMIT_ID_LENGTH characters of the branch tree SHA.

    Raises:
        VersionError: If the stable tag is malformed
        TransportError: If the remote cannot be reached
    """
    if channel == "stable":
        major, minor, patch = parse_tag(catalog.get_latest_tag())
        return Version(major=major, minor=minor, patch=patch)

    version = Version()
    try:
        version.major, version.minor, version.patch = parse_tag(catalog.get_latest_tag())
    except (TransportError, VersionError) as e:
        logger.debug(f"No usable tag for {channel} version numbers: {e}")

    tree = catalog.get_tree(ref_for_channel(channel, catalog))
    version.commit = tree.sha[:COMMIT_ID_LENGTH]
    logger.debug(f"{channel} channel version: {version}")
    return version
