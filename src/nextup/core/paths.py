# Author: PB & Claude
# Maintainer: PB
# Original date: 2026.10.18
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/nextup/core/paths.py

"""
Path policy for the installation directory.

Manifest keys are stored in a canonical forward-slash form; everything that
touches the filesystem converts back with denormalize(). Comparisons against
exclusion patterns and the user-config list are case-insensitive so that a
repository edited on Linux still matches an install on a case-insensitive
Windows filesystem.
"""

from __future__ import annotations

import os
import posixpath
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Final, Iterable

import loguru

from nextup.system.exceptions import PathTraversalError

logger = loguru.logger

ExclusionSet = frozenset[str]

# Client preference/database files that are never overwritten
USER_CONFIG_FILES: Final[frozenset[str]] = frozenset({
    "mushclient_prefs.sqlite",
    "mushclient.ini",
})

# Directory prefixes holding per-user state
USER_CONFIG_PREFIXES: Final[tuple[str, ...]] = (
    "worlds/plugins/state/",
    "logs/",
    "worlds/settings/",
)

WORLDS_DIR: Final = "worlds"
WORLD_FILE_EXT: Final = ".mcl"


def normalize(path: str | os.PathLike) -> str:
    """Canonical manifest form: '.' and '..' collapsed, '/' separators."""
    p = os.fspath(path).replace("\\", "/")
    if os.sep != "/":
        p = p.replace(os.sep, "/")
    return posixpath.normpath(p) if p else "."


def denormalize(path: str) -> str:
    """Convert a manifest path to the platform form, for filesystem access only."""
    return path.replace("/", os.sep)


def clean_lower(path: str | os.PathLike) -> str:
    return normalize(path).lower()


def is_user_config(path: str | os.PathLike) -> bool:
    """True for files that belong to the user and must never be overwritten.

    This check is independent of the exclusions file and takes precedence
    over it: a user-config file is protected even if nobody excluded it.
    """
    p = clean_lower(path)

    if p in USER_CONFIG_FILES:
        return True
    if p.startswith(WORLDS_DIR + "/") and p.endswith(WORLD_FILE_EXT):
        return True
    return p.startswith(USER_CONFIG_PREFIXES)


def _glob_match(pattern: str, path: str) -> bool:
    # '*' and '?' never cross a '/' boundary
    pattern_parts = pattern.split("/")
    path_parts = path.split("/")
    if len(pattern_parts) != len(path_parts):
        return False
    return all(fnmatchcase(part, pat) for pat, part in zip(pattern_parts, path_parts))


def matches_exclusion(path: str | os.PathLike, exclusions: Iterable[str]) -> bool:
    """Check a path against exact, glob ('*') and directory-prefix ('dir/') patterns."""
    p = clean_lower(path)

    for pattern in exclusions:
        if p == pattern:
            return True
        if "*" in pattern and _glob_match(pattern, p):
            return True
        if pattern.endswith("/") and p.startswith(pattern):
            return True

    return False


def _normalize_pattern(line: str) -> str:
    is_dir = line.endswith(("/", "\\"))
    pattern = clean_lower(line)
    if is_dir and pattern != ".":
        pattern += "/"
    return pattern


def load_exclusions(excludes_path: Path) -> ExclusionSet:
    """Read exclusion patterns, one per line.

    Blank lines and lines starting with '#' are skipped. A missing or
    unreadable file yields an empty set: exclusions are optional. Bytes that
    are not UTF-8 (files saved in a legacy codepage) are replaced, so ASCII
    patterns on other lines still load.
    """
    try:
        text = excludes_path.read_bytes().decode("utf-8", errors="replace")
    except OSError as e:
        logger.debug(f"No exclusions loaded from {excludes_path}: {e}")
        return frozenset()

    patterns = set()
    for raw in text.splitlines():
        line = raw.strip()
        if line and not line.startswith("#"):
            patterns.add(_normalize_pattern(line))

    logger.debug(f"Loaded {len(patterns)} exclusion patterns from {excludes_path}")
    return frozenset(patterns)


def find_actual_case(target_path: Path) -> Path:
    """Return the on-disk spelling of target_path.

    If the path does not exist verbatim, the parent directory is scanned for
    a case-insensitive match. Falls back to the original path (safe to create
    there), including when the parent directory does not exist.
    """
    target_path = Path(target_path)
    if target_path.exists():
        return target_path

    wanted = target_path.name.casefold()
    try:
        with os.scandir(target_path.parent) as entries:
            for entry in entries:
                if entry.name.casefold() == wanted:
                    return target_path.parent / entry.name
    except OSError:
        return target_path

    return target_path


def resolve_within(root: Path, relative: str) -> Path:
    """Join a manifest path onto root and refuse anything that escapes it.

    Raises:
        PathTraversalError: if the resolved target is not root or below it
    """
    base = Path(root).resolve()
    target = (base / denormalize(relative)).resolve()
    if target != base and not target.is_relative_to(base):
        raise PathTraversalError(f"path traversal attempt detected: {relative}", path=relative)
    return target
