# Author: PB & Claude
# Maintainer: PB
# Original date: 2026.10.18
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/nextup/data/manifest_comparison.py

"""
Compare the local manifest against a remote manifest.

Each path is classified into a FileState from its presence in the two
manifests and, when present in both, hash equality. The hash is the only
"changed" criterion: size and mtime are never consulted.

The classification is pure: no filesystem or network access, and it never
raises. Callers that need the work list use compute_plan().
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable

import loguru

from nextup.core.paths import ExclusionSet, matches_exclusion
from nextup.data.manifest import FileRecord, Manifest

logger = loguru.logger


class FileState(Enum):
    unchanged   = "11: local and remote present, hashes equal"
    changed     = "11: local and remote present, hashes differ"
    new         = "01: only remote has the file"
    removed     = "10: only local has the file"
    excluded    = "x1: remote file matches an exclusion pattern"

    def __str__(self) -> str:
        return self.value


@dataclass
class UpdatePlan:
    """Files to download and local paths no longer present upstream."""
    to_fetch: list[FileRecord] = field(default_factory=list)
    to_delete: list[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.to_fetch and not self.to_delete

    @property
    def total_changes(self) -> int:
        return len(self.to_fetch) + len(self.to_delete)

    def fetch_names(self) -> set[str]:
        return {r.name for r in self.to_fetch}

    def touches(self, name: str) -> bool:
        """True if name (case-insensitive) is among the files to fetch."""
        wanted = name.lower()
        return any(r.name.lower() == wanted for r in self.to_fetch)


def classify(
    local: FileRecord | None,
    remote: FileRecord | None,
    excluded: bool = False,
) -> FileState | None:
    if remote is not None and excluded:
        return FileState.excluded
    if remote is not None and local is None:
        return FileState.new
    if remote is not None and local.hash != remote.hash:
        return FileState.changed
    if remote is not None:
        return FileState.unchanged
    if local is not None:
        return FileState.removed
    return None


def classify_paths(
    local: Manifest,
    remote: Manifest,
    exclusions: ExclusionSet = frozenset(),
) -> dict[str, FileState]:
    """Map every path known to either manifest to its FileState.

    Remote paths come first, in remote order, followed by local-only paths.
    """
    normalized_local = local.normalized()
    normalized_remote = remote.normalized()
    states: dict[str, FileState] = {}

    for key, remote_record in normalized_remote.entries.items():
        excluded = matches_exclusion(key, exclusions)
        states[key] = classify(normalized_local.get(key), remote_record, excluded)

    for key in normalized_local:
        if key not in normalized_remote:
            states[key] = FileState.removed

    return states


def compute_plan(
    local: Manifest,
    remote: Manifest,
    exclusions: Iterable[str] = frozenset(),
) -> UpdatePlan:
    """Work out which remote files to fetch and which local paths to delete.

    Excluded remote files are never fetched, even when new or changed.
    Deletion considers every local path absent from the remote manifest.
    """
    exclusions = frozenset(exclusions)
    remote = remote.normalized()
    plan = UpdatePlan()

    for key, state in classify_paths(local, remote, exclusions).items():
        if state is FileState.excluded:
            logger.debug(f"Skipping excluded file: {key}")
        elif state in (FileState.new, FileState.changed):
            plan.to_fetch.append(remote.get(key))
        elif state is FileState.removed:
            plan.to_delete.append(key)

    logger.debug(
        f"Plan: {len(plan.to_fetch)} to fetch, {len(plan.to_delete)} to delete"
    )
    return plan
