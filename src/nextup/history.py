# Author: PB & Claude
# Maintainer: PB
# Original date: 2026.10.18
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/nextup/history.py

"""
Human-readable changelog for a completed update.

Stable releases carry their own release notes in docs/changelog.txt; for the
dev and experimental channels a short "cliff notes" list is built from the
commit messages instead.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Iterable, Optional

import loguru

from nextup.data.manifest import FileRecord
from nextup.storage.remote import Commit

logger = loguru.logger

CHANGELOG_TITLE = "Miriani-Next Update Changelog"
RELEASE_NOTES_PATH = Path("docs") / "changelog.txt"
RULE_WIDTH = 60


def format_commit_as_cliff_note(commit: Commit) -> str:
    """One bullet for a commit, or '' for merge commits."""
    first_line = commit.message.split("\n", 1)[0].strip()

    if first_line.lower().startswith("merge "):
        return ""

    if first_line:
        first_line = first_line[0].upper() + first_line[1:]

    return f"* {first_line} (Commit {commit.sha[:7]})"


def generate_cliff_notes(commits: Iterable[Commit]) -> str:
    commits = list(commits)
    if not commits:
        return ""

    lines = ["\nChanges in this update:\n"]
    for commit in commits:
        note = format_commit_as_cliff_note(commit)
        if note:
            lines.append(note)
    return "\n".join(lines) + "\n"


def _release_notes(install_root: Path) -> Optional[str]:
    path = install_root / RELEASE_NOTES_PATH
    try:
        return path.read_text(encoding="utf-8", errors="replace")
    except OSError:
        logger.debug(f"No release notes at {path}")
        return None


def build_changelog(
    updates: list[FileRecord],
    deleted: list[str],
    channel: str,
    *,
    install_root: Path,
    commits: Optional[list[Commit]] = None,
    now: Optional[datetime] = None,
) -> str:
    now = now or datetime.now()
    total = len(updates) + len(deleted)
    parts = [
        f"{CHANGELOG_TITLE}\n\n",
        f"Channel: {channel}\n",
        f"Update completed: {now.strftime('%Y-%m-%d %H:%M:%S')}\n",
        f"Total changes: {total} files ({len(updates)} updated, {len(deleted)} deleted)\n",
    ]

    if channel == "stable":
        notes = _release_notes(Path(install_root))
        if notes is not None:
            rule = "=" * RULE_WIDTH
            parts.append(f"\n{rule}\nRELEASE NOTES\n{rule}\n\n{notes}\n{rule}\n\n")
    else:
        cliff = generate_cliff_notes(commits or [])
        if cliff:
            parts.append(f"\n{cliff}\n")

    rule = "-" * RULE_WIDTH
    parts.append(f"\n{rule}\nDetailed file changes:\n{rule}\n\n")

    if updates:
        parts.append(f"Updated/Added ({len(updates)} files):\n")
        parts.extend(f"  + {u.name}\n" for u in updates)
        parts.append("\n")

    if deleted:
        parts.append(f"Deleted ({len(deleted)} files):\n")
        parts.extend(f"  - {d}\n" for d in deleted)
        parts.append("\n")

    return "".join(parts)
