# Author: PB & Claude
# Maintainer: PB
# Original date: 2026.10.18
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/nextup/data/manifest.py

"""
The local manifest: the authoritative record of what is actually installed.

On disk the manifest is a JSON object keyed by forward-slash relative path,
each value a ``{name, hash, url}`` record. Lines whose trimmed content starts
with ``//`` are dropped before decoding so the file can carry hand-written
notes; those notes are not preserved on save.
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Callable, Iterable, Iterator, Optional

import loguru
import orjson
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from nextup.config.manager import UpdaterConfig
from nextup.core.paths import (
    WORLD_FILE_EXT, WORLDS_DIR, clean_lower, find_actual_case,
    normalize, resolve_within,
)
from nextup.system.exceptions import (
    ManifestNotFoundError, ManifestParseError, PathTraversalError,
)

logger = loguru.logger

COMMENT_MARKER = "//"


class FileRecord(BaseModel):
    """One tracked file. Immutable; a changed file is a new record."""
    model_config = ConfigDict(frozen=True)

    name: str
    hash: str
    url: str = ""


class TreeItem(BaseModel):
    """One entry of a remote repository tree listing."""
    path: str
    type: str  # "blob" or "tree"
    sha: str


class Manifest(BaseModel):
    """Mapping of normalized relative path to FileRecord."""
    entries: dict[str, FileRecord] = Field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.entries)

    def __contains__(self, path: str) -> bool:
        return path in self.entries

    def __iter__(self) -> Iterator[str]:  # type: ignore[override]
        return iter(self.entries)

    def get(self, path: str) -> Optional[FileRecord]:
        return self.entries.get(path)

    def records(self) -> list[FileRecord]:
        return list(self.entries.values())

    def normalized(self) -> Manifest:
        """Copy with every key re-normalized (hand-edited files may use backslashes)."""
        return Manifest(entries={normalize(k): v for k, v in self.entries.items()})

    def to_json(self) -> bytes:
        data = {k: v.model_dump() for k, v in self.entries.items()}
        return orjson.dumps(
            data,
            option=orjson.OPT_INDENT_2 | orjson.OPT_SORT_KEYS | orjson.OPT_APPEND_NEWLINE,
        )

    @classmethod
    def from_json(cls, raw: bytes | str) -> Manifest:
        """Decode manifest text, tolerating '//' comment lines.

        Raises:
            ManifestParseError: If the remaining text is not a valid manifest
        """
        try:
            text = raw.decode("utf-8") if isinstance(raw, bytes) else raw
            kept = [line for line in text.split("\n") if not line.strip().startswith(COMMENT_MARKER)]
            data = orjson.loads("\n".join(kept))
        except (UnicodeDecodeError, orjson.JSONDecodeError) as e:
            raise ManifestParseError(f"failed to parse local manifest: {e}") from e

        if not isinstance(data, dict):
            raise ManifestParseError("failed to parse local manifest: top level is not an object")

        try:
            entries = {normalize(k): FileRecord.model_validate(v) for k, v in data.items()}
        except ValidationError as e:
            raise ManifestParseError(f"failed to parse local manifest: {e}") from e

        return cls(entries=entries)


class ManifestStore:
    """Loads and atomically rewrites the manifest dotfile of one installation."""

    def __init__(self, install_root: Path, config: UpdaterConfig | None = None):
        self.install_root = Path(install_root)
        self.config = config or UpdaterConfig()
        self.manifest_path = self.install_root / self.config.manifest_file
        self._builtin_prefixes = (".git/", ".github/", "worlds/plugin/state/")
        self._builtin_files = frozenset(
            name.lower() for name in (
                ".gitignore",
                self.config.manifest_file,
                self.config.excludes_file,
                self.config.version_file,
                "mushclient_prefs.sqlite",
                "mushclient.ini",
                *self.config.updater_names,
            )
        )

    def load_local(self) -> Manifest:
        """Read the local manifest.

        Raises:
            ManifestNotFoundError: If the manifest file is absent
            ManifestParseError: If it cannot be decoded after comment stripping
        """
        try:
            raw = self.manifest_path.read_bytes()
        except FileNotFoundError as e:
            raise ManifestNotFoundError(
                f"local manifest not found: {self.manifest_path}", path=str(self.manifest_path)
            ) from e

        manifest = Manifest.from_json(raw)
        logger.debug(f"Loaded local manifest with {len(manifest)} entries")
        return manifest

    def _exists_on_disk(self, path: str) -> bool:
        try:
            target = resolve_within(self.install_root, path)
        except PathTraversalError:
            logger.warning(f"Dropping manifest entry outside installation: {path}")
            return False
        return find_actual_case(target).is_file()

    def save(self, manifest: Manifest) -> Manifest:
        """Persist the subset of manifest whose files exist on disk.

        The previous file is replaced wholesale (no merge) via a temporary
        file and an atomic rename.

        Returns:
            The manifest that was written
        """
        present = Manifest(entries={
            path: record for path, record in manifest.entries.items()
            if self._exists_on_disk(path)
        })
        dropped = len(manifest) - len(present)
        if dropped:
            logger.debug(f"Dropped {dropped} manifest entries with no file on disk")

        self.install_root.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=self.config.manifest_file + ".", suffix=".tmp", dir=self.install_root
        )
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(present.to_json())
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.manifest_path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

        logger.info(f"Saved manifest with {len(present)} entries to {self.manifest_path}")
        return present

    def should_exclude(self, path: str) -> bool:
        """Built-in exclusions: never part of a remote manifest, whatever the exclusions file says."""
        p = clean_lower(path)

        if p in self._builtin_files:
            return True
        for prefix in self._builtin_prefixes:
            if p.startswith(prefix) or p == prefix.rstrip("/"):
                return True

        # World files are the user's configuration
        return p.startswith(WORLDS_DIR + "/") and p.endswith(WORLD_FILE_EXT)

    def build_remote_manifest(
        self,
        ref: str,
        tree: Iterable[TreeItem],
        raw_url: Callable[[str, str], str],
    ) -> Manifest:
        """Convert a repository tree listing into a manifest.

        Only blobs are kept; built-in exclusions are dropped; every record
        carries the blob SHA and a raw download URL for ref.
        """
        entries = {}
        for item in tree:
            if item.type != "blob":
                continue
            if self.should_exclude(item.path):
                continue
            name = normalize(item.path)
            entries[name] = FileRecord(name=name, hash=item.sha, url=raw_url(ref, item.path))

        logger.debug(f"Found {len(entries)} files in repository at {ref}")
        return Manifest(entries=entries)

    def exists(self) -> bool:
        return self.manifest_path.exists()
