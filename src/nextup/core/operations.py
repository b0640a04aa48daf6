# Author: PB & Claude
# Maintainer: PB
# Original date: 2026.10.18
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/nextup/core/operations.py

"""
Apply an UpdatePlan to the installation directory.

Two modes:
- PER_FILE: each changed file is downloaded individually by a bounded pool
  of worker threads. Transfer failures are collected and reported together
  once every task has finished.
- BULK: one repository archive is downloaded and extracted. Used for fresh
  installs and for large plans. Any failure is fatal.

In both modes every target path is checked against the installation root
before anything is written, so a traversal attempt aborts the whole
operation with no file touched. On success the remote manifest, filtered to
files present on disk, becomes the new local manifest.
"""

from __future__ import annotations

import shutil
import threading
import zipfile
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional

import loguru

from nextup.config.manager import UpdaterConfig
from nextup.core.paths import find_actual_case, is_user_config, normalize, resolve_within
from nextup.data.manifest import FileRecord, Manifest, ManifestStore
from nextup.data.manifest_comparison import UpdatePlan
from nextup.storage.io_transports import ArchiveTransport, FileTransport
from nextup.system.exceptions import (
    AggregateTransferError, ArchiveError, PathTraversalError, TransportError,
)
from nextup.system.progress import NullProgress, PercentThrottle, ProgressEvent, ProgressObserver

logger = loguru.logger


class ApplyMode(Enum):
    PER_FILE = "per-file"
    BULK = "bulk"


class ExtractMode(Enum):
    """What a bulk extraction writes."""
    FULL = "full"                  # fresh install: every archive entry
    DIFFERENTIAL = "differential"  # update: only entries in the plan's fetch set


@dataclass
class ApplyResult:
    mode: ApplyMode
    written: list[str] = field(default_factory=list)
    preserved: list[str] = field(default_factory=list)  # user-config files left alone
    manifest: Manifest = field(default_factory=Manifest)


@dataclass
class DeletionReport:
    moved: list[str] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)
    preserved: list[str] = field(default_factory=list)  # user-config files kept in place
    failed: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed


def detect_strip_prefix(names: list[str]) -> str:
    """Common top-level directory of an archive ('repo-branch/'), or ''.

    Taken from the first entry and only used when every entry shares it.
    """
    if not names or "/" not in names[0]:
        return ""
    prefix = names[0].split("/", 1)[0] + "/"
    if all(name.startswith(prefix) for name in names):
        return prefix
    return ""


class UpdateApplier:
    """Writes planned changes into one installation directory."""

    def __init__(
        self,
        install_root: Path,
        config: UpdaterConfig,
        file_transport: FileTransport,
        archive_transport: ArchiveTransport,
        store: Optional[ManifestStore] = None,
        progress: Optional[ProgressObserver] = None,
    ):
        self.install_root = Path(install_root)
        self.config = config
        self.file_transport = file_transport
        self.archive_transport = archive_transport
        self.store = store or ManifestStore(self.install_root, config)
        self.progress = progress or NullProgress()

    @property
    def quarantine_root(self) -> Path:
        return self.install_root / self.config.quarantine_dir

    def select_mode(self, plan: UpdatePlan, fresh_install: bool) -> ApplyMode:
        if fresh_install or len(plan.to_fetch) > self.config.zip_threshold:
            return ApplyMode.BULK
        return ApplyMode.PER_FILE

    def apply(
        self,
        plan: UpdatePlan,
        remote: Manifest,
        *,
        fresh_install: bool = False,
        archive_url: Optional[str] = None,
    ) -> ApplyResult:
        """Write the plan's files and persist the new local manifest.

        Raises:
            PathTraversalError: A target escapes the installation root
            AggregateTransferError: One or more per-file transfers failed
            TransportError: The archive could not be downloaded or read
        """
        mode = self.select_mode(plan, fresh_install)
        logger.info(f"Applying {len(plan.to_fetch)} file changes in {mode.value} mode")

        if mode is ApplyMode.BULK:
            if not archive_url:
                raise ValueError("bulk mode needs an archive URL")
            extract = ExtractMode.FULL if fresh_install else ExtractMode.DIFFERENTIAL
            result = self._apply_bulk(plan, archive_url, extract)
        else:
            result = self._apply_per_file(plan)

        result.manifest = self.store.save(remote)
        return result

    # ---- per-file mode ----

    def _plan_targets(self, records: list[FileRecord], result: ApplyResult) -> list[tuple[FileRecord, Path]]:
        targets = []
        for record in records:
            if is_user_config(record.name):
                logger.debug(f"Skipping user config file: {record.name}")
                result.preserved.append(record.name)
                continue
            target = resolve_within(self.install_root, record.name)
            targets.append((record, find_actual_case(target)))
        return targets

    def _apply_per_file(self, plan: UpdatePlan) -> ApplyResult:
        result = ApplyResult(mode=ApplyMode.PER_FILE)
        # Raises PathTraversalError before any transfer starts
        targets = self._plan_targets(plan.to_fetch, result)
        if not targets:
            return result

        total = len(targets)
        lock = threading.Lock()
        errors: list[Exception] = []
        completed: list[str] = []
        throttle = PercentThrottle(self.progress)

        def fetch_one(record: FileRecord, target: Path) -> None:
            target.parent.mkdir(parents=True, exist_ok=True)
            self.file_transport.fetch(record.url, target)

        with ThreadPoolExecutor(max_workers=self.config.file_workers) as executor:
            futures = {
                executor.submit(fetch_one, record, target): record
                for record, target in targets
            }
            for future in as_completed(futures):
                record = futures[future]
                try:
                    future.result()
                except (TransportError, OSError) as e:
                    logger.warning(f"Failed to update {record.name}: {e}")
                    with lock:
                        errors.append(e)
                    continue
                with lock:
                    completed.append(record.name)
                    done = len(completed)
                throttle.on_progress(ProgressEvent("files", done, total, record.name))

        if errors:
            raise AggregateTransferError(errors)

        result.written = sorted(completed)
        return result

    # ---- bulk mode ----

    def _apply_bulk(self, plan: UpdatePlan, archive_url: str, extract: ExtractMode) -> ApplyResult:
        result = ApplyResult(mode=ApplyMode.BULK)
        if extract is ExtractMode.DIFFERENTIAL and not plan.to_fetch:
            logger.debug("Differential extraction with an empty plan: nothing to do")
            return result

        archive = self.archive_transport.fetch_archive(archive_url, self.progress)
        try:
            self._extract(archive, plan, extract, result)
        finally:
            archive.unlink(missing_ok=True)
        return result

    def _extract(self, archive: Path, plan: UpdatePlan, extract: ExtractMode, result: ApplyResult) -> None:
        wanted = {normalize(name) for name in plan.fetch_names()}

        try:
            with zipfile.ZipFile(archive) as zf:
                infos = zf.infolist()
                prefix = detect_strip_prefix([i.filename for i in infos])

                selected = []
                for info in infos:
                    rel = info.filename[len(prefix):]
                    if not rel:
                        continue
                    name = normalize(rel)
                    if extract is ExtractMode.DIFFERENTIAL and not info.is_dir() and name not in wanted:
                        continue
                    # Raises PathTraversalError before anything is written
                    selected.append((info, name, resolve_within(self.install_root, rel)))

                total = sum(1 for info, _, _ in selected if not info.is_dir())
                throttle = PercentThrottle(self.progress)
                done = 0

                for info, name, target in selected:
                    if info.is_dir():
                        if extract is ExtractMode.FULL:
                            target.mkdir(parents=True, exist_ok=True)
                        continue

                    target = find_actual_case(target)
                    if is_user_config(name) and target.exists():
                        logger.debug(f"Preserving existing user config file: {name}")
                        result.preserved.append(name)
                        continue

                    target.parent.mkdir(parents=True, exist_ok=True)
                    with zf.open(info) as src, open(target, "wb") as dst:
                        shutil.copyfileobj(src, dst)
                    result.written.append(name)
                    done += 1
                    throttle.on_progress(ProgressEvent("extract", done, total, name))

        except zipfile.BadZipFile as e:
            raise ArchiveError(f"failed to parse archive: {e}") from e
        except OSError as e:
            raise ArchiveError(f"failed to extract archive: {e}") from e

        logger.info(f"Extracted {len(result.written)} files ({len(result.preserved)} preserved)")

    # ---- deletions ----

    def quarantine(self, paths: list[str]) -> DeletionReport:
        """Move files that left the remote repository into the quarantine directory.

        Each move is independent; failures are reported, not raised.
        """
        report = DeletionReport()
        for path in paths:
            name = normalize(path)
            if is_user_config(name):
                logger.debug(f"Not quarantining user config file: {name}")
                report.preserved.append(name)
                continue
            try:
                source = find_actual_case(resolve_within(self.install_root, name))
                if not source.exists():
                    report.missing.append(name)
                    continue
                dest = resolve_within(self.quarantine_root, name)
                dest.parent.mkdir(parents=True, exist_ok=True)
                source.replace(dest)
                report.moved.append(name)
                logger.debug(f"Moved {name} to {self.config.quarantine_dir}/")
            except (OSError, PathTraversalError) as e:
                logger.warning(f"Failed to remove {name}: {e}")
                report.failed[name] = str(e)
        return report

    def clean_quarantine(self) -> bool:
        """Remove a quarantine directory left by a previous run. Best effort."""
        if not self.quarantine_root.exists():
            return False
        try:
            shutil.rmtree(self.quarantine_root)
        except OSError as e:
            logger.warning(f"Could not clean {self.quarantine_root}: {e}")
            return False
        logger.debug(f"Cleaned {self.quarantine_root} from previous run")
        return True
