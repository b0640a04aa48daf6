# Author: PB & Claude
# Maintainer: PB
# Original date: 2026.10.18
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/nextup/core/lifecycle.py

"""
Update lifecycle for one installation directory.

- check: what would change, and which versions are involved
- update: check -> plan -> apply -> quarantine deletions -> persist
- switch: validate and save a new channel, then update
- generate-manifest: rebuild the local manifest from what is on disk

The remote side is reached only through a RemoteCatalog and the two
transports, so every step can run against fakes in tests.
"""

from __future__ import annotations

import importlib.metadata
from dataclasses import dataclass, field
from datetime import datetime, UTC
from pathlib import Path
from typing import Callable, Optional

import loguru
import orjson

from nextup.config.manager import Config
from nextup.core.operations import ApplyMode, ApplyResult, DeletionReport, UpdateApplier
from nextup.core.paths import find_actual_case, load_exclusions
from nextup.data import version as versions
from nextup.data.channel import (
    ChannelResolution, branch_exists, is_builtin, load_channel, ref_for_channel,
    resolve_channel, save_channel, validate_channel_switch,
)
from nextup.data.manifest import Manifest, ManifestStore
from nextup.data.manifest_comparison import UpdatePlan, compute_plan
from nextup.data.version import Version
from nextup.history import build_changelog
from nextup.storage.io_transports import ArchiveTransport, FileTransport
from nextup.storage.remote import Commit, RemoteCatalog
from nextup.system.exceptions import (
    ChannelError, ManifestNotFoundError, ManifestParseError, TransportError, VersionError,
)
from nextup.system.locking import InstallLock
from nextup.system.progress import ProgressObserver

logger = loguru.logger

try:
    PKG_VERSION = importlib.metadata.version("nextup")
except importlib.metadata.PackageNotFoundError:
    PKG_VERSION = "0.0.0"

MUSHCLIENT_EXE = "MUSHclient.exe"
WORLDS_DIR = "worlds"
WORLD_FILE_EXT = ".mcl"

DEFAULT_EXCLUDES = """\
# Updater Exclusions
# This file lists paths that the updater will NEVER touch.
# These are typically user configuration files and data.
#
# Lines starting with # are comments.
# One path per line.
# Paths are relative to the installation directory.
#
# DO NOT delete this file unless you want the updater to
# potentially overwrite your configuration!

# MUSHclient configuration files
mushclient.ini
mushclient_prefs.sqlite

# World configuration files (*.mcl files in worlds directory)
worlds/*.mcl

"""

ConfirmFn = Callable[[str], bool]


# ---- Installation probes ----

def is_installed(install_root: Path, manifest_file: str = ".manifest") -> bool:
    """MUSHclient.exe present, plus either the worlds directory or a manifest."""
    root = Path(install_root)
    has_client = find_actual_case(root / MUSHCLIENT_EXE).is_file()
    has_worlds = (root / WORLDS_DIR).is_dir()
    has_manifest = (root / manifest_file).exists()
    return has_client and (has_worlds or has_manifest)


def has_world_files(install_root: Path) -> bool:
    """Looks like an installation even without a manifest: MUSHclient.exe or a world file."""
    root = Path(install_root)
    if (root / MUSHCLIENT_EXE).is_file():
        return True
    worlds = root / WORLDS_DIR
    if not worlds.is_dir():
        return False
    return any(p.is_file() and p.suffix.lower() == WORLD_FILE_EXT for p in worlds.iterdir())


def create_default_excludes(install_root: Path, filename: str = ".updater-excludes") -> bool:
    """Write the default exclusions file unless one exists. Returns True if written."""
    path = Path(install_root) / filename
    if path.exists():
        return False
    path.write_text(DEFAULT_EXCLUDES, encoding="utf-8")
    logger.debug(f"Created {path}")
    return True


# ---- Results ----

@dataclass
class PendingUpdate:
    plan: UpdatePlan
    local: Manifest
    remote: Manifest
    ref: str
    fresh_install: bool = False
    regenerated: bool = False


@dataclass
class CheckResult:
    pending: PendingUpdate
    channel: str
    installed: bool
    local_version: Optional[Version] = None
    latest_version: Optional[Version] = None

    @property
    def has_updates(self) -> bool:
        return not self.pending.plan.is_empty

    @property
    def restart_required(self) -> bool:
        return self.pending.plan.touches(MUSHCLIENT_EXE)


@dataclass
class UpdateOutcome:
    channel: str
    plan: UpdatePlan
    applied: Optional[ApplyResult] = None
    deletions: Optional[DeletionReport] = None
    version: Optional[Version] = None
    changelog: str = ""
    cancelled: bool = False
    warnings: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return self.applied is not None and not self.plan.is_empty


class Updater:
    """Drives check, update, switch and manifest generation for one installation."""

    def __init__(
        self,
        config: Config,
        catalog: RemoteCatalog,
        file_transport: FileTransport,
        archive_transport: ArchiveTransport,
        progress: Optional[ProgressObserver] = None,
        confirm: Optional[ConfirmFn] = None,
    ):
        self.config = config
        self.settings = config.updater
        self.root = config.install_root
        self.catalog = catalog
        self.confirm = confirm or (lambda prompt: True)
        self.store = ManifestStore(self.root, self.settings)
        self.applier = UpdateApplier(
            self.root, self.settings, file_transport, archive_transport,
            store=self.store, progress=progress,
        )
        self._channel: Optional[ChannelResolution] = None

    # ---- channel ----

    @property
    def channel(self) -> ChannelResolution:
        if self._channel is None:
            self._channel = resolve_channel(
                self.root,
                self.catalog,
                explicit=self.config.options.channel,
                default=self.settings.channel,
                filename=self.settings.channel_file,
            )
            if self._channel.is_experimental:
                logger.info(f"Using experimental branch '{self._channel.name}'")
        return self._channel

    def _confirm_downgrade(self, prompt: str) -> bool:
        return self.config.options.allow_downgrade or self.confirm(prompt)

    # ---- manifests ----

    def remote_manifest(self) -> tuple[str, Manifest]:
        ref = ref_for_channel(self.channel.name, self.catalog)
        logger.debug(f"Using ref {ref} for channel {self.channel.name}")
        tree = self.catalog.get_tree(ref)
        return ref, self.store.build_remote_manifest(ref, tree.tree, self.catalog.get_raw_url)

    def generate_manifest(self) -> Manifest:
        """Write the remote manifest, filtered to files present on disk, as the local manifest."""
        _, remote = self.remote_manifest()
        return self.store.save(remote)

    def pending_plan(self) -> PendingUpdate:
        """Compare the local manifest against the channel's current snapshot.

        A missing or corrupt local manifest is regenerated from disk when the
        directory looks like an installation. A missing manifest elsewhere
        means a fresh install.
        """
        ref, remote = self.remote_manifest()
        fresh = not is_installed(self.root, self.settings.manifest_file)
        regenerated = False

        try:
            local = self.store.load_local()
        except (ManifestNotFoundError, ManifestParseError) as e:
            if has_world_files(self.root):
                logger.warning(f"Local manifest unusable ({e}); regenerating from local files")
                local = self.store.save(remote)
                regenerated = True
            elif isinstance(e, ManifestNotFoundError):
                logger.debug("No local manifest: treating as a fresh install")
                local = Manifest()
            else:
                raise

        exclusions = load_exclusions(self.root / self.settings.excludes_file)
        plan = compute_plan(local, remote, exclusions)
        return PendingUpdate(plan, local, remote, ref, fresh_install=fresh, regenerated=regenerated)

    # ---- versions ----

    def local_version(self) -> Optional[Version]:
        try:
            return versions.load_local(self.root, self.settings.version_file)
        except VersionError as e:
            logger.debug(f"No local version: {e}")
            return None

    def latest_version(self) -> Optional[Version]:
        try:
            return versions.latest_version(self.catalog, self.channel.name)
        except (TransportError, VersionError) as e:
            logger.warning(f"Could not determine latest version: {e}")
            return None

    def commits_since(self, local: Optional[Version], latest: Optional[Version]) -> list[Commit]:
        """Commits between the installed and latest versions, for the changelog.

        Only meaningful off the stable channel, where versions carry commits.
        """
        if latest is None or not latest.commit:
            return []
        try:
            if local is None or not local.commit:
                ref = ref_for_channel(self.channel.name, self.catalog)
                return self.catalog.get_recent_commits(ref, limit=10)
            return self.catalog.compare_commits(local.commit, latest.commit).commits
        except TransportError as e:
            logger.debug(f"Could not list commits for changelog: {e}")
            return []

    # ---- operations ----

    def check(self) -> CheckResult:
        pending = self.pending_plan()
        return CheckResult(
            pending=pending,
            channel=self.channel.name,
            installed=not pending.fresh_install,
            local_version=self.local_version(),
            latest_version=self.latest_version(),
        )

    def run_update(self, confirm: Optional[ConfirmFn] = None) -> UpdateOutcome:
        """Bring the installation up to date with its channel.

        Raises:
            LockConflictError: Another updater is working on this installation
            ChannelError: A channel switch was refused or declined
            PathTraversalError, AggregateTransferError, TransportError: Apply failed
        """
        if confirm is not None:
            self.confirm = confirm

        self.root.mkdir(parents=True, exist_ok=True)
        with InstallLock(self.root, "update", self.settings.lock_file):
            self.applier.clean_quarantine()

            channel = self.channel.name
            saved = load_channel(self.root, self.settings.channel_file)
            validate_channel_switch(saved, channel, self.catalog, self._confirm_downgrade)

            pending = self.pending_plan()
            plan = pending.plan
            outcome = UpdateOutcome(channel=channel, plan=plan)

            if plan.is_empty and not pending.fresh_install:
                logger.info("Already up to date")
                self._remember_channel(saved, channel)
                return outcome

            if not self.confirm("Do you want to proceed with the update?"):
                outcome.cancelled = True
                return outcome

            local_version = self.local_version()
            archive_url = None
            if self.applier.select_mode(plan, pending.fresh_install) is ApplyMode.BULK:
                archive_url = self.catalog.archive_url(channel)

            outcome.applied = self.applier.apply(
                plan, pending.remote, fresh_install=pending.fresh_install, archive_url=archive_url,
            )
            outcome.deletions = self.applier.quarantine(plan.to_delete)
            if not outcome.deletions.ok:
                for name, reason in outcome.deletions.failed.items():
                    outcome.warnings.append(f"could not remove {name}: {reason}")

            outcome.version = self.latest_version()
            if outcome.version is not None:
                versions.save(self.root, outcome.version, self.settings.version_file)

            self._remember_channel(saved, channel)
            if pending.fresh_install:
                create_default_excludes(self.root, self.settings.excludes_file)

            commits = [] if channel == "stable" else self.commits_since(local_version, outcome.version)
            outcome.changelog = build_changelog(
                plan.to_fetch, plan.to_delete, channel,
                install_root=self.root, commits=commits,
            )

            if self.config.options.non_interactive:
                self.write_update_result(plan, outcome.version)

            logger.info(f"Update complete: {plan.total_changes} changes on {channel}")
            return outcome

    def switch_channel(self, name: str, confirm: Optional[ConfirmFn] = None) -> UpdateOutcome:
        """Validate and save a new channel, then update to it.

        Raises:
            ChannelError: Unknown branch, or the switch was refused or declined
        """
        if confirm is not None:
            self.confirm = confirm

        name = name.strip()
        if not name:
            raise ChannelError("channel must not be empty")
        current = load_channel(self.root, self.settings.channel_file) or self.settings.channel

        if not is_builtin(name) and not branch_exists(name, self.catalog):
            raise ChannelError(f"no such channel or branch: {name}")

        validate_channel_switch(current, name, self.catalog, self._confirm_downgrade)
        save_channel(self.root, name, self.settings.channel_file)
        logger.info(f"Update channel changed to: {name}")

        self._channel = ChannelResolution(name, "flag")
        return self.run_update()

    def _remember_channel(self, saved: Optional[str], channel: str) -> None:
        if saved == channel:
            return
        try:
            save_channel(self.root, channel, self.settings.channel_file)
        except OSError as e:
            logger.warning(f"Failed to save channel preference: {e}")

    def write_update_result(
        self,
        plan: Optional[UpdatePlan] = None,
        version: Optional[Version] = None,
        *,
        message: Optional[str] = None,
        restarted: bool = False,
    ) -> Path:
        """Machine-readable summary for the launcher that started a non-interactive run.

        A message marks the run as failed.
        """
        data: dict = {"result": "failure" if message else "success"}
        if message:
            data["message"] = message
        else:
            data["version"] = str(version) if version is not None else "unknown"
        if plan is not None:
            data["files_added"] = [r.name for r in plan.to_fetch]
            data["files_deleted"] = list(plan.to_delete)
        data["restarted"] = restarted
        data["completed_at"] = datetime.now(UTC).isoformat()
        data["updater_version"] = PKG_VERSION

        path = self.root / self.settings.result_file
        path.write_bytes(orjson.dumps(data, option=orjson.OPT_INDENT_2 | orjson.OPT_APPEND_NEWLINE))
        logger.debug(f"Wrote {path}")
        return path
