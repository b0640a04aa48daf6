# Author: PB & Claude
# Maintainer: PB
# Original date: 2026.10.18
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/nextup/data/channel.py

"""
Update channels.

``stable`` follows the latest release tag, ``dev`` follows the main branch,
and any other name is an experimental branch of the same repository. The
chosen channel is remembered in a dotfile in the installation root.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Optional

import loguru

from nextup.config.manager import BUILTIN_CHANNELS
from nextup.system.exceptions import ChannelError, TransportError

if TYPE_CHECKING:
    from nextup.storage.remote import RemoteCatalog

logger = loguru.logger

CHANNEL_FILE = ".update-channel"
DEV_BRANCH = "main"

ConfirmFn = Callable[[str], bool]


def load_channel(install_root: Path, filename: str = CHANNEL_FILE) -> Optional[str]:
    """Saved channel name, or None when nothing usable is saved."""
    try:
        name = (Path(install_root) / filename).read_text(encoding="utf-8").strip()
    except OSError:
        return None
    return name or None


def save_channel(install_root: Path, name: str, filename: str = CHANNEL_FILE) -> None:
    (Path(install_root) / filename).write_text(name, encoding="utf-8")
    logger.debug(f"Saved channel preference: {name}")


def is_builtin(name: str) -> bool:
    return name in BUILTIN_CHANNELS


def ref_for_channel(name: str, catalog: RemoteCatalog) -> str:
    """Git ref a channel currently points to."""
    if name == "stable":
        return catalog.get_latest_tag()
    if name == "dev":
        return DEV_BRANCH
    return name


def branch_exists(name: str, catalog: RemoteCatalog) -> bool:
    """True if name is a branch of the remote. Unreachable remote counts as no."""
    try:
        return any(b.name == name for b in catalog.get_branches())
    except TransportError as e:
        logger.debug(f"Could not list branches: {e}")
        return False


@dataclass
class ChannelResolution:
    name: str
    source: str  # "flag", "saved" or "default"
    fell_back_from: Optional[str] = None

    @property
    def is_experimental(self) -> bool:
        return not is_builtin(self.name)


def resolve_channel(
    install_root: Path,
    catalog: RemoteCatalog,
    explicit: Optional[str] = None,
    default: str = "stable",
    filename: str = CHANNEL_FILE,
) -> ChannelResolution:
    """Pick the channel for this run: explicit flag, then saved, then default.

    An experimental channel whose branch no longer exists falls back to dev,
    and the fallback is saved.
    """
    if explicit:
        resolution = ChannelResolution(explicit, "flag")
    else:
        saved = load_channel(install_root, filename)
        resolution = ChannelResolution(saved, "saved") if saved else ChannelResolution(default, "default")

    if is_builtin(resolution.name) or branch_exists(resolution.name, catalog):
        return resolution

    logger.warning(
        f"The experimental branch '{resolution.name}' no longer exists; switching to the dev channel"
    )
    fallback = ChannelResolution("dev", resolution.source, fell_back_from=resolution.name)
    try:
        save_channel(install_root, fallback.name, filename)
    except OSError as e:
        logger.warning(f"Failed to save channel preference: {e}")
    return fallback


def validate_channel_switch(
    from_channel: Optional[str],
    to_channel: str,
    catalog: RemoteCatalog,
    confirm: ConfirmFn,
) -> None:
    """Refuse or confirm a switch that would install older code.

    Switching to stable when stable is behind the current branch is refused.
    Switching to dev from stable or from an experimental branch asks ``confirm`` when the target is behind. Failures of the
    comparison are logged and the switch is allowed, except for a switch to
    stable, which must be proven safe.

    Raises:
        ChannelError: The switch is refused or declined
    """
    if not from_channel or from_channel == to_channel:
        return

    if to_channel == "stable":
        try:
            tag = catalog.get_latest_tag()
        except TransportError as e:
            raise ChannelError(f"failed to get latest stable tag: {e}") from e

        current = DEV_BRANCH if from_channel == "dev" else from_channel
        try:
            comparison = catalog.compare_commits(current, tag)
        except TransportError as e:
            raise ChannelError(f"failed to compare commits: {e}") from e

        if comparison.behind_by > 0:
            raise ChannelError(
                f"stable ({tag}) is {comparison.behind_by} commits behind {from_channel}, "
                f"refusing downgrade"
            )
        logger.info(f"Stable ({tag}) is {comparison.ahead_by} commits ahead of {from_channel}")
        return

    if to_channel == "dev" and from_channel == "stable":
        try:
            tag = catalog.get_latest_tag()
            comparison = catalog.compare_commits(DEV_BRANCH, tag)
        except TransportError as e:
            logger.warning(f"Couldn't compare dev to stable: {e}")
            return

        # The tag being ahead of main means dev is behind stable
        if comparison.ahead_by > 0:
            logger.warning(f"Dev is {comparison.ahead_by} commits behind stable ({tag})")
            if not confirm("Switch to older dev version anyway?"):
                raise ChannelError("user cancelled downgrade to dev")
        return

    if not is_builtin(from_channel) and to_channel == "dev":
        try:
            comparison = catalog.compare_commits(DEV_BRANCH, from_channel)
        except TransportError as e:
            logger.warning(f"Couldn't compare dev to {from_channel}: {e}")
            return

        if comparison.behind_by > 0:
            logger.warning(f"dev is {comparison.behind_by} commits behind {from_channel}")
            if not confirm("Switch to older dev version anyway?"):
                raise ChannelError("user cancelled downgrade to dev")
