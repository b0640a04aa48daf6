# Author: PB & Claude
# Maintainer: PB
# Original date: 2026.10.18
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# tests/conftest.py

"""
Shared test fixtures for the nextup test suite.

The remote repository is replaced by the in-memory fakes in helpers.py:
FakeCatalog serves a tree built from a {path: content} dict,
FakeFileTransport writes the content behind a raw URL, and
FakeArchiveTransport zips the same content the way GitHub does (with a
'repo-branch/' top-level directory).
"""

from pathlib import Path
from typing import Optional

import pytest

from nextup.config.manager import Config, RunOptions, UpdaterConfig
from nextup.core.lifecycle import Updater
from nextup.data.manifest import FileRecord, Manifest

from helpers import (
    RAW_BASE, REMOTE_FILES, FakeArchiveTransport, FakeCatalog, FakeFileTransport,
    RecordingProgress, blob_sha, write_files,
)


@pytest.fixture
def install_root(tmp_path) -> Path:
    root = tmp_path / "install"
    root.mkdir()
    return root


@pytest.fixture
def updater_config() -> UpdaterConfig:
    return UpdaterConfig()


@pytest.fixture
def catalog() -> FakeCatalog:
    return FakeCatalog(dict(REMOTE_FILES))


@pytest.fixture
def file_transport(catalog) -> FakeFileTransport:
    return FakeFileTransport(catalog)


@pytest.fixture
def archive_transport(catalog, tmp_path) -> FakeArchiveTransport:
    return FakeArchiveTransport(catalog, tmp_path / "archives")


@pytest.fixture
def progress() -> RecordingProgress:
    return RecordingProgress()


@pytest.fixture
def make_updater(install_root, catalog, file_transport, archive_transport):
    """Build an Updater over the fake remote; keyword arguments become RunOptions."""
    def _make(root: Optional[Path] = None, confirm=None, **options) -> Updater:
        config = Config(install_root=root or install_root, options=RunOptions(**options))
        return Updater(config, catalog, file_transport, archive_transport, confirm=confirm)
    return _make


@pytest.fixture
def installed(install_root, catalog) -> Path:
    """An installation matching the catalog exactly, with a manifest and version."""
    write_files(install_root, catalog.files)
    (install_root / "worlds").mkdir()
    (install_root / "worlds" / "miriani.mcl").write_text("<world/>")
    manifest = Manifest(entries={
        name: FileRecord(name=name, hash=blob_sha(content), url=f"{RAW_BASE}/v1.2.03/{name}")
        for name, content in catalog.files.items()
    })
    (install_root / ".manifest").write_bytes(manifest.to_json())
    (install_root / "version.json").write_text('{"major": 1, "minor": 2, "patch": 3}')
    (install_root / ".update-channel").write_text("stable")
    return install_root
