# Author: PB & Claude
# Maintainer: PB
# Original date: 2026.10.18
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# tests/helpers.py

"""In-memory fakes of the remote repository and small builders shared by the tests."""

import hashlib
import threading
import zipfile
from pathlib import Path
from typing import Optional

from nextup.data.manifest import FileRecord, Manifest, TreeItem
from nextup.storage.remote import Branch, Commit, CommitInner, Comparison, Tree
from nextup.system.exceptions import TransferError

RAW_BASE = "https://raw.test"


def blob_sha(content: bytes) -> str:
    return hashlib.sha1(content).hexdigest()


def make_manifest(files: dict[str, str]) -> Manifest:
    """Manifest from {path: hash}."""
    return Manifest(entries={
        path: FileRecord(name=path, hash=h, url=f"{RAW_BASE}/main/{path}")
        for path, h in files.items()
    })


def write_files(root: Path, files: dict[str, bytes]) -> None:
    for name, content in files.items():
        target = root / name
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(content)


class FakeCatalog:
    """RemoteCatalog serving one in-memory snapshot."""

    def __init__(
        self,
        files: Optional[dict[str, bytes]] = None,
        tag: Optional[str] = "v1.2.03",
        branches: tuple[str, ...] = ("main",),
        tree_sha: str = "0123456789abcdef0123456789abcdef01234567",
    ):
        self.files = dict(files or {})
        self.tag = tag
        self.branches = list(branches)
        self.tree_sha = tree_sha
        self.comparisons: dict[tuple[str, str], Comparison] = {}
        self.commits: list[Commit] = []
        self.calls: list[tuple] = []

    def get_tree(self, ref: str) -> Tree:
        self.calls.append(("tree", ref))
        items = [TreeItem(path=p, type="blob", sha=blob_sha(c)) for p, c in self.files.items()]
        dirs = {p.rsplit("/", 1)[0] for p in self.files if "/" in p}
        items.extend(TreeItem(path=d, type="tree", sha="d" * 40) for d in sorted(dirs))
        return Tree(sha=self.tree_sha, tree=items)

    def get_raw_url(self, ref: str, path: str) -> str:
        return f"{RAW_BASE}/{ref}/{path}"

    def get_latest_tag(self) -> str:
        if self.tag is None:
            raise TransferError("no tags found in repository", retry_possible=False)
        return self.tag

    def compare_commits(self, base: str, head: str) -> Comparison:
        self.calls.append(("compare", base, head))
        return self.comparisons.get((base, head), Comparison())

    def get_branches(self) -> list[Branch]:
        return [Branch(name=b) for b in self.branches]

    def get_recent_commits(self, ref: str, limit: int = 10) -> list[Commit]:
        return self.commits[:limit]

    def archive_url(self, channel: str) -> str:
        return f"https://archive.test/{channel}.zip"


class FakeFileTransport:
    """FileTransport that copies catalog content; paths in `fail` raise TransferError."""

    def __init__(self, catalog: FakeCatalog, fail: tuple[str, ...] = ()):
        self.catalog = catalog
        self.fail = set(fail)
        self.fetched: list[str] = []
        self._lock = threading.Lock()

    def fetch(self, url: str, destination: Path) -> None:
        path = url[len(RAW_BASE) + 1:].split("/", 1)[1]
        if path in self.fail:
            raise TransferError(f"HTTP 500 fetching {url}", url=url)
        destination.write_bytes(self.catalog.files[path])
        with self._lock:
            self.fetched.append(path)


class FakeArchiveTransport:
    """ArchiveTransport that zips the catalog content under a top-level directory."""

    def __init__(self, catalog: FakeCatalog, workdir: Path, prefix: str = "miriani-next-main/"):
        self.catalog = catalog
        self.workdir = workdir
        self.prefix = prefix
        self.extra: dict[str, bytes] = {}
        self.urls: list[str] = []

    def fetch_archive(self, url: str, progress=None) -> Path:
        self.urls.append(url)
        self.workdir.mkdir(parents=True, exist_ok=True)
        archive = self.workdir / f"archive-{len(self.urls)}.zip"
        with zipfile.ZipFile(archive, "w") as zf:
            zf.writestr(self.prefix, b"")
            for name, content in {**self.catalog.files, **self.extra}.items():
                zf.writestr(self.prefix + name, content)
        return archive


class RecordingProgress:
    def __init__(self):
        self.events = []
        self._lock = threading.Lock()

    def on_progress(self, event) -> None:
        with self._lock:
            self.events.append(event)


REMOTE_FILES = {
    "MUSHclient.exe": b"client binary v2",
    "scripts/main.lua": b"-- main script\n",
    "sounds/ding.ogg": b"OggS ding",
    "docs/changelog.txt": b"v1.2.03: new sounds\n",
}


def commit(sha: str, message: str) -> Commit:
    return Commit(sha=sha, commit=CommitInner(message=message))
