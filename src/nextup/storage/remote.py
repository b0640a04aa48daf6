# Author: PB & Claude
# Maintainer: PB
# Original date: 2026.10.18
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/nextup/storage/remote.py

"""
Read-only view of the remote repository.

RemoteCatalog is what the rest of nextup depends on; GitHubCatalog is the
implementation over the public GitHub REST API. All calls are anonymous.
"""

from __future__ import annotations

from typing import Any, Optional, Protocol

import httpx
import loguru
from pydantic import BaseModel, Field, ValidationError

from nextup.config.manager import UpdaterConfig
from nextup.core.retry import API_RETRY_CONFIG, RetryableOperation, RetryConfig
from nextup.data.manifest import TreeItem
from nextup.storage.io_transports import USER_AGENT, translate_httpx_errors
from nextup.system.exceptions import TransferError

logger = loguru.logger

DEV_BRANCH = "main"


# ---- API models ----

class Tree(BaseModel):
    sha: str
    tree: list[TreeItem] = Field(default_factory=list)
    truncated: bool = False


class CommitAuthor(BaseModel):
    name: str = ""
    email: str = ""
    date: str = ""


class CommitInner(BaseModel):
    message: str = ""
    author: CommitAuthor = Field(default_factory=CommitAuthor)


class Commit(BaseModel):
    sha: str
    commit: CommitInner = Field(default_factory=CommitInner)

    @property
    def message(self) -> str:
        return self.commit.message


class Comparison(BaseModel):
    ahead_by: int = 0
    behind_by: int = 0
    status: str = ""
    commits: list[Commit] = Field(default_factory=list)


class Branch(BaseModel):
    name: str


class RemoteCatalog(Protocol):
    def get_tree(self, ref: str) -> Tree: ...
    def get_raw_url(self, ref: str, path: str) -> str: ...
    def get_latest_tag(self) -> str: ...
    def compare_commits(self, base: str, head: str) -> Comparison: ...
    def get_branches(self) -> list[Branch]: ...
    def get_recent_commits(self, ref: str, limit: int = 10) -> list[Commit]: ...
    def archive_url(self, channel: str) -> str: ...


class GitHubCatalog:
    """RemoteCatalog over api.github.com."""

    def __init__(
        self,
        config: Optional[UpdaterConfig] = None,
        client: Optional[httpx.Client] = None,
        retry_config: Optional[RetryConfig] = None,
    ):
        self.config = config or UpdaterConfig()
        self._owns_client = client is None
        self.client = client or httpx.Client(
            timeout=30.0,
            follow_redirects=True,
            headers={"User-Agent": USER_AGENT, "Accept": "application/vnd.github+json"},
        )
        self.retry_config = retry_config or API_RETRY_CONFIG
        self._repo_api = f"{self.config.api_url.rstrip('/')}/repos/{self.config.owner}/{self.config.repo}"
        self._latest_tag: Optional[str] = None

    def close(self) -> None:
        if self._owns_client:
            self.client.close()

    def __enter__(self) -> GitHubCatalog:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def _get_once(self, url: str, params: Optional[dict]) -> Any:
        with translate_httpx_errors(url):
            resp = self.client.get(url, params=params)
            resp.raise_for_status()
        try:
            return resp.json()
        except ValueError as e:
            raise TransferError(f"invalid JSON from {url}: {e}", url=url, retry_possible=False) from e

    def _get_json(self, path: str, params: Optional[dict] = None) -> Any:
        url = f"{self._repo_api}/{path}"
        op = RetryableOperation(f"GET {path}", self.retry_config)
        return op.execute(self._get_once, url, params)

    def _parse(self, model, data: Any, what: str):
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise TransferError(f"failed to parse {what}: {e}", retry_possible=False) from e

    # ---- RemoteCatalog ----

    def get_tree(self, ref: str) -> Tree:
        tree = self._parse(Tree, self._get_json(f"git/trees/{ref}", {"recursive": "1"}), "tree")
        if tree.truncated:
            logger.warning(f"Tree listing for {ref} was truncated by the server")
        return tree

    def get_raw_url(self, ref: str, path: str) -> str:
        base = self.config.raw_url.rstrip("/")
        return f"{base}/{self.config.owner}/{self.config.repo}/{ref}/{path}"

    def get_latest_tag(self) -> str:
        """Name of the last tag ref, e.g. 'v1.2.03'. Cached per catalog."""
        if self._latest_tag is not None:
            return self._latest_tag

        refs = self._get_json("git/refs/tags")
        if not isinstance(refs, list) or not refs:
            raise TransferError("no tags found in repository", retry_possible=False)

        ref = str(refs[-1].get("ref", ""))
        self._latest_tag = ref.rsplit("/", 1)[-1]
        logger.debug(f"Latest tag: {self._latest_tag}")
        return self._latest_tag

    def compare_commits(self, base: str, head: str) -> Comparison:
        return self._parse(Comparison, self._get_json(f"compare/{base}...{head}"), "comparison")

    def get_branches(self) -> list[Branch]:
        data = self._get_json("branches", {"per_page": "100"})
        return [self._parse(Branch, b, "branch") for b in data or []]

    def get_recent_commits(self, ref: str, limit: int = 10) -> list[Commit]:
        data = self._get_json("commits", {"sha": ref, "per_page": str(limit)})
        return [self._parse(Commit, c, "commit") for c in data or []]

    def archive_url(self, channel: str) -> str:
        """Zip download URL of the snapshot a channel points to."""
        base = f"{self.config.web_url.rstrip('/')}/{self.config.owner}/{self.config.repo}"
        if channel == "stable":
            return f"{base}/archive/refs/tags/{self.get_latest_tag()}.zip"
        branch = DEV_BRANCH if channel == "dev" else channel
        return f"{base}/archive/refs/heads/{branch}.zip"
