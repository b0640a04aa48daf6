# Author: PB & Claude
# Maintainer: PB
# Original date: 2026.10.18
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/nextup/storage/__init__.py

"""
Storage layer for nextup - everything that talks to the remote repository.

This module provides:
- GitHub REST catalog (trees, tags, branches, commit comparisons)
- HTTP transports for single files and whole-repository archives
"""

from .remote import GitHubCatalog, RemoteCatalog
from .io_transports import ArchiveTransport, FileTransport, HttpTransport

__all__ = [
    "GitHubCatalog",
    "RemoteCatalog",
    "ArchiveTransport",
    "FileTransport",
    "HttpTransport",
]
