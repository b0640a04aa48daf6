# Author: PB & Claude
# Maintainer: PB
# Original date: 2026.10.18
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/nextup/system/progress.py

"""
Progress reporting for downloads and apply passes.

The engine only knows about ProgressObserver; the CLI plugs in the
Rich-based reporter and tests plug in a recorder.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Optional, Protocol

from rich.console import Console
from rich.progress import (
    BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn, TimeRemainingColumn,
)


@dataclass(frozen=True)
class ProgressEvent:
    """One progress notification.

    ``total`` is None when the size is unknown (no Content-Length).
    """
    stage: str  # "download", "extract", "files"
    current: int
    total: Optional[int]
    label: str = ""

    @property
    def percent(self) -> Optional[int]:
        if not self.total:
            return None
        return min(100, int(self.current * 100 / self.total))


class ProgressObserver(Protocol):
    def on_progress(self, event: ProgressEvent) -> None: ...


class NullProgress:
    """Observer that ignores everything."""

    def on_progress(self, event: ProgressEvent) -> None:
        pass


class PercentThrottle:
    """Forwards at most one event per percentage point per stage.

    Events with an unknown total are forwarded when ``current`` crosses each
    ``unknown_step`` boundary instead.
    """

    def __init__(self, observer: ProgressObserver, unknown_step: int = 1024 * 1024):
        self.observer = observer
        self.unknown_step = unknown_step
        self._last: dict[str, int] = {}
        self._lock = threading.Lock()

    def on_progress(self, event: ProgressEvent) -> None:
        if event.total:
            marker = event.percent
        else:
            marker = event.current // self.unknown_step

        with self._lock:
            if self._last.get(event.stage) == marker:
                return
            self._last[event.stage] = marker
        self.observer.on_progress(event)


class UpdateProgressReporter:
    """Rich progress bars for the update command.

    Bars start on the first event, so prompts shown before any transfer are
    not drawn over.
    """

    def __init__(self, console: Console, verbose: bool = False, quiet: bool = False) -> None:
        self.console = console
        self.verbose = verbose
        self.quiet = quiet
        self.progress: Optional[Progress] = None
        self._tasks: dict[str, int] = {}
        self._lock = threading.Lock()

    def start_progress(self) -> None:
        if self.quiet or self.progress is not None:
            return
        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            TimeRemainingColumn(),
            console=self.console,
            transient=not self.verbose,
        )
        self.progress.start()

    def stop_progress(self) -> None:
        with self._lock:
            if self.progress:
                self.progress.stop()
                self.progress = None
                self._tasks.clear()

    def __enter__(self) -> UpdateProgressReporter:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop_progress()

    def on_progress(self, event: ProgressEvent) -> None:
        if self.quiet:
            return

        with self._lock:
            self.start_progress()
            task_id = self._tasks.get(event.stage)
            if task_id is None:
                description = {
                    "download": "[cyan]Downloading update...",
                    "extract": "[green]Extracting files...",
                    "files": "[green]Updating files...",
                }.get(event.stage, event.stage)
                task_id = self.progress.add_task(description, total=event.total)
                self._tasks[event.stage] = task_id

            self.progress.update(task_id, completed=event.current, total=event.total)
