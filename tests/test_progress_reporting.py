# Author: PB & Claude
# Maintainer: PB
# Original date: 2026.10.18
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# tests/test_progress_reporting.py

"""
Tests for progress events, throttling and the Rich reporter.
"""

import io

from rich.console import Console

from nextup.system.progress import (
    NullProgress, PercentThrottle, ProgressEvent, UpdateProgressReporter,
)

from helpers import RecordingProgress


def quiet_console() -> Console:
    return Console(file=io.StringIO(), force_terminal=False)


class TestProgressEvent:
    def test_percent(self):
        assert ProgressEvent("download", 50, 200).percent == 25
        assert ProgressEvent("download", 300, 200).percent == 100

    def test_unknown_total(self):
        assert ProgressEvent("download", 50, None).percent is None
        assert ProgressEvent("download", 50, 0).percent is None


class TestPercentThrottle:
    def test_drops_repeated_percentages(self):
        recorder = RecordingProgress()
        throttle = PercentThrottle(recorder)

        for current in (1, 2, 3, 10, 11, 100):
            throttle.on_progress(ProgressEvent("download", current, 100))

        assert [e.current for e in recorder.events] == [1, 2, 3, 10, 11, 100]

        for current in (1000, 1004, 1009, 1010):
            throttle.on_progress(ProgressEvent("extract", current, 1000 * 100))
        assert [e.current for e in recorder.events if e.stage == "extract"] == [1000]

    def test_stages_are_independent(self):
        recorder = RecordingProgress()
        throttle = PercentThrottle(recorder)

        throttle.on_progress(ProgressEvent("download", 5, 10))
        throttle.on_progress(ProgressEvent("files", 5, 10))

        assert [e.stage for e in recorder.events] == ["download", "files"]

    def test_unknown_total_uses_byte_steps(self):
        recorder = RecordingProgress()
        throttle = PercentThrottle(recorder, unknown_step=100)

        for current in (10, 50, 120, 150, 260):
            throttle.on_progress(ProgressEvent("download", current, None))

        assert [e.current for e in recorder.events] == [10, 120, 260]


class TestUpdateProgressReporter:
    def test_quiet_never_starts(self):
        reporter = UpdateProgressReporter(quiet_console(), quiet=True)
        with reporter:
            reporter.on_progress(ProgressEvent("download", 1, 10))
            assert reporter.progress is None

    def test_starts_lazily_on_first_event(self):
        reporter = UpdateProgressReporter(quiet_console())
        with reporter:
            assert reporter.progress is None
            reporter.on_progress(ProgressEvent("download", 1, 10))
            reporter.on_progress(ProgressEvent("files", 1, 3))
            assert reporter.progress is not None
            assert set(reporter._tasks) == {"download", "files"}
        assert reporter.progress is None

    def test_null_progress_accepts_events(self):
        NullProgress().on_progress(ProgressEvent("files", 1, 1))
