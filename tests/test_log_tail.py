# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Tests for boxenter/log_tail.py -- sentinel classification and polling."""

from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from boxenter.log_tail import (
    LogEvent,
    LogEventKind,
    LogTailPoller,
    SentinelPatterns,
    classify_line,
)
from tests.conftest import FakeEngineClient


T0 = datetime(2026, 3, 1, 12, 0, 0, tzinfo=UTC)


class TestClassifyLine:
    """Tests for classify_line precedence."""

    def test_error(self) -> None:
        event = classify_line("Error: bootstrap failed")
        assert event == LogEvent(LogEventKind.FAILED, "Error: bootstrap failed")

    def test_warning(self) -> None:
        event = classify_line("Warning: no sudo found")
        assert event is not None
        assert event.kind is LogEventKind.WARNED
        assert not event.terminal

    def test_stage_marker_label(self) -> None:
        event = classify_line("distrobox: Setting up read-only mounts...")
        assert event is not None
        assert event.kind is LogEventKind.PROGRESS
        assert event.label == "Setting up read-only mounts..."

    def test_ready(self) -> None:
        event = classify_line("container_setup_done")
        assert event is not None
        assert event.kind is LogEventKind.READY
        assert event.terminal

    def test_substring_match(self) -> None:
        """Markers match anywhere in the line."""
        event = classify_line("\x1b[0m container_setup_done")
        assert event is not None
        assert event.kind is LogEventKind.READY

    def test_error_beats_ready(self) -> None:
        """A line with both Error and the terminal marker is a failure."""
        event = classify_line("Error: container_setup_done not reached")
        assert event is not None
        assert event.kind is LogEventKind.FAILED

    def test_warning_beats_stage(self) -> None:
        event = classify_line("distrobox: Warning: slow mirror")
        assert event is not None
        assert event.kind is LogEventKind.WARNED

    def test_unrelated_line(self) -> None:
        assert classify_line("Installing packages: 42%") is None

    def test_shell_trace_ignored(self) -> None:
        assert classify_line("+ echo Error") is None

    def test_custom_patterns(self) -> None:
        patterns = SentinelPatterns(stage_marker="stage:", ready_marker="DONE")
        event = classify_line("stage: configuring", patterns)
        assert event is not None
        assert event.label == "configuring"
        ready = classify_line("DONE", patterns)
        assert ready is not None
        assert ready.kind is LogEventKind.READY


class _Clock:
    """Deterministic clock advancing one second per call."""

    def __init__(self) -> None:
        self.now = T0

    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now


def _poller(
    client: FakeEngineClient,
    tmp_path: Path,
    sleeps: list[float],
    **kwargs: object,
) -> LogTailPoller:
    return LogTailPoller(
        client,  # type: ignore[arg-type]
        "box",
        scratch_dir=tmp_path / "cache",
        now=_Clock(),
        sleep=sleeps.append,
        **kwargs,  # type: ignore[arg-type]
    )


class TestLogTailPoller:
    """Tests for LogTailPoller.wait."""

    def test_ready_after_progress(self, tmp_path: Path) -> None:
        client = FakeEngineClient(
            log_batches=[
                ["distrobox: Installing basic packages..."],
                [],
                ["distrobox: Setting up devpts mounts...", "noise"],
                ["container_setup_done"],
            ]
        )
        sleeps: list[float] = []
        events: list[LogEvent] = []

        result = _poller(client, tmp_path, sleeps).wait(T0, events.append)

        assert result is not None
        assert result.kind is LogEventKind.READY
        assert [e.kind for e in events] == [
            LogEventKind.PROGRESS,
            LogEventKind.PROGRESS,
            LogEventKind.READY,
        ]
        assert sleeps == [1.0, 1.0, 1.0]

    def test_windows_advance(self, tmp_path: Path) -> None:
        """Each fetch starts at the timestamp taken before the previous one."""
        client = FakeEngineClient(
            log_batches=[[], [], ["container_setup_done"]]
        )
        _poller(client, tmp_path, []).wait(T0, lambda e: None)

        windows = [since for name, since in client.calls]
        assert windows == [
            T0,
            T0 + timedelta(seconds=1),
            T0 + timedelta(seconds=2),
        ]

    def test_error_aborts_immediately(self, tmp_path: Path) -> None:
        """Lines after an Error are not processed."""
        client = FakeEngineClient(
            log_batches=[["Error: bootstrap failed", "container_setup_done"]]
        )
        events: list[LogEvent] = []

        result = _poller(client, tmp_path, []).wait(T0, events.append)

        assert result is not None
        assert result.kind is LogEventKind.FAILED
        assert result.line == "Error: bootstrap failed"
        assert len(events) == 1

    def test_repeated_lines_reported_once(self, tmp_path: Path) -> None:
        """Overlapping windows do not repeat progress or warnings."""
        client = FakeEngineClient(
            log_batches=[
                ["distrobox: Step one", "Warning: slow"],
                ["distrobox: Step one", "Warning: slow", "distrobox: Two"],
                ["container_setup_done"],
            ]
        )
        events: list[LogEvent] = []

        _poller(client, tmp_path, []).wait(T0, events.append)

        assert [(e.kind, e.label) for e in events] == [
            (LogEventKind.PROGRESS, "Step one"),
            (LogEventKind.WARNED, ""),
            (LogEventKind.PROGRESS, "Two"),
            (LogEventKind.READY, ""),
        ]

    def test_overlapping_window_repeats_several_labels(
        self, tmp_path: Path
    ) -> None:
        """Every label already shown is skipped, not just the latest."""
        client = FakeEngineClient(
            log_batches=[
                ["distrobox: A", "distrobox: B"],
                ["distrobox: A", "distrobox: B", "container_setup_done"],
            ]
        )
        events: list[LogEvent] = []

        _poller(client, tmp_path, []).wait(T0, events.append)

        assert [e.label for e in events] == ["A", "B", ""]
        assert events[-1].kind is LogEventKind.READY

    def test_max_wait(self, tmp_path: Path) -> None:
        ticks = iter([0.0, 0.5, 1.5, 2.5])
        client = FakeEngineClient()
        sleeps: list[float] = []
        poller = _poller(
            client,
            tmp_path,
            sleeps,
            max_wait=2.0,
            monotonic=lambda: next(ticks),
        )

        assert poller.wait(T0, lambda e: None) is None
        assert client.count("logs_since") == 3

    def test_custom_interval(self, tmp_path: Path) -> None:
        client = FakeEngineClient(log_batches=[[], ["container_setup_done"]])
        sleeps: list[float] = []
        _poller(client, tmp_path, sleeps, poll_interval=0.25).wait(
            T0, lambda e: None
        )
        assert sleeps == [0.25]


class TestScratchFile:
    """The scratch file is removed on every exit path."""

    def test_named_after_container(self, tmp_path: Path) -> None:
        poller = _poller(FakeEngineClient(), tmp_path, [])
        assert poller.scratch_path == tmp_path / "cache" / ".box.log"

    def test_removed_on_ready(self, tmp_path: Path) -> None:
        client = FakeEngineClient(log_batches=[["container_setup_done"]])
        poller = _poller(client, tmp_path, [])
        poller.wait(T0, lambda e: None)
        assert client.scratch_seen == [poller.scratch_path]
        assert not poller.scratch_path.exists()

    def test_removed_on_error(self, tmp_path: Path) -> None:
        client = FakeEngineClient(log_batches=[["Error: x"]])
        poller = _poller(client, tmp_path, [])
        poller.wait(T0, lambda e: None)
        assert not poller.scratch_path.exists()

    def test_removed_on_exception(self, tmp_path: Path) -> None:
        client = FakeEngineClient(log_batches=[["distrobox: step"]])
        poller = _poller(client, tmp_path, [])

        def explode(event: LogEvent) -> None:
            raise KeyboardInterrupt

        with pytest.raises(KeyboardInterrupt):
            poller.wait(T0, explode)
        assert not poller.scratch_path.exists()
