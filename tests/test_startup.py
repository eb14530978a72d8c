# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Tests for boxenter/startup.py -- the startup state machine."""

from datetime import UTC, datetime
from pathlib import Path

import pytest

from boxenter.errors import ContainerAbsent, StartFailure
from boxenter.log_tail import LogEvent, LogEventKind, LogTailPoller
from boxenter.startup import StartupSequencer, StartupState
from boxenter.types import ContainerState, ContainerStatus, Readiness
from tests.conftest import FakeEngineClient


T0 = datetime(2026, 3, 1, 12, 0, 0, tzinfo=UTC)

STOPPED = ContainerState(ContainerStatus.STOPPED, "/home/me", "bash", "")
RUNNING = ContainerState(ContainerStatus.RUNNING, "/home/me", "bash", "")
MISSING = ContainerState(ContainerStatus.MISSING)


def _sequencer(
    client: FakeEngineClient,
    tmp_path: Path,
    events: list[LogEvent] | None = None,
    max_wait: float | None = None,
) -> StartupSequencer:
    poller = LogTailPoller(
        client,  # type: ignore[arg-type]
        client.identity.name,
        scratch_dir=tmp_path,
        sleep=lambda _: None,
        max_wait=max_wait,
    )
    return StartupSequencer(
        client,  # type: ignore[arg-type]
        poller,
        on_event=events.append if events is not None else None,
        now=lambda: T0,
    )


class TestFastPaths:
    def test_absent(self, tmp_path: Path) -> None:
        client = FakeEngineClient()
        sequencer = _sequencer(client, tmp_path)

        with pytest.raises(ContainerAbsent, match="box") as exc_info:
            sequencer.run(MISSING)

        assert exc_info.value.exit_code == 1
        assert "create" in str(exc_info.value)
        assert sequencer.state is StartupState.ABSENT
        assert client.calls == []

    def test_running_skips_start(self, tmp_path: Path) -> None:
        client = FakeEngineClient()
        sequencer = _sequencer(client, tmp_path)

        assert sequencer.run(RUNNING) is StartupState.READY
        assert client.count("start") == 0
        assert client.count("logs_since") == 0


class TestStartSequence:
    def test_ready(self, tmp_path: Path) -> None:
        client = FakeEngineClient(
            log_batches=[["stage: configuring"], ["container_setup_done"]]
        )
        events: list[LogEvent] = []
        sequencer = _sequencer(client, tmp_path, events)

        assert sequencer.run(STOPPED) is StartupState.READY
        assert sequencer.state is StartupState.READY
        assert sequencer.session is None
        assert events[-1].kind is LogEventKind.READY

    def test_since_recorded_before_start(self, tmp_path: Path) -> None:
        """The start and the first log window share the pre-start time."""
        client = FakeEngineClient(log_batches=[["container_setup_done"]])
        _sequencer(client, tmp_path).run(STOPPED)

        assert client.calls[0] == ("start", T0)
        assert client.calls[1] == ("logs_since", T0)

    def test_start_failure(self, tmp_path: Path) -> None:
        client = FakeEngineClient(
            start_error=StartFailure("not running", logs="boom")
        )
        sequencer = _sequencer(client, tmp_path)

        with pytest.raises(StartFailure, match="not running"):
            sequencer.run(STOPPED)

        assert sequencer.state is StartupState.FAILED
        assert client.count("logs_since") == 0

    def test_error_sentinel(self, tmp_path: Path) -> None:
        client = FakeEngineClient(log_batches=[["Error: bootstrap failed"]])
        sequencer = _sequencer(client, tmp_path)

        with pytest.raises(StartFailure) as exc_info:
            sequencer.run(STOPPED)

        assert exc_info.value.logs == "Error: bootstrap failed"
        assert sequencer.state is StartupState.FAILED

    def test_timeout(self, tmp_path: Path) -> None:
        client = FakeEngineClient()
        sequencer = _sequencer(client, tmp_path, max_wait=0.0001)

        with pytest.raises(StartFailure, match="Timed out"):
            sequencer.run(STOPPED)
        assert sequencer.state is StartupState.FAILED

    def test_readiness_tracked(self, tmp_path: Path) -> None:
        """The session readiness follows the sentinel events."""
        client = FakeEngineClient(
            log_batches=[["Warning: slow", "container_setup_done"]]
        )
        seen: list[Readiness] = []
        sequencer = _sequencer(client, tmp_path)

        def record(event: LogEvent) -> None:
            assert sequencer.session is not None
            seen.append(sequencer.session.readiness)

        sequencer._on_event = record
        sequencer.run(STOPPED)

        assert seen == [Readiness.WARNED, Readiness.READY]

    def test_on_starting_called(self, tmp_path: Path) -> None:
        client = FakeEngineClient(log_batches=[["container_setup_done"]])
        calls: list[str] = []
        poller = LogTailPoller(
            client,  # type: ignore[arg-type]
            "box",
            scratch_dir=tmp_path,
            sleep=lambda _: None,
        )
        sequencer = StartupSequencer(
            client,  # type: ignore[arg-type]
            poller,
            on_starting=lambda: calls.append("starting"),
        )
        sequencer.run(STOPPED)
        assert calls == ["starting"]
