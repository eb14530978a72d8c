# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Tests for boxenter/inspector.py."""

from boxenter.inspector import (
    default_state,
    inspect_container,
    parse_status,
    recorded_env,
    state_from_record,
)
from boxenter.types import ContainerStatus
from tests.conftest import FakeEngineClient, inspect_record


HOST_ENV = {"HOME": "/home/host", "SHELL": "/usr/bin/zsh", "PATH": "/x"}


class TestRecordedEnv:
    def test_parses_entries(self) -> None:
        record = inspect_record(env=["HOME=/home/me", "A=b=c"])
        assert recorded_env(record) == {"HOME": "/home/me", "A": "b=c"}

    def test_last_entry_wins(self) -> None:
        record = inspect_record(env=["PATH=/a", "PATH=/b"])
        assert recorded_env(record)["PATH"] == "/b"

    def test_ignores_malformed(self) -> None:
        record = inspect_record(env=["NOEQUALS", "X="])
        assert recorded_env(record) == {"X": ""}

    def test_missing_config(self) -> None:
        assert recorded_env({"State": {"Status": "running"}}) == {}
        assert recorded_env({"Config": {"Env": None}}) == {}


class TestParseStatus:
    def test_running(self) -> None:
        record = inspect_record("running")
        assert parse_status(record) is ContainerStatus.RUNNING

    def test_other_states_are_stopped(self) -> None:
        for status in ("exited", "created", "configured", "paused"):
            record = inspect_record(status)
            assert parse_status(record) is ContainerStatus.STOPPED

    def test_no_status(self) -> None:
        assert parse_status({}) is ContainerStatus.UNKNOWN


class TestStateFromRecord:
    def test_uses_container_values(self) -> None:
        """HOME, SHELL and PATH come from the container config."""
        record = inspect_record(
            "running",
            [
                "HOME=/home/custom",
                "SHELL=/bin/fish",
                "PATH=/usr/bin:/bin",
            ],
        )
        state = state_from_record(record, HOST_ENV)
        assert state.status is ContainerStatus.RUNNING
        assert state.home == "/home/custom"
        assert state.shell == "/bin/fish"
        assert state.path == "/usr/bin:/bin"

    def test_missing_values_fall_back(self) -> None:
        """SHELL falls back to the host; PATH to empty."""
        state = state_from_record(inspect_record("exited"), HOST_ENV)
        assert state.status is ContainerStatus.STOPPED
        assert state.shell == "/usr/bin/zsh"
        assert state.path == ""

    def test_no_shell_anywhere(self) -> None:
        state = state_from_record(inspect_record(), {})
        assert state.shell == "bash"

    def test_home_never_taken_from_host(self) -> None:
        """Without a recorded HOME the container home stays empty."""
        record = inspect_record("running", ["SHELL=/bin/zsh"])
        state = state_from_record(record, {"HOME": "/home/host"})
        assert state.home == ""


class TestInspectContainer:
    def test_missing(self) -> None:
        client = FakeEngineClient(record=None)
        state = inspect_container(client, "box", HOST_ENV)
        assert state.status is ContainerStatus.MISSING
        assert client.calls == [("inspect", "box")]

    def test_present(self) -> None:
        client = FakeEngineClient(
            record=inspect_record("exited", ["HOME=/home/me"])
        )
        state = inspect_container(client, "box", HOST_ENV)
        assert state.status is ContainerStatus.STOPPED
        assert state.home == "/home/me"


class TestDefaultState:
    def test_host_values(self) -> None:
        state = default_state(HOST_ENV)
        assert state.status is ContainerStatus.UNKNOWN
        assert state.home == "/home/host"
        assert state.shell == "/usr/bin/zsh"
        assert state.path == ""
