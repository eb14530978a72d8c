# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Shared pytest fixtures and fakes."""

from collections.abc import Iterator
from datetime import datetime
from pathlib import Path
from typing import Any

import pytest

from boxenter.errors import StartFailure
from boxenter.logging import SecretFilter
from boxenter.types import ContainerIdentity, Engine, Invocation


def inspect_record(
    status: str = "running", env: list[str] | None = None
) -> dict[str, Any]:
    """Build a minimal engine inspect record."""
    return {
        "Name": "box",
        "State": {"Status": status, "Running": status == "running"},
        "Config": {"Env": env if env is not None else []},
    }


class FakeEngineClient:
    """In-memory stand-in for EngineClient.

    ``log_batches`` is consumed one batch per ``logs_since`` call; once
    exhausted every further call returns no lines.  Each batch is written
    to the scratch file the way the real client does.
    """

    def __init__(
        self,
        name: str = "box",
        *,
        record: dict[str, Any] | None = None,
        log_batches: list[list[str]] | None = None,
        start_error: StartFailure | None = None,
        exit_code: int = 0,
    ) -> None:
        self.identity = ContainerIdentity(name=name, engine=Engine.PODMAN)
        self.record = record
        self.log_batches = list(log_batches or [])
        self.start_error = start_error
        self.exit_code = exit_code
        self.calls: list[tuple[str, Any]] = []
        self.scratch_seen: list[Path] = []

    @property
    def command(self) -> tuple[str, ...]:
        return ("podman",)

    def inspect(self, name: str) -> dict[str, Any] | None:
        self.calls.append(("inspect", name))
        return self.record

    def start(self, name: str, since: datetime | None = None) -> None:
        self.calls.append(("start", since))
        if self.start_error is not None:
            raise self.start_error

    def logs_since(
        self, name: str, since: datetime, scratch: Path
    ) -> list[str]:
        self.calls.append(("logs_since", since))
        self.scratch_seen.append(scratch)
        batch = self.log_batches.pop(0) if self.log_batches else []
        scratch.write_text("".join(line + "\n" for line in batch))
        return scratch.read_text().splitlines()

    def exec(self, invocation: Invocation) -> int:
        self.calls.append(("exec", invocation))
        return self.exit_code

    def count(self, call: str) -> int:
        return sum(1 for name, _ in self.calls if name == call)


@pytest.fixture(autouse=True)
def _clear_secrets() -> Iterator[None]:
    """Keep registered log secrets from leaking between tests."""
    SecretFilter.clear_secrets()
    yield
    SecretFilter.clear_secrets()
