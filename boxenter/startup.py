# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Container startup state machine.

States::

    ABSENT    container does not exist (terminal, fatal)
    STOPPED   container exists but is not running
    STARTING  start issued, waiting for the entrypoint
    READY     entrypoint reported completion (terminal)
    FAILED    start or bootstrap failed (terminal, fatal)

The initial state comes from the inspected :class:`ContainerState`; a
running container is READY immediately and no start is issued.  Readiness
is only ever concluded from the log poller, so there is no fixed timeout
unless the poller was given one.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from enum import Enum

from boxenter.engine import EngineClient
from boxenter.errors import ContainerAbsent, StartFailure
from boxenter.log_tail import LogEvent, LogEventKind, LogTailPoller
from boxenter.types import (
    ContainerState,
    ContainerStatus,
    Readiness,
    StartupSession,
)


logger = logging.getLogger(__name__)

_READINESS = {
    LogEventKind.FAILED: Readiness.FAILED,
    LogEventKind.WARNED: Readiness.WARNED,
    LogEventKind.READY: Readiness.READY,
}


class StartupState(Enum):
    """States of the startup sequence."""

    ABSENT = "absent"
    STOPPED = "stopped"
    STARTING = "starting"
    READY = "ready"
    FAILED = "failed"


def _utcnow() -> datetime:
    return datetime.now(UTC)


class StartupSequencer:
    """Drives a container from its inspected state to READY.

    Attributes:
        state: Current state; None until :meth:`run` is called.
        session: The start-and-wait session, while one is in progress.
    """

    def __init__(
        self,
        client: EngineClient,
        poller: LogTailPoller,
        *,
        on_event: Callable[[LogEvent], None] | None = None,
        on_starting: Callable[[], None] | None = None,
        now: Callable[[], datetime] = _utcnow,
    ) -> None:
        """Initialize sequencer.

        Args:
            client: Engine client for the container.
            poller: Log poller used while STARTING.
            on_event: Receives every sentinel event from the poller.
            on_starting: Called once the start has been issued.
            now: Clock, replaceable in tests.
        """
        self._client = client
        self._poller = poller
        self._on_event = on_event
        self._on_starting = on_starting
        self._now = now
        self.state: StartupState | None = None
        self.session: StartupSession | None = None

    def _transition(self, state: StartupState) -> None:
        logger.debug(
            "Startup %s: %s -> %s",
            self._client.identity.name,
            self.state.value if self.state else "-",
            state.value,
        )
        self.state = state

    def _handle_event(self, event: LogEvent) -> None:
        if self.session is not None and event.kind in _READINESS:
            self.session.readiness = _READINESS[event.kind]
        if self._on_event is not None:
            self._on_event(event)

    def run(self, container: ContainerState) -> StartupState:
        """Ensure the container is running and its entrypoint is done.

        Args:
            container: Freshly inspected state of the container.

        Returns:
            READY.

        Raises:
            ContainerAbsent: If the container does not exist.
            StartFailure: If the start fails or the entrypoint reports an
                error (or the optional wait limit elapses).
        """
        name = self._client.identity.name

        if container.status is ContainerStatus.MISSING:
            self._transition(StartupState.ABSENT)
            raise ContainerAbsent(name, self._client.identity.engine.value)

        if container.status is ContainerStatus.RUNNING:
            self._transition(StartupState.READY)
            return StartupState.READY

        self._transition(StartupState.STOPPED)
        # Recorded before the start so no early log line is missed.
        self.session = StartupSession(since=self._now())
        self._transition(StartupState.STARTING)

        try:
            try:
                self._client.start(name, since=self.session.since)
            except StartFailure:
                self._transition(StartupState.FAILED)
                raise

            if self._on_starting is not None:
                self._on_starting()

            event = self._poller.wait(self.session.since, self._handle_event)

            if event is None:
                self._transition(StartupState.FAILED)
                raise StartFailure(
                    f"Timed out waiting for container {name} to finish setup."
                )
            if event.kind is LogEventKind.FAILED:
                self._transition(StartupState.FAILED)
                raise StartFailure(
                    f"Container {name} failed to start.", logs=event.line
                )

            self._transition(StartupState.READY)
            return StartupState.READY
        finally:
            self.session = None
