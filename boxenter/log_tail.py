# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Readiness detection by tailing the container log stream.

The container entrypoint performs its bootstrap steps and reports progress
only through its log output.  :class:`LogTailPoller` repeatedly fetches the
lines written since the previous fetch and classifies each one against a
fixed set of sentinel patterns until it sees the terminal marker or an
error.

Each window starts at the timestamp taken *before* the previous fetch, so
consecutive windows overlap; lines may be seen twice but are never lost.
Repeated progress labels and warnings are therefore reported once.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path

from boxenter.engine import EngineClient


logger = logging.getLogger(__name__)


class LogEventKind(Enum):
    """Classification of a sentinel line."""

    FAILED = "failed"
    WARNED = "warned"
    PROGRESS = "progress"
    READY = "ready"


@dataclass(frozen=True)
class LogEvent:
    """A classified sentinel line.

    Attributes:
        kind: What the line signals.
        line: The raw log line.
        label: Progress label (text after the stage marker).
    """

    kind: LogEventKind
    line: str
    label: str = ""

    @property
    def terminal(self) -> bool:
        """True when the event ends the wait."""
        return self.kind in (LogEventKind.FAILED, LogEventKind.READY)


@dataclass(frozen=True)
class SentinelPatterns:
    """Substrings that drive classification, checked in field order."""

    error: str = "Error"
    warning: str = "Warning"
    stage_marker: str = "distrobox:"
    ready_marker: str = "container_setup_done"


def classify_line(
    line: str, patterns: SentinelPatterns = SentinelPatterns()
) -> LogEvent | None:
    """Classify one log line, first match wins.

    Lines starting with ``+`` are shell trace output of the entrypoint and
    never match.

    Returns:
        The event for a sentinel line, or None for any other line.
    """
    if line.startswith("+"):
        return None
    if patterns.error in line:
        return LogEvent(LogEventKind.FAILED, line)
    if patterns.warning in line:
        return LogEvent(LogEventKind.WARNED, line)
    if patterns.stage_marker in line:
        label = line.split(patterns.stage_marker, 1)[1].strip()
        return LogEvent(LogEventKind.PROGRESS, line, label)
    if patterns.ready_marker in line:
        return LogEvent(LogEventKind.READY, line)
    return None


def _utcnow() -> datetime:
    return datetime.now(UTC)


class LogTailPoller:
    """Polls a container's logs until the entrypoint reports a verdict.

    Fetched output goes through a scratch file under *scratch_dir* named
    after the container.  The file is removed however the wait ends.
    """

    def __init__(
        self,
        client: EngineClient,
        name: str,
        *,
        scratch_dir: Path,
        patterns: SentinelPatterns = SentinelPatterns(),
        poll_interval: float = 1.0,
        max_wait: float | None = None,
        now: Callable[[], datetime] = _utcnow,
        sleep: Callable[[float], None] = time.sleep,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self._client = client
        self._name = name
        self._scratch_dir = scratch_dir
        self._patterns = patterns
        self._poll_interval = poll_interval
        self._max_wait = max_wait
        self._now = now
        self._sleep = sleep
        self._monotonic = monotonic

    @property
    def scratch_path(self) -> Path:
        """Scratch file receiving fetched log output."""
        return self._scratch_dir / f".{self._name}.log"

    def wait(
        self,
        since: datetime,
        on_event: Callable[[LogEvent], None],
    ) -> LogEvent | None:
        """Poll until a terminal sentinel line is seen.

        Args:
            since: Timestamp recorded before the container was started.
            on_event: Called for every reported event, terminal ones
                included.

        Returns:
            The terminal event (READY or FAILED), or None if ``max_wait``
            elapsed first.
        """
        self._scratch_dir.mkdir(parents=True, exist_ok=True)
        scratch = self.scratch_path
        deadline = (
            None
            if self._max_wait is None
            else self._monotonic() + self._max_wait
        )
        previous = since
        seen_labels: set[str] = set()
        seen_warnings: set[str] = set()

        try:
            while True:
                next_since = self._now()
                lines = self._client.logs_since(self._name, previous, scratch)
                for line in lines:
                    event = classify_line(line, self._patterns)
                    if event is None:
                        continue
                    if event.kind is LogEventKind.PROGRESS:
                        if event.label in seen_labels:
                            continue
                        seen_labels.add(event.label)
                    elif event.kind is LogEventKind.WARNED:
                        if line in seen_warnings:
                            continue
                        seen_warnings.add(line)

                    on_event(event)
                    if event.terminal:
                        logger.debug(
                            "Log tail of %s ended: %s", self._name, event.line
                        )
                        return event

                if deadline is not None and self._monotonic() >= deadline:
                    logger.debug("Log tail of %s timed out", self._name)
                    return None

                self._sleep(self._poll_interval)
                previous = next_since
        finally:
            scratch.unlink(missing_ok=True)
