# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Thin client over the container engine CLI.

Wraps the ``inspect``, ``start``, ``logs`` and ``exec`` primitives of
podman or docker.  All calls are synchronous subprocess invocations.  For
rootful containers the engine command is prefixed with the configured sudo
program unless the caller already runs as root.
"""

from __future__ import annotations

import json
import logging
import os
import shlex
import shutil
import signal
import subprocess
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from boxenter.errors import EngineError, EngineUnavailable, StartFailure
from boxenter.types import ContainerIdentity, Engine, Invocation


logger = logging.getLogger(__name__)

#: Value accepted for "pick whichever engine is installed".
AUTODETECT = "autodetect"


def detect_engine(preferred: str = AUTODETECT) -> Engine:
    """Choose the container engine.

    An explicit choice is honoured as-is.  Autodetection prefers podman and
    falls back to docker.

    Args:
        preferred: ``podman``, ``docker`` or ``autodetect``.

    Returns:
        Selected engine.

    Raises:
        EngineUnavailable: If autodetection finds neither engine.
        ValueError: If *preferred* names an unknown engine.
    """
    if preferred != AUTODETECT:
        return Engine(preferred)

    for engine in Engine:
        if shutil.which(engine.value) is not None:
            logger.debug("Autodetected container engine: %s", engine.value)
            return engine

    raise EngineUnavailable(
        "Missing dependency: no container manager found.\n"
        "Install podman or docker to continue."
    )


def resolve_engine_binary(engine: Engine) -> str:
    """Return the absolute path of the engine binary.

    Raises:
        EngineUnavailable: If the binary is not on ``PATH``.
    """
    path = shutil.which(engine.value)
    if path is None:
        raise EngineUnavailable(
            f"Missing dependency: {engine.value} not found on PATH."
        )
    return path


def _ignore_interrupt(signum: int, frame: object) -> None:
    """SIGINT handler installed while an attached session runs.

    Ctrl-C reaches the session through the terminal; boxenter keeps
    waiting for it to exit.  Unlike ``SIG_IGN`` a Python handler is not
    inherited across exec, so the engine process keeps default handling.
    """


def format_since(moment: datetime) -> str:
    """Format a timestamp for ``logs --since``.

    Keeps microsecond precision, padded to nanoseconds in the RFC 3339
    form both engines accept, so the first window does not reach back into
    output from a previous run of the container.
    """
    utc = moment.astimezone(UTC)
    return utc.strftime("%Y-%m-%dT%H:%M:%S.%f") + "000+00:00"


class EngineClient:
    """Runs engine primitives for a single container identity.

    Attributes:
        identity: Container being managed.
    """

    def __init__(
        self,
        identity: ContainerIdentity,
        *,
        binary: str | None = None,
        sudo_program: str = "sudo",
    ) -> None:
        """Initialize client.

        Args:
            identity: Container name, engine and rootful flag.
            binary: Engine binary to run.  Defaults to the engine name,
                resolved through ``PATH`` at call time.
            sudo_program: Command used to elevate rootful engine calls.
        """
        self.identity = identity
        self._binary = binary or identity.engine.value
        self._sudo_program = sudo_program

    @property
    def command(self) -> tuple[str, ...]:
        """Engine command prefix, including privilege elevation."""
        if self.identity.rootful and os.geteuid() != 0:
            return (*shlex.split(self._sudo_program), self._binary)
        return (self._binary,)

    def _run(self, args: list[str]) -> subprocess.CompletedProcess[str]:
        cmd = [*self.command, *args]
        logger.debug("Running: %s", shlex.join(cmd))
        try:
            return subprocess.run(
                cmd,
                check=False,
                capture_output=True,
                text=True,
            )
        except FileNotFoundError as e:
            raise EngineUnavailable(
                f"Missing dependency: cannot run {cmd[0]}: {e}"
            ) from e

    def inspect(self, name: str) -> dict[str, Any] | None:
        """Inspect a container.

        Returns:
            The engine's inspect record for the container, or None if it
            does not exist.

        Raises:
            EngineError: If the engine output is not an inspect record.
        """
        result = self._run(["inspect", "--type", "container", name])
        if result.returncode != 0:
            logger.debug(
                "Inspect of %s failed (%d): %s",
                name,
                result.returncode,
                result.stderr.strip(),
            )
            return None

        try:
            data = json.loads(result.stdout)
        except json.JSONDecodeError as e:
            raise EngineError(f"Cannot parse inspect output: {e}") from e

        if not isinstance(data, list) or not data:
            return None
        record = data[0]
        if not isinstance(record, dict):
            raise EngineError("Unexpected inspect output: not a mapping")
        return record

    def status(self, name: str) -> str:
        """Return the engine's status string, or ``unknown``."""
        result = self._run(
            [
                "inspect",
                "--type",
                "container",
                "--format",
                "{{.State.Status}}",
                name,
            ]
        )
        if result.returncode != 0:
            return "unknown"
        return result.stdout.strip() or "unknown"

    def logs(self, name: str) -> str:
        """Return the full log output of a container."""
        result = self._run(["logs", name])
        return (result.stdout + result.stderr).strip()

    def start(self, name: str, since: datetime | None = None) -> None:
        """Start a container and confirm it is running.

        Args:
            name: Container to start.
            since: Start of the log window to capture on failure.  The
                whole log is captured when omitted.

        Raises:
            StartFailure: If the start command fails or the container is
                not running immediately afterwards.
        """
        result = self._run(["start", name])
        if result.returncode == 0:
            status = self.status(name)
            if status == "running":
                return
            message = f"Could not start entrypoint (status: {status})."
        else:
            detail = result.stderr.strip() or result.stdout.strip()
            message = f"Could not start container {name}: {detail}"

        if since is None:
            captured = self.logs(name)
        else:
            result = self._run(["logs", "--since", format_since(since), name])
            captured = (result.stdout + result.stderr).strip()
        raise StartFailure(message, logs=captured)

    def logs_since(
        self, name: str, since: datetime, scratch: Path
    ) -> list[str]:
        """Fetch log lines emitted since a timestamp.

        Output (stdout and stderr) is written to *scratch* and read back
        line by line.  The caller owns the scratch file and removes it.

        Args:
            name: Container to read logs from.
            since: Inclusive lower bound of the window.
            scratch: File receiving the raw log output.

        Returns:
            Log lines in emission order (may be empty).
        """
        cmd = [*self.command, "logs", "--since", format_since(since), name]
        try:
            with scratch.open("w") as out:
                subprocess.run(
                    cmd,
                    check=False,
                    stdout=out,
                    stderr=subprocess.STDOUT,
                )
        except FileNotFoundError as e:
            raise EngineUnavailable(
                f"Missing dependency: cannot run {cmd[0]}: {e}"
            ) from e
        return scratch.read_text(errors="replace").splitlines()

    def exec(self, invocation: Invocation) -> int:
        """Run an exec invocation attached to the current terminal.

        Returns:
            Exit code of the process inside the container.
        """
        argv = invocation.argv
        logger.debug("Executing: %s", shlex.join(argv))
        previous = signal.signal(signal.SIGINT, _ignore_interrupt)
        try:
            return subprocess.run(argv, check=False).returncode
        except FileNotFoundError as e:
            raise EngineUnavailable(
                f"Missing dependency: cannot run {argv[0]}: {e}"
            ) from e
        finally:
            signal.signal(
                signal.SIGINT,
                signal.default_int_handler if previous is None else previous,
            )
