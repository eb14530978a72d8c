# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Type definitions shared across boxenter.

Provides the immutable values passed between components: the container
identity, its inspected state, the reconciled environment, and the final
engine invocation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class Engine(Enum):
    """Supported container engines, in autodetection preference order."""

    PODMAN = "podman"
    DOCKER = "docker"


@dataclass(frozen=True)
class ContainerIdentity:
    """Which container to enter and through which engine.

    Attributes:
        name: Container name or ID.
        engine: Engine managing the container.
        rootful: Whether the container belongs to the root engine instance.
    """

    name: str
    engine: Engine
    rootful: bool = False


class ContainerStatus(Enum):
    """Container status as observed by this process."""

    UNKNOWN = "unknown"
    MISSING = "missing"
    STOPPED = "stopped"
    RUNNING = "running"


@dataclass(frozen=True)
class ContainerState:
    """Container status and the environment recorded at creation time.

    Attributes:
        status: Current status.
        home: Home directory recorded in the container config.
        shell: Login shell recorded in the container config.
        path: Colon-separated PATH recorded in the container config.
    """

    status: ContainerStatus
    home: str = ""
    shell: str = ""
    path: str = ""


class Readiness(Enum):
    """Progress of one start-and-wait sequence."""

    WAITING = "waiting"
    WARNED = "warned"
    FAILED = "failed"
    READY = "ready"


@dataclass
class StartupSession:
    """State of a single start-and-wait sequence.

    Attributes:
        since: Timestamp recorded before the start was issued.
        readiness: Latest readiness observed from the log stream.
    """

    since: datetime
    readiness: Readiness = Readiness.WAITING


@dataclass(frozen=True)
class ReconciledEnvironment:
    """Environment and working directory for the exec call.

    Attributes:
        variables: Ordered mapping of variable names to values.
        workdir: Working directory inside the container.
    """

    variables: dict[str, str] = field(default_factory=dict)
    workdir: str = "/"

    @property
    def assignments(self) -> tuple[str, ...]:
        """``NAME=VALUE`` strings in insertion order."""
        return tuple(f"{k}={v}" for k, v in self.variables.items())


@dataclass(frozen=True)
class Invocation:
    """Final engine exec invocation.

    Attributes:
        engine_command: Engine command prefix (e.g. ``("sudo", "podman")``).
        flags: Exec flags, in order.
        env_assignments: ``NAME=VALUE`` strings passed with ``--env``.
        extra_flags: Raw engine flags passed through from the caller.
        container_name: Target container.
        target_command: Command to run inside the container.
    """

    engine_command: tuple[str, ...]
    flags: tuple[str, ...]
    env_assignments: tuple[str, ...]
    extra_flags: tuple[str, ...]
    container_name: str
    target_command: tuple[str, ...]

    @property
    def argv(self) -> list[str]:
        """Full argument vector for the exec call."""
        argv = [*self.engine_command, "exec", *self.flags]
        for assignment in self.env_assignments:
            argv.extend(["--env", assignment])
        argv.extend(self.extra_flags)
        argv.append(self.container_name)
        argv.extend(self.target_command)
        return argv
