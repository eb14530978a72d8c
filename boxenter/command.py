# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Assembly of the engine ``exec`` invocation."""

from __future__ import annotations

import shlex
import sys
from collections.abc import Sequence
from dataclasses import dataclass

from boxenter.types import ContainerState, Invocation, ReconciledEnvironment


@dataclass(frozen=True)
class CommandOptions:
    """Caller choices that shape the invocation.

    Attributes:
        command: Command to run; empty means the container's login shell.
        headless: Never allocate a pseudo-terminal.
        additional_flags: Raw engine flags, each split shell-style.
        user: User to run as inside the container.
    """

    command: tuple[str, ...] = ()
    headless: bool = False
    additional_flags: tuple[str, ...] = ()
    user: str = ""


def stdin_is_tty() -> bool:
    """True if standard input is attached to a terminal."""
    return sys.stdin is not None and sys.stdin.isatty()


def build_invocation(
    engine_command: Sequence[str],
    container_name: str,
    state: ContainerState,
    environment: ReconciledEnvironment,
    options: CommandOptions,
    *,
    tty_attached: bool,
) -> Invocation:
    """Build the exec invocation.

    Args:
        engine_command: Engine command prefix.
        container_name: Container to enter.
        state: Inspected (or default) container state.
        environment: Reconciled variables and workdir.
        options: Requested command and flags.
        tty_attached: Whether the caller's stdin is a terminal.

    Returns:
        The final invocation.
    """
    flags = ["--interactive", "--detach-keys="]
    if options.user:
        flags.append(f"--user={options.user}")
    if not options.headless and tty_attached:
        flags.append("--tty")
    flags.append(f"--workdir={environment.workdir}")

    extra: list[str] = []
    for raw in options.additional_flags:
        extra.extend(shlex.split(raw))

    if options.command:
        target = tuple(options.command)
    else:
        target = (*shlex.split(state.shell or "bash"), "-l")

    return Invocation(
        engine_command=tuple(engine_command),
        flags=tuple(flags),
        env_assignments=environment.assignments,
        extra_flags=tuple(extra),
        container_name=container_name,
        target_command=target,
    )


def format_invocation(invocation: Invocation) -> str:
    """Render an invocation as a single shell-quoted command line."""
    return shlex.join(invocation.argv)
