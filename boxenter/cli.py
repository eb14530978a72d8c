# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""boxenter CLI: enter a container session.

Usage::

    boxenter [options] [NAME] [-- COMMAND ...]

Inspects the container, starts it and waits for its entrypoint if it is
stopped, then runs COMMAND (default: the container's login shell) inside
it with a reconciled environment.  ``--dry-run`` prints the engine command
instead of running it.

Exit codes: 0 on success (otherwise the exit code of the command run in
the container), 1 on failure, 127 when no container engine is installed.
"""

from __future__ import annotations

import argparse
import dataclasses
import getpass
import logging
import os
import sys
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import NoReturn, TextIO

from boxenter.command import (
    CommandOptions,
    build_invocation,
    format_invocation,
    stdin_is_tty,
)
from boxenter.config import EnterConfig, get_cache_dir
from boxenter.engine import (
    AUTODETECT,
    EngineClient,
    detect_engine,
    resolve_engine_binary,
)
from boxenter.environment import ReconcileOptions, reconcile_environment
from boxenter.errors import (
    BoxenterError,
    EngineUnavailable,
    InvalidArgument,
    StartFailure,
)
from boxenter.inspector import default_state, inspect_container
from boxenter.log_tail import (
    LogEvent,
    LogEventKind,
    LogTailPoller,
    SentinelPatterns,
)
from boxenter.logging import configure_logging
from boxenter.startup import StartupSequencer
from boxenter.types import ContainerIdentity, ContainerStatus, Engine


logger = logging.getLogger(__name__)

# Arguments after any of these are the command to run in the container.
_COMMAND_SEPARATORS = ("--", "-e", "--exec")


# ── Terminal colors ─────────────────────────────────────────────────


def _use_color(stream: TextIO) -> bool:
    """Determine whether to use ANSI color codes on *stream*.

    Returns True when the stream is a TTY and the ``NO_COLOR`` environment
    variable is not set.  ``TERM=dumb`` also disables color.
    """
    if os.environ.get("NO_COLOR"):
        return False
    if os.environ.get("TERM") == "dumb":
        return False
    return stream.isatty()


class _Style:
    """ANSI escape helpers.  All methods return plain text when color is off."""

    def __init__(self, color: bool) -> None:
        self._on = color

    def _wrap(self, code: str, text: str) -> str:
        if not self._on:
            return text
        return f"\033[{code}m{text}\033[0m"

    def green(self, text: str) -> str:
        return self._wrap("32", text)

    def red(self, text: str) -> str:
        return self._wrap("31", text)

    def yellow(self, text: str) -> str:
        return self._wrap("33", text)


# ── Startup progress ────────────────────────────────────────────────


class _ProgressReporter:
    """Prints entrypoint progress to stderr while a container starts."""

    def __init__(self, style: _Style, stream: TextIO) -> None:
        self._s = style
        self._stream = stream

    def _write(self, text: str) -> None:
        self._stream.write(text)
        self._stream.flush()

    def starting(self) -> None:
        self._write(f"{'Starting container...':<40}\t")

    def event(self, event: LogEvent) -> None:
        ok = self._s.green(" [ OK ]")
        if event.kind is LogEventKind.PROGRESS:
            self._write(f"{ok}\n{event.label:<40}\t")
        elif event.kind is LogEventKind.WARNED:
            self._write(f"\n{self._s.yellow(event.line)}\n")
        elif event.kind is LogEventKind.READY:
            self._write(f"{ok}\nContainer Setup Complete!\n")
        elif event.kind is LogEventKind.FAILED:
            self._write(f"{self._s.red(' [ ERR ]')}\n")


# ── Argument parsing ────────────────────────────────────────────────


class _ArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that raises InvalidArgument instead of exiting."""

    def error(self, message: str) -> NoReturn:
        raise InvalidArgument(f"{message}\n{self.format_usage().rstrip()}")


def _package_version() -> str:
    try:
        return version("boxenter")
    except PackageNotFoundError:
        return "unknown"


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = _ArgumentParser(
        prog="boxenter",
        description="Enter an existing container.",
        epilog=(
            "Arguments after '--' (or -e/--exec) are the command to run "
            "inside the container; the login shell is used otherwise."
        ),
    )
    parser.add_argument(
        "container",
        nargs="?",
        help="container name (same as --name)",
    )
    parser.add_argument("-n", "--name", help="container name")
    parser.add_argument(
        "-T",
        "-H",
        "--headless",
        "--no-tty",
        dest="headless",
        action="store_true",
        help="do not allocate a pseudo-terminal",
    )
    parser.add_argument(
        "-nw",
        "--no-workdir",
        dest="skip_workdir",
        action="store_true",
        help="start in the container home instead of the current directory",
    )
    parser.add_argument(
        "-r",
        "--root",
        action="store_true",
        help="enter a rootful container (engine is run via sudo)",
    )
    parser.add_argument(
        "-d",
        "--dry-run",
        action="store_true",
        help="only print the generated engine command",
    )
    parser.add_argument(
        "-a",
        "--additional-flags",
        action="append",
        default=[],
        metavar="FLAGS",
        help="additional flags passed to the engine exec command",
    )
    parser.add_argument(
        "--clean-path",
        action="store_true",
        help="do not inherit host PATH entries",
    )
    parser.add_argument(
        "--engine",
        choices=[AUTODETECT, *(e.value for e in Engine)],
        help="container engine to use",
    )
    parser.add_argument(
        "--max-wait",
        type=float,
        metavar="SECONDS",
        help="give up waiting for the container entrypoint after SECONDS",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="show debug output",
    )
    parser.add_argument(
        "-V",
        "--version",
        action="version",
        version=f"boxenter {_package_version()}",
    )
    return parser


def split_command(argv: list[str]) -> tuple[list[str], list[str]]:
    """Split argv into boxenter options and the command to run."""
    for i, arg in enumerate(argv):
        if arg in _COMMAND_SEPARATORS:
            return argv[:i], argv[i + 1 :]
    return argv, []


def _host_cwd() -> str:
    try:
        return os.getcwd()
    except FileNotFoundError:
        return os.environ.get("PWD", "")


def _host_user() -> str:
    return os.environ.get("USER") or getpass.getuser()


# ── Entry points ────────────────────────────────────────────────────


def run(argv: list[str]) -> int:
    """Parse arguments and enter the container.

    Returns:
        Exit code of the command run in the container (0 for dry-run).

    Raises:
        BoxenterError: On any fatal condition.
    """
    options_argv, command = split_command(argv)
    args = build_parser().parse_args(options_argv)

    if args.max_wait is not None and args.max_wait <= 0:
        raise InvalidArgument("--max-wait must be greater than 0")

    config = EnterConfig.load()
    verbose = args.verbose or config.verbose
    configure_logging(verbose=verbose)

    name = args.name or args.container or config.container_name
    manager = args.engine or config.container_manager
    max_wait = args.max_wait if args.max_wait is not None else config.max_wait

    if args.dry_run:
        # The engine does not have to be installed to generate a command.
        try:
            engine = detect_engine(manager)
        except EngineUnavailable:
            engine = Engine.PODMAN
    else:
        engine = detect_engine(manager)
        resolve_engine_binary(engine)

    identity = ContainerIdentity(name=name, engine=engine, rootful=args.root)
    client = EngineClient(identity, sudo_program=config.sudo_program)
    host_env = dict(os.environ)

    if args.dry_run:
        state = default_state(host_env)
    else:
        state = inspect_container(client, name, host_env)
        style = _Style(_use_color(sys.stderr))
        reporter = _ProgressReporter(style, sys.stderr)
        poller = LogTailPoller(
            client,
            name,
            scratch_dir=get_cache_dir(),
            patterns=SentinelPatterns(
                stage_marker=config.stage_marker,
                ready_marker=config.ready_marker,
            ),
            poll_interval=config.poll_interval,
            max_wait=max_wait,
        )
        sequencer = StartupSequencer(
            client,
            poller,
            on_event=reporter.event,
            on_starting=reporter.starting,
        )
        sequencer.run(state)
        state = dataclasses.replace(state, status=ContainerStatus.RUNNING)

    environment = reconcile_environment(
        state,
        host_env,
        _host_cwd(),
        ReconcileOptions(
            container_name=name,
            enter_path=str(Path(sys.argv[0]).resolve()),
            skip_workdir=args.skip_workdir or config.skip_workdir,
            clean_path=args.clean_path or config.clean_path,
            host_mount_root=config.host_mount_root,
        ),
    )
    invocation = build_invocation(
        client.command,
        name,
        state,
        environment,
        CommandOptions(
            command=tuple(command),
            headless=args.headless or config.headless,
            additional_flags=(
                *config.additional_flags,
                *args.additional_flags,
            ),
            user=_host_user(),
        ),
        tty_attached=stdin_is_tty(),
    )

    if args.dry_run:
        print(format_invocation(invocation))
        return 0

    return client.exec(invocation)


def main(argv: list[str]) -> int:
    """Run boxenter and map failures to exit codes.

    Every fatal error is reported on stderr; for startup failures the
    captured container logs are echoed as well.
    """
    s = _Style(_use_color(sys.stderr))
    try:
        return run(argv)
    except InvalidArgument as e:
        print(f"boxenter: {e}", file=sys.stderr)
        return e.exit_code
    except BoxenterError as e:
        print(s.red(f"Error: {e}"), file=sys.stderr)
        if isinstance(e, StartFailure) and e.logs:
            print(e.logs, file=sys.stderr)
        return e.exit_code
    except KeyboardInterrupt:
        print(file=sys.stderr)
        return 130


def cli() -> None:
    """Entry point for the ``boxenter`` console script."""
    sys.exit(main(sys.argv[1:]))
