# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Error taxonomy.

Every fatal condition is a :class:`BoxenterError` subclass carrying the
process exit code the CLI should terminate with.  Nothing here is retried;
the CLI prints the message to stderr and exits.
"""

#: Exit code for generic failures.
EXIT_FAILURE = 1

#: Exit code when the container engine binary cannot be found.
EXIT_MISSING_DEPENDENCY = 127


class BoxenterError(Exception):
    """Base exception for fatal boxenter errors."""

    exit_code: int = EXIT_FAILURE


class EngineUnavailable(BoxenterError):
    """Raised when no container engine binary can be resolved."""

    exit_code = EXIT_MISSING_DEPENDENCY


class ContainerAbsent(BoxenterError):
    """Raised when the named container does not exist."""

    def __init__(self, name: str, engine_command: str) -> None:
        self.name = name
        super().__init__(
            f"Cannot find container {name}.\n"
            f"Create it first, for example with:\n"
            f"    distrobox create --name {name}\n"
            f"or list existing containers with:\n"
            f"    {engine_command} ps --all"
        )


class StartFailure(BoxenterError):
    """Raised when a container fails to reach the ready state.

    Attributes:
        logs: Log output captured from the container, echoed to the user.
    """

    def __init__(self, message: str, logs: str = "") -> None:
        super().__init__(message)
        self.logs = logs


class InvalidArgument(BoxenterError):
    """Raised for unrecognized or malformed command-line arguments."""


class ConfigError(BoxenterError):
    """Raised when the configuration file or overrides are invalid."""


class EngineError(BoxenterError):
    """Raised when the engine returns output that cannot be interpreted."""
