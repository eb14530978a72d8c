# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Logging setup with secret redaction.

Debug output includes full engine command lines, and forwarded host
variables appear there as ``--env NAME=VALUE``.  Values of variables whose
names look like credentials are registered with :class:`SecretFilter` and
replaced before a record is emitted.

Usage:
    # In the entry point
    from boxenter.logging import configure_logging
    configure_logging(verbose=True)

    # In library modules
    import logging
    logger = logging.getLogger(__name__)
    logger.debug("Inspecting container: %s", name)
"""

import logging
import re
from collections.abc import Mapping
from typing import ClassVar


_REDACTED = "[REDACTED]"

#: Variable names whose values are treated as credentials.
SECRET_NAME = re.compile(
    r"TOKEN|SECRET|PASSWORD|PASSWD|CREDENTIAL|API_?KEY|PRIVATE", re.IGNORECASE
)

_DEFAULT_FORMAT = "boxenter: %(levelname)s: %(message)s"
_VERBOSE_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class SecretFilter(logging.Filter):
    """Replaces registered secret values in emitted records.

    The registry is shared by all instances.  Records are rendered before
    matching, so a secret inside a non-string argument (an argv list, for
    instance) is caught as well.
    """

    _secrets: ClassVar[set[str]] = set()
    _pattern: ClassVar[re.Pattern[str] | None] = None

    def filter(self, record: logging.LogRecord) -> bool:
        if self._pattern is None:
            return True
        message = record.getMessage()
        redacted = self._pattern.sub(_REDACTED, message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True

    @classmethod
    def register_secret(cls, secret: str) -> None:
        """Register a value to redact.  Empty strings are ignored."""
        if secret and secret not in cls._secrets:
            cls._secrets.add(secret)
            cls._rebuild_pattern()

    @classmethod
    def register_environment(cls, variables: Mapping[str, str]) -> list[str]:
        """Register the values of credential-like variables.

        Returns:
            Names of the variables whose values were registered.
        """
        names = [
            name
            for name, value in variables.items()
            if value and SECRET_NAME.search(name)
        ]
        for name in names:
            cls.register_secret(variables[name])
        return names

    @classmethod
    def clear_secrets(cls) -> None:
        """Clear all registered secrets. Primarily for testing."""
        cls._secrets.clear()
        cls._pattern = None

    @classmethod
    def _rebuild_pattern(cls) -> None:
        # Longest first, so a secret containing another is replaced whole.
        ordered = sorted(cls._secrets, key=len, reverse=True)
        cls._pattern = re.compile("|".join(re.escape(s) for s in ordered))


def configure_logging(verbose: bool = False) -> None:
    """Route log records to stderr through a redacting handler.

    Without *verbose* only warnings and errors are shown, prefixed with the
    program name.  With it, debug records from every module are shown with
    timestamps and logger names.
    """
    handler = logging.StreamHandler()
    handler.setFormatter(
        logging.Formatter(_VERBOSE_FORMAT if verbose else _DEFAULT_FORMAT)
    )
    handler.addFilter(SecretFilter())

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG if verbose else logging.WARNING)

    # Remove existing handlers to avoid duplicates
    for existing_handler in root_logger.handlers[:]:
        root_logger.removeHandler(existing_handler)

    root_logger.addHandler(handler)
