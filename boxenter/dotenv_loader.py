# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Idempotent ``.env`` loader for boxenter settings.

Reads ``~/.config/boxenter/.env`` (XDG config directory) once per process.
Unlike a plain ``load_dotenv`` the values are **not** written into
``os.environ``: everything in the host environment is a candidate for
forwarding into the container, and settings meant for boxenter itself must
not leak into the session.  Callers merge the returned mapping under the
real environment, so variables already set in the environment win.
"""

import logging

from dotenv import dotenv_values


logger = logging.getLogger(__name__)

_dotenv_values: dict[str, str] | None = None


def load_dotenv_once() -> dict[str, str]:
    """Load the XDG ``.env`` file once, if not already loaded.

    This function is idempotent: calling it multiple times returns the
    values read by the first call.

    Returns:
        Variables defined in the file (empty when there is no file).
    """
    global _dotenv_values
    if _dotenv_values is not None:
        return _dotenv_values

    from boxenter.config import get_dotenv_path

    values: dict[str, str] = {}
    env_path = get_dotenv_path()
    if env_path.exists():
        values = {
            k: v for k, v in dotenv_values(env_path).items() if v is not None
        }
        logger.debug("Loaded %d values from %s", len(values), env_path)

    _dotenv_values = values
    return values


def reset_dotenv_state() -> None:
    """Reset the dotenv loaded state. For testing only."""
    global _dotenv_values
    _dotenv_values = None
