# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Container inspection.

Turns the engine's inspect record into a :class:`ContainerState`.  HOME,
SHELL and PATH are read from the environment recorded in the container
config at creation time, since home directories can be customized per
container.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from boxenter.engine import EngineClient
from boxenter.types import ContainerState, ContainerStatus


logger = logging.getLogger(__name__)

_DEFAULT_SHELL = "bash"


def recorded_env(record: Mapping[str, Any]) -> dict[str, str]:
    """Extract ``Config.Env`` from an inspect record as a mapping.

    Later entries override earlier ones, matching how the engine applies
    them.  Entries without ``=`` are ignored.
    """
    config = record.get("Config") or {}
    env: dict[str, str] = {}
    for entry in config.get("Env") or []:
        name, sep, value = str(entry).partition("=")
        if sep:
            env[name] = value
    return env


def parse_status(record: Mapping[str, Any]) -> ContainerStatus:
    """Map the engine's state string onto :class:`ContainerStatus`."""
    state = record.get("State") or {}
    status = str(state.get("Status", "")).lower()
    if status == "running":
        return ContainerStatus.RUNNING
    if not status:
        return ContainerStatus.UNKNOWN
    return ContainerStatus.STOPPED


def state_from_record(
    record: Mapping[str, Any], host_env: Mapping[str, str]
) -> ContainerState:
    """Build a container state from an inspect record.

    Args:
        record: Inspect record for one container.
        host_env: Host environment, used for SHELL only when the
            container recorded none.  HOME is never taken from the host.
    """
    env = recorded_env(record)

    home = env.get("HOME", "")
    if not home:
        logger.debug("Container records no HOME")

    shell = env.get("SHELL") or host_env.get("SHELL") or _DEFAULT_SHELL

    return ContainerState(
        status=parse_status(record),
        home=home,
        shell=shell,
        path=env.get("PATH", ""),
    )


def inspect_container(
    client: EngineClient, name: str, host_env: Mapping[str, str]
) -> ContainerState:
    """Query the engine once for the current state of a container.

    Returns:
        The container state, with status MISSING if it does not exist.
    """
    record = client.inspect(name)
    if record is None:
        logger.debug("Container %s not found", name)
        return ContainerState(status=ContainerStatus.MISSING)

    state = state_from_record(record, host_env)
    logger.debug(
        "Container %s: status=%s home=%s shell=%s",
        name,
        state.status.value,
        state.home,
        state.shell,
    )
    return state


def default_state(host_env: Mapping[str, str]) -> ContainerState:
    """Inspect-independent defaults, used when generating a dry-run command."""
    return ContainerState(
        status=ContainerStatus.UNKNOWN,
        home=host_env.get("HOME", "/"),
        shell=host_env.get("SHELL") or _DEFAULT_SHELL,
        path="",
    )
