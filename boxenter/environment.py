# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Environment reconciliation between host and container.

Computes the variables and working directory handed to the exec call:

* ``PATH``: the container's recorded PATH, then any missing standard
  system directories, then any missing host PATH entries.
* ``XDG_DATA_DIRS`` / ``XDG_CONFIG_DIRS``: the standard directories.
* ``XDG_*_HOME``: directories under the container home.
* Host variables that are safe to forward, minus a denylist of variables
  that must keep their container-specific value.

Path lists are merged as sequences of whole directory tokens, so
``/usr/bin2`` never counts as ``/usr/bin``.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import PurePosixPath

from boxenter.logging import SecretFilter
from boxenter.types import ContainerState, ReconciledEnvironment


logger = logging.getLogger(__name__)

STANDARD_PATHS = (
    "/usr/local/sbin",
    "/usr/local/bin",
    "/usr/sbin",
    "/usr/bin",
    "/sbin",
    "/bin",
)
STANDARD_DATA_DIRS = ("/usr/local/share", "/usr/share")
STANDARD_CONFIG_DIRS = ("/etc/xdg",)

#: Host root as seen from inside the container.
DEFAULT_HOST_MOUNT_ROOT = "/run/host"

#: Host variables never forwarded; the container keeps its own values.
DENYLIST = frozenset(
    {
        "CONTAINER_ID",
        "FPATH",
        "HOST",
        "HOSTNAME",
        "HOME",
        "PATH",
        "PROFILEREAD",
        "SHELL",
        "XDG_SEAT",
        "XDG_VTNR",
    }
)
_DENY_PATTERN = re.compile(r"^(XDG_.*_DIRS|_.*)$")

# Whitespace and quoting characters would corrupt the engine command line.
_UNSAFE_VALUE = re.compile(r"[\s\"'`$]")


def split_path_list(value: str) -> list[str]:
    """Split a colon-separated list into tokens, dropping empty ones."""
    return [token for token in value.split(":") if token]


def merge_path_lists(
    base: Iterable[str], *additions: Iterable[str]
) -> list[str]:
    """Append tokens that are not already present, preserving order.

    Args:
        base: Starting tokens.  Kept as-is apart from dropping empty
            tokens and repeats.
        *additions: Token sequences appended in order, each token only if
            not already present.

    Returns:
        Merged token list without duplicates.
    """
    merged: list[str] = []
    seen: set[str] = set()
    for tokens in (base, *additions):
        for token in tokens:
            if token and token not in seen:
                seen.add(token)
                merged.append(token)
    return merged


def reconcile_path(
    container_path: str,
    host_path: str,
    standard: Iterable[str] = STANDARD_PATHS,
    *,
    clean: bool = False,
) -> str:
    """Compute the PATH for the exec call.

    Args:
        container_path: PATH recorded in the container config.
        host_path: The host's PATH.
        standard: Standard system directories that must be present.
        clean: Do not inherit host PATH entries.
    """
    additions = [list(standard)]
    if not clean:
        additions.append(split_path_list(host_path))
    merged = merge_path_lists(split_path_list(container_path), *additions)
    return ":".join(merged)


def forwardable_variables(host_env: Mapping[str, str]) -> dict[str, str]:
    """Select host variables that can be forwarded into the container.

    Skips denylisted names and any value containing whitespace or quoting
    characters.
    """
    forwarded: dict[str, str] = {}
    for name, value in host_env.items():
        if name in DENYLIST or _DENY_PATTERN.match(name):
            continue
        if _UNSAFE_VALUE.search(name) or _UNSAFE_VALUE.search(value):
            continue
        forwarded[name] = value
    return forwarded


def is_within(path: str, root: str) -> bool:
    """True if *path* is *root* or below it, compared by path components."""
    try:
        PurePosixPath(path).relative_to(PurePosixPath(root))
    except ValueError:
        return False
    return True


def compute_workdir(
    host_cwd: str,
    container_home: str,
    *,
    skip_workdir: bool = False,
    host_mount_root: str = DEFAULT_HOST_MOUNT_ROOT,
) -> str:
    """Choose the working directory inside the container.

    The container home is mounted at the same location as on the host, so
    a cwd under it is used directly.  Any other host directory is reached
    through the host root mount.
    """
    if skip_workdir:
        return container_home or "/"
    if not host_cwd:
        return container_home or "/"
    if container_home and is_within(host_cwd, container_home):
        return host_cwd
    return str(PurePosixPath(host_mount_root) / host_cwd.lstrip("/"))


@dataclass(frozen=True)
class ReconcileOptions:
    """Inputs to :func:`reconcile_environment` beyond the two environments.

    Attributes:
        container_name: Exported to the session as ``CONTAINER_ID``.
        enter_path: Path of this program, exported for in-container tools.
        skip_workdir: Enter the container home instead of the host cwd.
        clean_path: Do not inherit host PATH entries.
        host_mount_root: Host root mount point inside the container.
        standard_paths: Standard PATH directories.
        standard_data_dirs: Standard XDG_DATA_DIRS directories.
        standard_config_dirs: Standard XDG_CONFIG_DIRS directories.
    """

    container_name: str
    enter_path: str = ""
    skip_workdir: bool = False
    clean_path: bool = False
    host_mount_root: str = DEFAULT_HOST_MOUNT_ROOT
    standard_paths: tuple[str, ...] = STANDARD_PATHS
    standard_data_dirs: tuple[str, ...] = STANDARD_DATA_DIRS
    standard_config_dirs: tuple[str, ...] = STANDARD_CONFIG_DIRS


def reconcile_environment(
    container: ContainerState,
    host_env: Mapping[str, str],
    host_cwd: str,
    options: ReconcileOptions,
) -> ReconciledEnvironment:
    """Compute the full environment and workdir for the exec call.

    Forwarded host variables come first, followed by the computed markers
    and directory variables, which therefore win over any host value.
    Values of forwarded variables whose names suggest credentials are
    registered for log redaction.
    """
    home = container.home or "/"
    variables = forwardable_variables(host_env)

    redacted = SecretFilter.register_environment(variables)
    if redacted:
        logger.debug("Redacting values of %s", ", ".join(redacted))

    variables["CONTAINER_ID"] = options.container_name
    if options.enter_path:
        variables["BOXENTER_ENTER_PATH"] = options.enter_path

    variables["PATH"] = reconcile_path(
        container.path,
        host_env.get("PATH", ""),
        options.standard_paths,
        clean=options.clean_path,
    )
    variables["XDG_DATA_DIRS"] = ":".join(
        merge_path_lists([], options.standard_data_dirs)
    )
    variables["XDG_CONFIG_DIRS"] = ":".join(
        merge_path_lists([], options.standard_config_dirs)
    )
    variables["XDG_CACHE_HOME"] = f"{home.rstrip('/')}/.cache"
    variables["XDG_CONFIG_HOME"] = f"{home.rstrip('/')}/.config"
    variables["XDG_DATA_HOME"] = f"{home.rstrip('/')}/.local/share"
    variables["XDG_STATE_HOME"] = f"{home.rstrip('/')}/.local/state"

    workdir = compute_workdir(
        host_cwd,
        container.home,
        skip_workdir=options.skip_workdir,
        host_mount_root=options.host_mount_root,
    )
    logger.debug(
        "Reconciled %d variables, workdir %s", len(variables), workdir
    )
    return ReconciledEnvironment(variables=variables, workdir=workdir)
