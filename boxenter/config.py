# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Configuration for boxenter.

Settings are layered, later layers winning:

1. built-in defaults,
2. the YAML config file at ``$XDG_CONFIG_HOME/boxenter/boxenter.yaml``
   (typically ``~/.config/boxenter/boxenter.yaml``, overridable with
   ``BOXENTER_CONFIG``),
3. ``BOXENTER_*`` environment variables (and ``~/.config/boxenter/.env``),
4. command-line flags (applied by the CLI).

``!env`` tags in the YAML file resolve values from environment variables.
The config file is optional; a missing file means defaults.
"""

import dataclasses
import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, TypeVar, overload

import yaml
from platformdirs import user_cache_path, user_config_path

from boxenter.dotenv_loader import load_dotenv_once
from boxenter.errors import ConfigError


logger = logging.getLogger(__name__)

_APP_NAME = "boxenter"

_BOOL_TRUTHY = frozenset({"true", "1", "yes", "on"})
_BOOL_FALSY = frozenset({"false", "0", "no", "off"})

_ENGINE_CHOICES = frozenset({"autodetect", "podman", "docker"})

#: Environment overrides: variable name -> (field name, type).
_ENV_OVERRIDES: dict[str, tuple[str, type]] = {
    "BOXENTER_CONTAINER_MANAGER": ("container_manager", str),
    "BOXENTER_CONTAINER_NAME": ("container_name", str),
    "BOXENTER_SKIP_WORKDIR": ("skip_workdir", bool),
    "BOXENTER_NON_INTERACTIVE": ("headless", bool),
    "BOXENTER_VERBOSE": ("verbose", bool),
    "BOXENTER_SUDO_PROGRAM": ("sudo_program", str),
    "BOXENTER_CLEAN_PATH": ("clean_path", bool),
}


def get_config_path() -> Path:
    """Return the config file path.

    ``BOXENTER_CONFIG`` takes precedence over the XDG location.
    """
    override = os.environ.get("BOXENTER_CONFIG")
    if override:
        return Path(override).expanduser()
    return user_config_path(_APP_NAME) / "boxenter.yaml"


def get_dotenv_path() -> Path:
    """Return the ``.env`` file path inside the XDG config directory."""
    return user_config_path(_APP_NAME) / ".env"


def get_cache_dir() -> Path:
    """Return the directory holding transient log scratch files."""
    return user_cache_path(_APP_NAME)


# ---------------------------------------------------------------------------
# YAML tag placeholders
# ---------------------------------------------------------------------------


class _EnvVar:
    """Placeholder for an unresolved ``!env VAR_NAME`` tag."""

    def __init__(self, var_name: str) -> None:
        self.var_name = var_name


def _env_constructor(loader: yaml.SafeLoader, node: yaml.Node) -> _EnvVar:
    """Handle ``!env VAR_NAME`` in YAML."""
    value = loader.construct_scalar(node)
    return _EnvVar(str(value))


def _make_loader() -> type[yaml.SafeLoader]:
    """Create a YAML loader that understands ``!env``."""

    class EnvLoader(yaml.SafeLoader):
        pass

    EnvLoader.add_constructor("!env", _env_constructor)
    return EnvLoader


# ---------------------------------------------------------------------------
# Value resolution
# ---------------------------------------------------------------------------


def _coerce_bool(value: object) -> bool:
    """Coerce a value to bool, handling string representations."""
    if isinstance(value, bool):
        return value
    s = str(value).lower().strip()
    if s in _BOOL_TRUTHY:
        return True
    if s in _BOOL_FALSY:
        return False
    raise ConfigError(f"Cannot convert {value!r} to bool")


def _raw_resolve(value: object) -> str | None:
    """Resolve an ``_EnvVar`` to its string value, or stringify literals.

    Returns None if the value is None or the env var is unset/empty.
    """
    if isinstance(value, _EnvVar):
        return os.environ.get(value.var_name) or None
    if value is None:
        return None
    return str(value)


_MISSING = object()

_T = TypeVar("_T")


@overload
def _resolve(value: object, coerce: type[_T], *, default: _T) -> _T: ...


@overload
def _resolve(value: object, coerce: type[_T]) -> _T | None: ...


def _resolve(
    value: object,
    coerce: type[Any],
    *,
    default: object = _MISSING,
) -> Any:
    """Resolve a YAML value, handling ``!env`` tags and type coercion.

    Args:
        value: Raw value from YAML (may be ``_EnvVar``, None, or a
            literal already parsed by PyYAML).
        coerce: Target type (``str``, ``int``, ``float``, ``bool``).
        default: Default when value is absent.

    Returns:
        The resolved, coerced value, or None when absent without default.

    Raises:
        ConfigError: If the value cannot be coerced.
    """
    if not isinstance(value, _EnvVar) and value is not None:
        if coerce is bool:
            return _coerce_bool(value)
        if isinstance(value, coerce) and not isinstance(value, bool):
            return value

    resolved = _raw_resolve(value)

    if resolved is None:
        if default is not _MISSING:
            return default
        return None

    if coerce is bool:
        return _coerce_bool(resolved)
    try:
        return coerce(resolved)
    except ValueError as e:
        raise ConfigError(
            f"Cannot convert {resolved!r} to {coerce.__name__}"
        ) from e


def _resolve_string_list(value: object, *, name: str) -> tuple[str, ...]:
    """Resolve a list of strings, handling ``!env`` for each element.

    A single string is accepted as a one-element list.

    Raises:
        ConfigError: If value is neither a list nor a string.
    """
    if value is None:
        return ()
    if isinstance(value, (str, _EnvVar)):
        value = [value]
    if not isinstance(value, list):
        raise ConfigError(
            f"Config '{name}' must be a list, got {type(value).__name__}"
        )

    result: list[str] = []
    for item in value:
        resolved = _raw_resolve(item)
        if resolved:
            result.append(resolved)
    return tuple(result)


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EnterConfig:
    """Settings for entering a container.

    Attributes:
        container_manager: ``podman``, ``docker`` or ``autodetect``.
        container_name: Container entered when none is given.
        sudo_program: Command used to reach a rootful engine.
        skip_workdir: Enter the container home instead of the host cwd.
        headless: Never allocate a pseudo-terminal.
        clean_path: Do not inherit host PATH entries.
        verbose: Enable debug logging.
        host_mount_root: Host root mount point inside the container.
        poll_interval: Seconds between log polls while starting.
        max_wait: Optional limit in seconds on waiting for the entrypoint.
        stage_marker: Log prefix of entrypoint progress lines.
        ready_marker: Log line signalling the entrypoint is done.
        additional_flags: Raw engine flags added to every exec.
    """

    container_manager: str = "autodetect"
    container_name: str = "my-box"
    sudo_program: str = "sudo"
    skip_workdir: bool = False
    headless: bool = False
    clean_path: bool = False
    verbose: bool = False
    host_mount_root: str = "/run/host"
    poll_interval: float = 1.0
    max_wait: float | None = None
    stage_marker: str = "distrobox:"
    ready_marker: str = "container_setup_done"
    additional_flags: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        """Validate configuration.

        Raises:
            ConfigError: If configuration is invalid.
        """
        if self.container_manager not in _ENGINE_CHOICES:
            choices = ", ".join(sorted(_ENGINE_CHOICES))
            raise ConfigError(
                f"Invalid container manager {self.container_manager!r} "
                f"(expected one of: {choices})"
            )
        if not self.container_name:
            raise ConfigError("Container name must not be empty")
        if self.poll_interval <= 0:
            raise ConfigError(
                f"Poll interval must be > 0: {self.poll_interval}"
            )
        if self.max_wait is not None and self.max_wait <= 0:
            raise ConfigError(f"Max wait must be > 0: {self.max_wait}")
        if not self.stage_marker or not self.ready_marker:
            raise ConfigError("Startup markers must not be empty")

    @classmethod
    def load(
        cls,
        config_path: Path | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> "EnterConfig":
        """Load configuration from file and environment.

        Args:
            config_path: YAML config file.  Defaults to
                :func:`get_config_path`.
            environ: Environment used for overrides.  Defaults to the
                ``.env`` values overlaid with ``os.environ``.

        Returns:
            EnterConfig instance.

        Raises:
            ConfigError: If the file is malformed or a value is invalid.
        """
        if environ is None:
            environ = {**load_dotenv_once(), **os.environ}
        if config_path is None:
            config_path = get_config_path()

        config = cls.from_yaml(config_path) if config_path.exists() else cls()
        return config.with_env_overrides(environ)

    @classmethod
    def from_yaml(cls, config_path: Path) -> "EnterConfig":
        """Load configuration from a YAML file.

        Raises:
            ConfigError: If the file is missing or not a YAML mapping.
        """
        if not config_path.exists():
            raise ConfigError(f"Config file not found: {config_path}")

        try:
            with open(config_path) as f:
                raw = yaml.load(f, Loader=_make_loader())
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e

        if raw is None:
            raw = {}
        if not isinstance(raw, dict):
            raise ConfigError(
                f"Config file must be a YAML mapping: {config_path}"
            )

        logger.debug("Loaded config from %s", config_path)
        return cls._from_raw(raw)

    @classmethod
    def _from_raw(cls, raw: dict) -> "EnterConfig":
        """Build config from parsed (but unresolved) YAML dict."""
        startup = raw.get("startup") or {}
        if not isinstance(startup, dict):
            raise ConfigError("'startup' must be a YAML mapping")

        defaults = cls()
        return cls(
            container_manager=_resolve(
                raw.get("container_manager"),
                str,
                default=defaults.container_manager,
            ),
            container_name=_resolve(
                raw.get("container_name"), str, default=defaults.container_name
            ),
            sudo_program=_resolve(
                raw.get("sudo_program"), str, default=defaults.sudo_program
            ),
            skip_workdir=_resolve(
                raw.get("skip_workdir"), bool, default=defaults.skip_workdir
            ),
            headless=_resolve(
                raw.get("headless"), bool, default=defaults.headless
            ),
            clean_path=_resolve(
                raw.get("clean_path"), bool, default=defaults.clean_path
            ),
            verbose=_resolve(
                raw.get("verbose"), bool, default=defaults.verbose
            ),
            host_mount_root=_resolve(
                raw.get("host_mount_root"),
                str,
                default=defaults.host_mount_root,
            ),
            poll_interval=_resolve(
                startup.get("poll_interval"),
                float,
                default=defaults.poll_interval,
            ),
            max_wait=_resolve(startup.get("max_wait"), float),
            stage_marker=_resolve(
                startup.get("stage_marker"),
                str,
                default=defaults.stage_marker,
            ),
            ready_marker=_resolve(
                startup.get("ready_marker"),
                str,
                default=defaults.ready_marker,
            ),
            additional_flags=_resolve_string_list(
                raw.get("additional_flags"), name="additional_flags"
            ),
        )

    def with_env_overrides(self, environ: Mapping[str, str]) -> "EnterConfig":
        """Return a copy with ``BOXENTER_*`` environment overrides applied.

        Unset and empty variables are ignored.
        """
        changes: dict[str, Any] = {}
        for var, (field_name, coerce) in _ENV_OVERRIDES.items():
            value = environ.get(var)
            if not value:
                continue
            changes[field_name] = _resolve(value, coerce)
            logger.debug("Config override from %s", var)
        if not changes:
            return self
        return dataclasses.replace(self, **changes)
