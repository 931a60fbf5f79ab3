"""Build configuration for the relocatable tool builder.

The configuration is an immutable value passed into the orchestrator. It can
be built directly in code, loaded from a TOML file, and adjusted through a
handful of environment variables, so that different versions or destinations
can be built without editing any source.
"""

from __future__ import annotations

import os
import tomllib
from collections.abc import Mapping
from pathlib import Path
from typing import Any, NamedTuple

import toml

from relobuild import launcher
from relobuild.constants import (
    CONFIG_TABLE,
    DEFAULT_BUILD_PACKAGES,
    DEFAULT_DESTINATION,
    DEFAULT_IMAGE,
    DEFAULT_MIRROR_URL,
    DEFAULT_PACKAGE_MANAGER,
    DEFAULT_TOOL,
    DEFAULT_VERSION,
    DEFAULT_WORK_DIR,
    ENV_DESTINATION,
    ENV_IMAGE,
    ENV_VERSION,
    REPO_OVERRIDE_FILE_NAME,
    REPO_OVERRIDE_TARGET,
)
from relobuild.errors import ConfigurationError


class ConfigOverride(NamedTuple):
    """A host file copied into the build container before the recipe runs."""

    source: Path
    target: str


class RecipeParameters(NamedTuple):
    """The two values handed to the recipe on its command line."""

    version: str
    destination: Path

    def as_args(self) -> list[str]:
        """Return the parameters as positional recipe arguments."""
        return [self.version, str(self.destination)]


class BuildConfig(NamedTuple):
    """Configuration data for a single build run."""

    tool: str = DEFAULT_TOOL
    version: str = DEFAULT_VERSION
    destination: Path = Path(DEFAULT_DESTINATION)
    image: str = DEFAULT_IMAGE
    container_name: str = ""
    mirror_url: str = DEFAULT_MIRROR_URL
    package_manager: tuple[str, ...] = DEFAULT_PACKAGE_MANAGER
    build_packages: tuple[str, ...] = DEFAULT_BUILD_PACKAGES
    config_overrides: tuple[ConfigOverride, ...] = ()
    launcher_source: Path = Path(launcher.__file__)
    overwrite_existing: bool = True
    tolerate_build_failures: bool = True
    privileged: bool = True
    verify_on_host: bool = False
    profile_file: Path | None = None
    work_dir: str = DEFAULT_WORK_DIR

    @property
    def environment_name(self) -> str:
        """Name of the disposable build container."""
        return self.container_name or f"{self.tool}-builder"

    @property
    def binary_path(self) -> Path:
        """Location of the real tool binary inside the installed tree."""
        return self.destination / "bin" / self.tool

    @property
    def launcher_path(self) -> Path:
        """Location of the relocatable launcher at the root of the installed tree."""
        return self.destination / self.tool

    @property
    def parameters(self) -> RecipeParameters:
        """Recipe parameters derived from this configuration."""
        return RecipeParameters(self.version, self.destination)

    def source_url(self) -> str:
        """Render the source archive URL for the configured tool and version."""
        return self.mirror_url.format(tool=self.tool, version=self.version)


_PATH_KEYS = {"destination", "launcher_source", "profile_file"}
_TUPLE_KEYS = {"package_manager", "build_packages"}
_BOOL_KEYS = {"overwrite_existing", "tolerate_build_failures", "privileged", "verify_on_host"}


BUNDLED_REPO_OVERRIDE = Path(__file__).resolve().parent / REPO_OVERRIDE_FILE_NAME


def default_overrides(base_dir: Path) -> tuple[ConfigOverride, ...]:
    """Return the package repository override for a build.

    A repository file next to the configuration takes precedence over the
    copy shipped with the package.

    Parameters
    ----------
    base_dir : Path
        Directory searched first for the repository definition file

    Returns
    -------
    tuple[ConfigOverride, ...]
        The override for the package repository file, or nothing when neither exists

    """
    for repo_file in (base_dir / REPO_OVERRIDE_FILE_NAME, BUNDLED_REPO_OVERRIDE):
        if repo_file.is_file():
            return (ConfigOverride(repo_file, REPO_OVERRIDE_TARGET),)
    return ()


def _read_table(path: Path) -> dict[str, Any]:
    if not path.exists():
        msg = f"Configuration file not found: {path}"
        raise ConfigurationError(msg)

    try:
        with path.open("rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        msg = f"Could not parse configuration file {path}: {e}"
        raise ConfigurationError(msg) from e

    # Accept [tool.relobuild] (pyproject.toml), [relobuild], or bare top-level keys
    tool_section = data.get("tool", {})
    if isinstance(tool_section, dict) and CONFIG_TABLE in tool_section:
        return dict(tool_section[CONFIG_TABLE])
    if CONFIG_TABLE in data:
        return dict(data[CONFIG_TABLE])
    return data


def _coerce(values: Mapping[str, Any], base_dir: Path) -> dict[str, Any]:
    known = set(BuildConfig._fields)
    unknown = sorted(set(values) - known)
    if unknown:
        msg = f"Unknown configuration keys: {', '.join(unknown)}"
        raise ConfigurationError(msg)

    result: dict[str, Any] = {}
    for key, value in values.items():
        if key in _PATH_KEYS:
            path = Path(value).expanduser()
            result[key] = path if path.is_absolute() else base_dir / path
        elif key in _TUPLE_KEYS:
            if isinstance(value, str):
                value = value.split()
            result[key] = tuple(str(item) for item in value)
        elif key in _BOOL_KEYS:
            if not isinstance(value, bool):
                msg = f"Configuration key '{key}' must be true or false, got {value!r}"
                raise ConfigurationError(msg)
            result[key] = value
        elif key == "config_overrides":
            result[key] = tuple(_coerce_override(item, base_dir) for item in value)
        else:
            result[key] = str(value)
    return result


def _coerce_override(item: Any, base_dir: Path) -> ConfigOverride:
    if not isinstance(item, dict) or "source" not in item or "target" not in item:
        msg = f"Config override entries need 'source' and 'target' keys, got {item!r}"
        raise ConfigurationError(msg)
    source = Path(item["source"]).expanduser()
    if not source.is_absolute():
        source = base_dir / source
    return ConfigOverride(source, str(item["target"]))


def load_config(path: Path | None = None, environ: Mapping[str, str] | None = None) -> BuildConfig:
    """Load the build configuration.

    Parameters
    ----------
    path : Path | None, optional
        TOML file to read, by default only defaults and environment are used
    environ : Mapping[str, str] | None, optional
        Environment used for overrides, by default ``os.environ``

    Returns
    -------
    BuildConfig
        The effective configuration.

    Raises
    ------
    ConfigurationError
        If the file is missing, unparsable, or holds invalid values.

    """
    environ = os.environ if environ is None else environ
    base_dir = path.resolve().parent if path else Path.cwd()

    values: dict[str, Any] = {}
    if path:
        values.update(_coerce(_read_table(path), base_dir))

    if environ.get(ENV_VERSION):
        values["version"] = environ[ENV_VERSION]
    if environ.get(ENV_DESTINATION):
        values["destination"] = Path(environ[ENV_DESTINATION])
    if environ.get(ENV_IMAGE):
        values["image"] = environ[ENV_IMAGE]

    if "config_overrides" not in values:
        values["config_overrides"] = default_overrides(base_dir)

    return BuildConfig(**values)


def dump_config(config: BuildConfig) -> str:
    """Render a configuration as TOML.

    Parameters
    ----------
    config : BuildConfig
        Configuration to render

    Returns
    -------
    str
        TOML text that `load_config` reads back into an equal configuration.

    """
    table: dict[str, Any] = {}
    for key, value in config._asdict().items():
        if value is None:
            continue
        if key == "config_overrides":
            table[key] = [{"source": str(o.source), "target": o.target} for o in value]
        elif isinstance(value, Path):
            table[key] = str(value)
        elif isinstance(value, tuple):
            table[key] = list(value)
        else:
            table[key] = value
    return toml.dumps({CONFIG_TABLE: table})
