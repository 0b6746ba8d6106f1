"""Tool configuration (``config.toml``).

This is configuration of platbundle itself, not of the project being bundled.
Every key is optional; a missing file means defaults.

Lookup order:
1. ``--config PATH``
2. ``$PLATBUNDLE_CONFIG``
3. ``<user config dir>/config.toml``

An explicitly named file must exist. The default location is only read when
present.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from .result import Err, Ok, Result
from .structured import StrDict, as_str_dict, get_int, get_list, get_str, get_table

__all__ = [
    "CONFIG_ENV_VAR",
    "ConfigError",
    "ReleaseSettings",
    "SourceSettings",
    "TimeoutSettings",
    "ToolConfig",
    "ToolsSettings",
    "WorkspaceSettings",
    "load_tool_config",
    "resolve_tool_config",
]

CONFIG_ENV_VAR = "PLATBUNDLE_CONFIG"

DEFAULT_WORKSPACE_PREFIX = "platbundle"
DEFAULT_SHORTHAND_BASE_URL = "https://github.com"
DEFAULT_CLONE_DEPTH = 1

# Seconds
DEFAULT_CLONE_TIMEOUT = 3 * 60.0
DEFAULT_BUILD_TIMEOUT = 60 * 60.0
DEFAULT_PACKAGE_TIMEOUT = 30 * 60.0


@dataclass(frozen=True, slots=True)
class ConfigError:
    """Error when config cannot be loaded or parsed."""

    message: str
    path: Path | None = None


@dataclass(frozen=True, slots=True)
class WorkspaceSettings:
    """Where per-invocation workspaces are created."""

    prefix: str = DEFAULT_WORKSPACE_PREFIX
    temp_root: Path | None = None


@dataclass(frozen=True, slots=True)
class ReleaseSettings:
    """Destination used when no output path is given."""

    dir: Path | None = None


@dataclass(frozen=True, slots=True)
class SourceSettings:
    shorthand_base_url: str = DEFAULT_SHORTHAND_BASE_URL
    allowed_hosts: tuple[str, ...] = ()
    clone_depth: int = DEFAULT_CLONE_DEPTH


@dataclass(frozen=True, slots=True)
class TimeoutSettings:
    clone: float = DEFAULT_CLONE_TIMEOUT
    build: float = DEFAULT_BUILD_TIMEOUT
    package: float = DEFAULT_PACKAGE_TIMEOUT


@dataclass(frozen=True, slots=True)
class ToolsSettings:
    """Executable overrides keyed by tool name (e.g. ``dpkg-deb``)."""

    overrides: dict[str, str] = field(default_factory=dict[str, str])

    def executable(self, name: str) -> str:
        return self.overrides.get(name, name)


@dataclass(frozen=True, slots=True)
class ToolConfig:
    """Main configuration container."""

    workspace: WorkspaceSettings = field(default_factory=WorkspaceSettings)
    release: ReleaseSettings = field(default_factory=ReleaseSettings)
    source: SourceSettings = field(default_factory=SourceSettings)
    tools: ToolsSettings = field(default_factory=ToolsSettings)
    timeouts: TimeoutSettings = field(default_factory=TimeoutSettings)
    path: Path | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, object], *, path: Path | None = None) -> ToolConfig:
        """Create ToolConfig from a mapping (parsed TOML)."""
        workspace: StrDict = get_table(data, "workspace") or {}
        release: StrDict = get_table(data, "release") or {}
        source: StrDict = get_table(data, "source") or {}
        tools: StrDict = get_table(data, "tools") or {}
        timeouts: StrDict = get_table(data, "timeouts") or {}

        hosts = get_list(source, "allowed_hosts") or []
        depth = get_int(source, "clone_depth")

        return cls(
            workspace=WorkspaceSettings(
                prefix=get_str(workspace, "prefix") or DEFAULT_WORKSPACE_PREFIX,
                temp_root=_get_path(workspace, "temp_root"),
            ),
            release=ReleaseSettings(dir=_get_path(release, "dir")),
            source=SourceSettings(
                shorthand_base_url=(
                    get_str(source, "shorthand_base_url") or DEFAULT_SHORTHAND_BASE_URL
                ).rstrip("/"),
                allowed_hosts=tuple(h.strip().lower() for h in hosts if isinstance(h, str)),
                clone_depth=depth if depth is not None and depth > 0 else DEFAULT_CLONE_DEPTH,
            ),
            tools=ToolsSettings(
                overrides={k: v.strip() for k, v in tools.items() if isinstance(v, str) and v.strip()}
            ),
            timeouts=TimeoutSettings(
                clone=_get_seconds(timeouts, "clone") or DEFAULT_CLONE_TIMEOUT,
                build=_get_seconds(timeouts, "build") or DEFAULT_BUILD_TIMEOUT,
                package=_get_seconds(timeouts, "package") or DEFAULT_PACKAGE_TIMEOUT,
            ),
            path=path,
        )


def _get_path(table: Mapping[str, object], key: str) -> Path | None:
    value = get_str(table, key)
    if value is None:
        return None
    return Path(os.path.expandvars(value)).expanduser()


def _get_seconds(table: Mapping[str, object], key: str) -> float | None:
    value = table.get(key)
    if isinstance(value, bool) or not isinstance(value, int | float):
        return None
    return float(value) if value > 0 else None


def _parse_toml(path: Path) -> Result[StrDict, ConfigError]:
    """Parse a TOML file, handling import and parse errors."""
    import tomllib

    try:
        content = path.read_bytes()
        data_obj: object = tomllib.loads(content.decode("utf-8"))
        data = as_str_dict(data_obj)
        if data is None:
            return Err(ConfigError("Config root must be a TOML table", path=path))
        return Ok(data)
    except FileNotFoundError:
        return Err(ConfigError(f"Config file not found: {path}", path=path))
    except PermissionError:
        return Err(ConfigError(f"Permission denied reading: {path}", path=path))
    except tomllib.TOMLDecodeError as e:
        return Err(ConfigError(f"Invalid TOML syntax: {e}", path=path))
    except (UnicodeDecodeError, OSError) as e:
        return Err(ConfigError(f"Error reading config: {e}", path=path))


def load_tool_config(path: Path) -> Result[ToolConfig, ConfigError]:
    """Load and parse configuration from a TOML file.

    Args:
        path: Path to config.toml file

    Returns:
        Ok(ToolConfig) on success, Err(ConfigError) on failure
    """
    result = _parse_toml(path)
    if isinstance(result, Err):
        return result

    try:
        return Ok(ToolConfig.from_dict(result.value, path=path))
    except (KeyError, TypeError, ValueError) as e:
        return Err(ConfigError(f"Invalid config structure: {e}", path=path))


def resolve_tool_config(
    explicit: Path | None,
    *,
    default_dir: Path,
    environ: Mapping[str, str] | None = None,
) -> Result[ToolConfig, ConfigError]:
    """Find and load the tool config following the lookup order."""
    env = os.environ if environ is None else environ

    if explicit is not None:
        return load_tool_config(explicit.expanduser())

    from_env = env.get(CONFIG_ENV_VAR, "").strip()
    if from_env:
        return load_tool_config(Path(from_env).expanduser())

    default_path = default_dir / "config.toml"
    if default_path.is_file():
        return load_tool_config(default_path)
    return Ok(ToolConfig())
