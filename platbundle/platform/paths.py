"""Platform-aware path utilities.

Locations of user-level directories: the tool config directory and the
default release directory. Per-run paths live in core/workspace.py.
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

from .detection import is_macos, is_windows

__all__ = [
    "home",
    "user_config_dir",
    "user_data_dir",
]

# Application name used for directory naming
APP_NAME = "platbundle"


@lru_cache(maxsize=1)
def home() -> Path:
    """Get user's home directory.

    Uses USERPROFILE on Windows, HOME on Unix.
    Falls back to Path.home() which handles edge cases.
    """
    # Check env vars first for CI/container scenarios
    if is_windows():
        userprofile = os.environ.get("USERPROFILE")
        if userprofile:
            return Path(userprofile)
    else:
        home_env = os.environ.get("HOME")
        if home_env:
            return Path(home_env)

    return Path.home()


@lru_cache(maxsize=1)
def user_config_dir() -> Path:
    """Get the user-level configuration directory.

    Location: ~/.config/platbundle/ (Linux/macOS) or ~/AppData/Roaming/platbundle/ (Windows)
    """
    if is_windows():
        app_data = os.environ.get("APPDATA")
        if app_data:
            return Path(app_data) / APP_NAME
        return home() / "AppData" / "Roaming" / APP_NAME

    # Unix: XDG_CONFIG_HOME or ~/.config
    xdg_config = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config:
        return Path(xdg_config) / APP_NAME
    return home() / ".config" / APP_NAME


@lru_cache(maxsize=1)
def user_data_dir() -> Path:
    """Get the user-level data directory (holds the default release directory).

    Location: $XDG_DATA_HOME/platbundle or ~/.local/share/platbundle (Linux),
    ~/Library/Application Support/platbundle (macOS),
    ~/AppData/Local/platbundle (Windows).
    """
    if is_windows():
        local = os.environ.get("LOCALAPPDATA")
        if local:
            return Path(local) / APP_NAME
        return home() / "AppData" / "Local" / APP_NAME

    if is_macos():
        return home() / "Library" / "Application Support" / APP_NAME

    xdg_data = os.environ.get("XDG_DATA_HOME")
    if xdg_data:
        return Path(xdg_data) / APP_NAME
    return home() / ".local" / "share" / APP_NAME


def clear_caches() -> None:
    """Clear all cached paths.

    Useful for testing when environment variables change.
    """
    home.cache_clear()
    user_config_dir.cache_clear()
    user_data_dir.cache_clear()
