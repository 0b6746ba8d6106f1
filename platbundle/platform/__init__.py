"""Platform abstraction layer."""

from .detection import (
    Arch,
    Platform,
    PlatformInfo,
    detect,
    host_triple,
    is_macos,
    is_windows,
)
from .paths import (
    home,
    user_config_dir,
    user_data_dir,
)
from .process import (
    CommandRunner,
    ProcessError,
    ProcessRunner,
    run,
)

__all__ = [
    # detection
    "Arch",
    "Platform",
    "PlatformInfo",
    "detect",
    "host_triple",
    "is_macos",
    "is_windows",
    # paths
    "home",
    "user_config_dir",
    "user_data_dir",
    # process
    "CommandRunner",
    "ProcessError",
    "ProcessRunner",
    "run",
]
