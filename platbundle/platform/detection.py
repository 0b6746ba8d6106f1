"""Platform and architecture detection.

This module provides enums for the host operating system and for CPU
architectures, plus per-format architecture naming. Host detection is done
lazily and cached.

Each package format spells architectures its own way:

    Arch      deb      rpm       appimage  windows  macos
    X86_64    amd64    x86_64    x86_64    x64      x64
    X86       i386     i686      i686      x86      -
    AARCH64   arm64    aarch64   aarch64   arm64    aarch64
    ARMHF     armhf    armv7hl   armhf     -        -
    ARMEL     armel    armv5tel  -         -        -
    RISCV64   riscv64  riscv64   -         -        -
    UNIVERSAL -        -         -         -        universal
"""

from __future__ import annotations

import os as _os
import platform as _platform
import sys as _sys
from dataclasses import dataclass
from enum import Enum, auto
from functools import lru_cache

__all__ = [
    "Arch",
    "Platform",
    "PlatformInfo",
    "detect",
    "detect_arch",
    "detect_platform",
    "host_triple",
    "is_macos",
    "is_windows",
]


class Platform(Enum):
    """Operating system platform."""

    LINUX = auto()
    MACOS = auto()
    WINDOWS = auto()
    UNKNOWN = auto()

    def __str__(self) -> str:
        return self.name.lower()


class Arch(Enum):
    """CPU architecture."""

    X86_64 = auto()
    X86 = auto()
    AARCH64 = auto()
    ARMHF = auto()
    ARMEL = auto()
    RISCV64 = auto()
    UNIVERSAL = auto()
    UNKNOWN = auto()

    def __str__(self) -> str:
        return self.name.lower()

    @classmethod
    def from_triple(cls, triple: str) -> Arch:
        """Architecture of a compiler target triple (``aarch64-unknown-linux-gnu``)."""
        triple = triple.strip().lower()
        head = triple.split("-", 1)[0]
        if head in ("x86_64", "amd64"):
            return cls.X86_64
        if head in ("i386", "i586", "i686"):
            return cls.X86
        if head in ("aarch64", "arm64"):
            return cls.AARCH64
        if head.startswith("riscv64"):
            return cls.RISCV64
        if head == "universal":
            return cls.UNIVERSAL
        if head.startswith(("arm", "thumb")):
            if triple.endswith("hf") or head.startswith(("armv7", "thumbv7")):
                return cls.ARMHF
            return cls.ARMEL
        return cls.UNKNOWN

    @property
    def deb_name(self) -> str | None:
        return _DEB_NAMES.get(self)

    @property
    def rpm_name(self) -> str | None:
        return _RPM_NAMES.get(self)

    @property
    def appimage_name(self) -> str | None:
        return _APPIMAGE_NAMES.get(self)

    @property
    def windows_name(self) -> str | None:
        return _WINDOWS_NAMES.get(self)

    @property
    def macos_name(self) -> str | None:
        return _MACOS_NAMES.get(self)


_DEB_NAMES: dict[Arch, str] = {
    Arch.X86_64: "amd64",
    Arch.X86: "i386",
    Arch.AARCH64: "arm64",
    Arch.ARMHF: "armhf",
    Arch.ARMEL: "armel",
    Arch.RISCV64: "riscv64",
}

_RPM_NAMES: dict[Arch, str] = {
    Arch.X86_64: "x86_64",
    Arch.X86: "i686",
    Arch.AARCH64: "aarch64",
    Arch.ARMHF: "armv7hl",
    Arch.ARMEL: "armv5tel",
    Arch.RISCV64: "riscv64",
}

_APPIMAGE_NAMES: dict[Arch, str] = {
    Arch.X86_64: "x86_64",
    Arch.X86: "i686",
    Arch.AARCH64: "aarch64",
    Arch.ARMHF: "armhf",
}

_WINDOWS_NAMES: dict[Arch, str] = {
    Arch.X86_64: "x64",
    Arch.X86: "x86",
    Arch.AARCH64: "arm64",
}

_MACOS_NAMES: dict[Arch, str] = {
    Arch.X86_64: "x64",
    Arch.AARCH64: "aarch64",
    Arch.UNIVERSAL: "universal",
}


@dataclass(frozen=True, slots=True)
class PlatformInfo:
    """Host platform information.

    Use the `detect()` function to get an instance.
    """

    platform: Platform
    arch: Arch

    @property
    def is_windows(self) -> bool:
        return self.platform == Platform.WINDOWS

    def __str__(self) -> str:
        return f"{self.platform}-{self.arch}"


@lru_cache(maxsize=1)
def detect_platform() -> Platform:
    """Detect the current operating system (cached)."""
    # NOTE: avoid platform.system() on Windows.
    # Python's platform.system() may query WMI (slow/hangs on some machines).
    system = _sys.platform.lower()
    if system.startswith("linux"):
        return Platform.LINUX
    if system.startswith("darwin"):
        return Platform.MACOS
    if system.startswith(("win32", "cygwin", "msys")):
        return Platform.WINDOWS
    return Platform.UNKNOWN


@lru_cache(maxsize=1)
def detect_arch() -> Arch:
    """Detect the current CPU architecture (cached)."""
    # NOTE: avoid platform.machine() on Windows, it may query WMI.
    if detect_platform() == Platform.WINDOWS:
        env_arch = (
            _os.environ.get("PROCESSOR_ARCHITEW6432")
            or _os.environ.get("PROCESSOR_ARCHITECTURE")
            or ""
        )
        machine = env_arch.lower()
    else:
        machine = _platform.machine().lower()
    if machine in ("x86", "i386", "i686"):
        return Arch.X86
    if machine.startswith("armv7"):
        return Arch.ARMHF
    return Arch.from_triple(machine)


@lru_cache(maxsize=1)
def detect() -> PlatformInfo:
    """Detect complete platform information (cached)."""
    return PlatformInfo(platform=detect_platform(), arch=detect_arch())


_TRIPLE_ARCH: dict[Arch, str] = {
    Arch.X86_64: "x86_64",
    Arch.X86: "i686",
    Arch.AARCH64: "aarch64",
    Arch.ARMHF: "armv7",
    Arch.ARMEL: "arm",
    Arch.RISCV64: "riscv64gc",
}


def host_triple(info: PlatformInfo | None = None) -> str:
    """Best-effort compiler target triple for the host."""
    info = info or detect()
    arch = _TRIPLE_ARCH.get(info.arch, "unknown")
    match info.platform:
        case Platform.MACOS:
            return f"{arch}-apple-darwin"
        case Platform.WINDOWS:
            return f"{arch}-pc-windows-msvc"
        case _:
            if info.arch == Arch.ARMHF:
                return f"{arch}-unknown-linux-gnueabihf"
            if info.arch == Arch.ARMEL:
                return f"{arch}-unknown-linux-gnueabi"
            return f"{arch}-unknown-linux-gnu"


def is_windows() -> bool:
    """Check if running on Windows."""
    return detect_platform() == Platform.WINDOWS


def is_macos() -> bool:
    """Check if running on macOS."""
    return detect_platform() == Platform.MACOS
