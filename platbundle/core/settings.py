"""Typed model of the ``[package.metadata.bundle]`` manifest section.

The section is flat: each packaging format has its own table directly under
the bundle table (``deb``, ``rpm``, ``appimage``, ``macos`` with a nested
``dmg``, ``windows`` with nested ``nsis`` and ``wix``). There is no
OS-grouping level such as ``linux.deb``.

Every record keeps ``None`` for keys the manifest leaves out. Defaults are
applied by the bundler that consumes a value, so an absent table and an empty
table behave the same.

Parsing is permissive about unknown keys and strict about known ones: a known
key with the wrong type raises ``FieldTypeError``.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Literal, TypeVar, cast

from .structured import (
    FieldTypeError,
    field_int,
    field_int_pair,
    field_str,
    field_str_list,
    field_str_map,
    field_table,
)

S = TypeVar("S")

__all__ = [
    "AppImageConfig",
    "BundleConfig",
    "CategoryConfig",
    "DebConfig",
    "DmgConfig",
    "MacOsConfig",
    "NsisCompression",
    "NsisConfig",
    "NsisInstallMode",
    "RpmCompression",
    "RpmConfig",
    "WindowsConfig",
    "WixConfig",
]

NsisInstallMode = Literal["currentUser", "perMachine", "both"]
NsisCompression = Literal["none", "zlib", "bzip2", "lzma"]
RpmCompression = Literal["gzip", "xz", "zstd", "bzip2"]

_NSIS_MODES: tuple[str, ...] = ("currentUser", "perMachine", "both")
_NSIS_COMPRESSIONS: tuple[str, ...] = ("none", "zlib", "bzip2", "lzma")
_RPM_COMPRESSIONS: tuple[str, ...] = ("gzip", "xz", "zstd", "bzip2")

BUNDLE_PREFIX = "package.metadata.bundle"


def _choice(
    table: Mapping[str, object], key: str, choices: tuple[str, ...], *, prefix: str
) -> str | None:
    value = field_str(table, key, prefix=prefix)
    if value is None:
        return None
    if value not in choices:
        raise FieldTypeError(f"{prefix}.{key}", f"one of: {', '.join(choices)}")
    return value


@dataclass(frozen=True, slots=True)
class CategoryConfig:
    """Per-OS application category.

    A plain string in the manifest is a freedesktop.org category and fills
    ``linux`` and ``windows``; the macOS bundler maps it when ``macos`` is unset.
    """

    linux: str | None = None
    macos: str | None = None
    windows: str | None = None

    @classmethod
    def parse(cls, table: Mapping[str, object], *, prefix: str) -> CategoryConfig | None:
        raw = table.get("category")
        if raw is None:
            return None
        if isinstance(raw, str):
            value = raw.strip() or None
            return cls(linux=value, windows=value)
        nested = field_table(table, "category", prefix=prefix)
        if nested is None:
            return None
        p = f"{prefix}.category"
        return cls(
            linux=field_str(nested, "linux", prefix=p),
            macos=field_str(nested, "macos", prefix=p),
            windows=field_str(nested, "windows", prefix=p),
        )


@dataclass(frozen=True, slots=True)
class DebConfig:
    depends: tuple[str, ...] | None = None
    recommends: tuple[str, ...] | None = None
    provides: tuple[str, ...] | None = None
    conflicts: tuple[str, ...] | None = None
    replaces: tuple[str, ...] | None = None
    files: dict[str, str] | None = None
    desktop_template: str | None = None
    section: str | None = None
    priority: str | None = None
    pre_install_script: str | None = None
    post_install_script: str | None = None
    pre_remove_script: str | None = None
    post_remove_script: str | None = None

    @classmethod
    def from_table(cls, table: Mapping[str, object], *, prefix: str) -> DebConfig:
        return cls(
            depends=field_str_list(table, "depends", prefix=prefix),
            recommends=field_str_list(table, "recommends", prefix=prefix),
            provides=field_str_list(table, "provides", prefix=prefix),
            conflicts=field_str_list(table, "conflicts", prefix=prefix),
            replaces=field_str_list(table, "replaces", prefix=prefix),
            files=field_str_map(table, "files", prefix=prefix),
            desktop_template=field_str(table, "desktop_template", prefix=prefix),
            section=field_str(table, "section", prefix=prefix),
            priority=field_str(table, "priority", prefix=prefix),
            pre_install_script=field_str(table, "pre_install_script", prefix=prefix),
            post_install_script=field_str(table, "post_install_script", prefix=prefix),
            pre_remove_script=field_str(table, "pre_remove_script", prefix=prefix),
            post_remove_script=field_str(table, "post_remove_script", prefix=prefix),
        )


@dataclass(frozen=True, slots=True)
class RpmConfig:
    depends: tuple[str, ...] | None = None
    recommends: tuple[str, ...] | None = None
    provides: tuple[str, ...] | None = None
    conflicts: tuple[str, ...] | None = None
    obsoletes: tuple[str, ...] | None = None
    release: str | None = None
    epoch: int | None = None
    files: dict[str, str] | None = None
    desktop_template: str | None = None
    pre_install_script: str | None = None
    post_install_script: str | None = None
    pre_remove_script: str | None = None
    post_remove_script: str | None = None
    compression: RpmCompression | None = None

    @classmethod
    def from_table(cls, table: Mapping[str, object], *, prefix: str) -> RpmConfig:
        epoch = field_int(table, "epoch", prefix=prefix)
        if epoch is not None and epoch < 0:
            raise FieldTypeError(f"{prefix}.epoch", "a non-negative integer")
        compression = _choice(table, "compression", _RPM_COMPRESSIONS, prefix=prefix)
        return cls(
            depends=field_str_list(table, "depends", prefix=prefix),
            recommends=field_str_list(table, "recommends", prefix=prefix),
            provides=field_str_list(table, "provides", prefix=prefix),
            conflicts=field_str_list(table, "conflicts", prefix=prefix),
            obsoletes=field_str_list(table, "obsoletes", prefix=prefix),
            release=field_str(table, "release", prefix=prefix),
            epoch=epoch,
            files=field_str_map(table, "files", prefix=prefix),
            desktop_template=field_str(table, "desktop_template", prefix=prefix),
            pre_install_script=field_str(table, "pre_install_script", prefix=prefix),
            post_install_script=field_str(table, "post_install_script", prefix=prefix),
            pre_remove_script=field_str(table, "pre_remove_script", prefix=prefix),
            post_remove_script=field_str(table, "post_remove_script", prefix=prefix),
            compression=cast(RpmCompression | None, compression),
        )


@dataclass(frozen=True, slots=True)
class AppImageConfig:
    files: dict[str, str] | None = None
    desktop_template: str | None = None

    @classmethod
    def from_table(cls, table: Mapping[str, object], *, prefix: str) -> AppImageConfig:
        return cls(
            files=field_str_map(table, "files", prefix=prefix),
            desktop_template=field_str(table, "desktop_template", prefix=prefix),
        )


@dataclass(frozen=True, slots=True)
class DmgConfig:
    """Disk image appearance. Positions and sizes are in Finder points."""

    background: str | None = None
    window_size: tuple[int, int] | None = None
    window_position: tuple[int, int] | None = None
    app_position: tuple[int, int] | None = None
    application_folder_position: tuple[int, int] | None = None

    @property
    def needs_customization(self) -> bool:
        return any(
            v is not None
            for v in (
                self.background,
                self.window_size,
                self.window_position,
                self.app_position,
                self.application_folder_position,
            )
        )

    @classmethod
    def from_table(cls, table: Mapping[str, object], *, prefix: str) -> DmgConfig:
        return cls(
            background=field_str(table, "background", prefix=prefix),
            window_size=field_int_pair(table, "window_size", prefix=prefix),
            window_position=field_int_pair(table, "window_position", prefix=prefix),
            app_position=field_int_pair(table, "app_position", prefix=prefix),
            application_folder_position=field_int_pair(
                table, "application_folder_position", prefix=prefix
            ),
        )


@dataclass(frozen=True, slots=True)
class MacOsConfig:
    minimum_system_version: str | None = None
    signing_identity: str | None = None
    entitlements: str | None = None
    files: dict[str, str] | None = None
    dmg: DmgConfig | None = None

    @classmethod
    def from_table(cls, table: Mapping[str, object], *, prefix: str) -> MacOsConfig:
        dmg_table = field_table(table, "dmg", prefix=prefix)
        return cls(
            minimum_system_version=field_str(table, "minimum_system_version", prefix=prefix),
            signing_identity=field_str(table, "signing_identity", prefix=prefix),
            entitlements=field_str(table, "entitlements", prefix=prefix),
            files=field_str_map(table, "files", prefix=prefix),
            dmg=(
                DmgConfig.from_table(dmg_table, prefix=f"{prefix}.dmg")
                if dmg_table is not None
                else None
            ),
        )


@dataclass(frozen=True, slots=True)
class NsisConfig:
    install_mode: NsisInstallMode | None = None
    compression: NsisCompression | None = None
    languages: tuple[str, ...] | None = None
    installer_icon: str | None = None
    header_image: str | None = None
    sidebar_image: str | None = None

    @classmethod
    def from_table(cls, table: Mapping[str, object], *, prefix: str) -> NsisConfig:
        # "installer_mode" is the spelling used by older manifests.
        mode_key = "install_mode" if "install_mode" in table else "installer_mode"
        mode = _choice(table, mode_key, _NSIS_MODES, prefix=prefix)
        compression = _choice(table, "compression", _NSIS_COMPRESSIONS, prefix=prefix)
        return cls(
            install_mode=cast(NsisInstallMode | None, mode),
            compression=cast(NsisCompression | None, compression),
            languages=field_str_list(table, "languages", prefix=prefix),
            installer_icon=field_str(table, "installer_icon", prefix=prefix),
            header_image=field_str(table, "header_image", prefix=prefix),
            sidebar_image=field_str(table, "sidebar_image", prefix=prefix),
        )


@dataclass(frozen=True, slots=True)
class WixConfig:
    language: tuple[str, ...] | None = None
    license: str | None = None
    upgrade_code: str | None = None

    @classmethod
    def from_table(cls, table: Mapping[str, object], *, prefix: str) -> WixConfig:
        raw_language = table.get("language")
        if isinstance(raw_language, str):
            language: tuple[str, ...] | None = (raw_language.strip(),)
        else:
            language = field_str_list(table, "language", prefix=prefix)
        return cls(
            language=language,
            license=field_str(table, "license", prefix=prefix),
            upgrade_code=field_str(table, "upgrade_code", prefix=prefix),
        )


@dataclass(frozen=True, slots=True)
class WindowsConfig:
    nsis: NsisConfig | None = None
    wix: WixConfig | None = None

    @classmethod
    def from_table(cls, table: Mapping[str, object], *, prefix: str) -> WindowsConfig:
        nsis = field_table(table, "nsis", prefix=prefix)
        wix = field_table(table, "wix", prefix=prefix)
        return cls(
            nsis=NsisConfig.from_table(nsis, prefix=f"{prefix}.nsis") if nsis is not None else None,
            wix=WixConfig.from_table(wix, prefix=f"{prefix}.wix") if wix is not None else None,
        )


@dataclass(frozen=True, slots=True)
class BundleConfig:
    """Everything under ``[package.metadata.bundle]``.

    Paths are kept as written in the manifest (relative to the manifest
    directory) or as discovered (absolute); bundlers resolve them against the
    source root.
    """

    identifier: str | None = None
    publisher: str | None = None
    icon: tuple[str, ...] | None = None
    icns: str | None = None
    ico: str | None = None
    resources: tuple[str, ...] | None = None
    copyright: str | None = None
    category: CategoryConfig | None = None
    short_description: str | None = None
    long_description: str | None = None
    external_bin: tuple[str, ...] | None = None
    deb: DebConfig | None = None
    rpm: RpmConfig | None = None
    appimage: AppImageConfig | None = None
    macos: MacOsConfig | None = None
    windows: WindowsConfig | None = None

    @classmethod
    def from_table(cls, table: Mapping[str, object], *, prefix: str = BUNDLE_PREFIX) -> BundleConfig:
        """Parse the bundle table.

        Raises:
            FieldTypeError: A known key has the wrong type.
        """

        def section(key: str, parse: type[S]) -> S | None:
            nested = field_table(table, key, prefix=prefix)
            if nested is None:
                return None
            return parse.from_table(nested, prefix=f"{prefix}.{key}")  # type: ignore[attr-defined]

        # A bare string is accepted for a single icon.
        raw_icon = table.get("icon")
        icon = (raw_icon.strip(),) if isinstance(raw_icon, str) else field_str_list(
            table, "icon", prefix=prefix
        )

        return cls(
            identifier=field_str(table, "identifier", prefix=prefix),
            publisher=field_str(table, "publisher", prefix=prefix),
            icon=icon,
            icns=field_str(table, "icns", prefix=prefix),
            ico=field_str(table, "ico", prefix=prefix),
            resources=field_str_list(table, "resources", prefix=prefix),
            copyright=field_str(table, "copyright", prefix=prefix),
            category=CategoryConfig.parse(table, prefix=prefix),
            short_description=field_str(table, "short_description", prefix=prefix),
            long_description=field_str(table, "long_description", prefix=prefix),
            external_bin=field_str_list(table, "external_bin", prefix=prefix),
            deb=section("deb", DebConfig),
            rpm=section("rpm", RpmConfig),
            appimage=section("appimage", AppImageConfig),
            macos=section("macos", MacOsConfig),
            windows=section("windows", WindowsConfig),
        )

