"""Manifest reader.

Reads ``Cargo.toml`` from the acquired tree into ``ProjectMetadata``:

- binary name: first ``[[bin]]`` with a name, else ``package.name``
- version: ``package.version`` (must look like a semantic version)
- bundle settings: ``[package.metadata.bundle]``, parsed permissively

Unset icon and entitlement settings are filled from conventional asset
locations in the tree (``assets/img/icon.icns``, ``assets/img/icon.ico``,
``assets/img/icon_<W>x<H>[@2x].png``, ``assets/entitlements.plist``).
"""

from __future__ import annotations

import dataclasses
import re
from dataclasses import dataclass
from pathlib import Path

from platbundle.core.result import Err, Ok, Result
from platbundle.core.settings import BundleConfig, MacOsConfig
from platbundle.core.structured import (
    FieldTypeError,
    StrDict,
    as_str_dict,
    field_str,
    field_str_list,
    field_table,
    get_list,
)
from platbundle.services.bundle_errors import InvalidManifest

__all__ = [
    "MANIFEST_NAME",
    "ProjectMetadata",
    "discover_assets",
    "load_manifest_table",
    "read_metadata",
]

MANIFEST_NAME = "Cargo.toml"

_SEMVER_RE = re.compile(r"^\d+\.\d+\.\d+(?:-[0-9A-Za-z.-]+)?(?:\+[0-9A-Za-z.-]+)?$")
_PNG_ICON_RE = re.compile(r"^icon_(\d+)x(\d+)(@2x)?\.png$")


@dataclass(frozen=True, slots=True)
class ProjectMetadata:
    """What the bundlers need to know about the project."""

    binary_name: str
    version: str
    repository_url: str | None
    name: str
    description: str | None
    authors: tuple[str, ...]
    license: str | None
    homepage: str | None
    bundle: BundleConfig
    manifest_dir: Path

    @property
    def product_name(self) -> str:
        """Human-facing name used for bundles and installers."""
        return self.name

    @property
    def maintainer(self) -> str:
        if self.authors:
            return self.authors[0]
        return self.bundle.publisher or "Unknown"

    @property
    def summary(self) -> str:
        """One line; control files and spec headers reject multi-line summaries."""
        text = self.bundle.short_description or self.description or ""
        first = text.strip().splitlines()[0].strip() if text.strip() else ""
        return first or f"{self.name} {self.version}"


def load_manifest_table(path: Path) -> Result[StrDict, InvalidManifest]:
    """Parse a manifest file into a table."""
    import tomllib

    try:
        data: object = tomllib.loads(path.read_bytes().decode("utf-8"))
    except FileNotFoundError:
        return Err(InvalidManifest(path, "(file)", "not found"))
    except tomllib.TOMLDecodeError as e:
        return Err(InvalidManifest(path, "(file)", f"invalid TOML: {e}"))
    except (UnicodeDecodeError, OSError) as e:
        return Err(InvalidManifest(path, "(file)", f"cannot read: {e}"))

    table = as_str_dict(data)
    if table is None:
        return Err(InvalidManifest(path, "(file)", "root must be a table"))
    return Ok(table)


def repository_field(table: StrDict, path: Path) -> Result[str | None, InvalidManifest]:
    """The ``package.repository`` value, if any."""
    try:
        package = field_table(table, "package") or {}
        return Ok(field_str(package, "repository", prefix="package"))
    except FieldTypeError as e:
        return Err(InvalidManifest(path, e.key, f"must be {e.expected}"))


def _binary_name(table: StrDict, package: StrDict) -> str | None:
    for entry in get_list(table, "bin") or []:
        bin_table = as_str_dict(entry)
        if bin_table is None:
            continue
        name = bin_table.get("name")
        if isinstance(name, str) and name.strip():
            return name.strip()
    name = package.get("name")
    if isinstance(name, str) and name.strip():
        return name.strip()
    return None


def read_metadata(
    source_dir: Path,
    *,
    binary_name: str | None = None,
    version: str | None = None,
) -> Result[ProjectMetadata, InvalidManifest]:
    """Read project metadata from ``source_dir/Cargo.toml``.

    ``binary_name`` and ``version`` override the manifest values.
    """
    path = source_dir / MANIFEST_NAME
    loaded = load_manifest_table(path)
    if isinstance(loaded, Err):
        return loaded
    table = loaded.value

    try:
        package = field_table(table, "package")
        if package is None:
            return Err(InvalidManifest(path, "package", "missing [package] table"))

        name = binary_name or _binary_name(table, package)
        if not name:
            return Err(InvalidManifest(path, "package.name", "missing binary name"))

        raw_version = version
        if raw_version is None:
            value = package.get("version")
            if isinstance(value, dict):
                return Err(
                    InvalidManifest(path, "package.version", "workspace-inherited version is not supported")
                )
            raw_version = field_str(package, "version", prefix="package")
        if not raw_version:
            return Err(InvalidManifest(path, "package.version", "missing version"))
        if not _SEMVER_RE.match(raw_version):
            return Err(
                InvalidManifest(path, "package.version", f"'{raw_version}' is not a semantic version")
            )

        metadata = field_table(package, "metadata", prefix="package") or {}
        bundle_table = field_table(metadata, "bundle", prefix="package.metadata") or {}
        bundle = BundleConfig.from_table(bundle_table)

        package_name = field_str(package, "name", prefix="package") or name
        meta = ProjectMetadata(
            binary_name=name,
            version=raw_version,
            repository_url=field_str(package, "repository", prefix="package"),
            name=package_name,
            description=field_str(package, "description", prefix="package"),
            authors=field_str_list(package, "authors", prefix="package") or (),
            license=field_str(package, "license", prefix="package"),
            homepage=field_str(package, "homepage", prefix="package"),
            bundle=discover_assets(bundle, source_dir),
            manifest_dir=source_dir,
        )
    except FieldTypeError as e:
        return Err(InvalidManifest(path, e.key, f"must be {e.expected}"))

    return Ok(meta)


def _png_icons(img_dir: Path) -> list[str]:
    found: list[tuple[int, int, str]] = []
    for p in img_dir.glob("icon_*.png"):
        m = _PNG_ICON_RE.match(p.name)
        if m is None:
            continue
        size = int(m.group(1))
        scale = 2 if m.group(3) else 1
        found.append((size * scale, scale, str(p)))
    return [path for _, _, path in sorted(found)]


def discover_assets(bundle: BundleConfig, source_dir: Path) -> BundleConfig:
    """Fill unset icon and entitlement settings from conventional locations."""
    img_dir = source_dir / "assets" / "img"
    changes: dict[str, object] = {}

    if bundle.icon is None and img_dir.is_dir():
        icons = _png_icons(img_dir)
        if icons:
            changes["icon"] = tuple(icons)

    if bundle.icns is None and (img_dir / "icon.icns").is_file():
        changes["icns"] = str(img_dir / "icon.icns")

    if bundle.ico is None and (img_dir / "icon.ico").is_file():
        changes["ico"] = str(img_dir / "icon.ico")

    entitlements = source_dir / "assets" / "entitlements.plist"
    macos = bundle.macos or MacOsConfig()
    if macos.entitlements is None and entitlements.is_file():
        changes["macos"] = dataclasses.replace(macos, entitlements=str(entitlements))

    if not changes:
        return bundle
    return dataclasses.replace(bundle, **changes)  # type: ignore[arg-type]
