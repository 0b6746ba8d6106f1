"""Pieces shared by the Linux formats: desktop entries, hicolor icons and the
common usr/ layout."""

from __future__ import annotations

import shutil
import struct
from collections.abc import Mapping
from pathlib import Path
from string import Template

from platbundle.core.result import Err, Ok, Result
from platbundle.platform.files import make_executable
from platbundle.services.bundle_errors import BundlerFailure
from platbundle.services.bundlers.base import (
    Binary,
    BundleJob,
    copy_files,
    copy_resources,
    fail,
)

__all__ = [
    "desktop_entry",
    "install_hicolor_icons",
    "png_icons",
    "png_size",
    "stage_usr_tree",
]

_PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"


def png_size(path: Path) -> tuple[int, int] | None:
    """Width and height from a PNG's IHDR chunk, or None if not a PNG."""
    try:
        with path.open("rb") as f:
            head = f.read(24)
    except OSError:
        return None
    if len(head) < 24 or not head.startswith(_PNG_SIGNATURE) or head[12:16] != b"IHDR":
        return None
    width, height = struct.unpack(">II", head[16:24])
    return (width, height)


def png_icons(job: BundleJob) -> list[Path]:
    return [job.resolve(p) for p in job.metadata.bundle.icon or () if p.lower().endswith(".png")]


def install_hicolor_icons(
    job: BundleJob, share_dir: Path, icon_name: str
) -> Result[int, BundlerFailure]:
    """Copy PNG icons to ``share/icons/hicolor/<W>x<H>[@2]/apps/<icon_name>.png``.

    Raises:
        OSError: Copying failed.
    """
    installed: set[str] = set()
    for icon in png_icons(job):
        if not icon.is_file():
            return fail(job, "missing_icon", f"icon not found: {icon}")
        size = png_size(icon)
        if size is None:
            return fail(job, "missing_icon", f"not a PNG image: {icon}")
        scale = "@2" if "@2x" in icon.name else ""
        size_dir = f"{size[0]}x{size[1]}{scale}"
        if size_dir in installed:
            continue
        target = share_dir / "icons" / "hicolor" / size_dir / "apps" / f"{icon_name}.png"
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(icon, target)
        installed.add(size_dir)
    return Ok(len(installed))


def _categories(job: BundleJob) -> str:
    category = job.metadata.bundle.category
    value = category.linux if category is not None else None
    if not value:
        return ""
    return value if value.endswith(";") else f"{value};"


def desktop_entry(
    job: BundleJob,
    *,
    exec_name: str,
    icon_name: str,
    template: str | None,
) -> Result[str, BundlerFailure]:
    """Render the ``.desktop`` file.

    A custom template may use ``$name``, ``$exec``, ``$icon``, ``$comment``,
    ``$categories`` and ``$version``.
    """
    meta = job.metadata
    values = {
        "name": meta.product_name,
        "exec": exec_name,
        "icon": icon_name,
        "comment": meta.summary,
        "categories": _categories(job),
        "version": meta.version,
    }

    if template is not None:
        path = job.resolve(template)
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            return fail(job, "missing_asset", f"cannot read desktop template {path}: {e}")
        try:
            return Ok(Template(text).substitute(values))
        except (KeyError, ValueError) as e:
            return fail(job, "missing_asset", f"invalid desktop template {path}: {e}")

    lines = [
        "[Desktop Entry]",
        "Type=Application",
        f"Name={values['name']}",
        f"Exec={values['exec']}",
        f"Icon={values['icon']}",
        f"Comment={values['comment']}",
        "Terminal=false",
    ]
    if values["categories"]:
        lines.append(f"Categories={values['categories']}")
    return Ok("\n".join(lines) + "\n")


def stage_usr_tree(
    job: BundleJob,
    root: Path,
    binaries: list[Binary],
    *,
    files: Mapping[str, str] | None,
    desktop_template: str | None,
) -> Result[None, BundlerFailure]:
    """Lay out the installed filesystem shared by deb and rpm under ``root``.

    usr/bin/<binaries>, usr/lib/<binary>/<resources>,
    usr/share/applications/<binary>.desktop, hicolor icons, then ``files``.

    Raises:
        OSError: Staging failed.
    """
    main = binaries[0].name
    bin_dir = root / "usr" / "bin"
    bin_dir.mkdir(parents=True, exist_ok=True)
    for binary in binaries:
        target = bin_dir / binary.name
        shutil.copy2(binary.path, target)
        make_executable(target)

    resources = copy_resources(job, root / "usr" / "lib" / main)
    if isinstance(resources, Err):
        return resources

    share = root / "usr" / "share"
    entry = desktop_entry(job, exec_name=main, icon_name=main, template=desktop_template)
    if isinstance(entry, Err):
        return entry
    desktop_file = share / "applications" / f"{main}.desktop"
    desktop_file.parent.mkdir(parents=True, exist_ok=True)
    desktop_file.write_text(entry.value, encoding="utf-8")

    icons = install_hicolor_icons(job, share, main)
    if isinstance(icons, Err):
        return icons

    return copy_files(job, files, root)
