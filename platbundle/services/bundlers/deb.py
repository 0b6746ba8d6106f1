"""Debian package (.deb) via ``dpkg-deb --build``."""

from __future__ import annotations

import hashlib
import math
import os
import shutil
from pathlib import Path

from platbundle.core.result import Err
from platbundle.core.settings import DebConfig
from platbundle.platform.files import make_executable
from platbundle.services.bundlers.base import (
    BundleJob,
    BundleResult,
    all_binaries,
    fail,
    finish,
    format_arch,
    require_tool,
    run_tool,
)
from platbundle.services.bundlers.desktop import stage_usr_tree

__all__ = ["build_deb", "control_file", "deb_version", "package_name"]

DEFAULT_SECTION = "utils"
DEFAULT_PRIORITY = "optional"

_SCRIPTS = (
    ("preinst", "pre_install_script"),
    ("postinst", "post_install_script"),
    ("prerm", "pre_remove_script"),
    ("postrm", "post_remove_script"),
)


def package_name(binary_name: str) -> str:
    """Debian package names are lowercase and may not contain underscores."""
    return binary_name.lower().replace("_", "-")


def deb_version(version: str) -> str:
    """Without a Debian revision '-' is not allowed; pre-release markers use '~' so they sort first."""
    return version.replace("-", "~")


def _description(job: BundleJob) -> str:
    meta = job.metadata
    lines = [meta.summary]
    long = meta.bundle.long_description or (
        meta.description if meta.bundle.short_description else None
    )
    if long:
        for line in long.strip().splitlines():
            lines.append(f" {line}" if line.strip() else " .")
    return "\n".join(lines)


def _installed_size_kib(root: Path) -> int:
    total = 0
    for p in root.rglob("*"):
        if p.is_file() and not p.is_symlink():
            total += p.stat().st_size
    return max(1, math.ceil(total / 1024))


def control_file(job: BundleJob, arch: str, installed_kib: int, cfg: DebConfig) -> str:
    """Render DEBIAN/control. Empty relationship fields are omitted."""
    meta = job.metadata
    fields: list[tuple[str, str | None]] = [
        ("Package", package_name(meta.binary_name)),
        ("Version", deb_version(meta.version)),
        ("Architecture", arch),
        ("Installed-Size", str(installed_kib)),
        ("Maintainer", meta.maintainer),
        ("Section", cfg.section or DEFAULT_SECTION),
        ("Priority", cfg.priority or DEFAULT_PRIORITY),
        ("Homepage", meta.homepage),
        ("Depends", ", ".join(cfg.depends or ()) or None),
        ("Recommends", ", ".join(cfg.recommends or ()) or None),
        ("Provides", ", ".join(cfg.provides or ()) or None),
        ("Conflicts", ", ".join(cfg.conflicts or ()) or None),
        ("Replaces", ", ".join(cfg.replaces or ()) or None),
        ("Description", _description(job)),
    ]
    return "".join(f"{key}: {value}\n" for key, value in fields if value)


def _md5sums(root: Path) -> str:
    lines: list[str] = []
    for p in sorted(root.rglob("*")):
        if not p.is_file() or p.is_symlink():
            continue
        rel = p.relative_to(root)
        if rel.parts[0] == "DEBIAN":
            continue
        digest = hashlib.md5(p.read_bytes(), usedforsecurity=False).hexdigest()
        lines.append(f"{digest}  {rel.as_posix()}\n")
    return "".join(lines)


def build_deb(job: BundleJob) -> BundleResult:
    arch = format_arch(job, job.arch.deb_name)
    if isinstance(arch, Err):
        return arch
    tool = require_tool(job, "dpkg-deb")
    if isinstance(tool, Err):
        return tool
    binaries = all_binaries(job)
    if isinstance(binaries, Err):
        return binaries

    cfg = job.metadata.bundle.deb or DebConfig()
    name = package_name(job.metadata.binary_name)
    stem = f"{name}_{job.version}_{arch.value}"
    root = job.out_dir / stem
    output = job.out_dir / f"{stem}.deb"

    try:
        if root.exists():
            shutil.rmtree(root)
        staged = stage_usr_tree(
            job, root, binaries.value, files=cfg.files, desktop_template=cfg.desktop_template
        )
        if isinstance(staged, Err):
            return staged

        debian = root / "DEBIAN"
        debian.mkdir(parents=True, exist_ok=True)
        for script_name, attr in _SCRIPTS:
            script: str | None = getattr(cfg, attr)
            if script is None:
                continue
            src = job.resolve(script)
            if not src.is_file():
                return fail(job, "missing_asset", f"maintainer script not found: {script}")
            shutil.copyfile(src, debian / script_name)
            make_executable(debian / script_name)

        (debian / "control").write_text(
            control_file(job, arch.value, _installed_size_kib(root), cfg), encoding="utf-8"
        )
        (debian / "md5sums").write_text(_md5sums(root), encoding="utf-8")
        # dpkg-deb rejects group/other-writable control directories.
        os.chmod(debian, 0o755)
    except OSError as e:
        return fail(job, "io_error", f"cannot stage {root}: {e}")

    job.console.info(f"packaging {output.name}")
    built = run_tool(
        job,
        [tool.value, "--build", "--root-owner-group", str(root), str(output)],
        cwd=job.out_dir,
    )
    if isinstance(built, Err):
        return built
    return finish(job, output)
