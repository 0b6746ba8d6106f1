"""RPM package via a generated spec file and ``rpmbuild -bb``.

The installed tree is staged exactly like the Debian one and copied into the
build root by ``%install``, so both formats ship the same files.
"""

from __future__ import annotations

import re
import shutil
from pathlib import Path

from platbundle.core.result import Err
from platbundle.core.settings import RpmConfig
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

__all__ = ["build_rpm", "rpm_requirement", "rpm_version", "spec_file"]

DEFAULT_RELEASE = "1"

_PAYLOADS = {
    "gzip": "w9.gzdio",
    "xz": "w9.xzdio",
    "zstd": "w19.zstdio",
    "bzip2": "w9.bzdio",
}

_SCRIPTLETS = (
    ("%pre", "pre_install_script"),
    ("%post", "post_install_script"),
    ("%preun", "pre_remove_script"),
    ("%postun", "post_remove_script"),
)

# "libc6 (>= 2.31)" -> "libc6 >= 2.31"
_DEB_STYLE_DEP = re.compile(r"^\s*(?P<name>[^\s(]+)\s*\(\s*(?P<op>[<>=]+)\s*(?P<ver>[^)\s]+)\s*\)\s*$")


def rpm_version(version: str) -> str:
    """RPM versions may not contain '-'; pre-release markers use '~'."""
    return version.replace("-", "~")


def rpm_requirement(dep: str) -> str:
    """Translate Debian-style ``name (op ver)`` to RPM's ``name op ver``."""
    m = _DEB_STYLE_DEP.match(dep)
    if m is None:
        return dep.strip()
    op = {">>": ">", "<<": "<"}.get(m.group("op"), m.group("op"))
    return f"{m.group('name')} {op} {m.group('ver')}"


def _files_section(root: Path) -> list[str]:
    entries: list[str] = []
    for p in sorted(root.rglob("*")):
        if p.is_dir() and not p.is_symlink():
            continue
        entries.append(f'"/{p.relative_to(root).as_posix()}"')
    return entries


def _read_script(job: BundleJob, path: str | None) -> str | None:
    if path is None:
        return None
    return job.resolve(path).read_text(encoding="utf-8")


def spec_file(job: BundleJob, arch: str, cfg: RpmConfig, stage: Path) -> str:
    """Render the spec file.

    Raises:
        OSError: A scriptlet file cannot be read.
    """
    meta = job.metadata
    lines: list[str] = [
        "%global debug_package %{nil}",
        "%global __strip /bin/true",
        "%define _build_id_links none",
    ]
    if cfg.compression is not None:
        lines.append(f"%define _binary_payload {_PAYLOADS[cfg.compression]}")
    lines += [
        "",
        f"Name: {meta.binary_name}",
        f"Version: {rpm_version(meta.version)}",
        f"Release: {cfg.release or DEFAULT_RELEASE}",
    ]
    if cfg.epoch is not None:
        lines.append(f"Epoch: {cfg.epoch}")
    lines += [
        f"Summary: {meta.summary}",
        f"License: {meta.license or 'Unspecified'}",
        f"BuildArch: {arch}",
        "AutoReqProv: no",
    ]
    if meta.homepage:
        lines.append(f"URL: {meta.homepage}")
    if meta.authors:
        lines.append(f"Packager: {meta.maintainer}")

    for tag, deps in (
        ("Requires", cfg.depends),
        ("Recommends", cfg.recommends),
        ("Provides", cfg.provides),
        ("Conflicts", cfg.conflicts),
        ("Obsoletes", cfg.obsoletes),
    ):
        for dep in deps or ():
            lines.append(f"{tag}: {rpm_requirement(dep)}")

    description = meta.bundle.long_description or meta.description or meta.summary
    lines += [
        "",
        "%description",
        description.strip(),
        "",
        "%install",
        "mkdir -p %{buildroot}",
        f'cp -a "{stage.as_posix()}/." %{{buildroot}}/',
        "",
        "%files",
        *_files_section(stage),
    ]

    for section, attr in _SCRIPTLETS:
        body = _read_script(job, getattr(cfg, attr))
        if body is not None:
            lines += ["", section, body.rstrip()]

    return "\n".join(lines) + "\n"


def build_rpm(job: BundleJob) -> BundleResult:
    arch = format_arch(job, job.arch.rpm_name)
    if isinstance(arch, Err):
        return arch
    tool = require_tool(job, "rpmbuild")
    if isinstance(tool, Err):
        return tool
    binaries = all_binaries(job)
    if isinstance(binaries, Err):
        return binaries

    cfg = job.metadata.bundle.rpm or RpmConfig()
    for _, attr in _SCRIPTLETS:
        script: str | None = getattr(cfg, attr)
        if script is not None and not job.resolve(script).is_file():
            return fail(job, "missing_asset", f"scriptlet not found: {script}")

    topdir = job.out_dir / "rpmbuild"
    stage = job.out_dir / "stage"
    spec_path = topdir / "SPECS" / f"{job.metadata.binary_name}.spec"

    try:
        for d in (topdir, stage):
            if d.exists():
                shutil.rmtree(d)
        staged = stage_usr_tree(
            job, stage, binaries.value, files=cfg.files, desktop_template=cfg.desktop_template
        )
        if isinstance(staged, Err):
            return staged
        for sub in ("BUILD", "BUILDROOT", "RPMS", "SOURCES", "SPECS", "SRPMS"):
            (topdir / sub).mkdir(parents=True, exist_ok=True)
        spec_path.write_text(spec_file(job, arch.value, cfg, stage), encoding="utf-8")
    except OSError as e:
        return fail(job, "io_error", f"cannot stage rpm build: {e}")

    job.console.info(f"packaging {job.metadata.binary_name}.{arch.value}.rpm")
    built = run_tool(
        job,
        [
            tool.value,
            "-bb",
            "--target",
            arch.value,
            "--define",
            f"_topdir {topdir.as_posix()}",
            str(spec_path),
        ],
        cwd=job.out_dir,
    )
    if isinstance(built, Err):
        return built

    produced = sorted((topdir / "RPMS").rglob("*.rpm"))
    if not produced:
        return fail(job, "tool_failed", f"rpmbuild produced no package under {topdir / 'RPMS'}")
    return finish(job, produced[0])
