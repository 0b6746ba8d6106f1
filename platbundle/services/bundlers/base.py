"""Shared pieces for every package format.

A bundler is a function ``build(job) -> Result[Artifact, BundlerFailure]``.
It stages everything under ``job.out_dir`` (inside the workspace scratch
area), runs the native packaging tool, and reports the finished file.
"""

from __future__ import annotations

import glob
import re
import shutil
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import TypeAlias

from platbundle.core.config import ToolsSettings
from platbundle.core.contracts import Artifact, PackageType
from platbundle.core.result import Err, Ok, Result
from platbundle.output.console import ConsoleProtocol
from platbundle.platform.detection import Arch
from platbundle.platform.files import sha256_file
from platbundle.platform.process import CommandRunner
from platbundle.services.bundle_errors import BundlerFailure, BundlerFailureKind
from platbundle.services.manifest import ProjectMetadata

__all__ = [
    "BundleJob",
    "BundleResult",
    "Binary",
    "all_binaries",
    "copy_files",
    "copy_resources",
    "fail",
    "finish",
    "format_arch",
    "numeric_version",
    "require_tool",
    "run_tool",
]

BundleResult: TypeAlias = Result[Artifact, BundlerFailure]

# Install hints shown when a packaging tool is not on PATH.
_TOOL_HINTS: dict[str, str] = {
    "dpkg-deb": "install dpkg (Debian/Ubuntu: apt install dpkg)",
    "rpmbuild": "install rpm-build (Fedora: dnf install rpm-build)",
    "appimagetool": "download appimagetool from https://github.com/AppImage/appimagetool",
    "hdiutil": "hdiutil ships with macOS",
    "codesign": "install the Xcode command line tools",
    "osascript": "osascript ships with macOS",
    "candle": "install the WiX Toolset v3 and add its bin directory to PATH",
    "light": "install the WiX Toolset v3 and add its bin directory to PATH",
    "makensis": "install NSIS (e.g. apt install nsis, brew install makensis)",
}


@dataclass(frozen=True, slots=True)
class Binary:
    """An executable to ship: its installed file name and where it was built."""

    name: str
    path: Path


@dataclass(frozen=True, slots=True)
class BundleJob:
    """Everything a bundler may read. Bundlers write only below ``out_dir``."""

    platform: PackageType
    binary_path: Path
    metadata: ProjectMetadata
    arch: Arch
    triple: str
    source_dir: Path
    scratch_dir: Path
    runner: CommandRunner
    tools: ToolsSettings
    timeout: float
    console: ConsoleProtocol

    @property
    def out_dir(self) -> Path:
        return self.scratch_dir / str(self.platform)

    @property
    def product_name(self) -> str:
        return self.metadata.product_name

    @property
    def version(self) -> str:
        return self.metadata.version

    @property
    def is_windows_target(self) -> bool:
        return "windows" in self.triple

    def resolve(self, path: str) -> Path:
        """Resolve a manifest path against the project root."""
        return self.source_dir / Path(path).expanduser()


def fail(
    job: BundleJob, kind: BundlerFailureKind, message: str, stderr: str = ""
) -> Err[BundlerFailure]:
    return Err(BundlerFailure(platform=job.platform, kind=kind, message=message, stderr=stderr))


def format_arch(job: BundleJob, name: str | None) -> Result[str, BundlerFailure]:
    """The format-specific spelling of ``job.arch`` (e.g. ``job.arch.deb_name``), or fail."""
    if name is None:
        return fail(job, "unsupported_arch", f"{job.arch} ({job.triple}) is not supported by {job.platform}")
    return Ok(name)


def require_tool(job: BundleJob, name: str) -> Result[str, BundlerFailure]:
    """Locate a packaging tool, honoring ``[tools]`` overrides."""
    exe = job.tools.executable(name)
    found = job.runner.which(exe)
    if found is None:
        hint = _TOOL_HINTS.get(name, "")
        return fail(job, "tool_missing", f"{exe} not found on PATH" + (f"; {hint}" if hint else ""))
    return Ok(found)


def run_tool(
    job: BundleJob,
    cmd: list[str],
    *,
    cwd: Path,
    env: dict[str, str] | None = None,
) -> Result[str, BundlerFailure]:
    job.console.debug(" ".join(cmd))
    result = job.runner.run(cmd, cwd=cwd, env=env, timeout=job.timeout)
    if isinstance(result, Err):
        e = result.error
        tool = Path(cmd[0]).name
        if e.timed_out:
            return fail(job, "tool_failed", f"{tool} timed out", e.stderr)
        return fail(job, "tool_failed", f"{tool} failed (exit {e.returncode})", e.stderr or e.stdout)
    return Ok(result.value)


def finish(job: BundleJob, path: Path) -> BundleResult:
    """Describe the finished package, checking the tool really produced it."""
    if not path.is_file():
        return fail(job, "tool_failed", f"expected output {path} was not produced")
    try:
        size = path.stat().st_size
        digest = sha256_file(path)
    except OSError as e:
        return fail(job, "io_error", f"cannot read {path}: {e}")
    job.console.success(f"{job.platform}: {path.name} ({size} bytes)")
    return Ok(Artifact(source_path=path, platform=job.platform, size_bytes=size, sha256=digest))


def all_binaries(job: BundleJob) -> Result[list[Binary], BundlerFailure]:
    """Main binary followed by ``external_bin`` entries.

    An external binary ``bin/helper`` is looked up as
    ``<project>/bin/helper-<triple>[.exe]`` and installed as ``helper[.exe]``.
    """
    suffix = ".exe" if job.is_windows_target else ""
    if not job.binary_path.is_file():
        return fail(job, "missing_binary", f"binary not found: {job.binary_path}")

    binaries = [Binary(name=job.binary_path.name, path=job.binary_path)]
    for entry in job.metadata.bundle.external_bin or ():
        built = job.resolve(f"{entry}-{job.triple}{suffix}")
        if not built.is_file():
            return fail(job, "missing_binary", f"external binary not found: {built}")
        binaries.append(Binary(name=f"{Path(entry).name}{suffix}", path=built))
    return Ok(binaries)


def copy_files(
    job: BundleJob, mapping: Mapping[str, str] | None, dest_root: Path
) -> Result[None, BundlerFailure]:
    """Copy ``{destination: source}`` entries below ``dest_root``.

    Raises:
        OSError: Copying failed for a source that exists.
    """
    for dest, src in sorted((mapping or {}).items()):
        source = job.resolve(src)
        target = dest_root / dest.lstrip("/\\")
        if source.is_dir():
            shutil.copytree(source, target, dirs_exist_ok=True)
        elif source.is_file():
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(source, target)
        else:
            return fail(job, "missing_asset", f"file not found: {src} (for {dest})")
    return Ok(None)


def copy_resources(job: BundleJob, dest_dir: Path) -> Result[int, BundlerFailure]:
    """Copy ``bundle.resources`` (paths or glob patterns) into ``dest_dir``.

    Raises:
        OSError: Copying failed for a source that exists.
    """
    count = 0
    for pattern in job.metadata.bundle.resources or ():
        if glob.has_magic(pattern):
            matches = sorted(job.source_dir.glob(pattern))
            if not matches:
                return fail(job, "missing_asset", f"resource pattern matched nothing: {pattern}")
        else:
            single = job.resolve(pattern)
            if not single.exists():
                return fail(job, "missing_asset", f"resource not found: {pattern}")
            matches = [single]

        for source in matches:
            try:
                rel = source.relative_to(job.source_dir)
            except ValueError:
                rel = Path(source.name)
            target = dest_dir / rel
            if source.is_dir():
                shutil.copytree(source, target, dirs_exist_ok=True)
            else:
                target.parent.mkdir(parents=True, exist_ok=True)
                shutil.copy2(source, target)
            count += 1
    return Ok(count)


_NUMERIC_PREFIX = re.compile(r"^(\d+)(?:\.(\d+))?(?:\.(\d+))?")


def numeric_version(version: str, parts: int) -> str:
    """Windows installers take only dotted numbers: ``1.2.3-rc.1`` -> ``1.2.3.0`` for 4 parts."""
    m = _NUMERIC_PREFIX.match(version)
    numbers = [int(g) for g in m.groups() if g is not None] if m else []
    numbers += [0] * (parts - len(numbers))
    return ".".join(str(n) for n in numbers[:parts])
