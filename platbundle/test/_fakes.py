"""Shared test doubles: a scripted ``CommandRunner`` and project fixtures.

``FakeRunner`` never starts a process. Each tool is handled by a function
keyed by the executable's base name; the defaults imitate the files real
tools leave behind (a clone, a cargo binary, a package), which is enough for
the services and bundlers to run end to end.
"""

from __future__ import annotations

import shutil
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import TypeAlias

from platbundle.core.config import ToolsSettings
from platbundle.core.contracts import PackageType
from platbundle.core.result import Err, Ok, Result
from platbundle.output.console import MockConsole
from platbundle.platform.detection import Arch, Platform, PlatformInfo
from platbundle.platform.process import ProcessError
from platbundle.services.bundlers.base import BundleJob
from platbundle.services.manifest import read_metadata

Handler: TypeAlias = Callable[[list[str], Path, dict[str, str] | None], Result[str, ProcessError]]

FAKE_COMMIT = "0123456789abcdef0123456789abcdef01234567"

LINUX_X64 = PlatformInfo(Platform.LINUX, Arch.X86_64)
MACOS_ARM = PlatformInfo(Platform.MACOS, Arch.AARCH64)
WINDOWS_X64 = PlatformInfo(Platform.WINDOWS, Arch.X86_64)


def failure(cmd: list[str], stderr: str, returncode: int = 1) -> Err[ProcessError]:
    return Err(ProcessError(command=tuple(cmd), returncode=returncode, stdout="", stderr=stderr))


def _write(path: Path, content: bytes = b"fake artifact\n") -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)


def _option(cmd: list[str], flag: str) -> str | None:
    if flag in cmd:
        i = cmd.index(flag)
        if i + 1 < len(cmd):
            return cmd[i + 1]
    return None


def git_handler(origin: Path | None) -> Handler:
    """``git clone`` copies ``origin`` to the destination; ``rev-parse`` answers a hash."""

    def handle(cmd: list[str], cwd: Path, env: dict[str, str] | None) -> Result[str, ProcessError]:
        if "clone" in cmd:
            if origin is None:
                return failure(cmd, "fatal: repository not found")
            dest = Path(cmd[-1])
            shutil.copytree(origin, dest, ignore=shutil.ignore_patterns("target", ".git"))
            (dest / ".git").mkdir()
            return Ok("")
        if "rev-parse" in cmd:
            return Ok(FAKE_COMMIT + "\n")
        return Ok("")

    return handle


def cargo_handler(cmd: list[str], cwd: Path, env: dict[str, str] | None) -> Result[str, ProcessError]:
    target_dir = Path((env or {}).get("CARGO_TARGET_DIR", str(cwd / "target")))
    triple = _option(cmd, "--target")
    name = _option(cmd, "--bin") or "app"
    if triple is not None:
        target_dir = target_dir / triple
        if "windows" in triple:
            name += ".exe"
    _write(target_dir / "release" / name, b"\x7fELF fake binary\n")
    return Ok("")


def last_arg_handler(cmd: list[str], cwd: Path, env: dict[str, str] | None) -> Result[str, ProcessError]:
    _write(Path(cmd[-1]))
    return Ok("")


def rpmbuild_handler(cmd: list[str], cwd: Path, env: dict[str, str] | None) -> Result[str, ProcessError]:
    topdir = Path((_option(cmd, "--define") or "_topdir .").split(" ", 1)[1])
    arch = _option(cmd, "--target") or "noarch"
    spec = Path(cmd[-1])
    _write(topdir / "RPMS" / arch / f"{spec.stem}-1.{arch}.rpm")
    return Ok("")


def hdiutil_handler(cmd: list[str], cwd: Path, env: dict[str, str] | None) -> Result[str, ProcessError]:
    verb = cmd[1]
    if verb == "create":
        _write(Path(cmd[-1]))
    elif verb == "attach":
        mount = _option(cmd, "-mountpoint")
        if mount is not None:
            Path(mount).mkdir(parents=True, exist_ok=True)
    elif verb == "convert":
        out = _option(cmd, "-o")
        if out is not None:
            _write(Path(out))
    return Ok("")


def out_flag_handler(cmd: list[str], cwd: Path, env: dict[str, str] | None) -> Result[str, ProcessError]:
    out = _option(cmd, "-out")
    if out is not None:
        _write(Path(out))
    return Ok("")


def makensis_handler(cmd: list[str], cwd: Path, env: dict[str, str] | None) -> Result[str, ProcessError]:
    for arg in cmd:
        if arg.startswith("-DOUTPUT_FILE="):
            _write(Path(arg.removeprefix("-DOUTPUT_FILE=")))
    return Ok("")


def ok_handler(cmd: list[str], cwd: Path, env: dict[str, str] | None) -> Result[str, ProcessError]:
    return Ok("")


@dataclass(frozen=True, slots=True)
class Call:
    cmd: list[str]
    cwd: Path
    env: dict[str, str] | None
    timeout: float | None

    @property
    def tool(self) -> str:
        return Path(self.cmd[0]).name


@dataclass
class FakeRunner:
    """``CommandRunner`` double.

    ``available`` limits which tools ``which`` finds; None means all of them.
    """

    origin: Path | None = None
    handlers: dict[str, Handler] = field(default_factory=dict[str, Handler])
    available: set[str] | None = None
    calls: list[Call] = field(default_factory=list[Call])

    def __post_init__(self) -> None:
        defaults: dict[str, Handler] = {
            "git": git_handler(self.origin),
            "cargo": cargo_handler,
            "dpkg-deb": last_arg_handler,
            "rpmbuild": rpmbuild_handler,
            "appimagetool": last_arg_handler,
            "hdiutil": hdiutil_handler,
            "codesign": ok_handler,
            "osascript": ok_handler,
            "candle": out_flag_handler,
            "light": out_flag_handler,
            "makensis": makensis_handler,
        }
        self.handlers = {**defaults, **self.handlers}

    def run(
        self,
        cmd: list[str],
        cwd: Path,
        env: dict[str, str] | None = None,
        *,
        timeout: float | None = None,
    ) -> Result[str, ProcessError]:
        self.calls.append(Call(list(cmd), cwd, env, timeout))
        handler = self.handlers.get(Path(cmd[0]).name)
        if handler is None:
            return failure(cmd, f"{cmd[0]}: command not found", returncode=127)
        return handler(cmd, cwd, env)

    def which(self, name: str) -> str | None:
        if self.available is not None and name not in self.available:
            return None
        return f"/usr/bin/{name}"

    def tools_called(self) -> list[str]:
        return [c.tool for c in self.calls]

    def calls_to(self, tool: str) -> list[Call]:
        return [c for c in self.calls if c.tool == tool]


def write_project(
    root: Path,
    *,
    name: str = "hello",
    version: str | None = "1.2.3",
    repository: str | None = "https://github.com/acme/hello.git",
    bundle: str = "",
    extra_package: str = "",
) -> Path:
    """Write a minimal cargo project and return its root.

    ``bundle`` is appended verbatim as the body of ``[package.metadata.bundle]``.
    """
    lines = ["[package]", f'name = "{name}"']
    if version is not None:
        lines.append(f'version = "{version}"')
    if repository is not None:
        lines.append(f'repository = "{repository}"')
    lines += ['edition = "2021"', 'authors = ["Ada Lovelace <ada@example.com>"]']
    if extra_package:
        lines.append(extra_package.strip())
    if bundle:
        lines += ["", "[package.metadata.bundle]", bundle.strip()]

    root.mkdir(parents=True, exist_ok=True)
    (root / "Cargo.toml").write_text("\n".join(lines) + "\n", encoding="utf-8")
    (root / "src").mkdir(exist_ok=True)
    (root / "src" / "main.rs").write_text('fn main() { println!("hello"); }\n', encoding="utf-8")
    return root


def png_bytes(width: int, height: int) -> bytes:
    """Just enough of a PNG for size detection."""
    return (
        b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR"
        + width.to_bytes(4, "big")
        + height.to_bytes(4, "big")
        + b"\x08\x06\x00\x00\x00"
    )


def make_job(
    project: Path,
    scratch: Path,
    platform: PackageType,
    *,
    runner: FakeRunner | None = None,
    triple: str = "x86_64-unknown-linux-gnu",
    console: MockConsole | None = None,
) -> BundleJob:
    """A job for ``project`` with a fake binary already built."""
    meta = read_metadata(project)
    assert isinstance(meta, Ok), meta
    suffix = ".exe" if "windows" in triple else ""
    binary = project / "target" / "release" / f"{meta.value.binary_name}{suffix}"
    _write(binary, b"\x7fELF fake binary\n")
    job = BundleJob(
        platform=platform,
        binary_path=binary,
        metadata=meta.value,
        arch=Arch.from_triple(triple),
        triple=triple,
        source_dir=project,
        scratch_dir=scratch,
        runner=runner or FakeRunner(),
        tools=ToolsSettings(),
        timeout=60.0,
        console=console or MockConsole(),
    )
    job.out_dir.mkdir(parents=True, exist_ok=True)
    return job
