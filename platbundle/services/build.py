"""Build invoker.

Runs ``cargo build --release --bin <name> [--target <triple>]`` inside the
workspace tree, or with ``skip_build`` only checks that the binary is already
where cargo would put it.
"""

from __future__ import annotations

import os
from pathlib import Path

from platbundle.core.config import ToolConfig
from platbundle.core.result import Err, Ok, Result
from platbundle.output.console import ConsoleProtocol
from platbundle.platform.detection import PlatformInfo
from platbundle.platform.process import CommandRunner
from platbundle.services.bundle_errors import BuildFailure, MissingPrebuiltBinary

__all__ = ["BuildService", "expected_binary_path"]


def _exe_suffix(triple: str | None, host: PlatformInfo) -> str:
    if triple is None:
        return ".exe" if host.is_windows else ""
    return ".exe" if "windows" in triple else ""


def expected_binary_path(
    source_dir: Path, binary_name: str, triple: str | None, host: PlatformInfo
) -> Path:
    """Where cargo places the release binary.

    ``target/release/<name>`` for host builds, ``target/<triple>/release/<name>``
    for cross builds. Windows targets add ``.exe``.
    """
    target_dir = source_dir / "target"
    if triple is not None:
        target_dir = target_dir / triple
    return target_dir / "release" / f"{binary_name}{_exe_suffix(triple, host)}"


class BuildService:
    def __init__(
        self,
        *,
        runner: CommandRunner,
        config: ToolConfig,
        console: ConsoleProtocol,
        host: PlatformInfo,
    ) -> None:
        self._runner = runner
        self._config = config
        self._console = console
        self._host = host

    def build(
        self,
        source_dir: Path,
        binary_name: str,
        *,
        target_triple: str | None = None,
        skip_build: bool = False,
    ) -> Result[Path, BuildFailure | MissingPrebuiltBinary]:
        """Produce the release binary and return its path."""
        binary = expected_binary_path(source_dir, binary_name, target_triple, self._host)

        if skip_build:
            if not binary.is_file():
                return Err(MissingPrebuiltBinary(binary))
            self._console.info(f"using prebuilt {binary}")
            return Ok(binary)

        cmd = [self._config.tools.executable("cargo"), "build", "--release", "--bin", binary_name]
        if target_triple is not None:
            cmd += ["--target", target_triple]

        # Pin the target dir so the binary lands where we look for it.
        env = dict(os.environ)
        env["CARGO_TARGET_DIR"] = str(source_dir / "target")

        self._console.info(f"building {binary_name}" + (f" for {target_triple}" if target_triple else ""))
        self._console.debug(" ".join(cmd))
        result = self._runner.run(cmd, cwd=source_dir, env=env, timeout=self._config.timeouts.build)
        if isinstance(result, Err):
            e = result.error
            return Err(
                BuildFailure(
                    command=e.command,
                    returncode=e.returncode,
                    stderr=e.stderr,
                    message="cargo build timed out" if e.timed_out else "cargo build failed",
                )
            )

        if not binary.is_file():
            release_dir = binary.parent
            available = sorted(p.name for p in release_dir.iterdir()) if release_dir.is_dir() else []
            return Err(
                BuildFailure(
                    command=tuple(cmd),
                    returncode=0,
                    stderr=f"available in {release_dir}: {', '.join(available) or '(nothing)'}",
                    message=f"build succeeded but {binary} is missing",
                )
            )

        return Ok(binary)
