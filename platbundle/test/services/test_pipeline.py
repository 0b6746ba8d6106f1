"""End-to-end tests for platbundle.services.pipeline with a fake runner."""

from __future__ import annotations

from pathlib import Path

import pytest

from platbundle.core.config import ReleaseSettings, ToolConfig, WorkspaceSettings
from platbundle.core.contracts import BundleRequest, PackageType
from platbundle.core.result import Err, Ok
from platbundle.output.console import MockConsole
from platbundle.platform.detection import Arch, Platform, PlatformInfo
from platbundle.services.bundle_errors import (
    AcquisitionFailure,
    BuildFailure,
    BundlerFailure,
    InvalidManifest,
    InvalidSource,
    MissingPrebuiltBinary,
)
from platbundle.services.pipeline import WINDOWS_CROSS_TARGET, BundleService, target_for
from platbundle.test._fakes import LINUX_X64, WINDOWS_X64, FakeRunner, failure, write_project


def _snapshot(root: Path) -> dict[str, bytes]:
    return {p.relative_to(root).as_posix(): p.read_bytes() for p in sorted(root.rglob("*")) if p.is_file()}


class Env:
    """A project, a runner that clones it, and a service writing below tmp_path."""

    def __init__(
        self, tmp_path: Path, runner: FakeRunner | None = None, *, version: str | None = "1.2.3"
    ) -> None:
        self.project = write_project(tmp_path / "project", version=version)
        self.temp_root = tmp_path / "tmp"
        self.releases = tmp_path / "releases"
        self.runner = runner or FakeRunner(origin=self.project)
        self.console = MockConsole()
        self.config = ToolConfig(
            workspace=WorkspaceSettings(temp_root=self.temp_root),
            release=ReleaseSettings(dir=self.releases),
        )

    def service(self, host: PlatformInfo = LINUX_X64) -> BundleService:
        return BundleService(config=self.config, console=self.console, runner=self.runner, host=host)

    def leftover_workspaces(self) -> list[Path]:
        return list(self.temp_root.iterdir()) if self.temp_root.exists() else []


@pytest.fixture
def env(tmp_path: Path) -> Env:
    return Env(tmp_path)


class TestTargetFor:
    def test_explicit_target_wins(self) -> None:
        assert target_for(PackageType.NSIS, "i686-pc-windows-msvc", LINUX_X64) == "i686-pc-windows-msvc"

    def test_windows_format_from_other_host(self) -> None:
        assert target_for(PackageType.MSI, None, LINUX_X64) == WINDOWS_CROSS_TARGET

    def test_windows_format_on_windows(self) -> None:
        assert target_for(PackageType.MSI, None, WINDOWS_X64) is None

    def test_linux_format(self) -> None:
        assert target_for(PackageType.DEB, None, LINUX_X64) is None


class TestSuccess:
    def test_deb_for_arm64_lands_at_exact_path(self, env: Env, tmp_path: Path) -> None:
        before = _snapshot(env.project)
        output = tmp_path / "out" / "dist" / "hello-arm64.deb"
        request = BundleRequest(
            source=str(env.project),
            platform=PackageType.DEB,
            output_path=output,
            target_triple="aarch64-unknown-linux-gnu",
        )

        result = env.service().bundle(request)

        assert isinstance(result, Ok), env.console.text
        assert result.value.final_path == output
        assert result.value.contract_asserted
        assert output.is_file()
        assert result.value.size_bytes == output.stat().st_size

        cargo = env.runner.calls_to("cargo")[0]
        assert cargo.cmd[-2:] == ["--target", "aarch64-unknown-linux-gnu"]
        dpkg = env.runner.calls_to("dpkg-deb")[0]
        assert dpkg.cmd[-1].endswith("hello_1.2.3_arm64.deb")

        assert _snapshot(env.project) == before
        assert env.leftover_workspaces() == []
        assert env.runner.tools_called()[:2] == ["git", "git"]

    def test_second_run_overwrites(self, env: Env, tmp_path: Path) -> None:
        output = tmp_path / "hello.deb"
        output.write_bytes(b"stale")
        request = BundleRequest(source=str(env.project), platform=PackageType.DEB, output_path=output)

        first = env.service().bundle(request)
        second = env.service().bundle(request)

        assert isinstance(first, Ok)
        assert isinstance(second, Ok)
        assert output.read_bytes() != b"stale"
        assert env.leftover_workspaces() == []

    def test_windows_installer_cross_builds_and_goes_to_release_dir(self, env: Env) -> None:
        request = BundleRequest(source=str(env.project), platform=PackageType.NSIS)

        result = env.service().bundle(request)

        assert isinstance(result, Ok), env.console.text
        assert not result.value.contract_asserted
        assert result.value.final_path == env.releases / "hello" / "1.2.3" / "hello_1.2.3_x64-setup.exe"
        assert result.value.final_path.is_file()
        assert env.runner.calls_to("cargo")[0].cmd[-2:] == ["--target", WINDOWS_CROSS_TARGET]

    def test_overrides_reach_the_package(self, env: Env, tmp_path: Path) -> None:
        request = BundleRequest(
            source=str(env.project),
            platform=PackageType.DEB,
            output_path=tmp_path / "x.deb",
            version="9.9.9",
        )

        result = env.service().bundle(request)

        assert isinstance(result, Ok)
        assert env.runner.calls_to("dpkg-deb")[0].cmd[-1].endswith("hello_9.9.9_amd64.deb")


class TestFailure:
    def test_missing_version_stops_before_build(self, tmp_path: Path) -> None:
        env = Env(tmp_path, version=None)
        output = tmp_path / "out" / "hello.deb"

        result = env.service().bundle(
            BundleRequest(source=str(env.project), platform=PackageType.DEB, output_path=output)
        )

        assert isinstance(result, Err)
        assert isinstance(result.error, InvalidManifest)
        assert "cargo" not in env.runner.tools_called()
        assert not output.exists()
        assert env.leftover_workspaces() == []
        assert env.console.has_error()

    def test_invalid_source_creates_no_workspace(self, env: Env) -> None:
        result = env.service().bundle(BundleRequest(source="not a source", platform=PackageType.DEB))

        assert isinstance(result, Err)
        assert isinstance(result.error, InvalidSource)
        assert env.runner.calls == []
        assert not env.temp_root.exists()

    def test_clone_failure(self, tmp_path: Path) -> None:
        runner = FakeRunner(
            handlers={"git": lambda cmd, cwd, env: failure(cmd, "remote: Repository not found.", 128)}
        )
        env = Env(tmp_path, runner=runner)

        result = env.service().bundle(BundleRequest(source="acme/hello", platform=PackageType.DEB))

        assert isinstance(result, Err)
        assert isinstance(result.error, AcquisitionFailure)
        assert result.error.cause == "not_found"
        assert env.leftover_workspaces() == []

    def test_no_build_without_prebuilt_binary(self, env: Env) -> None:
        request = BundleRequest(source=str(env.project), platform=PackageType.DEB, skip_build=True)

        result = env.service().bundle(request)

        assert isinstance(result, Err)
        assert isinstance(result.error, MissingPrebuiltBinary)
        assert "cargo" not in env.runner.tools_called()

    def test_bundler_failure_is_reported_and_cleaned_up(self, tmp_path: Path) -> None:
        project_env = Env(tmp_path)
        project_env.runner.available = {"git", "cargo"}
        output = tmp_path / "hello.rpm"

        result = project_env.service().bundle(
            BundleRequest(source=str(project_env.project), platform=PackageType.RPM, output_path=output)
        )

        assert isinstance(result, Err)
        assert isinstance(result.error, BundlerFailure)
        assert result.error.kind == "tool_missing"
        assert not output.exists()
        assert project_env.leftover_workspaces() == []
        assert "rpmbuild" in project_env.console.text

    def test_build_failure_leaves_nothing_behind(self, tmp_path: Path) -> None:
        env = Env(tmp_path)
        env.runner.handlers["cargo"] = lambda cmd, cwd, e: failure(cmd, "error[E0425]: cannot find value `x`", 101)
        output = tmp_path / "out" / "hello.deb"

        result = env.service().bundle(
            BundleRequest(source=str(env.project), platform=PackageType.DEB, output_path=output)
        )

        assert isinstance(result, Err)
        assert isinstance(result.error, BuildFailure)
        assert result.error.returncode == 101
        assert "dpkg-deb" not in env.runner.tools_called()
        assert not output.exists()
        assert env.leftover_workspaces() == []

    def test_unknown_host_arch_is_not_labeled_amd64(self, env: Env, tmp_path: Path) -> None:
        output = tmp_path / "hello.deb"
        host = PlatformInfo(Platform.LINUX, Arch.UNKNOWN)

        result = env.service(host).bundle(
            BundleRequest(source=str(env.project), platform=PackageType.DEB, output_path=output)
        )

        assert isinstance(result, Err)
        assert isinstance(result.error, BundlerFailure)
        assert result.error.kind == "unsupported_arch"
        assert env.runner.calls_to("dpkg-deb") == []
        assert not output.exists()
        assert env.leftover_workspaces() == []
