"""Tests for the Linux bundlers: deb, rpm, AppImage and their shared pieces."""

from __future__ import annotations

from pathlib import Path

import pytest

from platbundle.core.contracts import PackageType
from platbundle.core.result import Err, Ok
from platbundle.core.settings import DebConfig
from platbundle.services.bundlers.appimage import build_appimage
from platbundle.services.bundlers.deb import build_deb, control_file, deb_version, package_name
from platbundle.services.bundlers.desktop import desktop_entry, png_size
from platbundle.services.bundlers.rpm import build_rpm, rpm_requirement, rpm_version
from platbundle.test._fakes import FakeRunner, make_job, png_bytes, write_project

BUNDLE = """
identifier = "com.acme.hello"
short_description = "Greets people"
long_description = \"\"\"
Hello greets people.

It is very polite.
\"\"\"
category = "Utility"
"""


def _project(tmp_path: Path, bundle: str = BUNDLE) -> Path:
    project = write_project(tmp_path / "project", name="hello_world", bundle=bundle)
    img = project / "assets" / "img"
    img.mkdir(parents=True)
    (img / "icon_32x32.png").write_bytes(png_bytes(32, 32))
    (img / "icon_128x128.png").write_bytes(png_bytes(128, 128))
    return project


class TestDesktop:
    def test_png_size(self, tmp_path: Path) -> None:
        (tmp_path / "a.png").write_bytes(png_bytes(48, 24))
        (tmp_path / "b.png").write_bytes(b"GIF89a")
        assert png_size(tmp_path / "a.png") == (48, 24)
        assert png_size(tmp_path / "b.png") is None
        assert png_size(tmp_path / "missing.png") is None

    def test_default_entry(self, tmp_path: Path) -> None:
        job = make_job(_project(tmp_path), tmp_path / "s", PackageType.DEB)

        entry = desktop_entry(job, exec_name="hello_world", icon_name="hello_world", template=None)

        assert isinstance(entry, Ok)
        assert entry.value.splitlines() == [
            "[Desktop Entry]",
            "Type=Application",
            "Name=hello_world",
            "Exec=hello_world",
            "Icon=hello_world",
            "Comment=Greets people",
            "Terminal=false",
            "Categories=Utility;",
        ]

    def test_custom_template(self, tmp_path: Path) -> None:
        project = _project(tmp_path)
        (project / "hello.desktop.in").write_text("Name=$name\nExec=$exec --gui\n", encoding="utf-8")
        job = make_job(project, tmp_path / "s", PackageType.DEB)

        entry = desktop_entry(job, exec_name="hello_world", icon_name="x", template="hello.desktop.in")

        assert entry == Ok("Name=hello_world\nExec=hello_world --gui\n")

    def test_template_with_unknown_placeholder(self, tmp_path: Path) -> None:
        project = _project(tmp_path)
        (project / "t.desktop").write_text("Name=$nope\n", encoding="utf-8")
        job = make_job(project, tmp_path / "s", PackageType.DEB)

        entry = desktop_entry(job, exec_name="e", icon_name="i", template="t.desktop")

        assert isinstance(entry, Err)
        assert entry.error.kind == "missing_asset"


class TestDeb:
    def test_package_name(self) -> None:
        assert package_name("Hello_World") == "hello-world"

    def test_pre_release_sorts_before_release(self, tmp_path: Path) -> None:
        assert deb_version("1.2.3") == "1.2.3"
        assert deb_version("1.2.3-rc.1") == "1.2.3~rc.1"

        project = write_project(tmp_path / "project", version="1.2.3-rc.1")
        job = make_job(project, tmp_path / "s", PackageType.DEB)

        assert "Version: 1.2.3~rc.1" in control_file(job, "amd64", 1, DebConfig()).splitlines()

    def test_control_file(self, tmp_path: Path) -> None:
        job = make_job(_project(tmp_path), tmp_path / "s", PackageType.DEB)
        cfg = DebConfig(depends=("libc6 (>= 2.31)", "libasound2"), section="sound")

        control = control_file(job, "amd64", 12, cfg)

        assert control.splitlines() == [
            "Package: hello-world",
            "Version: 1.2.3",
            "Architecture: amd64",
            "Installed-Size: 12",
            "Maintainer: Ada Lovelace <ada@example.com>",
            "Section: sound",
            "Priority: optional",
            "Depends: libc6 (>= 2.31), libasound2",
            "Description: Greets people",
            " Hello greets people.",
            " .",
            " It is very polite.",
        ]

    def test_build(self, tmp_path: Path) -> None:
        runner = FakeRunner()
        job = make_job(_project(tmp_path), tmp_path / "s", PackageType.DEB, runner=runner)

        result = build_deb(job)

        assert isinstance(result, Ok)
        assert result.value.source_path.name == "hello-world_1.2.3_amd64.deb"
        root = job.out_dir / "hello-world_1.2.3_amd64"
        assert (root / "usr" / "bin" / "hello_world").is_file()
        assert (root / "usr" / "share" / "applications" / "hello_world.desktop").is_file()
        assert (root / "usr" / "share" / "icons" / "hicolor" / "128x128" / "apps" / "hello_world.png").is_file()
        assert "usr/bin/hello_world" in (root / "DEBIAN" / "md5sums").read_text(encoding="utf-8")
        cmd = runner.calls_to("dpkg-deb")[0].cmd
        assert cmd[1:3] == ["--build", "--root-owner-group"]

    def test_arm64_naming(self, tmp_path: Path) -> None:
        job = make_job(_project(tmp_path), tmp_path / "s", PackageType.DEB, triple="aarch64-unknown-linux-gnu")

        result = build_deb(job)

        assert isinstance(result, Ok)
        assert result.value.source_path.name == "hello-world_1.2.3_arm64.deb"

    def test_maintainer_script(self, tmp_path: Path) -> None:
        bundle = BUNDLE + '\n[package.metadata.bundle.deb]\npost_install_script = "scripts/postinst.sh"\n'
        project = _project(tmp_path, bundle)
        (project / "scripts").mkdir()
        (project / "scripts" / "postinst.sh").write_text("#!/bin/sh\nldconfig\n", encoding="utf-8")
        job = make_job(project, tmp_path / "s", PackageType.DEB)

        assert isinstance(build_deb(job), Ok)
        postinst = job.out_dir / "hello-world_1.2.3_amd64" / "DEBIAN" / "postinst"
        assert postinst.read_text(encoding="utf-8").endswith("ldconfig\n")

    def test_missing_tool(self, tmp_path: Path) -> None:
        job = make_job(_project(tmp_path), tmp_path / "s", PackageType.DEB, runner=FakeRunner(available={"git"}))

        result = build_deb(job)

        assert isinstance(result, Err)
        assert result.error.kind == "tool_missing"

    def test_unsupported_arch(self, tmp_path: Path) -> None:
        job = make_job(_project(tmp_path), tmp_path / "s", PackageType.DEB, triple="wasm32-unknown-unknown")

        result = build_deb(job)

        assert isinstance(result, Err)
        assert result.error.kind == "unsupported_arch"

    def test_missing_declared_icon(self, tmp_path: Path) -> None:
        project = _project(tmp_path, BUNDLE + 'icon = ["assets/missing.png"]\n')
        job = make_job(project, tmp_path / "s", PackageType.DEB)

        result = build_deb(job)

        assert isinstance(result, Err)
        assert result.error.kind == "missing_icon"


class TestRpm:
    @pytest.mark.parametrize(
        ("dep", "expected"),
        [
            ("libc6 (>= 2.31)", "libc6 >= 2.31"),
            ("foo (<< 2)", "foo < 2"),
            ("alsa-lib", "alsa-lib"),
        ],
    )
    def test_rpm_requirement(self, dep: str, expected: str) -> None:
        assert rpm_requirement(dep) == expected

    def test_rpm_version(self) -> None:
        assert rpm_version("1.2.3-rc.1") == "1.2.3~rc.1"

    def test_build(self, tmp_path: Path) -> None:
        bundle = BUNDLE + '\n[package.metadata.bundle.rpm]\ndepends = ["alsa-lib"]\nrelease = "2"\n'
        runner = FakeRunner()
        job = make_job(_project(tmp_path, bundle), tmp_path / "s", PackageType.RPM, runner=runner)

        result = build_rpm(job)

        assert isinstance(result, Ok)
        assert result.value.source_path.suffix == ".rpm"
        spec = (job.out_dir / "rpmbuild" / "SPECS" / "hello_world.spec").read_text(encoding="utf-8")
        assert "Name: hello_world" in spec
        assert "Release: 2" in spec
        assert "BuildArch: x86_64" in spec
        assert "Requires: alsa-lib" in spec
        assert '"/usr/bin/hello_world"' in spec
        cmd = runner.calls_to("rpmbuild")[0].cmd
        assert cmd[1:4] == ["-bb", "--target", "x86_64"]

    def test_missing_scriptlet(self, tmp_path: Path) -> None:
        bundle = BUNDLE + '\n[package.metadata.bundle.rpm]\npre_install_script = "nope.sh"\n'
        job = make_job(_project(tmp_path, bundle), tmp_path / "s", PackageType.RPM)

        result = build_rpm(job)

        assert isinstance(result, Err)
        assert result.error.kind == "missing_asset"


class TestAppImage:
    def test_build(self, tmp_path: Path) -> None:
        runner = FakeRunner()
        job = make_job(_project(tmp_path), tmp_path / "s", PackageType.APPIMAGE, runner=runner)

        result = build_appimage(job)

        assert isinstance(result, Ok)
        assert result.value.source_path.name == "hello_world-1.2.3-x86_64.AppImage"
        app_dir = job.out_dir / "hello_world.AppDir"
        assert (app_dir / "AppRun").read_text(encoding="utf-8").rstrip().endswith('usr/bin/hello_world" "$@"')
        assert (app_dir / "hello_world.desktop").is_file()
        assert (app_dir / "hello_world.png").is_file()
        call = runner.calls_to("appimagetool")[0]
        assert call.env is not None and call.env["ARCH"] == "x86_64"

    def test_requires_png_icon(self, tmp_path: Path) -> None:
        project = write_project(tmp_path / "bare")
        job = make_job(project, tmp_path / "s", PackageType.APPIMAGE)

        result = build_appimage(job)

        assert isinstance(result, Err)
        assert result.error.kind == "missing_icon"
