"""AppImage via ``appimagetool``.

AppDir layout:

    <Name>.AppDir/
        AppRun                  launches usr/bin/<binary>
        <binary>.desktop
        <binary>.png            first PNG icon
        .DirIcon -> <binary>.png
        usr/bin/                exactly the declared binaries
        usr/lib/<binary>/       resources
        usr/share/icons/hicolor/...
"""

from __future__ import annotations

import os
import shutil

from platbundle.core.result import Err
from platbundle.core.settings import AppImageConfig
from platbundle.platform.files import make_executable
from platbundle.services.bundlers.base import (
    BundleJob,
    BundleResult,
    all_binaries,
    copy_files,
    copy_resources,
    fail,
    finish,
    format_arch,
    require_tool,
    run_tool,
)
from platbundle.services.bundlers.desktop import desktop_entry, install_hicolor_icons, png_icons

__all__ = ["build_appimage"]

_APPRUN = """#!/bin/sh
HERE="$(dirname "$(readlink -f "$0")")"
export PATH="$HERE/usr/bin:$PATH"
exec "$HERE/usr/bin/{binary}" "$@"
"""


def build_appimage(job: BundleJob) -> BundleResult:
    arch = format_arch(job, job.arch.appimage_name)
    if isinstance(arch, Err):
        return arch
    tool = require_tool(job, "appimagetool")
    if isinstance(tool, Err):
        return tool
    binaries = all_binaries(job)
    if isinstance(binaries, Err):
        return binaries

    icons = [p for p in png_icons(job) if p.is_file()]
    if not icons:
        return fail(job, "missing_icon", "AppImage needs a PNG icon (bundle.icon or assets/img/icon_<W>x<H>.png)")

    cfg = job.metadata.bundle.appimage or AppImageConfig()
    main = binaries.value[0].name
    app_dir = job.out_dir / f"{job.product_name}.AppDir"
    output = job.out_dir / f"{job.product_name}-{job.version}-{arch.value}.AppImage"

    try:
        if app_dir.exists():
            shutil.rmtree(app_dir)
        bin_dir = app_dir / "usr" / "bin"
        bin_dir.mkdir(parents=True)
        for binary in binaries.value:
            shutil.copy2(binary.path, bin_dir / binary.name)
            make_executable(bin_dir / binary.name)

        resources = copy_resources(job, app_dir / "usr" / "lib" / main)
        if isinstance(resources, Err):
            return resources

        apprun = app_dir / "AppRun"
        apprun.write_text(_APPRUN.format(binary=main), encoding="utf-8")
        make_executable(apprun)

        entry = desktop_entry(job, exec_name=main, icon_name=main, template=cfg.desktop_template)
        if isinstance(entry, Err):
            return entry
        (app_dir / f"{main}.desktop").write_text(entry.value, encoding="utf-8")

        icon_name = f"{main}.png"
        shutil.copy2(icons[0], app_dir / icon_name)
        try:
            os.symlink(icon_name, app_dir / ".DirIcon")
        except OSError:
            shutil.copy2(icons[0], app_dir / ".DirIcon")
        hicolor = install_hicolor_icons(job, app_dir / "usr" / "share", main)
        if isinstance(hicolor, Err):
            return hicolor

        extra = copy_files(job, cfg.files, app_dir)
        if isinstance(extra, Err):
            return extra
    except OSError as e:
        return fail(job, "io_error", f"cannot stage {app_dir}: {e}")

    env = dict(os.environ)
    env["ARCH"] = arch.value
    job.console.info(f"packaging {output.name}")
    built = run_tool(job, [tool.value, "--no-appstream", str(app_dir), str(output)], cwd=job.out_dir, env=env)
    if isinstance(built, Err):
        return built

    if output.is_file():
        try:
            make_executable(output)
        except OSError as e:
            return fail(job, "io_error", f"cannot mark {output} executable: {e}")
    return finish(job, output)
