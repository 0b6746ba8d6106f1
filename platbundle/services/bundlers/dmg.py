"""macOS disk image via ``hdiutil``.

Without appearance settings the image is created compressed in one step.
With a background or window geometry it is created read-write, mounted,
arranged by Finder through AppleScript, detached, then converted to UDZO.
"""

from __future__ import annotations

import os
import shutil
from pathlib import Path

from platbundle.core.result import Err, Ok, Result
from platbundle.core.settings import DmgConfig, MacOsConfig
from platbundle.services.bundle_errors import BundlerFailure
from platbundle.services.bundlers.base import (
    BundleJob,
    BundleResult,
    fail,
    finish,
    format_arch,
    require_tool,
    run_tool,
)
from platbundle.services.bundlers.macos import AD_HOC_IDENTITY, build_app_bundle, codesign

__all__ = ["build_dmg", "finder_script"]

DEFAULT_WINDOW_SIZE = (600, 400)
DEFAULT_WINDOW_POSITION = (100, 100)
DEFAULT_APP_POSITION = (180, 170)
DEFAULT_APPLICATIONS_POSITION = (480, 170)
ICON_SIZE = 72


def _escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def finder_script(volume: str, app_name: str, dmg: DmgConfig) -> str:
    """AppleScript that arranges the mounted volume's Finder window."""
    width, height = dmg.window_size or DEFAULT_WINDOW_SIZE
    left, top = dmg.window_position or DEFAULT_WINDOW_POSITION
    app_x, app_y = dmg.app_position or DEFAULT_APP_POSITION
    apps_x, apps_y = dmg.application_folder_position or DEFAULT_APPLICATIONS_POSITION

    background = ""
    if dmg.background is not None:
        bg_name = _escape(Path(dmg.background).name)
        background = f'set background picture of viewOptions to file ".background:{bg_name}"'

    return f"""tell application "Finder"
    tell disk "{_escape(volume)}"
        open
        set current view of container window to icon view
        set toolbar visible of container window to false
        set statusbar visible of container window to false
        set bounds of container window to {{{left}, {top}, {left + width}, {top + height}}}
        set viewOptions to icon view options of container window
        set arrangement of viewOptions to not arranged
        set icon size of viewOptions to {ICON_SIZE}
        {background}
        set position of item "{_escape(app_name)}" to {{{app_x}, {app_y}}}
        set position of item "Applications" to {{{apps_x}, {apps_y}}}
        close
        open
        update without registering applications
        delay 2
    end tell
end tell
"""


def _customize(
    job: BundleJob, hdiutil: str, rw_image: Path, app_name: str, dmg: DmgConfig
) -> Result[None, BundlerFailure]:
    osascript = require_tool(job, "osascript")
    if isinstance(osascript, Err):
        return osascript

    mount = job.out_dir / "mnt"
    try:
        mount.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        return fail(job, "io_error", f"cannot create mount point {mount}: {e}")

    attached = run_tool(
        job,
        [hdiutil, "attach", str(rw_image), "-readwrite", "-noverify", "-nobrowse", "-mountpoint", str(mount)],
        cwd=job.out_dir,
    )
    if isinstance(attached, Err):
        return attached

    outcome: Result[None, BundlerFailure] = Ok(None)
    try:
        if dmg.background is not None:
            bg_dir = mount / ".background"
            bg_dir.mkdir(exist_ok=True)
            shutil.copy2(job.resolve(dmg.background), bg_dir / Path(dmg.background).name)

        script = job.out_dir / "finder.applescript"
        script.write_text(finder_script(job.product_name, app_name, dmg), encoding="utf-8")
        arranged = run_tool(job, [osascript.value, str(script)], cwd=job.out_dir)
        if isinstance(arranged, Err):
            # Finder automation is cosmetic and often unavailable on headless hosts.
            job.console.warning(f"dmg window layout not applied: {arranged.error.message}")
    except OSError as e:
        outcome = fail(job, "io_error", f"cannot customize disk image: {e}")
    finally:
        detached = run_tool(job, [hdiutil, "detach", str(mount)], cwd=job.out_dir)
        if isinstance(detached, Err):
            forced = run_tool(job, [hdiutil, "detach", str(mount), "-force"], cwd=job.out_dir)
            if isinstance(forced, Err) and isinstance(outcome, Ok):
                outcome = forced

    return outcome


def build_dmg(job: BundleJob) -> BundleResult:
    arch = format_arch(job, job.arch.macos_name)
    if isinstance(arch, Err):
        return arch
    hdiutil = require_tool(job, "hdiutil")
    if isinstance(hdiutil, Err):
        return hdiutil

    cfg = job.metadata.bundle.macos or MacOsConfig()
    dmg = cfg.dmg or DmgConfig()
    if dmg.background is not None and not job.resolve(dmg.background).is_file():
        return fail(job, "missing_asset", f"dmg background not found: {dmg.background}")

    stage = job.out_dir / "stage"
    try:
        if stage.exists():
            shutil.rmtree(stage)
        stage.mkdir(parents=True)
    except OSError as e:
        return fail(job, "io_error", f"cannot create {stage}: {e}")

    app = build_app_bundle(job, stage)
    if isinstance(app, Err):
        return app
    try:
        os.symlink("/Applications", stage / "Applications")
    except OSError as e:
        return fail(job, "io_error", f"cannot link /Applications: {e}")

    output = job.out_dir / f"{job.product_name}_{job.version}_{arch.value}.dmg"
    output.unlink(missing_ok=True)
    create = [hdiutil.value, "create", "-volname", job.product_name, "-srcfolder", str(stage), "-ov"]
    job.console.info(f"packaging {output.name}")

    if dmg.needs_customization:
        rw_image = job.out_dir / "rw.dmg"
        created = run_tool(job, [*create, "-format", "UDRW", str(rw_image)], cwd=job.out_dir)
        if isinstance(created, Err):
            return created
        customized = _customize(job, hdiutil.value, rw_image, app.value.name, dmg)
        if isinstance(customized, Err):
            return customized
        converted = run_tool(
            job,
            [hdiutil.value, "convert", str(rw_image), "-format", "UDZO", "-o", str(output)],
            cwd=job.out_dir,
        )
        if isinstance(converted, Err):
            return converted
    else:
        created = run_tool(job, [*create, "-format", "UDZO", str(output)], cwd=job.out_dir)
        if isinstance(created, Err):
            return created

    if cfg.signing_identity and cfg.signing_identity != AD_HOC_IDENTITY and output.is_file():
        signed = codesign(job, output, cfg.signing_identity)
        if isinstance(signed, Err):
            return signed

    return finish(job, output)
