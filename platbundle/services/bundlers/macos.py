"""macOS application bundle.

``build_app_bundle`` assembles and optionally signs ``<Name>.app``; the ``app``
format then delivers it as ``<Name>_<version>_<arch>.app.zip`` because the
delivered artifact must be a regular file. The dmg bundler reuses the bundle.
"""

from __future__ import annotations

import plistlib
import shutil
from pathlib import Path
from zipfile import ZIP_DEFLATED, ZipFile, ZipInfo

from platbundle.core.result import Err, Ok, Result
from platbundle.core.settings import MacOsConfig
from platbundle.platform.files import make_executable
from platbundle.services.bundle_errors import BundlerFailure
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

__all__ = ["build_app", "build_app_bundle", "codesign", "info_plist"]

DEFAULT_MINIMUM_SYSTEM_VERSION = "10.13"
AD_HOC_IDENTITY = "-"

# freedesktop.org main categories -> LSApplicationCategoryType
_MACOS_CATEGORIES: dict[str, str] = {
    "audiovideo": "public.app-category.music",
    "audio": "public.app-category.music",
    "video": "public.app-category.video",
    "development": "public.app-category.developer-tools",
    "education": "public.app-category.education",
    "game": "public.app-category.games",
    "graphics": "public.app-category.graphics-design",
    "network": "public.app-category.social-networking",
    "office": "public.app-category.productivity",
    "science": "public.app-category.education",
    "settings": "public.app-category.utilities",
    "system": "public.app-category.utilities",
    "utility": "public.app-category.utilities",
}


def macos_category(job: BundleJob) -> str | None:
    category = job.metadata.bundle.category
    if category is None:
        return None
    if category.macos:
        return category.macos
    if category.linux:
        first = category.linux.split(";", 1)[0].strip().lower()
        return _MACOS_CATEGORIES.get(first)
    return None


def info_plist(job: BundleJob, *, identifier: str, icon_file: str, cfg: MacOsConfig) -> bytes:
    meta = job.metadata
    plist: dict[str, object] = {
        "CFBundleDevelopmentRegion": "en",
        "CFBundleDisplayName": meta.product_name,
        "CFBundleExecutable": meta.binary_name,
        "CFBundleIconFile": icon_file,
        "CFBundleIdentifier": identifier,
        "CFBundleInfoDictionaryVersion": "6.0",
        "CFBundleName": meta.product_name,
        "CFBundlePackageType": "APPL",
        "CFBundleShortVersionString": meta.version,
        "CFBundleVersion": meta.version,
        "LSMinimumSystemVersion": cfg.minimum_system_version or DEFAULT_MINIMUM_SYSTEM_VERSION,
        "NSHighResolutionCapable": True,
    }
    category = macos_category(job)
    if category:
        plist["LSApplicationCategoryType"] = category
    if meta.bundle.copyright:
        plist["NSHumanReadableCopyright"] = meta.bundle.copyright
    return plistlib.dumps(plist, fmt=plistlib.FMT_XML, sort_keys=True)


def codesign(
    job: BundleJob, target: Path, identity: str, *, entitlements: Path | None = None
) -> Result[None, BundlerFailure]:
    """Sign ``target``. The ad-hoc identity ``-`` skips hardened runtime and timestamping."""
    tool = require_tool(job, "codesign")
    if isinstance(tool, Err):
        return tool
    cmd = [tool.value, "--force"]
    if target.suffix == ".app":
        cmd.append("--deep")
    if identity != AD_HOC_IDENTITY:
        cmd += ["--options", "runtime", "--timestamp"]
    if entitlements is not None:
        cmd += ["--entitlements", str(entitlements)]
    cmd += ["--sign", identity, str(target)]
    job.console.info(f"signing {target.name}")
    signed = run_tool(job, cmd, cwd=target.parent)
    if isinstance(signed, Err):
        return signed
    return Ok(None)


def build_app_bundle(job: BundleJob, dest_dir: Path) -> Result[Path, BundlerFailure]:
    """Assemble ``dest_dir/<Name>.app`` and sign it when an identity is configured."""
    identifier = job.metadata.bundle.identifier
    if not identifier:
        return fail(job, "missing_identifier", "bundle.identifier is required for macOS bundles")
    icns_setting = job.metadata.bundle.icns
    if icns_setting is None:
        return fail(job, "missing_icon", "macOS bundles need an .icns icon (bundle.icns or assets/img/icon.icns)")
    icns = job.resolve(icns_setting)
    if not icns.is_file():
        return fail(job, "missing_icon", f"icon not found: {icns}")

    cfg = job.metadata.bundle.macos or MacOsConfig()
    entitlements: Path | None = None
    if cfg.entitlements is not None:
        entitlements = job.resolve(cfg.entitlements)
        if not entitlements.is_file():
            return fail(job, "missing_asset", f"entitlements not found: {entitlements}")

    binaries = all_binaries(job)
    if isinstance(binaries, Err):
        return binaries

    app = dest_dir / f"{job.product_name}.app"
    contents = app / "Contents"
    try:
        if app.exists():
            shutil.rmtree(app)
        macos_dir = contents / "MacOS"
        resources_dir = contents / "Resources"
        macos_dir.mkdir(parents=True)
        resources_dir.mkdir(parents=True)

        for binary in binaries.value:
            shutil.copy2(binary.path, macos_dir / binary.name)
            make_executable(macos_dir / binary.name)

        icon_file = f"{job.product_name}.icns"
        shutil.copy2(icns, resources_dir / icon_file)

        resources = copy_resources(job, resources_dir)
        if isinstance(resources, Err):
            return resources
        extra = copy_files(job, cfg.files, contents)
        if isinstance(extra, Err):
            return extra

        (contents / "Info.plist").write_bytes(
            info_plist(job, identifier=identifier, icon_file=icon_file, cfg=cfg)
        )
        (contents / "PkgInfo").write_text("APPL????", encoding="ascii")
    except OSError as e:
        return fail(job, "io_error", f"cannot stage {app}: {e}")

    if cfg.signing_identity:
        signed = codesign(job, app, cfg.signing_identity, entitlements=entitlements)
        if isinstance(signed, Err):
            return signed

    return Ok(app)


def _zip_bundle(app: Path, zip_path: Path) -> None:
    # Symlinks inside frameworks must stay symlinks for the signature to hold.
    with ZipFile(zip_path, "w", compression=ZIP_DEFLATED, strict_timestamps=False) as zf:
        for p in sorted(app.rglob("*")):
            arcname = p.relative_to(app.parent).as_posix()
            if p.is_symlink():
                info = ZipInfo(arcname)
                info.external_attr = (0o120777 << 16)
                zf.writestr(info, str(p.readlink()))
            elif p.is_file():
                zf.write(p, arcname=arcname)


def build_app(job: BundleJob) -> BundleResult:
    arch = format_arch(job, job.arch.macos_name)
    if isinstance(arch, Err):
        return arch

    app = build_app_bundle(job, job.out_dir)
    if isinstance(app, Err):
        return app

    output = job.out_dir / f"{job.product_name}_{job.version}_{arch.value}.app.zip"
    job.console.info(f"packaging {output.name}")
    try:
        output.unlink(missing_ok=True)
        _zip_bundle(app.value, output)
    except OSError as e:
        return fail(job, "io_error", f"cannot write {output}: {e}")
    return finish(job, output)
