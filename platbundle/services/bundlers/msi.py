"""Windows Installer package via the WiX Toolset v3 (``candle`` + ``light``).

The installed tree is staged under ``payload/`` and mirrored into WiX
``Directory``/``Component`` elements, one component per file.
"""

from __future__ import annotations

import hashlib
import shutil
import uuid
import xml.etree.ElementTree as ET
from pathlib import Path

from platbundle.core.result import Err, Ok, Result
from platbundle.core.settings import WixConfig
from platbundle.services.bundle_errors import BundlerFailure
from platbundle.services.bundlers.base import (
    BundleJob,
    BundleResult,
    all_binaries,
    copy_resources,
    fail,
    finish,
    format_arch,
    numeric_version,
    require_tool,
    run_tool,
)

__all__ = ["build_msi", "upgrade_code", "wix_source"]

WIX_NAMESPACE = "http://schemas.microsoft.com/wix/2006/wi"
DEFAULT_LANGUAGE = "en-US"

# Culture name -> Windows LCID
LANGUAGE_IDS: dict[str, int] = {
    "ar-sa": 1025,
    "cs-cz": 1029,
    "da-dk": 1030,
    "de-de": 1031,
    "el-gr": 1032,
    "en-us": 1033,
    "es-es": 3082,
    "fi-fi": 1035,
    "fr-fr": 1036,
    "he-il": 1037,
    "hu-hu": 1038,
    "it-it": 1040,
    "ja-jp": 1041,
    "ko-kr": 1042,
    "nl-nl": 1043,
    "nb-no": 1044,
    "pl-pl": 1045,
    "pt-br": 1046,
    "pt-pt": 2070,
    "ru-ru": 1049,
    "sv-se": 1053,
    "tr-tr": 1055,
    "uk-ua": 1058,
    "zh-cn": 2052,
    "zh-tw": 1028,
}


def upgrade_code(job: BundleJob, cfg: WixConfig) -> str:
    """Configured code, else a UUID derived from the identifier so upgrades keep matching."""
    if cfg.upgrade_code:
        return cfg.upgrade_code.upper()
    seed = job.metadata.bundle.identifier or job.metadata.binary_name
    return str(uuid.uuid5(uuid.NAMESPACE_DNS, seed)).upper()


def _wix_id(prefix: str, rel: str) -> str:
    # Ids are limited to 72 chars of [A-Za-z0-9_.]; a digest keeps them unique.
    return f"{prefix}_{hashlib.sha1(rel.encode('utf-8'), usedforsecurity=False).hexdigest()}"


def _add_tree(parent: ET.Element, directory: Path, root: Path, components: list[str]) -> None:
    for entry in sorted(directory.iterdir()):
        rel = entry.relative_to(root).as_posix()
        if entry.is_dir():
            sub = ET.SubElement(parent, "Directory", Id=_wix_id("dir", rel), Name=entry.name)
            _add_tree(sub, entry, root, components)
            continue
        comp_id = _wix_id("cmp", rel)
        comp = ET.SubElement(parent, "Component", Id=comp_id, Guid="*")
        ET.SubElement(comp, "File", Id=_wix_id("fil", rel), Source=str(entry), KeyPath="yes")
        components.append(comp_id)


def wix_source(
    job: BundleJob,
    *,
    arch: str,
    payload: Path,
    cfg: WixConfig,
    language_id: int,
    icon: Path | None,
    license_rtf: Path | None,
) -> str:
    """Render the ``.wxs`` document for ``payload``."""
    meta = job.metadata
    main = job.binary_path.name
    if not main.endswith(".exe"):
        main += ".exe"

    wix = ET.Element("Wix", xmlns=WIX_NAMESPACE)
    product = ET.SubElement(
        wix,
        "Product",
        Id="*",
        Name=meta.product_name,
        Language=str(language_id),
        Version=numeric_version(meta.version, 3),
        Manufacturer=meta.bundle.publisher or meta.maintainer,
        UpgradeCode=upgrade_code(job, cfg),
    )
    ET.SubElement(
        product,
        "Package",
        InstallerVersion="500",
        Compressed="yes",
        InstallScope="perMachine",
        Platform=arch,
        Description=meta.summary,
    )
    ET.SubElement(
        product,
        "MajorUpgrade",
        DowngradeErrorMessage="A newer version of [ProductName] is already installed.",
    )
    ET.SubElement(product, "MediaTemplate", EmbedCab="yes")

    if icon is not None:
        ET.SubElement(product, "Icon", Id="ProductIcon", SourceFile=str(icon))
        ET.SubElement(product, "Property", Id="ARPPRODUCTICON", Value="ProductIcon")
    if meta.homepage:
        ET.SubElement(product, "Property", Id="ARPURLINFOABOUT", Value=meta.homepage)

    target = ET.SubElement(product, "Directory", Id="TARGETDIR", Name="SourceDir")
    program_files = "ProgramFilesFolder" if arch == "x86" else "ProgramFiles64Folder"
    pf = ET.SubElement(target, "Directory", Id=program_files)
    install_dir = ET.SubElement(pf, "Directory", Id="INSTALLDIR", Name=meta.product_name)
    menu = ET.SubElement(target, "Directory", Id="ProgramMenuFolder")
    app_menu = ET.SubElement(menu, "Directory", Id="ApplicationProgramsFolder", Name=meta.product_name)

    components: list[str] = []
    _add_tree(install_dir, payload, payload, components)

    shortcut = ET.SubElement(app_menu, "Component", Id="ApplicationShortcut", Guid="*")
    ET.SubElement(
        shortcut,
        "Shortcut",
        Id="ApplicationStartMenuShortcut",
        Name=meta.product_name,
        Description=meta.summary,
        Target=f"[INSTALLDIR]{main}",
        WorkingDirectory="INSTALLDIR",
    )
    ET.SubElement(
        shortcut, "RemoveFolder", Id="CleanUpShortCut", Directory="ApplicationProgramsFolder", On="uninstall"
    )
    ET.SubElement(
        shortcut,
        "RegistryValue",
        Root="HKCU",
        Key=f"Software\\{meta.bundle.publisher or meta.product_name}\\{meta.product_name}",
        Name="installed",
        Type="integer",
        Value="1",
        KeyPath="yes",
    )
    components.append("ApplicationShortcut")

    feature = ET.SubElement(product, "Feature", Id="MainFeature", Title=meta.product_name, Level="1")
    for comp_id in components:
        ET.SubElement(feature, "ComponentRef", Id=comp_id)

    if license_rtf is not None:
        ET.SubElement(product, "UIRef", Id="WixUI_Minimal")
        ET.SubElement(product, "WixVariable", Id="WixUILicenseRtf", Value=str(license_rtf))

    ET.indent(wix)
    return '<?xml version="1.0" encoding="utf-8"?>\n' + ET.tostring(wix, encoding="unicode") + "\n"


def _language(job: BundleJob, cfg: WixConfig) -> Result[tuple[str, int], BundlerFailure]:
    culture = (cfg.language or (DEFAULT_LANGUAGE,))[0]
    lcid = LANGUAGE_IDS.get(culture.lower())
    if lcid is None:
        known = ", ".join(sorted(LANGUAGE_IDS))
        return fail(job, "missing_asset", f"unsupported installer language {culture!r} (known: {known})")
    return Ok((culture.lower(), lcid))


def build_msi(job: BundleJob) -> BundleResult:
    arch = format_arch(job, job.arch.windows_name)
    if isinstance(arch, Err):
        return arch
    candle = require_tool(job, "candle")
    if isinstance(candle, Err):
        return candle
    light = require_tool(job, "light")
    if isinstance(light, Err):
        return light
    binaries = all_binaries(job)
    if isinstance(binaries, Err):
        return binaries

    cfg = (job.metadata.bundle.windows.wix if job.metadata.bundle.windows else None) or WixConfig()
    language = _language(job, cfg)
    if isinstance(language, Err):
        return language
    culture, lcid = language.value

    icon: Path | None = None
    if job.metadata.bundle.ico is not None:
        icon = job.resolve(job.metadata.bundle.ico)
        if not icon.is_file():
            return fail(job, "missing_icon", f"icon not found: {icon}")
    license_rtf: Path | None = None
    if cfg.license is not None:
        license_rtf = job.resolve(cfg.license)
        if not license_rtf.is_file():
            return fail(job, "missing_asset", f"license not found: {license_rtf}")

    payload = job.out_dir / "payload"
    wxs = job.out_dir / "main.wxs"
    wixobj = job.out_dir / "main.wixobj"
    output = job.out_dir / f"{job.product_name}_{job.version}_{arch.value}_{culture}.msi"
    try:
        if payload.exists():
            shutil.rmtree(payload)
        payload.mkdir(parents=True)
        for binary in binaries.value:
            name = binary.name if binary.name.endswith(".exe") else f"{binary.name}.exe"
            shutil.copy2(binary.path, payload / name)
        resources = copy_resources(job, payload)
        if isinstance(resources, Err):
            return resources
        wxs.write_text(
            wix_source(
                job,
                arch=arch.value,
                payload=payload,
                cfg=cfg,
                language_id=lcid,
                icon=icon,
                license_rtf=license_rtf,
            ),
            encoding="utf-8",
        )
    except OSError as e:
        return fail(job, "io_error", f"cannot stage msi build: {e}")

    job.console.info(f"packaging {output.name}")
    compiled = run_tool(
        job,
        [candle.value, "-nologo", "-arch", arch.value, "-out", str(wixobj), str(wxs)],
        cwd=job.out_dir,
    )
    if isinstance(compiled, Err):
        return compiled

    link = [light.value, "-nologo", f"-cultures:{culture}", "-out", str(output)]
    if license_rtf is not None:
        link += ["-ext", "WixUIExtension"]
    linked = run_tool(job, [*link, str(wixobj)], cwd=job.out_dir)
    if isinstance(linked, Err):
        return linked
    return finish(job, output)
