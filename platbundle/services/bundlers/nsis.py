"""Windows setup executable via NSIS (``makensis``).

The script is written as UTF-8 with a BOM so ``makensis`` reads non-ASCII
product names correctly on every host.
"""

from __future__ import annotations

import shutil
from pathlib import Path

from platbundle.core.result import Err
from platbundle.core.settings import NsisConfig
from platbundle.platform.files import atomic_write_text
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

__all__ = ["build_nsis", "nsis_script"]

DEFAULT_INSTALL_MODE = "currentUser"
DEFAULT_COMPRESSION = "lzma"
DEFAULT_LANGUAGES = ("English",)


def _escape(value: str) -> str:
    return value.replace("$", "$$")


def _quote(value: str) -> str:
    return '"' + value.replace('"', '$\\"') + '"'


def _text(value: str) -> str:
    """Quote literal text; ``$`` would otherwise start a variable."""
    return _quote(_escape(value))


def _install_mode_lines(mode: str, product: str, arch: str) -> list[str]:
    program_files = "$PROGRAMFILES" if arch == "x86" else "$PROGRAMFILES64"
    if mode == "both":
        return [
            "!define MULTIUSER_EXECUTIONLEVEL Highest",
            "!define MULTIUSER_MUI",
            "!define MULTIUSER_INSTALLMODE_COMMANDLINE",
            f"!define MULTIUSER_INSTALLMODE_INSTDIR {_text(product)}",
            "!include MultiUser.nsh",
        ]
    if mode == "perMachine":
        return [
            "RequestExecutionLevel admin",
            "InstallDir " + _quote(f"{program_files}\\{_escape(product)}"),
        ]
    return [
        "RequestExecutionLevel user",
        "InstallDir " + _quote(f"$LOCALAPPDATA\\Programs\\{_escape(product)}"),
    ]


def nsis_script(
    job: BundleJob, *, arch: str, payload: Path, binaries: list[str], cfg: NsisConfig
) -> str:
    """Render ``installer.nsi``. ``OUTPUT_FILE`` is defined on the command line."""
    meta = job.metadata
    product = meta.product_name
    mode = cfg.install_mode or DEFAULT_INSTALL_MODE
    compression = cfg.compression or DEFAULT_COMPRESSION
    publisher = meta.bundle.publisher or meta.maintainer
    version = numeric_version(meta.version, 4)
    main = _escape(binaries[0])
    installed_main = _quote(f"$INSTDIR\\{main}")
    shortcut = _quote(f"$SMPROGRAMS\\{_escape(product)}.lnk")
    uninstall_key = _text(f"Software\\Microsoft\\Windows\\CurrentVersion\\Uninstall\\{product}")

    lines: list[str] = ["Unicode true"]
    if compression == "none":
        lines.append("SetCompress off")
    else:
        lines.append(f"SetCompressor /SOLID {compression}")
    lines += [
        "!include MUI2.nsh",
        f"Name {_text(product)}",
        'OutFile "${OUTPUT_FILE}"',
        *_install_mode_lines(mode, product, arch),
        f"VIProductVersion {_text(version)}",
        f"VIAddVersionKey ProductName {_text(product)}",
        f"VIAddVersionKey ProductVersion {_text(meta.version)}",
        f"VIAddVersionKey FileVersion {_text(meta.version)}",
        f"VIAddVersionKey CompanyName {_text(publisher)}",
        f"VIAddVersionKey FileDescription {_text(meta.summary)}",
    ]
    if meta.bundle.copyright:
        lines.append(f"VIAddVersionKey LegalCopyright {_text(meta.bundle.copyright)}")

    if cfg.installer_icon:
        icon = _text(str(job.resolve(cfg.installer_icon)))
        lines += [f"!define MUI_ICON {icon}", f"!define MUI_UNICON {icon}"]
    if cfg.header_image:
        lines += [
            "!define MUI_HEADERIMAGE",
            f"!define MUI_HEADERIMAGE_BITMAP {_text(str(job.resolve(cfg.header_image)))}",
        ]
    if cfg.sidebar_image:
        lines.append(f"!define MUI_WELCOMEFINISHPAGE_BITMAP {_text(str(job.resolve(cfg.sidebar_image)))}")

    lines += [
        f"!define MUI_FINISHPAGE_RUN {installed_main}",
        "!insertmacro MUI_PAGE_WELCOME",
    ]
    if mode == "both":
        lines.append("!insertmacro MULTIUSER_PAGE_INSTALLMODE")
    lines += [
        "!insertmacro MUI_PAGE_DIRECTORY",
        "!insertmacro MUI_PAGE_INSTFILES",
        "!insertmacro MUI_PAGE_FINISH",
        "!insertmacro MUI_UNPAGE_CONFIRM",
        "!insertmacro MUI_UNPAGE_INSTFILES",
    ]
    for language in cfg.languages or DEFAULT_LANGUAGES:
        lines.append(f"!insertmacro MUI_LANGUAGE {_text(language)}")

    lines += ["", "Function .onInit"]
    if mode == "both":
        lines.append("  !insertmacro MULTIUSER_INIT")
    else:
        lines.append(f"  SetShellVarContext {'all' if mode == 'perMachine' else 'current'}")
    lines += ["FunctionEnd", "", "Function un.onInit"]
    if mode == "both":
        lines.append("  !insertmacro MULTIUSER_UNINIT")
    else:
        lines.append(f"  SetShellVarContext {'all' if mode == 'perMachine' else 'current'}")
    lines.append("FunctionEnd")

    lines += [
        "",
        'Section "Install"',
        '  SetOutPath "$INSTDIR"',
        "  File /r " + _text(f"{payload.as_posix()}/*"),
        '  WriteUninstaller "$INSTDIR\\uninstall.exe"',
        f"  CreateShortCut {shortcut} {installed_main}",
        f"  WriteRegStr SHCTX {uninstall_key} DisplayName {_text(product)}",
        f"  WriteRegStr SHCTX {uninstall_key} DisplayVersion {_text(meta.version)}",
        f"  WriteRegStr SHCTX {uninstall_key} Publisher {_text(publisher)}",
        f"  WriteRegStr SHCTX {uninstall_key} DisplayIcon {installed_main}",
        f'  WriteRegStr SHCTX {uninstall_key} UninstallString "$\\"$INSTDIR\\uninstall.exe$\\""',
        f"  WriteRegDWORD SHCTX {uninstall_key} NoModify 1",
        f"  WriteRegDWORD SHCTX {uninstall_key} NoRepair 1",
        "SectionEnd",
        "",
        'Section "Uninstall"',
        f"  Delete {shortcut}",
        '  RMDir /r "$INSTDIR"',
        f"  DeleteRegKey SHCTX {uninstall_key}",
        "SectionEnd",
    ]
    return "\r\n".join(lines) + "\r\n"


def build_nsis(job: BundleJob) -> BundleResult:
    arch = format_arch(job, job.arch.windows_name)
    if isinstance(arch, Err):
        return arch
    tool = require_tool(job, "makensis")
    if isinstance(tool, Err):
        return tool
    binaries = all_binaries(job)
    if isinstance(binaries, Err):
        return binaries

    cfg = (job.metadata.bundle.windows.nsis if job.metadata.bundle.windows else None) or NsisConfig()
    for image in (cfg.installer_icon, cfg.header_image, cfg.sidebar_image):
        if image is not None and not job.resolve(image).is_file():
            return fail(job, "missing_asset", f"installer image not found: {image}")

    payload = job.out_dir / "payload"
    script = job.out_dir / "installer.nsi"
    output = job.out_dir / f"{job.product_name}_{job.version}_{arch.value}-setup.exe"
    names: list[str] = []
    try:
        if payload.exists():
            shutil.rmtree(payload)
        payload.mkdir(parents=True)
        for binary in binaries.value:
            name = binary.name if binary.name.endswith(".exe") else f"{binary.name}.exe"
            shutil.copy2(binary.path, payload / name)
            names.append(name)
        resources = copy_resources(job, payload)
        if isinstance(resources, Err):
            return resources
        atomic_write_text(
            script,
            nsis_script(job, arch=arch.value, payload=payload, binaries=names, cfg=cfg),
            encoding="utf-8",
            bom=True,
        )
    except OSError as e:
        return fail(job, "io_error", f"cannot stage nsis build: {e}")

    job.console.info(f"packaging {output.name}")
    built = run_tool(
        job,
        [
            tool.value,
            "-V3",
            "-INPUTCHARSET",
            "UTF8",
            "-OUTPUTCHARSET",
            "UTF8",
            f"-DOUTPUT_FILE={output}",
            str(script),
        ],
        cwd=job.out_dir,
    )
    if isinstance(built, Err):
        return built
    return finish(job, output)
