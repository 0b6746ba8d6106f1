"""Bundle command - build a project and deliver one installation package."""

from __future__ import annotations

from pathlib import Path

import typer

from platbundle.cli.context import build_context
from platbundle.core.contracts import BundleRequest, PackageType
from platbundle.core.errors import ErrorCode
from platbundle.core.result import Err, Ok
from platbundle.output.console import Style
from platbundle.output.errors import bundle_error_exit_code
from platbundle.services.pipeline import BundleService


def bundle(
    source: str = typer.Option(
        ...,
        "--source",
        "--repo-path",
        "-r",
        help="Local project path, org/repo shorthand, or git URL",
    ),
    platform: str = typer.Option(
        ...,
        "--platform",
        "-p",
        help=f"Package format: {', '.join(PackageType.choices())} (aliases: macos-bundle, exe)",
    ),
    output_binary: Path | None = typer.Option(
        None,
        "--output-binary",
        "-o",
        help="Exact path the package is moved to",
        show_default=False,
    ),
    no_build: bool = typer.Option(False, "--no-build", help="Use an already-built binary"),
    target: str | None = typer.Option(
        None, "--target", "-t", help="Compiler target triple", show_default=False
    ),
    binary_name: str | None = typer.Option(
        None, "--binary-name", "-b", help="Override the manifest binary name", show_default=False
    ),
    version: str | None = typer.Option(
        None, "--version", "-v", help="Override the manifest version", show_default=False
    ),
    verbose: bool = typer.Option(False, "--verbose", "-V", help="Show tool commands and paths"),
    config: Path | None = typer.Option(
        None, "--config", help="Tool configuration file", show_default=False
    ),
) -> None:
    """Build a project and package it for one platform."""
    ctx = build_context(verbose=verbose, config_path=config)

    package_type = PackageType.parse(platform)
    if package_type is None:
        ctx.console.error(f"unknown platform '{platform}'")
        ctx.console.print(f"Available: {', '.join(PackageType.choices())}", Style.DIM)
        raise typer.Exit(code=int(ErrorCode.USER_ERROR))

    request = BundleRequest(
        source=source,
        platform=package_type,
        output_path=output_binary,
        skip_build=no_build,
        target_triple=target,
        binary_name=binary_name,
        version=version,
    )
    service = BundleService(
        config=ctx.config,
        console=ctx.console,
        runner=ctx.runner,
        host=ctx.platform,
    )

    match service.bundle(request):
        case Ok(outcome):
            if not outcome.contract_asserted:
                ctx.console.print(f"no --output-binary given; release kept at {outcome.final_path}", Style.DIM)
            ctx.console.success(str(outcome.final_path))
        case Err(error):
            # Already reported by the pipeline, before workspace removal.
            raise typer.Exit(code=bundle_error_exit_code(error))
