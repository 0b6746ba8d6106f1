from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import typer

from platbundle.core.config import ToolConfig, resolve_tool_config
from platbundle.core.errors import ErrorCode
from platbundle.core.result import Err
from platbundle.output.console import ConsoleProtocol, RichConsole
from platbundle.platform.detection import PlatformInfo, detect
from platbundle.platform.paths import user_config_dir
from platbundle.platform.process import CommandRunner, ProcessRunner


@dataclass(frozen=True, slots=True)
class CLIContext:
    console: ConsoleProtocol
    platform: PlatformInfo
    config: ToolConfig
    runner: CommandRunner


def build_context(*, verbose: bool = False, config_path: Path | None = None) -> CLIContext:
    console = RichConsole(verbose=verbose)

    config_result = resolve_tool_config(config_path, default_dir=user_config_dir())
    if isinstance(config_result, Err):
        error = config_result.error
        where = f" ({error.path})" if error.path else ""
        console.error(f"config: {error.message}{where}")
        raise typer.Exit(code=int(ErrorCode.ENV_ERROR))

    config = config_result.value
    if config.path is not None:
        console.debug(f"config: {config.path}")

    return CLIContext(
        console=console,
        platform=detect(),
        config=config,
        runner=ProcessRunner(),
    )
