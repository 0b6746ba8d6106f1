"""The bundling pipeline.

    resolve -> workspace -> acquire -> manifest -> build -> bundle -> deliver

Each stage returns a Result and the first Err stops the run. Everything after
workspace creation runs inside ``workspace_scope`` so the workspace is removed
on every path, and the failing stage's diagnostic is printed before removal.
"""

from __future__ import annotations

import tempfile
from pathlib import Path

from platbundle.core.config import ToolConfig
from platbundle.core.contracts import BundleRequest, ContractOutcome, PackageType
from platbundle.core.result import Err, Ok, Result
from platbundle.core.workspace import Workspace, create_workspace
from platbundle.output.console import ConsoleProtocol
from platbundle.output.errors import print_bundle_error
from platbundle.platform.detection import Arch, PlatformInfo, host_triple
from platbundle.platform.process import CommandRunner
from platbundle.services.acquire import acquire
from platbundle.services.build import BuildService
from platbundle.services.bundle_errors import BundleError, DirectoryCreationFailure
from platbundle.services.bundlers import BundleJob, bundle
from platbundle.services.contract import deliver, workspace_scope
from platbundle.services.manifest import read_metadata
from platbundle.services.source import ResolvedSource, resolve_source

__all__ = ["WINDOWS_CROSS_TARGET", "BundleService", "target_for"]

WINDOWS_CROSS_TARGET = "x86_64-pc-windows-gnu"


def target_for(platform: PackageType, explicit: str | None, host: PlatformInfo) -> str | None:
    """Triple to pass to cargo, or None for a plain host build.

    Windows installers requested from another OS build for the GNU Windows
    target unless one was given.
    """
    if explicit:
        return explicit
    if platform.is_windows and not host.is_windows:
        return WINDOWS_CROSS_TARGET
    return None


class BundleService:
    """Runs one ``BundleRequest`` end to end."""

    def __init__(
        self,
        *,
        config: ToolConfig,
        console: ConsoleProtocol,
        runner: CommandRunner,
        host: PlatformInfo,
    ) -> None:
        self._config = config
        self._console = console
        self._runner = runner
        self._host = host

    def bundle(self, request: BundleRequest) -> Result[ContractOutcome, BundleError]:
        """Bundle ``request.source`` for ``request.platform``.

        Errors are printed here, stage-qualified, before the workspace goes
        away; callers only map them to an exit code.
        """
        resolved = resolve_source(request.source, self._config.source)
        if isinstance(resolved, Err):
            print_bundle_error(resolved.error, self._console)
            return resolved

        created = create_workspace(
            prefix=self._config.workspace.prefix,
            temp_root=self._config.workspace.temp_root,
        )
        if isinstance(created, Err):
            error = DirectoryCreationFailure(
                path=created.error.path or self._config.workspace.temp_root or Path(tempfile.gettempdir()),
                reason=created.error.message,
            )
            print_bundle_error(error, self._console)
            return Err(error)

        with workspace_scope(created.value, self._console) as workspace:
            outcome = self._run(request, workspace, resolved.value)
            if isinstance(outcome, Err):
                print_bundle_error(outcome.error, self._console)
                self._console.debug(f"workspace at failure: {workspace.root}")
            return outcome

    def _run(
        self, request: BundleRequest, workspace: Workspace, source: ResolvedSource
    ) -> Result[ContractOutcome, BundleError]:
        acquired = acquire(
            source, workspace, runner=self._runner, config=self._config, console=self._console
        )
        if isinstance(acquired, Err):
            return acquired
        source_dir = acquired.value

        # Manifest problems (a missing version included) stop the run before cargo starts.
        metadata = read_metadata(source_dir, binary_name=request.binary_name, version=request.version)
        if isinstance(metadata, Err):
            return metadata
        meta = metadata.value
        self._console.info(f"{meta.binary_name} {meta.version}")

        cargo_target = target_for(request.platform, request.target_triple, self._host)
        builder = BuildService(
            runner=self._runner, config=self._config, console=self._console, host=self._host
        )
        built = builder.build(
            source_dir,
            meta.binary_name,
            target_triple=cargo_target,
            skip_build=request.skip_build,
        )
        if isinstance(built, Err):
            return built

        triple = cargo_target or host_triple(self._host)
        job = BundleJob(
            platform=request.platform,
            binary_path=built.value,
            metadata=meta,
            arch=Arch.from_triple(triple),
            triple=triple,
            source_dir=source_dir,
            scratch_dir=workspace.scratch_dir,
            runner=self._runner,
            tools=self._config.tools,
            timeout=self._config.timeouts.package,
            console=self._console,
        )
        try:
            job.out_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            return Err(DirectoryCreationFailure(path=job.out_dir, reason=str(e)))

        artifact = bundle(job)
        if isinstance(artifact, Err):
            return artifact
        self._console.debug(f"sha256 {artifact.value.sha256}")

        delivered = deliver(
            artifact.value,
            request.output_path,
            metadata=meta,
            release_dir=self._config.release.dir,
        )
        if isinstance(delivered, Err):
            return delivered
        return Ok(delivered.value)
