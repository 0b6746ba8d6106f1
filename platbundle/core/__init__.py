"""Core domain types and logic."""

from .config import ConfigError, ToolConfig, load_tool_config, resolve_tool_config
from .contracts import Artifact, BundleRequest, ContractOutcome, PackageType
from .errors import ErrorCode
from .result import Err, Ok, Result, is_err, is_ok
from .settings import BundleConfig
from .workspace import Workspace, WorkspaceError, create_workspace, remove_workspace

__all__ = [
    # config
    "ConfigError",
    "ToolConfig",
    "load_tool_config",
    "resolve_tool_config",
    # contracts
    "Artifact",
    "BundleRequest",
    "ContractOutcome",
    "PackageType",
    # errors
    "ErrorCode",
    # result
    "Err",
    "Ok",
    "Result",
    "is_err",
    "is_ok",
    # settings
    "BundleConfig",
    # workspace
    "Workspace",
    "WorkspaceError",
    "create_workspace",
    "remove_workspace",
]
