"""Tests for platbundle.services.acquire."""

from __future__ import annotations

from pathlib import Path

import pytest

from platbundle.core.config import SourceSettings, TimeoutSettings, ToolConfig, ToolsSettings
from platbundle.core.result import Err, Ok
from platbundle.core.workspace import Workspace
from platbundle.git.repository import GitError
from platbundle.output.console import MockConsole
from platbundle.services.acquire import acquire, classify_clone_failure
from platbundle.services.source import LocalPath, RepoShorthand, RepoUrl
from platbundle.test._fakes import FAKE_COMMIT, FakeRunner, failure, write_project


def _workspace(tmp_path: Path) -> Workspace:
    root = tmp_path / "ws"
    (root / "scratch").mkdir(parents=True)
    return Workspace(root=root)


@pytest.mark.parametrize(
    ("message", "cause"),
    [
        ("fatal: Authentication failed for 'https://github.com/acme/x.git/'", "authentication"),
        ("fatal: could not read Username for 'https://github.com': terminal prompts disabled", "authentication"),
        ("git@github.com: Permission denied (publickey).", "authentication"),
        ("remote: Repository not found.\nfatal: repository 'https://github.com/acme/x.git/' not found", "not_found"),
        ("fatal: '/srv/x.git' does not appear to be a git repository", "not_found"),
        ("fatal: unable to access 'https://github.com/': Could not resolve host: github.com", "network"),
        ("fatal: unable to access 'https://10.0.0.1/x.git/': Failed to connect to 10.0.0.1", "network"),
        ("fetch-pack: unexpected disconnect while reading sideband packet\nfatal: early EOF", "network"),
        ("fatal: something unusual happened", "unknown"),
    ],
)
def test_classify_clone_failure(message: str, cause: str) -> None:
    assert classify_clone_failure(GitError(command="clone", message=message)) == cause


def test_authentication_wins_over_not_found() -> None:
    # GitHub answers private repositories with "not found" after a failed login.
    error = GitError(command="clone", message="remote: Invalid username or password.\nfatal: not found")
    assert classify_clone_failure(error) == "authentication"


def test_acquire_clones_shorthand_into_workspace(tmp_path: Path) -> None:
    origin = write_project(tmp_path / "origin")
    runner = FakeRunner(origin=origin)
    workspace = _workspace(tmp_path)
    console = MockConsole()

    result = acquire(
        RepoShorthand("acme", "hello"), workspace, runner=runner, config=ToolConfig(), console=console
    )

    assert result == Ok(workspace.source_dir)
    assert (workspace.source_dir / "Cargo.toml").is_file()
    clone = runner.calls_to("git")[0]
    assert "https://github.com/acme/hello.git" in clone.cmd
    assert clone.timeout == ToolConfig().timeouts.clone
    assert "info: cloning https://github.com/acme/hello.git" in console.messages
    assert f"debug: HEAD {FAKE_COMMIT}" in console.messages


def test_local_source_is_cloned_from_its_repository(tmp_path: Path) -> None:
    local = write_project(tmp_path / "checkout")
    (local / "untracked.txt").write_text("local edit\n", encoding="utf-8")
    origin = write_project(tmp_path / "origin")
    runner = FakeRunner(origin=origin)
    workspace = _workspace(tmp_path)

    result = acquire(
        LocalPath(local, "https://github.com/acme/hello.git"),
        workspace,
        runner=runner,
        config=ToolConfig(),
        console=MockConsole(),
    )

    assert isinstance(result, Ok)
    assert "https://github.com/acme/hello.git" in runner.calls_to("git")[0].cmd
    assert not (workspace.source_dir / "untracked.txt").exists()
    assert (local / "untracked.txt").is_file()


def test_acquire_honors_config(tmp_path: Path) -> None:
    runner = FakeRunner(origin=write_project(tmp_path / "origin"))
    config = ToolConfig(
        source=SourceSettings(clone_depth=10),
        tools=ToolsSettings(overrides={"git": "/opt/git/bin/git"}),
        timeouts=TimeoutSettings(clone=5.0),
    )

    acquire(RepoUrl("https://x.org/a/b.git"), _workspace(tmp_path), runner=runner, config=config, console=MockConsole())

    clone = runner.calls[0]
    assert clone.cmd[0] == "/opt/git/bin/git"
    assert "--depth=10" in clone.cmd
    assert clone.timeout == 5.0


def test_acquire_failure_is_classified(tmp_path: Path) -> None:
    runner = FakeRunner(
        handlers={
            "git": lambda cmd, cwd, env: failure(
                cmd, "fatal: unable to access 'https://x.org/': Could not resolve host: x.org", 128
            )
        }
    )

    result = acquire(
        RepoUrl("https://x.org/a/b.git"), _workspace(tmp_path), runner=runner, config=ToolConfig(), console=MockConsole()
    )

    assert isinstance(result, Err)
    assert result.error.url == "https://x.org/a/b.git"
    assert result.error.cause == "network"
    assert "Could not resolve host" in result.error.detail
