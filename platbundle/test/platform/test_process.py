"""Tests for platbundle.platform.process module."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

from platbundle.core.result import Err, Ok
from platbundle.platform.process import ProcessError, ProcessRunner, run


class TestProcessError:
    def test_str_short_command(self) -> None:
        error = ProcessError(("git", "clone"), 128, "", "fatal: repository not found")
        assert str(error) == "git clone failed (exit 128)"

    def test_str_long_command_truncated(self) -> None:
        error = ProcessError(("dpkg-deb", "--build", "--root-owner-group", "root", "out"), 2, "", "")
        assert str(error) == "dpkg-deb --build --root-owner-group ... failed (exit 2)"

    def test_frozen(self) -> None:
        error = ProcessError(("cmd",), 1, "", "")
        with pytest.raises(AttributeError):
            error.returncode = 2  # type: ignore[misc]


class TestRun:
    def test_success_returns_stdout(self, tmp_path: Path) -> None:
        result = run([sys.executable, "-c", "print('hello')"], cwd=tmp_path)

        assert isinstance(result, Ok)
        assert "hello" in result.value

    def test_failure_keeps_stderr(self, tmp_path: Path) -> None:
        result = run(
            [sys.executable, "-c", "import sys; sys.stderr.write('bad'); sys.exit(42)"],
            cwd=tmp_path,
        )

        assert isinstance(result, Err)
        assert result.error.returncode == 42
        assert "bad" in result.error.stderr

    def test_command_not_found(self, tmp_path: Path) -> None:
        result = run(["nonexistent_command_12345"], cwd=tmp_path)

        assert isinstance(result, Err)
        assert result.error.returncode == -1
        assert not result.error.timed_out

    def test_timeout(self, tmp_path: Path) -> None:
        result = run([sys.executable, "-c", "import time; time.sleep(5)"], cwd=tmp_path, timeout=0.2)

        assert isinstance(result, Err)
        assert result.error.timed_out
        assert "timed out" in result.error.stderr

    def test_uses_cwd(self, tmp_path: Path) -> None:
        result = run([sys.executable, "-c", "import os; print(os.getcwd())"], cwd=tmp_path)

        assert isinstance(result, Ok)
        assert Path(result.value.strip()).resolve() == tmp_path.resolve()

    def test_env(self, tmp_path: Path) -> None:
        import os

        env = dict(os.environ)
        env["PLATBUNDLE_TEST_VALUE"] = "42"
        result = run(
            [sys.executable, "-c", "import os; print(os.environ['PLATBUNDLE_TEST_VALUE'])"],
            cwd=tmp_path,
            env=env,
        )

        assert result == Ok("42\n")


class TestProcessRunner:
    def test_delegates(self, tmp_path: Path) -> None:
        runner = ProcessRunner()
        assert isinstance(runner.run([sys.executable, "-c", "pass"], tmp_path), Ok)
        assert runner.which("nonexistent_command_12345") is None
