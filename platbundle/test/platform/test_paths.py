"""Tests for platbundle.platform.paths module."""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest

from platbundle.platform import paths
from platbundle.platform.detection import Platform, detect_platform


@pytest.fixture(autouse=True)
def _clear_path_caches() -> Iterator[None]:
    paths.clear_caches()
    yield
    paths.clear_caches()


@pytest.mark.skipif(detect_platform() != Platform.LINUX, reason="XDG layout")
class TestLinuxDirs:
    def test_xdg_config(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))
        assert paths.user_config_dir() == tmp_path / "platbundle"

    def test_xdg_data(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path))
        assert paths.user_data_dir() == tmp_path / "platbundle"

    def test_data_default(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("XDG_DATA_HOME", raising=False)
        monkeypatch.setenv("HOME", str(tmp_path))
        assert paths.user_data_dir() == tmp_path / ".local" / "share" / "platbundle"
