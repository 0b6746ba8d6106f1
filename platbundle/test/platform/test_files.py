"""Tests for platbundle.platform.files module."""

from __future__ import annotations

import errno
import hashlib
import os
import stat
import sys
from pathlib import Path

import pytest

from platbundle.platform.files import (
    atomic_write_bytes,
    atomic_write_text,
    make_executable,
    move_into_place,
    sha256_file,
)


class TestAtomicWrite:
    def test_creates_parents(self, tmp_path: Path) -> None:
        path = tmp_path / "a" / "b" / "file.bin"
        atomic_write_bytes(path, b"data")
        assert path.read_bytes() == b"data"

    def test_no_temp_left_behind(self, tmp_path: Path) -> None:
        atomic_write_text(tmp_path / "f.txt", "x")
        assert [p.name for p in tmp_path.iterdir()] == ["f.txt"]

    def test_bom(self, tmp_path: Path) -> None:
        path = tmp_path / "installer.nsi"
        atomic_write_text(path, "Name \"Café\"", bom=True)
        data = path.read_bytes()
        assert data.startswith(b"\xef\xbb\xbf")
        assert data[3:].decode("utf-8") == "Name \"Café\""


class TestSha256:
    def test_matches_hashlib(self, tmp_path: Path) -> None:
        path = tmp_path / "f"
        path.write_bytes(b"abc" * 1000)
        assert sha256_file(path) == hashlib.sha256(b"abc" * 1000).hexdigest()


@pytest.mark.skipif(sys.platform == "win32", reason="POSIX modes")
class TestMakeExecutable:
    def test_sets_exec_bits(self, tmp_path: Path) -> None:
        path = tmp_path / "tool"
        path.write_text("#!/bin/sh\n", encoding="utf-8")
        path.chmod(0o644)
        make_executable(path)
        assert path.stat().st_mode & stat.S_IXUSR


class TestMoveIntoPlace:
    def test_same_filesystem(self, tmp_path: Path) -> None:
        src = tmp_path / "src.deb"
        dst = tmp_path / "out" / "final.deb"
        dst.parent.mkdir()
        src.write_bytes(b"pkg")

        move_into_place(src, dst)

        assert dst.read_bytes() == b"pkg"
        assert not src.exists()

    def test_overwrites_existing(self, tmp_path: Path) -> None:
        src = tmp_path / "src"
        dst = tmp_path / "dst"
        src.write_bytes(b"new")
        dst.write_bytes(b"old")

        move_into_place(src, dst)

        assert dst.read_bytes() == b"new"

    def test_cross_filesystem_copies_then_removes(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        src = tmp_path / "src"
        dst = tmp_path / "out" / "dst"
        dst.parent.mkdir()
        src.write_bytes(b"payload")
        dst.write_bytes(b"old")
        real_replace = os.replace

        def fake_replace(a: str | os.PathLike[str], b: str | os.PathLike[str]) -> None:
            if Path(a) == src:
                raise OSError(errno.EXDEV, "Invalid cross-device link")
            real_replace(a, b)

        monkeypatch.setattr(os, "replace", fake_replace)

        move_into_place(src, dst)

        assert dst.read_bytes() == b"payload"
        assert not src.exists()
        assert sorted(p.name for p in dst.parent.iterdir()) == ["dst"]

    def test_other_errors_propagate(self, tmp_path: Path) -> None:
        with pytest.raises(OSError):
            move_into_place(tmp_path / "missing", tmp_path / "dst")
