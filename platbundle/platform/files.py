"""Filesystem helpers."""

from __future__ import annotations

import errno
import hashlib
import os
import shutil
import tempfile
from pathlib import Path

__all__ = [
    "atomic_write_bytes",
    "atomic_write_text",
    "make_executable",
    "move_into_place",
    "sha256_file",
]


def atomic_write_bytes(path: Path, content: bytes) -> None:
    """Write bytes to path atomically using temp file + replace."""
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{path.name}.",
        suffix=".tmp",
        dir=str(path.parent),
    )
    tmp_path = Path(tmp_name)

    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_path, path)
    finally:
        if tmp_path.exists():
            tmp_path.unlink(missing_ok=True)


def atomic_write_text(
    path: Path, content: str, *, encoding: str = "utf-8", bom: bool = False
) -> None:
    """Write text to path atomically. ``bom`` prefixes a UTF-8 byte order mark."""
    data = content.encode(encoding)
    if bom:
        data = b"\xef\xbb\xbf" + data
    atomic_write_bytes(path, data)


def make_executable(path: Path) -> None:
    mode = path.stat().st_mode
    path.chmod(mode | 0o755)


def sha256_file(path: Path) -> str:
    h = hashlib.sha256()
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(1024 * 1024), b""):
            h.update(chunk)
    return h.hexdigest()


def move_into_place(src: Path, dst: Path) -> None:
    """Move a file to dst, replacing any existing file, never exposing a partial dst.

    A same-filesystem move is one rename. Across filesystems the file is copied
    to a temp file beside dst, flushed, renamed over dst, and only then is src
    removed.

    Raises:
        OSError: The move failed. dst is either untouched or fully replaced.
    """
    try:
        os.replace(src, dst)
        return
    except OSError as e:
        if e.errno != errno.EXDEV:
            raise

    fd, tmp_name = tempfile.mkstemp(prefix=f".{dst.name}.", suffix=".tmp", dir=str(dst.parent))
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as out, src.open("rb") as inp:
            shutil.copyfileobj(inp, out, 1024 * 1024)
            out.flush()
            os.fsync(out.fileno())
        shutil.copymode(src, tmp_path)
        os.replace(tmp_path, dst)
    finally:
        if tmp_path.exists():
            tmp_path.unlink(missing_ok=True)
    src.unlink()
