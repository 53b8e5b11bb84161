"""Atomic file writes and advisory locks for key, allowlist and state files.

Writes go to a temporary file in the destination directory, are fsynced,
given their final permission bits and then moved into place with
:func:`os.replace`, so readers never observe a partially written file.
"""

from __future__ import annotations

import enum
import logging
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import IO, Iterator

import portalocker

from .errors import KeyStorageError

__all__ = ["FileAccess", "acquire_lock", "atomic_write", "read_file"]

LOGGER = logging.getLogger(__name__)


class FileAccess(enum.IntEnum):
    """Permission capability granted to a file at creation time."""

    OWNER_READ_ONLY = 0o400
    OWNER_READ_WRITE = 0o600
    WORLD_READABLE = 0o644

    @property
    def owner_only(self) -> bool:
        return not self.value & 0o077


def _fsync_directory(path: Path) -> None:
    """Durably flush directory metadata when supported by the platform."""
    if os.name == "nt":  # pragma: no cover - Windows does not need dir fsync
        return
    flags = getattr(os, "O_DIRECTORY", None)
    if flags is None:  # pragma: no cover - platform without O_DIRECTORY
        return
    fd = os.open(str(path), flags)
    try:
        os.fsync(fd)
    finally:
        os.close(fd)


def atomic_write(path: Path, data: bytes | bytearray, access: FileAccess) -> Path:
    """Atomically replace ``path`` with ``data`` using ``access`` permissions.

    The temporary file is created by :func:`tempfile.mkstemp`, which opens it
    with mode ``0o600``, so the content is never readable by other principals
    before the final mode is applied.

    Raises:
        KeyStorageError: On any filesystem failure. No file is left at
            ``path`` when the write fails.
    """
    path = Path(path)
    directory = path.parent if str(path.parent) else Path(".")
    temp_path: Path | None = None
    try:
        fd, temp_name = tempfile.mkstemp(
            prefix=f".{path.name}.", suffix=".tmp", dir=str(directory)
        )
        temp_path = Path(temp_name)
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.chmod(temp_path, int(access))
        os.replace(temp_path, path)
        temp_path = None
    except OSError as exc:
        raise KeyStorageError(f"Failed to write {path}: {exc}") from exc
    finally:
        if temp_path is not None:
            temp_path.unlink(missing_ok=True)

    try:
        _fsync_directory(directory)
    except OSError as exc:
        LOGGER.warning(
            "Failed to fsync directory",
            extra={"path": str(directory), "error": str(exc)},
        )
    return path


def read_file(path: Path) -> bytes:
    """Read ``path`` fully, translating OS failures to :class:`KeyStorageError`."""
    try:
        with Path(path).open("rb") as handle:
            return handle.read()
    except OSError as exc:
        raise KeyStorageError(f"Failed to read {path}: {exc}") from exc


@contextmanager
def acquire_lock(target: Path) -> Iterator[IO[bytes]]:
    """Hold an exclusive advisory lock on ``<target>.lock`` for the block."""
    lock_path = target.with_name(target.name + ".lock")
    try:
        lock_path.parent.mkdir(parents=True, exist_ok=True)
        lock_fp = lock_path.open("a+b")
    except OSError as exc:
        raise KeyStorageError(f"Failed to open lock file {lock_path}: {exc}") from exc
    with lock_fp:
        portalocker.lock(lock_fp, portalocker.LOCK_EX)
        try:
            yield lock_fp
        finally:
            portalocker.unlock(lock_fp)
