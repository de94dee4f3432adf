"""
Atomic file writes.

Data is written to a temp file in the destination directory, flushed
and fsynced, then published in one step, so a crash leaves either the
old file or the new one, never a torn write.

    atomic_write_bytes:    os.replace() over the destination
    exclusive_write_bytes: os.link() into place; an existing destination
                           is never touched
"""

from __future__ import annotations

import errno
import logging
import os
import tempfile
from pathlib import Path

from hidevault.core.file_ops.directories import TEMP_PREFIX


_log = logging.getLogger("hidevault.atomic")

# link() failures meaning "no hard links here" rather than a real error
_NO_LINK_ERRNOS = frozenset(
    code
    for code in (
        getattr(errno, "EPERM", None),
        getattr(errno, "ENOTSUP", None),
        getattr(errno, "EOPNOTSUPP", None),
        getattr(errno, "ENOSYS", None),
    )
    if code is not None
)


def _fsync_directory(directory: Path) -> None:
    # Not supported on Windows; the rename is still atomic there.
    if os.name != "posix":
        return
    fd = os.open(directory, os.O_RDONLY)
    try:
        os.fsync(fd)
    finally:
        os.close(fd)


def _sync_after_publish(directory: Path) -> None:
    # The file is already in place; a failed directory sync only weakens durability
    try:
        _fsync_directory(directory)
    except OSError as e:
        _log.warning("Could not fsync directory %s: %s", directory, e)


def _write_temp(directory: Path, data: bytes | bytearray, mode: int) -> Path:
    fd, tmp_name = tempfile.mkstemp(prefix=TEMP_PREFIX, suffix=".tmp", dir=directory)
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.chmod(tmp_path, mode)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise
    return tmp_path


def atomic_write_bytes(path: Path, data: bytes | bytearray, mode: int = 0o600) -> None:
    """
    Atomically create or replace ``path`` with ``data``.

    Raises:
        OSError: On any write failure; the temp file is removed first
    """
    directory = path.parent
    tmp_path = _write_temp(directory, data, mode)
    try:
        os.replace(tmp_path, path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise
    _sync_after_publish(directory)


def _exclusive_create(path: Path, data: bytes | bytearray, mode: int) -> None:
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL | getattr(os, "O_BINARY", 0), mode)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.chmod(path, mode)
    except BaseException:
        path.unlink(missing_ok=True)
        raise


def exclusive_write_bytes(path: Path, data: bytes | bytearray, mode: int = 0o600) -> None:
    """
    Create ``path`` with ``data``, failing if anything already exists there.

    The complete file is hard-linked into place, so the destination is
    either absent or fully written. Filesystems without hard links fall
    back to an O_EXCL create.

    Raises:
        FileExistsError: ``path`` exists; it is left untouched
        OSError: On any other write failure
    """
    directory = path.parent
    tmp_path = _write_temp(directory, data, mode)
    try:
        os.link(tmp_path, path)
    except FileExistsError:
        raise
    except OSError as e:
        if e.errno not in _NO_LINK_ERRNOS:
            raise
        _exclusive_create(path, data, mode)
    finally:
        tmp_path.unlink(missing_ok=True)
    _sync_after_publish(directory)
