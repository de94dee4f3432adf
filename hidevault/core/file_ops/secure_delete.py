"""
Secure Deletion Module
======================

Overwrite-then-unlink removal for plaintext that must not linger:
staged preview copies and originals the user chose to delete after an
Advanced hide.

Security Properties:
- Zero pass followed by a random pass, each flushed and fsynced
- Truncate before unlink
- Directories are emptied bottom-up

Recovery from SSDs with wear levelling or copy-on-write filesystems
remains possible; this narrows the window, it does not close it.
"""

from __future__ import annotations

import os
import secrets
import shutil
from pathlib import Path
from typing import Final


DEFAULT_OVERWRITE_PASSES: Final[int] = 2
BLOCK_SIZE: Final[int] = 64 * 1024


class SecureDeleteError(OSError):
    """Raised when secure deletion fails."""
    pass


def _overwrite(path: Path, passes: int) -> None:
    file_size = path.stat().st_size
    with open(path, "r+b") as f:
        for pass_num in range(passes):
            f.seek(0)
            written = 0
            while written < file_size:
                chunk_size = min(BLOCK_SIZE, file_size - written)
                if pass_num == 0:
                    f.write(bytes(chunk_size))
                else:
                    f.write(secrets.token_bytes(chunk_size))
                written += chunk_size
            f.flush()
            os.fsync(f.fileno())
        f.truncate(0)


def secure_delete(path: Path | str, passes: int = DEFAULT_OVERWRITE_PASSES) -> None:
    """
    Overwrite a regular file and remove it.

    Symlinks are unlinked without touching their target. A missing
    path is treated as already deleted.

    Raises:
        SecureDeleteError: If the path is not a file or removal fails
    """
    path = Path(path)

    if path.is_symlink():
        path.unlink()
        return
    if not path.exists():
        return
    if not path.is_file():
        raise SecureDeleteError(f"Not a file: {path}")

    try:
        _overwrite(path, passes)
        path.unlink()
    except OSError as e:
        raise SecureDeleteError(f"Secure deletion failed for {path}: {e}") from e

    if path.exists():
        raise SecureDeleteError(f"File still exists after deletion: {path}")


def secure_delete_tree(path: Path | str, passes: int = DEFAULT_OVERWRITE_PASSES) -> int:
    """
    Securely delete every file under a directory, then the directory.

    A plain file is handled like secure_delete().

    Returns:
        Number of files overwritten and removed

    Raises:
        SecureDeleteError: If any file or directory could not be removed
    """
    path = Path(path)

    if path.is_symlink() or path.is_file():
        secure_delete(path, passes)
        return 1
    if not path.exists():
        return 0

    count = 0
    for root, dirs, files in os.walk(path, topdown=False):
        for name in files:
            secure_delete(Path(root) / name, passes)
            count += 1
        for name in dirs:
            child = Path(root) / name
            if child.is_symlink():
                child.unlink()

    try:
        shutil.rmtree(path)
    except OSError as e:
        raise SecureDeleteError(f"Could not remove directory {path}: {e}") from e

    return count
