"""
Path Utilities
==============

OS-aware path helpers used by the vault directory manager.
"""

from __future__ import annotations

import os
import platform
import re
import subprocess
from pathlib import Path
from typing import Final

# Characters not allowed in filenames across all platforms
_UNSAFE_CHARS: Final[re.Pattern[str]] = re.compile(r'[<>:"/\\|?*\x00-\x1f]')


def sanitize_filename(filename: str, replacement: str = "_") -> str:
    """
    Make a display name safe to use as a single path component.

    Args:
        filename: The name to sanitize
        replacement: Character to replace unsafe chars with

    Returns:
        Sanitized filename

    Raises:
        ValueError: If nothing usable remains
    """
    if not filename:
        raise ValueError("Filename cannot be empty")

    sanitized = _UNSAFE_CHARS.sub(replacement, filename)
    sanitized = sanitized.strip(" ")
    if sanitized in ("", ".", ".."):
        raise ValueError("Filename becomes empty after sanitization")

    return sanitized[:255]


def make_private_dir(path: Path) -> Path:
    """Create a directory (and parents) readable by the owner only."""
    path.mkdir(mode=0o700, parents=True, exist_ok=True)
    if platform.system().lower() != "windows":
        path.chmod(0o700)
    return path


def open_with_default_viewer(path: Path) -> None:
    """
    Hand a file to the operating system's default application.

    Raises:
        OSError: If the launcher cannot be started
    """
    system = platform.system().lower()

    if system == "windows":
        os.startfile(str(path))  # type: ignore[attr-defined]
    elif system == "darwin":
        subprocess.Popen(["open", str(path)])
    else:
        subprocess.Popen(["xdg-open", str(path)])
