"""
Security Level Settings
=======================

The chosen security level and the setup-completion flag live in
ordinary settings storage outside the vault. The engine receives a
SettingsStore at construction instead of reaching for a global.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from enum import Enum
from pathlib import Path

from hidevault.core.file_ops.atomic import atomic_write_bytes


class SecurityLevel(Enum):
    """User-selectable concealment modes."""

    UNSPECIFIED = "unspecified"
    FAST_HIDE = "fast_hide"
    ADVANCED = "advanced"


class SettingsStore(ABC):
    """Persistence interface for the security level."""

    @abstractmethod
    def load_security_level(self) -> SecurityLevel:
        """Return the saved level, UNSPECIFIED when none is saved."""

    @abstractmethod
    def save_security_level(self, level: SecurityLevel) -> None:
        """Persist a level and mark setup complete. UNSPECIFIED is ignored."""

    @abstractmethod
    def has_completed_setup(self) -> bool:
        """Whether a level was ever chosen."""


class JsonSettingsStore(SettingsStore):
    """
    SettingsStore backed by a small JSON file.

    File format:
        {"security_level": "advanced", "setup_complete": true}

    Unreadable or unknown values fall back to UNSPECIFIED so the host
    re-runs setup instead of guessing a mode.
    """

    __slots__ = ("_path", "_log")

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)
        self._log = logging.getLogger("hidevault.settings")

    def _read(self) -> dict:
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            self._log.warning("Settings file unreadable, using defaults: %s", e)
            return {}
        return data if isinstance(data, dict) else {}

    def load_security_level(self) -> SecurityLevel:
        raw = self._read().get("security_level")
        try:
            return SecurityLevel(raw)
        except ValueError:
            return SecurityLevel.UNSPECIFIED

    def has_completed_setup(self) -> bool:
        return bool(self._read().get("setup_complete", False))

    def save_security_level(self, level: SecurityLevel) -> None:
        if level is SecurityLevel.UNSPECIFIED:
            return

        data = self._read()
        data["security_level"] = level.value
        data["setup_complete"] = True

        self._path.parent.mkdir(parents=True, exist_ok=True)
        atomic_write_bytes(self._path, json.dumps(data).encode("utf-8"))
        self._log.info("Security level set to %s", level.value)
