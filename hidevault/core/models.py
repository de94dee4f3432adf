"""
Vault Data Model
================

VaultEntry is the persisted record of one hidden item. The transform
mode that produced it is an explicit tagged variant:

    FastHide(display_name)  - item was moved under an opaque name
    Advanced()              - item was sealed with the vault key

On disk the variant is encoded as the optional ``original_display_name``
field (present and non-empty for Fast-Hide, null for Advanced).
Advanced entries may also carry ``file_mode``, the permission bits of
the original file.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional, Union


@dataclass(frozen=True, slots=True)
class FastHide:
    """Rename-and-move concealment; no encryption."""

    display_name: str

    def __post_init__(self) -> None:
        if not self.display_name:
            raise ValueError("Fast-Hide entries need a display name")


@dataclass(frozen=True, slots=True)
class Advanced:
    """Authenticated-encryption concealment."""


HideMode = Union[FastHide, Advanced]


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True, slots=True)
class VaultEntry:
    """
    One hidden item.

    Attributes:
        id: Opaque unique identifier, assigned at creation
        stored_name: Object name under the vault root
        original_path: Absolute path the item was hidden from
        mode: FastHide or Advanced
        hidden_at: UTC ISO-8601 timestamp of the hide
        file_mode: Permission bits of an encrypted original, restored on
            unhide; None for Fast-Hide entries and older manifests
    """

    id: str
    stored_name: str
    original_path: Path
    mode: HideMode
    hidden_at: str = field(default_factory=_utc_now)
    file_mode: Optional[int] = None

    @classmethod
    def create(
        cls,
        stored_name: str,
        original_path: Path,
        mode: HideMode,
        file_mode: Optional[int] = None,
    ) -> VaultEntry:
        """Build a new entry with a fresh id."""
        return cls(
            id=str(uuid.uuid4()),
            stored_name=stored_name,
            original_path=Path(original_path),
            mode=mode,
            file_mode=file_mode,
        )

    @property
    def is_fast_hide(self) -> bool:
        return isinstance(self.mode, FastHide)

    @property
    def display_name(self) -> str:
        """Human-readable name for lists and staged previews."""
        if isinstance(self.mode, FastHide):
            return self.mode.display_name
        return self.original_path.name

    def to_dict(self) -> dict[str, Any]:
        record: dict[str, Any] = {
            "id": self.id,
            "stored_name": self.stored_name,
            "original_path": str(self.original_path),
            "original_display_name": (
                self.mode.display_name if isinstance(self.mode, FastHide) else None
            ),
            "hidden_at": self.hidden_at,
        }
        if self.file_mode is not None:
            record["file_mode"] = self.file_mode
        return record

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> VaultEntry:
        """
        Rebuild an entry from its manifest record.

        Raises:
            ValueError: If a required field is missing or has the wrong type
        """
        if not isinstance(data, dict):
            raise ValueError("Manifest record must be an object")

        entry_id = data.get("id")
        stored_name = data.get("stored_name")
        original_path = data.get("original_path")
        display_name = data.get("original_display_name")

        for name, value in (("id", entry_id), ("stored_name", stored_name), ("original_path", original_path)):
            if not isinstance(value, str) or not value:
                raise ValueError(f"Manifest record has invalid {name!r}")
        if display_name is not None and not isinstance(display_name, str):
            raise ValueError("Manifest record has invalid 'original_display_name'")

        file_mode = data.get("file_mode")
        if file_mode is not None and (
            not isinstance(file_mode, int) or isinstance(file_mode, bool) or not 0 <= file_mode <= 0o7777
        ):
            raise ValueError("Manifest record has invalid 'file_mode'")

        mode: HideMode = FastHide(display_name) if display_name else Advanced()
        hidden_at = data.get("hidden_at")

        return cls(
            id=entry_id,
            stored_name=stored_name,
            original_path=Path(original_path),
            mode=mode,
            hidden_at=hidden_at if isinstance(hidden_at, str) else "",
            file_mode=file_mode,
        )

    def __repr__(self) -> str:
        kind = "fast-hide" if self.is_fast_hide else "advanced"
        return f"VaultEntry(id={self.id!r}, mode={kind}, stored_name={self.stored_name!r})"
