"""
Manifest Store
==============

Durable record of the vault's entries.

File Format (``<vault_root>/manifest.json``):
    {
        "version": 1,
        "entries": [
            {
                "id": "...",
                "stored_name": "...",
                "original_path": "/abs/path",
                "original_display_name": "photo.jpg" | null,
                "hidden_at": "2025-01-01T00:00:00+00:00"
            },
            ...
        ]
    }

Security Properties:
- Atomic replace on every save (temp file, fsync, rename)
- A manifest that exists but cannot be parsed is never treated as empty;
  load() raises ManifestCorrupt and leaves the file untouched
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Final, Iterable

from hidevault.core.errors import IOFailure, ManifestCorrupt, PersistenceFailed
from hidevault.core.file_ops.atomic import atomic_write_bytes
from hidevault.core.file_ops.directories import VaultDirectoryManager
from hidevault.core.models import VaultEntry


MANIFEST_VERSION: Final[int] = 1


@dataclass
class ConsistencyReport:
    """
    Divergence between the manifest and the vault directory.

    Attributes:
        missing_objects: Entries whose stored object is gone
        orphaned_objects: Stored names with no manifest entry
    """

    missing_objects: list[VaultEntry] = field(default_factory=list)
    orphaned_objects: list[str] = field(default_factory=list)

    @property
    def is_consistent(self) -> bool:
        return not self.missing_objects and not self.orphaned_objects


class ManifestStore:
    """
    Loads and atomically saves the entry list.

    Usage:
        store = ManifestStore(dirs)
        entries = store.load()
        store.save(entries)

    Not thread-safe by itself; the engine serialises access.
    """

    __slots__ = ("_dirs", "_log")

    def __init__(self, dirs: VaultDirectoryManager) -> None:
        self._dirs = dirs
        self._log = logging.getLogger("hidevault.manifest")

    @property
    def path(self) -> Path:
        return self._dirs.vault_root() / self._dirs.manifest_name

    def load(self) -> list[VaultEntry]:
        """
        Read the manifest.

        Returns:
            Entries in stored order; empty on first run

        Raises:
            ManifestCorrupt: File present but unreadable, unparsable,
                of an unknown version, or holding duplicate ids/names
            IOFailure: Vault root cannot be resolved
        """
        path = self.path
        try:
            raw = path.read_bytes()
        except FileNotFoundError:
            return []
        except OSError as e:
            raise ManifestCorrupt(f"Manifest unreadable: {e}") from e

        try:
            document = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as e:
            raise ManifestCorrupt(f"Manifest is not valid JSON: {e}") from e

        if not isinstance(document, dict) or document.get("version") != MANIFEST_VERSION:
            raise ManifestCorrupt("Manifest has an unknown layout or version")

        records = document.get("entries")
        if not isinstance(records, list):
            raise ManifestCorrupt("Manifest entries must be a list")

        entries: list[VaultEntry] = []
        seen_ids: set[str] = set()
        seen_names: set[str] = set()
        for index, record in enumerate(records):
            try:
                entry = VaultEntry.from_dict(record)
            except ValueError as e:
                raise ManifestCorrupt(f"Manifest record {index} is invalid: {e}") from e
            if entry.id in seen_ids or entry.stored_name in seen_names:
                raise ManifestCorrupt(f"Manifest record {index} duplicates an existing entry")
            seen_ids.add(entry.id)
            seen_names.add(entry.stored_name)
            entries.append(entry)

        self._log.debug("Loaded manifest with %d entries", len(entries))
        return entries

    def save(self, entries: Iterable[VaultEntry]) -> None:
        """
        Serialise the full entry list and atomically replace the manifest.

        Raises:
            PersistenceFailed: If the manifest could not be written
        """
        document = {
            "version": MANIFEST_VERSION,
            "entries": [entry.to_dict() for entry in entries],
        }
        payload = json.dumps(document, ensure_ascii=False, indent=2).encode("utf-8")

        try:
            atomic_write_bytes(self.path, payload)
        except (OSError, IOFailure) as e:
            self._log.error("Manifest save failed: %s", e)
            raise PersistenceFailed(f"Could not write manifest: {e}") from e

        self._log.debug("Saved manifest with %d entries", len(document["entries"]))

    def check_consistency(self, entries: Iterable[VaultEntry]) -> ConsistencyReport:
        """
        Compare entries against what is actually stored.

        Detection only; nothing is repaired.
        """
        stored = self._dirs.list_stored_names()
        report = ConsistencyReport()
        known: set[str] = set()

        for entry in entries:
            known.add(entry.stored_name)
            if entry.stored_name not in stored:
                report.missing_objects.append(entry)

        report.orphaned_objects = sorted(stored - known)
        return report
