"""
Vault Engine
============

The single entry point a host application talks to. It owns the
in-memory entry collection and its manifest, runs hide batches in the
background and exposes a snapshot plus change events for the UI.

Usage:
    engine = open_vault()
    engine.subscribe(print)
    engine.security_level = SecurityLevel.ADVANCED
    job = engine.request_hide_files(["/home/me/report.pdf"])
    summary = job.wait()
    if summary.offers_delete_originals:
        engine.confirm_delete_originals()

Concurrency:
    One interactive caller plus one background batch worker. Every read
    or write of the entry collection, and every manifest save, happens
    under a single RLock. File transforms run outside the lock.

Failure Reporting:
    Interactive requests return an OperationResult per id; they never
    raise for a per-item failure. PersistenceFailed after a successful
    transform keeps the in-memory change and is reported with
    ``persisted=False``; the next successful save catches the manifest up.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Iterable, Optional

from hidevault.core.config import HideVaultConfig
from hidevault.core.crypto.key_store import KeyStore
from hidevault.core.errors import (
    EntryNotFound,
    IOFailure,
    JobAlreadyRunning,
    PersistenceFailed,
    SecuritySettingUnspecified,
    VaultError,
)
from hidevault.core.file_ops.directories import VaultDirectoryManager
from hidevault.core.file_ops.manifest import ConsistencyReport, ManifestStore
from hidevault.core.file_ops.secure_delete import SecureDeleteError, secure_delete
from hidevault.core.file_ops.transform import TransformEngine
from hidevault.core.jobs import BackgroundJobRunner, BatchSummary, HideJob
from hidevault.core.lifecycle import StagingPurgeTimer
from hidevault.core.logging import configure_logging
from hidevault.core.models import VaultEntry
from hidevault.core.settings import JsonSettingsStore, SecurityLevel, SettingsStore
from hidevault.utils.paths import open_with_default_viewer
from hidevault.utils.validators import ValidationError, validate_source_path


Viewer = Callable[[Path], None]


class EventKind(Enum):
    ENTRIES_CHANGED = "entries_changed"
    PROGRESS = "progress"
    BATCH_FINISHED = "batch_finished"
    NOTICE = "notice"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class VaultEvent:
    kind: EventKind
    message: str = ""
    payload: Any = None


Listener = Callable[[VaultEvent], None]


@dataclass(frozen=True, slots=True)
class EntryView:
    """Read-only projection of an entry for display."""

    id: str
    display_name: str
    original_path: Path
    is_encrypted: bool
    hidden_at: str


@dataclass(frozen=True, slots=True)
class VaultSnapshot:
    entries: tuple[EntryView, ...]
    is_processing: bool
    status_text: str
    security_level: SecurityLevel
    pending_originals: int


@dataclass(frozen=True, slots=True)
class OperationResult:
    """
    Outcome of one interactive request.

    Attributes:
        id: Entry id the request targeted
        ok: True if the file-level operation happened
        error: The failure when ok is False, or PersistenceFailed when
            the operation happened but the manifest could not be saved
        persisted: False if the manifest on disk is stale
        path: Restored or staged path, where applicable
    """

    id: str
    ok: bool
    error: Optional[VaultError] = None
    persisted: bool = True
    path: Optional[Path] = None

    @property
    def message(self) -> str:
        return self.error.user_message if self.error is not None else ""


class VaultEngine:
    """
    Facade over the transform engine, manifest and job runner.

    Call load() once before use; requests made before that load lazily.
    """

    def __init__(
        self,
        config: HideVaultConfig,
        settings_store: SettingsStore,
        key_store: KeyStore,
        viewer: Viewer = open_with_default_viewer,
    ) -> None:
        self._config = config
        self._settings = settings_store
        self._key_store = key_store
        self._viewer = viewer

        self._dirs = VaultDirectoryManager(config)
        self._manifest = ManifestStore(self._dirs)
        self._transform = TransformEngine(self._dirs, key_store)
        self._runner = BackgroundJobRunner()
        self._purge_timer = StagingPurgeTimer(
            config.vault.staging_grace_seconds,
            self._dirs.purge_staging,
        )

        self._lock = threading.RLock()
        self._entries: dict[str, VaultEntry] = {}
        self._loaded = False
        self._manifest_stale = False
        self._pending_originals: list[tuple[str, Path]] = []
        self._status_text = ""
        self._consistency = ConsistencyReport()

        self._listeners: list[Listener] = []
        self._listeners_lock = threading.Lock()
        self._log = logging.getLogger("hidevault.engine")

    # ------------------------------------------------------------------
    # lifecycle

    def load(self) -> ConsistencyReport:
        """
        Load the manifest and check it against the vault directory.

        Raises:
            ManifestCorrupt: The manifest exists but cannot be used
            IOFailure: The vault directory cannot be created
        """
        with self._lock:
            entries = self._manifest.load()
            self._entries = {entry.id: entry for entry in entries}
            self._loaded = True
            self._manifest_stale = False
            report = self._manifest.check_consistency(entries)
            self._consistency = report

        if not report.is_consistent:
            self._log.warning(
                "Vault diverges from manifest: %d missing object(s), %d orphaned object(s)",
                len(report.missing_objects),
                len(report.orphaned_objects),
            )
        self._log.info("Vault loaded with %d entries", len(entries))
        self._emit(EventKind.ENTRIES_CHANGED)
        return report

    def close(self, timeout: Optional[float] = None) -> None:
        """Wait for a running batch, purge staged previews and drop the key."""
        self._runner.wait_idle(timeout)
        self._purge_timer.purge_now()
        self._key_store.forget_cached_key()
        self._log.info("Vault engine closed")

    def on_foreground_lost(self) -> None:
        self._purge_timer.schedule()

    def on_foreground_gained(self) -> None:
        self._purge_timer.cancel()

    # ------------------------------------------------------------------
    # settings

    @property
    def security_level(self) -> SecurityLevel:
        return self._settings.load_security_level()

    @security_level.setter
    def security_level(self, level: SecurityLevel) -> None:
        if level is SecurityLevel.UNSPECIFIED:
            raise ValueError("Security level cannot be reset to unspecified")
        self._settings.save_security_level(level)
        self._log.info("Security level set to %s", level.value)
        self._emit(EventKind.NOTICE, f"Security level set to {level.value}.")

    @property
    def consistency_report(self) -> ConsistencyReport:
        with self._lock:
            return self._consistency

    # ------------------------------------------------------------------
    # hide

    def request_hide_files(self, paths: Iterable[Path | str]) -> HideJob:
        """
        Hide a batch of files in the background under the current level.

        Raises:
            SecuritySettingUnspecified: No security level chosen yet
            JobAlreadyRunning: A batch is still in progress
            ManifestCorrupt: Lazy load failed
        """
        level = self.security_level
        if level is SecurityLevel.UNSPECIFIED:
            raise SecuritySettingUnspecified()
        self._ensure_loaded()

        batch = [Path(p) for p in paths]
        with self._lock:
            if self._runner.is_busy:
                raise JobAlreadyRunning()
            self._pending_originals = []
            status = f"Hiding {len(batch)} item(s)..."
            self._status_text = status
            job = self._runner.submit(
                batch,
                level,
                self._hide_one,
                on_progress=self._on_progress,
                on_finished=self._on_batch_finished,
            )

        self._emit(EventKind.NOTICE, status)
        return job

    def _hide_one(self, path: Path, level: SecurityLevel) -> VaultEntry:
        try:
            source = validate_source_path(path, forbidden_root=self._dirs.vault_root())
        except ValidationError as e:
            raise IOFailure(str(e)) from e

        entry = self._transform.hide(source, level)

        with self._lock:
            self._entries[entry.id] = entry
            if level is SecurityLevel.ADVANCED:
                self._pending_originals.append((entry.id, source))
            self._save_locked()
        self._emit(EventKind.ENTRIES_CHANGED)
        return entry

    def _on_progress(self, index: int, total: int, path: Path) -> None:
        status = f"Hiding {index} of {total}..."
        with self._lock:
            self._status_text = status
        self._emit(EventKind.PROGRESS, status, (index, total))

    def _on_batch_finished(self, summary: BatchSummary) -> None:
        with self._lock:
            if self._manifest_stale:
                self._save_locked()
            summary.persistence_failed = self._manifest_stale

            message = f"{summary.succeeded_count} item(s) have been hidden successfully."
            if summary.failures:
                message += f" {len(summary.failures)} item(s) could not be hidden."
            self._status_text = message

        self._emit(EventKind.BATCH_FINISHED, message, summary)
        if summary.persistence_failed:
            self._emit(EventKind.ERROR, PersistenceFailed.user_message)

    # ------------------------------------------------------------------
    # unhide / delete / open

    def request_unhide(self, ids: Iterable[str]) -> dict[str, OperationResult]:
        """Restore entries to their original locations."""
        self._ensure_loaded()
        results = {entry_id: self._unhide_one(entry_id) for entry_id in ids}
        self._emit(EventKind.ENTRIES_CHANGED)
        return results

    def _unhide_one(self, entry_id: str) -> OperationResult:
        entry = self._lookup(entry_id)
        if entry is None:
            return self._failed(entry_id, EntryNotFound())

        try:
            restored = self._transform.unhide(entry)
        except VaultError as e:
            self._log.warning("Unhide of %s failed: %s", entry_id, e)
            return self._failed(entry_id, e)

        with self._lock:
            self._entries.pop(entry_id, None)
            self._pending_originals = [p for p in self._pending_originals if p[0] != entry_id]
            error = self._save_locked()
        if error is not None:
            self._emit(EventKind.ERROR, error.user_message, entry_id)
        return OperationResult(entry_id, True, error=error, persisted=error is None, path=restored)

    def request_delete(self, ids: Iterable[str]) -> dict[str, OperationResult]:
        """Permanently remove entries and their vault objects."""
        self._ensure_loaded()
        results: dict[str, OperationResult] = {}
        for entry_id in ids:
            entry = self._lookup(entry_id)
            if entry is None:
                results[entry_id] = self._failed(entry_id, EntryNotFound())
                continue

            self._transform.discard(entry)
            with self._lock:
                self._entries.pop(entry_id, None)
                self._pending_originals = [p for p in self._pending_originals if p[0] != entry_id]
                error = self._save_locked()
            if error is not None:
                self._emit(EventKind.ERROR, error.user_message, entry_id)
            results[entry_id] = OperationResult(entry_id, True, error=error, persisted=error is None)

        self._emit(EventKind.ENTRIES_CHANGED)
        return results

    def request_open(self, entry_id: str) -> OperationResult:
        """Stage a plaintext copy and hand it to the viewer."""
        self._ensure_loaded()
        entry = self._lookup(entry_id)
        if entry is None:
            return self._failed(entry_id, EntryNotFound())

        self._purge_timer.cancel()
        try:
            staged = self._transform.stage(entry)
        except VaultError as e:
            self._log.warning("Preview of %s failed: %s", entry_id, e)
            return self._failed(entry_id, e)

        try:
            self._viewer(staged)
        except OSError as e:
            self._dirs.purge_staging()
            return self._failed(entry_id, IOFailure(f"Viewer could not be launched: {e}"))

        return OperationResult(entry_id, True, path=staged)

    # ------------------------------------------------------------------
    # originals left behind by Advanced hides

    def confirm_delete_originals(self) -> int:
        """
        Securely delete the sources of the last Advanced batch.

        An original is only deleted while its entry is still in the vault,
        so a restore in between never loses the restored file.

        Returns:
            Number of originals deleted
        """
        with self._lock:
            pending = self._pending_originals
            self._pending_originals = []
            still_hidden = [
                source for entry_id, source in pending
                if entry_id in self._entries
            ]

        deleted = 0
        for source in still_hidden:
            try:
                secure_delete(source)
                deleted += 1
            except SecureDeleteError as e:
                self._log.error("Could not delete original %s: %s", source.name, e)
                self._emit(EventKind.ERROR, f"Could not delete {source.name}.", source)

        self._log.info("Deleted %d original(s)", deleted)
        self._emit(EventKind.NOTICE, f"{deleted} original file(s) deleted.")
        return deleted

    def keep_originals(self) -> None:
        with self._lock:
            self._pending_originals = []

    # ------------------------------------------------------------------
    # observation

    def snapshot(self) -> VaultSnapshot:
        with self._lock:
            views = tuple(
                EntryView(
                    id=entry.id,
                    display_name=entry.display_name,
                    original_path=entry.original_path,
                    is_encrypted=not entry.is_fast_hide,
                    hidden_at=entry.hidden_at,
                )
                for entry in self._entries.values()
            )
            status = self._status_text
            pending = len(self._pending_originals)

        return VaultSnapshot(
            entries=views,
            is_processing=self._runner.is_busy,
            status_text=status,
            security_level=self.security_level,
            pending_originals=pending,
        )

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register a change listener.

        Listeners may be called from the batch worker thread.

        Returns:
            Callable that removes the listener
        """
        with self._listeners_lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._listeners_lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    # ------------------------------------------------------------------
    # internals

    def _ensure_loaded(self) -> None:
        with self._lock:
            loaded = self._loaded
        if not loaded:
            self.load()

    def _lookup(self, entry_id: str) -> Optional[VaultEntry]:
        with self._lock:
            return self._entries.get(entry_id)

    def _save_locked(self) -> Optional[PersistenceFailed]:
        try:
            self._manifest.save(list(self._entries.values()))
        except PersistenceFailed as e:
            self._manifest_stale = True
            return e
        self._manifest_stale = False
        return None

    def _failed(self, entry_id: str, error: VaultError) -> OperationResult:
        self._emit(EventKind.ERROR, error.user_message, entry_id)
        return OperationResult(entry_id, False, error=error)

    def _emit(self, kind: EventKind, message: str = "", payload: Any = None) -> None:
        event = VaultEvent(kind, message, payload)
        with self._listeners_lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(event)
            except Exception:
                self._log.exception("Vault listener failed on %s", kind.value)


def open_vault(
    config: Optional[HideVaultConfig] = None,
    settings_store: Optional[SettingsStore] = None,
    key_store: Optional[KeyStore] = None,
    viewer: Viewer = open_with_default_viewer,
) -> VaultEngine:
    """
    Build and load an engine with the default collaborators.

    Raises:
        ManifestCorrupt: The manifest exists but cannot be used
    """
    config = config or HideVaultConfig.load()
    config.ensure_directories()
    configure_logging(config.logging, config.paths.log_dir)

    engine = VaultEngine(
        config,
        settings_store or JsonSettingsStore(config.settings_path),
        key_store or KeyStore(config.security),
        viewer=viewer,
    )
    engine.load()
    return engine
