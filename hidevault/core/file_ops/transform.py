"""
Transform Engine
================

Per-item state machine between the visible and hidden states:

    Visible --hide(mode)--> Hidden --unhide()--> Visible
    Hidden  --stage()-----> staged plaintext copy (Hidden unchanged)
    Hidden  --discard()---> Purged

Modes:
    Fast-Hide: the source is moved into the vault under a random opaque
               name. No encryption; the original path stops existing.
    Advanced:  the source is read, sealed with the vault key and written
               as ``<name>.hvenc``. The source is left in place until the
               caller explicitly deletes it.

Failure Handling:
    - Every method either completes or raises a VaultError
    - No vault-side object survives a failed hide
    - unhide() never replaces an existing destination, even one created
      while the restore runs, and never removes the vault object before
      the plaintext is safely in place
    - The manifest is not touched here; the engine records results
"""

from __future__ import annotations

import errno
import logging
import os
import shutil
import stat
from pathlib import Path
from typing import Optional

from hidevault.core.crypto.aes_gcm import AesGcmCipher
from hidevault.core.crypto.key_store import KeyStore
from hidevault.core.errors import (
    DestinationOccupied,
    IOFailure,
    SecuritySettingUnspecified,
    VaultError,
)
from hidevault.core.file_ops.atomic import atomic_write_bytes, exclusive_write_bytes
from hidevault.core.file_ops.directories import VaultDirectoryManager
from hidevault.core.file_ops.secure_delete import SecureDeleteError, secure_delete_tree
from hidevault.core.memory.zeroization import wiped
from hidevault.core.models import Advanced, FastHide, VaultEntry
from hidevault.core.settings import SecurityLevel
from hidevault.utils.paths import sanitize_filename


# Restore mode for encrypted entries that predate recorded permissions
DEFAULT_RESTORED_FILE_MODE = 0o600
STAGED_FILE_MODE = 0o600


def _read_into_buffer(path: Path) -> bytearray:
    """Read a whole file into a mutable buffer that can be wiped later."""
    with open(path, "rb") as f:
        size = os.fstat(f.fileno()).st_size
        buffer = bytearray(size)
        view = memoryview(buffer)
        read = 0
        while read < size:
            n = f.readinto(view[read:])
            if not n:
                break
            read += n
        view.release()
        if read != size:
            del buffer[read:]
        # Files that grew while being read are picked up here
        tail = f.read()
        if tail:
            buffer.extend(tail)
    return buffer


def _exists(path: Path) -> bool:
    return path.exists() or path.is_symlink()


def _remove_path(path: Path) -> None:
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    else:
        path.unlink(missing_ok=True)


class TransformEngine:
    """
    Performs the file-level transforms for both security modes.

    Usage:
        transform = TransformEngine(dirs, key_store)
        entry = transform.hide(Path("/home/me/report.pdf"), SecurityLevel.ADVANCED)
        transform.unhide(entry)

    The mode recorded in an entry decides how it is restored or staged;
    the current security level is only consulted when hiding.
    """

    __slots__ = ("_dirs", "_key_store", "_cipher", "_log")

    def __init__(
        self,
        dirs: VaultDirectoryManager,
        key_store: KeyStore,
        cipher: Optional[AesGcmCipher] = None,
    ) -> None:
        self._dirs = dirs
        self._key_store = key_store
        self._cipher = cipher or AesGcmCipher()
        self._log = logging.getLogger("hidevault.transform")

    # ------------------------------------------------------------------
    # hide

    def hide(self, source: Path, level: SecurityLevel) -> VaultEntry:
        """
        Move one item into the vault.

        Args:
            source: Absolute path of the item to hide
            level: Current security level

        Returns:
            The new VaultEntry (not yet recorded in the manifest)

        Raises:
            SecuritySettingUnspecified: level is UNSPECIFIED
            NameCollision: The derived stored name already exists
            KeyStoreUnavailable: Advanced mode and the key cannot be loaded
            IOFailure: Any filesystem failure
        """
        if level is SecurityLevel.FAST_HIDE:
            return self._hide_fast(source)
        if level is SecurityLevel.ADVANCED:
            return self._hide_advanced(source)
        raise SecuritySettingUnspecified()

    def _hide_fast(self, source: Path) -> VaultEntry:
        stored_name = self._dirs.new_opaque_name()
        target = self._dirs.ensure_vacant(stored_name)

        try:
            shutil.move(str(source), str(target))
        except OSError as e:
            # A cross-device move copies first; drop the copy if the source survived
            if _exists(source) and _exists(target):
                try:
                    _remove_path(target)
                except OSError as cleanup_error:
                    self._log.error("Could not remove partial vault object %s: %s", stored_name, cleanup_error)
            if _exists(source) or not _exists(target):
                raise IOFailure(f"Could not move {source} into the vault: {e}") from e
            self._log.warning("Move of %s reported %s but completed", source.name, e)

        self._log.info("Fast-hid %s", source.name)
        return VaultEntry.create(stored_name, source, FastHide(source.name))

    def _hide_advanced(self, source: Path) -> VaultEntry:
        try:
            info = source.lstat()
        except OSError as e:
            raise IOFailure(f"Cannot inspect {source}: {e}") from e
        # A symlink would seal its target but leave that target behind on delete
        if not stat.S_ISREG(info.st_mode):
            raise IOFailure(f"Only regular files can be encrypted: {source}")

        stored_name = self._dirs.encrypted_name_for(source)
        target = self._dirs.ensure_vacant(stored_name)
        key = self._key_store.get_or_create_key()

        try:
            plaintext = _read_into_buffer(source)
        except OSError as e:
            raise IOFailure(f"Could not read {source}: {e}") from e

        with wiped(plaintext) as buf:
            sealed = self._cipher.seal(buf, key)

        try:
            atomic_write_bytes(target, sealed)
        except OSError as e:
            raise IOFailure(f"Could not write vault object for {source.name}: {e}") from e

        self._log.info("Encrypted %s into the vault", source.name)
        return VaultEntry.create(stored_name, source, Advanced(), file_mode=stat.S_IMODE(info.st_mode))

    # ------------------------------------------------------------------
    # unhide

    def unhide(self, entry: VaultEntry) -> Path:
        """
        Restore an entry to its original path.

        Returns:
            The restored path

        Raises:
            DestinationOccupied: Something exists at the original path
            AuthenticationFailed: Advanced object failed verification
            KeyStoreUnavailable: Key cannot be loaded
            IOFailure: Vault object missing or filesystem failure
        """
        destination = entry.original_path
        if _exists(destination):
            raise DestinationOccupied(f"{destination} already exists")

        stored = self._dirs.stored_path(entry.stored_name)
        if not _exists(stored):
            self._log.error("Vault object for entry %s is missing", entry.id)
            raise IOFailure(f"Vault object {entry.stored_name!r} is missing")

        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise IOFailure(f"Cannot recreate {destination.parent}: {e}") from e

        if isinstance(entry.mode, FastHide):
            self._restore_moved(stored, destination)
        else:
            self._restore_sealed(stored, destination, entry.file_mode)

        self._log.info("Restored %s", entry.display_name)
        return destination

    def _restore_moved(self, stored: Path, destination: Path) -> None:
        # Every publish step below fails rather than replace what is at destination
        if stored.is_symlink():
            try:
                os.symlink(os.readlink(stored), destination)
            except FileExistsError as e:
                raise DestinationOccupied(f"{destination} already exists") from e
            except OSError as e:
                raise IOFailure(f"Could not move item back to {destination}: {e}") from e
        elif stored.is_dir():
            self._restore_moved_tree(stored, destination)
            return
        else:
            self._restore_moved_file(stored, destination)

        self._drop_restored_object(stored, destination)

    def _restore_moved_file(self, stored: Path, destination: Path) -> None:
        try:
            os.link(stored, destination)
            return
        except FileExistsError as e:
            raise DestinationOccupied(f"{destination} already exists") from e
        except OSError as e:
            self._log.debug("Hard link back to %s failed (%s); copying", destination, e)

        # Cross-device or no hard links: "xb" refuses an existing destination
        try:
            src = open(stored, "rb")
        except OSError as e:
            raise IOFailure(f"Could not read vault object: {e}") from e
        with src:
            try:
                dst = open(destination, "xb")
            except FileExistsError as e:
                raise DestinationOccupied(f"{destination} already exists") from e
            except OSError as e:
                raise IOFailure(f"Could not create {destination}: {e}") from e
            try:
                with dst:
                    shutil.copyfileobj(src, dst)
                    dst.flush()
                    os.fsync(dst.fileno())
            except OSError as e:
                self._remove_partial_restore(destination)
                raise IOFailure(f"Could not move item back to {destination}: {e}") from e
        try:
            shutil.copystat(stored, destination)
        except OSError as e:
            self._log.warning("Could not copy metadata back to %s: %s", destination, e)

    def _restore_moved_tree(self, stored: Path, destination: Path) -> None:
        # rename() refuses files and non-empty directories at destination
        try:
            os.rename(stored, destination)
            return
        except (FileExistsError, NotADirectoryError, IsADirectoryError) as e:
            raise DestinationOccupied(f"{destination} already exists") from e
        except OSError as e:
            if e.errno == errno.ENOTEMPTY:
                raise DestinationOccupied(f"{destination} already exists") from e
            if e.errno != errno.EXDEV:
                raise IOFailure(f"Could not move item back to {destination}: {e}") from e

        try:
            shutil.copytree(stored, destination, symlinks=True)
        except FileExistsError as e:
            raise DestinationOccupied(f"{destination} already exists") from e
        except (OSError, shutil.Error) as e:
            self._remove_partial_restore(destination)
            raise IOFailure(f"Could not move item back to {destination}: {e}") from e
        try:
            shutil.rmtree(stored)
        except OSError as e:
            # The vault copy may be half gone; the restored tree is the one to keep
            self._log.error("Restored %s but could not clear vault copy: %s", destination, e)

    def _restore_sealed(self, stored: Path, destination: Path, file_mode: Optional[int]) -> None:
        try:
            sealed = stored.read_bytes()
        except OSError as e:
            raise IOFailure(f"Could not read vault object: {e}") from e

        key = self._key_store.get_or_create_key()
        plaintext = bytearray(self._cipher.open(sealed, key))
        mode = DEFAULT_RESTORED_FILE_MODE if file_mode is None else file_mode

        with wiped(plaintext) as buf:
            try:
                exclusive_write_bytes(destination, buf, mode=mode)
            except FileExistsError as e:
                raise DestinationOccupied(f"{destination} already exists") from e
            except OSError as e:
                raise IOFailure(f"Could not write {destination}: {e}") from e

        self._drop_restored_object(stored, destination)

    def _drop_restored_object(self, stored: Path, destination: Path) -> None:
        try:
            _remove_path(stored)
        except OSError as e:
            # Keep exactly one live copy: undo the restore, keep the entry
            self._remove_partial_restore(destination)
            raise IOFailure(f"Could not remove vault object after restore: {e}") from e

    def _remove_partial_restore(self, destination: Path) -> None:
        try:
            _remove_path(destination)
        except OSError as cleanup_error:
            self._log.error("Could not roll back restore at %s: %s", destination, cleanup_error)

    # ------------------------------------------------------------------
    # preview

    def stage(self, entry: VaultEntry) -> Path:
        """
        Place a plaintext copy of an entry in the staging directory.

        Stale staged files are purged first. The vault object is only read.

        Returns:
            Path of the staged copy

        Raises:
            AuthenticationFailed: Advanced object failed verification
            KeyStoreUnavailable: Key cannot be loaded
            IOFailure: Vault object missing or staging failed
        """
        stored = self._dirs.stored_path(entry.stored_name)
        if not _exists(stored):
            raise IOFailure(f"Vault object {entry.stored_name!r} is missing")

        self._dirs.purge_staging()
        staging = self._dirs.staging_dir(create=True)

        try:
            target = staging / sanitize_filename(entry.display_name)
        except ValueError:
            target = staging / entry.stored_name

        if _exists(target):
            try:
                secure_delete_tree(target)
            except (SecureDeleteError, OSError) as e:
                raise IOFailure(f"Could not replace stale staged copy: {e}") from e

        if isinstance(entry.mode, FastHide):
            try:
                if stored.is_dir() and not stored.is_symlink():
                    shutil.copytree(stored, target, symlinks=True)
                else:
                    shutil.copy2(stored, target)
            except OSError as e:
                raise IOFailure(f"Could not stage {entry.display_name}: {e}") from e
        else:
            try:
                sealed = stored.read_bytes()
            except OSError as e:
                raise IOFailure(f"Could not read vault object: {e}") from e
            key = self._key_store.get_or_create_key()
            with wiped(self._cipher.open(sealed, key)) as buf:
                try:
                    atomic_write_bytes(target, buf, mode=STAGED_FILE_MODE)
                except OSError as e:
                    raise IOFailure(f"Could not stage {entry.display_name}: {e}") from e

        self._log.debug("Staged preview of entry %s", entry.id)
        return target

    # ------------------------------------------------------------------
    # delete

    def discard(self, entry: VaultEntry) -> bool:
        """
        Remove an entry's vault object. Best effort: never raises.

        Returns:
            True if nothing remains on disk for the entry
        """
        try:
            stored = self._dirs.stored_path(entry.stored_name)
            _remove_path(stored)
        except (OSError, VaultError) as e:
            self._log.warning("Could not remove vault object for entry %s: %s", entry.id, e)
            return False
        self._log.info("Deleted vault object for entry %s", entry.id)
        return True
