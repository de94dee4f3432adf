"""
Vault Error Taxonomy
====================

Every failure the engine reports derives from VaultError. Each error
carries a short, human-readable ``user_message`` that a host UI can show
as-is; the exception text itself may contain paths and other detail
meant for logs.

Fail-closed: callers must treat any VaultError as "the operation did
not happen", except PersistenceFailed, which means the file transform
succeeded but the manifest on disk may be stale.
"""

from __future__ import annotations

from typing import ClassVar, Optional


class VaultError(Exception):
    """Base class for all vault engine errors."""

    user_message: ClassVar[str] = "The vault operation failed."

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or self.user_message)


class KeyStoreUnavailable(VaultError):
    """The secure credential store is unreachable or holds corrupt data."""

    user_message = "The secure key store is unavailable. Encrypted items cannot be processed."


class CredentialAlreadySet(VaultError):
    """A master credential exists; setup is one-time only."""

    user_message = "A master password has already been set."


class AuthenticationFailed(VaultError):
    """A sealed blob failed verification (tampered data or wrong key)."""

    user_message = "The item is corrupted or was encrypted with a different key."


class NameCollision(VaultError):
    """The computed stored name already exists in the vault."""

    user_message = "An item with the same name is already in the vault."


class DestinationOccupied(VaultError):
    """Something already exists at the original location."""

    user_message = "Another item already exists at the original location."


class ManifestCorrupt(VaultError):
    """The manifest exists but cannot be parsed."""

    user_message = (
        "The vault index is damaged. It has been left untouched; "
        "restore it from a backup before continuing."
    )


class PersistenceFailed(VaultError):
    """The manifest could not be written after a successful transform."""

    user_message = "The change was made but the vault index could not be saved."


class IOFailure(VaultError):
    """Generic filesystem failure."""

    user_message = "A file could not be read or written."


class EntryNotFound(VaultError):
    """No manifest entry (or vault object) exists for the requested id."""

    user_message = "The item is no longer in the vault."


class SecuritySettingUnspecified(VaultError):
    """Hide requested before a security level was chosen."""

    user_message = "Choose a security level before hiding files."


class JobAlreadyRunning(VaultError):
    """A hide batch is already in progress."""

    user_message = "Files are already being hidden. Please wait for the current batch."
