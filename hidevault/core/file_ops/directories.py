"""
Vault Directory Manager
=======================

Resolves the vault root and the ephemeral preview-staging directory,
and enforces the stored-name collision policy: nothing in the vault is
ever overwritten silently.
"""

from __future__ import annotations

import getpass
import logging
import secrets
from pathlib import Path
from typing import Final

from hidevault.core.config import HideVaultConfig
from hidevault.core.errors import IOFailure, NameCollision
from hidevault.core.file_ops.secure_delete import SecureDeleteError, secure_delete_tree
from hidevault.utils.paths import make_private_dir


OPAQUE_NAME_BYTES: Final[int] = 16  # 32 hex characters
TEMP_PREFIX: Final[str] = ".hvtmp-"


def _staging_owner_tag() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return "user"


class VaultDirectoryManager:
    """
    Owns the on-disk locations of the vault.

    Usage:
        dirs = VaultDirectoryManager(config)
        root = dirs.vault_root()
        dirs.ensure_vacant(stored_name)
        target = dirs.stored_path(stored_name)
    """

    __slots__ = ("_config", "_log")

    def __init__(self, config: HideVaultConfig) -> None:
        self._config = config
        self._log = logging.getLogger("hidevault.dirs")

    @property
    def manifest_name(self) -> str:
        return self._config.vault.manifest_name

    @property
    def encryption_marker(self) -> str:
        return self._config.vault.encryption_marker

    def vault_root(self) -> Path:
        """
        Resolve the vault root, creating it owner-only if absent.

        Raises:
            IOFailure: If the directory cannot be created
        """
        root = self._config.vault_root
        try:
            return make_private_dir(root)
        except OSError as e:
            raise IOFailure(f"Cannot create vault directory {root}: {e}") from e

    def staging_dir(self, create: bool = True) -> Path:
        """
        Resolve the preview-staging directory.

        Args:
            create: Create it (owner-only) when missing

        Raises:
            IOFailure: If create is True and the directory cannot be made
        """
        vault_cfg = self._config.vault
        staging = self._config.paths.staging_base / f"{vault_cfg.staging_prefix}-{_staging_owner_tag()}"
        if create:
            try:
                make_private_dir(staging)
            except OSError as e:
                raise IOFailure(f"Cannot create staging directory {staging}: {e}") from e
        return staging

    def purge_staging(self) -> None:
        """
        Overwrite and remove everything staged for preview.

        Never raises: a missing directory is the normal case, and any other
        failure is logged and left for the next purge.
        """
        staging = self.staging_dir(create=False)
        try:
            removed = secure_delete_tree(staging)
        except (SecureDeleteError, OSError) as e:
            self._log.debug("Staging purge incomplete: %s", e)
            return
        if removed:
            self._log.info("Purged %d staged preview file(s)", removed)

    def new_opaque_name(self) -> str:
        """Random stored name, independent of the source name."""
        return secrets.token_hex(OPAQUE_NAME_BYTES)

    def encrypted_name_for(self, source: Path) -> str:
        return f"{source.name}{self.encryption_marker}"

    def stored_path(self, stored_name: str) -> Path:
        """
        Path of a stored object under the vault root.

        Raises:
            IOFailure: If the name is not a single safe path component
        """
        if (
            not stored_name
            or stored_name in (".", "..", self.manifest_name)
            or "/" in stored_name
            or "\\" in stored_name
            or "\x00" in stored_name
        ):
            raise IOFailure(f"Invalid stored name: {stored_name!r}")
        return self.vault_root() / stored_name

    def ensure_vacant(self, stored_name: str) -> Path:
        """
        Return the target path for a new stored object.

        Raises:
            NameCollision: If something already exists under that name
        """
        target = self.stored_path(stored_name)
        if target.exists() or target.is_symlink():
            raise NameCollision(f"Vault already contains {stored_name!r}")
        return target

    def list_stored_names(self) -> set[str]:
        """Names of all stored objects (manifest and in-flight temp files excluded)."""
        root = self.vault_root()
        return {
            child.name
            for child in root.iterdir()
            if child.name != self.manifest_name and not child.name.startswith(TEMP_PREFIX)
        }
