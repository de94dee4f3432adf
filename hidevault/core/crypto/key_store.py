"""
Key Store
=========

Owns the vault encryption key and the master-password verifier, both
kept in the OS credential store through ``keyring`` (Keychain on macOS,
Credential Locker on Windows, Secret Service on Linux).

Records (all under the configured service name):
    encryption-key  - base64 of the 32-byte AES key
    master-salt     - base64 of the credential salt
    master-hash     - base64 of the Argon2id verifier

Security Properties:
    - The key is generated once from the OS CSPRNG and never written to
      the manifest or any vault file
    - Any backend failure or malformed record raises KeyStoreUnavailable;
      there is no insecure fallback key
    - First-call creation is serialised so concurrent callers share one key
"""

from __future__ import annotations

import base64
import binascii
import logging
import threading
from typing import Final, Optional

import keyring
from keyring.backend import KeyringBackend
from keyring.errors import KeyringError

from hidevault.core.auth.credential import CredentialHasher, MasterCredential
from hidevault.core.config import SecurityConfig
from hidevault.core.crypto.aes_gcm import AES_KEY_SIZE, AesGcmCipher
from hidevault.core.errors import CredentialAlreadySet, KeyStoreUnavailable


KEY_RECORD: Final[str] = "encryption-key"
SALT_RECORD: Final[str] = "master-salt"
HASH_RECORD: Final[str] = "master-hash"


class KeyStore:
    """
    Secure-store backed key and credential management.

    Usage:
        store = KeyStore(config.security)
        key = store.get_or_create_key()

        if not store.has_master_credential():
            store.set_master_credential(password)
        unlocked = store.verify_master_password(candidate)

    Args:
        security: Security section of the configuration
        backend: keyring backend to use; the platform default when omitted
    """

    __slots__ = ("_service", "_backend", "_hasher", "_lock", "_cached_key", "_log")

    def __init__(self, security: SecurityConfig, backend: Optional[KeyringBackend] = None) -> None:
        self._service = security.keyring_service
        self._backend = backend
        self._hasher = CredentialHasher(security)
        self._lock = threading.Lock()
        self._cached_key: Optional[bytes] = None
        self._log = logging.getLogger("hidevault.keystore")

    # ------------------------------------------------------------------
    # Backend access

    def _keyring(self) -> KeyringBackend:
        if self._backend is None:
            try:
                self._backend = keyring.get_keyring()
            except KeyringError as e:
                raise KeyStoreUnavailable("No usable keyring backend") from e
        return self._backend

    def _read(self, record: str) -> Optional[bytes]:
        try:
            value = self._keyring().get_password(self._service, record)
        except KeyringError as e:
            self._log.error("Secure store read failed for %s: %s", record, type(e).__name__)
            raise KeyStoreUnavailable(f"Could not read {record!r} from secure store") from e

        if value is None:
            return None

        try:
            return base64.b64decode(value.encode("ascii"), validate=True)
        except (binascii.Error, UnicodeEncodeError, ValueError) as e:
            raise KeyStoreUnavailable(f"Secure store record {record!r} is corrupted") from e

    def _write(self, record: str, value: bytes) -> None:
        try:
            self._keyring().set_password(self._service, record, base64.b64encode(value).decode("ascii"))
        except KeyringError as e:
            self._log.error("Secure store write failed for %s: %s", record, type(e).__name__)
            raise KeyStoreUnavailable(f"Could not write {record!r} to secure store") from e

    # ------------------------------------------------------------------
    # Encryption key

    def get_or_create_key(self) -> bytes:
        """
        Return the vault key, generating and persisting it on first use.

        Returns:
            32-byte AES key

        Raises:
            KeyStoreUnavailable: Store unreachable or key record malformed
        """
        with self._lock:
            if self._cached_key is not None:
                return self._cached_key

            key = self._read(KEY_RECORD)
            if key is None:
                self._write(KEY_RECORD, AesGcmCipher.generate_key())
                # Read back so every caller ends up with the stored value
                key = self._read(KEY_RECORD)
                if key is None:
                    raise KeyStoreUnavailable("Secure store did not retain the new key")
                self._log.info("Generated new vault encryption key")

            if len(key) != AES_KEY_SIZE:
                raise KeyStoreUnavailable("Stored encryption key has the wrong length")

            self._cached_key = key
            return key

    def forget_cached_key(self) -> None:
        """Drop the in-memory copy; the next use reloads it from the store."""
        with self._lock:
            self._cached_key = None

    # ------------------------------------------------------------------
    # Master credential

    def has_master_credential(self) -> bool:
        return self._read(HASH_RECORD) is not None

    def load_master_credential(self) -> Optional[MasterCredential]:
        """Return the stored (salt, hash) pair, or None before setup."""
        salt = self._read(SALT_RECORD)
        digest = self._read(HASH_RECORD)
        if salt is None and digest is None:
            return None
        if salt is None or digest is None:
            raise KeyStoreUnavailable("Master credential record is incomplete")
        return MasterCredential(salt=salt, hash=digest)

    def set_master_credential(self, password: str) -> MasterCredential:
        """
        Store the master credential. One-time setup only.

        Raises:
            CredentialAlreadySet: If a credential already exists
            KeyStoreUnavailable: If the store cannot be written
            ValueError: If the password is empty
        """
        with self._lock:
            if self._read(HASH_RECORD) is not None or self._read(SALT_RECORD) is not None:
                raise CredentialAlreadySet()

            credential = self._hasher.create(password)
            self._write(SALT_RECORD, credential.salt)
            self._write(HASH_RECORD, credential.hash)
            self._log.info("Master credential stored")
            return credential

    def verify_password(self, candidate: str, salt: bytes, expected_hash: bytes) -> bool:
        """Constant-time check of a candidate against a (salt, hash) pair."""
        return self._hasher.verify(candidate, salt, expected_hash)

    def verify_master_password(self, candidate: str) -> bool:
        """
        Check a candidate against the stored master credential.

        Returns False when no credential has been set up.
        """
        credential = self.load_master_credential()
        if credential is None:
            return False
        ok = self.verify_password(candidate, credential.salt, credential.hash)
        if not ok:
            self._log.warning("Master password verification failed")
        return ok
