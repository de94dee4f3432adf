"""
Master Credential Hashing
=========================

Salted hashing of the master password used to gate app unlock.

Scheme:
    salt  = 16+ random bytes
    hash  = Argon2id(password, salt), 64-byte (512-bit) output

The verifier is compared, never reversed.

References:
- RFC 9106: Argon2 Memory-Hard Function
- OWASP Password Storage Cheat Sheet
"""

from __future__ import annotations

import hmac
import secrets
from dataclasses import dataclass

from argon2.low_level import Type, hash_secret_raw

from hidevault.core.config import SecurityConfig
from hidevault.core.memory.zeroization import secure_zero


@dataclass(frozen=True, slots=True)
class MasterCredential:
    """
    Stored (salt, hash) pair.

    Attributes:
        salt: Random salt
        hash: Argon2id digest of the password under the salt
    """

    salt: bytes
    hash: bytes

    def __repr__(self) -> str:
        return f"MasterCredential(salt_len={len(self.salt)}, hash_len={len(self.hash)})"


class CredentialHasher:
    """
    Argon2id hasher for the master credential.

    Usage:
        hasher = CredentialHasher(config.security)
        credential = hasher.create("correct horse")
        hasher.verify("correct horse", credential.salt, credential.hash)
    """

    __slots__ = ("_time_cost", "_memory_cost", "_parallelism", "_hash_length", "_salt_length")

    def __init__(self, security: SecurityConfig) -> None:
        self._time_cost = security.argon2_time_cost
        self._memory_cost = security.argon2_memory_cost
        self._parallelism = security.argon2_parallelism
        self._hash_length = security.hash_length
        self._salt_length = security.salt_length

    def derive(self, password: str, salt: bytes) -> bytes:
        """
        Compute the verifier for a password under a salt.

        Raises:
            ValueError: If the password is empty
        """
        if not password:
            raise ValueError("Password cannot be empty")

        password_bytes = bytearray(password.encode("utf-8"))
        try:
            return hash_secret_raw(
                secret=bytes(password_bytes),
                salt=salt,
                time_cost=self._time_cost,
                memory_cost=self._memory_cost,
                parallelism=self._parallelism,
                hash_len=self._hash_length,
                type=Type.ID,
            )
        finally:
            secure_zero(password_bytes)

    def create(self, password: str) -> MasterCredential:
        """Hash a new password under a fresh random salt."""
        salt = secrets.token_bytes(self._salt_length)
        return MasterCredential(salt=salt, hash=self.derive(password, salt))

    def verify(self, candidate: str, salt: bytes, expected_hash: bytes) -> bool:
        """
        Recompute the verifier and compare in constant time.

        An empty candidate is rejected without hashing; the comparison of
        any real candidate always runs over the full digest.
        """
        if not candidate:
            return False
        return hmac.compare_digest(self.derive(candidate, salt), expected_hash)
