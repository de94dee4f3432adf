"""
AES-256-GCM Authenticated Encryption
====================================

Seals and opens whole-file buffers under the vault key.

Sealed blob layout (one opaque buffer per vault object):

    NONCE (12 bytes) | CIPHERTEXT (len(plaintext)) | TAG (16 bytes)

Security Properties:
    - 256-bit key
    - 96-bit random nonce drawn fresh for every seal (never caller-supplied,
      so nonce reuse under the vault key cannot be expressed)
    - 128-bit authentication tag verified before any plaintext is returned

NIST SP 800-38D Compliance:
    - GCM mode with 96-bit IV
    - Random nonces keep collision probability negligible up to 2^32 seals
"""

from __future__ import annotations

import secrets
from typing import Final, Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from hidevault.core.errors import AuthenticationFailed


AES_KEY_SIZE: Final[int] = 32  # 256 bits
AES_NONCE_SIZE: Final[int] = 12  # 96 bits
AES_TAG_SIZE: Final[int] = 16  # 128 bits
SEALED_OVERHEAD: Final[int] = AES_NONCE_SIZE + AES_TAG_SIZE


class AesGcmCipher:
    """
    AES-256-GCM sealing of byte buffers.

    Usage:
        cipher = AesGcmCipher()
        blob = cipher.seal(plaintext, key)
        plaintext = cipher.open(blob, key)

    Security Notes:
        - open() raises AuthenticationFailed for tampered data or a wrong
          key; it is never folded into a generic I/O error
        - The key is never stored by this class
    """

    __slots__ = ()

    @staticmethod
    def generate_key() -> bytes:
        """Return 32 bytes from the OS CSPRNG."""
        return secrets.token_bytes(AES_KEY_SIZE)

    @staticmethod
    def _check_key(key: bytes) -> None:
        if len(key) != AES_KEY_SIZE:
            raise ValueError(f"Key must be exactly {AES_KEY_SIZE} bytes")

    def seal(self, plaintext: bytes, key: bytes, aad: Optional[bytes] = None) -> bytes:
        """
        Encrypt and authenticate plaintext.

        Args:
            plaintext: Data to seal (may be empty)
            key: 32-byte vault key
            aad: Optional associated data, authenticated but not stored

        Returns:
            nonce | ciphertext | tag

        Raises:
            ValueError: If the key has the wrong size
        """
        self._check_key(key)
        nonce = secrets.token_bytes(AES_NONCE_SIZE)
        return nonce + AESGCM(key).encrypt(nonce, plaintext, aad)

    def open(self, sealed: bytes, key: bytes, aad: Optional[bytes] = None) -> bytes:
        """
        Verify and decrypt a sealed blob.

        Args:
            sealed: Blob produced by seal()
            key: 32-byte vault key
            aad: Associated data used when sealing

        Returns:
            Plaintext bytes

        Raises:
            AuthenticationFailed: Tag mismatch, wrong key, or truncated blob
            ValueError: If the key has the wrong size
        """
        self._check_key(key)
        if len(sealed) < SEALED_OVERHEAD:
            raise AuthenticationFailed("Sealed blob is truncated")

        nonce, body = sealed[:AES_NONCE_SIZE], sealed[AES_NONCE_SIZE:]
        try:
            return AESGCM(key).decrypt(nonce, body, aad)
        except InvalidTag as e:
            raise AuthenticationFailed("Sealed blob failed authentication") from e
