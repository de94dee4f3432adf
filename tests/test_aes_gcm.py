"""
Tests for the AES-256-GCM cipher.

Covers: seal/open round trip, blob layout, tamper detection,
wrong key, truncated blobs, key size validation.
"""

import pytest

from hidevault.core.crypto.aes_gcm import (
    AES_KEY_SIZE,
    AES_NONCE_SIZE,
    SEALED_OVERHEAD,
    AesGcmCipher,
)
from hidevault.core.errors import AuthenticationFailed


@pytest.fixture
def cipher():
    return AesGcmCipher()


@pytest.fixture
def key():
    return AesGcmCipher.generate_key()


class TestSealOpen:
    @pytest.mark.parametrize("plaintext", [b"", b"x", b"quarterly report" * 1000])
    def test_round_trip(self, cipher, key, plaintext):
        assert cipher.open(cipher.seal(plaintext, key), key) == plaintext

    def test_blob_layout(self, cipher, key):
        blob = cipher.seal(b"abc", key)
        assert len(blob) == SEALED_OVERHEAD + 3

    def test_fresh_nonce_per_call(self, cipher, key):
        first = cipher.seal(b"same", key)
        second = cipher.seal(b"same", key)
        assert first[:AES_NONCE_SIZE] != second[:AES_NONCE_SIZE]
        assert first != second

    def test_accepts_bytearray(self, cipher, key):
        blob = cipher.seal(bytearray(b"mutable"), key)
        assert cipher.open(blob, key) == b"mutable"

    def test_generated_key_size(self):
        assert len(AesGcmCipher.generate_key()) == AES_KEY_SIZE


class TestTamperDetection:
    @pytest.mark.parametrize("index", [0, AES_NONCE_SIZE, -1])
    def test_flipped_byte_rejected(self, cipher, key, index):
        blob = bytearray(cipher.seal(b"secret payload", key))
        blob[index] ^= 0x01
        with pytest.raises(AuthenticationFailed):
            cipher.open(bytes(blob), key)

    def test_wrong_key_rejected(self, cipher, key):
        blob = cipher.seal(b"secret", key)
        with pytest.raises(AuthenticationFailed):
            cipher.open(blob, AesGcmCipher.generate_key())

    def test_truncated_blob_rejected(self, cipher, key):
        with pytest.raises(AuthenticationFailed):
            cipher.open(b"\x00" * (SEALED_OVERHEAD - 1), key)

    def test_aad_mismatch_rejected(self, cipher, key):
        blob = cipher.seal(b"secret", key, aad=b"one")
        with pytest.raises(AuthenticationFailed):
            cipher.open(blob, key, aad=b"two")


class TestKeyValidation:
    def test_short_key_rejected(self, cipher):
        with pytest.raises(ValueError):
            cipher.seal(b"data", b"\x00" * 16)
