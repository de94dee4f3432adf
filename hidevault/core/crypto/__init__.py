"""
Vault Cryptographic Core
========================

Security Properties:
    - AES-256-GCM authenticated encryption for every Advanced-mode object
    - One vault key per installation, held only in the OS keyring
    - Constant-time comparisons for credential verification
    - Secure RNG for all keys, nonces and salts
"""

from hidevault.core.crypto.aes_gcm import AesGcmCipher
from hidevault.core.crypto.key_store import KeyStore

__all__ = [
    "AesGcmCipher",
    "KeyStore",
]
