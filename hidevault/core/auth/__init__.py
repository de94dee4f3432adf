"""
Master credential hashing (Argon2id, 512-bit verifier).
"""

from hidevault.core.auth.credential import CredentialHasher, MasterCredential

__all__ = [
    "CredentialHasher",
    "MasterCredential",
]
