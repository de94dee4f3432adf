"""
HideVault - Personal File-Concealment Vault
===========================================

Moves user-selected files out of sight into an owner-only vault
directory, either renamed (Fast-Hide) or sealed with AES-256-GCM
(Advanced), and restores them on request.

Security Notice:
- No secrets or plaintext are logged
- Fail-closed: a failed operation leaves the item where it was
- The encryption key lives only in the OS keyring
"""

from hidevault.core.config import HideVaultConfig
from hidevault.core.engine import VaultEngine, open_vault
from hidevault.core.settings import SecurityLevel

__version__ = "0.1.0"

__all__ = ["HideVaultConfig", "VaultEngine", "open_vault", "SecurityLevel", "__version__"]
