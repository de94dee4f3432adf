"""
Core module - configuration, logging, error taxonomy and the vault engine.
"""

from hidevault.core.config import HideVaultConfig
from hidevault.core.errors import VaultError
from hidevault.core.logging import SecureLogFilter, configure_logging

__all__ = [
    "HideVaultConfig",
    "VaultError",
    "SecureLogFilter",
    "configure_logging",
]
