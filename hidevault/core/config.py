"""
Vault Configuration Module
==========================

Provides immutable, environment-aware configuration for the vault engine.

Security Features:
- Immutable configuration after initialization
- Environment variable override support
- No secrets in default values (key material lives in the OS keyring)
- OS-aware path handling
"""

from __future__ import annotations

import hashlib
import os
import platform
import stat
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Final, Optional


APP_NAME: Final[str] = "HideVault"

_SENSITIVE_KEYS: Final[frozenset[str]] = frozenset({
    "password", "secret", "token", "private", "credential", "auth",
})


def _is_sensitive_key(key: str) -> bool:
    """Check if a configuration key might carry sensitive data."""
    key_lower = key.lower()
    return any(sensitive in key_lower for sensitive in _SENSITIVE_KEYS)


def _get_default_data_dir() -> Path:
    """Application-private storage location for the vault root."""
    system = platform.system().lower()

    if system == "windows":
        base = Path(os.environ.get("LOCALAPPDATA", Path.home() / "AppData" / "Local"))
    elif system == "darwin":
        base = Path.home() / "Library" / "Application Support"
    else:
        base = Path(os.environ.get("XDG_DATA_HOME", Path.home() / ".local" / "share"))

    return base / APP_NAME


def _get_default_config_dir() -> Path:
    """Location of ordinary (non-secret) settings."""
    system = platform.system().lower()

    if system == "windows":
        base = Path(os.environ.get("APPDATA", Path.home() / "AppData" / "Roaming"))
    elif system == "darwin":
        base = Path.home() / "Library" / "Preferences"
    else:
        base = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))

    return base / APP_NAME


def _get_default_log_dir() -> Path:
    system = platform.system().lower()

    if system == "windows":
        base = Path(os.environ.get("LOCALAPPDATA", Path.home() / "AppData" / "Local"))
        return base / APP_NAME / "Logs"
    elif system == "darwin":
        return Path.home() / "Library" / "Logs" / APP_NAME
    else:
        return Path(os.environ.get("XDG_STATE_HOME", Path.home() / ".local" / "state")) / APP_NAME / "logs"


def _get_default_staging_base() -> Path:
    return Path(tempfile.gettempdir())


@dataclass(frozen=True, slots=True)
class PathConfig:
    """Immutable path configuration with OS-aware defaults."""

    data_dir: Path = field(default_factory=_get_default_data_dir)
    config_dir: Path = field(default_factory=_get_default_config_dir)
    log_dir: Path = field(default_factory=_get_default_log_dir)
    staging_base: Path = field(default_factory=_get_default_staging_base)

    def __post_init__(self) -> None:
        for field_name in ("data_dir", "config_dir", "log_dir", "staging_base"):
            path = getattr(self, field_name)
            if not path.is_absolute():
                raise ValueError(f"{field_name} must be an absolute path: {path}")


@dataclass(frozen=True, slots=True)
class VaultConfig:
    """
    Layout of the vault on disk.

    Attributes:
        vault_dir_name: Directory under data_dir holding stored objects
        manifest_name: Manifest file name inside the vault root
        encryption_marker: Suffix appended to Advanced-mode stored names
        staging_prefix: Prefix of the per-user preview staging directory
        staging_grace_seconds: Delay before staged plaintext is purged
            after the host loses foreground
    """

    vault_dir_name: str = "Vault"
    manifest_name: str = "manifest.json"
    encryption_marker: str = ".hvenc"
    staging_prefix: str = "hidevault-preview"
    staging_grace_seconds: float = 60.0

    def __post_init__(self) -> None:
        if not self.encryption_marker.startswith("."):
            raise ValueError("encryption_marker must start with '.'")
        if self.encryption_marker == self.manifest_name or self.manifest_name.endswith(self.encryption_marker):
            raise ValueError("manifest_name must not carry the encryption marker")
        for name in (self.vault_dir_name, self.manifest_name, self.staging_prefix):
            if not name or "/" in name or "\\" in name:
                raise ValueError(f"Invalid path component: {name!r}")
        if self.staging_grace_seconds < 0:
            raise ValueError("staging_grace_seconds cannot be negative")


@dataclass(frozen=True, slots=True)
class SecurityConfig:
    """Immutable security configuration."""

    keyring_service: str = "com.hidevault.vault"
    salt_length: int = 16  # 128 bits
    hash_length: int = 64  # 512-bit verifier output

    # Argon2id cost parameters for the master credential
    argon2_time_cost: int = 3
    argon2_memory_cost: int = 65536  # 64 MB in KiB
    argon2_parallelism: int = 4

    def __post_init__(self) -> None:
        if self.salt_length < 16:
            raise ValueError("Salt length must be at least 16 bytes")
        if self.hash_length < 64:
            raise ValueError("Hash length must be at least 64 bytes")
        if self.argon2_time_cost < 1:
            raise ValueError("argon2_time_cost must be at least 1")
        if self.argon2_parallelism < 1:
            raise ValueError("argon2_parallelism must be at least 1")
        if self.argon2_memory_cost < 8 * self.argon2_parallelism:
            raise ValueError("argon2_memory_cost must be at least 8 KiB per lane")
        if not self.keyring_service:
            raise ValueError("keyring_service cannot be empty")


@dataclass(frozen=True, slots=True)
class LoggingConfig:
    """Immutable logging configuration."""

    level: str = "INFO"
    max_file_size_bytes: int = 5 * 1024 * 1024
    backup_count: int = 3
    enable_console: bool = True
    enable_file: bool = True

    def __post_init__(self) -> None:
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if self.level.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {self.level}")


class HideVaultConfig:
    """
    Immutable configuration value handed to the engine at startup.

    Unlike a process-wide singleton, every component receives the
    instance it should use, so tests and hosts can run several
    independent vaults side by side.

    Usage:
        config = HideVaultConfig.load()
        root = config.paths.data_dir / config.vault.vault_dir_name
    """

    __slots__ = ("_paths", "_vault", "_security", "_logging", "_frozen", "_config_hash")

    def __init__(
        self,
        paths: Optional[PathConfig] = None,
        vault: Optional[VaultConfig] = None,
        security: Optional[SecurityConfig] = None,
        logging: Optional[LoggingConfig] = None,
    ) -> None:
        object.__setattr__(self, "_frozen", False)
        object.__setattr__(self, "_paths", paths or PathConfig())
        object.__setattr__(self, "_vault", vault or VaultConfig())
        object.__setattr__(self, "_security", security or SecurityConfig())
        object.__setattr__(self, "_logging", logging or LoggingConfig())
        object.__setattr__(self, "_config_hash", self._compute_hash())
        object.__setattr__(self, "_frozen", True)

    def _compute_hash(self) -> str:
        config_str = f"{self._paths}|{self._vault}|{self._security}|{self._logging}"
        return hashlib.sha256(config_str.encode()).hexdigest()[:16]

    @property
    def paths(self) -> PathConfig:
        return self._paths

    @property
    def vault(self) -> VaultConfig:
        return self._vault

    @property
    def security(self) -> SecurityConfig:
        return self._security

    @property
    def logging(self) -> LoggingConfig:
        return self._logging

    @property
    def config_hash(self) -> str:
        return self._config_hash

    @property
    def vault_root(self) -> Path:
        """Directory holding stored objects and the manifest."""
        return self._paths.data_dir / self._vault.vault_dir_name

    @property
    def settings_path(self) -> Path:
        return self._paths.config_dir / "settings.json"

    @classmethod
    def for_base_dir(cls, base_dir: Path | str, **overrides: Any) -> HideVaultConfig:
        """
        Build a configuration rooted entirely under one directory.

        Handy for portable installs and for tests.

        Args:
            base_dir: Absolute directory that will hold data, config, logs
                and staging
            **overrides: Optional ``vault``, ``security`` or ``logging``
                sections
        """
        base = Path(base_dir).resolve()
        paths = PathConfig(
            data_dir=base / "data",
            config_dir=base / "config",
            log_dir=base / "logs",
            staging_base=base / "tmp",
        )
        return cls(paths=paths, **overrides)

    @classmethod
    def load(cls, env_prefix: str = "HIDEVAULT") -> HideVaultConfig:
        """
        Load configuration with environment variable overrides.

        Examples:
            HIDEVAULT_LOGGING__LEVEL=DEBUG
            HIDEVAULT_PATHS__DATA_DIR=/custom/path
            HIDEVAULT_VAULT__STAGING_GRACE_SECONDS=30

        Args:
            env_prefix: Prefix for environment variables

        Returns:
            Configured HideVaultConfig instance
        """
        env = cls._parse_env_overrides(env_prefix)

        paths_kwargs: dict[str, Any] = {}
        for name in ("data_dir", "config_dir", "log_dir", "staging_base"):
            if f"paths.{name}" in env:
                paths_kwargs[name] = Path(env[f"paths.{name}"])

        vault_kwargs: dict[str, Any] = {}
        if "vault.vault_dir_name" in env:
            vault_kwargs["vault_dir_name"] = env["vault.vault_dir_name"]
        if "vault.staging_grace_seconds" in env:
            vault_kwargs["staging_grace_seconds"] = float(env["vault.staging_grace_seconds"])

        security_kwargs: dict[str, Any] = {}
        if "security.keyring_service" in env:
            security_kwargs["keyring_service"] = env["security.keyring_service"]
        if "security.argon2_memory_cost" in env:
            security_kwargs["argon2_memory_cost"] = int(env["security.argon2_memory_cost"])
        if "security.argon2_time_cost" in env:
            security_kwargs["argon2_time_cost"] = int(env["security.argon2_time_cost"])

        logging_kwargs: dict[str, Any] = {}
        if "logging.level" in env:
            logging_kwargs["level"] = env["logging.level"]
        if "logging.enable_console" in env:
            logging_kwargs["enable_console"] = env["logging.enable_console"].lower() == "true"
        if "logging.enable_file" in env:
            logging_kwargs["enable_file"] = env["logging.enable_file"].lower() == "true"

        return cls(
            paths=PathConfig(**paths_kwargs) if paths_kwargs else None,
            vault=VaultConfig(**vault_kwargs) if vault_kwargs else None,
            security=SecurityConfig(**security_kwargs) if security_kwargs else None,
            logging=LoggingConfig(**logging_kwargs) if logging_kwargs else None,
        )

    @staticmethod
    def _parse_env_overrides(prefix: str) -> dict[str, str]:
        overrides: dict[str, str] = {}
        prefix_upper = f"{prefix.upper()}_"

        for key, value in os.environ.items():
            if key.startswith(prefix_upper):
                # HIDEVAULT_SECTION__KEY -> section.key
                config_key = key[len(prefix_upper):].lower().replace("__", ".")
                if _is_sensitive_key(config_key):
                    continue
                overrides[config_key] = value

        return overrides

    def ensure_directories(self) -> None:
        """Create data, config and log directories owner-only."""
        for directory in (self._paths.data_dir, self._paths.config_dir, self._paths.log_dir):
            directory.mkdir(parents=True, exist_ok=True)
            if platform.system().lower() != "windows":
                directory.chmod(stat.S_IRWXU)  # 700

    def __repr__(self) -> str:
        return f"HideVaultConfig(hash={self._config_hash}, root={self.vault_root})"

    def __setattr__(self, name: str, value: Any) -> None:
        if hasattr(self, "_frozen") and self._frozen:
            raise AttributeError("HideVaultConfig is immutable after initialization")
        super().__setattr__(name, value)
