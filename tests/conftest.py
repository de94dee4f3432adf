"""
Shared pytest fixtures for the HideVault test suite.

Every test runs against a vault rooted in ``tmp_path`` and an in-memory
keyring, so nothing touches the real data directory or the OS keychain.
Argon2 costs are lowered to keep credential tests fast.
"""

import threading
from pathlib import Path

import pytest
from keyring.backend import KeyringBackend
from keyring.errors import KeyringError, PasswordDeleteError

from hidevault.core.config import HideVaultConfig, LoggingConfig, SecurityConfig, VaultConfig
from hidevault.core.crypto.key_store import KeyStore
from hidevault.core.engine import VaultEngine
from hidevault.core.file_ops.directories import VaultDirectoryManager
from hidevault.core.file_ops.manifest import ManifestStore
from hidevault.core.file_ops.transform import TransformEngine
from hidevault.core.settings import JsonSettingsStore


class MemoryKeyring(KeyringBackend):
    """Dictionary-backed keyring for tests."""

    priority = 1

    def __init__(self):
        super().__init__()
        self._data = {}
        self._lock = threading.Lock()
        self.set_calls = 0

    def get_password(self, service, username):
        with self._lock:
            return self._data.get((service, username))

    def set_password(self, service, username, password):
        with self._lock:
            self.set_calls += 1
            self._data[(service, username)] = password

    def delete_password(self, service, username):
        with self._lock:
            if (service, username) not in self._data:
                raise PasswordDeleteError(username)
            del self._data[(service, username)]


class BrokenKeyring(KeyringBackend):
    """Keyring whose every call fails, like a locked or missing keychain."""

    priority = 1

    def get_password(self, service, username):
        raise KeyringError("keychain locked")

    def set_password(self, service, username, password):
        raise KeyringError("keychain locked")

    def delete_password(self, service, username):
        raise KeyringError("keychain locked")


class RecordingViewer:
    """Stands in for the OS 'open with default app' launcher."""

    def __init__(self):
        self.opened = []
        self.contents = []

    def __call__(self, path):
        self.opened.append(Path(path))
        self.contents.append(Path(path).read_bytes() if Path(path).is_file() else None)


FAST_SECURITY = SecurityConfig(
    argon2_time_cost=1,
    argon2_memory_cost=1024,
    argon2_parallelism=1,
)


@pytest.fixture
def config(tmp_path):
    return HideVaultConfig.for_base_dir(
        tmp_path / "app",
        vault=VaultConfig(staging_grace_seconds=0.05),
        security=FAST_SECURITY,
        logging=LoggingConfig(enable_console=False, enable_file=False),
    )


@pytest.fixture
def memory_keyring():
    return MemoryKeyring()


@pytest.fixture
def key_store(config, memory_keyring):
    return KeyStore(config.security, backend=memory_keyring)


@pytest.fixture
def dirs(config):
    return VaultDirectoryManager(config)


@pytest.fixture
def manifest(dirs):
    return ManifestStore(dirs)


@pytest.fixture
def transform(dirs, key_store):
    return TransformEngine(dirs, key_store)


@pytest.fixture
def settings(config):
    return JsonSettingsStore(config.settings_path)


@pytest.fixture
def viewer():
    return RecordingViewer()


@pytest.fixture
def engine(config, settings, key_store, viewer):
    eng = VaultEngine(config, settings, key_store, viewer=viewer)
    eng.load()
    yield eng
    eng.close(timeout=5)


@pytest.fixture
def user_dir(tmp_path):
    """Directory standing in for the user's Documents folder."""
    d = tmp_path / "Documents"
    d.mkdir()
    return d


@pytest.fixture
def make_file(user_dir):
    def _make(name, content=b"hello vault"):
        path = user_dir / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        return path
    return _make
