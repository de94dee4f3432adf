"""
Tests for the vault directory manager and atomic writes.

Covers: owner-only vault root, staging location and purge, stored-name
validation, collision policy, stored-name listing, atomic and
exclusive writes.
"""

import os
import stat
import sys

import pytest

from hidevault.core.errors import IOFailure, NameCollision
from hidevault.core.file_ops.atomic import atomic_write_bytes, exclusive_write_bytes
from hidevault.core.file_ops.directories import TEMP_PREFIX


posix_only = pytest.mark.skipif(sys.platform == "win32", reason="POSIX permissions")


class TestVaultRoot:
    def test_created_on_demand(self, dirs, config):
        root = dirs.vault_root()
        assert root == config.vault_root
        assert root.is_dir()

    @posix_only
    def test_owner_only(self, dirs):
        mode = stat.S_IMODE(os.stat(dirs.vault_root()).st_mode)
        assert mode == 0o700


class TestStaging:
    def test_location(self, dirs, config):
        staging = dirs.staging_dir(create=False)
        assert staging.parent == config.paths.staging_base
        assert staging.name.startswith("hidevault-preview-")
        assert not staging.exists()

    @posix_only
    def test_created_owner_only(self, dirs):
        staging = dirs.staging_dir()
        assert stat.S_IMODE(os.stat(staging).st_mode) == 0o700

    def test_purge_removes_everything(self, dirs):
        staging = dirs.staging_dir()
        (staging / "a.txt").write_bytes(b"plaintext")
        (staging / "sub").mkdir()
        (staging / "sub" / "b.txt").write_bytes(b"more")
        dirs.purge_staging()
        assert not staging.exists()

    def test_purge_without_staging_is_noop(self, dirs):
        dirs.purge_staging()
        assert not dirs.staging_dir(create=False).exists()


class TestStoredNames:
    def test_opaque_names_are_random_hex(self, dirs):
        names = {dirs.new_opaque_name() for _ in range(50)}
        assert len(names) == 50
        assert all(len(n) == 32 and int(n, 16) >= 0 for n in names)

    def test_encrypted_name(self, dirs, tmp_path):
        assert dirs.encrypted_name_for(tmp_path / "photo.jpg") == "photo.jpg.hvenc"

    @pytest.mark.parametrize("name", ["", ".", "..", "a/b", "a\\b", "manifest.json", "x\x00y"])
    def test_invalid_names_rejected(self, dirs, name):
        with pytest.raises(IOFailure):
            dirs.stored_path(name)

    def test_ensure_vacant_raises_on_collision(self, dirs):
        (dirs.vault_root() / "photo.jpg.hvenc").write_bytes(b"x")
        with pytest.raises(NameCollision):
            dirs.ensure_vacant("photo.jpg.hvenc")

    def test_ensure_vacant_returns_target(self, dirs):
        assert dirs.ensure_vacant("free.hvenc") == dirs.vault_root() / "free.hvenc"

    def test_listing_skips_manifest_and_temp_files(self, dirs):
        root = dirs.vault_root()
        (root / "manifest.json").write_text("{}")
        (root / f"{TEMP_PREFIX}abc.tmp").write_bytes(b"")
        (root / "report.pdf.hvenc").write_bytes(b"x")
        (root / ".bashrc.hvenc").write_bytes(b"x")
        assert dirs.list_stored_names() == {"report.pdf.hvenc", ".bashrc.hvenc"}


class TestAtomicWrite:
    def test_creates_and_replaces(self, tmp_path):
        target = tmp_path / "file.bin"
        atomic_write_bytes(target, b"one")
        atomic_write_bytes(target, b"two")
        assert target.read_bytes() == b"two"
        assert [p.name for p in tmp_path.iterdir()] == ["file.bin"]

    @posix_only
    def test_applies_mode(self, tmp_path):
        target = tmp_path / "file.bin"
        atomic_write_bytes(target, b"data", mode=0o640)
        assert stat.S_IMODE(os.stat(target).st_mode) == 0o640

    def test_missing_directory_raises_oserror(self, tmp_path):
        with pytest.raises(OSError):
            atomic_write_bytes(tmp_path / "nope" / "file.bin", b"data")

    def test_directory_sync_failure_is_not_fatal(self, tmp_path, monkeypatch):
        import hidevault.core.file_ops.atomic as atomic_mod

        def failing_sync(directory):
            raise OSError("fsync not supported")

        monkeypatch.setattr(atomic_mod, "_fsync_directory", failing_sync)
        target = tmp_path / "file.bin"
        atomic_write_bytes(target, b"data")
        assert target.read_bytes() == b"data"


class TestExclusiveWrite:
    def test_creates_file(self, tmp_path):
        target = tmp_path / "file.bin"
        exclusive_write_bytes(target, b"fresh")
        assert target.read_bytes() == b"fresh"
        assert [p.name for p in tmp_path.iterdir()] == ["file.bin"]

    def test_existing_file_left_untouched(self, tmp_path):
        target = tmp_path / "file.bin"
        target.write_bytes(b"keep me")
        with pytest.raises(FileExistsError):
            exclusive_write_bytes(target, b"clobber")
        assert target.read_bytes() == b"keep me"
        assert [p.name for p in tmp_path.iterdir()] == ["file.bin"]

    @posix_only
    def test_applies_mode(self, tmp_path):
        target = tmp_path / "file.bin"
        exclusive_write_bytes(target, b"data", mode=0o640)
        assert stat.S_IMODE(os.stat(target).st_mode) == 0o640

    def test_falls_back_without_hard_links(self, tmp_path, monkeypatch):
        import errno

        import hidevault.core.file_ops.atomic as atomic_mod

        def no_links(src, dst, *args, **kwargs):
            raise PermissionError(errno.EPERM, "hard links not supported")

        monkeypatch.setattr(atomic_mod.os, "link", no_links)
        target = tmp_path / "file.bin"
        exclusive_write_bytes(target, b"data")
        assert target.read_bytes() == b"data"
        assert [p.name for p in tmp_path.iterdir()] == ["file.bin"]
