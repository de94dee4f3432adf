"""
Tests for the manifest store.

Covers: first run, save/load equality, corrupt manifests left untouched,
duplicate detection, save failures, consistency reporting.
"""

import json
from pathlib import Path

import pytest

from hidevault.core.errors import ManifestCorrupt, PersistenceFailed
from hidevault.core.models import Advanced, FastHide, VaultEntry


def _entries():
    return [
        VaultEntry.create("a" * 32, Path("/home/u/photo.jpg"), FastHide("photo.jpg")),
        VaultEntry.create("report.pdf.hvenc", Path("/home/u/report.pdf"), Advanced()),
    ]


class TestLoadSave:
    def test_missing_manifest_is_empty(self, manifest):
        assert manifest.load() == []

    def test_save_then_load_preserves_entries(self, manifest):
        entries = _entries()
        manifest.save(entries)
        assert manifest.load() == entries

    def test_mode_encoding_on_disk(self, manifest):
        manifest.save(_entries())
        document = json.loads(manifest.path.read_text())
        assert document["version"] == 1
        fast, advanced = document["entries"]
        assert fast["original_display_name"] == "photo.jpg"
        assert advanced["original_display_name"] is None

    def test_save_replaces_previous_content(self, manifest):
        entries = _entries()
        manifest.save(entries)
        manifest.save(entries[:1])
        assert manifest.load() == entries[:1]

    def test_save_failure_raises_persistence_failed(self, manifest, monkeypatch):
        import hidevault.core.file_ops.manifest as manifest_mod

        def boom(*args, **kwargs):
            raise OSError("disk full")

        monkeypatch.setattr(manifest_mod, "atomic_write_bytes", boom)
        with pytest.raises(PersistenceFailed):
            manifest.save(_entries())


class TestCorruption:
    @pytest.mark.parametrize("content", [
        b"not json at all",
        b"\xff\xfe",
        b"[]",
        b'{"version": 99, "entries": []}',
        b'{"version": 1, "entries": {}}',
        b'{"version": 1, "entries": [{"id": "x"}]}',
    ])
    def test_garbage_raises_and_is_left_untouched(self, manifest, dirs, content):
        path = dirs.vault_root() / "manifest.json"
        path.write_bytes(content)
        with pytest.raises(ManifestCorrupt):
            manifest.load()
        assert path.read_bytes() == content

    def test_duplicate_ids_rejected(self, manifest):
        entry = _entries()[0]
        record = entry.to_dict()
        manifest.path.write_text(json.dumps({"version": 1, "entries": [record, record]}))
        with pytest.raises(ManifestCorrupt):
            manifest.load()


class TestConsistency:
    def test_consistent_vault(self, manifest, dirs):
        entries = _entries()
        for entry in entries:
            (dirs.vault_root() / entry.stored_name).write_bytes(b"x")
        assert manifest.check_consistency(entries).is_consistent

    def test_missing_and_orphaned_objects(self, manifest, dirs):
        entries = _entries()
        (dirs.vault_root() / entries[0].stored_name).write_bytes(b"x")
        (dirs.vault_root() / "stray.hvenc").write_bytes(b"x")
        report = manifest.check_consistency(entries)
        assert not report.is_consistent
        assert report.missing_objects == [entries[1]]
        assert report.orphaned_objects == ["stray.hvenc"]
