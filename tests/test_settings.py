"""
Tests for the JSON settings store.
"""

import json
import os
import stat
import sys

import pytest

from hidevault.core.settings import JsonSettingsStore, SecurityLevel


class TestJsonSettingsStore:
    def test_defaults_before_setup(self, settings):
        assert settings.load_security_level() is SecurityLevel.UNSPECIFIED
        assert not settings.has_completed_setup()

    def test_save_marks_setup_complete(self, settings, config):
        settings.save_security_level(SecurityLevel.ADVANCED)
        assert settings.load_security_level() is SecurityLevel.ADVANCED
        assert settings.has_completed_setup()
        document = json.loads(config.settings_path.read_text())
        assert document == {"security_level": "advanced", "setup_complete": True}

    def test_unspecified_is_ignored(self, settings):
        settings.save_security_level(SecurityLevel.FAST_HIDE)
        settings.save_security_level(SecurityLevel.UNSPECIFIED)
        assert settings.load_security_level() is SecurityLevel.FAST_HIDE

    def test_survives_new_instance(self, settings, config):
        settings.save_security_level(SecurityLevel.FAST_HIDE)
        assert JsonSettingsStore(config.settings_path).load_security_level() is SecurityLevel.FAST_HIDE

    def test_unreadable_file_falls_back(self, config):
        config.settings_path.parent.mkdir(parents=True, exist_ok=True)
        config.settings_path.write_text("{ broken")
        store = JsonSettingsStore(config.settings_path)
        assert store.load_security_level() is SecurityLevel.UNSPECIFIED

    def test_unknown_level_falls_back(self, config):
        config.settings_path.parent.mkdir(parents=True, exist_ok=True)
        config.settings_path.write_text('{"security_level": "paranoid"}')
        assert JsonSettingsStore(config.settings_path).load_security_level() is SecurityLevel.UNSPECIFIED

    def test_failed_save_keeps_previous_file(self, settings, config, monkeypatch):
        import hidevault.core.settings as settings_mod

        settings.save_security_level(SecurityLevel.FAST_HIDE)
        before = config.settings_path.read_bytes()

        def failing_write(*args, **kwargs):
            raise OSError("disk full")

        monkeypatch.setattr(settings_mod, "atomic_write_bytes", failing_write)
        with pytest.raises(OSError):
            settings.save_security_level(SecurityLevel.ADVANCED)
        assert config.settings_path.read_bytes() == before
        assert sorted(p.name for p in config.settings_path.parent.iterdir()) == [config.settings_path.name]

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX permissions")
    def test_saved_file_is_owner_only(self, settings, config):
        settings.save_security_level(SecurityLevel.ADVANCED)
        assert stat.S_IMODE(os.stat(config.settings_path).st_mode) == 0o600
