"""Tests for TOML-backed settings (settings.py)."""
from __future__ import annotations

import pytest

from settings import AppSettings, SettingsManager, get_settings


class TestSettingsManager:
    def test_defaults_without_file(self, tmp_path):
        manager = SettingsManager(settings_dir=tmp_path)
        assert manager.settings == AppSettings()
        assert manager.get_settings_path() == tmp_path / "settings.toml"

    def test_save_and_reload(self, tmp_path):
        manager = SettingsManager(settings_dir=tmp_path)
        manager.settings.layout.lifeline.spacing = 200.0
        manager.settings.defaults.activation_mode = "auto"
        manager.settings.persistence.include_documentation = False
        manager.save()

        reloaded = SettingsManager(settings_dir=tmp_path).settings
        assert reloaded.layout.lifeline.spacing == 200.0
        assert reloaded.defaults.activation_mode == "auto"
        assert reloaded.persistence.include_documentation is False
        assert reloaded.layout.message.spacing == 60.0

    def test_save_creates_missing_directory(self, tmp_path):
        manager = SettingsManager(settings_dir=tmp_path / "nested")
        assert not manager.get_settings_path().exists()
        manager.save()
        assert manager.get_settings_path().exists()

    def test_group_section_has_only_layout_keys(self, tmp_path):
        manager = SettingsManager(settings_dir=tmp_path)
        assert manager._to_toml_dict()["layout"]["group"] == {"padding": 20.0, "header_height": 24.0}

    def test_partial_file_keeps_other_defaults(self, tmp_path):
        (tmp_path / "settings.toml").write_text("[layout.canvas]\nmin_width = 1024.0\n", encoding="utf-8")
        settings = SettingsManager(settings_dir=tmp_path).settings
        assert settings.layout.canvas.min_width == 1024.0
        assert settings.layout.canvas.min_height == 600.0

    def test_unknown_keys_ignored(self, tmp_path):
        (tmp_path / "settings.toml").write_text("[defaults]\ncolour = 'red'\n", encoding="utf-8")
        assert SettingsManager(settings_dir=tmp_path).settings == AppSettings()

    def test_corrupt_file_gives_defaults(self, tmp_path, caplog):
        (tmp_path / "settings.toml").write_text("[layout\nspacing = ", encoding="utf-8")
        with caplog.at_level("WARNING"):
            settings = SettingsManager(settings_dir=tmp_path).settings
        assert settings == AppSettings()
        assert caplog.records

    def test_to_toml_has_all_sections(self, tmp_path):
        text = SettingsManager(settings_dir=tmp_path).to_toml()
        for section in ("[general]", "[layout.lifeline]", "[layout.group]", "[defaults]", "[persistence]"):
            assert section in text

    @pytest.mark.parametrize("value, expected", [("", None), ("/tmp/diagrams", "/tmp/diagrams")])
    def test_workspace_dir(self, tmp_path, value, expected):
        manager = SettingsManager(settings_dir=tmp_path)
        manager.settings.workspace_dir = value
        path = manager.get_workspace_dir()
        if expected is None:
            assert path.parts[-2:] == ("Documents", "seqbuml")
        else:
            assert str(path) == expected


class TestSingleton:
    def test_get_settings_returns_same_instance(self):
        assert get_settings() is get_settings()
