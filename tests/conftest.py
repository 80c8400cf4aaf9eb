"""
tests/conftest.py

Shared fixtures. Every test gets a settings manager rooted in a temporary
directory so the user's real settings.toml never leaks into results.
"""

from __future__ import annotations

import pytest

import settings
from diagram import SequenceDiagram, make_id_gen
from settings import LayoutSettings, SettingsManager


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    manager = SettingsManager(settings_dir=tmp_path / "config")
    manager.settings.workspace_dir = str(tmp_path / "workspace")
    monkeypatch.setattr(settings, "_settings_manager", manager)
    return manager


@pytest.fixture
def layout():
    return LayoutSettings()


@pytest.fixture
def model():
    """Empty manual-mode diagram with sequential ids."""
    return SequenceDiagram(id_gen=make_id_gen(), activation_mode="manual")
