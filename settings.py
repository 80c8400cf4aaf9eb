"""
settings.py

Persistent settings management for seqbuml.

Handles cross-platform settings storage using TOML format with platformdirs
for proper user config directory detection.

Settings file location:
    - Windows: %APPDATA%/seqbuml/settings.toml
    - macOS: ~/Library/Application Support/seqbuml/settings.toml
    - Linux: ~/.config/seqbuml/settings.toml

Default values are documented in comments throughout this file.
If settings.toml is corrupted, these defaults will be used.
"""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional

import platformdirs

# TOML reading - use tomllib for Python 3.11+, tomli for earlier versions
if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

import tomli_w

APP_NAME = "seqbuml"

log = logging.getLogger(__name__)

# Global settings manager instance (singleton)
_settings_manager: Optional["SettingsManager"] = None


def get_settings() -> "SettingsManager":
    """Get the global settings manager instance.

    Returns:
        The singleton SettingsManager instance.
    """
    global _settings_manager
    if _settings_manager is None:
        _settings_manager = SettingsManager()
    return _settings_manager


# =============================================================================
# Layout Settings
# =============================================================================

@dataclass
class LifelineLayoutSettings:
    """Lifeline header and spacing.

    Defaults:
        header_width: 120.0
        header_height: 60.0
        spacing: 180.0
        start_x: 100.0
        start_y: 80.0
    """
    header_width: float = 120.0   # Default: 120 pixels
    header_height: float = 60.0   # Default: 60 pixels
    spacing: float = 180.0        # Default: 180 pixels between lifeline origins
    start_x: float = 100.0        # Default: 100 pixels
    start_y: float = 80.0         # Default: 80 pixels


@dataclass
class MessageLayoutSettings:
    """Message row placement.

    Defaults:
        spacing: 60.0
        top_margin: 30.0
    """
    spacing: float = 60.0      # Default: 60 pixels between message rows
    top_margin: float = 30.0   # Default: 30 pixels below the lifeline header


@dataclass
class ActivationLayoutSettings:
    """Activation bar geometry.

    Defaults:
        width: 16.0
        min_height: 20.0
    """
    width: float = 16.0        # Default: 16 pixels
    min_height: float = 20.0   # Default: 20 pixels


@dataclass
class CanvasLayoutSettings:
    """Canvas extents.

    Defaults:
        min_width: 800.0
        min_height: 600.0
        width_margin: 100.0
        height_top_gap: 50.0
        bottom_margin: 100.0
        lifeline_bottom_inset: 40.0
    """
    min_width: float = 800.0       # Default: 800 pixels
    min_height: float = 600.0      # Default: 600 pixels
    width_margin: float = 100.0    # Default: 100 pixels right of the last lifeline
    height_top_gap: float = 50.0   # Default: 50 pixels below the lifeline header
    bottom_margin: float = 100.0   # Default: 100 pixels below the last message row
    lifeline_bottom_inset: float = 40.0  # Default: 40 pixels above the canvas bottom


@dataclass
class GroupLayoutSettings:
    """Group box geometry.

    Defaults:
        padding: 20.0
        header_height: 24.0
    """
    padding: float = 20.0        # Default: 20 pixels
    header_height: float = 24.0  # Default: 24 pixels


@dataclass
class LayoutSettings:
    """All layout-related settings."""
    lifeline: LifelineLayoutSettings = field(default_factory=LifelineLayoutSettings)
    message: MessageLayoutSettings = field(default_factory=MessageLayoutSettings)
    activation: ActivationLayoutSettings = field(default_factory=ActivationLayoutSettings)
    canvas: CanvasLayoutSettings = field(default_factory=CanvasLayoutSettings)
    group: GroupLayoutSettings = field(default_factory=GroupLayoutSettings)


# =============================================================================
# Default Content Settings
# =============================================================================

@dataclass
class DefaultContentSettings:
    """Defaults for newly created diagram items.

    Defaults:
        lifeline_name: "Actor"
        group_name: "Group"
        diagram_name: "Untitled Diagram"
        activation_mode: "manual"
    """
    lifeline_name: str = "Actor"               # Default: "Actor"
    group_name: str = "Group"                  # Default: "Group"
    diagram_name: str = "Untitled Diagram"     # Default: "Untitled Diagram"
    activation_mode: str = "manual"            # Default: "manual" (manual | auto | explicit)


# =============================================================================
# Persistence Settings
# =============================================================================

@dataclass
class PersistenceSettings:
    """.buml file writing options.

    Defaults:
        indent: 2
        include_documentation: True
        validate_on_load: True
    """
    indent: int = 2                      # Default: 2 spaces
    include_documentation: bool = True   # Default: True (embed _documentation block)
    validate_on_load: bool = True        # Default: True (log JSON Schema value warnings)


# =============================================================================
# Main App Settings
# =============================================================================

@dataclass
class AppSettings:
    """Application settings with default values.

    Attributes:
        workspace_dir: Default directory for saving/loading .buml files.
        layout: Geometry constants for the layout engine.
        defaults: Defaults for new lifelines, groups and diagrams.
        persistence: .buml writing and loading options.
    """
    # Workspace directory for .buml save/load (empty = ~/Documents/seqbuml)
    workspace_dir: str = ""

    layout: LayoutSettings = field(default_factory=LayoutSettings)
    defaults: DefaultContentSettings = field(default_factory=DefaultContentSettings)
    persistence: PersistenceSettings = field(default_factory=PersistenceSettings)


def _apply_section(target: Any, data: Dict[str, Any]) -> None:
    """Copy known keys from a TOML table onto a settings dataclass."""
    if not isinstance(data, dict):
        return
    for f in fields(target):
        if f.name in data:
            setattr(target, f.name, data[f.name])


def _section_dict(source: Any) -> Dict[str, Any]:
    return {f.name: getattr(source, f.name) for f in fields(source)}


# =============================================================================
# Settings Manager
# =============================================================================

class SettingsManager:
    """Manages loading, saving, and accessing application settings.

    Settings are stored in a TOML file at the platform-appropriate location.
    If the settings file doesn't exist, defaults are used and the file is
    created on first save.

    Args:
        app_name: Application name used for the config directory.
        settings_dir: Override for the config directory (used by tests).
    """

    def __init__(self, app_name: str = APP_NAME, settings_dir: Optional[Path] = None):
        if settings_dir is None:
            settings_dir = Path(platformdirs.user_config_dir(app_name))
        self.settings_dir = Path(settings_dir)
        self.settings_file = self.settings_dir / "settings.toml"
        self.settings = self.load()

    def load(self) -> AppSettings:
        """Load settings from the TOML file.

        Returns:
            AppSettings instance with values from file or defaults if file
            doesn't exist or is invalid.
        """
        if not self.settings_file.exists():
            return AppSettings()

        try:
            with open(self.settings_file, "rb") as f:
                data = tomllib.load(f)

            return self._parse_toml(data)
        except (OSError, tomllib.TOMLDecodeError) as e:
            # If file is corrupted or invalid, return defaults
            log.warning("Ignoring unreadable settings file %s: %s", self.settings_file, e)
            return AppSettings()

    def _parse_toml(self, data: Dict[str, Any]) -> AppSettings:
        """Parse TOML data into AppSettings.

        Args:
            data: Parsed TOML dictionary.

        Returns:
            AppSettings instance populated from TOML data.
        """
        settings = AppSettings()

        # General section
        general = data.get("general", {})
        settings.workspace_dir = general.get("workspace_dir", settings.workspace_dir)

        # Layout section
        layout = data.get("layout", {})
        _apply_section(settings.layout.lifeline, layout.get("lifeline", {}))
        _apply_section(settings.layout.message, layout.get("message", {}))
        _apply_section(settings.layout.activation, layout.get("activation", {}))
        _apply_section(settings.layout.canvas, layout.get("canvas", {}))
        _apply_section(settings.layout.group, layout.get("group", {}))

        # Defaults and persistence sections
        _apply_section(settings.defaults, data.get("defaults", {}))
        _apply_section(settings.persistence, data.get("persistence", {}))

        return settings

    def save(self) -> None:
        """Save current settings to the TOML file.

        Creates the settings directory if it doesn't exist.
        """
        # Ensure directory exists
        self.settings_dir.mkdir(parents=True, exist_ok=True)

        # Convert settings to TOML structure
        data = self._to_toml_dict()

        with open(self.settings_file, "wb") as f:
            tomli_w.dump(data, f)

    def _to_toml_dict(self) -> Dict[str, Any]:
        """Convert settings to a TOML-compatible dictionary structure.

        Returns:
            Dictionary organized by TOML sections.
        """
        s = self.settings
        return {
            "general": {
                "workspace_dir": s.workspace_dir,
            },
            "layout": {
                "lifeline": _section_dict(s.layout.lifeline),
                "message": _section_dict(s.layout.message),
                "activation": _section_dict(s.layout.activation),
                "canvas": _section_dict(s.layout.canvas),
                "group": _section_dict(s.layout.group),
            },
            "defaults": _section_dict(s.defaults),
            "persistence": _section_dict(s.persistence),
        }

    def to_toml(self) -> str:
        """Convert current settings to a TOML-formatted string.

        Returns:
            TOML representation of the current settings.
        """
        data = self._to_toml_dict()
        return tomli_w.dumps(data)

    def get_workspace_dir(self) -> Path:
        """Get the resolved workspace directory path.

        Returns:
            Path to workspace directory. Falls back to ~/Documents/seqbuml
            if workspace_dir setting is empty.
        """
        if self.settings.workspace_dir:
            return Path(self.settings.workspace_dir)
        return Path.home() / "Documents" / "seqbuml"

    def get_settings_path(self) -> Path:
        """Get the path to the settings file.

        Returns:
            Path object pointing to the settings file location.
        """
        return self.settings_file
