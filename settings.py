"""
settings.py

Persistent settings management for diagramguard.

Render, sanitizer and trace options, stored as TOML in the per-user config
directory that platformdirs reports for this platform.

Settings file location:
    - Windows: %APPDATA%/diagramguard/settings.toml
    - macOS: ~/Library/Application Support/diagramguard/settings.toml
    - Linux: ~/.config/diagramguard/settings.toml

Every field has a default next to its declaration; a missing or unreadable
settings.toml means all defaults apply.
"""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import platformdirs

# TOML reading - use tomllib for Python 3.11+, tomli for earlier versions
if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

import tomli_w

APP_NAME = "diagramguard"

# Global settings manager instance (singleton)
_settings_manager: Optional["SettingsManager"] = None


def get_settings() -> "SettingsManager":
    """Return the process-wide SettingsManager, creating it on first use."""
    global _settings_manager
    if _settings_manager is None:
        _settings_manager = SettingsManager()
    return _settings_manager


def set_settings(manager: Optional["SettingsManager"]) -> None:
    """Replace the global settings manager (``None`` resets to lazy default)."""
    global _settings_manager
    _settings_manager = manager


# =============================================================================
# Render Settings
# =============================================================================

@dataclass
class RenderSettings:
    """Mermaid CLI (mmdc) rendering settings.

    Defaults:
        mmdc_path: ""
        use_npx: False
        timeout_seconds: 60.0
        background: "white"
        png_scale: 2.0
    """
    mmdc_path: str = ""            # Default: "" (search MMDC_PATH, then PATH)
    use_npx: bool = False          # Default: False (npx @mermaid-js/mermaid-cli)
    timeout_seconds: float = 60.0  # Default: 60 seconds per render call
    background: str = "white"      # Default: "white"
    png_scale: float = 2.0         # Default: 2x raster


# =============================================================================
# Sanitizer Settings
# =============================================================================

@dataclass
class SanitizerSettings:
    """Diagram sanitizer settings.

    Defaults:
        extract_fenced_blocks: True
        unescape_newlines: True
        indent: "    "
        default_class_style: "fill:#f9f9f9,stroke:#666,stroke-width:1px"
        sanitized_strip_pattern: r"[^a-zA-Z0-9\\s\\[\\]\\-_>]"
    """
    extract_fenced_blocks: bool = True   # Default: True
    unescape_newlines: bool = True       # Default: True
    indent: str = "    "                 # Default: four spaces
    default_class_style: str = "fill:#f9f9f9,stroke:#666,stroke-width:1px"
    sanitized_strip_pattern: str = r"[^a-zA-Z0-9\s\[\]\-_>]"


# =============================================================================
# Debug Settings
# =============================================================================

@dataclass
class DebugSettings:
    """Trace output settings.

    Defaults:
        trace: False
        log_file: ""
        categories: []
    """
    trace: bool = False   # Default: False
    log_file: str = ""    # Default: "" (stderr only)
    categories: List[str] = field(default_factory=list)  # Default: [] (all categories)


# =============================================================================
# Main App Settings
# =============================================================================

@dataclass
class AppSettings:
    """All diagramguard settings, one attribute per TOML section.

    Attributes:
        render: Mermaid CLI settings.
        sanitizer: Sanitizer behaviour.
        debug: Trace output.
    """
    render: RenderSettings = field(default_factory=RenderSettings)
    sanitizer: SanitizerSettings = field(default_factory=SanitizerSettings)
    debug: DebugSettings = field(default_factory=DebugSettings)


class SettingsManager:
    """Reads and writes diagramguard's settings.toml.

    A manager starts from the file's contents (or pure defaults when there is
    no file yet); ``save`` writes the current values back, creating the
    directory as needed.

    Args:
        app_name: Application name used for the config directory.
        settings_file: Explicit settings file path (overrides ``app_name``).
    """

    def __init__(self, app_name: str = APP_NAME, settings_file: Optional[Path] = None):
        if settings_file is not None:
            self.settings_file = Path(settings_file)
            self.settings_dir = self.settings_file.parent
        else:
            self.settings_dir = Path(platformdirs.user_config_dir(app_name))
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
        except (OSError, tomllib.TOMLDecodeError):
            # If file is corrupted or invalid, return defaults
            return AppSettings()

    def _parse_toml(self, data: Dict[str, Any]) -> AppSettings:
        """Parse TOML data into AppSettings.

        Args:
            data: Parsed TOML dictionary.

        Returns:
            AppSettings instance populated from TOML data.
        """
        settings = AppSettings()

        render = data.get("render", {})
        settings.render.mmdc_path = render.get("mmdc_path", settings.render.mmdc_path)
        settings.render.use_npx = render.get("use_npx", settings.render.use_npx)
        settings.render.timeout_seconds = render.get("timeout_seconds", settings.render.timeout_seconds)
        settings.render.background = render.get("background", settings.render.background)
        settings.render.png_scale = render.get("png_scale", settings.render.png_scale)

        sanitizer = data.get("sanitizer", {})
        settings.sanitizer.extract_fenced_blocks = sanitizer.get("extract_fenced_blocks", settings.sanitizer.extract_fenced_blocks)
        settings.sanitizer.unescape_newlines = sanitizer.get("unescape_newlines", settings.sanitizer.unescape_newlines)
        settings.sanitizer.indent = sanitizer.get("indent", settings.sanitizer.indent)
        settings.sanitizer.default_class_style = sanitizer.get("default_class_style", settings.sanitizer.default_class_style)
        settings.sanitizer.sanitized_strip_pattern = sanitizer.get("sanitized_strip_pattern", settings.sanitizer.sanitized_strip_pattern)

        debug = data.get("debug", {})
        settings.debug.trace = debug.get("trace", settings.debug.trace)
        settings.debug.log_file = debug.get("log_file", settings.debug.log_file)
        settings.debug.categories = list(debug.get("categories", settings.debug.categories))

        return settings

    def save(self) -> None:
        """Save current settings to the TOML file.

        Creates the settings directory if it doesn't exist.
        """
        self.settings_dir.mkdir(parents=True, exist_ok=True)

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
            "render": {
                "mmdc_path": s.render.mmdc_path,
                "use_npx": s.render.use_npx,
                "timeout_seconds": s.render.timeout_seconds,
                "background": s.render.background,
                "png_scale": s.render.png_scale,
            },
            "sanitizer": {
                "extract_fenced_blocks": s.sanitizer.extract_fenced_blocks,
                "unescape_newlines": s.sanitizer.unescape_newlines,
                "indent": s.sanitizer.indent,
                "default_class_style": s.sanitizer.default_class_style,
                "sanitized_strip_pattern": s.sanitizer.sanitized_strip_pattern,
            },
            "debug": {
                "trace": s.debug.trace,
                "log_file": s.debug.log_file,
                "categories": list(s.debug.categories),
            },
        }
