"""Shared fixtures: every test runs against a private settings file with
tracing switched off, so a developer's own config cannot leak in."""
from __future__ import annotations

import pytest

import debug_trace
from settings import SettingsManager, set_settings


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path):
    manager = SettingsManager(settings_file=tmp_path / "settings.toml")
    set_settings(manager)
    debug_trace.configure(False)
    yield manager
    debug_trace.configure(False)
    set_settings(None)
