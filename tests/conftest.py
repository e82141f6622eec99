"""Shared fixtures for the GSConnect Preferences tests."""

from pathlib import Path

import pytest

from gsconnect_prefs.lib.schema import Schema, load_schema
from gsconnect_prefs.lib.settings import FileSettingsStore


@pytest.fixture
def schema() -> Schema:
    return load_schema()


@pytest.fixture
def settings_path(tmp_path: Path) -> Path:
    return tmp_path / "settings.yaml"


@pytest.fixture
def store(schema: Schema, settings_path: Path) -> FileSettingsStore:
    return FileSettingsStore(schema, settings_path)


@pytest.fixture(scope="session")
def gtk():
    """Initialise GTK 4 and Libadwaita, or skip when no display is usable."""
    gi = pytest.importorskip("gi")
    try:
        gi.require_version("Gtk", "4.0")
        gi.require_version("Adw", "1")
    except ValueError as e:
        pytest.skip(f"GTK 4 / Libadwaita unavailable: {e}")

    from gi.repository import Adw, Gtk

    if not Gtk.init_check():
        pytest.skip("No display available")
    Adw.init()
    return Gtk
