"""
GSConnect Preferences application.

Hosts `PrefsWidget` in a window whose header bar carries the page switcher.
"""
from __future__ import annotations

import logging
from typing import Final

import gi

gi.require_version("Gtk", "4.0")
gi.require_version("Adw", "1")
from gi.repository import Adw, Gio, GLib, Gtk

from gsconnect_prefs.lib.pages import PrefsWidget
from gsconnect_prefs.lib.settings import SettingsStore, open_store

log = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================
APP_ID: Final[str] = "org.gnome.Shell.Extensions.GSConnect.Preferences"
APP_TITLE: Final[str] = "GSConnect Preferences"
DEFAULT_WIDTH: Final[int] = 860
DEFAULT_HEIGHT: Final[int] = 640
DEBUG_KEY: Final[str] = "debug"


def apply_debug_level(store: SettingsStore, key: str = DEBUG_KEY) -> None:
    """Follow the debug key with the root logger's level."""
    level = logging.DEBUG if store.get_boolean(key) else logging.INFO
    logging.getLogger().setLevel(level)


def build_prefs_widget(store: SettingsStore) -> PrefsWidget:
    """Create the preferences widget.

    The switcher is moved into the window's header bar once the widget has
    been placed in a window, from a zero-delay timeout.
    """
    prefs_widget = PrefsWidget(store)

    def _customize_header_bar() -> bool:
        root = prefs_widget.get_root()
        if isinstance(root, Gtk.Window):
            header_bar = root.get_titlebar()
            if isinstance(header_bar, Adw.HeaderBar):
                header_bar.set_title_widget(prefs_widget.switcher)
        else:
            log.debug("Preferences widget has no window; switcher not placed")
        return GLib.SOURCE_REMOVE

    GLib.timeout_add(0, _customize_header_bar)
    return prefs_widget


class GSConnectPreferences(Adw.Application):
    """Main application class."""

    def __init__(self) -> None:
        super().__init__(application_id=APP_ID, flags=Gio.ApplicationFlags.FLAGS_NONE)
        self.store: SettingsStore | None = None
        self.window: Gtk.ApplicationWindow | None = None
        self._debug_handler: int | None = None

    # ─────────────────────────────────────────────────────────────────────────
    # LIFECYCLE HOOKS
    # ─────────────────────────────────────────────────────────────────────────
    def do_activate(self) -> None:
        if self.window is not None:
            self.window.present()
            return

        self.store = open_store()
        apply_debug_level(self.store)
        self._debug_handler = self.store.connect(
            DEBUG_KEY, lambda store, key: apply_debug_level(store, key)
        )
        self._build_ui(self.store)

    def do_shutdown(self) -> None:
        if self.store is not None and self._debug_handler is not None:
            self.store.disconnect(self._debug_handler)
            self._debug_handler = None
        Adw.Application.do_shutdown(self)

    # ─────────────────────────────────────────────────────────────────────────
    # MAIN UI CONSTRUCTION
    # ─────────────────────────────────────────────────────────────────────────
    def _build_ui(self, store: SettingsStore) -> None:
        window = Gtk.ApplicationWindow(application=self, title=APP_TITLE)
        window.set_default_size(DEFAULT_WIDTH, DEFAULT_HEIGHT)
        window.set_titlebar(Adw.HeaderBar())

        toast_overlay = Adw.ToastOverlay()
        toast_overlay.set_child(build_prefs_widget(store))
        window.set_child(toast_overlay)

        self.window = window
        window.present()
