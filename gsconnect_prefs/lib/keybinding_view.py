"""
Keyboard shortcut editor.

A list of actions, each showing its accelerator. Activating a row starts
capture: the next valid key combination becomes the accelerator, Escape
cancels and BackSpace clears it. Every change hands the full profile to the
callback set with `set_callback()`.
"""
from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Final

import gi

gi.require_version("Gtk", "4.0")
gi.require_version("Adw", "1")
from gi.repository import Adw, Gdk, GLib, Gtk

log = logging.getLogger(__name__)

DISABLED_TEXT: Final[str] = "Disabled"
CAPTURE_TEXT: Final[str] = "New accelerator…"


class AccelRow(Adw.ActionRow):
    __gtype_name__ = "GSConnectPrefsAccelRow"

    def __init__(self, action: str, description: str) -> None:
        super().__init__(activatable=True)
        self.action = action
        self.accelerator = ""
        self.set_title(GLib.markup_escape_text(description))

        self.shortcut = Gtk.ShortcutLabel(disabled_text=DISABLED_TEXT)
        self.shortcut.set_valign(Gtk.Align.CENTER)
        self.add_suffix(self.shortcut)

    def set_accelerator(self, accelerator: str) -> None:
        self.accelerator = accelerator
        self.shortcut.set_accelerator(accelerator)

    def set_capturing(self, capturing: bool) -> None:
        self.set_subtitle(CAPTURE_TEXT if capturing else "")


class KeybindingsView(Gtk.Box):
    """Editable action -> accelerator list."""

    __gtype_name__ = "GSConnectPrefsKeybindingsView"

    def __init__(self) -> None:
        super().__init__(hexpand=True)
        self.list = Gtk.ListBox(selection_mode=Gtk.SelectionMode.NONE, hexpand=True)
        self.append(self.list)

        self.rows: dict[str, AccelRow] = {}
        self._callback: Callable[[dict[str, str]], None] | None = None
        self._capturing: AccelRow | None = None

        self.list.connect("row-activated", self._on_row_activated)

        key_controller = Gtk.EventControllerKey()
        key_controller.connect("key-pressed", self._on_key_pressed)
        self.add_controller(key_controller)

    def add_accel(self, action: str, description: str, accelerator: str = "") -> AccelRow:
        row = AccelRow(action, description)
        row.set_accelerator(accelerator)
        self.list.append(row)
        self.rows[action] = row
        return row

    def set_accels(self, profile: Mapping[str, str]) -> None:
        """Show `profile`; actions missing from it are disabled."""
        for action, row in self.rows.items():
            row.set_accelerator(profile.get(action, ""))

    def get_accels(self) -> dict[str, str]:
        return {
            action: row.accelerator
            for action, row in self.rows.items()
            if row.accelerator
        }

    def set_callback(self, callback: Callable[[dict[str, str]], None]) -> None:
        self._callback = callback

    # ─────────────────────────────────────────────────────────────────────────
    # CAPTURE
    # ─────────────────────────────────────────────────────────────────────────
    def _on_row_activated(self, _listbox: Gtk.ListBox, row: Gtk.ListBoxRow) -> None:
        if not isinstance(row, AccelRow):
            return
        self._stop_capture()
        self._capturing = row
        row.set_capturing(True)
        row.grab_focus()

    def _stop_capture(self) -> None:
        if self._capturing is not None:
            self._capturing.set_capturing(False)
            self._capturing = None

    def _on_key_pressed(
        self,
        _controller: Gtk.EventControllerKey,
        keyval: int,
        _keycode: int,
        state: Gdk.ModifierType,
    ) -> bool:
        row = self._capturing
        if row is None:
            return False

        mods = state & Gtk.accelerator_get_default_mod_mask()

        if keyval == Gdk.KEY_Escape and not mods:
            self._stop_capture()
            return True

        if keyval == Gdk.KEY_BackSpace and not mods:
            self._stop_capture()
            self._commit(row, "")
            return True

        if not Gtk.accelerator_valid(keyval, mods):
            return True

        self._stop_capture()
        self._commit(row, Gtk.accelerator_name(keyval, mods))
        return True

    def _commit(self, row: AccelRow, accelerator: str) -> None:
        row.set_accelerator(accelerator)
        log.debug("Accelerator for %s set to %r", row.action, accelerator)
        if self._callback is not None:
            self._callback(self.get_accels())
