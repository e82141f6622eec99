"""
GSettings backend for the settings store.

Used when the compiled `org.gnome.shell.extensions.gsconnect` schema is
installed, so the preferences share state with the shell extension.
"""
from __future__ import annotations

import logging
from typing import Any

import gi

gi.require_version("Gio", "2.0")
from gi.repository import Gio, GLib

from gsconnect_prefs.lib.schema import (
    RANGE_ENUM,
    RANGE_FLAGS,
    RANGE_INTERVAL,
    SCHEMA_ID,
    Schema,
    SchemaKey,
)
from gsconnect_prefs.lib.settings import SettingsStore

log = logging.getLogger(__name__)


def _key_from_gio(name: str, gkey: Gio.SettingsSchemaKey) -> SchemaKey:
    """Translate Gio key metadata into a SchemaKey."""
    range_type, range_value = gkey.get_range().unpack()
    choices: tuple[str, ...] = ()
    minimum = maximum = None

    if range_type in (RANGE_ENUM, RANGE_FLAGS):
        choices = tuple(range_value)
    elif range_type == RANGE_INTERVAL:
        minimum, maximum = range_value

    return SchemaKey(
        name=name,
        value_type=gkey.get_value_type().dup_string(),
        default=gkey.get_default_value().unpack(),
        summary=gkey.get_summary() or name,
        description=gkey.get_description(),
        range_type=range_type,
        choices=choices,
        minimum=minimum,
        maximum=maximum,
    )


class GSettingsStore(SettingsStore):
    """SettingsStore over a Gio.Settings instance."""

    def __init__(self, settings: Gio.Settings, gschema: Gio.SettingsSchema) -> None:
        schema = Schema(schema_id=gschema.get_id())
        for name in gschema.list_keys():
            schema.keys[name] = _key_from_gio(name, gschema.get_key(name))
        super().__init__(schema)

        self.settings = settings
        self._changed_id = settings.connect("changed", self._on_changed)

    @classmethod
    def lookup(cls, schema_id: str = SCHEMA_ID) -> GSettingsStore | None:
        source = Gio.SettingsSchemaSource.get_default()
        if source is None:
            return None
        gschema = source.lookup(schema_id, True)
        if gschema is None:
            log.debug("GSettings schema %s is not installed", schema_id)
            return None
        return cls(Gio.Settings.new_full(gschema, None, None), gschema)

    def _on_changed(self, _settings: Gio.Settings, key: str) -> None:
        if self.schema.has_key(key):
            self.emit_changed(key)

    def _read(self, key: str) -> Any:
        if self.schema.get_key(key).range_type == RANGE_ENUM:
            return self.settings.get_string(key)
        return self.settings.get_value(key).unpack()

    def _write(self, key: str, value: Any) -> None:
        # SettingsStore.set emits the change itself
        with self._blocked():
            if self.schema.get_key(key).range_type == RANGE_ENUM:
                self.settings.set_string(key, value)
            else:
                value_type = self.schema.get_key(key).value_type
                self.settings.set_value(key, GLib.Variant(value_type, value))

    def _erase(self, key: str) -> None:
        with self._blocked():
            self.settings.reset(key)

    def _blocked(self):
        return self.settings.handler_block(self._changed_id)
