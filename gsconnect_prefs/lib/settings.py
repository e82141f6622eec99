"""
Settings store.

`SettingsStore` is the key/value store every widget is bound to. It exposes
the schema for key metadata, typed accessors, and an explicit
subscribe/unsubscribe contract for change notification:

    store = FileSettingsStore.open()
    handler = store.connect("debug", lambda store, key: ...)
    store.set_boolean("debug", True)     # callback runs after the write
    store.disconnect(handler)

`FileSettingsStore` persists every value in a single YAML file, rewritten
atomically on each change. `open_store()` picks the GSettings backend when
the compiled schema is installed, and the file store otherwise.
"""
from __future__ import annotations

import copy
import itertools
import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any, Final

import yaml

from gsconnect_prefs.lib import utility
from gsconnect_prefs.lib.schema import Schema, SchemaError, load_schema

log = logging.getLogger(__name__)

SETTINGS_FILENAME: Final[str] = "settings.yaml"

ChangeCallback = Callable[["SettingsStore", str], None]


# =============================================================================
# ERRORS
# =============================================================================
class SettingsError(ValueError):
    """Base class for settings store errors."""


class UnknownKeyError(SettingsError, KeyError):
    """The key is not declared in the schema."""

    def __str__(self) -> str:
        return f"Unknown settings key: {self.args[0]!r}"


class InvalidValueError(SettingsError):
    """The value does not fit the key's declared type or range."""


# =============================================================================
# STORE INTERFACE
# =============================================================================
class SettingsStore:
    """Schema-backed key/value store with change notification.

    Subclasses implement `_read` and `_write`; this class handles key
    validation and callback dispatch.
    """

    def __init__(self, schema: Schema) -> None:
        self.schema = schema
        self._handlers: dict[int, tuple[str, ChangeCallback]] = {}
        self._handler_ids = itertools.count(1)

    # ─────────────────────────────────────────────────────────────────────
    # BACKEND HOOKS
    # ─────────────────────────────────────────────────────────────────────
    def _read(self, key: str) -> Any:
        raise NotImplementedError

    def _write(self, key: str, value: Any) -> None:
        raise NotImplementedError

    def _erase(self, key: str) -> None:
        raise NotImplementedError

    # ─────────────────────────────────────────────────────────────────────
    # VALUES
    # ─────────────────────────────────────────────────────────────────────
    def _check_key(self, key: str) -> None:
        if not self.schema.has_key(key):
            raise UnknownKeyError(key)

    def get(self, key: str) -> Any:
        self._check_key(key)
        return self._read(key)

    def set(self, key: str, value: Any) -> None:
        self._check_key(key)
        try:
            value = self.schema.get_key(key).validate(value)
        except SchemaError as e:
            raise InvalidValueError(str(e)) from e

        if self._read(key) == value:
            return

        self._write(key, value)
        log.debug("Setting %s = %r", key, value)
        self.emit_changed(key)

    def reset(self, key: str) -> None:
        self._check_key(key)
        before = self._read(key)
        self._erase(key)
        if self._read(key) != before:
            self.emit_changed(key)

    def get_boolean(self, key: str) -> bool:
        return bool(self.get(key))

    def set_boolean(self, key: str, value: bool) -> None:
        self.set(key, bool(value))

    def get_string(self, key: str) -> str:
        value = self.get(key)
        return "" if value is None else str(value)

    def set_string(self, key: str, value: str) -> None:
        self.set(key, str(value))

    # ─────────────────────────────────────────────────────────────────────
    # NOTIFICATION
    # ─────────────────────────────────────────────────────────────────────
    def connect(self, key: str, callback: ChangeCallback) -> int:
        """Call `callback(store, key)` whenever `key` changes."""
        self._check_key(key)
        handler_id = next(self._handler_ids)
        self._handlers[handler_id] = (key, callback)
        return handler_id

    def disconnect(self, handler_id: int) -> None:
        if self._handlers.pop(handler_id, None) is None:
            log.debug("disconnect(): unknown handler %d", handler_id)

    def emit_changed(self, key: str) -> None:
        # Copy so callbacks may disconnect themselves
        for watched, callback in list(self._handlers.values()):
            if watched == key:
                callback(self, key)


# =============================================================================
# FILE BACKEND
# =============================================================================
class FileSettingsStore(SettingsStore):
    """Settings persisted to a YAML file of non-default and edited values."""

    def __init__(self, schema: Schema, path: Path | None = None) -> None:
        super().__init__(schema)
        self.path = path
        self._values: dict[str, Any] = {}
        if path is not None:
            self._load(path)

    @classmethod
    def open(
        cls,
        schema: Schema | None = None,
        settings_dir: Path | None = None,
    ) -> FileSettingsStore:
        settings_dir = settings_dir or utility.get_settings_dir()
        return cls(schema or load_schema(), settings_dir / SETTINGS_FILENAME)

    def _load(self, path: Path) -> None:
        data = utility.load_config(path)
        for key, value in data.items():
            if not self.schema.has_key(key):
                log.debug("Ignoring unknown key %r in %s", key, path)
                continue
            try:
                self._values[key] = self.schema.get_key(key).validate(value)
            except SchemaError as e:
                log.warning("Ignoring stored value: %s", e)

    def _save(self) -> None:
        if self.path is None:
            return
        content = yaml.safe_dump(self._values, default_flow_style=False, sort_keys=True)
        if not utility.atomic_write_text(self.path, content):
            log.error("Settings could not be saved to %s", self.path)

    def _read(self, key: str) -> Any:
        if key in self._values:
            return copy.deepcopy(self._values[key])
        return copy.deepcopy(self.schema.get_key(key).default)

    def _write(self, key: str, value: Any) -> None:
        self._values[key] = copy.deepcopy(value)
        self._save()

    def _erase(self, key: str) -> None:
        if key in self._values:
            del self._values[key]
            self._save()


def open_store(settings_dir: Path | None = None) -> SettingsStore:
    """Return the GSettings-backed store if available, else the file store."""
    from gsconnect_prefs.lib import gsettings_store

    store = gsettings_store.GSettingsStore.lookup()
    if store is not None:
        log.info("Using GSettings schema %s", store.schema.schema_id)
        return store

    store = FileSettingsStore.open(settings_dir=settings_dir)
    log.info("Using settings file %s", store.path)
    return store
