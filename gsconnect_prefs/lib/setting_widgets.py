"""
Controls bound to settings keys.

Each control is two-way bound to one key of a `SettingsStore`: store
changes are reflected in the control and local edits are written back
immediately. `create_setting_widget()` picks the control from the key's
type tag (see `schema.select_setting_kind`).

Every control is a Gtk.Box holding the interactive widget as `control`.
Store handlers are released in `do_unroot`.
"""
from __future__ import annotations

import json
import logging
from collections.abc import Callable
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Final

import gi

gi.require_version("Gtk", "4.0")
gi.require_version("Adw", "1")
from gi.repository import Adw, GObject, Gtk

from gsconnect_prefs.lib import utility
from gsconnect_prefs.lib.schema import SettingKind, number_bounds
from gsconnect_prefs.lib.settings import InvalidValueError

if TYPE_CHECKING:
    from gsconnect_prefs.lib.settings import SettingsStore

log = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================
MAYBE_LABELS: Final[tuple[str, ...]] = ("Default", "On", "Off")
MAYBE_VALUES: Final[tuple[bool | None, ...]] = (None, True, False)
FLAGS_EMPTY_LABEL: Final[str] = "None"
RANGE_WIDTH_REQUEST: Final[int] = 160
NUMBER_WIDTH_CHARS: Final[int] = 8
ERROR_CSS_CLASS: Final[str] = "error"


# =============================================================================
# BASE CLASS
# =============================================================================
class SettingWidget(Gtk.Box):
    """Two-way binding between a control and one settings key.

    Subclasses create `self.control`, then call `_bind()`. They implement
    `_apply_value(value)` to show a store value and call `_write(value)` for
    user edits. Programmatic updates are never written back.
    """

    __gtype_name__ = "GSConnectPrefsSettingWidget"

    control: Gtk.Widget

    def __init__(self, store: SettingsStore, key_name: str) -> None:
        super().__init__(valign=Gtk.Align.CENTER)
        self.store = store
        self.key_name = key_name
        self.schema_key = store.schema.get_key(key_name)
        self._programmatic_update = False
        self._store_handler: int | None = None

    def _bind(self) -> None:
        self.append(self.control)
        self._store_handler = self.store.connect(self.key_name, self._on_store_changed)
        self._on_store_changed(self.store, self.key_name)

    @contextmanager
    def _suppress_change_signal(self):
        self._programmatic_update = True
        try:
            yield
        finally:
            self._programmatic_update = False

    def _on_store_changed(self, store: SettingsStore, key: str) -> None:
        with self._suppress_change_signal():
            self._apply_value(store.get(key))

    def _apply_value(self, value: Any) -> None:
        raise NotImplementedError

    def _write(self, value: Any) -> None:
        if self._programmatic_update:
            return
        try:
            self.store.set(self.key_name, value)
        except InvalidValueError as e:
            log.warning("Rejected edit: %s", e)
            self._on_store_changed(self.store, self.key_name)

    def do_unroot(self) -> None:
        if self._store_handler is not None:
            self.store.disconnect(self._store_handler)
            self._store_handler = None
        Gtk.Box.do_unroot(self)


# =============================================================================
# CONTROLS
# =============================================================================
class BoolSetting(SettingWidget):
    """A switch for boolean keys."""

    __gtype_name__ = "GSConnectPrefsBoolSetting"

    def __init__(self, store: SettingsStore, key_name: str) -> None:
        super().__init__(store, key_name)
        self.control = Gtk.Switch(valign=Gtk.Align.CENTER)
        self._bind()
        self.control.connect("notify::active", self._on_active)

    def _apply_value(self, value: Any) -> None:
        self.control.set_active(bool(value))

    def _on_active(self, switch: Gtk.Switch, _param: GObject.ParamSpec) -> None:
        self._write(switch.get_active())


class EnumSetting(SettingWidget):
    """A drop-down of an enum key's choices."""

    __gtype_name__ = "GSConnectPrefsEnumSetting"

    def __init__(self, store: SettingsStore, key_name: str) -> None:
        super().__init__(store, key_name)
        self.choices = list(self.schema_key.choices)
        self.control = Gtk.DropDown(model=Gtk.StringList.new(self.choices))
        self._bind()
        self.control.connect("notify::selected", self._on_selected)

    def _apply_value(self, value: Any) -> None:
        if value in self.choices:
            self.control.set_selected(self.choices.index(value))

    def _on_selected(self, dropdown: Gtk.DropDown, _param: GObject.ParamSpec) -> None:
        idx = dropdown.get_selected()
        if 0 <= idx < len(self.choices):
            self._write(self.choices[idx])


class FlagsSetting(SettingWidget):
    """A menu button with one check button per flag."""

    __gtype_name__ = "GSConnectPrefsFlagsSetting"

    def __init__(self, store: SettingsStore, key_name: str) -> None:
        super().__init__(store, key_name)
        self.checks: dict[str, Gtk.CheckButton] = {}

        box = Gtk.Box(orientation=Gtk.Orientation.VERTICAL, spacing=6)
        for flag in self.schema_key.choices:
            check = Gtk.CheckButton(label=flag)
            check.connect("toggled", self._on_toggled)
            box.append(check)
            self.checks[flag] = check

        popover = Gtk.Popover()
        popover.set_child(box)
        self.control = Gtk.MenuButton(popover=popover)
        self._bind()

    def get_flags(self) -> list[str]:
        return [flag for flag, check in self.checks.items() if check.get_active()]

    def _update_label(self) -> None:
        self.control.set_label(", ".join(self.get_flags()) or FLAGS_EMPTY_LABEL)

    def _apply_value(self, value: Any) -> None:
        selected = set(value or ())
        for flag, check in self.checks.items():
            check.set_active(flag in selected)
        self._update_label()

    def _on_toggled(self, _check: Gtk.CheckButton) -> None:
        if self._programmatic_update:
            return
        self._update_label()
        self._write(self.get_flags())


class MaybeSetting(SettingWidget):
    """A Default/On/Off drop-down for nullable boolean keys."""

    __gtype_name__ = "GSConnectPrefsMaybeSetting"

    def __init__(self, store: SettingsStore, key_name: str) -> None:
        super().__init__(store, key_name)
        self.control = Gtk.DropDown(model=Gtk.StringList.new(list(MAYBE_LABELS)))
        self._bind()
        self.control.connect("notify::selected", self._on_selected)

    def _apply_value(self, value: Any) -> None:
        self.control.set_selected(MAYBE_VALUES.index(None if value is None else bool(value)))

    def _on_selected(self, dropdown: Gtk.DropDown, _param: GObject.ParamSpec) -> None:
        idx = dropdown.get_selected()
        if 0 <= idx < len(MAYBE_VALUES):
            self._write(MAYBE_VALUES[idx])


class NumberSetting(SettingWidget):
    """A spin button limited to the bounds of the key's numeric type."""

    __gtype_name__ = "GSConnectPrefsNumberSetting"

    def __init__(self, store: SettingsStore, key_name: str) -> None:
        super().__init__(store, key_name)
        self.value_type = self.schema_key.value_type
        lower, upper = number_bounds(self.value_type)

        self.control = Gtk.SpinButton(
            adjustment=Gtk.Adjustment(
                lower=lower,
                upper=upper,
                step_increment=1,
                page_increment=10,
            ),
            digits=2 if self.value_type == "d" else 0,
            numeric=True,
            width_chars=NUMBER_WIDTH_CHARS,
        )
        self._bind()
        self.control.connect("value-changed", self._on_value_changed)

    def _apply_value(self, value: Any) -> None:
        self.control.set_value(float(value or 0))

    def _on_value_changed(self, spin: Gtk.SpinButton) -> None:
        value = spin.get_value()
        self._write(value if self.value_type == "d" else int(round(value)))


class RangeSetting(SettingWidget):
    """A horizontal scale over the key's declared min/max."""

    __gtype_name__ = "GSConnectPrefsRangeSetting"

    def __init__(self, store: SettingsStore, key_name: str) -> None:
        super().__init__(store, key_name)
        key = self.schema_key
        lower = key.minimum if key.minimum is not None else 0
        upper = key.maximum if key.maximum is not None else 100
        self.is_integer = key.value_type != "d"

        self.control = Gtk.Scale(
            orientation=Gtk.Orientation.HORIZONTAL,
            adjustment=Gtk.Adjustment(
                lower=lower,
                upper=upper,
                step_increment=1 if self.is_integer else 0.1,
            ),
            draw_value=True,
            digits=0 if self.is_integer else 1,
            width_request=RANGE_WIDTH_REQUEST,
        )
        self._bind()
        self.control.connect("value-changed", self._on_value_changed)

    def _apply_value(self, value: Any) -> None:
        self.control.set_value(float(value or 0))

    def _on_value_changed(self, scale: Gtk.Scale) -> None:
        value = scale.get_value()
        self._write(int(round(value)) if self.is_integer else value)


class StringSetting(SettingWidget):
    """An entry for string, object-path and signature keys."""

    __gtype_name__ = "GSConnectPrefsStringSetting"

    def __init__(self, store: SettingsStore, key_name: str) -> None:
        super().__init__(store, key_name)
        self.control = Gtk.Entry()
        self._bind()
        self.control.connect("changed", self._on_changed)

    def _apply_value(self, value: Any) -> None:
        text = "" if value is None else str(value)
        if self.control.get_text() != text:
            self.control.set_text(text)

    def _on_changed(self, entry: Gtk.Entry) -> None:
        self._write(entry.get_text())


class OtherSetting(SettingWidget):
    """Fallback: edit the key's value as JSON text, applied on activate."""

    __gtype_name__ = "GSConnectPrefsOtherSetting"

    def __init__(self, store: SettingsStore, key_name: str) -> None:
        super().__init__(store, key_name)
        self.control = Gtk.Entry()
        self._bind()
        self.control.connect("activate", self._on_activate)

    def _apply_value(self, value: Any) -> None:
        self.control.set_text(json.dumps(value, default=str))
        self.control.remove_css_class(ERROR_CSS_CLASS)

    def _on_activate(self, entry: Gtk.Entry) -> None:
        try:
            value = json.loads(entry.get_text())
        except json.JSONDecodeError as e:
            log.warning("Invalid value for %s: %s", self.key_name, e)
            entry.add_css_class(ERROR_CSS_CLASS)
            utility.toast(
                self.get_ancestor(Adw.ToastOverlay),
                f"Invalid value for {self.schema_key.summary}",
                4,
            )
            return

        entry.remove_css_class(ERROR_CSS_CLASS)
        self._write(value)


# =============================================================================
# PLUGIN TOGGLE
# =============================================================================
class PluginSetting(Gtk.Box):
    """A switch enabling or disabling one plugin on one device."""

    __gtype_name__ = "GSConnectPrefsPluginSetting"

    def __init__(self, device: GObject.Object, plugin_name: str) -> None:
        super().__init__(valign=Gtk.Align.CENTER)
        self.device = device
        self.plugin_name = plugin_name
        self._programmatic_update = False

        self.control = Gtk.Switch(valign=Gtk.Align.CENTER)
        self.append(self.control)

        self._sync()
        self._device_handler: int | None = device.connect(
            "plugins-changed", lambda _device: self._sync()
        )
        self.control.connect("notify::active", self._on_active)

    def _sync(self) -> None:
        self._programmatic_update = True
        try:
            self.control.set_active(self.plugin_name in self.device.plugins)
        finally:
            self._programmatic_update = False

    def _on_active(self, switch: Gtk.Switch, _param: GObject.ParamSpec) -> None:
        if self._programmatic_update:
            return
        if switch.get_active():
            self.device.enable_plugin(self.plugin_name)
        else:
            self.device.disable_plugin(self.plugin_name)

    def do_unroot(self) -> None:
        if self._device_handler is not None:
            self.device.disconnect(self._device_handler)
            self._device_handler = None
        Gtk.Box.do_unroot(self)


# =============================================================================
# FACTORY
# =============================================================================
SETTING_WIDGETS: Final[dict[SettingKind, type[SettingWidget]]] = {
    SettingKind.BOOLEAN: BoolSetting,
    SettingKind.ENUM: EnumSetting,
    SettingKind.FLAGS: FlagsSetting,
    SettingKind.MAYBE: MaybeSetting,
    SettingKind.NUMBER: NumberSetting,
    SettingKind.RANGE: RangeSetting,
    SettingKind.STRING: StringSetting,
    SettingKind.OTHER: OtherSetting,
}


def create_setting_widget(
    store: SettingsStore,
    key_name: str,
    widget: Callable[[SettingsStore, str], Gtk.Widget] | None = None,
) -> Gtk.Widget:
    """Return a control bound to `key_name`, or `widget(store, key_name)`."""
    if widget is not None:
        return widget(store, key_name)
    kind = store.schema.get_key(key_name).kind
    return SETTING_WIDGETS[kind](store, key_name)
