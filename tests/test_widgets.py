"""Tests for the preference widgets.

Skipped when PyGObject, GTK 4 / Libadwaita or a display is unavailable.
"""

import json
import logging

import pytest

gi = pytest.importorskip("gi")
try:
    gi.require_version("Gtk", "4.0")
    gi.require_version("Adw", "1")
except ValueError as e:
    pytest.skip(f"GTK 4 / Libadwaita unavailable: {e}", allow_module_level=True)

from gi.repository import Gdk, GObject, Gtk  # noqa: E402

from gsconnect_prefs.lib.keybinding_view import KeybindingsView  # noqa: E402
from gsconnect_prefs.lib.keybindings import DEVICE_KEYBINDINGS_KEY  # noqa: E402
from gsconnect_prefs.lib.pages import (  # noqa: E402
    DEFAULT_PAGE_ID,
    LABEL_PAIR,
    LABEL_UNPAIR,
    UNDO_ICON,
    DevicePage,
    DevicesStack,
    PrefsPage,
    PrefsWidget,
)
from gsconnect_prefs.lib.plugins import PluginInfo  # noqa: E402
from gsconnect_prefs.lib.schema import Schema, SchemaKey  # noqa: E402
from gsconnect_prefs.lib.settings import FileSettingsStore  # noqa: E402
from gsconnect_prefs.lib.setting_widgets import (  # noqa: E402
    BoolSetting,
    EnumSetting,
    FlagsSetting,
    MaybeSetting,
    NumberSetting,
    OtherSetting,
    PluginSetting,
    RangeSetting,
    StringSetting,
    create_setting_widget,
)
from gsconnect_prefs.prefs_app import apply_debug_level  # noqa: E402

pytestmark = pytest.mark.usefixtures("gtk")

PLUGINS = {
    "battery": PluginInfo("Battery", "Exchange battery information"),
    "ping": PluginInfo("Ping", "Send and receive pings"),
}


# =============================================================================
# FAKES
# =============================================================================
class FakeDevice(GObject.Object):
    __gtype_name__ = "TestFakeDevice"

    __gsignals__ = {
        "plugins-changed": (GObject.SignalFlags.RUN_FIRST, None, ()),
    }

    id = GObject.Property(type=str, default="")
    name = GObject.Property(type=str, default="")
    type = GObject.Property(type=str, default="smartphone")
    paired = GObject.Property(type=bool, default=False)

    def __init__(self, device_id: str, name: str, paired: bool = False) -> None:
        super().__init__(id=device_id, name=name, paired=paired)
        self.plugins: list[str] = []
        self.calls: list[tuple[str, ...]] = []

    def pair(self) -> None:
        self.calls.append(("pair",))
        self.paired = True

    def unpair(self) -> None:
        self.calls.append(("unpair",))
        self.paired = False

    def enable_plugin(self, name: str) -> None:
        self.calls.append(("enable", name))

    def disable_plugin(self, name: str) -> None:
        self.calls.append(("disable", name))


class FakeManager(GObject.Object):
    __gtype_name__ = "TestFakeManager"

    __gsignals__ = {
        "device-added": (GObject.SignalFlags.RUN_FIRST, None, (str,)),
        "device-removed": (GObject.SignalFlags.RUN_FIRST, None, (str,)),
    }

    name = GObject.Property(type=str, default="")

    def __init__(self) -> None:
        super().__init__(name="workstation")
        self.devices: dict[str, FakeDevice] = {}
        self.destroyed = False

    def add(self, path: str, device: FakeDevice) -> None:
        self.devices[path] = device
        self.emit("device-added", path)

    def remove(self, path: str) -> None:
        del self.devices[path]
        self.emit("device-removed", path)

    def destroy(self) -> None:
        self.destroyed = True


class FakeBus:
    def __init__(self) -> None:
        self.appeared = None
        self.vanished = None
        self.unwatched: list[int] = []

    def watch(self, appeared, vanished) -> int:
        self.appeared = appeared
        self.vanished = vanished
        return 1

    def unwatch(self, watch_id: int) -> None:
        self.unwatched.append(watch_id)


def _stack_size(stack: Gtk.Stack) -> int:
    return stack.get_pages().get_n_items()


def _sidebar_rows(listbox: Gtk.ListBox) -> int:
    count = 0
    while listbox.get_row_at_index(count) is not None:
        count += 1
    return count


@pytest.fixture
def widget_store() -> FileSettingsStore:
    keys = [
        SchemaKey("flag", "b", default=False, summary="Flag"),
        SchemaKey("mode", "s", default="fast", range_type="enum", choices=("fast", "slow")),
        SchemaKey("show", "as", default=["A"], range_type="flags", choices=("A", "B")),
        SchemaKey("maybe", "mb", default=None),
        SchemaKey("count", "y", default=3),
        SchemaKey("ratio", "d", default=0.5),
        SchemaKey("level", "i", default=5, range_type="range", minimum=0, maximum=10),
        SchemaKey("label", "s", default=""),
        SchemaKey("extra", "a{ss}", default={}, summary="Extra"),
    ]
    return FileSettingsStore(Schema(keys={k.name: k for k in keys}))


# =============================================================================
# SETTING CONTROLS
# =============================================================================
class TestCreateSettingWidget:
    @pytest.mark.parametrize(
        ("key_name", "widget_type"),
        [
            ("flag", BoolSetting),
            ("mode", EnumSetting),
            ("show", FlagsSetting),
            ("maybe", MaybeSetting),
            ("count", NumberSetting),
            ("ratio", NumberSetting),
            ("level", RangeSetting),
            ("label", StringSetting),
            ("extra", OtherSetting),
        ],
    )
    def test_kind_selects_control(self, widget_store, key_name, widget_type) -> None:
        assert isinstance(create_setting_widget(widget_store, key_name), widget_type)

    def test_override(self, widget_store) -> None:
        widget = create_setting_widget(
            widget_store, "flag", lambda store, key: Gtk.Label(label=key)
        )
        assert isinstance(widget, Gtk.Label)
        assert widget.get_label() == "flag"


class TestSettingControls:
    def test_bool_two_way(self, widget_store) -> None:
        widget = BoolSetting(widget_store, "flag")
        assert widget.control.get_active() is False

        widget_store.set_boolean("flag", True)
        assert widget.control.get_active() is True

        widget.control.set_active(False)
        assert widget_store.get("flag") is False

    def test_store_update_is_not_written_back(self, widget_store) -> None:
        BoolSetting(widget_store, "flag")
        seen: list[str] = []
        widget_store.connect("flag", lambda s, key: seen.append(key))
        widget_store.set_boolean("flag", True)
        assert seen == ["flag"]

    def test_enum(self, widget_store) -> None:
        widget = EnumSetting(widget_store, "mode")
        assert widget.control.get_selected() == 0
        widget.control.set_selected(1)
        assert widget_store.get("mode") == "slow"

    def test_flags(self, widget_store) -> None:
        widget = FlagsSetting(widget_store, "show")
        assert widget.get_flags() == ["A"]
        assert widget.control.get_label() == "A"

        widget.checks["B"].set_active(True)
        assert widget_store.get("show") == ["A", "B"]

        widget.checks["A"].set_active(False)
        widget.checks["B"].set_active(False)
        assert widget_store.get("show") == []
        assert widget.control.get_label() == "None"

    def test_maybe(self, widget_store) -> None:
        widget = MaybeSetting(widget_store, "maybe")
        assert widget.control.get_selected() == 0
        widget.control.set_selected(2)
        assert widget_store.get("maybe") is False

    def test_number_bounds(self, widget_store) -> None:
        widget = NumberSetting(widget_store, "count")
        adjustment = widget.control.get_adjustment()
        assert (adjustment.get_lower(), adjustment.get_upper()) == (0, 255)
        assert widget.control.get_value() == 3

        widget.control.set_value(9)
        assert widget_store.get("count") == 9

    def test_double_keeps_fraction(self, widget_store) -> None:
        widget = NumberSetting(widget_store, "ratio")
        assert widget.control.get_digits() == 2
        widget.control.set_value(1.25)
        assert widget_store.get("ratio") == pytest.approx(1.25)

    def test_range(self, widget_store) -> None:
        widget = RangeSetting(widget_store, "level")
        adjustment = widget.control.get_adjustment()
        assert (adjustment.get_lower(), adjustment.get_upper()) == (0, 10)
        widget.control.set_value(7)
        assert widget_store.get("level") == 7

    def test_string(self, widget_store) -> None:
        widget = StringSetting(widget_store, "label")
        widget.control.set_text("hello")
        assert widget_store.get("label") == "hello"

        widget_store.set_string("label", "world")
        assert widget.control.get_text() == "world"

    def test_other_valid_json(self, widget_store) -> None:
        widget = OtherSetting(widget_store, "extra")
        assert widget.control.get_text() == "{}"

        widget.control.set_text('{"a": "b"}')
        widget.control.emit("activate")
        assert widget_store.get("extra") == {"a": "b"}

    def test_other_invalid_json(self, widget_store) -> None:
        widget = OtherSetting(widget_store, "extra")
        widget.control.set_text("{broken")
        widget.control.emit("activate")

        assert widget.control.has_css_class("error")
        assert widget_store.get("extra") == {}


class TestPluginSetting:
    def test_follows_device_plugins(self) -> None:
        device = FakeDevice("d1", "Phone")
        device.plugins = ["battery"]
        widget = PluginSetting(device, "battery")
        assert widget.control.get_active() is True

        device.plugins = []
        device.emit("plugins-changed")
        assert widget.control.get_active() is False
        assert device.calls == []

    def test_toggle_calls_device(self) -> None:
        device = FakeDevice("d1", "Phone")
        widget = PluginSetting(device, "ping")
        widget.control.set_active(True)
        widget.control.set_active(False)
        assert device.calls == [("enable", "ping"), ("disable", "ping")]


# =============================================================================
# PAGES
# =============================================================================
class TestPrefsPage:
    def test_add_setting_uses_schema_metadata(self, store) -> None:
        page = PrefsPage(store)
        section = page.add_section("Appearance")
        row = page.add_setting(section, "device-indicators")

        assert row.get_title() == "Device Indicators"
        assert isinstance(row.widget, BoolSetting)
        assert row.get_activatable_widget() is row.widget.control

    def test_add_row_exposes_grid(self, store) -> None:
        page = PrefsPage(store)
        row = page.add_row(page.add_section())
        assert isinstance(row.grid, Gtk.Grid)


class TestDevicePage:
    def test_pair_button(self, store) -> None:
        device = FakeDevice("d1", "Phone")
        page = DevicePage(store, device, PLUGINS)
        assert page.pair_button.get_label() == LABEL_PAIR

        page.pair_button.emit("clicked")
        assert device.calls == [("pair",)]
        assert page.pair_button.get_label() == LABEL_UNPAIR

        page.pair_button.emit("clicked")
        assert device.calls[-1] == ("unpair",)
        assert page.pair_button.get_label() == LABEL_PAIR

    def test_keybindings_saved_per_device(self, store) -> None:
        device = FakeDevice("d1", "Phone")
        page = DevicePage(store, device, PLUGINS)
        assert json.loads(store.get_string(DEVICE_KEYBINDINGS_KEY)) == {"d1": {}}

        page.key_view._commit(page.key_view.rows["sms"], "<Control>s")
        assert json.loads(store.get_string(DEVICE_KEYBINDINGS_KEY)) == {
            "d1": {"sms": "<Control>s"}
        }

    def test_keybindings_loaded(self, store) -> None:
        store.set_string(DEVICE_KEYBINDINGS_KEY, '{"d1": {"find": "<Super>f"}}')
        page = DevicePage(store, FakeDevice("d1", "Phone"), PLUGINS)
        assert page.key_view.get_accels() == {"find": "<Super>f"}


class TestDevicesStack:
    def test_add_then_remove_restores_state(self, store) -> None:
        stack = DevicesStack(store, PLUGINS)
        manager = FakeManager()
        manager.devices["/dev/1"] = FakeDevice("d1", "Phone")

        assert _sidebar_rows(stack.sidebar) == 0
        assert _stack_size(stack.stack) == 1

        stack.add_device(manager, "/dev/1")
        assert _sidebar_rows(stack.sidebar) == 1
        assert _stack_size(stack.stack) == 2
        assert stack.stack.get_child_by_name("d1") is not None

        stack.remove_device(manager, "/dev/1")
        assert _sidebar_rows(stack.sidebar) == 0
        assert _stack_size(stack.stack) == 1
        assert stack.devices == {}
        assert stack.stack.get_visible_child_name() == DEFAULT_PAGE_ID

    def test_selecting_row_shows_page(self, store) -> None:
        stack = DevicesStack(store, PLUGINS)
        manager = FakeManager()
        manager.devices["/dev/1"] = FakeDevice("d1", "Phone")
        stack.add_device(manager, "/dev/1")

        row, _page = stack.devices["/dev/1"]
        stack.sidebar.select_row(row)
        assert stack.stack.get_visible_child_name() == "d1"

        stack.sidebar.unselect_all()
        assert stack.stack.get_visible_child_name() == DEFAULT_PAGE_ID

    def test_duplicate_add_ignored(self, store) -> None:
        stack = DevicesStack(store, PLUGINS)
        manager = FakeManager()
        manager.devices["/dev/1"] = FakeDevice("d1", "Phone")
        stack.add_device(manager, "/dev/1")
        stack.add_device(manager, "/dev/1")
        assert _sidebar_rows(stack.sidebar) == 1
        assert _stack_size(stack.stack) == 2

    def test_remove_unknown_ignored(self, store) -> None:
        stack = DevicesStack(store, PLUGINS)
        stack.remove_device(FakeManager(), "/dev/none")
        assert _stack_size(stack.stack) == 1

    def test_clear(self, store) -> None:
        stack = DevicesStack(store, PLUGINS)
        manager = FakeManager()
        for n in (1, 2):
            manager.devices[f"/dev/{n}"] = FakeDevice(f"d{n}", f"Phone {n}")
            stack.add_device(manager, f"/dev/{n}")

        stack.clear()
        assert _sidebar_rows(stack.sidebar) == 0
        assert _stack_size(stack.stack) == 1


class TestPrefsWidget:
    @pytest.fixture
    def bus(self) -> FakeBus:
        return FakeBus()

    @pytest.fixture
    def widget(self, store, bus) -> PrefsWidget:
        return PrefsWidget(
            store,
            manager_factory=FakeManager,
            watch=bus.watch,
            unwatch=bus.unwatch,
            plugin_metadata=PLUGINS,
        )

    def test_pages(self, widget) -> None:
        for page_id in ("general", "devices", "service", "advanced"):
            assert widget.stack.get_child_by_name(page_id) is not None
        assert widget.switcher.get_stack() is widget.stack

    def test_add_and_remove_page(self, widget) -> None:
        page = widget.add_page("extra", "Extra")
        assert isinstance(page, PrefsPage)
        assert widget.stack.get_child_by_name("extra") is page

        widget.remove_page("extra")
        assert widget.stack.get_child_by_name("extra") is None
        widget.remove_page("extra")

    def test_service_appeared_lists_devices(self, widget, bus) -> None:
        widget.manager.devices["/dev/1"] = FakeDevice("d1", "Phone")
        bus.appeared(None, "name", "owner")

        assert list(widget.devices_stack.devices) == ["/dev/1"]
        assert widget.name_entry.get_placeholder_text() == "workstation"

    def test_manager_signals_update_devices(self, widget, bus) -> None:
        bus.appeared(None, "name", "owner")
        manager = widget.manager

        manager.add("/dev/2", FakeDevice("d2", "Tablet"))
        assert "/dev/2" in widget.devices_stack.devices

        manager.remove("/dev/2")
        assert widget.devices_stack.devices == {}

    def test_name_binding_follows_manager(self, widget, bus) -> None:
        bus.appeared(None, "name", "owner")
        widget.manager.name = "laptop"
        assert widget.name_entry.get_placeholder_text() == "laptop"

    def test_name_entry_sets_public_name(self, widget, bus) -> None:
        bus.appeared(None, "name", "owner")
        widget.name_entry.set_text("desk")
        assert widget.name_entry.get_icon_name(Gtk.EntryIconPosition.SECONDARY) == UNDO_ICON

        widget.name_entry.emit("activate")
        assert widget.manager.name == "desk"
        assert widget.name_entry.get_text() == ""
        assert widget.name_entry.get_icon_name(Gtk.EntryIconPosition.SECONDARY) is None

    def test_service_vanished_detaches(self, widget, bus) -> None:
        bus.appeared(None, "name", "owner")
        old = widget.manager
        old.add("/dev/1", FakeDevice("d1", "Phone"))

        bus.vanished(None, "name")

        assert old.destroyed
        assert widget.devices_stack.devices == {}
        assert widget.manager is not old

        old.name = "stale"
        assert widget.name_entry.get_placeholder_text() == "workstation"

        old.add("/dev/9", FakeDevice("d9", "Ghost"))
        assert widget.devices_stack.devices == {}

    def test_debug_mode_defers_new_manager(self, store, bus) -> None:
        store.set_boolean("debug", True)
        widget = PrefsWidget(
            store,
            manager_factory=FakeManager,
            watch=bus.watch,
            unwatch=bus.unwatch,
            plugin_metadata=PLUGINS,
        )
        bus.appeared(None, "name", "owner")
        bus.vanished(None, "name")
        assert widget.manager is None

    def test_extension_keybindings_saved(self, widget, store) -> None:
        widget.key_view._commit(widget.key_view.rows["menu"], "<Super>m")
        assert json.loads(store.get_string("extension-keybindings")) == {"menu": "<Super>m"}


# =============================================================================
# KEYBINDINGS VIEW
# =============================================================================
class TestKeybindingsView:
    @pytest.fixture
    def view(self) -> KeybindingsView:
        view = KeybindingsView()
        view.add_accel("menu", "Open Menu")
        view.add_accel("find", "Locate Device", "<Super>f")
        return view

    def test_get_and_set_accels(self, view) -> None:
        assert view.get_accels() == {"find": "<Super>f"}
        view.set_accels({"menu": "<Super>m"})
        assert view.get_accels() == {"menu": "<Super>m"}

    def test_capture(self, view) -> None:
        profiles: list[dict[str, str]] = []
        view.set_callback(profiles.append)

        view.list.emit("row-activated", view.rows["menu"])
        handled = view._on_key_pressed(None, Gdk.KEY_m, 0, Gdk.ModifierType.CONTROL_MASK)

        assert handled
        assert profiles == [{"menu": "<Control>m", "find": "<Super>f"}]

    def test_escape_cancels(self, view) -> None:
        profiles: list[dict[str, str]] = []
        view.set_callback(profiles.append)

        view.list.emit("row-activated", view.rows["menu"])
        view._on_key_pressed(None, Gdk.KEY_Escape, 0, Gdk.ModifierType(0))

        assert profiles == []
        assert not view._on_key_pressed(None, Gdk.KEY_m, 0, Gdk.ModifierType.CONTROL_MASK)

    def test_backspace_clears(self, view) -> None:
        profiles: list[dict[str, str]] = []
        view.set_callback(profiles.append)

        view.list.emit("row-activated", view.rows["find"])
        view._on_key_pressed(None, Gdk.KEY_BackSpace, 0, Gdk.ModifierType(0))

        assert profiles == [{}]


# =============================================================================
# APPLICATION
# =============================================================================
class TestDebugLevel:
    def test_follows_debug_key(self, store) -> None:
        root = logging.getLogger()
        previous = root.level
        try:
            store.set_boolean("debug", True)
            apply_debug_level(store)
            assert root.level == logging.DEBUG

            store.set_boolean("debug", False)
            apply_debug_level(store)
            assert root.level == logging.INFO
        finally:
            root.setLevel(previous)
