"""
Preference pages.

`PrefsWidget` is the top-level tabbed stack. It follows the background
service through a `ServiceWatcher` and keeps `DevicesStack` in sync with the
device manager: one sidebar row and one `DevicePage` per device.

GTK4/Libadwaita compatible.
"""
from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, Final

import gi

gi.require_version("Gtk", "4.0")
gi.require_version("Adw", "1")
from gi.repository import Adw, Gio, GLib, GObject, Gtk

from gsconnect_prefs.lib import client
from gsconnect_prefs.lib.keybinding_view import KeybindingsView
from gsconnect_prefs.lib.keybindings import (
    DEVICE_ACTIONS,
    EXTENSION_ACTIONS,
    DeviceKeybindings,
    load_extension_profile,
    save_extension_profile,
)
from gsconnect_prefs.lib.plugins import PluginInfo, load_plugin_metadata
from gsconnect_prefs.lib.rows import DeviceSidebarRow, GridRow, SettingRow
from gsconnect_prefs.lib.service import ServiceWatcher, UnwatchFunc, WatchFunc
from gsconnect_prefs.lib.setting_widgets import PluginSetting, create_setting_widget

if TYPE_CHECKING:
    from gsconnect_prefs.lib.settings import SettingsStore

log = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================
DEFAULT_PAGE_ID: Final[str] = "default"
DEVICE_ICON_PIXEL_SIZE: Final[int] = 48
SIDEBAR_WIDTH: Final[int] = 220
DEFAULT_PAGE_MARGIN: Final[int] = 12
UNDO_ICON: Final[str] = "edit-undo-symbolic"

LABEL_PAIR: Final[str] = "Pair"
LABEL_UNPAIR: Final[str] = "Unpair"

HELP_NETWORK: Final[str] = (
    "Ensure that devices are connected on the same local network with ports "
    "1714 to 1764 open. If you wish to connect an Android device, install the "
    "KDE Connect Android app from the "
    '<a href="https://play.google.com/store/apps/details?id=org.kde.kdeconnect_tp">Google Play Store</a> or '
    '<a href="https://f-droid.org/repository/browse/?fdid=org.kde.kdeconnect_tp">F-Droid</a>.'
)
HELP_SUPPORT: Final[str] = (
    "If you are having trouble with GSConnect, please see the "
    '<a href="https://github.com/andyholmes/gnome-shell-extension-gsconnect/wiki">Wiki</a> '
    "for help or "
    '<a href="https://github.com/andyholmes/gnome-shell-extension-gsconnect/issues">open an issue</a> '
    "on Github to report a problem."
)


def _bus_watch(appeared: Callable[..., None], vanished: Callable[..., None]) -> int:
    return Gio.bus_watch_name(
        Gio.BusType.SESSION,
        client.BUS_NAME,
        Gio.BusNameWatcherFlags.NONE,
        appeared,
        vanished,
    )


# =============================================================================
# PAGE
# =============================================================================
class PrefsPage(Adw.PreferencesPage):
    """A scrollable page of titled sections, resembling a Control Center panel."""

    __gtype_name__ = "GSConnectPrefsPage"

    def __init__(self, store: SettingsStore, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.store = store

    def add_section(self, title: str | None = None) -> Adw.PreferencesGroup:
        """Add and return a new section, with an optional bold title."""
        section = Adw.PreferencesGroup()
        if title:
            section.set_title(GLib.markup_escape_text(title))
        self.add(section)
        return section

    def add_row(self, section: Adw.PreferencesGroup) -> GridRow:
        """Add and return a row exposing a Gtk.Grid as `row.grid`."""
        row = GridRow()
        section.add(row)
        return row

    def add_item(
        self,
        section: Adw.PreferencesGroup,
        summary: str,
        description: str | None,
        widget: Gtk.Widget,
    ) -> SettingRow:
        """Add a row with `summary` over `description`, `widget` to the right."""
        row = SettingRow(summary, description, widget)
        section.add(row)
        return row

    def add_setting(
        self,
        section: Adw.PreferencesGroup,
        key_name: str,
        widget: Callable[[SettingsStore, str], Gtk.Widget] | None = None,
    ) -> SettingRow:
        """Add a row for a settings key, labelled from its schema metadata.

        The control is chosen from the key's type unless `widget` is given,
        in which case it is called with the store and `key_name`.
        """
        key = self.store.schema.get_key(key_name)
        control = create_setting_widget(self.store, key_name, widget)
        return self.add_item(section, key.summary, key.description, control)


# =============================================================================
# DEVICES
# =============================================================================
class DevicePage(PrefsPage):
    """Status, plugins and keyboard shortcuts for one device."""

    __gtype_name__ = "GSConnectPrefsDevicePage"

    def __init__(
        self,
        store: SettingsStore,
        device: GObject.Object,
        plugin_metadata: dict[str, PluginInfo],
    ) -> None:
        super().__init__(store)
        self.device = device

        # Status
        status_section = self.add_section()
        status_row = self.add_row(status_section)

        device_icon = Gtk.Image.new_from_icon_name(device.type or "smartphone")
        device_icon.set_pixel_size(DEVICE_ICON_PIXEL_SIZE)
        status_row.grid.attach(device_icon, 0, 0, 1, 2)

        device_name = Gtk.Label(label=device.name, xalign=0)
        device_name.add_css_class("heading")
        status_row.grid.attach(device_name, 1, 0, 1, 1)

        device_type = Gtk.Label(label=device.type, xalign=0)
        device_type.add_css_class("dim-label")
        status_row.grid.attach(device_type, 1, 1, 1, 1)

        self.pair_button = Gtk.Button(
            label="",
            halign=Gtk.Align.END,
            valign=Gtk.Align.CENTER,
            hexpand=True,
        )
        self.pair_button.connect("clicked", self._on_pair_clicked)
        status_row.grid.attach(self.pair_button, 2, 0, 1, 2)

        self._paired_handler: int | None = device.connect(
            "notify::paired", self._on_paired_changed
        )
        self._on_paired_changed(device, None)

        # Plugins
        plugins_section = self.add_section("Plugins")
        for plugin_name, info in plugin_metadata.items():
            self.add_item(
                plugins_section,
                info.summary,
                info.description,
                PluginSetting(device, plugin_name),
            )

        # Keyboard Shortcuts
        self.keybindings = DeviceKeybindings(store, device.id)

        key_section = self.add_section("Keyboard Shortcuts")
        key_row = self.add_row(key_section)
        self.key_view = KeybindingsView()
        for action, description in DEVICE_ACTIONS:
            self.key_view.add_accel(action, description)
        self.key_view.set_accels(self.keybindings.profile)
        self.key_view.set_callback(self.keybindings.update)
        key_row.grid.attach(self.key_view, 0, 0, 1, 1)

    def _on_pair_clicked(self, _button: Gtk.Button) -> None:
        if self.device.paired:
            self.device.unpair()
        else:
            self.device.pair()

    def _on_paired_changed(
        self, device: GObject.Object, _param: GObject.ParamSpec | None
    ) -> None:
        self.pair_button.set_label(LABEL_UNPAIR if device.paired else LABEL_PAIR)

    def do_unroot(self) -> None:
        if self._paired_handler is not None:
            self.device.disconnect(self._paired_handler)
            self._paired_handler = None
        Adw.PreferencesPage.do_unroot(self)


class DevicesStack(Gtk.Box):
    """A device sidebar driving a stack of device pages."""

    __gtype_name__ = "GSConnectPrefsDevicesStack"

    def __init__(
        self,
        store: SettingsStore,
        plugin_metadata: dict[str, PluginInfo] | None = None,
    ) -> None:
        super().__init__(
            orientation=Gtk.Orientation.HORIZONTAL,
            hexpand=True,
            vexpand=True,
        )
        self.store = store
        self.plugin_metadata = (
            plugin_metadata if plugin_metadata is not None else load_plugin_metadata()
        )
        self.devices: dict[str, tuple[DeviceSidebarRow, DevicePage]] = {}

        self.sidebar = Gtk.ListBox(selection_mode=Gtk.SelectionMode.SINGLE)
        self.sidebar.add_css_class("navigation-sidebar")

        sidebar_scroll = Gtk.ScrolledWindow(
            hscrollbar_policy=Gtk.PolicyType.NEVER,
            width_request=SIDEBAR_WIDTH,
        )
        sidebar_scroll.set_child(self.sidebar)

        self.stack = Gtk.Stack(
            transition_type=Gtk.StackTransitionType.SLIDE_UP_DOWN,
            hexpand=True,
            vexpand=True,
        )

        self.append(sidebar_scroll)
        self.append(Gtk.Separator(orientation=Gtk.Orientation.VERTICAL))
        self.append(self.stack)

        self.stack.add_titled(self._build_default_page(), DEFAULT_PAGE_ID, "Default")
        self.sidebar.connect("row-selected", self._on_row_selected)

    def _build_default_page(self) -> Gtk.Box:
        page = Gtk.Box(
            orientation=Gtk.Orientation.VERTICAL,
            spacing=DEFAULT_PAGE_MARGIN,
            margin_start=DEFAULT_PAGE_MARGIN,
            margin_end=DEFAULT_PAGE_MARGIN,
            margin_top=DEFAULT_PAGE_MARGIN,
            margin_bottom=DEFAULT_PAGE_MARGIN,
            valign=Gtk.Align.CENTER,
        )
        for text in (HELP_NETWORK, HELP_SUPPORT):
            label = Gtk.Label(label=text, use_markup=True, wrap=True, xalign=0)
            page.append(label)
        return page

    def _on_row_selected(
        self, _listbox: Gtk.ListBox, row: Gtk.ListBoxRow | None
    ) -> None:
        if isinstance(row, DeviceSidebarRow):
            self.stack.set_visible_child_name(row.page_name)
        else:
            self.stack.set_visible_child_name(DEFAULT_PAGE_ID)

    def add_device(self, manager: Any, dbus_path: str) -> None:
        if dbus_path in self.devices:
            log.warning("Device %s is already listed", dbus_path)
            return

        device = manager.devices[dbus_path]

        row = DeviceSidebarRow(device, device.id or dbus_path)
        self.sidebar.append(row)

        page = DevicePage(self.store, device, self.plugin_metadata)
        self.stack.add_titled(page, row.page_name, device.name)

        self.devices[dbus_path] = (row, page)
        log.debug("Added device %s (%s)", device.name, dbus_path)

    def remove_device(self, manager: Any, dbus_path: str) -> None:
        entry = self.devices.pop(dbus_path, None)
        if entry is None:
            log.debug("remove_device(): %s is not listed", dbus_path)
            return

        row, page = entry
        self.sidebar.remove(row)
        self.stack.remove(page)
        log.debug("Removed device %s", dbus_path)

    def clear(self) -> None:
        for dbus_path in list(self.devices):
            self.remove_device(None, dbus_path)


# =============================================================================
# ROOT
# =============================================================================
class PrefsWidget(Gtk.Box):
    """A view stack with a pre-attached switcher, holding every page.

    The switcher is not packed; the window places it in its header bar.
    """

    __gtype_name__ = "GSConnectPrefsWidget"

    def __init__(
        self,
        store: SettingsStore,
        manager_factory: Callable[[], Any] = client.DeviceManager,
        watch: WatchFunc = _bus_watch,
        unwatch: UnwatchFunc = Gio.bus_unwatch_name,
        plugin_metadata: dict[str, PluginInfo] | None = None,
    ) -> None:
        super().__init__(orientation=Gtk.Orientation.VERTICAL)
        self.store = store

        self.stack = Adw.ViewStack(vexpand=True, hexpand=True)
        self.append(self.stack)

        self.switcher = Adw.ViewSwitcher(
            stack=self.stack,
            policy=Adw.ViewSwitcherPolicy.WIDE,
        )

        self._manager_handlers: list[int] = []
        self._name_binding: GObject.Binding | None = None

        self.service = ServiceWatcher(
            factory=manager_factory,
            on_appeared=self._service_appeared,
            on_vanished=self._service_vanished,
            watch=watch,
            unwatch=unwatch,
            is_debug=lambda: store.get_boolean("debug"),
        )

        self._build(plugin_metadata)
        self.service.start()

    @property
    def manager(self) -> Any:
        return self.service.manager

    # ─────────────────────────────────────────────────────────────────────────
    # SERVICE
    # ─────────────────────────────────────────────────────────────────────────
    def _service_appeared(self, manager: Any) -> None:
        for dbus_path in list(manager.devices):
            self.devices_stack.add_device(manager, dbus_path)

        self._manager_handlers = [
            manager.connect("device-added", self.devices_stack.add_device),
            manager.connect("device-removed", self.devices_stack.remove_device),
        ]

        self._name_binding = manager.bind_property(
            "name",
            self.name_entry,
            "placeholder-text",
            GObject.BindingFlags.SYNC_CREATE,
        )

    def _service_vanished(self, manager: Any) -> None:
        for handler_id in self._manager_handlers:
            manager.disconnect(handler_id)
        self._manager_handlers = []

        if self._name_binding is not None:
            self._name_binding.unbind()
            self._name_binding = None

        self.devices_stack.clear()

    # ─────────────────────────────────────────────────────────────────────────
    # PAGES
    # ─────────────────────────────────────────────────────────────────────────
    def add_page(self, page_id: str, title: str, icon_name: str | None = None) -> PrefsPage:
        page = PrefsPage(self.store)
        if icon_name:
            self.stack.add_titled_with_icon(page, page_id, title, icon_name)
        else:
            self.stack.add_titled(page, page_id, title)
        return page

    def remove_page(self, page_id: str) -> None:
        page = self.stack.get_child_by_name(page_id)
        if page is None:
            log.debug("remove_page(): no page %r", page_id)
            return
        self.stack.remove(page)

    def _build(self, plugin_metadata: dict[str, PluginInfo] | None) -> None:
        # General
        general_page = self.add_page("general", "General", "preferences-system-symbolic")

        appearance_section = general_page.add_section("Appearance")
        general_page.add_setting(appearance_section, "device-indicators")
        general_page.add_setting(appearance_section, "device-visibility")

        files_section = general_page.add_section("Files")
        general_page.add_setting(files_section, "nautilus-integration")

        key_section = general_page.add_section("Keyboard Shortcuts")
        key_row = general_page.add_row(key_section)
        self.key_view = KeybindingsView()
        for action, description in EXTENSION_ACTIONS:
            self.key_view.add_accel(action, description)
        self.key_view.set_accels(load_extension_profile(self.store))
        self.key_view.set_callback(
            lambda profile: save_extension_profile(self.store, profile)
        )
        key_row.grid.attach(self.key_view, 0, 0, 1, 1)

        # Devices
        self.devices_stack = DevicesStack(self.store, plugin_metadata)
        self.stack.add_titled_with_icon(
            self.devices_stack, "devices", "Devices", "smartphone-symbolic"
        )

        # Service
        service_page = self.add_page("service", "Service", "network-wireless-symbolic")
        service_section = service_page.add_section("Service")

        self.name_entry = Gtk.Entry(
            placeholder_text=self.manager.name if self.manager is not None else "",
            valign=Gtk.Align.CENTER,
        )
        self.name_entry.connect("activate", self._on_name_activate)
        self.name_entry.connect("changed", self._on_name_changed)
        self.name_entry.connect("icon-release", self._on_name_icon_release)

        service_page.add_item(
            service_section,
            "Public Name",
            "The name broadcast to other devices",
            self.name_entry,
        )
        service_page.add_setting(service_section, "persistent-discovery")

        # Advanced
        advanced_page = self.add_page(
            "advanced", "Advanced", "applications-engineering-symbolic"
        )
        devel_section = advanced_page.add_section("Development")
        advanced_page.add_setting(devel_section, "debug")

    # ─────────────────────────────────────────────────────────────────────────
    # PUBLIC NAME
    # ─────────────────────────────────────────────────────────────────────────
    def _drop_focus(self) -> None:
        if (root := self.get_root()) is not None:
            root.set_focus(None)

    def _on_name_activate(self, entry: Gtk.Entry) -> None:
        if self.manager is not None and entry.get_text():
            self.manager.name = entry.get_text()
        entry.set_text("")
        self._drop_focus()

    def _on_name_changed(self, entry: Gtk.Entry) -> None:
        if entry.get_text():
            entry.set_icon_from_icon_name(Gtk.EntryIconPosition.SECONDARY, UNDO_ICON)
        else:
            entry.set_icon_from_icon_name(Gtk.EntryIconPosition.SECONDARY, None)
            self._drop_focus()

    def _on_name_icon_release(
        self, entry: Gtk.Entry, _position: Gtk.EntryIconPosition
    ) -> None:
        entry.set_text("")

    def do_unroot(self) -> None:
        self.service.stop()
        Gtk.Box.do_unroot(self)
