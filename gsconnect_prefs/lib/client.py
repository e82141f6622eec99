"""
Device-manager client for the GSConnect background service.

Wraps the service's D-Bus objects in GObjects the preferences UI can bind
to. `DeviceManager` tracks the exported devices through the `Devices`
property and emits `device-added` / `device-removed` with the device's
object path. `Device` mirrors a single device's properties; remote changes
are re-emitted as `notify::<property>`.

Remote call failures are logged and swallowed at this boundary so toolkit
callbacks never see a `GLib.Error`.
"""
from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any, Final

import gi

gi.require_version("Gio", "2.0")
from gi.repository import Gio, GLib, GObject

log = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================
BUS_NAME: Final[str] = "org.gnome.Shell.Extensions.GSConnect"
OBJECT_PATH: Final[str] = "/org/gnome/Shell/Extensions/GSConnect"
MANAGER_INTERFACE: Final[str] = BUS_NAME
DEVICE_INTERFACE: Final[str] = f"{BUS_NAME}.Device"

CALL_TIMEOUT_MS: Final[int] = 5000
PROXY_FLAGS: Final = Gio.DBusProxyFlags.DO_NOT_AUTO_START


def diff_paths(
    old: Iterable[str], new: Iterable[str]
) -> tuple[list[str], list[str]]:
    """Return (added, removed) object paths, each in their original order."""
    old_list = list(old)
    new_list = list(new)
    old_set = set(old_list)
    new_set = set(new_list)
    added = [p for p in new_list if p not in old_set]
    removed = [p for p in old_list if p not in new_set]
    return added, removed


def _new_proxy(object_path: str, interface: str) -> Gio.DBusProxy | None:
    try:
        return Gio.DBusProxy.new_for_bus_sync(
            Gio.BusType.SESSION,
            PROXY_FLAGS,
            None,
            BUS_NAME,
            object_path,
            interface,
            None,
        )
    except GLib.Error as e:
        log.error("Failed to create proxy for %s: %s", object_path, e.message)
        return None


def _cached(proxy: Gio.DBusProxy | None, name: str, default: Any) -> Any:
    if proxy is None:
        return default
    variant = proxy.get_cached_property(name)
    return default if variant is None else variant.unpack()


class _ProxyObject(GObject.Object):
    """Shared plumbing for GObjects mirroring a D-Bus proxy."""

    def __init__(self, object_path: str, interface: str) -> None:
        super().__init__()
        self.object_path = object_path
        self._proxy = _new_proxy(object_path, interface)
        self._proxy_handlers: list[int] = []
        if self._proxy is not None:
            self._proxy_handlers = [
                self._proxy.connect("g-properties-changed", self._on_properties_changed),
                self._proxy.connect("notify::g-name-owner", self._on_name_owner_changed),
            ]

    def _on_properties_changed(
        self,
        proxy: Gio.DBusProxy,
        changed: GLib.Variant,
        invalidated: list[str],
    ) -> None:
        raise NotImplementedError

    # Owner changes reload or clear the property cache without
    # g-properties-changed
    def _on_name_owner_changed(
        self, proxy: Gio.DBusProxy, _pspec: GObject.ParamSpec
    ) -> None:
        raise NotImplementedError

    def _call(self, method: str, params: GLib.Variant | None = None) -> bool:
        if self._proxy is None:
            log.warning("%s(): no connection to %s", method, self.object_path)
            return False
        try:
            self._proxy.call_sync(
                method, params, Gio.DBusCallFlags.NONE, CALL_TIMEOUT_MS, None
            )
            return True
        except GLib.Error as e:
            log.error("%s.%s failed: %s", self.object_path, method, e.message)
            return False

    def _set_remote(self, name: str, value: GLib.Variant) -> bool:
        if self._proxy is None:
            return False
        try:
            self._proxy.call_sync(
                "org.freedesktop.DBus.Properties.Set",
                GLib.Variant("(ssv)", (self._proxy.get_interface_name(), name, value)),
                Gio.DBusCallFlags.NONE,
                CALL_TIMEOUT_MS,
                None,
            )
            return True
        except GLib.Error as e:
            log.error("Setting %s on %s failed: %s", name, self.object_path, e.message)
            return False

    def destroy(self) -> None:
        if self._proxy is not None:
            for handler_id in self._proxy_handlers:
                self._proxy.disconnect(handler_id)
            self._proxy_handlers.clear()
            self._proxy = None


# =============================================================================
# DEVICE
# =============================================================================
class Device(_ProxyObject):
    """A remote device exported by the service."""

    __gtype_name__ = "GSConnectPrefsDevice"

    __gsignals__ = {
        "plugins-changed": (GObject.SignalFlags.RUN_FIRST, None, ()),
    }

    # D-Bus property name -> GObject property name
    _PROPERTY_MAP: Final[dict[str, str]] = {
        "Id": "id",
        "Name": "name",
        "Type": "type",
        "Paired": "paired",
    }

    def __init__(self, object_path: str) -> None:
        super().__init__(object_path, DEVICE_INTERFACE)

    @GObject.Property(type=str, default="")
    def id(self) -> str:
        return _cached(self._proxy, "Id", "")

    @GObject.Property(type=str, default="")
    def name(self) -> str:
        return _cached(self._proxy, "Name", "")

    @GObject.Property(type=str, default="smartphone")
    def type(self) -> str:
        return _cached(self._proxy, "Type", "smartphone")

    @GObject.Property(type=bool, default=False)
    def paired(self) -> bool:
        return _cached(self._proxy, "Paired", False)

    @property
    def plugins(self) -> list[str]:
        return list(_cached(self._proxy, "Plugins", []))

    def _on_properties_changed(self, proxy, changed, invalidated) -> None:
        names = list(changed.unpack().keys()) + list(invalidated)
        for remote in names:
            if local := self._PROPERTY_MAP.get(remote):
                self.notify(local)
            elif remote == "Plugins":
                self.emit("plugins-changed")

    def _on_name_owner_changed(self, proxy, _pspec) -> None:
        for local in self._PROPERTY_MAP.values():
            self.notify(local)
        self.emit("plugins-changed")

    def pair(self) -> None:
        self._call("Pair")

    def unpair(self) -> None:
        self._call("Unpair")

    def enable_plugin(self, name: str) -> None:
        self._call("EnablePlugin", GLib.Variant("(s)", (name,)))

    def disable_plugin(self, name: str) -> None:
        self._call("DisablePlugin", GLib.Variant("(s)", (name,)))


# =============================================================================
# DEVICE MANAGER
# =============================================================================
class DeviceManager(_ProxyObject):
    """The service's device manager."""

    __gtype_name__ = "GSConnectPrefsDeviceManager"

    __gsignals__ = {
        "device-added": (GObject.SignalFlags.RUN_FIRST, None, (str,)),
        "device-removed": (GObject.SignalFlags.RUN_FIRST, None, (str,)),
    }

    def __init__(self) -> None:
        super().__init__(OBJECT_PATH, MANAGER_INTERFACE)
        self.devices: dict[str, Device] = {}
        self._sync_devices(emit=False)

    @GObject.Property(type=str, default="")
    def name(self) -> str:
        return _cached(self._proxy, "Name", "")

    @name.setter
    def name(self, value: str) -> None:
        if value and self._set_remote("Name", GLib.Variant("s", value)):
            log.info("Public name set to %r", value)

    def _on_properties_changed(self, proxy, changed, invalidated) -> None:
        names = set(changed.unpack().keys()) | set(invalidated)
        if "Name" in names:
            self.notify("name")
        if "Devices" in names:
            self._sync_devices(emit=True)

    def _on_name_owner_changed(self, proxy, _pspec) -> None:
        log.debug("Service owner is now %s", proxy.get_name_owner())
        self._sync_devices(emit=True)
        self.notify("name")

    def _sync_devices(self, emit: bool) -> None:
        remote = _cached(self._proxy, "Devices", [])
        added, removed = diff_paths(self.devices, remote)

        for path in removed:
            device = self.devices.pop(path)
            if emit:
                self.emit("device-removed", path)
            device.destroy()

        for path in added:
            self.devices[path] = Device(path)
            if emit:
                self.emit("device-added", path)

    def destroy(self) -> None:
        for device in self.devices.values():
            device.destroy()
        self.devices.clear()
        super().destroy()
