"""
Keyboard shortcut profiles.

A profile maps an action name to an accelerator string ("<Super>m"). The
extension's own profile lives in the `extension-keybindings` key; device
profiles live together in `device-keybindings`, a JSON object keyed by
device id. Both keys hold JSON text and are rewritten wholesale on every
edit.
"""
from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from gsconnect_prefs.lib.settings import SettingsStore

log = logging.getLogger(__name__)

EXTENSION_KEYBINDINGS_KEY: Final[str] = "extension-keybindings"
DEVICE_KEYBINDINGS_KEY: Final[str] = "device-keybindings"

EXTENSION_ACTIONS: Final[tuple[tuple[str, str], ...]] = (
    ("menu", "Open Extension Menu"),
    ("discover", "Discover Devices"),
    ("settings", "Open Extension Settings"),
)

DEVICE_ACTIONS: Final[tuple[tuple[str, str], ...]] = (
    ("menu", "Open Device Menu"),
    ("sms", "Open SMS Window"),
    ("find", "Locate Device"),
    ("browse", "Browse Device"),
    ("share", "Share File/URL"),
)

Profile = dict[str, str]


def decode_object(text: str) -> dict[str, object]:
    """Parse a JSON object, returning {} for anything malformed."""
    try:
        data = json.loads(text) if text else {}
    except json.JSONDecodeError as e:
        log.warning("Ignoring malformed keybindings JSON: %s", e)
        return {}

    if not isinstance(data, dict):
        log.warning("Ignoring keybindings JSON that is not an object")
        return {}
    return data


def clean_profile(data: object) -> Profile:
    """Keep only string action names with string accelerators."""
    if not isinstance(data, Mapping):
        return {}
    return {
        str(action): accel
        for action, accel in data.items()
        if isinstance(accel, str)
    }


def encode(data: Mapping[str, object]) -> str:
    return json.dumps(data, sort_keys=True)


# =============================================================================
# STORE-BACKED PROFILES
# =============================================================================
def load_extension_profile(store: SettingsStore) -> Profile:
    return clean_profile(decode_object(store.get_string(EXTENSION_KEYBINDINGS_KEY)))


def save_extension_profile(store: SettingsStore, profile: Mapping[str, str]) -> None:
    store.set_string(EXTENSION_KEYBINDINGS_KEY, encode(dict(profile)))


class DeviceKeybindings:
    """The keybinding profile of one device.

    The shared blob is read once, when the object is created. If the device
    has no entry yet an empty profile is added and written back immediately.
    """

    __slots__ = ("store", "device_id", "_profiles")

    def __init__(self, store: SettingsStore, device_id: str) -> None:
        self.store = store
        self.device_id = device_id
        self._profiles = decode_object(store.get_string(DEVICE_KEYBINDINGS_KEY))

        if device_id not in self._profiles:
            self._profiles[device_id] = {}
            self._save()

    @property
    def profile(self) -> Profile:
        return clean_profile(self._profiles.get(self.device_id))

    def update(self, profile: Mapping[str, str]) -> None:
        """Replace this device's profile and rewrite the whole blob."""
        self._profiles[self.device_id] = dict(profile)
        self._save()

    def _save(self) -> None:
        self.store.set_string(DEVICE_KEYBINDINGS_KEY, encode(self._profiles))
