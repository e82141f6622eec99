"""
Row widgets for preference sections and the devices sidebar.

GTK4/Libadwaita compatible.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Final

import gi

gi.require_version("Gtk", "4.0")
gi.require_version("Adw", "1")
from gi.repository import Adw, GLib, Gtk, Pango

if TYPE_CHECKING:
    from gi.repository import GObject

log = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================
ROW_COLUMN_SPACING: Final[int] = 16
ROW_MARGIN_HORIZONTAL: Final[int] = 12
ROW_MARGIN_VERTICAL: Final[int] = 6
SIDEBAR_ICON_PIXEL_SIZE: Final[int] = 24
DEFAULT_DEVICE_ICON: Final[str] = "smartphone"


def _device_icon_name(device_type: str) -> str:
    return device_type or DEFAULT_DEVICE_ICON


# =============================================================================
# SECTION ROWS
# =============================================================================
class GridRow(Adw.PreferencesRow):
    """A non-activatable row holding a Gtk.Grid for free-form content."""

    __gtype_name__ = "GSConnectPrefsGridRow"

    def __init__(self) -> None:
        super().__init__(activatable=False, focusable=True)
        self.add_css_class("grid-row")

        self.grid = Gtk.Grid(
            column_spacing=ROW_COLUMN_SPACING,
            row_spacing=0,
            margin_start=ROW_MARGIN_HORIZONTAL,
            margin_end=ROW_MARGIN_HORIZONTAL,
            margin_top=ROW_MARGIN_VERTICAL,
            margin_bottom=ROW_MARGIN_VERTICAL,
        )
        self.set_child(self.grid)


class SettingRow(Adw.ActionRow):
    """Summary over a dimmed description on the left, a control on the right."""

    __gtype_name__ = "GSConnectPrefsSettingRow"

    def __init__(
        self,
        summary: str,
        description: str | None,
        widget: Gtk.Widget,
    ) -> None:
        super().__init__(activatable=False)
        self.set_title(GLib.markup_escape_text(summary))
        if description:
            self.set_subtitle(GLib.markup_escape_text(description))

        self.widget = widget
        widget.set_valign(Gtk.Align.CENTER)
        self.add_suffix(widget)

        # Let a click on the row reach switches and check buttons
        control = getattr(widget, "control", widget)
        if isinstance(control, (Gtk.Switch, Gtk.CheckButton)):
            self.set_activatable_widget(control)
            self.set_activatable(True)


# =============================================================================
# DEVICES SIDEBAR
# =============================================================================
class DeviceSidebarRow(Gtk.ListBoxRow):
    """Sidebar entry: device icon next to its name and dimmed type."""

    __gtype_name__ = "GSConnectPrefsDeviceSidebarRow"

    def __init__(self, device: GObject.Object, page_name: str) -> None:
        super().__init__()
        self.device = device
        self.page_name = page_name

        grid = Gtk.Grid(
            column_spacing=ROW_COLUMN_SPACING,
            margin_start=ROW_MARGIN_HORIZONTAL,
            margin_end=ROW_MARGIN_HORIZONTAL,
            margin_top=ROW_MARGIN_VERTICAL,
            margin_bottom=ROW_MARGIN_VERTICAL,
        )

        icon = Gtk.Image.new_from_icon_name(_device_icon_name(device.type))
        icon.set_pixel_size(SIDEBAR_ICON_PIXEL_SIZE)
        grid.attach(icon, 0, 0, 1, 2)

        self.name_label = Gtk.Label(label=device.name, xalign=0)
        self.name_label.set_ellipsize(Pango.EllipsizeMode.END)
        grid.attach(self.name_label, 1, 0, 1, 1)

        type_label = Gtk.Label(label=device.type, xalign=0)
        type_label.add_css_class("dim-label")
        grid.attach(type_label, 1, 1, 1, 1)

        self.set_child(grid)
