"""
GSConnect Preferences.

A GTK4/Libadwaita preferences window for the GSConnect device bridge.
"""

__version__ = "0.1.0"
