"""
Utility functions for GSConnect Preferences.

Small, dependency-light helpers shared by the settings store and the UI:
XDG path resolution, YAML data loading, atomic file writes, the startup
pre-flight check and toast display.

Design Invariants:
    1. XDG paths are always absolute; relative overrides are ignored.
    2. File writes use atomic rename (write-to-temp, fsync, rename, fsync-dir).
    3. Missing or malformed data files never raise; they yield an empty mapping.
"""
from __future__ import annotations

import logging
import os
import sys
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING, Final

import yaml

if TYPE_CHECKING:
    from gi.repository import Adw

log = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS & PATHS
# =============================================================================
APP_DIR_NAME: Final[str] = "gsconnect-prefs"
DATA_DIR: Final[Path] = Path(__file__).resolve().parent.parent / "data"


def _get_xdg_path(env_var: str, default_suffix: str) -> Path:
    """Get XDG base directory path with validation.

    Per the XDG Base Directory Specification, paths MUST be absolute.
    If the environment variable is unset, empty, or contains a relative path,
    the default is used.
    """
    value = os.environ.get(env_var, "").strip()
    if value:
        candidate = Path(value)
        if candidate.is_absolute():
            return candidate
        log.warning(
            "Ignoring non-absolute %s='%s'; using default", env_var, value
        )
    return Path.home() / default_suffix


def get_settings_dir() -> Path:
    """Return the directory holding persisted settings (not created here)."""
    return _get_xdg_path("XDG_CONFIG_HOME", ".config") / APP_DIR_NAME


def data_file(name: str) -> Path:
    """Return the path of a bundled data file."""
    return DATA_DIR / name


# =============================================================================
# CONFIGURATION LOADER
# =============================================================================
def load_config(config_path: Path) -> dict[str, object]:
    """Load and parse a YAML file into a mapping.

    Returns an empty dict on missing file, read error, or parse error.
    """
    try:
        content = config_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        log.debug("Config file not found: %s", config_path)
        return {}
    except OSError as e:
        log.error("Failed to read config %s: %s", config_path, e)
        return {}

    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        log.error("YAML parse error in %s: %s", config_path, e)
        return {}

    if data is None:
        return {}

    if not isinstance(data, dict):
        log.warning("Config root is not a mapping in %s", config_path)
        return {}

    return data


# =============================================================================
# ATOMIC WRITES
# =============================================================================
def atomic_write_text(target_path: Path, content: str) -> bool:
    """Atomically replace a file's content.

    Uses the write-to-temp, fsync, rename, fsync-dir pattern for crash safety.
    Returns True on success, False on failure.
    """
    temp_fd: int | None = None
    temp_path: Path | None = None

    try:
        target_path.parent.mkdir(parents=True, exist_ok=True)

        # Same directory as the target, required for an atomic rename
        temp_fd, temp_path_str = tempfile.mkstemp(
            dir=target_path.parent,
            prefix=f".{target_path.name}.",
            suffix=".tmp",
        )
        temp_path = Path(temp_path_str)

        with os.fdopen(temp_fd, "w", encoding="utf-8") as f:
            temp_fd = None  # Ownership transferred to file object
            f.write(content)
            f.flush()
            os.fsync(f.fileno())

        temp_path.replace(target_path)

        dir_fd = os.open(target_path.parent, os.O_RDONLY | os.O_DIRECTORY)
        try:
            os.fsync(dir_fd)
        finally:
            os.close(dir_fd)

        temp_path = None
        return True

    except OSError as e:
        log.warning("Failed to write %s: %s", target_path, e)
        return False

    finally:
        if temp_fd is not None:
            try:
                os.close(temp_fd)
            except OSError:
                pass
        if temp_path is not None:
            try:
                temp_path.unlink(missing_ok=True)
            except OSError:
                pass


# =============================================================================
# PRE-FLIGHT DEPENDENCY CHECK
# =============================================================================
def preflight_check() -> None:
    """Verify critical runtime dependencies before startup.

    Logs warnings for non-fatal issues and exits with code 1 for fatal issues.
    """
    missing_deps: list[str] = []
    warnings: list[str] = []

    try:
        import gi
        gi.require_version("Gtk", "4.0")
        gi.require_version("Adw", "1")
        from gi.repository import Adw, Gtk  # noqa: F401
    except ImportError:
        missing_deps.append("python-gobject")
    except ValueError as e:
        msg = str(e).lower()
        if "gtk" in msg:
            missing_deps.append("gtk4")
        elif "adw" in msg:
            missing_deps.append("libadwaita")
        else:
            missing_deps.append("python-gobject (unknown version error)")

    if missing_deps:
        msg = f"Missing required dependencies: {', '.join(missing_deps)}"
        log.critical(msg)
        print(f"\n[FATAL] {msg}\n", file=sys.stderr)
        sys.exit(1)

    settings_dir = get_settings_dir()
    try:
        test_file = settings_dir / ".write_test"
        settings_dir.mkdir(parents=True, exist_ok=True)
        test_file.touch()
        test_file.unlink()
    except OSError as e:
        warnings.append(f"Settings directory not writable ({settings_dir}): {e}")

    for warning in warnings:
        log.warning(warning)


# =============================================================================
# UI HELPERS
# =============================================================================
def toast(
    toast_overlay: Adw.ToastOverlay | None,
    message: str,
    timeout: int = 2,
) -> None:
    """Display a toast notification, if an overlay is available."""
    if toast_overlay is None:
        log.debug("toast() called with None overlay; message: %s", message)
        return

    from gi.repository import Adw as AdwLib
    from gi.repository import GLib

    def _show_toast() -> bool:
        t = AdwLib.Toast.new(message)
        t.set_timeout(timeout)
        toast_overlay.add_toast(t)
        return GLib.SOURCE_REMOVE

    GLib.idle_add(_show_toast)
