"""Static metadata for the per-device plugins."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from gsconnect_prefs.lib import utility

log = logging.getLogger(__name__)

PLUGINS_FILENAME: Final[str] = "plugins.yaml"


@dataclass(frozen=True, slots=True)
class PluginInfo:
    summary: str
    description: str = ""


def load_plugin_metadata(path: Path | None = None) -> dict[str, PluginInfo]:
    """Plugin name -> PluginInfo, in declaration order."""
    data = utility.load_config(path or utility.data_file(PLUGINS_FILENAME))
    plugins = data.get("plugins", {})
    if not isinstance(plugins, dict):
        log.warning("'plugins' is not a mapping; no plugins listed")
        return {}

    metadata: dict[str, PluginInfo] = {}
    for name, info in plugins.items():
        if not isinstance(info, dict):
            log.warning("Skipping invalid plugin entry %r", name)
            continue
        metadata[str(name)] = PluginInfo(
            summary=str(info.get("summary", name)),
            description=str(info.get("description", "")),
        )
    return metadata
