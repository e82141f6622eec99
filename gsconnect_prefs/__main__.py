#!/usr/bin/env python3
"""
GSConnect Preferences entry point.

    gsconnect-prefs
    python -m gsconnect_prefs
"""
from __future__ import annotations

import logging
import sys

# =============================================================================
# VERSION CHECK
# =============================================================================
if sys.version_info < (3, 10):
    sys.exit("[FATAL] Python 3.10+ is required for this application.")

# =============================================================================
# LOGGING CONFIGURATION
# =============================================================================
logging.basicConfig(
    level=logging.INFO,
    format="[%(levelname)s] %(message)s",
    stream=sys.stderr,
)
log = logging.getLogger(__name__)


def main() -> int:
    from gsconnect_prefs.lib import utility

    utility.preflight_check()

    from gsconnect_prefs.prefs_app import GSConnectPreferences

    app = GSConnectPreferences()
    return app.run(sys.argv)


if __name__ == "__main__":
    sys.exit(main())
