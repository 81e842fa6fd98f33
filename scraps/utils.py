"""Small shared helpers."""

import logging
import os
import tempfile
from pathlib import Path

logger = logging.getLogger(__name__)


def get_scraps_home() -> Path:
    """Directory holding config, credentials, the database and logs.

    ``$SCRAPS_HOME`` wins; otherwise ``~/.scraps``. Falls back to a temp
    directory when the home directory cannot be created.
    """
    override = os.environ.get("SCRAPS_HOME")
    home = Path(override).expanduser() if override else Path.home() / ".scraps"
    try:
        home.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        fallback = Path(tempfile.gettempdir()) / ".scraps"
        logger.warning(f"Cannot write to {home} ({e}), falling back to {fallback}")
        fallback.mkdir(parents=True, exist_ok=True)
        return fallback
    return home
