"""Logging setup for scraps.

Two outputs under ``<home>/logs``:

- ``local-YYYY-MM-DD.log``: everything the ``scraps`` logger emits.
- ``sync-events-YYYY-MM-DD.log``: one line per sync event, for a quick
  audit of what each pass did.
"""

import logging
from datetime import datetime
from pathlib import Path

from scraps.utils import get_scraps_home

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def _log_dir() -> Path:
    path = get_scraps_home() / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path


def _today() -> str:
    return datetime.now().strftime("%Y-%m-%d")


def setup_scraps_logging(level: str = "INFO") -> logging.Logger:
    """Configure the ``scraps`` logger. Safe to call more than once."""
    logger = logging.getLogger("scraps")
    resolved = getattr(logging, str(level).upper(), None)
    if not isinstance(resolved, int):
        resolved = logging.INFO
    logger.setLevel(resolved)

    formatter = logging.Formatter(LOG_FORMAT)

    if not any(isinstance(h, logging.FileHandler) for h in logger.handlers):
        file_handler = logging.FileHandler(_log_dir() / f"local-{_today()}.log")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    has_console = any(
        isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler)
        for h in logger.handlers
    )
    if resolved == logging.DEBUG and not has_console:
        console = logging.StreamHandler()
        console.setFormatter(formatter)
        logger.addHandler(console)

    return logger


def log_sync_event(event_type: str, details: str) -> None:
    """Append one line to today's sync event log."""
    timestamp = datetime.now().isoformat(timespec="seconds")
    path = _log_dir() / f"sync-events-{_today()}.log"
    with open(path, "a", encoding="utf-8") as f:
        f.write(f"{timestamp} | {event_type} | {details}\n")


def log_sync(direction: str, count: int, errors: int = 0) -> None:
    log_sync_event("sync", f"direction={direction}, count={count}, errors={errors}")
