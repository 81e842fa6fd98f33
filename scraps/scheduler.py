"""Periodic auto-sync.

A daemon ``threading.Timer`` re-armed after each run. Nothing about the
schedule is persisted: after a restart the first run happens one full
interval after ``start()``. Timer runs and manual triggers go through the
same callable, and so through the engine's single-pass guard.
"""

import logging
import threading
from typing import Callable, Optional

from scraps.types import SyncResult

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 60.0


class AutoSync:
    def __init__(
        self,
        run: Callable[[], SyncResult],
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
    ):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._run = run
        self.interval_seconds = interval_seconds
        self._timer: Optional[threading.Timer] = None
        self._lock = threading.Lock()
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        with self._lock:
            if self._running:
                return
            self._running = True
            self._schedule()
        logger.info(f"Auto-sync started (every {self.interval_seconds:g}s)")

    def stop(self) -> None:
        with self._lock:
            self._running = False
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
        logger.info("Auto-sync stopped")

    def trigger(self) -> SyncResult:
        """Run a pass now, in the calling thread."""
        return self._run()

    def _schedule(self) -> None:
        timer = threading.Timer(self.interval_seconds, self._tick)
        timer.daemon = True
        self._timer = timer
        timer.start()

    def _tick(self) -> None:
        try:
            result = self._run()
            if result.rejected:
                logger.debug("Auto-sync tick skipped, a pass is already running")
        except Exception as e:
            # Keep the timer alive; the next tick retries
            logger.error(f"Auto-sync run failed: {e}", exc_info=True)
        with self._lock:
            if self._running:
                self._schedule()
