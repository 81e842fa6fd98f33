"""Sync status reporter.

Holds the state shown to the user (``Idle``, ``Syncing``, ``Success``,
``Error``) plus the outcome of the last pass, and tells observers about
every change. A finished pass is announced as ``Success`` or ``Error``
and the reporter then settles back to ``Idle``; the outcome stays in
``last_result`` and ``describe()`` keeps showing it. The reporter never blocks the engine: a failing observer
is logged and skipped.
"""

import logging
import threading
from typing import Callable, List, Optional

from scraps.types import SyncResult, SyncStatus, now_ms

logger = logging.getLogger(__name__)

StatusObserver = Callable[["StatusReporter"], None]


class StatusReporter:
    def __init__(self):
        self._lock = threading.Lock()
        self._status = SyncStatus.IDLE
        self._observers: List[StatusObserver] = []
        self.last_result: Optional[SyncResult] = None
        self.last_error: Optional[str] = None
        self.last_success_at: Optional[int] = None

    @property
    def status(self) -> SyncStatus:
        return self._status

    def subscribe(self, callback: StatusObserver) -> None:
        if callback not in self._observers:
            self._observers.append(callback)

    def unsubscribe(self, callback: StatusObserver) -> None:
        if callback in self._observers:
            self._observers.remove(callback)

    def set_syncing(self) -> None:
        self._set(SyncStatus.SYNCING)

    def finish(self, result: SyncResult) -> None:
        """Record a finished (or aborted) pass."""
        with self._lock:
            self.last_result = result
            if result.status == SyncStatus.SUCCESS:
                self.last_success_at = result.finished_at or now_ms()
                self.last_error = None
            elif result.status == SyncStatus.ERROR:
                self.last_error = result.error
        self._set(result.status)
        self._set(SyncStatus.IDLE)

    def _set(self, status: SyncStatus) -> None:
        with self._lock:
            self._status = status
        for callback in list(self._observers):
            try:
                callback(self)
            except Exception as e:
                logger.warning(f"Status observer {callback!r} failed: {e}", exc_info=True)

    def describe(self) -> str:
        """One-line status text, e.g. for a status bar."""
        text = f"Scraps: {self._status.value}"
        if self._status == SyncStatus.ERROR and self.last_error:
            text += f" ({self.last_error})"
        elif self._status == SyncStatus.IDLE and self.last_result is not None:
            if self.last_result.status == SyncStatus.ERROR:
                text += f" (last sync failed: {self.last_error})"
            else:
                text += f" (last sync: {self.last_result.status.value})"
        return text

    def to_dict(self) -> dict:
        return {
            "status": self._status.value,
            "last_error": self.last_error,
            "last_success_at": self.last_success_at,
            "last_result": self.last_result.to_dict() if self.last_result else None,
        }
