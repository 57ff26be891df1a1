"""A one-shot debouncer that runs a callback after a delay."""

from __future__ import annotations

import threading
from typing import Callable


class DebouncerCancelledError(RuntimeError):
    """The debouncer was cancelled and cannot be armed again."""


class Debouncer:
    """Runs a callback once, ``timeout`` seconds after it is switched on.

    Switching it on while a run is pending does nothing; once cancelled the
    pending callback is skipped and it cannot be switched on again.
    """

    def __init__(self, timeout: float, callback: Callable[[], None]) -> None:
        self.timeout = timeout
        self._callback = callback
        self._running = False
        self._canceled = False
        self._timer: threading.Timer | None = None
        self._lock = threading.Lock()

    def _fire(self) -> None:
        try:
            if not self._canceled:
                self._callback()
        finally:
            with self._lock:
                self._running = False

    def cancel(self) -> None:
        """Skip any pending callback and refuse further runs."""
        self._canceled = True

    def set_on(self) -> None:
        """Schedule the callback unless one is already pending."""
        with self._lock:
            if self._canceled:
                raise DebouncerCancelledError("debouncer cancelled")
            if self._running:
                return
            self._running = True
            self._timer = threading.Timer(self.timeout, self._fire)
            self._timer.daemon = True
            self._timer.start()

    def is_on(self) -> bool:
        """Whether a callback is pending."""
        return self._running