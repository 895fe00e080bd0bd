from __future__ import annotations

import logging
import threading
from typing import Callable, List, Optional

log = logging.getLogger(__name__)


class RunCancelled(RuntimeError):
    """Raised at a suspension point once the shared token has been cancelled."""


class CancelToken:
    """
    One shared cancellation flag for a whole run.

    - cancel(error) is idempotent; the first caller's error is the one kept.
    - Callbacks registered with on_cancel() fire once, on the cancelling thread,
      or immediately if the token is already cancelled.
    - Workers call raise_if_cancelled() at every suspension point.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._error: Optional[BaseException] = None
        self._callbacks: List[Callable[[], None]] = []

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def error(self) -> Optional[BaseException]:
        """The error that triggered cancellation, if any."""
        return self._error

    def cancel(self, error: Optional[BaseException] = None) -> bool:
        """Cancel the run. Returns True only for the call that actually cancelled."""
        with self._lock:
            if self._event.is_set():
                return False
            self._error = error
            self._event.set()
            callbacks, self._callbacks = self._callbacks, []

        for cb in callbacks:
            try:
                cb()
            except Exception:
                log.exception("cancel callback failed")
        return True

    def on_cancel(self, cb: Callable[[], None]) -> Callable[[], None]:
        """Register cb; returns a function that unregisters it."""
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(cb)

                def _unregister() -> None:
                    with self._lock:
                        if cb in self._callbacks:
                            self._callbacks.remove(cb)

                return _unregister
        cb()
        return lambda: None

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise RunCancelled("run cancelled")
