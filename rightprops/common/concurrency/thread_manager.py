from __future__ import annotations

import logging
import os
import time
import threading
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Callable, Optional, Set, TypeVar

from rightprops.common.concurrency.cancel import CancelToken, RunCancelled

R = TypeVar("R")

log = logging.getLogger(__name__)


@dataclass
class ThreadStats:
    start_ts: float
    tasks_submitted: int = 0
    tasks_completed: int = 0
    tasks_failed: int = 0
    tasks_cancelled: int = 0

    @property
    def uptime_sec(self) -> float:
        return time.time() - self.start_ts

    @property
    def in_flight(self) -> int:
        done = self.tasks_completed + self.tasks_failed + self.tasks_cancelled
        return max(0, self.tasks_submitted - done)


class ThreadManager:
    """
    A shared thread pool for I/O-bound units (property reads, ffprobe runs)
    wired to a single CancelToken.

    Features
    --------
    - submit(fn, *args, **kwargs) -> Future; tasks may submit further tasks
    - the first task failure cancels the token (fail-fast); later failures are logged
    - join() waits for every task submitted so far *and* any they spawn,
      then re-raises the error that cancelled the run
    - Stats snapshot
    - Clean shutdown, context manager support

    Notes
    -----
    - Tasks must not block waiting on other pool tasks; spawn and return instead,
      the pool joins the whole tree.
    """

    def __init__(
        self,
        name: str = "worker",
        max_workers: Optional[int] = None,
        token: Optional[CancelToken] = None,
        thread_name_prefix: Optional[str] = None,
    ) -> None:
        if max_workers is None:
            n = os.cpu_count() or 4
            max_workers = max(4, min(32, n * 4))  # I/O-friendly default

        self._name = name
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix=thread_name_prefix or f"{name}",
        )
        self.token = token or CancelToken()
        self._stats = ThreadStats(start_ts=time.time())
        self._pending: Set[Future] = set()
        self._closed = False
        self._lock = threading.Lock()

    # -------------------------
    # Lifecycle
    # -------------------------
    def shutdown(self, wait: bool = True, cancel_futures: bool = False) -> None:
        """Shut down the executor. Safe to call multiple times."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self._executor.shutdown(wait=wait, cancel_futures=cancel_futures)

    def __enter__(self) -> "ThreadManager":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc is not None:
            self.token.cancel(exc)
        self.shutdown(wait=True, cancel_futures=True)

    def stats(self) -> ThreadStats:
        """Return a *snapshot* of current stats."""
        with self._lock:
            return ThreadStats(
                start_ts=self._stats.start_ts,
                tasks_submitted=self._stats.tasks_submitted,
                tasks_completed=self._stats.tasks_completed,
                tasks_failed=self._stats.tasks_failed,
                tasks_cancelled=self._stats.tasks_cancelled,
            )

    # -------------------------
    # Submission
    # -------------------------
    def submit(self, fn: Callable[..., R], /, *args, **kwargs) -> Future[R]:
        """
        Submit a single callable. The token is checked before the task starts;
        an exception escaping the task cancels the run.
        """
        if self._closed:
            raise RuntimeError(f"{self._name}: submit() after shutdown")
        self.token.raise_if_cancelled()

        def _wrapped(*a, **kw) -> R:
            self.token.raise_if_cancelled()
            try:
                return fn(*a, **kw)
            except RunCancelled:
                raise
            except BaseException as e:
                if self.token.cancel(e):
                    log.error("%s task failed, cancelling run: %s", self._name, e)
                else:
                    log.debug("%s task failed after cancellation: %s", self._name, e)
                raise

        fut: Future[R] = self._executor.submit(_wrapped, *args, **kwargs)
        with self._lock:
            self._stats.tasks_submitted += 1
            self._pending.add(fut)
        fut.add_done_callback(self._on_done)
        return fut

    def _on_done(self, f: Future) -> None:
        with self._lock:
            self._pending.discard(f)
            if f.cancelled():
                self._stats.tasks_cancelled += 1
                return
            exc = f.exception()
            if exc is None:
                self._stats.tasks_completed += 1
            elif isinstance(exc, RunCancelled):
                self._stats.tasks_cancelled += 1
            else:
                self._stats.tasks_failed += 1

    def join(self) -> None:
        """
        Block until no task is pending (tasks submitted while joining included).
        Once the token is cancelled, queued tasks are dropped; running ones unwind
        at their next suspension point. Re-raises the first failure.
        """
        while True:
            with self._lock:
                pending = set(self._pending)
            if not pending:
                break
            if self.token.cancelled:
                for f in pending:
                    f.cancel()
            wait(pending, return_when=FIRST_COMPLETED)

        if self.token.cancelled:
            err = self.token.error
            if err is not None:
                raise err
            raise RunCancelled("run cancelled")
