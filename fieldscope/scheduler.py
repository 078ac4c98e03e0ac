"""Outbound call pacing for the upstream generation API.

The caller owns the scheduler: build one per process and hand it to whatever
makes remote calls. Tasks run one at a time, first in first out, and never
start closer together than ``min_interval`` seconds.
"""

from __future__ import annotations

import queue
import threading
import time
from concurrent.futures import Future
from typing import Any, Callable, Optional

from fieldscope.utils import get_logger

logger = get_logger(__name__)

DEFAULT_MIN_INTERVAL = 4.0  # ~15 calls per minute


class CallScheduler:
    def __init__(
        self,
        min_interval: float = DEFAULT_MIN_INTERVAL,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.min_interval = float(min_interval)
        self._clock = clock
        self._sleep = sleep
        self._queue: "queue.Queue[Optional[tuple]]" = queue.Queue()
        self._lock = threading.Lock()
        self._worker: Optional[threading.Thread] = None
        self._closed = False
        self._last_call: Optional[float] = None

    def submit(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Future:
        with self._lock:
            if self._closed:
                raise RuntimeError("CallScheduler is closed")
            fut: Future = Future()
            self._queue.put((fut, fn, args, kwargs))
            if self._worker is None:
                self._worker = threading.Thread(target=self._drain, name="fieldscope-scheduler", daemon=True)
                self._worker.start()
        return fut

    def _drain(self) -> None:
        while True:
            job = self._queue.get()
            if job is None:
                break
            fut, fn, args, kwargs = job
            if not fut.set_running_or_notify_cancel():
                continue
            if self._last_call is not None:
                wait = self.min_interval - (self._clock() - self._last_call)
                if wait > 0:
                    logger.debug("scheduler: waiting %.2fs before next call", wait)
                    self._sleep(wait)
            self._last_call = self._clock()
            try:
                result = fn(*args, **kwargs)
            except Exception as e:
                logger.warning("scheduler: task failed: %s", e)
                fut.set_exception(e)
            else:
                fut.set_result(result)

    def close(self, wait: bool = True) -> None:
        """Stop accepting work; queued tasks still run before the worker exits."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            worker = self._worker
            if worker is not None:
                self._queue.put(None)
        if worker is not None and wait:
            worker.join()

    def __enter__(self) -> "CallScheduler":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()
