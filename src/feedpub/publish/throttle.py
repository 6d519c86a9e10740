"""Run-wide bound on concurrently in-flight transfers."""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from typing import Callable, Iterator, Sequence, TypeVar

_T = TypeVar("_T")
_R = TypeVar("_R")


class Throttle:
    def __init__(self, limit: int) -> None:
        if limit < 1:
            raise ValueError("throttle limit 必須 >= 1")
        self.limit = limit
        self._semaphore = threading.BoundedSemaphore(value=limit)
        self._lock = threading.Lock()
        self._in_flight = 0
        self._peak = 0

    @property
    def in_flight(self) -> int:
        with self._lock:
            return self._in_flight

    @property
    def peak(self) -> int:
        with self._lock:
            return self._peak

    @contextmanager
    def slot(self) -> Iterator[None]:
        self._semaphore.acquire()
        with self._lock:
            self._in_flight += 1
            self._peak = max(self._peak, self._in_flight)
        try:
            yield
        finally:
            with self._lock:
                self._in_flight -= 1
            self._semaphore.release()


def run_bounded(throttle: Throttle, items: Sequence[_T], action: Callable[[_T], _R]) -> list[_R]:
    """Run ``action`` over ``items`` concurrently, one throttle slot per call.

    Results come back in input order. ``action`` is expected to contain its
    own failures; an exception still propagates after every item finished.
    """

    if not items:
        return []

    def _guarded(item: _T) -> _R:
        with throttle.slot():
            return action(item)

    workers = min(throttle.limit, len(items))
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="feedpub-push") as executor:
        futures = [executor.submit(_guarded, item) for item in items]
        return [future.result() for future in futures]
