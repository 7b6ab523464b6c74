"""Deduplicating work queue keyed by resource identity.

Guarantees:

* A key is handed to at most one worker at a time. Adding a key that is
  being processed marks it dirty; ``done`` puts it back in the queue.
* Adding a key that is already waiting is a no-op.
* ``add_rate_limited`` delays re-adds with per-key exponential backoff;
  ``forget`` resets the key's failure count after a success.

Usage::

    queue = WorkQueue()
    queue.add(key)
    key = queue.get(timeout=1.0)
    try:
        result = reconcile(key)
    finally:
        queue.done(key)
"""

from __future__ import annotations

import heapq
import itertools
import threading
import time
from collections import deque

from alertsync.domain.meta import ResourceKey
from alertsync.execution.retry import ExponentialBackoff, RetryStrategy


class WorkQueue:
    def __init__(self, rate_limiter: RetryStrategy | None = None):
        self._rate_limiter = rate_limiter or ExponentialBackoff(
            max_retries=2**31, base_delay=1.0, max_delay=300.0, jitter=False
        )
        self._cond = threading.Condition()
        self._queue: deque[ResourceKey] = deque()
        self._dirty: set[ResourceKey] = set()
        self._processing: set[ResourceKey] = set()
        self._delayed: list[tuple[float, int, ResourceKey]] = []
        self._failures: dict[ResourceKey, int] = {}
        self._sequence = itertools.count()
        self._shutting_down = False

    # ------------------------------------------------------------------ #
    # Producers
    # ------------------------------------------------------------------ #

    def add(self, key: ResourceKey) -> None:
        with self._cond:
            self._add(key)

    def add_after(self, key: ResourceKey, delay: float) -> None:
        if delay <= 0:
            self.add(key)
            return
        with self._cond:
            if self._shutting_down:
                return
            heapq.heappush(self._delayed, (time.monotonic() + delay, next(self._sequence), key))
            self._cond.notify_all()

    def add_rate_limited(self, key: ResourceKey) -> float:
        """Re-add after the key's backoff delay; returns the delay used."""
        with self._cond:
            failures = self._failures.get(key, 0)
            self._failures[key] = failures + 1
        delay = self._rate_limiter.next_delay(failures)
        self.add_after(key, delay)
        return delay

    def forget(self, key: ResourceKey) -> None:
        with self._cond:
            self._failures.pop(key, None)

    def num_requeues(self, key: ResourceKey) -> int:
        with self._cond:
            return self._failures.get(key, 0)

    # ------------------------------------------------------------------ #
    # Consumers
    # ------------------------------------------------------------------ #

    def get(self, timeout: float | None = None) -> ResourceKey | None:
        """Next key to process, or None on timeout or shutdown."""
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._cond:
            while True:
                self._promote_due()
                if self._shutting_down:
                    return None
                if self._queue:
                    key = self._queue.popleft()
                    self._dirty.discard(key)
                    self._processing.add(key)
                    return key

                now = time.monotonic()
                wait: float | None = None
                if self._delayed:
                    wait = max(0.0, self._delayed[0][0] - now)
                if deadline is not None:
                    remaining = deadline - now
                    if remaining <= 0:
                        return None
                    wait = remaining if wait is None else min(wait, remaining)
                self._cond.wait(wait)

    def done(self, key: ResourceKey) -> None:
        with self._cond:
            self._processing.discard(key)
            if key in self._dirty and not self._shutting_down:
                self._queue.append(key)
                self._cond.notify()

    def shutdown(self) -> None:
        with self._cond:
            self._shutting_down = True
            self._cond.notify_all()

    @property
    def shutting_down(self) -> bool:
        return self._shutting_down

    def __len__(self) -> int:
        with self._cond:
            return len(self._queue)

    @property
    def pending_delayed(self) -> int:
        with self._cond:
            return len(self._delayed)

    # ------------------------------------------------------------------ #
    # Internals (caller holds the condition)
    # ------------------------------------------------------------------ #

    def _add(self, key: ResourceKey) -> None:
        if self._shutting_down or key in self._dirty:
            return
        self._dirty.add(key)
        if key in self._processing:
            return
        self._queue.append(key)
        self._cond.notify()

    def _promote_due(self) -> None:
        now = time.monotonic()
        while self._delayed and self._delayed[0][0] <= now:
            _, _, key = heapq.heappop(self._delayed)
            self._add(key)
