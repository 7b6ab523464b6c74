"""Polling watch over the resource store.

``StoreWatcher.poll()`` compares each kind's objects with the previous
snapshot and returns the identities that need a reconcile:

* new objects and spec changes (``generation_changed``),
* deletion requests,
* dependents of a kind whose status changed or that disappeared (for
  policies: every channel),
* everything, every ``resync_seconds`` when resync is enabled.

Status-only and finalizer-only writes of a kind do not enqueue that kind;
otherwise each reconcile would trigger the next.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterable, Mapping, Sequence

from alertsync.controller.mapping import deletion_requested, generation_changed, status_changed
from alertsync.core.logging import get_logger
from alertsync.core.protocols import ResourceStore
from alertsync.domain.meta import Resource, ResourceKey

logger = get_logger(__name__)

DependentsFn = Callable[[], Iterable[ResourceKey]]


class StoreWatcher:
    def __init__(
        self,
        store: ResourceStore,
        kinds: Sequence[str],
        *,
        dependents: Mapping[str, DependentsFn] | None = None,
        resync_seconds: float = 0.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._store = store
        self._kinds = list(kinds)
        self._dependents = dict(dependents or {})
        self._resync_seconds = resync_seconds
        self._clock = clock
        self._snapshot: dict[ResourceKey, Resource] = {}
        self._last_resync = clock()

    def poll(self) -> list[ResourceKey]:
        """Identities to enqueue, deduplicated, in discovery order."""
        events: dict[ResourceKey, None] = {}
        triggered: set[str] = set()
        seen: set[ResourceKey] = set()

        for kind in self._kinds:
            for resource in self._store.list(kind):
                key = resource.key
                seen.add(key)
                old = self._snapshot.get(key)
                if generation_changed(old, resource) or deletion_requested(old, resource):
                    events[key] = None
                if old is not None and status_changed(old, resource):
                    triggered.add(kind)
                self._snapshot[key] = resource

        for key in [key for key in self._snapshot if key not in seen]:
            del self._snapshot[key]
            triggered.add(key.kind)

        for kind in sorted(triggered):
            dependents = self._dependents.get(kind)
            if dependents is None:
                continue
            for key in dependents():
                events[key] = None

        if self._resync_seconds and self._clock() - self._last_resync >= self._resync_seconds:
            self._last_resync = self._clock()
            for key in self._snapshot:
                events[key] = None
            logger.debug("resync", resources=len(self._snapshot))

        if events:
            logger.debug("watch_events", count=len(events))
        return list(events)
