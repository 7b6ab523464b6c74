"""Controller manager: watch loop plus a pool of reconcile workers.

The manager polls the store through a :class:`StoreWatcher`, feeds the
resulting identities into a :class:`WorkQueue`, and runs ``workers``
threads that take keys off the queue and call the matching reconciler.

Usage (programmatic)::

    from alertsync.execution.manager import ControllerManager

    manager = ControllerManager.build(store, collaborators, workers=4)
    manager.start()  # blocks until SIGINT/SIGTERM

Usage (CLI)::

    alertsync run --workers 4 --poll-interval 2
"""

from __future__ import annotations

import os
import signal
import threading
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from alertsync.controller import Collaborators, ReconcileResult, Reconciler, build_reconcilers
from alertsync.controller.mapping import channels_for_policy
from alertsync.core.logging import get_logger
from alertsync.core.protocols import ResourceStore
from alertsync.domain.channels import CHANNEL_KINDS
from alertsync.domain.meta import ResourceKey
from alertsync.domain.policy import AlertPolicy
from alertsync.execution.queue import WorkQueue
from alertsync.execution.watch import StoreWatcher

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass
class ManagerStats:
    """Aggregate statistics for a manager."""

    reconciles: int = 0
    succeeded: int = 0
    failed: int = 0
    requeued: int = 0
    uptime_seconds: float = 0
    last_poll_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "reconciles": self.reconciles,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "requeued": self.requeued,
            "uptime_seconds": round(self.uptime_seconds, 2),
            "last_poll_at": self.last_poll_at.isoformat() if self.last_poll_at else None,
        }


class ControllerManager:
    """Runs reconcilers against a store until stopped.

    Thread-safety:
        The poll loop is single-threaded. Workers only meet in the queue,
        which never hands the same key to two of them.
    """

    def __init__(
        self,
        reconcilers: dict[str, Reconciler],
        watcher: StoreWatcher,
        *,
        queue: WorkQueue | None = None,
        workers: int = 2,
        poll_interval: float = 2.0,
        manager_id: str | None = None,
    ):
        self._reconcilers = reconcilers
        self._watcher = watcher
        self._queue = queue or WorkQueue()
        self._workers = workers
        self._poll_interval = poll_interval
        self._manager_id = manager_id or f"manager-{uuid.uuid4().hex[:8]}"
        self._shutdown = threading.Event()
        self._started_at = _utcnow()
        self._stats = ManagerStats()
        self._stats_lock = threading.Lock()
        self._pool: ThreadPoolExecutor | None = None

    @classmethod
    def build(
        cls,
        store: ResourceStore,
        collaborators: Collaborators,
        *,
        queue: WorkQueue | None = None,
        workers: int = 2,
        poll_interval: float = 2.0,
        resync_seconds: float = 0.0,
    ) -> ControllerManager:
        """Wire every known kind, with policy changes fanning out to channels."""
        reconcilers = build_reconcilers(collaborators)
        channel_kinds = [kind.KIND for kind in CHANNEL_KINDS]
        watcher = StoreWatcher(
            store,
            list(reconcilers),
            dependents={AlertPolicy.KIND: lambda: channels_for_policy(store, channel_kinds)},
            resync_seconds=resync_seconds,
        )
        return cls(reconcilers, watcher, queue=queue, workers=workers, poll_interval=poll_interval)

    @property
    def manager_id(self) -> str:
        return self._manager_id

    @property
    def queue(self) -> WorkQueue:
        return self._queue

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    def start(self) -> None:
        """Run the poll loop (blocking) until SIGINT / SIGTERM or ``stop()``."""
        logger.info(
            "manager_starting",
            manager_id=self._manager_id,
            pid=os.getpid(),
            workers=self._workers,
            poll_interval=self._poll_interval,
            kinds=sorted(self._reconcilers),
        )

        try:
            signal.signal(signal.SIGINT, self._handle_signal)
            signal.signal(signal.SIGTERM, self._handle_signal)
        except ValueError:
            logger.debug("signal_handlers_skipped", reason="not in main thread")

        self._pool = ThreadPoolExecutor(max_workers=self._workers, thread_name_prefix=self._manager_id)
        for _ in range(self._workers):
            self._pool.submit(self._worker_loop)

        try:
            self._run_loop()
        finally:
            self._cleanup()

    def start_background(self) -> threading.Thread:
        """Start the manager in a daemon thread. Returns the thread."""
        t = threading.Thread(target=self.start, name=f"{self._manager_id}-loop", daemon=True)
        t.start()
        return t

    def stop(self) -> None:
        """Request graceful shutdown; in-flight reconciles finish."""
        logger.info("manager_stopping", manager_id=self._manager_id)
        self._shutdown.set()

    def get_stats(self) -> ManagerStats:
        with self._stats_lock:
            self._stats.uptime_seconds = (_utcnow() - self._started_at).total_seconds()
            return ManagerStats(**vars(self._stats))

    # ------------------------------------------------------------------ #
    # Synchronous driving (CLI ``reconcile``/tests)
    # ------------------------------------------------------------------ #

    def poll(self) -> int:
        """Run one watch cycle; returns the number of keys enqueued."""
        keys = self._watcher.poll()
        for key in keys:
            self._queue.add(key)
        with self._stats_lock:
            self._stats.last_poll_at = _utcnow()
        return len(keys)

    def run_once(self) -> int:
        """Poll once and process everything ready now; returns keys processed."""
        self.poll()
        processed = 0
        while self.process_next(timeout=0):
            processed += 1
        return processed

    def process_next(self, timeout: float | None = None) -> bool:
        key = self._queue.get(timeout=timeout)
        if key is None:
            return False
        try:
            self._process(key)
        finally:
            self._queue.done(key)
        return True

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    def _run_loop(self) -> None:
        while not self._shutdown.is_set():
            try:
                self.poll()
            except Exception:
                logger.exception("watch_poll_failed", manager_id=self._manager_id)
            self._shutdown.wait(self._poll_interval)

    def _worker_loop(self) -> None:
        while not self._shutdown.is_set():
            self.process_next(timeout=self._poll_interval)

    def _process(self, key: ResourceKey) -> None:
        reconciler = self._reconcilers.get(key.kind)
        if reconciler is None:
            logger.warning("no_reconciler", resource=str(key))
            self._queue.forget(key)
            return

        try:
            result = reconciler.reconcile(key.name_ref)
        except Exception as e:
            logger.exception("reconcile_crashed", resource=str(key))
            result = ReconcileResult.fail(e)

        with self._stats_lock:
            self._stats.reconciles += 1
            if result.error is not None:
                self._stats.failed += 1
            elif result.requeue:
                self._stats.requeued += 1
            else:
                self._stats.succeeded += 1

        if result.requeue:
            delay = self._queue.add_rate_limited(key)
            logger.debug("requeued", resource=str(key), delay=round(delay, 3))
        else:
            self._queue.forget(key)

    def _handle_signal(self, signum, frame):
        logger.info("signal_received", manager_id=self._manager_id, signal=signum)
        self.stop()

    def _cleanup(self) -> None:
        self._queue.shutdown()
        if self._pool is not None:
            self._pool.shutdown(wait=True, cancel_futures=False)
        stats = self.get_stats()
        logger.info(
            "manager_stopped",
            manager_id=self._manager_id,
            reconciles=stats.reconciles,
            failed=stats.failed,
        )
