"""
Conflict-safe status writes.

Manifesto:
    A reconcile reads the resource once, talks to New Relic for a while,
    then records what happened. In between, anyone may have written the
    object: a user re-applying the manifest, the finalizer step, another
    status write. The outcome must still land, without clobbering their
    changes and without looping forever.

Architecture:
    ::

        update(resource, status)
          │
          ├─ write status at the version read at reconcile start
          │
          ├─ ConflictError ──► re-fetch ──► copy status onto fresh copy ──► retry
          │                    (bounded by ExponentialBackoff)
          │
          └─ any other error ──► propagate

    Exhaustion raises ``ConflictRetriesExhaustedError``. A resource removed
    in the meantime raises ``ResourceNotFoundError`` from the re-fetch.

Tags:
    status, optimistic-concurrency, retry, alertsync
"""

from __future__ import annotations

import time
from collections.abc import Callable

from alertsync.core.errors import ConflictError, ConflictRetriesExhaustedError
from alertsync.core.logging import get_logger
from alertsync.core.protocols import ResourceStore
from alertsync.domain.meta import Resource, ResourceStatus
from alertsync.execution.retry import ExponentialBackoff, RetryContext, RetryStrategy

logger = get_logger(__name__)


class StatusUpdater:
    """Writes ``status`` through the store's status channel."""

    def __init__(
        self,
        store: ResourceStore,
        strategy: RetryStrategy | None = None,
        *,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._store = store
        self._strategy = strategy or ExponentialBackoff()
        self._sleep = sleep

    def update(self, resource: Resource, status: ResourceStatus) -> Resource:
        """Persist ``status``; returns the stored resource with its new version."""
        pending = resource.clone()
        pending.status = status

        def attempt() -> Resource:
            nonlocal pending
            try:
                return self._store.update_status(pending)
            except ConflictError:
                fresh = self._store.get(resource.kind, resource.name_ref)
                fresh.status = status
                pending = fresh
                raise

        def log_retry(tries: int, error: Exception, delay: float) -> None:
            logger.info("status_conflict", resource=str(resource.key), attempt=tries, delay=round(delay, 3))

        ctx = RetryContext(self._strategy, retry_on=(ConflictError,), on_retry=log_retry, sleep=self._sleep)
        try:
            return ctx.run(attempt)
        except ConflictError as e:
            raise ConflictRetriesExhaustedError(
                f"Status of {resource.key} still conflicting after {ctx.retries} retries",
                attempts=ctx.attempt,
                cause=e,
            ).with_context(kind=resource.kind, namespace=resource.metadata.namespace, name=resource.metadata.name) from e

