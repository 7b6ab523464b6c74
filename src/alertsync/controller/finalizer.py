"""
Finalizer-gated deletion.

The ``newrelic`` marker on ``metadata.finalizers`` keeps the store from
removing a resource until its external object has been torn down::

    NoFinalizer ──ensure──► FinalizerSet ──delete requested──► DeletionPending
                                                                   │
                                             finalize: teardown OK, marker removed
                                                                   ▼
                                                                Deleted

A failed teardown leaves the marker in place, so the deletion is retried on
the next reconcile instead of orphaning the external object.
"""

from __future__ import annotations

import time
from collections.abc import Callable

from alertsync.core.errors import ConflictError, ConflictRetriesExhaustedError, ResourceNotFoundError
from alertsync.core.logging import get_logger
from alertsync.core.protocols import ResourceStore
from alertsync.domain.meta import FINALIZER, Resource, ResourceStatus
from alertsync.execution.retry import ExponentialBackoff, RetryContext, RetryStrategy

logger = get_logger(__name__)


class FinalizerManager:
    """Adds and removes the finalizer marker around external teardown."""

    def __init__(
        self,
        store: ResourceStore,
        strategy: RetryStrategy | None = None,
        *,
        marker: str = FINALIZER,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._store = store
        self._strategy = strategy or ExponentialBackoff()
        self._marker = marker
        self._sleep = sleep

    @property
    def marker(self) -> str:
        return self._marker

    def ensure(self, resource: Resource) -> Resource | None:
        """Add the marker if missing.

        Returns the stored resource, or ``None`` when the write conflicted;
        the caller requeues rather than proceeding on a stale copy.
        """
        if resource.has_finalizer(self._marker):
            return resource
        updated = resource.clone()
        updated.metadata.finalizers.append(self._marker)
        try:
            stored = self._store.update(updated)
        except ConflictError:
            logger.info("finalizer_conflict", resource=str(resource.key))
            return None
        logger.debug("finalizer_added", resource=str(resource.key))
        return stored

    def finalize(self, resource: Resource, teardown: Callable[[int | None], None]) -> None:
        """Tear down the external object, then release the resource.

        ``teardown`` receives ``status.external_id`` (possibly ``None``) and
        must treat an already-absent object as success. Its errors propagate
        with the marker still in place.
        """
        teardown(resource.status.external_id)
        logger.info("external_object_deleted", resource=str(resource.key), external_id=resource.status.external_id)

        current = resource

        def attempt() -> None:
            nonlocal current
            try:
                remaining = [m for m in current.metadata.finalizers if m != self._marker]
                if remaining and current.status.external_id is not None:
                    # Resource outlives our marker: drop the id of the deleted object first.
                    cleared = current.clone()
                    cleared.status = ResourceStatus()
                    current = self._store.update_status(cleared)
                released = current.clone()
                released.metadata.finalizers = remaining
                self._store.update(released)
            except ConflictError:
                current = self._store.get(resource.kind, resource.name_ref)
                raise

        def log_retry(tries: int, error: Exception, delay: float) -> None:
            logger.info("finalizer_removal_conflict", resource=str(resource.key), attempt=tries, delay=round(delay, 3))

        ctx = RetryContext(self._strategy, retry_on=(ConflictError,), on_retry=log_retry, sleep=self._sleep)
        try:
            ctx.run(attempt)
        except ResourceNotFoundError:
            logger.debug("resource_already_removed", resource=str(resource.key))
        except ConflictError as e:
            raise ConflictRetriesExhaustedError(
                f"Finalizer of {resource.key} still conflicting after {ctx.retries} retries",
                attempts=ctx.attempt,
                cause=e,
            ).with_context(kind=resource.kind, namespace=resource.metadata.namespace, name=resource.metadata.name) from e
