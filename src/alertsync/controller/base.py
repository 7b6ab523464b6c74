"""
Reconciler skeleton shared by every resource kind.

Manifesto:
    Each kind differs only in how it pushes itself to New Relic and how it
    tears itself down. Fetching, the deletion branch, the finalizer, the
    Pending/Ready/Error status protocol and logging context are the same,
    so they are written once here.

Architecture:
    ::

        reconcile(name)
          │
          ├─ get ── not found ──────────────────────────────► ok
          │
          ├─ deleting ── no finalizer ─────────────────────► ok
          │           └─ finalize(teardown) ── error ──────► fail
          │
          ├─ ensure finalizer ── conflict ─────────────────► retry
          │                   └─ not found ────────────────► ok
          ├─ status Pending(external_id, version)
          ├─ sync ── error ──► status Error(external_id) ──► fail
          └─ status Ready(new_external_id, version) ───────► ok

    Collaborators arrive in a bundle; nothing is looked up globally.

Tags:
    reconcile, controller, finalizer, status, alertsync
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from alertsync.controller.finalizer import FinalizerManager
from alertsync.controller.result import ReconcileResult
from alertsync.controller.status import StatusUpdater
from alertsync.core.errors import AlertSyncError, ResourceNotFoundError, describe_error
from alertsync.core.logging import LogContext, get_logger
from alertsync.core.protocols import AlertingAPI, ResourceStore
from alertsync.core.settings import OperatorSettings
from alertsync.domain.meta import NamespacedName, Resource, ResourceStatus
from alertsync.execution.retry import ExponentialBackoff
from alertsync.newrelic.channels import ChannelRepository
from alertsync.newrelic.policies import PolicyRepository

logger = get_logger(__name__)


@dataclass
class Collaborators:
    """Everything a reconciler talks to."""

    store: ResourceStore
    policies: PolicyRepository
    channels: ChannelRepository
    status: StatusUpdater
    finalizers: FinalizerManager

    @classmethod
    def build(
        cls,
        store: ResourceStore,
        api: AlertingAPI,
        settings: OperatorSettings | None = None,
    ) -> Collaborators:
        settings = settings or OperatorSettings()
        strategy = ExponentialBackoff.for_conflicts(settings)
        return cls(
            store=store,
            policies=PolicyRepository(api),
            channels=ChannelRepository(api),
            status=StatusUpdater(store, strategy),
            finalizers=FinalizerManager(store, strategy),
        )


class Reconciler(ABC):
    """Drives one resource kind towards its declared state."""

    kind: str = ""

    def __init__(self, collaborators: Collaborators):
        self.deps = collaborators

    @abstractmethod
    def sync(self, resource: Resource, previous: ResourceStatus) -> int:
        """Push ``resource`` externally; returns its external id.

        ``previous`` is the status as read before this reconcile marked the
        resource Pending.
        """

    @abstractmethod
    def teardown(self, external_id: int | None) -> None:
        """Delete the external object; absent is success."""

    def reconcile(self, name: NamespacedName) -> ReconcileResult:
        with LogContext(kind=self.kind, namespace=name.namespace, name=name.name):
            logger.debug("reconcile_started")
            result = self._reconcile(name)
            if result.error is not None:
                logger.warning("reconcile_failed", error=describe_error(result.error))
            elif result.requeue:
                logger.info("reconcile_requeued")
            else:
                logger.debug("reconcile_finished")
            return result

    def _reconcile(self, name: NamespacedName) -> ReconcileResult:
        deps = self.deps
        try:
            resource = deps.store.get(self.kind, name)
        except ResourceNotFoundError:
            return ReconcileResult.ok()

        if resource.is_deleting:
            return self._delete(resource)

        try:
            ensured = deps.finalizers.ensure(resource)
        except ResourceNotFoundError:
            return ReconcileResult.ok()
        except AlertSyncError as e:
            return ReconcileResult.fail(e)
        if ensured is None:
            return ReconcileResult.retry()
        resource = ensured

        previous = resource.status.model_copy()
        version = resource.config_version()
        try:
            resource = deps.status.update(resource, ResourceStatus.pending(previous.external_id, version))
        except ResourceNotFoundError:
            return ReconcileResult.ok()
        except AlertSyncError as e:
            return ReconcileResult.fail(e)

        try:
            external_id = self.sync(resource, previous)
        except Exception as e:
            external_id = _external_id_from(e, previous.external_id)
            self._record_failure(resource, external_id, e)
            return ReconcileResult.fail(e)

        try:
            deps.status.update(resource, ResourceStatus.ready(external_id, version))
        except ResourceNotFoundError:
            return ReconcileResult.ok()
        except AlertSyncError as e:
            return ReconcileResult.fail(e)
        logger.info("resource_ready", external_id=external_id, config_version=version)
        return ReconcileResult.ok()

    def _delete(self, resource: Resource) -> ReconcileResult:
        if not resource.has_finalizer(self.deps.finalizers.marker):
            return ReconcileResult.ok()
        try:
            self.deps.finalizers.finalize(resource, self.teardown)
        except Exception as e:
            return ReconcileResult.fail(e)
        logger.info("resource_finalized", external_id=resource.status.external_id)
        return ReconcileResult.ok()

    def _record_failure(self, resource: Resource, external_id: int | None, error: Exception) -> None:
        try:
            self.deps.status.update(resource, ResourceStatus.failed(external_id, error))
        except AlertSyncError as e:
            logger.warning("error_status_not_recorded", error=str(e))


def _external_id_from(error: Exception, fallback: int | None) -> int | None:
    """Id of an external object created before ``error`` was raised, if any."""
    if isinstance(error, AlertSyncError) and error.context.external_id is not None:
        return int(error.context.external_id)
    return fallback
