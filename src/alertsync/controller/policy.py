"""AlertPolicy reconciler."""

from __future__ import annotations

from alertsync.controller.base import Reconciler
from alertsync.domain.meta import ResourceStatus
from alertsync.domain.policy import AlertPolicy


class PolicyReconciler(Reconciler):
    """Keeps a New Relic policy and its conditions equal to the resource.

    The stored ``config_version`` is informational only: every reconcile
    lists the live conditions, so conditions edited or removed outside the
    operator are put back.
    """

    kind = AlertPolicy.KIND

    def sync(self, resource: AlertPolicy, previous: ResourceStatus) -> int:
        return self.deps.policies.save(resource)

    def teardown(self, external_id: int | None) -> None:
        self.deps.policies.delete(external_id)
