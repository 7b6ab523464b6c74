"""Notification channel reconciler, one instance per channel kind."""

from __future__ import annotations

from alertsync.controller.base import Collaborators, Reconciler
from alertsync.core.logging import get_logger
from alertsync.domain.channels import NotificationChannel
from alertsync.domain.meta import ResourceStatus
from alertsync.domain.policy import AlertPolicy

logger = get_logger(__name__)


class ChannelReconciler(Reconciler):
    """Syncs a channel and links it to the policies its selector picks.

    Linked policies are resolved on every reconcile from the store: policies
    in the channel's namespace whose labels match ``policy_selector`` and
    that already have an external id. Policies being deleted are skipped.
    """

    def __init__(self, collaborators: Collaborators, channel_kind: type[NotificationChannel]):
        super().__init__(collaborators)
        self.kind = channel_kind.KIND

    def resolve_policy_ids(self, channel: NotificationChannel) -> frozenset[int]:
        policies = self.deps.store.list(
            AlertPolicy.KIND,
            namespace=channel.metadata.namespace,
            selector=channel.policy_selector,
        )
        ids = frozenset(
            policy.status.external_id
            for policy in policies
            if policy.status.external_id is not None and not policy.is_deleting
        )
        logger.debug("policies_resolved", selector=channel.policy_selector, policy_ids=sorted(ids))
        return ids

    def sync(self, resource: NotificationChannel, previous: ResourceStatus) -> int:
        channel = resource.to_channel(self.resolve_policy_ids(resource))
        return self.deps.channels.save(
            channel,
            external_id=previous.external_id,
            applied_version=previous.applied_version,
        )

    def teardown(self, external_id: int | None) -> None:
        self.deps.channels.delete(external_id)
