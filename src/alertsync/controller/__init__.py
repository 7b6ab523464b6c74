"""Reconcilers and the status/finalizer protocols they share."""

from alertsync.controller.base import Collaborators, Reconciler
from alertsync.controller.channel import ChannelReconciler
from alertsync.controller.finalizer import FinalizerManager
from alertsync.controller.mapping import (
    channels_for_policy,
    deletion_requested,
    generation_changed,
    status_changed,
)
from alertsync.controller.policy import PolicyReconciler
from alertsync.controller.result import ReconcileResult
from alertsync.controller.status import StatusUpdater
from alertsync.domain.channels import CHANNEL_KINDS


def build_reconcilers(collaborators: Collaborators) -> dict[str, Reconciler]:
    """One reconciler per known kind, keyed by kind name."""
    reconcilers: dict[str, Reconciler] = {PolicyReconciler.kind: PolicyReconciler(collaborators)}
    for channel_kind in CHANNEL_KINDS:
        reconcilers[channel_kind.KIND] = ChannelReconciler(collaborators, channel_kind)
    return reconcilers


__all__ = [
    "ChannelReconciler",
    "Collaborators",
    "FinalizerManager",
    "PolicyReconciler",
    "ReconcileResult",
    "Reconciler",
    "StatusUpdater",
    "build_reconcilers",
    "channels_for_policy",
    "deletion_requested",
    "generation_changed",
    "status_changed",
]
