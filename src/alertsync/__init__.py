"""alertsync: reconcile New Relic alert policies and channels from manifests."""

__version__ = "0.1.0"
