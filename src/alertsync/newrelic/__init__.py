"""New Relic REST v2 client and the repositories built on it."""

from alertsync.newrelic.channels import ChannelRepository
from alertsync.newrelic.client import NewRelicClient
from alertsync.newrelic.conditions import ConditionRepository
from alertsync.newrelic.policies import PolicyRepository

__all__ = [
    "ChannelRepository",
    "ConditionRepository",
    "NewRelicClient",
    "PolicyRepository",
]
