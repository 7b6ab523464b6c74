"""Resource models, condition variants and set comparison."""

from alertsync.domain.channels import (
    CHANNEL_KINDS,
    EmailNotificationChannel,
    ExternalChannel,
    NotificationChannel,
    SlackNotificationChannel,
)
from alertsync.domain.compare import ConditionSet, SetDiff, diff_conditions, diff_links
from alertsync.domain.conditions import (
    ApmCondition,
    Condition,
    ConditionBase,
    InfraCondition,
    InfraThreshold,
    NrqlCondition,
    Threshold,
    UserDefined,
)
from alertsync.domain.manifests import (
    RESOURCE_KINDS,
    load_manifest_file,
    load_manifests,
    parse_resource,
    resource_class,
)
from alertsync.domain.meta import (
    API_VERSION,
    FINALIZER,
    NamespacedName,
    ObjectMeta,
    Resource,
    ResourceKey,
    ResourceState,
    ResourceStatus,
    matches_selector,
)
from alertsync.domain.policy import AlertPolicy, AlertPolicySpec

__all__ = [
    "API_VERSION",
    "FINALIZER",
    "AlertPolicy",
    "AlertPolicySpec",
    "ApmCondition",
    "CHANNEL_KINDS",
    "Condition",
    "ConditionBase",
    "ConditionSet",
    "EmailNotificationChannel",
    "ExternalChannel",
    "InfraCondition",
    "InfraThreshold",
    "NamespacedName",
    "NotificationChannel",
    "NrqlCondition",
    "ObjectMeta",
    "RESOURCE_KINDS",
    "Resource",
    "ResourceKey",
    "ResourceState",
    "ResourceStatus",
    "SetDiff",
    "SlackNotificationChannel",
    "Threshold",
    "UserDefined",
    "diff_conditions",
    "diff_links",
    "load_manifest_file",
    "load_manifests",
    "matches_selector",
    "parse_resource",
    "resource_class",
]
