"""Loading resources from YAML manifests.

Example YAML::

    apiVersion: newrelic.io/v1alpha1
    kind: AlertPolicy
    metadata:
      name: cpu
      labels:
        team: platform
    spec:
      name: CPU usage
      nrqlConditions:
        - name: high cpu
          query: SELECT average(cpuPercent) FROM SystemSample
          alertThreshold:
            operator: above
            value: 80
            durationMinutes: 5
    ---
    apiVersion: newrelic.io/v1alpha1
    kind: SlackNotificationChannel
    metadata:
      name: platform-slack
    spec:
      name: platform alerts
      url: https://hooks.slack.com/services/XXX
      policySelector:
        team: platform
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from alertsync.core.errors import ManifestError
from alertsync.domain.channels import CHANNEL_KINDS
from alertsync.domain.meta import Resource
from alertsync.domain.policy import AlertPolicy

RESOURCE_KINDS: dict[str, type[Resource]] = {
    AlertPolicy.KIND: AlertPolicy,
    **{kind.KIND: kind for kind in CHANNEL_KINDS},
}


def resource_class(kind: str) -> type[Resource]:
    """Look up the model for a kind name."""
    try:
        return RESOURCE_KINDS[kind]
    except KeyError:
        raise ManifestError(
            f"Unknown kind {kind!r}; expected one of {sorted(RESOURCE_KINDS)}"
        ) from None


def parse_resource(data: dict[str, Any]) -> Resource:
    """Validate one manifest document into its resource model."""
    if not isinstance(data, dict):
        raise ManifestError(f"Manifest must be a mapping, got {type(data).__name__}")
    cls = resource_class(str(data.get("kind", "")))
    try:
        return cls.model_validate(data)
    except ValidationError as e:
        name = (data.get("metadata") or {}).get("name", "?")
        raise ManifestError(f"Invalid {cls.KIND} {name!r}: {e}", cause=e) from e


def load_manifests(text: str) -> list[Resource]:
    """Parse a (multi-document) YAML string."""
    try:
        documents = list(yaml.safe_load_all(text))
    except yaml.YAMLError as e:
        raise ManifestError(f"Invalid YAML: {e}", cause=e) from e
    return [parse_resource(doc) for doc in documents if doc]


def load_manifest_file(path: str | Path) -> list[Resource]:
    path = Path(path)
    if not path.exists():
        raise ManifestError(f"Manifest file not found: {path}")
    return load_manifests(path.read_text(encoding="utf-8"))
