"""Resource envelope shared by every kind: identity, metadata and status.

The envelope follows the Kubernetes custom-resource layout
(``apiVersion``/``kind``/``metadata``/``spec``/``status``) so manifests
written for the original operator load unchanged.
"""

from __future__ import annotations

from abc import abstractmethod
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

API_VERSION = "newrelic.io/v1alpha1"

# Presence means "the external object exists and must be removed first".
FINALIZER = "newrelic"


class CamelModel(BaseModel):
    """Base model accepting camelCase manifests and snake_case kwargs."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )


@dataclass(frozen=True, order=True)
class NamespacedName:
    """Kind-less identity handed to a reconciler."""

    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


@dataclass(frozen=True, order=True)
class ResourceKey:
    """Identity of a resource across kinds; the work-queue key."""

    kind: str
    namespace: str
    name: str

    @property
    def name_ref(self) -> NamespacedName:
        return NamespacedName(self.namespace, self.name)

    def __str__(self) -> str:
        return f"{self.kind}:{self.namespace}/{self.name}"


class ObjectMeta(CamelModel):
    """Object metadata. ``resource_version`` is the optimistic-concurrency token."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    name: str = Field(..., min_length=1)
    namespace: str = "default"
    labels: dict[str, str] = Field(default_factory=dict)
    resource_version: int = 0
    generation: int = 0
    finalizers: list[str] = Field(default_factory=list)
    deletion_timestamp: datetime | None = None


class ResourceState(str, Enum):
    """Reconcile state recorded in ``status.state``."""

    PENDING = "Pending"
    READY = "Ready"
    ERROR = "Error"


class ResourceStatus(CamelModel):
    """Last observed/applied external state."""

    external_id: int | None = None
    config_version: str | None = None
    state: ResourceState | None = None
    last_error: str | None = None

    @classmethod
    def pending(cls, external_id: int | None, config_version: str) -> ResourceStatus:
        return cls(external_id=external_id, config_version=config_version, state=ResourceState.PENDING)

    @classmethod
    def ready(cls, external_id: int | None, config_version: str) -> ResourceStatus:
        return cls(external_id=external_id, config_version=config_version, state=ResourceState.READY)

    @classmethod
    def failed(cls, external_id: int | None, error: Exception) -> ResourceStatus:
        # No config_version: the external object may only be partially updated.
        return cls(external_id=external_id, state=ResourceState.ERROR, last_error=str(error))

    @property
    def applied_version(self) -> str | None:
        """The config version known to be live externally, if any."""
        if self.state == ResourceState.READY:
            return self.config_version
        return None


class Resource(CamelModel):
    """Common envelope. Subclasses pin ``kind`` and the ``spec`` type."""

    KIND: ClassVar[str] = ""

    api_version: str = API_VERSION
    kind: str
    metadata: ObjectMeta
    spec: Any
    status: ResourceStatus = Field(default_factory=ResourceStatus)

    @property
    def key(self) -> ResourceKey:
        return ResourceKey(self.kind, self.metadata.namespace, self.metadata.name)

    @property
    def name_ref(self) -> NamespacedName:
        return NamespacedName(self.metadata.namespace, self.metadata.name)

    @property
    def is_deleting(self) -> bool:
        return self.metadata.deletion_timestamp is not None

    def has_finalizer(self, marker: str = FINALIZER) -> bool:
        return marker in self.metadata.finalizers

    @abstractmethod
    def config_version(self) -> str:
        """Hash of the externally pushed configuration."""

    def clone(self) -> Resource:
        return self.model_copy(deep=True)

    def to_manifest(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


def matches_selector(labels: dict[str, str], selector: dict[str, str]) -> bool:
    """Equality-based label selection; an empty selector matches everything."""
    return all(labels.get(key) == value for key, value in selector.items())
