"""
Shared write semantics for resource stores.

Manifesto:
    Both stores must behave identically under the reconciler: the same
    optimistic-concurrency checks, the same split between metadata and
    status writes, the same deletion lifecycle. The rules live here once;
    backends only load, insert, replace and remove serialized objects.

Architecture:
    ::

        BaseResourceStore           (versioning, deletion, selectors)
        ├── MemoryResourceStore     dict of clones
        └── SqliteResourceStore     one row per object, conditional UPDATE

    Write rules:

        apply          spec + labels from the caller; status, finalizers and
                       deletion state kept; generation bumped on spec change
        update         labels + finalizers from the caller; spec and status
                       kept; removes a deleting object left without finalizers
        update_status  status from the caller; everything else kept
        request_deletion
                       sets deletion_timestamp, or removes at once when no
                       finalizer is present

    Every successful write bumps ``metadata.resource_version``. A caller
    passing a version other than the stored one gets ``ConflictError``.

Tags:
    store, optimistic-concurrency, finalizer, alertsync
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from datetime import UTC, datetime

from alertsync.core.errors import ConflictError, ResourceNotFoundError
from alertsync.core.logging import get_logger
from alertsync.domain.meta import NamespacedName, Resource, ResourceKey, matches_selector

logger = get_logger(__name__)


def utc_now() -> datetime:
    return datetime.now(UTC)


class BaseResourceStore(ABC):
    """Implements the ``ResourceStore`` protocol over four backend hooks."""

    def __init__(self) -> None:
        self._lock = threading.RLock()

    # ------------------------------------------------------------------ #
    # Backend hooks
    # ------------------------------------------------------------------ #

    @abstractmethod
    def _load(self, key: ResourceKey) -> Resource | None:
        """Return a private copy of the stored object, or None."""

    @abstractmethod
    def _scan(self, kind: str) -> list[Resource]:
        """Private copies of every stored object of ``kind``."""

    @abstractmethod
    def _insert(self, resource: Resource) -> None:
        ...

    @abstractmethod
    def _replace(self, resource: Resource, expected_version: int) -> bool:
        """Overwrite if the stored version still equals ``expected_version``."""

    @abstractmethod
    def _remove(self, key: ResourceKey) -> None:
        ...

    # ------------------------------------------------------------------ #
    # Reads
    # ------------------------------------------------------------------ #

    def get(self, kind: str, name: NamespacedName) -> Resource:
        with self._lock:
            current = self._load(ResourceKey(kind, name.namespace, name.name))
        if current is None:
            raise ResourceNotFoundError(kind, name.namespace, name.name)
        return current

    def list(
        self,
        kind: str,
        namespace: str | None = None,
        selector: dict[str, str] | None = None,
    ) -> list[Resource]:
        with self._lock:
            items = self._scan(kind)
        return sorted(
            (
                item
                for item in items
                if (namespace is None or item.metadata.namespace == namespace)
                and matches_selector(item.metadata.labels, selector or {})
            ),
            key=lambda item: item.key,
        )

    # ------------------------------------------------------------------ #
    # Writes
    # ------------------------------------------------------------------ #

    def apply(self, resource: Resource) -> Resource:
        """Create or update from a manifest."""
        key = resource.key
        with self._lock:
            current = self._load(key)
            if current is None:
                created = resource.clone()
                created.metadata.resource_version = 1
                created.metadata.generation = 1
                created.metadata.finalizers = []
                created.metadata.deletion_timestamp = None
                created.status = type(resource.status)()
                self._insert(created)
                logger.info("resource_created", resource=str(key))
                return created.clone()

            self._check_version(current, resource.metadata.resource_version, allow_unset=True)
            updated = current.clone()
            updated.metadata.labels = dict(resource.metadata.labels)
            if updated.spec != resource.spec:
                updated.spec = resource.model_copy(deep=True).spec
                updated.metadata.generation += 1
            return self._commit(current, updated)

    def update(self, resource: Resource) -> Resource:
        key = resource.key
        with self._lock:
            current = self._require(key)
            self._check_version(current, resource.metadata.resource_version)
            updated = current.clone()
            updated.metadata.labels = dict(resource.metadata.labels)
            updated.metadata.finalizers = list(resource.metadata.finalizers)

            if updated.is_deleting and not updated.metadata.finalizers:
                self._remove(key)
                logger.info("resource_removed", resource=str(key))
                updated.metadata.resource_version += 1
                return updated
            return self._commit(current, updated)

    def update_status(self, resource: Resource) -> Resource:
        with self._lock:
            current = self._require(resource.key)
            self._check_version(current, resource.metadata.resource_version)
            updated = current.clone()
            updated.status = resource.status.model_copy(deep=True)
            return self._commit(current, updated)

    def request_deletion(self, kind: str, name: NamespacedName) -> Resource | None:
        """Mark for deletion; returns None when the object is removed at once."""
        key = ResourceKey(kind, name.namespace, name.name)
        with self._lock:
            current = self._require(key)
            if not current.metadata.finalizers:
                self._remove(key)
                logger.info("resource_removed", resource=str(key))
                return None
            if current.is_deleting:
                return current
            updated = current.clone()
            updated.metadata.deletion_timestamp = utc_now()
            logger.info("deletion_requested", resource=str(key))
            return self._commit(current, updated)

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    def _require(self, key: ResourceKey) -> Resource:
        current = self._load(key)
        if current is None:
            raise ResourceNotFoundError(key.kind, key.namespace, key.name)
        return current

    @staticmethod
    def _check_version(current: Resource, version: int, *, allow_unset: bool = False) -> None:
        if allow_unset and version == 0:
            return
        if version != current.metadata.resource_version:
            key = current.key
            raise ConflictError(key.kind, key.namespace, key.name, version, current.metadata.resource_version)

    def _commit(self, current: Resource, updated: Resource) -> Resource:
        expected = current.metadata.resource_version
        updated.metadata.resource_version = expected + 1
        if not self._replace(updated, expected):
            # Lost a race with another process sharing the backend.
            key = current.key
            latest = self._load(key)
            if latest is None:
                raise ResourceNotFoundError(key.kind, key.namespace, key.name)
            raise ConflictError(key.kind, key.namespace, key.name, expected, latest.metadata.resource_version)
        return updated.clone()
