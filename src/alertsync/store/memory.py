"""In-process resource store, for tests and single-process runs."""

from __future__ import annotations

from alertsync.domain.meta import Resource, ResourceKey
from alertsync.store.base import BaseResourceStore


class MemoryResourceStore(BaseResourceStore):
    """Keeps private clones; callers never share an object with the store."""

    def __init__(self) -> None:
        super().__init__()
        self._objects: dict[ResourceKey, Resource] = {}

    def _load(self, key: ResourceKey) -> Resource | None:
        current = self._objects.get(key)
        return current.clone() if current is not None else None

    def _scan(self, kind: str) -> list[Resource]:
        return [item.clone() for key, item in self._objects.items() if key.kind == kind]

    def _insert(self, resource: Resource) -> None:
        self._objects[resource.key] = resource.clone()

    def _replace(self, resource: Resource, expected_version: int) -> bool:
        current = self._objects.get(resource.key)
        if current is None or current.metadata.resource_version != expected_version:
            return False
        self._objects[resource.key] = resource.clone()
        return True

    def _remove(self, key: ResourceKey) -> None:
        self._objects.pop(key, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._objects)
