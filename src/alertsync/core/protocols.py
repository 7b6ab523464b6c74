"""
Protocols for the reconciler's collaborators.

Manifesto:
    The reconciler depends on the *shape* of its collaborators, never on a
    concrete store or HTTP client. Tests hand it an in-memory store and a
    fake API; the CLI hands it SQLite and httpx.

Architecture:
    ::

        protocols.py
        ├── ResourceStore  versioned resource storage (get/list/update/update_status)
        └── AlertingAPI    JSON-over-HTTP calls to the alerting service

    Implementations:
        alertsync.store.memory.MemoryResourceStore
        alertsync.store.sqlite.SqliteResourceStore
        alertsync.newrelic.client.NewRelicClient

Tags:
    protocol, store, api, alertsync, contracts
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from alertsync.domain.meta import NamespacedName, Resource


@runtime_checkable
class ResourceStore(Protocol):
    """
    Versioned resource storage.

    Every write carries the ``metadata.resource_version`` read earlier; a
    stale version raises :class:`~alertsync.core.errors.ConflictError`.
    Reads of absent objects raise
    :class:`~alertsync.core.errors.ResourceNotFoundError`.

    ``update`` writes metadata (finalizers, labels) but never ``status``;
    ``update_status`` writes only ``status``. ``apply`` and
    ``request_deletion`` are the user-facing operations of the hosting
    system. An ``update`` that leaves a deletion-requested object without
    finalizers removes it.
    """

    def get(self, kind: str, name: NamespacedName) -> Resource:
        ...

    def list(
        self,
        kind: str,
        namespace: str | None = None,
        selector: dict[str, str] | None = None,
    ) -> list[Resource]:
        ...

    def update(self, resource: Resource) -> Resource:
        ...

    def update_status(self, resource: Resource) -> Resource:
        ...

    def apply(self, resource: Resource) -> Resource:
        ...

    def request_deletion(self, kind: str, name: NamespacedName) -> Resource | None:
        ...


@runtime_checkable
class AlertingAPI(Protocol):
    """
    JSON calls against the alerting service.

    ``endpoint`` is relative to the REST v2 base URL, or to the
    Infrastructure API base URL when ``infra=True``. Non-2xx responses raise
    :class:`~alertsync.core.errors.ExternalAPIError` (404 as
    :class:`~alertsync.core.errors.ExternalNotFoundError`), network failures
    :class:`~alertsync.core.errors.TransportError`.
    """

    def get(self, endpoint: str, *, params: dict[str, Any] | None = None, infra: bool = False) -> Any:
        ...

    def post(self, endpoint: str, payload: dict[str, Any], *, infra: bool = False) -> Any:
        ...

    def put(
        self,
        endpoint: str,
        payload: dict[str, Any] | None = None,
        *,
        params: dict[str, Any] | None = None,
        infra: bool = False,
    ) -> Any:
        ...

    def delete(self, endpoint: str, *, params: dict[str, Any] | None = None, infra: bool = False) -> Any:
        ...
