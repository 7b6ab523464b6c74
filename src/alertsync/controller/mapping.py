"""Watch predicates and the policy → channel dependency mapping."""

from __future__ import annotations

from collections.abc import Iterable

from alertsync.core.protocols import ResourceStore
from alertsync.domain.meta import Resource, ResourceKey


def generation_changed(old: Resource | None, new: Resource) -> bool:
    """A new object, or a spec change (metadata/status writes do not count)."""
    return old is None or old.metadata.generation != new.metadata.generation


def status_changed(old: Resource | None, new: Resource) -> bool:
    return old is None or old.status != new.status


def deletion_requested(old: Resource | None, new: Resource) -> bool:
    return new.is_deleting and (old is None or not old.is_deleting)


def channels_for_policy(store: ResourceStore, channel_kinds: Iterable[str]) -> list[ResourceKey]:
    """Every channel of the given kinds.

    Any policy status change can alter any channel's resolved links, so all
    channels are re-reconciled rather than only those whose selector matches.
    """
    keys: list[ResourceKey] = []
    for kind in channel_kinds:
        keys.extend(channel.key for channel in store.list(kind))
    return keys
