"""Resource stores implementing :class:`~alertsync.core.protocols.ResourceStore`."""

from alertsync.store.base import BaseResourceStore
from alertsync.store.memory import MemoryResourceStore
from alertsync.store.sqlite import SqliteResourceStore

__all__ = ["BaseResourceStore", "MemoryResourceStore", "SqliteResourceStore"]
