"""SQLite-backed resource store.

One row per object; the JSON body is the resource manifest. Version checks
are repeated in SQL (``UPDATE ... WHERE resource_version = ?``) so that a
CLI ``apply`` in one process and ``run`` in another cannot overwrite each
other.

Usage::

    store = SqliteResourceStore("~/.alertsync/resources.db")
    store.apply(policy)
    store.close()
"""

from __future__ import annotations

import json
import sqlite3
from pathlib import Path

from alertsync.domain.manifests import parse_resource
from alertsync.domain.meta import Resource, ResourceKey
from alertsync.store.base import BaseResourceStore

SCHEMA = """
CREATE TABLE IF NOT EXISTS resources (
    kind TEXT NOT NULL,
    namespace TEXT NOT NULL,
    name TEXT NOT NULL,
    resource_version INTEGER NOT NULL,
    generation INTEGER NOT NULL,
    body TEXT NOT NULL,
    PRIMARY KEY (kind, namespace, name)
)
"""


class SqliteResourceStore(BaseResourceStore):
    """Resource store over a single ``sqlite3`` connection."""

    def __init__(self, path: str | Path = ":memory:") -> None:
        super().__init__()
        if str(path) != ":memory:":
            path = Path(path).expanduser()
            path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute(SCHEMA)
        self._conn.commit()

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> SqliteResourceStore:
        return self

    def __exit__(self, *args) -> None:
        self.close()

    # -- backend hooks -----------------------------------------------------

    def _load(self, key: ResourceKey) -> Resource | None:
        row = self._conn.execute(
            "SELECT body FROM resources WHERE kind = ? AND namespace = ? AND name = ?",
            (key.kind, key.namespace, key.name),
        ).fetchone()
        return _decode(row["body"]) if row else None

    def _scan(self, kind: str) -> list[Resource]:
        rows = self._conn.execute("SELECT body FROM resources WHERE kind = ?", (kind,)).fetchall()
        return [_decode(row["body"]) for row in rows]

    def _insert(self, resource: Resource) -> None:
        meta = resource.metadata
        self._conn.execute(
            "INSERT INTO resources (kind, namespace, name, resource_version, generation, body) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (resource.kind, meta.namespace, meta.name, meta.resource_version, meta.generation, _encode(resource)),
        )
        self._conn.commit()

    def _replace(self, resource: Resource, expected_version: int) -> bool:
        meta = resource.metadata
        cursor = self._conn.execute(
            "UPDATE resources SET resource_version = ?, generation = ?, body = ? "
            "WHERE kind = ? AND namespace = ? AND name = ? AND resource_version = ?",
            (
                meta.resource_version,
                meta.generation,
                _encode(resource),
                resource.kind,
                meta.namespace,
                meta.name,
                expected_version,
            ),
        )
        self._conn.commit()
        return cursor.rowcount == 1

    def _remove(self, key: ResourceKey) -> None:
        self._conn.execute(
            "DELETE FROM resources WHERE kind = ? AND namespace = ? AND name = ?",
            (key.kind, key.namespace, key.name),
        )
        self._conn.commit()


def _encode(resource: Resource) -> str:
    return json.dumps(resource.to_manifest(), sort_keys=True)


def _decode(body: str) -> Resource:
    return parse_resource(json.loads(body))
