"""SQLite-backed object store.

One table holds every object as a JSON document keyed by
(kind, namespace, name); a one-row counter table hands out resource
versions. ``":memory:"`` gives a throwaway database.

Usage::

    from controlspine.store import SqliteObjectStore

    store = SqliteObjectStore("~/.controlspine/store.db")
    store.create(template)
    store.close()
"""

from __future__ import annotations

import json
import sqlite3
from pathlib import Path
from typing import Any

from controlspine.core.errors import StoreError
from controlspine.store.base import BaseObjectStore

SCHEMA = """
CREATE TABLE IF NOT EXISTS objects (
    kind TEXT NOT NULL,
    namespace TEXT NOT NULL,
    name TEXT NOT NULL,
    body TEXT NOT NULL,
    PRIMARY KEY (kind, namespace, name)
);
CREATE TABLE IF NOT EXISTS counters (
    name TEXT PRIMARY KEY,
    value INTEGER NOT NULL
);
INSERT OR IGNORE INTO counters (name, value) VALUES ('resource_version', 0);
"""


class SqliteObjectStore(BaseObjectStore):
    """Object store persisted in a SQLite database file."""

    def __init__(self, path: str | Path = ":memory:") -> None:
        super().__init__()
        self.path = str(path)
        if self.path != ":memory:":
            db_path = Path(self.path).expanduser()
            db_path.parent.mkdir(parents=True, exist_ok=True)
            self.path = str(db_path)
        try:
            self._conn = sqlite3.connect(self.path, check_same_thread=False)
            self._conn.executescript(SCHEMA)
            self._conn.commit()
        except sqlite3.Error as e:
            raise StoreError(f"cannot open store at {self.path}", cause=e).with_context(operation="open") from e

    # -- storage primitives -------------------------------------------------

    def _load(self, kind: str, namespace: str, name: str) -> dict[str, Any] | None:
        row = self._query(
            "SELECT body FROM objects WHERE kind = ? AND namespace = ? AND name = ?",
            (kind, namespace, name),
            operation="get",
        ).fetchone()
        return json.loads(row[0]) if row else None

    def _save(self, kind: str, namespace: str, name: str, data: dict[str, Any]) -> None:
        self._query(
            "INSERT OR REPLACE INTO objects (kind, namespace, name, body) VALUES (?, ?, ?, ?)",
            (kind, namespace, name, json.dumps(data, sort_keys=True)),
            operation="save",
        )
        self._conn.commit()

    def _remove(self, kind: str, namespace: str, name: str) -> None:
        self._query(
            "DELETE FROM objects WHERE kind = ? AND namespace = ? AND name = ?",
            (kind, namespace, name),
            operation="delete",
        )
        self._conn.commit()

    def _scan(self, kind: str, namespace: str | None) -> list[dict[str, Any]]:
        if namespace is None:
            cursor = self._query("SELECT body FROM objects WHERE kind = ?", (kind,), operation="list")
        else:
            cursor = self._query(
                "SELECT body FROM objects WHERE kind = ? AND namespace = ?",
                (kind, namespace),
                operation="list",
            )
        return [json.loads(row[0]) for row in cursor.fetchall()]

    def _stored_kinds(self) -> list[str]:
        cursor = self._query("SELECT DISTINCT kind FROM objects", (), operation="kinds")
        return [row[0] for row in cursor.fetchall()]

    def _next_version(self) -> int:
        self._query(
            "UPDATE counters SET value = value + 1 WHERE name = 'resource_version'",
            (),
            operation="version",
        )
        row = self._query(
            "SELECT value FROM counters WHERE name = 'resource_version'",
            (),
            operation="version",
        ).fetchone()
        return int(row[0])

    # -- connection ---------------------------------------------------------

    def _query(self, sql: str, params: tuple, *, operation: str) -> sqlite3.Cursor:
        try:
            return self._conn.execute(sql, params)
        except sqlite3.Error as e:
            raise StoreError(str(e), cause=e).with_context(operation=operation) from e

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> SqliteObjectStore:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"SqliteObjectStore({self.path!r})"
