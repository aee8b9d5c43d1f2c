"""In-process object store.

Keeps wire-form documents in nested dicts. Every read and write goes
through a deep copy, so callers never share state with the store.
"""

from __future__ import annotations

import copy
from typing import Any

from controlspine.store.base import BaseObjectStore


class InMemoryObjectStore(BaseObjectStore):
    """Object store backed by a dict of dicts.

    Example:
        >>> store = InMemoryObjectStore()
        >>> store.kinds()
        []
    """

    def __init__(self) -> None:
        super().__init__()
        self._objects: dict[str, dict[tuple[str, str], dict[str, Any]]] = {}
        self._version = 0

    def _load(self, kind: str, namespace: str, name: str) -> dict[str, Any] | None:
        data = self._objects.get(kind, {}).get((namespace, name))
        return copy.deepcopy(data) if data is not None else None

    def _save(self, kind: str, namespace: str, name: str, data: dict[str, Any]) -> None:
        self._objects.setdefault(kind, {})[(namespace, name)] = copy.deepcopy(data)

    def _remove(self, kind: str, namespace: str, name: str) -> None:
        self._objects.get(kind, {}).pop((namespace, name), None)

    def _scan(self, kind: str, namespace: str | None) -> list[dict[str, Any]]:
        return [
            copy.deepcopy(data)
            for (ns, _), data in self._objects.get(kind, {}).items()
            if namespace is None or ns == namespace
        ]

    def _stored_kinds(self) -> list[str]:
        return [kind for kind, objects in self._objects.items() if objects]

    def _next_version(self) -> int:
        self._version += 1
        return self._version

    def __len__(self) -> int:
        return sum(len(objects) for objects in self._objects.values())
