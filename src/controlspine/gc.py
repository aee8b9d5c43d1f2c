"""
Garbage collection over owner references.

An object whose controller owner no longer exists (or was replaced by a
new object with the same name but a different uid) is an orphan and is
deleted. Collection repeats until a pass deletes nothing, so whole
ownership chains (Execution → Job, Revision → copied dependency) are
removed in one call.

Examples:
    >>> collector = GarbageCollector(store)
    >>> [str(key) for key in collector.collect()]
    ['ml/train-1-prepare']
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from controlspine.core.errors import NotFoundError
from controlspine.core.logging import get_logger
from controlspine.core.protocols import ObjectStore
from controlspine.resources.meta import ObjectKey, object_key


@dataclass(frozen=True)
class CollectedObject:
    kind: str
    key: ObjectKey

    def __str__(self) -> str:
        return f"{self.kind} {self.key}"


class GarbageCollector:
    """Deletes objects whose controller owner is gone."""

    def __init__(self, store: ObjectStore, *, logger: Any = None) -> None:
        self.store = store
        self.logger = logger or get_logger(__name__)

    def is_orphan(self, obj: Any) -> bool:
        ref = obj.metadata.controller_ref()
        if ref is None:
            return False
        try:
            owner = self.store.get(ref.kind, obj.metadata.namespace, ref.name)
        except NotFoundError:
            return True
        return bool(ref.uid) and owner.metadata.uid != ref.uid

    def collect(self) -> list[CollectedObject]:
        """Delete every orphan; returns what was deleted, in deletion order."""
        collected: list[CollectedObject] = []
        while True:
            deleted = self._collect_once()
            if not deleted:
                return collected
            collected.extend(deleted)

    def _collect_once(self) -> list[CollectedObject]:
        deleted: list[CollectedObject] = []
        for kind in self.store.kinds():
            for obj in self.store.list(kind):
                if not self.is_orphan(obj):
                    continue
                try:
                    self.store.delete(obj)
                except NotFoundError:
                    continue
                item = CollectedObject(kind=kind, key=object_key(obj))
                deleted.append(item)
                self.logger.info("gc.collected", kind=kind, object=str(item.key))
        return deleted
