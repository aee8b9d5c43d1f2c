"""
Shared object-store behaviour.

``BaseObjectStore`` implements the ``ObjectStore`` contract on top of five
storage primitives (``_load``, ``_save``, ``_remove``, ``_scan``,
``_stored_kinds``) plus a resource-version counter. Backends only move
wire-form dicts in and out; identity assignment, optimistic concurrency,
label selection and error classification live here.

Manifesto:
    - **One contract:** The in-memory and SQLite stores behave identically
    - **Optimistic concurrency:** ``update`` with a stale resource version
      raises ``ConflictError``; nothing is retried here
    - **Deterministic ordering:** Creation timestamps are strictly increasing
      within a store, so "newest" is always well defined

Tags:
    object-store, optimistic-concurrency, resource-version
"""

from __future__ import annotations

import secrets
import string
import threading
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Any

from controlspine.core.errors import (
    AlreadyExistsError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
)
from controlspine.core.logging import get_logger
from controlspine.resources.meta import format_time, parse_time, utcnow
from controlspine.resources.registry import resource_from_dict
from controlspine.store.patch import apply_merge_patch, create_merge_patch

logger = get_logger(__name__)

_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits

# metadata fields owned by the store; never taken from callers on update/patch
_SERVER_FIELDS = ("uid", "resourceVersion", "creationTimestamp")


class BaseObjectStore(ABC):
    """Template for object stores keyed by (kind, namespace, name)."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._last_timestamp: datetime | None = None
        self._denied: set[tuple[str, str]] = set()

    # -- storage primitives -------------------------------------------------

    @abstractmethod
    def _load(self, kind: str, namespace: str, name: str) -> dict[str, Any] | None: ...

    @abstractmethod
    def _save(self, kind: str, namespace: str, name: str, data: dict[str, Any]) -> None: ...

    @abstractmethod
    def _remove(self, kind: str, namespace: str, name: str) -> None: ...

    @abstractmethod
    def _scan(self, kind: str, namespace: str | None) -> list[dict[str, Any]]: ...

    @abstractmethod
    def _stored_kinds(self) -> list[str]: ...

    @abstractmethod
    def _next_version(self) -> int: ...

    # -- access control -----------------------------------------------------

    def deny(self, verb: str, kind: str) -> None:
        """Refuse ``verb`` ("get", "list", "create", ...) on ``kind`` from now on."""
        self._denied.add((verb, kind))

    def allow(self, verb: str, kind: str) -> None:
        self._denied.discard((verb, kind))

    def _authorize(self, verb: str, kind: str, namespace: str, name: str) -> None:
        if (verb, kind) in self._denied:
            raise ForbiddenError(kind, namespace, name).with_context(operation=verb)

    # -- ObjectStore --------------------------------------------------------

    def get(self, kind: str, namespace: str, name: str) -> Any:
        self._authorize("get", kind, namespace, name)
        with self._lock:
            data = self._load(kind, namespace, name)
        if data is None:
            raise NotFoundError(kind, namespace, name).with_context(operation="get")
        return resource_from_dict(data)

    def list(
        self,
        kind: str,
        namespace: str | None = None,
        labels: dict[str, str] | None = None,
    ) -> list[Any]:
        self._authorize("list", kind, namespace or "", "")
        with self._lock:
            documents = self._scan(kind, namespace)
        selected = [d for d in documents if _matches(d, labels)]
        selected.sort(key=lambda d: (d["metadata"].get("namespace", ""), d["metadata"]["name"]))
        return [resource_from_dict(d) for d in selected]

    def create(self, obj: Any) -> Any:
        meta = obj.metadata
        if not meta.name and meta.generate_name:
            meta.name = meta.generate_name + "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(5))
        if not meta.name:
            raise ValueError(f"{obj.kind} needs a name or generateName")
        self._authorize("create", obj.kind, meta.namespace, meta.name)

        with self._lock:
            if self._load(obj.kind, meta.namespace, meta.name) is not None:
                raise AlreadyExistsError(obj.kind, meta.namespace, meta.name).with_context(operation="create")
            data = obj.to_dict()
            data["metadata"]["uid"] = str(uuid.uuid4())
            data["metadata"]["resourceVersion"] = str(self._next_version())
            data["metadata"]["creationTimestamp"] = format_time(self._now())
            self._save(obj.kind, meta.namespace, meta.name, data)

        _write_back(obj, data)
        logger.debug("store.created", kind=obj.kind, namespace=meta.namespace, name=meta.name)
        return obj

    def update(self, obj: Any) -> Any:
        meta = obj.metadata
        self._authorize("update", obj.kind, meta.namespace, meta.name)

        with self._lock:
            current = self._load(obj.kind, meta.namespace, meta.name)
            if current is None:
                raise NotFoundError(obj.kind, meta.namespace, meta.name).with_context(operation="update")
            stored_version = current["metadata"].get("resourceVersion", "")
            if meta.resource_version and meta.resource_version != stored_version:
                raise ConflictError(obj.kind, meta.namespace, meta.name).with_context(
                    operation="update",
                    expected=meta.resource_version,
                    actual=stored_version,
                )
            data = obj.to_dict()
            for key in _SERVER_FIELDS:
                if key in current["metadata"]:
                    data["metadata"][key] = current["metadata"][key]
            data["metadata"]["resourceVersion"] = str(self._next_version())
            self._save(obj.kind, meta.namespace, meta.name, data)

        _write_back(obj, data)
        return obj

    def patch(self, obj: Any, original: Any) -> Any:
        """Apply the merge patch ``original`` -> ``obj`` to the stored object."""
        meta = obj.metadata
        self._authorize("patch", obj.kind, meta.namespace, meta.name)

        changes = create_merge_patch(original.to_dict(), obj.to_dict())
        for key in _SERVER_FIELDS:
            changes.get("metadata", {}).pop(key, None)

        with self._lock:
            current = self._load(obj.kind, meta.namespace, meta.name)
            if current is None:
                raise NotFoundError(obj.kind, meta.namespace, meta.name).with_context(operation="patch")
            data = apply_merge_patch(current, changes)
            data["metadata"]["resourceVersion"] = str(self._next_version())
            self._save(obj.kind, meta.namespace, meta.name, data)

        _write_back(obj, data)
        return obj

    def delete(self, obj: Any) -> None:
        meta = obj.metadata
        self._authorize("delete", obj.kind, meta.namespace, meta.name)
        with self._lock:
            if self._load(obj.kind, meta.namespace, meta.name) is None:
                raise NotFoundError(obj.kind, meta.namespace, meta.name).with_context(operation="delete")
            self._remove(obj.kind, meta.namespace, meta.name)
        logger.debug("store.deleted", kind=obj.kind, namespace=meta.namespace, name=meta.name)

    def kinds(self) -> list[str]:
        with self._lock:
            return sorted(self._stored_kinds())

    # -- helpers ------------------------------------------------------------

    def _now(self) -> datetime:
        now = utcnow()
        if self._last_timestamp is not None and now <= self._last_timestamp:
            now = self._last_timestamp + timedelta(microseconds=1)
        self._last_timestamp = now
        return now


def _matches(document: dict[str, Any], labels: dict[str, str] | None) -> bool:
    if not labels:
        return True
    actual = document.get("metadata", {}).get("labels") or {}
    return all(actual.get(k) == v for k, v in labels.items())


def _write_back(obj: Any, data: dict[str, Any]) -> None:
    stored = data["metadata"]
    obj.metadata.uid = stored.get("uid", "")
    obj.metadata.resource_version = stored.get("resourceVersion", "")
    obj.metadata.creation_timestamp = parse_time(stored.get("creationTimestamp"))
