"""
Canonical protocol definitions for controlspine.

Protocols describe the shapes the controllers depend on. Concrete
implementations do not inherit from them; anything that matches the shape
works, which keeps the revision manager independent of the resource kinds
that use it.

Manifesto:
    - **Decoupling:** The revision manager depends on what a referrer can
      answer, not on what a referrer *is*
    - **Testability:** Reconcilers take any ``ObjectStore``; tests use the
      in-memory one
    - **Portability:** The same controllers run against the in-memory and
      SQLite stores

Architecture:
    ::

        protocols.py
        ├── Referrer     : anything that owns template revisions
        │     implemented by: NamespacedTask (Dag tasks), Notebook
        └── ObjectStore  : consistent, namespaced object store
              implemented by: InMemoryObjectStore, SqliteObjectStore

Guardrails:
    ❌ DON'T: Add implementation logic to protocol classes
    ✅ DO: Keep protocols pure contracts; implementations live with their kinds

Tags:
    protocol, referrer, object-store, contracts
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from controlspine.resources.meta import ObjectKey, OwnerReference, UpdatePolicy


@runtime_checkable
class Referrer(Protocol):
    """
    An object that owns revisions of a template.

    Revisions are created in the referrer's namespace and labelled with its
    name, and owned by whatever ``as_owner()`` returns (no owner when it
    returns ``None``).
    """

    @property
    def name(self) -> str: ...

    @property
    def namespace(self) -> str: ...

    def template_ref(self) -> ObjectKey:
        """Namespaced key of the referenced Template."""
        ...

    def history_limit(self) -> int:
        """How many revisions to retain (the elected one is always kept)."""
        ...

    def resource_requests(self) -> dict[str, str]: ...

    def elected_options(self) -> list[str]:
        """Names of template options to overlay, in application order."""
        ...

    def update_policy(self) -> UpdatePolicy: ...

    def as_owner(self) -> OwnerReference | None:
        """Controller owner reference for the revisions, if any."""
        ...


@runtime_checkable
class ObjectStore(Protocol):
    """
    Consistent object store keyed by (kind, namespace, name).

    Errors:
        NotFoundError, AlreadyExistsError, ConflictError (stale
        ``resource_version`` on update), ForbiddenError.

    Mutating calls write the store-assigned metadata (uid, resource
    version, creation timestamp) back onto the object passed in.
    """

    def get(self, kind: str, namespace: str, name: str) -> Any: ...

    def list(
        self,
        kind: str,
        namespace: str | None = None,
        labels: dict[str, str] | None = None,
    ) -> list[Any]: ...

    def create(self, obj: Any) -> Any: ...

    def update(self, obj: Any) -> Any: ...

    def patch(self, obj: Any, original: Any) -> Any: ...

    def delete(self, obj: Any) -> None: ...

    def kinds(self) -> list[str]: ...


__all__ = ["ObjectStore", "Referrer"]
