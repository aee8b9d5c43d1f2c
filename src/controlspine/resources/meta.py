"""Object metadata shared by every resource kind.

Every stored resource carries an ``ObjectMeta``: identity (namespace/name,
uid), the store-assigned ``resource_version`` used for optimistic
concurrency, creation/deletion timestamps, labels/annotations, finalizers and
owner references. Owner references form the lineage graph the garbage
collector walks; exactly one of them may be the *controller* reference.

Wire format is camelCase, matching the YAML manifests the CLI applies.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

GROUP_NAME = "controlspine.io"
API_VERSION = f"{GROUP_NAME}/v1beta1"


def utcnow() -> datetime:
    """Return timezone-aware UTC datetime."""
    return datetime.now(UTC)


def format_time(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def parse_time(value: Any) -> datetime | None:
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


class UpdatePolicy(str, Enum):
    """How a referrer tracks template changes.

    AUTO re-captures the template on every election; IGNORE keeps the
    elected revision until it is explicitly changed.
    """

    AUTO = "Auto"
    IGNORE = "Ignore"


@dataclass(frozen=True)
class ObjectKey:
    """Namespaced identity of a resource."""

    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


@dataclass
class OwnerReference:
    """Link from a dependent object to its logical parent."""

    api_version: str
    kind: str
    name: str
    uid: str = ""
    controller: bool = False
    block_owner_deletion: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "apiVersion": self.api_version,
            "kind": self.kind,
            "name": self.name,
            "uid": self.uid,
            "controller": self.controller,
            "blockOwnerDeletion": self.block_owner_deletion,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> OwnerReference:
        return cls(
            api_version=data.get("apiVersion", ""),
            kind=data.get("kind", ""),
            name=data.get("name", ""),
            uid=data.get("uid", ""),
            controller=bool(data.get("controller", False)),
            block_owner_deletion=bool(data.get("blockOwnerDeletion", False)),
        )


@dataclass
class ObjectMeta:
    """Identity, lineage and bookkeeping metadata of a resource."""

    name: str = ""
    namespace: str = ""
    uid: str = ""
    resource_version: str = ""
    generate_name: str = ""
    creation_timestamp: datetime | None = None
    deletion_timestamp: datetime | None = None
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)
    owner_references: list[OwnerReference] = field(default_factory=list)
    finalizers: list[str] = field(default_factory=list)

    def controller_ref(self) -> OwnerReference | None:
        """Return the controlling owner reference, if any."""
        for ref in self.owner_references:
            if ref.controller:
                return ref
        return None

    def reset_identity(self) -> None:
        """Drop every store-assigned and lineage field.

        Used before re-creating a copy of an object under a new identity.
        """
        self.uid = ""
        self.resource_version = ""
        self.generate_name = ""
        self.creation_timestamp = None
        self.deletion_timestamp = None
        self.finalizers = []
        self.owner_references = []

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"name": self.name}
        if self.namespace:
            result["namespace"] = self.namespace
        if self.uid:
            result["uid"] = self.uid
        if self.resource_version:
            result["resourceVersion"] = self.resource_version
        if self.generate_name:
            result["generateName"] = self.generate_name
        if self.creation_timestamp:
            result["creationTimestamp"] = format_time(self.creation_timestamp)
        if self.deletion_timestamp:
            result["deletionTimestamp"] = format_time(self.deletion_timestamp)
        if self.labels:
            result["labels"] = dict(self.labels)
        if self.annotations:
            result["annotations"] = dict(self.annotations)
        if self.owner_references:
            result["ownerReferences"] = [ref.to_dict() for ref in self.owner_references]
        if self.finalizers:
            result["finalizers"] = list(self.finalizers)
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> ObjectMeta:
        data = data or {}
        return cls(
            name=data.get("name", ""),
            namespace=data.get("namespace", ""),
            uid=data.get("uid", ""),
            resource_version=str(data.get("resourceVersion", "") or ""),
            generate_name=data.get("generateName", ""),
            creation_timestamp=parse_time(data.get("creationTimestamp")),
            deletion_timestamp=parse_time(data.get("deletionTimestamp")),
            labels=dict(data.get("labels") or {}),
            annotations=dict(data.get("annotations") or {}),
            owner_references=[OwnerReference.from_dict(r) for r in data.get("ownerReferences") or []],
            finalizers=list(data.get("finalizers") or []),
        )


def object_key(obj: Any) -> ObjectKey:
    """Return the namespaced key of any resource."""
    return ObjectKey(namespace=obj.metadata.namespace, name=obj.metadata.name)


def controller_reference(obj: Any) -> OwnerReference:
    """Build a controller owner reference pointing at ``obj``."""
    return OwnerReference(
        api_version=obj.api_version,
        kind=obj.kind,
        name=obj.metadata.name,
        uid=obj.metadata.uid,
        controller=True,
        block_owner_deletion=True,
    )


def resource_dict(obj: Any, **sections: Any) -> dict[str, Any]:
    """Assemble the wire form ``{apiVersion, kind, metadata, **sections}``."""
    result: dict[str, Any] = {
        "apiVersion": obj.api_version,
        "kind": obj.kind,
        "metadata": obj.metadata.to_dict(),
    }
    result.update(sections)
    return result
