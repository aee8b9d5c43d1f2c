"""Revisions: immutable, content-addressed snapshots of a resolved pod template.

A Revision belongs to exactly one referrer. Its ``data`` is the canonical
JSON serialization of the fully-resolved pod template and never changes
after creation; only the ``elected`` and ``stopped`` flags are flipped.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, ClassVar

from controlspine.core.hashing import canonical_json
from controlspine.resources.meta import (
    API_VERSION,
    ObjectMeta,
    OwnerReference,
    controller_reference,
    resource_dict,
)

_EPOCH = datetime.min.isoformat()


@dataclass
class RevisionSpec:
    data: str = ""
    elected: bool = False
    stopped: bool = False


@dataclass
class RevisionStatus:
    ready: bool = False


@dataclass
class Revision:
    kind: ClassVar[str] = "Revision"
    api_version: ClassVar[str] = API_VERSION

    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    spec: RevisionSpec = field(default_factory=RevisionSpec)
    status: RevisionStatus = field(default_factory=RevisionStatus)

    @property
    def elected(self) -> bool:
        return self.spec.elected

    def elect(self) -> None:
        self.spec.elected = True

    def recall(self) -> None:
        self.spec.elected = False

    def stop(self) -> None:
        self.spec.stopped = True

    def pod_template(self) -> dict[str, Any]:
        """Decode the resolved pod template."""
        return json.loads(self.spec.data) if self.spec.data else {}

    def as_owner(self) -> OwnerReference:
        return controller_reference(self)

    def sort_key(self) -> tuple[str, str]:
        created = self.metadata.creation_timestamp
        return (created.isoformat() if created else _EPOCH, self.metadata.name)

    def to_dict(self) -> dict[str, Any]:
        return resource_dict(
            self,
            spec={"elected": self.spec.elected, "stopped": self.spec.stopped, "snapshot": self.spec.data},
            status={"ready": self.status.ready},
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Revision:
        spec = data.get("spec") or {}
        status = data.get("status") or {}
        snapshot = spec.get("snapshot", "")
        if not isinstance(snapshot, str):
            snapshot = canonical_json(snapshot)
        return cls(
            metadata=ObjectMeta.from_dict(data.get("metadata")),
            spec=RevisionSpec(
                data=snapshot,
                elected=bool(spec.get("elected", False)),
                stopped=bool(spec.get("stopped", False)),
            ),
            status=RevisionStatus(ready=bool(status.get("ready", False))),
        )


def sort_revisions(revisions: list[Revision], *, newest_first: bool = False) -> list[Revision]:
    """Order revisions by creation time (name breaks ties)."""
    return sorted(revisions, key=Revision.sort_key, reverse=newest_first)
