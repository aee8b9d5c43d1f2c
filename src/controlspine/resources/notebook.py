"""Notebooks: long-running, user-owned workloads backed by template revisions.

A Notebook is a Referrer. Its revisions are created and elected by the
revision manager; the notebook controller runs a single Pod from the
elected revision unless the notebook is stopped.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, ClassVar

from controlspine.resources.meta import (
    API_VERSION,
    ObjectKey,
    ObjectMeta,
    OwnerReference,
    UpdatePolicy,
    controller_reference,
    format_time,
    parse_time,
    resource_dict,
)
from controlspine.resources.template import TemplateReference

PHASE_RUNNING = "Running"
PHASE_STOPPED = "Stopped"

DEFAULT_HISTORY_LIMIT = 3


@dataclass
class NotebookSpec:
    template_ref: TemplateReference = field(default_factory=TemplateReference)
    revision_history_limit: int = DEFAULT_HISTORY_LIMIT
    stopped: bool = False
    update_policy: UpdatePolicy | None = None
    resources: dict[str, str] = field(default_factory=dict)
    owner: str = ""
    options: list[str] = field(default_factory=list)


@dataclass
class NotebookRevision:
    """Summary of one revision, as reported in notebook status."""

    name: str
    elected: bool = False
    created_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "elected": self.elected, "createdAt": format_time(self.created_at)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> NotebookRevision:
        return cls(
            name=data["name"],
            elected=bool(data.get("elected", False)),
            created_at=parse_time(data.get("createdAt")),
        )


@dataclass
class NotebookStatus:
    phase: str = ""
    conditions: list[dict[str, Any]] = field(default_factory=list)
    revisions: list[NotebookRevision] = field(default_factory=list)


@dataclass
class Notebook:
    kind: ClassVar[str] = "Notebook"
    api_version: ClassVar[str] = API_VERSION

    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    spec: NotebookSpec = field(default_factory=NotebookSpec)
    status: NotebookStatus = field(default_factory=NotebookStatus)

    # -- Referrer -----------------------------------------------------------

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def namespace(self) -> str:
        return self.metadata.namespace

    def template_ref(self) -> ObjectKey:
        return self.spec.template_ref.resolve(self.metadata.namespace)

    def history_limit(self) -> int:
        return self.spec.revision_history_limit

    def resource_requests(self) -> dict[str, str]:
        return dict(self.spec.resources)

    def elected_options(self) -> list[str]:
        return list(self.spec.options)

    def update_policy(self) -> UpdatePolicy:
        # unset means "keep what is elected"
        return self.spec.update_policy or UpdatePolicy.IGNORE

    def as_owner(self) -> OwnerReference:
        return controller_reference(self)

    # -- Serialization ------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        spec: dict[str, Any] = {
            "templateRef": self.spec.template_ref.to_dict(),
            "revisionHistoryLimit": self.spec.revision_history_limit,
            "stopped": self.spec.stopped,
        }
        if self.spec.update_policy is not None:
            spec["updatePolicy"] = self.spec.update_policy.value
        if self.spec.resources:
            spec["resources"] = dict(self.spec.resources)
        if self.spec.owner:
            spec["owner"] = {"kind": "User", "name": self.spec.owner}
        if self.spec.options:
            spec["options"] = list(self.spec.options)
        status: dict[str, Any] = {
            "phase": self.status.phase,
            "revisions": [r.to_dict() for r in self.status.revisions],
        }
        if self.status.conditions:
            status["conditions"] = copy.deepcopy(self.status.conditions)
        return resource_dict(self, spec=spec, status=status)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Notebook:
        spec = data.get("spec") or {}
        status = data.get("status") or {}
        owner = spec.get("owner") or {}
        policy = spec.get("updatePolicy")
        return cls(
            metadata=ObjectMeta.from_dict(data.get("metadata")),
            spec=NotebookSpec(
                template_ref=TemplateReference.from_dict(spec.get("templateRef")),
                revision_history_limit=int(spec.get("revisionHistoryLimit", DEFAULT_HISTORY_LIMIT)),
                stopped=bool(spec.get("stopped", False)),
                update_policy=UpdatePolicy(policy) if policy else None,
                resources={k: str(v) for k, v in (spec.get("resources") or {}).items()},
                owner=owner.get("name", "") if isinstance(owner, dict) else str(owner),
                options=list(spec.get("options") or []),
            ),
            status=NotebookStatus(
                phase=status.get("phase", ""),
                conditions=copy.deepcopy(status.get("conditions") or []),
                revisions=[NotebookRevision.from_dict(r) for r in status.get("revisions") or []],
            ),
        )
