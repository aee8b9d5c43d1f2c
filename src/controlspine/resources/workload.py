"""Workload kinds the controllers create: Jobs, Pods and generic objects.

``Job`` is the unit of work an Execution materializes for each task.
``Pod`` is what the notebook controller runs. ``Unstructured`` carries any
other kind (Secrets, ConfigMaps, ...) the revision manager copies as a
template dependency; it keeps every top-level section verbatim.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, ClassVar

from controlspine.resources.meta import ObjectMeta, format_time, parse_time, resource_dict


@dataclass
class JobSpec:
    template: dict[str, Any] = field(default_factory=dict)
    backoff_limit: int | None = None
    completions: int | None = None


@dataclass
class JobStatus:
    conditions: list[dict[str, Any]] = field(default_factory=list)
    completion_time: datetime | None = None
    active: int = 0
    succeeded: int = 0
    failed: int = 0


@dataclass
class Job:
    kind: ClassVar[str] = "Job"
    api_version: ClassVar[str] = "batch/v1"

    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    spec: JobSpec = field(default_factory=JobSpec)
    status: JobStatus = field(default_factory=JobStatus)

    def is_complete(self) -> bool:
        return self.status.completion_time is not None

    def is_failed(self) -> bool:
        return self.status.failed > 0

    def to_dict(self) -> dict[str, Any]:
        spec: dict[str, Any] = {"template": copy.deepcopy(self.spec.template)}
        if self.spec.backoff_limit is not None:
            spec["backoffLimit"] = self.spec.backoff_limit
        if self.spec.completions is not None:
            spec["completions"] = self.spec.completions
        status: dict[str, Any] = {
            "active": self.status.active,
            "succeeded": self.status.succeeded,
            "failed": self.status.failed,
        }
        if self.status.conditions:
            status["conditions"] = copy.deepcopy(self.status.conditions)
        if self.status.completion_time:
            status["completionTime"] = format_time(self.status.completion_time)
        return resource_dict(self, spec=spec, status=status)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Job:
        spec = data.get("spec") or {}
        status = data.get("status") or {}
        return cls(
            metadata=ObjectMeta.from_dict(data.get("metadata")),
            spec=JobSpec(
                template=copy.deepcopy(spec.get("template") or {}),
                backoff_limit=spec.get("backoffLimit"),
                completions=spec.get("completions"),
            ),
            status=JobStatus(
                conditions=copy.deepcopy(status.get("conditions") or []),
                completion_time=parse_time(status.get("completionTime")),
                active=int(status.get("active") or 0),
                succeeded=int(status.get("succeeded") or 0),
                failed=int(status.get("failed") or 0),
            ),
        )


@dataclass
class PodStatus:
    phase: str = ""
    conditions: list[dict[str, Any]] = field(default_factory=list)


@dataclass
class Pod:
    kind: ClassVar[str] = "Pod"
    api_version: ClassVar[str] = "v1"

    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    spec: dict[str, Any] = field(default_factory=dict)
    status: PodStatus = field(default_factory=PodStatus)

    def to_dict(self) -> dict[str, Any]:
        status: dict[str, Any] = {}
        if self.status.phase:
            status["phase"] = self.status.phase
        if self.status.conditions:
            status["conditions"] = copy.deepcopy(self.status.conditions)
        return resource_dict(self, spec=copy.deepcopy(self.spec), status=status)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Pod:
        status = data.get("status") or {}
        return cls(
            metadata=ObjectMeta.from_dict(data.get("metadata")),
            spec=copy.deepcopy(data.get("spec") or {}),
            status=PodStatus(
                phase=status.get("phase", ""),
                conditions=copy.deepcopy(status.get("conditions") or []),
            ),
        )


@dataclass
class Unstructured:
    """Any object kind without a dedicated model."""

    api_version: str
    kind: str
    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    body: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return resource_dict(self, **copy.deepcopy(self.body))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Unstructured:
        body = {k: copy.deepcopy(v) for k, v in data.items() if k not in ("apiVersion", "kind", "metadata")}
        return cls(
            api_version=data.get("apiVersion", "v1"),
            kind=data["kind"],
            metadata=ObjectMeta.from_dict(data.get("metadata")),
            body=body,
        )
