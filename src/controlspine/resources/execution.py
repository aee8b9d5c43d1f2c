"""Executions: one run of a Dag.

The Execution's status is owned by the execution reconciler. ``tasks`` maps
each task name to what was last observed on its Job; ``completed`` and
``succeeded`` aggregate those per-task flags.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, ClassVar

from controlspine.resources.meta import (
    API_VERSION,
    ObjectMeta,
    OwnerReference,
    controller_reference,
    resource_dict,
)

DEFAULT_PARALLELISM = 20
MAX_PARALLELISM = 20


@dataclass
class ExecutionSpec:
    dag_ref: str = ""
    parallelism: int = 0


@dataclass
class TaskStatus:
    conditions: list[dict[str, Any]] = field(default_factory=list)
    completed: bool = False
    succeeded: bool = False

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"completed": self.completed, "succeeded": self.succeeded}
        if self.conditions:
            result["conditions"] = copy.deepcopy(self.conditions)
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TaskStatus:
        return cls(
            conditions=copy.deepcopy(data.get("conditions") or []),
            completed=bool(data.get("completed", False)),
            succeeded=bool(data.get("succeeded", False)),
        )


@dataclass
class ExecutionStatus:
    tasks: dict[str, TaskStatus] = field(default_factory=dict)
    completed: bool = False
    succeeded: bool = False


@dataclass
class Execution:
    kind: ClassVar[str] = "Execution"
    api_version: ClassVar[str] = API_VERSION

    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    spec: ExecutionSpec = field(default_factory=ExecutionSpec)
    status: ExecutionStatus = field(default_factory=ExecutionStatus)

    def max_concurrent_tasks(
        self,
        default: int = DEFAULT_PARALLELISM,
        maximum: int = MAX_PARALLELISM,
    ) -> int:
        """Effective concurrency bound: unset (zero) means ``default``."""
        if self.spec.parallelism <= 0:
            return default
        return min(self.spec.parallelism, maximum)

    def set_task_status(self, task: str, status: TaskStatus) -> None:
        self.status.tasks[task] = status

    def as_owner(self) -> OwnerReference:
        return controller_reference(self)

    def to_dict(self) -> dict[str, Any]:
        return resource_dict(
            self,
            spec={"dagRef": {"name": self.spec.dag_ref}, "parallelism": self.spec.parallelism},
            status={
                "tasks": {name: s.to_dict() for name, s in self.status.tasks.items()},
                "completed": self.status.completed,
                "succeeded": self.status.succeeded,
            },
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Execution:
        spec = data.get("spec") or {}
        status = data.get("status") or {}
        dag_ref = spec.get("dagRef") or {}
        return cls(
            metadata=ObjectMeta.from_dict(data.get("metadata")),
            spec=ExecutionSpec(
                dag_ref=dag_ref.get("name", "") if isinstance(dag_ref, dict) else str(dag_ref),
                parallelism=int(spec.get("parallelism") or 0),
            ),
            status=ExecutionStatus(
                tasks={name: TaskStatus.from_dict(s) for name, s in (status.get("tasks") or {}).items()},
                completed=bool(status.get("completed", False)),
                succeeded=bool(status.get("succeeded", False)),
            ),
        )
