"""Task graphs (Dags).

A Dag names an entrypoint task and an unordered collection of tasks. Each
task references a template, may override the container command, elects
template options, lists the tasks it depends on and may override resource
requests. Only tasks reachable from the entrypoint through dependency edges
are ever executed.

``validate_dag`` is the admission check for task-name uniqueness; the
reconcilers assume it has already passed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar

from controlspine.core.errors import DuplicateTaskNameError
from controlspine.resources.meta import API_VERSION, ObjectMeta, resource_dict
from controlspine.resources.template import TemplateReference


@dataclass
class DagTask:
    name: str = ""
    template_ref: TemplateReference = field(default_factory=TemplateReference)
    command: list[str] = field(default_factory=list)
    options: list[str] = field(default_factory=list)
    dependencies: list[str] = field(default_factory=list)
    resources: dict[str, str] = field(default_factory=dict)

    def has_dependencies(self) -> bool:
        return len(self.dependencies) > 0

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"name": self.name, "templateRef": self.template_ref.to_dict()}
        if self.command:
            result["command"] = list(self.command)
        if self.options:
            result["options"] = [{"name": option} for option in self.options]
        if self.dependencies:
            result["dependencies"] = list(self.dependencies)
        if self.resources:
            result["resources"] = dict(self.resources)
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DagTask:
        return cls(
            name=data.get("name", ""),
            template_ref=TemplateReference.from_dict(data.get("templateRef")),
            command=list(data.get("command") or []),
            options=[o["name"] if isinstance(o, dict) else str(o) for o in data.get("options") or []],
            dependencies=list(data.get("dependencies") or []),
            resources={k: str(v) for k, v in (data.get("resources") or {}).items()},
        )


@dataclass
class DagSpec:
    entrypoint: str = ""
    tasks: list[DagTask] = field(default_factory=list)


@dataclass
class Dag:
    kind: ClassVar[str] = "Dag"
    api_version: ClassVar[str] = API_VERSION

    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    spec: DagSpec = field(default_factory=DagSpec)

    def task_map(self) -> dict[str, DagTask]:
        return {task.name: task for task in self.spec.tasks}

    def entrypoint(self) -> DagTask:
        """Return the entrypoint task, or an empty ``DagTask`` if it is not declared."""
        return self.task_map().get(self.spec.entrypoint, DagTask())

    def to_dict(self) -> dict[str, Any]:
        return resource_dict(
            self,
            spec={"entrypoint": self.spec.entrypoint, "tasks": [t.to_dict() for t in self.spec.tasks]},
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Dag:
        spec = data.get("spec") or {}
        return cls(
            metadata=ObjectMeta.from_dict(data.get("metadata")),
            spec=DagSpec(
                entrypoint=spec.get("entrypoint", ""),
                tasks=[DagTask.from_dict(t) for t in spec.get("tasks") or []],
            ),
        )


def validate_dag(dag: Dag) -> None:
    """Reject a Dag whose task names are not unique."""
    seen: set[str] = set()
    for task in dag.spec.tasks:
        if task.name in seen:
            raise DuplicateTaskNameError(task.name).with_context(
                kind=dag.kind, namespace=dag.metadata.namespace, name=dag.metadata.name
            )
        seen.add(task.name)
