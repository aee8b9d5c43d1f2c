"""Dag tasks as referrers."""

from __future__ import annotations

from controlspine.resources.dag import DagTask
from controlspine.resources.meta import ObjectKey, OwnerReference, UpdatePolicy

TASK_HISTORY_LIMIT = 1


class NamespacedTask:
    """A ``DagTask`` placed in the namespace of the Execution that runs it.

    Tasks keep a single revision and never follow template updates on
    their own; a changed template yields a new revision only when a Job
    for the task is created.
    """

    def __init__(self, task: DagTask, namespace: str, owner: OwnerReference | None = None):
        self.task = task
        self._namespace = namespace
        self._owner = owner

    @property
    def name(self) -> str:
        return self.task.name

    @property
    def namespace(self) -> str:
        return self._namespace

    def template_ref(self) -> ObjectKey:
        return self.task.template_ref.resolve(self._namespace)

    def history_limit(self) -> int:
        return TASK_HISTORY_LIMIT

    def resource_requests(self) -> dict[str, str]:
        return dict(self.task.resources)

    def elected_options(self) -> list[str]:
        return list(self.task.options)

    def update_policy(self) -> UpdatePolicy:
        return UpdatePolicy.IGNORE

    def as_owner(self) -> OwnerReference | None:
        return self._owner

    def __repr__(self) -> str:
        return f"NamespacedTask({self._namespace}/{self.task.name})"
