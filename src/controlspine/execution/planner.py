"""Traversal planning for Dags.

``plan_tasks`` returns the tasks reachable from the entrypoint, ordered so
that every task comes after all of its dependencies. Tasks not reachable
from the entrypoint never run and are left out.
"""

from __future__ import annotations

from collections import defaultdict, deque

from controlspine.core.errors import DagError
from controlspine.resources.dag import Dag, DagTask


def reachable_tasks(dag: Dag) -> dict[str, DagTask]:
    """Tasks reachable from the entrypoint through dependency edges."""
    tasks = dag.task_map()
    if dag.spec.entrypoint not in tasks:
        raise DagError(f"entrypoint {dag.spec.entrypoint!r} is not a task").with_context(
            kind=dag.kind, namespace=dag.metadata.namespace, name=dag.metadata.name
        )

    reachable: dict[str, DagTask] = {}
    stack = [dag.spec.entrypoint]
    while stack:
        name = stack.pop()
        if name in reachable:
            continue
        task = tasks[name]
        reachable[name] = task
        for dependency in task.dependencies:
            if dependency not in tasks:
                raise DagError(f"task {name!r} depends on unknown task {dependency!r}").with_context(
                    kind=dag.kind, namespace=dag.metadata.namespace, name=dag.metadata.name
                )
            stack.append(dependency)
    return reachable


def plan_tasks(dag: Dag) -> list[DagTask]:
    """Reachable tasks in dependency-first order (Kahn's algorithm).

    Ties are broken by declaration order in the Dag.

    Raises:
        DagError: missing entrypoint, unknown dependency, or a cycle
    """
    reachable = reachable_tasks(dag)
    declared = [t.name for t in dag.spec.tasks if t.name in reachable]

    dependents: dict[str, list[str]] = defaultdict(list)
    in_degree: dict[str, int] = {name: 0 for name in declared}
    for name in declared:
        for dependency in set(reachable[name].dependencies):
            dependents[dependency].append(name)
            in_degree[name] += 1

    queue: deque[str] = deque(name for name in declared if in_degree[name] == 0)
    order: list[DagTask] = []
    while queue:
        name = queue.popleft()
        order.append(reachable[name])
        for dependent in dependents[name]:
            in_degree[dependent] -= 1
            if in_degree[dependent] == 0:
                queue.append(dependent)

    if len(order) != len(declared):
        cycle = sorted(name for name, degree in in_degree.items() if degree > 0)
        raise DagError(f"dependency cycle detected among tasks: {cycle}").with_context(
            kind=dag.kind, namespace=dag.metadata.namespace, name=dag.metadata.name
        )
    return order
