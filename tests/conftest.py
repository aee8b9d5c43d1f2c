"""
Shared pytest fixtures for controlspine tests.

This module provides:
- An in-memory object store per test
- Settings with fixed, fast defaults
- Builders that create Templates, PodDefaults, Dags, Executions and
  Notebooks directly in the store
- ``finish_job`` to simulate a Job reaching a terminal state

Usage:
    def test_something(store, make_template, make_dag):
        make_template("base")
        dag = make_dag("pipeline", "t1", [{"name": "t1"}])
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from controlspine.core.settings import ControllerSettings
from controlspine.resources import (
    Dag,
    DagSpec,
    DagTask,
    Execution,
    ExecutionSpec,
    Notebook,
    NotebookSpec,
    ObjectMeta,
    ObjectReference,
    PodDefault,
    PodDefaultSpec,
    Template,
    TemplateOption,
    TemplateReference,
    TemplateSpec,
    Unstructured,
    UpdatePolicy,
)
from controlspine.resources.meta import utcnow
from controlspine.store import InMemoryObjectStore

NAMESPACE = "default"


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Mark CLI and manager tests as integration, everything else as unit."""
    for item in items:
        name = Path(str(item.fspath)).name
        if name in ("test_cli.py", "test_manager.py"):
            item.add_marker(pytest.mark.integration)
        else:
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Store and settings
# =============================================================================


@pytest.fixture()
def store() -> InMemoryObjectStore:
    return InMemoryObjectStore()


@pytest.fixture()
def settings() -> ControllerSettings:
    return ControllerSettings(
        requeue_after_seconds=10.0,
        default_parallelism=20,
        max_parallelism=20,
        system_namespace="controlspine-system",
        gc_on_pass=True,
    )


def pod_template(*containers: dict[str, Any], **spec: Any) -> dict[str, Any]:
    """A pod template with the given containers (default: one ``main`` container)."""
    return {
        "metadata": {},
        "spec": {"containers": list(containers) or [{"name": "main", "image": "busybox"}], **spec},
    }


@pytest.fixture()
def make_template(store):
    def _make(
        name: str = "base",
        *,
        namespace: str = NAMESPACE,
        template: dict[str, Any] | None = None,
        options: tuple[str, ...] = (),
        required: tuple[str, ...] = (),
        dependencies: tuple[tuple[str, str], ...] = (),
    ) -> Template:
        obj = Template(
            metadata=ObjectMeta(name=name, namespace=namespace),
            spec=TemplateSpec(
                template=template if template is not None else pod_template(),
                options=[TemplateOption(name=o) for o in options],
                required=list(required),
                dependencies=[ObjectReference(name=n, kind=k) for k, n in dependencies],
            ),
        )
        return store.create(obj)

    return _make


@pytest.fixture()
def make_pod_default(store):
    def _make(
        name: str,
        template: dict[str, Any],
        *,
        namespace: str = NAMESPACE,
        dependencies: tuple[tuple[str, str], ...] = (),
    ) -> PodDefault:
        obj = PodDefault(
            metadata=ObjectMeta(name=name, namespace=namespace),
            spec=PodDefaultSpec(
                template=template,
                dependencies=[ObjectReference(name=n, kind=k) for k, n in dependencies],
            ),
        )
        return store.create(obj)

    return _make


@pytest.fixture()
def make_object(store):
    """Create an arbitrary object (Secret, ConfigMap, ...)."""

    def _make(kind: str, name: str, *, namespace: str = NAMESPACE, **body: Any) -> Unstructured:
        obj = Unstructured(api_version="v1", kind=kind, metadata=ObjectMeta(name=name, namespace=namespace), body=body)
        return store.create(obj)

    return _make


@pytest.fixture()
def make_dag(store):
    def _make(
        name: str,
        entrypoint: str,
        tasks: list[dict[str, Any]],
        *,
        namespace: str = NAMESPACE,
        template: str = "base",
    ) -> Dag:
        dag_tasks = [
            DagTask(
                name=t["name"],
                template_ref=TemplateReference(name=t.get("template", template)),
                command=list(t.get("command", [])),
                options=list(t.get("options", [])),
                dependencies=list(t.get("dependencies", [])),
                resources=dict(t.get("resources", {})),
            )
            for t in tasks
        ]
        obj = Dag(metadata=ObjectMeta(name=name, namespace=namespace), spec=DagSpec(entrypoint=entrypoint, tasks=dag_tasks))
        return store.create(obj)

    return _make


@pytest.fixture()
def make_execution(store):
    def _make(name: str, dag: str, *, parallelism: int = 0, namespace: str = NAMESPACE) -> Execution:
        obj = Execution(
            metadata=ObjectMeta(name=name, namespace=namespace),
            spec=ExecutionSpec(dag_ref=dag, parallelism=parallelism),
        )
        return store.create(obj)

    return _make


@pytest.fixture()
def make_notebook(store):
    def _make(
        name: str = "nb",
        *,
        namespace: str = NAMESPACE,
        template: str = "base",
        template_namespace: str = "",
        options: tuple[str, ...] = (),
        resources: dict[str, str] | None = None,
        history_limit: int = 3,
        update_policy: UpdatePolicy | None = None,
        stopped: bool = False,
        owner: str = "alice",
    ) -> Notebook:
        obj = Notebook(
            metadata=ObjectMeta(name=name, namespace=namespace),
            spec=NotebookSpec(
                template_ref=TemplateReference(name=template, namespace=template_namespace),
                revision_history_limit=history_limit,
                stopped=stopped,
                update_policy=update_policy,
                resources=dict(resources or {}),
                owner=owner,
                options=list(options),
            ),
        )
        return store.create(obj)

    return _make


@pytest.fixture()
def finish_job(store):
    """Mark a Job as finished: succeeded, or failed when ``succeeded=False``."""

    def _finish(name: str, *, succeeded: bool = True, namespace: str = NAMESPACE) -> None:
        job = store.get("Job", namespace, name)
        if succeeded:
            job.status.succeeded = 1
            job.status.completion_time = utcnow()
            job.status.conditions = [{"type": "Complete", "status": "True"}]
        else:
            job.status.failed = 1
            job.status.conditions = [{"type": "Failed", "status": "True"}]
        store.update(job)

    return _finish
