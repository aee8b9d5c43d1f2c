"""
Execution reconciler: runs a Dag as Jobs with bounded concurrency.

Each pass is level-triggered and idempotent. The reconciler keeps no state
between passes; everything it needs is re-derived from the store.

Manifesto:
    - **Observe first:** Every reachable task's Job is read before anything
      is created, so a failure anywhere stops the run before new work starts
    - **Bounded admission:** At most ``max_concurrent_tasks`` Jobs are in
      flight; ready tasks that do not fit wait for a later pass and are
      never dropped
    - **Dependency order:** A task's Job is created only after every task it
      depends on has completed

Architecture:
    ::

        reconcile(key)
          ├── Execution (missing or completed → no-op)
          ├── Dag → plan_tasks() → reachable tasks, dependency-first
          ├── observe: Job "<run>-<task>" per task → status.tasks
          │     any failed Job → completed=True, succeeded=False (stop)
          ├── admit: ready tasks while in_flight < bound
          │     RevisionManager(patches=[restart, command]).create(task)
          │     → Job owned by the Execution
          └── aggregate: AND over reachable tasks → persist, requeue if running

Examples:
    >>> reconciler = ExecutionReconciler(store)
    >>> result = reconciler.reconcile(ObjectKey("ml", "train-1"))
    >>> result.requeue_after
    10.0

Tags:
    execution, dag, reconciler, concurrency, jobs
"""

from __future__ import annotations

from typing import Any

from controlspine.core.errors import AlreadyExistsError, NotFoundError
from controlspine.core.logging import LogContext, get_logger
from controlspine.core.protocols import ObjectStore
from controlspine.core.result import ReconcileResult
from controlspine.core.settings import ControllerSettings, get_settings
from controlspine.execution.patches import command_patch, restart_patch
from controlspine.execution.planner import plan_tasks
from controlspine.execution.tasks import NamespacedTask
from controlspine.resources.dag import Dag, DagTask
from controlspine.resources.execution import Execution, TaskStatus
from controlspine.resources.meta import GROUP_NAME, ObjectKey, ObjectMeta, controller_reference
from controlspine.resources.workload import Job, JobSpec
from controlspine.revision.manager import RevisionManager

EXECUTION_LABEL = f"{GROUP_NAME}/execution"
TASK_LABEL = f"{GROUP_NAME}/task"


def job_name(execution: Execution, task: DagTask) -> str:
    return f"{execution.metadata.name}-{task.name}"


def task_status(job: Job) -> TaskStatus:
    """What an Execution records about a task's Job."""
    return TaskStatus(
        conditions=list(job.status.conditions),
        completed=job.is_complete(),
        succeeded=job.status.succeeded > 0,
    )


class ExecutionReconciler:
    """Drives one Execution towards completion per call to ``reconcile``."""

    def __init__(
        self,
        store: ObjectStore,
        *,
        settings: ControllerSettings | None = None,
        logger: Any = None,
    ) -> None:
        self.store = store
        self.settings = settings or get_settings()
        self.logger = logger or get_logger(__name__)

    def reconcile(self, key: ObjectKey) -> ReconcileResult:
        try:
            execution: Execution = self.store.get("Execution", key.namespace, key.name)
        except NotFoundError:
            self.logger.debug("execution.not_found", execution=key.name, namespace=key.namespace)
            return ReconcileResult()

        if execution.status.completed:
            return ReconcileResult()

        with LogContext(execution=key.name, namespace=key.namespace):
            return self._reconcile(execution)

    def _reconcile(self, execution: Execution) -> ReconcileResult:
        namespace = execution.metadata.namespace
        execution.status.tasks = {}

        try:
            dag: Dag = self.store.get("Dag", namespace, execution.spec.dag_ref)
        except NotFoundError:
            self.logger.error("execution.dag_missing", dag=execution.spec.dag_ref)
            raise

        order = plan_tasks(dag)
        bound = execution.max_concurrent_tasks(self.settings.default_parallelism, self.settings.max_parallelism)

        # -- observe ------------------------------------------------------------
        jobs: dict[str, Job] = {}
        completed: set[str] = set()
        failed: list[str] = []
        for task in order:
            try:
                job: Job = self.store.get("Job", namespace, job_name(execution, task))
            except NotFoundError:
                continue
            jobs[task.name] = job
            execution.set_task_status(task.name, task_status(job))
            if job.is_complete():
                completed.add(task.name)
            if job.is_failed():
                failed.append(task.name)

        if failed:
            execution.status.completed = True
            execution.status.succeeded = False
            self.store.update(execution)
            self.logger.warning("execution.failed", failed_tasks=failed)
            return ReconcileResult()

        # -- admit --------------------------------------------------------------
        in_flight = sum(1 for job in jobs.values() if not job.is_complete())
        deferred: list[str] = []
        for task in order:
            if task.name in jobs:
                continue
            if not all(dependency in completed for dependency in task.dependencies):
                continue
            if in_flight >= bound:
                deferred.append(task.name)
                continue
            job = self._create_job(execution, dag, task)
            execution.set_task_status(task.name, task_status(job))
            in_flight += 1

        if deferred:
            self.logger.info("execution.tasks_deferred", tasks=deferred, in_flight=in_flight, bound=bound)

        # -- aggregate ----------------------------------------------------------
        statuses = [execution.status.tasks.get(task.name) for task in order]
        execution.status.completed = all(s is not None and s.completed for s in statuses)
        execution.status.succeeded = all(s is not None and s.succeeded for s in statuses)
        self.store.update(execution)

        if not execution.status.completed:
            return ReconcileResult(requeue_after=self.settings.requeue_after_seconds)

        self.logger.info("execution.completed", succeeded=execution.status.succeeded)
        return ReconcileResult()

    def _create_job(self, execution: Execution, dag: Dag, task: DagTask) -> Job:
        namespace = execution.metadata.namespace
        patches = [restart_patch()]
        if task.command:
            patches.append(command_patch(task.command))

        manager = RevisionManager(self.store, logger=self.logger, patches=patches)
        revision = manager.create(NamespacedTask(task, namespace, owner=controller_reference(dag)))

        job = Job(
            metadata=ObjectMeta(
                name=job_name(execution, task),
                namespace=namespace,
                labels={EXECUTION_LABEL: execution.metadata.name, TASK_LABEL: task.name},
                owner_references=[execution.as_owner()],
            ),
            spec=JobSpec(template=revision.pod_template(), backoff_limit=0, completions=1),
        )
        try:
            self.store.create(job)
        except AlreadyExistsError:
            return self.store.get("Job", namespace, job.metadata.name)

        self.logger.info("execution.task_created", task=task.name, job=job.metadata.name, revision=revision.metadata.name)
        return job
