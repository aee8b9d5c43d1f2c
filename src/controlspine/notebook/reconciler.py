"""
Notebook reconciler: one Pod per running Notebook, built from its elected revision.

Stopping a notebook deletes its Pod; starting it again re-creates the Pod
from whichever revision is elected at that time. A Pod that already exists
is left alone, so template changes only reach a notebook across a restart.
"""

from __future__ import annotations

import copy
from typing import Any

from controlspine.core.errors import NotFoundError
from controlspine.core.logging import LogContext, get_logger
from controlspine.core.protocols import ObjectStore
from controlspine.core.result import ReconcileResult
from controlspine.core.settings import ControllerSettings, get_settings
from controlspine.resources.meta import GROUP_NAME, ObjectKey, ObjectMeta
from controlspine.resources.notebook import PHASE_STOPPED, Notebook, NotebookRevision
from controlspine.resources.revision import sort_revisions
from controlspine.resources.workload import Pod
from controlspine.revision.manager import RevisionManager

NOTEBOOK_NAME_LABEL = f"{GROUP_NAME}/notebook-name"
OWNER_ANNOTATION = f"{GROUP_NAME}/owner"


class NotebookReconciler:
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
        self.revisions = RevisionManager(store, logger=self.logger)

    def reconcile(self, key: ObjectKey) -> ReconcileResult:
        try:
            notebook: Notebook = self.store.get("Notebook", key.namespace, key.name)
        except NotFoundError:
            self.logger.debug("notebook.not_found", notebook=key.name, namespace=key.namespace)
            return ReconcileResult()

        with LogContext(notebook=key.name, namespace=key.namespace):
            if notebook.spec.stopped:
                self._stop(notebook)
            elif self._template_allowed(notebook):
                self._run(notebook)
        return ReconcileResult()

    def _template_allowed(self, notebook: Notebook) -> bool:
        template_namespace = notebook.template_ref().namespace
        if template_namespace in (notebook.namespace, self.settings.system_namespace):
            return True
        self.logger.warning(
            "notebook.template_namespace_rejected",
            template=str(notebook.template_ref()),
            system_namespace=self.settings.system_namespace,
        )
        return False

    def _stop(self, notebook: Notebook) -> None:
        conditions: list[dict[str, Any]] = []
        pod: Pod | None
        try:
            pod = self.store.get("Pod", notebook.namespace, notebook.name)
        except NotFoundError:
            pod = None
        if pod is not None:
            conditions = copy.deepcopy(pod.status.conditions)
            try:
                self.store.delete(pod)
                self.logger.info("notebook.pod_deleted", pod=pod.metadata.name)
            except NotFoundError:
                pass

        original = copy.deepcopy(notebook)
        notebook.status.phase = PHASE_STOPPED
        notebook.status.conditions = conditions
        self.store.patch(notebook, original)

    def _run(self, notebook: Notebook) -> None:
        try:
            pod: Pod = self.store.get("Pod", notebook.namespace, notebook.name)
        except NotFoundError:
            pod = self._create_pod(notebook)

        revisions = sort_revisions(self.revisions.list(notebook), newest_first=True)
        original = copy.deepcopy(notebook)
        notebook.status.phase = pod.status.phase
        notebook.status.conditions = copy.deepcopy(pod.status.conditions)
        notebook.status.revisions = [
            NotebookRevision(name=r.metadata.name, elected=r.elected, created_at=r.metadata.creation_timestamp)
            for r in revisions
        ]
        self.store.patch(notebook, original)

    def _create_pod(self, notebook: Notebook) -> Pod:
        elected = self.revisions.elect_revision(notebook)
        template = elected.pod_template()
        metadata = template.get("metadata") or {}
        labels = dict(metadata.get("labels") or {})
        annotations = dict(metadata.get("annotations") or {})
        labels[NOTEBOOK_NAME_LABEL] = notebook.name
        annotations[OWNER_ANNOTATION] = notebook.spec.owner

        pod = Pod(
            metadata=ObjectMeta(
                name=notebook.name,
                namespace=notebook.namespace,
                labels=labels,
                annotations=annotations,
                owner_references=[notebook.as_owner()],
            ),
            spec=copy.deepcopy(template.get("spec") or {}),
        )
        self.store.create(pod)
        self.logger.info("notebook.pod_created", pod=pod.metadata.name, revision=elected.metadata.name)
        return pod
