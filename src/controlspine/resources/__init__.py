"""Resource models: metadata, templates, graphs, runs, revisions and workloads."""

from controlspine.resources.dag import Dag, DagSpec, DagTask, validate_dag
from controlspine.resources.execution import Execution, ExecutionSpec, ExecutionStatus, TaskStatus
from controlspine.resources.meta import (
    API_VERSION,
    GROUP_NAME,
    ObjectKey,
    ObjectMeta,
    OwnerReference,
    UpdatePolicy,
    object_key,
)
from controlspine.resources.notebook import Notebook, NotebookRevision, NotebookSpec, NotebookStatus
from controlspine.resources.registry import resource_from_dict
from controlspine.resources.revision import Revision, RevisionSpec, sort_revisions
from controlspine.resources.template import (
    ObjectReference,
    PodDefault,
    PodDefaultSpec,
    Template,
    TemplateOption,
    TemplateReference,
    TemplateSpec,
)
from controlspine.resources.workload import Job, JobSpec, JobStatus, Pod, Unstructured

__all__ = [
    "API_VERSION",
    "GROUP_NAME",
    "Dag",
    "DagSpec",
    "DagTask",
    "Execution",
    "ExecutionSpec",
    "ExecutionStatus",
    "Job",
    "JobSpec",
    "JobStatus",
    "Notebook",
    "NotebookRevision",
    "NotebookSpec",
    "NotebookStatus",
    "ObjectKey",
    "ObjectMeta",
    "ObjectReference",
    "OwnerReference",
    "Pod",
    "PodDefault",
    "PodDefaultSpec",
    "Revision",
    "RevisionSpec",
    "TaskStatus",
    "Template",
    "TemplateOption",
    "TemplateReference",
    "TemplateSpec",
    "Unstructured",
    "UpdatePolicy",
    "object_key",
    "resource_from_dict",
    "sort_revisions",
    "validate_dag",
]
