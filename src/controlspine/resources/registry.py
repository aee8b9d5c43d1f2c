"""Kind registry: maps wire ``kind`` names to resource classes."""

from __future__ import annotations

from typing import Any

from controlspine.resources.dag import Dag
from controlspine.resources.execution import Execution
from controlspine.resources.notebook import Notebook
from controlspine.resources.revision import Revision
from controlspine.resources.template import PodDefault, Template
from controlspine.resources.workload import Job, Pod, Unstructured

RESOURCE_KINDS: dict[str, type] = {
    cls.kind: cls for cls in (Dag, Execution, Job, Notebook, Pod, PodDefault, Revision, Template)
}


def resource_class(kind: str) -> type | None:
    return RESOURCE_KINDS.get(kind)


def resource_from_dict(data: dict[str, Any]) -> Any:
    """Build the typed resource for ``data``; unknown kinds stay ``Unstructured``."""
    if not isinstance(data, dict) or "kind" not in data:
        raise ValueError("resource document must be a mapping with a 'kind'")
    cls = RESOURCE_KINDS.get(data["kind"])
    if cls is None:
        return Unstructured.from_dict(data)
    return cls.from_dict(data)
