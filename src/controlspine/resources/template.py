"""Templates and overlay fragments.

A ``Template`` is an operator-owned base pod template plus:

- a catalog of named optional overlays (``options``) a referrer may elect,
- a list of ``required`` overlays that are always applied,
- ``dependencies``: auxiliary objects (credentials, config) that must be
  copied alongside every snapshot taken from the template.

A ``PodDefault`` is one overlay fragment: a reusable, sparse pod template
patch with its own dependency list. Fragments live in the template's
namespace and are looked up by name.

Pod templates are kept as plain dicts in their wire (camelCase) form; the
overlay composer works on that generic structure.
"""

from __future__ import annotations

import copy
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, ClassVar

from controlspine.core.errors import OverlayError
from controlspine.resources.meta import API_VERSION, ObjectKey, ObjectMeta, resource_dict


def normalize_pod_template(template: Mapping[str, Any] | None) -> dict[str, Any]:
    """Return a deep copy of ``template`` with ``metadata`` and ``spec`` sections.

    A missing or ``None`` section becomes an empty mapping. Raises
    ``OverlayError`` when the template or either section is not a mapping.
    """
    if template is None:
        template = {}
    if not isinstance(template, Mapping):
        raise OverlayError(f"pod template must be a mapping, got {type(template).__name__}")
    result = copy.deepcopy(dict(template))
    for section in ("metadata", "spec"):
        if result.get(section) is None:
            result[section] = {}
        elif not isinstance(result[section], Mapping):
            raise OverlayError(f"pod template {section} must be a mapping, got {type(result[section]).__name__}")
    return result


@dataclass
class TemplateReference:
    """Reference to a Template by name and namespace.

    An empty namespace means "the referrer's namespace".
    """

    name: str = ""
    namespace: str = ""

    def resolve(self, default_namespace: str) -> ObjectKey:
        return ObjectKey(namespace=self.namespace or default_namespace, name=self.name)

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}" if self.namespace else self.name

    def to_dict(self) -> dict[str, Any]:
        result = {"name": self.name}
        if self.namespace:
            result["namespace"] = self.namespace
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> TemplateReference:
        data = data or {}
        return cls(name=data.get("name", ""), namespace=data.get("namespace", ""))


@dataclass
class ObjectReference:
    """Typed reference to an object in the template's namespace."""

    name: str
    kind: str
    api_version: str = "v1"

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "kind": self.kind, "apiVersion": self.api_version}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ObjectReference:
        return cls(name=data["name"], kind=data["kind"], api_version=data.get("apiVersion", "v1"))


@dataclass
class TemplateOption:
    """An elective overlay advertised by a template."""

    name: str
    description: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "description": self.description}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TemplateOption:
        return cls(name=data["name"], description=data.get("description", ""))


@dataclass
class TemplateSpec:
    template: dict[str, Any] = field(default_factory=dict)
    options: list[TemplateOption] = field(default_factory=list)
    required: list[str] = field(default_factory=list)
    dependencies: list[ObjectReference] = field(default_factory=list)


@dataclass
class Template:
    """Base workload template with its overlay catalog."""

    kind: ClassVar[str] = "Template"
    api_version: ClassVar[str] = API_VERSION

    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    spec: TemplateSpec = field(default_factory=TemplateSpec)

    def option_names(self) -> set[str]:
        return {option.name for option in self.spec.options}

    def pod_template(self) -> dict[str, Any]:
        """Return a private copy of the base pod template."""
        return normalize_pod_template(self.spec.template)

    def to_dict(self) -> dict[str, Any]:
        spec: dict[str, Any] = {"template": copy.deepcopy(self.spec.template)}
        if self.spec.options:
            spec["options"] = [o.to_dict() for o in self.spec.options]
        if self.spec.required:
            spec["required"] = [{"name": name} for name in self.spec.required]
        if self.spec.dependencies:
            spec["dependencies"] = [d.to_dict() for d in self.spec.dependencies]
        return resource_dict(self, spec=spec)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Template:
        spec = data.get("spec") or {}
        return cls(
            metadata=ObjectMeta.from_dict(data.get("metadata")),
            spec=TemplateSpec(
                template=copy.deepcopy(spec.get("template") or {}),
                options=[TemplateOption.from_dict(o) for o in spec.get("options") or []],
                required=[_reference_name(r) for r in spec.get("required") or []],
                dependencies=[ObjectReference.from_dict(d) for d in spec.get("dependencies") or []],
            ),
        )


@dataclass
class PodDefaultSpec:
    template: dict[str, Any] = field(default_factory=dict)
    dependencies: list[ObjectReference] = field(default_factory=list)


@dataclass
class PodDefault:
    """A named, reusable overlay fragment."""

    kind: ClassVar[str] = "PodDefault"
    api_version: ClassVar[str] = API_VERSION

    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    spec: PodDefaultSpec = field(default_factory=PodDefaultSpec)

    def to_dict(self) -> dict[str, Any]:
        spec: dict[str, Any] = {"template": copy.deepcopy(self.spec.template)}
        if self.spec.dependencies:
            spec["dependencies"] = [d.to_dict() for d in self.spec.dependencies]
        return resource_dict(self, spec=spec)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PodDefault:
        spec = data.get("spec") or {}
        return cls(
            metadata=ObjectMeta.from_dict(data.get("metadata")),
            spec=PodDefaultSpec(
                template=copy.deepcopy(spec.get("template") or {}),
                dependencies=[ObjectReference.from_dict(d) for d in spec.get("dependencies") or []],
            ),
        )


def _reference_name(value: Any) -> str:
    # required entries are written either as {"name": x} or as a bare string
    if isinstance(value, dict):
        return value["name"]
    return str(value)
