"""
Overlay composition: strategic merge of pod templates.

A pod template is layered from a base (the Template) and a sequence of
sparse overlays (required fragments, elected options, caller patches).
Each layer is applied with ``strategic_merge``:

- mappings merge recursively; an overlay value of ``None`` deletes the key
- lists whose elements have a natural identity merge element by element
  (``containers`` by name, ``volumeMounts`` by mountPath, ...); other
  lists are replaced wholesale
- ``{"$patch": "delete"}`` inside a keyed list element removes that element;
  ``{"$patch": "replace"}`` on a mapping replaces instead of merging
- ``spec.containers`` is required: an overlay that leaves it absent, ``None``
  or empty never clears the base containers
- a value whose type conflicts with the base (mapping, list or scalar), or a
  non-list value for a keyed list, raises ``OverlayError``

Inputs are never mutated.

Examples:
    >>> base = {"spec": {"containers": [{"name": "main", "image": "a"}]}}
    >>> overlay = {"spec": {"containers": [{"name": "main", "image": "b"}]}}
    >>> merge_pod_template(base, overlay)["spec"]["containers"]
    [{'name': 'main', 'image': 'b'}]

Tags:
    overlay, strategic-merge, pod-template
"""

from __future__ import annotations

import copy
from collections.abc import Iterable, Mapping
from typing import Any

from controlspine.core.errors import OverlayError
from controlspine.resources.template import normalize_pod_template

PATCH_DIRECTIVE = "$patch"
DELETE = "delete"
REPLACE = "replace"

# list field name -> key identifying its elements
MERGE_KEYS: dict[str, str] = {
    "containers": "name",
    "initContainers": "name",
    "ephemeralContainers": "name",
    "env": "name",
    "volumes": "name",
    "imagePullSecrets": "name",
    "volumeMounts": "mountPath",
    "volumeDevices": "devicePath",
    "ports": "containerPort",
    "hostAliases": "ip",
}

REQUIRED_FIELDS: frozenset[tuple[str, ...]] = frozenset({("spec", "containers")})


def strategic_merge(base: Mapping[str, Any], overlay: Mapping[str, Any]) -> dict[str, Any]:
    """Return ``base`` with ``overlay`` merged into it."""
    if not isinstance(base, Mapping):
        raise OverlayError(f"base must be a mapping, got {type(base).__name__}")
    if not isinstance(overlay, Mapping):
        raise OverlayError(f"overlay must be a mapping, got {type(overlay).__name__}")
    return _merge_map(base, overlay, ())


def merge_pod_template(base: Mapping[str, Any], overlay: Mapping[str, Any] | None) -> dict[str, Any]:
    """Merge a sparse pod template overlay into a pod template."""
    if overlay is None:
        return normalize_pod_template(base)
    return normalize_pod_template(strategic_merge(base, overlay))


def compose(base: Mapping[str, Any], overlays: Iterable[Mapping[str, Any] | None]) -> dict[str, Any]:
    """Apply ``overlays`` to ``base`` in order."""
    result = normalize_pod_template(base)
    for overlay in overlays:
        result = merge_pod_template(result, overlay)
    return result


def apply_resource_requests(template: Mapping[str, Any], requests: Mapping[str, str]) -> dict[str, Any]:
    """Set resource requests on the first container of a pod template.

    Keys in ``requests`` overwrite the template's; other requests are kept.
    A template without containers is returned unchanged.
    """
    result = normalize_pod_template(template)
    containers = result["spec"].get("containers") or []
    if not isinstance(containers, list):
        raise OverlayError(f"spec.containers must be a list, got {type(containers).__name__}")
    if not requests or not containers:
        return result
    first = containers[0]
    if not isinstance(first, dict):
        raise OverlayError("spec.containers[0] must be a mapping")
    resources = first.setdefault("resources", {})
    resources.setdefault("requests", {}).update({k: str(v) for k, v in requests.items()})
    return result


# =============================================================================
# MERGE INTERNALS
# =============================================================================


def _merge_map(base: Mapping[str, Any], patch: Mapping[str, Any], path: tuple[str, ...]) -> dict[str, Any]:
    if patch.get(PATCH_DIRECTIVE) == REPLACE:
        return _clean(patch)

    result = copy.deepcopy(dict(base))
    for key, value in patch.items():
        if key == PATCH_DIRECTIVE:
            continue
        field_path = (*path, key)

        if field_path in REQUIRED_FIELDS and not value:
            continue

        if value is None:
            result.pop(key, None)
            continue

        current = result.get(key)
        if key in MERGE_KEYS and not isinstance(value, list):
            raise _type_conflict(field_path, [], value)
        if isinstance(value, Mapping):
            if current is None:
                result[key] = _clean(value)
            elif isinstance(current, Mapping):
                result[key] = _merge_map(current, value, field_path)
            else:
                raise _type_conflict(field_path, current, value)
        elif isinstance(value, list):
            merge_key = MERGE_KEYS.get(key)
            if isinstance(current, Mapping):
                raise _type_conflict(field_path, current, value)
            if merge_key and isinstance(current, list) and _is_keyed(current, merge_key):
                result[key] = _merge_keyed_list(current, value, merge_key, field_path)
            else:
                result[key] = _clean(value)
        else:
            if isinstance(current, (Mapping, list)):
                raise _type_conflict(field_path, current, value)
            result[key] = copy.deepcopy(value)
    return result


def _type_conflict(path: tuple[str, ...], base: Any, value: Any) -> OverlayError:
    return OverlayError(f"cannot merge {type(value).__name__} into {type(base).__name__} at {'.'.join(path)}")


def _merge_keyed_list(
    base: list[Any],
    patch: list[Any],
    merge_key: str,
    path: tuple[str, ...],
) -> list[Any]:
    result = copy.deepcopy(base)
    for item in patch:
        if not isinstance(item, Mapping) or merge_key not in item:
            raise OverlayError(f"elements of {'.'.join(path)} must be mappings with {merge_key!r}")
        index = _index_of(result, merge_key, item[merge_key])
        if item.get(PATCH_DIRECTIVE) == DELETE:
            if index is not None:
                del result[index]
        elif index is None:
            result.append(_clean(item))
        else:
            result[index] = _merge_map(result[index], item, path)
    return result


def _index_of(items: list[Any], merge_key: str, value: Any) -> int | None:
    for index, item in enumerate(items):
        if item.get(merge_key) == value:
            return index
    return None


def _is_keyed(items: list[Any], merge_key: str) -> bool:
    return all(isinstance(item, Mapping) and merge_key in item for item in items)


def _clean(value: Any) -> Any:
    """Deep copy ``value`` with patch directives removed."""
    if isinstance(value, Mapping):
        return {k: _clean(v) for k, v in value.items() if k != PATCH_DIRECTIVE and v is not None}
    if isinstance(value, list):
        return [
            _clean(item)
            for item in value
            if not (isinstance(item, Mapping) and item.get(PATCH_DIRECTIVE) == DELETE)
        ]
    return copy.deepcopy(value)
