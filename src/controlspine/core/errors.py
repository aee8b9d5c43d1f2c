"""
Structured error types for controlspine.

Every failure a reconciler can hit is classified so the external dispatcher
can decide between "create it", "treat as success", "re-reconcile later" and
"give up and surface it". Instead of generic exceptions, ControlError and its
subclasses carry:
- **Category:** What kind of error (not found, conflict, validation, ...)
- **Retryable:** Whether re-reconciling can make the error go away
- **Context:** Resource kind/name/namespace, referrer, option, position
- **Cause:** Chained underlying exception for root cause analysis

Manifesto:
    - **Typed taxonomy:** Store outcomes map onto distinct exception types
    - **No internal retries:** Retryable errors are surfaced, never looped on
    - **Rich context:** Errors carry enough metadata to diagnose a failed pass
    - **Error chaining:** Preserve original exceptions while adding context

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                       ControlError                              │
        │  (category, retryable, context, cause)                          │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                 │
        │  NotFoundError     AlreadyExistsError   ConflictError           │
        │  (NOT_FOUND)       (ALREADY_EXISTS)     (CONFLICT, retryable)   │
        │                                                                 │
        │  ForbiddenError    StoreError           OverlayError            │
        │  (FORBIDDEN)       (STORE)              (OVERLAY)               │
        │                                                                 │
        │  ValidationError (VALIDATION, retryable)                        │
        │       │                                                         │
        │  OptionNotFoundError   DuplicateTaskNameError   DagError        │
        └─────────────────────────────────────────────────────────────────┘

Examples:
    >>> error = NotFoundError("Template", "default", "jupyter")
    >>> error.category
    <ErrorCategory.NOT_FOUND: 'NOT_FOUND'>
    >>> error.context.name
    'jupyter'

    >>> err = OptionNotFoundError("gpu").with_context(referrer="nb-1", position=0)
    >>> err.to_dict()["context"]["referrer"]
    'nb-1'

Guardrails:
    ❌ DON'T: Retry a ConflictError inside a reconciliation
    ✅ DO: Let it propagate so the dispatcher re-reconciles

    ❌ DON'T: Swallow NotFoundError outside of "create if missing" paths
    ✅ DO: Catch it only where absence is an expected state

Tags:
    error-handling, exception-hierarchy, object-store, reconciliation
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """
    Standard error categories for classification and routing.

    Categories mirror the outcomes an object store reports plus the
    domain-level failures raised while resolving templates and graphs.
    """

    # Object store outcomes
    NOT_FOUND = "NOT_FOUND"
    ALREADY_EXISTS = "ALREADY_EXISTS"
    CONFLICT = "CONFLICT"
    FORBIDDEN = "FORBIDDEN"
    STORE = "STORE"

    # Domain errors
    VALIDATION = "VALIDATION"
    OVERLAY = "OVERLAY"

    # Internal errors
    INTERNAL = "INTERNAL"


@dataclass
class ErrorContext:
    """
    Structured metadata context for errors.

    Attributes:
        kind: Resource kind involved (e.g. "Template", "Job")
        namespace: Namespace of the resource
        name: Name of the resource
        referrer: Referrer on whose behalf the operation ran
        option: Overlay/option name being applied
        position: Position of the option in its declaring list
        operation: Store or reconciler operation ("get", "create", ...)
        metadata: Additional key-value pairs
    """

    kind: str | None = None
    namespace: str | None = None
    name: str | None = None
    referrer: str | None = None
    option: str | None = None
    position: int | None = None
    operation: str | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["kind", "namespace", "name", "referrer", "option", "position", "operation"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class ControlError(Exception):
    """
    Base exception for all controlspine errors.

    Subclasses set ``default_category`` and ``default_retryable`` to give
    sensible defaults for their domain; callers can override both.

    Examples:
        >>> error = ControlError("Something went wrong")
        >>> error.retryable
        False
        >>> error.with_context(kind="Revision", name="nb-1a2b").context.kind
        'Revision'
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> ControlError:
        """
        Add context to this error (fluent API).

        Usage:
            raise StoreError("write failed").with_context(
                kind="Revision", name="nb-1a2b", operation="create"
            )
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# OBJECT STORE ERRORS
# =============================================================================


class _ResourceError(ControlError):
    """Error about one identified resource."""

    verb = ""

    def __init__(self, kind: str, namespace: str, name: str, message: str | None = None, **kwargs: Any):
        super().__init__(message or f"{kind} {namespace}/{name} {self.verb}", **kwargs)
        self.with_context(kind=kind, namespace=namespace, name=name)


class NotFoundError(_ResourceError):
    """The resource does not exist (yet)."""

    default_category = ErrorCategory.NOT_FOUND
    verb = "not found"


class AlreadyExistsError(_ResourceError):
    """A resource with the same identity already exists."""

    default_category = ErrorCategory.ALREADY_EXISTS
    verb = "already exists"


class ConflictError(_ResourceError):
    """The resource changed since it was read (stale resource version)."""

    default_category = ErrorCategory.CONFLICT
    default_retryable = True
    verb = "was modified concurrently"


class ForbiddenError(_ResourceError):
    """The store refused the operation. Never retried."""

    default_category = ErrorCategory.FORBIDDEN
    verb = "access forbidden"


class StoreError(ControlError):
    """Unclassified failure from the backing store."""

    default_category = ErrorCategory.STORE
    default_retryable = True


# =============================================================================
# DOMAIN ERRORS
# =============================================================================


class ValidationError(ControlError):
    """
    A resource references something that cannot be resolved.

    Retryable: the referenced template, option or object may be fixed by an
    operator, and the dispatcher backs off between attempts.
    """

    default_category = ErrorCategory.VALIDATION
    default_retryable = True


class OptionNotFoundError(ValidationError):
    """An elected option is missing from the template's option catalog."""

    MESSAGE = "the referenced option was not found in the template spec"

    def __init__(self, option: str, **kwargs: Any):
        self.option = option
        super().__init__(f"{self.MESSAGE}: {option}", **kwargs)
        self.with_context(option=option)


class DuplicateTaskNameError(ValidationError):
    """Two tasks in one Dag share a name."""

    MESSAGE = "duplicate task name"

    def __init__(self, task: str, **kwargs: Any):
        self.task = task
        super().__init__(f"{self.MESSAGE}: task name {task!r} is duplicated", retryable=False, **kwargs)


class DagError(ValidationError):
    """The Dag cannot be traversed (missing entrypoint, unknown dependency, cycle)."""


class OverlayError(ControlError):
    """Overlay content is structurally malformed."""

    default_category = ErrorCategory.OVERLAY
    default_retryable = False


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def is_retryable(error: Exception) -> bool:
    """Check whether re-reconciling may resolve the error."""
    if isinstance(error, ControlError):
        return error.retryable
    return False


def categorize_error(error: Exception) -> ErrorCategory:
    """Return the category of an error (INTERNAL for foreign exceptions)."""
    if isinstance(error, ControlError):
        return error.category
    return ErrorCategory.INTERNAL


__all__ = [
    "AlreadyExistsError",
    "ConflictError",
    "ControlError",
    "DagError",
    "DuplicateTaskNameError",
    "ErrorCategory",
    "ErrorContext",
    "ForbiddenError",
    "NotFoundError",
    "OptionNotFoundError",
    "OverlayError",
    "StoreError",
    "ValidationError",
    "categorize_error",
    "is_retryable",
]
