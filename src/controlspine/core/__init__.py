"""Core primitives: errors, logging, settings, hashing and protocols.

Architecture::

    errors.py      Structured error hierarchy (ControlError and subclasses)
    logging.py     structlog configuration and context binding
    settings.py    ControllerSettings (pydantic-settings, CONTROLSPINE_ prefix)
    hashing.py     Canonical JSON + content hashes for revision names
    protocols.py   Referrer and ObjectStore protocols
"""

from controlspine.core.errors import (
    AlreadyExistsError,
    ConflictError,
    ControlError,
    DagError,
    DuplicateTaskNameError,
    ErrorCategory,
    ForbiddenError,
    NotFoundError,
    OptionNotFoundError,
    OverlayError,
    StoreError,
    ValidationError,
    is_retryable,
)
from controlspine.core.hashing import canonical_json, compute_content_hash
from controlspine.core.logging import LogContext, configure_logging, get_logger
from controlspine.core.protocols import ObjectStore, Referrer
from controlspine.core.settings import ControllerSettings, get_settings

__all__ = [
    "AlreadyExistsError",
    "ConflictError",
    "ControlError",
    "ControllerSettings",
    "DagError",
    "DuplicateTaskNameError",
    "ErrorCategory",
    "ForbiddenError",
    "LogContext",
    "NotFoundError",
    "ObjectStore",
    "OptionNotFoundError",
    "OverlayError",
    "Referrer",
    "StoreError",
    "ValidationError",
    "canonical_json",
    "compute_content_hash",
    "configure_logging",
    "get_logger",
    "get_settings",
    "is_retryable",
]
