"""Controller settings.

``ControllerSettings`` holds the few knobs the reconcilers and the CLI need.
Values are read from ``CONTROLSPINE_*`` environment variables and an optional
``.env`` file.

Fields
──────
log_level              : Structlog log level
json_logs              : Force JSON (True) / console (False) output; auto when unset
requeue_after_seconds  : Delay before an incomplete Execution is reconciled again
default_parallelism    : Concurrency bound used when an Execution leaves it unset
max_parallelism        : Upper clamp applied to an Execution's parallelism
system_namespace       : Namespace whose templates every namespace may reference
store_path             : SQLite file used by the CLI's object store
gc_on_pass             : Run the garbage collector after each manager pass

Examples:
    >>> from controlspine.core.settings import get_settings
    >>> get_settings().requeue_after_seconds
    10.0
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ControllerSettings(BaseSettings):
    """Common settings shared by the controllers and the CLI."""

    model_config = SettingsConfigDict(
        env_prefix="CONTROLSPINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"
    json_logs: bool | None = None

    # ── Execution ────────────────────────────────────────────────
    requeue_after_seconds: float = Field(default=10.0, gt=0)
    default_parallelism: int = Field(default=20, ge=1)
    max_parallelism: int = Field(default=20, ge=1)

    # ── Templates ────────────────────────────────────────────────
    system_namespace: str = "controlspine-system"

    # ── Storage ──────────────────────────────────────────────────
    store_path: Path = Field(
        default_factory=lambda: Path.home() / ".controlspine" / "store.db",
        description="SQLite file backing the CLI object store",
    )
    gc_on_pass: bool = True


@lru_cache(maxsize=1)
def get_settings() -> ControllerSettings:
    """Return the process-wide settings (cached)."""
    return ControllerSettings()


__all__ = ["ControllerSettings", "get_settings"]
