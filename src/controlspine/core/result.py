"""Outcome of a single reconciliation pass."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ReconcileResult:
    """What the dispatcher should do after a pass.

    ``requeue_after`` is the delay in seconds before the object should be
    reconciled again; ``None`` means "only on the next observed change".
    """

    requeue_after: float | None = None

    @property
    def requeue(self) -> bool:
        return self.requeue_after is not None


__all__ = ["ReconcileResult"]
