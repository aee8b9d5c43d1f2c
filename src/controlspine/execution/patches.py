"""Caller patches the execution reconciler layers onto task pod templates."""

from __future__ import annotations

from typing import Any

MAIN_CONTAINER = "main"


def restart_patch() -> dict[str, Any]:
    """Pods of a task run once."""
    return {"spec": {"restartPolicy": "Never"}}


def command_patch(command: list[str], container: str = MAIN_CONTAINER) -> dict[str, Any]:
    """Override the command of ``container`` (added if the template lacks it)."""
    return {"spec": {"containers": [{"name": container, "command": list(command)}]}}
