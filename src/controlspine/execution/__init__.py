"""Dag execution: planning, task referrers and the Execution reconciler."""

from controlspine.execution.patches import command_patch, restart_patch
from controlspine.execution.planner import plan_tasks, reachable_tasks
from controlspine.execution.reconciler import ExecutionReconciler, job_name, task_status
from controlspine.execution.tasks import NamespacedTask

__all__ = [
    "ExecutionReconciler",
    "NamespacedTask",
    "command_patch",
    "job_name",
    "plan_tasks",
    "reachable_tasks",
    "restart_patch",
    "task_status",
]
