"""
CLI: ``controlspine reconcile``: run a single reconciliation pass.
"""

from __future__ import annotations

import typer

from controlspine.cli.utils import console, fail, open_store
from controlspine.core.errors import ControlError
from controlspine.execution.reconciler import ExecutionReconciler
from controlspine.notebook.reconciler import NotebookReconciler
from controlspine.resources.meta import ObjectKey

app = typer.Typer(no_args_is_help=True)


@app.command()
def execution(
    name: str = typer.Argument(..., help="Execution name"),
    namespace: str = typer.Option("default", "--namespace", "-n"),
    database: str | None = typer.Option(None, "--database", "-d"),
) -> None:
    """Reconcile one Execution."""
    store = open_store(database)
    try:
        result = ExecutionReconciler(store).reconcile(ObjectKey(namespace, name))
        run = store.get("Execution", namespace, name)
    except ControlError as e:
        fail(e)
    finally:
        store.close()

    state = "succeeded" if run.status.succeeded else "failed" if run.status.completed else "running"
    console.print(f"execution [cyan]{namespace}/{name}[/cyan]: {state}")
    for task, status in sorted(run.status.tasks.items()):
        console.print(f"  {task}: completed={status.completed} succeeded={status.succeeded}")
    if result.requeue:
        console.print(f"[dim]requeue after {result.requeue_after:g}s[/dim]")


@app.command()
def notebook(
    name: str = typer.Argument(..., help="Notebook name"),
    namespace: str = typer.Option("default", "--namespace", "-n"),
    database: str | None = typer.Option(None, "--database", "-d"),
) -> None:
    """Reconcile one Notebook."""
    store = open_store(database)
    try:
        NotebookReconciler(store).reconcile(ObjectKey(namespace, name))
        nb = store.get("Notebook", namespace, name)
    except ControlError as e:
        fail(e)
    finally:
        store.close()

    console.print(f"notebook [cyan]{namespace}/{name}[/cyan]: {nb.status.phase or 'Pending'}")
