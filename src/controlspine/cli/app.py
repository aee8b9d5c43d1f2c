"""
Root Typer application for the controlspine CLI.

All commands work against a SQLite object store (``--database``, default
``settings.store_path``), so manifests applied in one invocation are seen
by the next.
"""

from __future__ import annotations

from pathlib import Path

import typer
from typer import Typer

from controlspine import __version__
from controlspine.cli import reconcile, revisions
from controlspine.cli.utils import console, err_console, fail, load_manifests, open_store, print_json, print_table
from controlspine.core.errors import AlreadyExistsError, ControlError
from controlspine.core.logging import configure_logging
from controlspine.core.settings import get_settings
from controlspine.execution.planner import plan_tasks
from controlspine.gc import GarbageCollector
from controlspine.manager import Manager
from controlspine.resources.dag import Dag, validate_dag
from controlspine.resources.meta import format_time
from controlspine.resources.registry import resource_class

app = Typer(
    name="controlspine",
    help="controlspine: DAG executions and content-addressed template revisions.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"controlspine {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """controlspine CLI: apply manifests, reconcile, manage revisions."""
    settings = get_settings()
    configure_logging(level=settings.log_level, json_format=settings.json_logs)


# ── Commands ─────────────────────────────────────────────────────────────


@app.command()
def apply(
    files: list[Path] = typer.Argument(..., exists=True, dir_okay=False, help="YAML manifests"),
    namespace: str = typer.Option("default", "--namespace", "-n", help="Namespace for objects without one"),
    database: str | None = typer.Option(None, "--database", "-d"),
) -> None:
    """Create or update every object in the given manifests."""
    store = open_store(database)
    try:
        for resource in load_manifests(files, default_namespace=namespace):
            if isinstance(resource, Dag):
                validate_dag(resource)
            meta = resource.metadata
            try:
                store.create(resource)
                action = "created"
            except AlreadyExistsError:
                current = store.get(resource.kind, meta.namespace, meta.name)
                meta.resource_version = current.metadata.resource_version
                store.update(resource)
                action = "configured"
            console.print(f"{resource.kind.lower()} [cyan]{meta.namespace}/{meta.name}[/cyan] {action}")
    except ControlError as e:
        fail(e)
    finally:
        store.close()


@app.command()
def get(
    kind: str = typer.Argument(..., help="Resource kind, e.g. Execution"),
    namespace: str | None = typer.Option(None, "--namespace", "-n", help="Limit to one namespace"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """List stored objects of one kind."""
    cls = resource_class(kind)
    kind_name = cls.kind if cls is not None else kind
    store = open_store(database)
    try:
        objects = store.list(kind_name, namespace=namespace)
    except ControlError as e:
        fail(e)
    finally:
        store.close()

    if json_out:
        print_json([obj.to_dict() for obj in objects])
        return
    rows = [
        {
            "namespace": obj.metadata.namespace,
            "name": obj.metadata.name,
            "version": obj.metadata.resource_version,
            "created": format_time(obj.metadata.creation_timestamp),
        }
        for obj in objects
    ]
    print_table(rows, title=kind_name)


@app.command()
def gc(
    database: str | None = typer.Option(None, "--database", "-d"),
) -> None:
    """Delete objects whose controlling owner no longer exists."""
    store = open_store(database)
    try:
        collected = GarbageCollector(store).collect()
    except ControlError as e:
        fail(e)
    finally:
        store.close()

    if not collected:
        console.print("[dim]No orphans.[/dim]")
    for item in collected:
        console.print(f"deleted {item}")


@app.command("validate-dag")
def validate_dag_file(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="YAML file with Dag documents"),
) -> None:
    """Check Dags for duplicate task names, unknown dependencies and cycles."""
    dags = [r for r in load_manifests([file]) if isinstance(r, Dag)]
    if not dags:
        err_console.print("[yellow]No Dag documents found.[/yellow]")
        raise typer.Exit(code=1)
    for dag in dags:
        try:
            validate_dag(dag)
            order = plan_tasks(dag)
        except ControlError as e:
            fail(e)
        console.print(f"dag [cyan]{dag.metadata.name}[/cyan] ok: {' -> '.join(t.name for t in order)}")


@app.command()
def run(
    once: bool = typer.Option(False, "--once", help="Run a single pass and exit"),
    interval: float = typer.Option(5.0, "--interval", "-i", min=0.1, help="Seconds between passes"),
    database: str | None = typer.Option(None, "--database", "-d"),
) -> None:
    """Run every controller against the store."""
    store = open_store(database)
    manager = Manager(store)
    try:
        if once:
            manager.run_once()
        else:
            manager.run(interval=interval)
    except KeyboardInterrupt:
        console.print("[dim]Interrupted.[/dim]")
    finally:
        store.close()

    stats = manager.stats
    console.print(
        f"passes={stats.passes} reconciled={stats.reconciled} errors={stats.errors} collected={stats.collected}"
    )


# ── Sub-command registration ─────────────────────────────────────────────

app.add_typer(reconcile.app, name="reconcile", help="Run one reconciliation pass.")
app.add_typer(revisions.app, name="revisions", help="Notebook revision management.")
