"""
CLI: ``controlspine revisions``: inspect and manage notebook revisions.
"""

from __future__ import annotations

import typer

from controlspine.cli.utils import console, fail, open_store, print_json, print_table
from controlspine.core.errors import ControlError
from controlspine.resources.meta import format_time
from controlspine.revision.manager import TEMPLATE_ANNOTATION, RevisionManager

app = typer.Typer(no_args_is_help=True)


@app.command("list")
def list_revisions(
    notebook: str = typer.Argument(..., help="Notebook name"),
    namespace: str = typer.Option("default", "--namespace", "-n"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """List a notebook's revisions, newest first."""
    store = open_store(database)
    try:
        referrer = store.get("Notebook", namespace, notebook)
        revisions = list(reversed(RevisionManager(store).list(referrer)))
    except ControlError as e:
        fail(e)
    finally:
        store.close()

    if json_out:
        print_json([r.to_dict() for r in revisions])
        return
    rows = [
        {
            "name": r.metadata.name,
            "elected": r.elected,
            "template": r.metadata.annotations.get(TEMPLATE_ANNOTATION, ""),
            "created": format_time(r.metadata.creation_timestamp),
        }
        for r in revisions
    ]
    print_table(rows, title=f"Revisions: {namespace}/{notebook}")


@app.command()
def elect(
    notebook: str = typer.Argument(..., help="Notebook name"),
    namespace: str = typer.Option("default", "--namespace", "-n"),
    database: str | None = typer.Option(None, "--database", "-d"),
) -> None:
    """Elect the revision the notebook should run."""
    store = open_store(database)
    try:
        referrer = store.get("Notebook", namespace, notebook)
        revision = RevisionManager(store).elect_revision(referrer)
    except ControlError as e:
        fail(e)
    finally:
        store.close()
    console.print(f"elected [green]{revision.metadata.name}[/green]")


@app.command()
def trim(
    notebook: str = typer.Argument(..., help="Notebook name"),
    namespace: str = typer.Option("default", "--namespace", "-n"),
    database: str | None = typer.Option(None, "--database", "-d"),
) -> None:
    """Delete revisions beyond the notebook's history limit."""
    store = open_store(database)
    try:
        referrer = store.get("Notebook", namespace, notebook)
        deleted = RevisionManager(store).trim_revisions(referrer)
    except ControlError as e:
        fail(e)
    finally:
        store.close()

    if not deleted:
        console.print("[dim]Nothing to trim.[/dim]")
    for name in deleted:
        console.print(f"deleted {name}")
