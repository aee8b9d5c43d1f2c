"""
CLI utility helpers: store access, manifest loading and output formatting.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, NoReturn

import typer
import yaml
from rich.console import Console
from rich.table import Table

from controlspine.core.errors import ControlError
from controlspine.core.settings import get_settings
from controlspine.resources.registry import resource_from_dict
from controlspine.store.sqlite import SqliteObjectStore

console = Console()
err_console = Console(stderr=True)


# ── Store helper ─────────────────────────────────────────────────────────


def open_store(database: str | None = None) -> SqliteObjectStore:
    """Open the CLI object store.  Defaults to ``settings.store_path``."""
    return SqliteObjectStore(database or get_settings().store_path)


# ── Manifest helpers ─────────────────────────────────────────────────────


def load_manifests(paths: list[Path], *, default_namespace: str = "default") -> list[Any]:
    """Parse every YAML document in ``paths`` into typed resources."""
    resources: list[Any] = []
    for path in paths:
        with path.open(encoding="utf-8") as fh:
            for document in yaml.safe_load_all(fh):
                if not document:
                    continue
                resource = resource_from_dict(document)
                if not resource.metadata.namespace:
                    resource.metadata.namespace = default_namespace
                resources.append(resource)
    return resources


# ── Output helpers ───────────────────────────────────────────────────────


def fail(error: ControlError) -> NoReturn:
    """Print a classified error and exit non-zero."""
    err_console.print(f"[bold red]Error[/bold red] ({error.category.value}): {error.message}")
    raise typer.Exit(code=1)


def print_json(payload: Any) -> None:
    console.print_json(json.dumps(payload, default=str))


def print_table(rows: list[dict[str, Any]], *, title: str = "") -> None:
    """Render a list of dicts as a Rich table."""
    if not rows:
        console.print("[dim]No items.[/dim]")
        return
    table = Table(title=title or None, show_lines=False, pad_edge=False)
    for col in rows[0]:
        table.add_column(col, overflow="fold")
    for row in rows:
        table.add_row(*(str(v) for v in row.values()))
    console.print(table)
