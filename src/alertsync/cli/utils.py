"""
CLI utility helpers: settings, store/client wiring and output formatting.
"""

from __future__ import annotations

import json
from typing import Any, NoReturn

import typer
from rich.console import Console
from rich.table import Table

from alertsync.core.errors import AlertSyncError
from alertsync.core.settings import OperatorSettings, load_settings
from alertsync.domain.meta import Resource
from alertsync.store.sqlite import SqliteResourceStore

console = Console()
err_console = Console(stderr=True)


# ── Wiring helpers ───────────────────────────────────────────────────────


def get_settings(ctx: typer.Context) -> OperatorSettings:
    """Settings built by the root callback (or fresh ones outside the app)."""
    if isinstance(ctx.obj, OperatorSettings):
        return ctx.obj
    return load_settings()


def open_store(settings: OperatorSettings) -> SqliteResourceStore:
    return SqliteResourceStore(settings.store_path)


def fail(error: Exception) -> NoReturn:
    """Print an error and exit 1."""
    if isinstance(error, AlertSyncError):
        err_console.print(f"[bold red]Error[/bold red] ({type(error).__name__}): {error.message}")
    else:
        err_console.print(f"[bold red]Error[/bold red]: {error}")
    raise typer.Exit(code=1)


# ── Output helpers ───────────────────────────────────────────────────────


def status_row(resource: Resource) -> dict[str, Any]:
    status = resource.status
    return {
        "namespace": resource.metadata.namespace,
        "name": resource.metadata.name,
        "state": status.state.value if status.state else "",
        "external_id": status.external_id,
        "config_version": status.config_version,
        "generation": resource.metadata.generation,
        "deleting": resource.is_deleting,
        "last_error": status.last_error,
    }


def output_resources(resources: list[Resource], *, as_json: bool = False, title: str = "") -> None:
    if as_json:
        console.print_json(json.dumps([r.to_manifest() for r in resources], default=str))
        return
    if not resources:
        console.print("[dim]No items.[/dim]")
        return
    _print_table([status_row(r) for r in resources], title=title)


def _print_table(rows: list[dict[str, Any]], *, title: str = "") -> None:
    table = Table(title=title or None, show_lines=False, pad_edge=False)
    for col in rows[0]:
        table.add_column(col, overflow="fold")
    for row in rows:
        table.add_row(*("" if v is None else str(v) for v in row.values()))
    console.print(table)
