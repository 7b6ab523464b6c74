"""
Root Typer application for the alertsync CLI.

Resources live in a local SQLite store (``ALERTSYNC_STORE_PATH``); ``apply``
and ``delete`` play the part of the hosting system, ``reconcile`` and
``run`` drive the reconcilers against New Relic.
"""

from __future__ import annotations

from pathlib import Path

import typer
from typer import Typer

from alertsync.cli.utils import console, fail, get_settings, open_store, output_resources
from alertsync.core.errors import AlertSyncError
from alertsync.core.logging import configure_logging
from alertsync.core.settings import load_settings
from alertsync.domain.manifests import load_manifest_file, resource_class
from alertsync.domain.meta import NamespacedName

app = Typer(
    name="alertsync",
    help="alertsync: keep New Relic alert policies and channels in sync with manifests.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from importlib.metadata import PackageNotFoundError
        from importlib.metadata import version as pkg_version

        from alertsync import __version__

        try:
            v = pkg_version("alertsync")
        except PackageNotFoundError:
            v = __version__
        typer.echo(f"alertsync {v}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    store: Path | None = typer.Option(None, "--store", help="SQLite store path"),  # noqa: UP007
    log_level: str | None = typer.Option(None, "--log-level", help="DEBUG, INFO, WARNING, ERROR"),  # noqa: UP007
) -> None:
    """alertsync CLI: apply manifests, inspect status, run the reconcilers."""
    try:
        settings = load_settings(store_path=store, log_level=log_level)
        configure_logging(
            level=settings.log_level,
            json_format=settings.log_format == "json",
            service="alertsync",
        )
    except Exception as e:
        fail(e)
    ctx.obj = settings


# ── Store commands ───────────────────────────────────────────────────────


@app.command("apply")
def apply(
    ctx: typer.Context,
    files: list[Path] = typer.Option(..., "--filename", "-f", help="YAML manifest (repeatable)"),
) -> None:
    """Create or update resources from YAML manifests.

    Example::

        alertsync apply -f policies.yaml -f channels.yaml
    """
    settings = get_settings(ctx)
    try:
        resources = [resource for path in files for resource in load_manifest_file(path)]
    except AlertSyncError as e:
        fail(e)

    with open_store(settings) as store:
        for resource in resources:
            try:
                stored = store.apply(resource)
            except AlertSyncError as e:
                fail(e)
            console.print(
                f"[green]{stored.kind}[/green] {stored.metadata.namespace}/{stored.metadata.name} "
                f"applied (generation {stored.metadata.generation})"
            )


@app.command("get")
def get(
    ctx: typer.Context,
    kind: str = typer.Argument(..., help="Resource kind, e.g. AlertPolicy"),
    namespace: str | None = typer.Option(None, "--namespace", "-n", help="Limit to one namespace"),  # noqa: UP007
    as_json: bool = typer.Option(False, "--json", help="Output manifests as JSON"),
) -> None:
    """List resources of a kind with their reconcile status."""
    settings = get_settings(ctx)
    try:
        resource_class(kind)
    except AlertSyncError as e:
        fail(e)
    with open_store(settings) as store:
        output_resources(store.list(kind, namespace=namespace), as_json=as_json, title=kind)


@app.command("delete")
def delete(
    ctx: typer.Context,
    kind: str = typer.Argument(..., help="Resource kind"),
    name: str = typer.Argument(..., help="Resource name"),
    namespace: str = typer.Option("default", "--namespace", "-n"),
) -> None:
    """Request deletion; a finalized resource stays until it is reconciled."""
    settings = get_settings(ctx)
    with open_store(settings) as store:
        try:
            remaining = store.request_deletion(kind, NamespacedName(namespace, name))
        except AlertSyncError as e:
            fail(e)
    if remaining is None:
        console.print(f"{kind} {namespace}/{name} removed")
    else:
        console.print(f"{kind} {namespace}/{name} marked for deletion [dim](finalizer pending)[/dim]")


# ── Reconcile commands ───────────────────────────────────────────────────


@app.command("reconcile")
def reconcile(
    ctx: typer.Context,
    kind: str = typer.Argument(..., help="Resource kind"),
    name: str = typer.Argument(..., help="Resource name"),
    namespace: str = typer.Option("default", "--namespace", "-n"),
) -> None:
    """Run one reconcile synchronously and report the outcome."""
    from alertsync.controller import Collaborators, build_reconcilers
    from alertsync.newrelic.client import NewRelicClient

    settings = get_settings(ctx)
    try:
        resource_class(kind)
        client = NewRelicClient.from_settings(settings)
    except AlertSyncError as e:
        fail(e)

    with client, open_store(settings) as store:
        reconciler = build_reconcilers(Collaborators.build(store, client, settings))[kind]
        result = reconciler.reconcile(NamespacedName(namespace, name))

    if result.error is not None:
        fail(result.error)
    if result.requeue:
        console.print(f"[yellow]{kind} {namespace}/{name} needs another pass[/yellow]")
    else:
        console.print(f"[green]{kind} {namespace}/{name} reconciled[/green]")


@app.command("run")
def run(
    ctx: typer.Context,
    workers: int | None = typer.Option(None, "--workers", "-w", help="Concurrent reconcile threads"),  # noqa: UP007
    poll_interval: float | None = typer.Option(None, "--poll-interval", help="Seconds between watch polls"),  # noqa: UP007
    resync: float | None = typer.Option(None, "--resync", help="Seconds between full resyncs (0 = off)"),  # noqa: UP007
) -> None:
    """Start the watch loop and worker pool (blocking).

    Example::

        alertsync run --workers 4 --poll-interval 2
    """
    from alertsync.controller import Collaborators
    from alertsync.execution.manager import ControllerManager
    from alertsync.execution.queue import WorkQueue
    from alertsync.execution.retry import ExponentialBackoff
    from alertsync.newrelic.client import NewRelicClient

    settings = get_settings(ctx)
    workers = workers or settings.workers
    poll_interval = poll_interval or settings.poll_interval_seconds
    resync = settings.resync_seconds if resync is None else resync

    try:
        client = NewRelicClient.from_settings(settings)
    except AlertSyncError as e:
        fail(e)

    console.print(
        f"[bold green]Starting alertsync[/bold green] "
        f"(threads={workers}, poll={poll_interval}s, store={settings.store_path})"
    )
    with client, open_store(settings) as store:
        manager = ControllerManager.build(
            store,
            Collaborators.build(store, client, settings),
            queue=WorkQueue(ExponentialBackoff.for_requeues(settings)),
            workers=workers,
            poll_interval=poll_interval,
            resync_seconds=resync,
        )
        try:
            manager.start()
        except KeyboardInterrupt:
            console.print("\n[yellow]Stopped by user[/yellow]")
