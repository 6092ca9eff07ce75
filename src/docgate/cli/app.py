"""
Root Typer application for the docgate CLI.

Commands:
    docgate serve     start the gateway under uvicorn
    docgate routes    list the REST paths and RPC methods a configuration exposes

Options given on the command line are exported as ``DOCGATE_*`` environment
variables so the app factory, which reads :class:`GatewaySettings`, sees the
same configuration in every uvicorn worker.
"""

from __future__ import annotations

import json
import os

import typer
from rich.console import Console
from rich.table import Table

from docgate import __version__
from docgate.api.app import rest_path
from docgate.api.deps import get_settings
from docgate.core.logging import configure_logging
from docgate.core.query import Operation
from docgate.rest.handler import allowed_http_methods
from docgate.rpc.interface import RPC_OPERATIONS

console = Console()

app = typer.Typer(
    name="docgate",
    help="docgate: REST and JSON-RPC gateway over document collections.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"docgate {__version__}")
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
    """docgate CLI."""


def _export_settings(
    database: str | None,
    collections: list[str] | None,
    upsert: bool | None,
) -> None:
    if database is not None:
        os.environ["DOCGATE_DATABASE_PATH"] = database
    if collections:
        os.environ["DOCGATE_COLLECTIONS"] = json.dumps(collections)
    if upsert is not None:
        os.environ["DOCGATE_UPSERT"] = "true" if upsert else "false"
    get_settings.cache_clear()


@app.command("serve")
def serve(
    host: str | None = typer.Option(None, "--host", "-h", help="Bind address"),
    port: int | None = typer.Option(None, "--port", "-p", help="Bind port"),
    database: str | None = typer.Option(None, "--database", "-d", help="SQLite database file"),
    collection: list[str] | None = typer.Option(None, "--collection", "-c", help="Collection to expose (repeatable)"),
    upsert: bool | None = typer.Option(None, "--upsert/--no-upsert", help="Let PUT create missing documents"),
    reload: bool = typer.Option(False, "--reload", help="Auto-reload on changes"),
    workers: int = typer.Option(1, "--workers", "-w", help="Number of workers"),
) -> None:
    """Start the docgate server."""
    import uvicorn

    _export_settings(database, collection, upsert)
    settings = get_settings()
    configure_logging(level=settings.log_level, json_format=settings.log_json)

    host = host or settings.host
    port = port or settings.port
    console.print(f"[bold green]Starting docgate[/bold green] on {host}:{port}")
    if settings.database_path == ":memory:" and workers > 1:
        console.print("[yellow]In-memory database: each worker gets its own store[/yellow]")

    uvicorn.run(
        "docgate.api:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        workers=workers,
        log_level=settings.log_level.lower(),
    )


@app.command("routes")
def routes(
    collection: list[str] | None = typer.Option(None, "--collection", "-c", help="Collection to expose (repeatable)"),
) -> None:
    """Print the REST paths and RPC methods the current configuration exposes."""
    _export_settings(None, collection, None)
    settings = get_settings()

    allowed = frozenset(settings.allowed_methods) if settings.allowed_methods is not None else frozenset(Operation)
    verbs = " ".join(allowed_http_methods(allowed))

    table = Table(title="docgate routes")
    table.add_column("Collection", style="cyan")
    table.add_column("REST path")
    table.add_column("RPC methods", style="green")
    for name in settings.collections:
        methods = "\n".join(f"{settings.rpc_method_prefix}{name}:{op.value}" for op in RPC_OPERATIONS)
        table.add_row(name, rest_path(settings, name) + "/{id}", methods)

    console.print(table)
    console.print(f"HTTP verbs: {verbs}")
    console.print(f"JSON-RPC endpoint: [bold]POST {settings.rpc_path}[/bold]")


if __name__ == "__main__":
    app()
