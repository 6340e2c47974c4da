"""docsift command line: run the MCP server, the crawl worker, and admin tasks."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from functools import wraps
from typing import Annotated, ParamSpec, TypeVar

import typer
from rich.console import Console
from rich.table import Table

from docsift import configure_logging
from docsift.config import settings

NEON_CYAN = "#80ffea"
ELECTRIC_PURPLE = "#e135ff"
SUCCESS_GREEN = "#50fa7b"
ERROR_RED = "#ff6363"

console = Console()

app = typer.Typer(
    name="docsift",
    help="docsift - documentation crawler and hybrid search over MCP",
    add_completion=False,
    no_args_is_help=True,
)


def success(message: str) -> None:
    console.print(f"[{SUCCESS_GREEN}]✓[/{SUCCESS_GREEN}] {message}")


def error(message: str) -> None:
    console.print(f"[{ERROR_RED}]✗[/{ERROR_RED}] {message}")


def info(message: str) -> None:
    console.print(f"[{NEON_CYAN}]→[/{NEON_CYAN}] {message}")


P = ParamSpec("P")
R = TypeVar("R")


def run_async(func: Callable[P, Awaitable[R]]) -> Callable[P, R]:
    """Decorator to run async functions in sync context (for Typer commands)."""

    @wraps(func)
    def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        return asyncio.run(func(*args, **kwargs))

    return wrapper


@app.command()
def serve(
    host: Annotated[str, typer.Option("--host", "-h", help="Host to bind to")] = settings.server_host,
    port: Annotated[int, typer.Option("--port", "-p", help="Port to listen on")] = settings.server_port,
    transport: Annotated[
        str,
        typer.Option("--transport", "-t", help="Transport type (streamable-http, sse, stdio)"),
    ] = "streamable-http",
) -> None:
    """Start the docsift MCP server.

    Examples:
        docsift serve                  # Default: 0.0.0.0:3000
        docsift serve -p 9000          # Custom port
        docsift serve -t stdio         # Subprocess mode
    """
    import structlog

    from docsift.server import create_mcp_server

    configure_logging(settings.log_level, json_output=settings.log_json)
    structlog.get_logger().info(
        "Starting docsift server",
        name=settings.server_name,
        transport=transport,
        host=host,
        port=port,
    )

    mcp = create_mcp_server(host=host, port=port)
    try:
        mcp.run(transport=transport)  # type: ignore[arg-type]
    except KeyboardInterrupt:
        console.print(f"\n[{NEON_CYAN}]Shutting down...[/{NEON_CYAN}]")


@app.command()
def worker(
    burst: Annotated[
        bool, typer.Option("--burst", "-b", help="Process jobs and exit (don't run continuously)")
    ] = False,
) -> None:
    """Start the background crawl worker.

    Examples:
        docsift worker           # Run continuously
        docsift worker --burst   # Process pending crawls and exit
    """
    from arq import run_worker

    from docsift.jobs.worker import WorkerSettings

    console.print(f"[{ELECTRIC_PURPLE}]docsift crawl worker[/{ELECTRIC_PURPLE}] [dim]Ctrl+C to stop[/dim]")

    # arq's run_worker needs a current event loop
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    try:
        run_worker(WorkerSettings, burst=burst)  # type: ignore[arg-type]
    except KeyboardInterrupt:
        info("Worker stopped")
    finally:
        loop.close()


@app.command("init-db")
def init_db() -> None:
    """Create the pgvector extension and all tables (development setup).

    Production deployments should run `alembic upgrade head` instead.
    """

    @run_async
    async def _init() -> None:
        from docsift.db.connection import Database

        database = Database.from_settings(settings)
        try:
            await database.init_schema()
        finally:
            await database.close()

    try:
        _init()
    except Exception as e:
        error(f"Schema creation failed: {e}")
        raise typer.Exit(code=1) from e
    success(f"Schema ready in {settings.postgres_db}@{settings.postgres_host}")


@app.command()
def sources() -> None:
    """List documentation sources."""

    @run_async
    async def _list() -> None:
        from docsift.db.connection import Database
        from docsift.db.store import DocumentStore

        database = Database.from_settings(settings)
        try:
            rows = await DocumentStore(database).list_sources()
        finally:
            await database.close()

        if not rows:
            info("No documentation sources found. Use fetch_documentation to add one.")
            return

        table = Table(border_style=NEON_CYAN)
        table.add_column("Name", style=ELECTRIC_PURPLE)
        table.add_column("URL", style=NEON_CYAN)
        table.add_column("Status")
        table.add_column("Pages", justify="right")
        for source in rows:
            table.add_row(source.name, source.base_url, str(source.status), str(source.page_count))
        console.print(table)

    _list()


def main() -> None:
    app()


if __name__ == "__main__":
    main()
