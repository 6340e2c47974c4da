"""MCP Server definition using FastMCP.

Exposes 4 tools:
- fetch_documentation, list_sources, get_page, search_documentation
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

import structlog
from mcp.server.fastmcp import Context, FastMCP
from mcp.server.fastmcp.exceptions import ToolError

from docsift.config import settings
from docsift.tools import docs

if TYPE_CHECKING:
    from docsift.services import Services

log = structlog.get_logger()


@asynccontextmanager
async def services_lifespan(_server: FastMCP) -> AsyncIterator[Services]:
    """Own the service container for the lifetime of the server."""
    from docsift.services import Services

    services = await Services.create(settings, enqueue_crawls=not settings.crawl_in_process)
    try:
        yield services
    finally:
        await services.close()


def _services(ctx: Context) -> Services:
    return ctx.request_context.lifespan_context  # type: ignore[no-any-return]


async def _run_tool(tool: str, call: Awaitable[str]) -> str:
    """Await a tool call, turning failures into MCP error results."""
    try:
        return await call
    except Exception as e:
        log.error("Tool failed", tool=tool, error=str(e))  # noqa: TRY400
        raise ToolError(f"Error: {e}") from e


def create_mcp_server(
    host: str = "localhost",
    port: int = 3000,
    lifespan=services_lifespan,  # type: ignore[no-untyped-def]
) -> FastMCP:
    """Create and configure the MCP server instance.

    Args:
        host: Host to bind to
        port: Port to listen on
        lifespan: Async context manager yielding the Services container

    Returns:
        Configured FastMCP server instance
    """
    mcp = FastMCP(
        settings.server_name,
        host=host,
        port=port,
        lifespan=lifespan,
    )
    _register_tools(mcp)
    return mcp


def _register_tools(mcp: FastMCP) -> None:
    """Register all MCP tools on the server instance."""

    @mcp.tool()
    async def fetch_documentation(
        ctx: Context,
        url: str,
        name: str,
        max_pages: int | None = None,
        include_patterns: list[str] | None = None,
        exclude_patterns: list[str] | None = None,
    ) -> str:
        """Crawl a documentation site and index it for search.

        The crawl runs in the background; poll list_sources for progress.

        Args:
            url: Root URL of the documentation (only pages below it are crawled)
            name: Display name for the source
            max_pages: Maximum pages to crawl (1-500, default: 100)
            include_patterns: Only crawl URLs containing one of these substrings
            exclude_patterns: Skip URLs containing any of these substrings
        """
        return await _run_tool(
            "fetch_documentation",
            docs.fetch_documentation(
                _services(ctx),
                url,
                name,
                max_pages=max_pages,
                include_patterns=include_patterns,
                exclude_patterns=exclude_patterns,
            ),
        )

    @mcp.tool()
    async def list_sources(ctx: Context) -> str:
        """List indexed documentation sources with status and crawl progress."""
        return await _run_tool("list_sources", docs.list_sources(_services(ctx)))

    @mcp.tool()
    async def get_page(
        ctx: Context,
        url: str | None = None,
        page_id: str | None = None,
    ) -> str:
        """Get the full markdown of a stored page by URL or page id."""
        return await _run_tool(
            "get_page",
            docs.get_page(_services(ctx), url=url, page_id=page_id),
        )

    @mcp.tool()
    async def search_documentation(
        ctx: Context,
        query: str,
        source_id: str | None = None,
        limit: int = docs.DEFAULT_SEARCH_LIMIT,
        threshold: float = docs.DEFAULT_SEARCH_THRESHOLD,
    ) -> str:
        """Search indexed documentation with semantic search and full-text fallback.

        Args:
            query: Natural language search query
            source_id: Restrict results to one source
            limit: Maximum results (1-20, default: 5)
            threshold: Minimum similarity for semantic matches (0-1, default: 0.3)

        Returns:
            JSON list of {source, pageTitle, pageUrl, heading, similarity, content}
        """
        return await _run_tool(
            "search_documentation",
            docs.search_documentation(
                _services(ctx),
                query,
                source_id=source_id,
                limit=limit,
                threshold=threshold,
            ),
        )
