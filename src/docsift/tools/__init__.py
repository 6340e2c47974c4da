"""MCP tool implementations.

docsift exposes 4 tools:
- fetch_documentation: Crawl a documentation site in the background
- list_sources: Sources with status and live crawl progress
- get_page: Full markdown of a stored page
- search_documentation: Hybrid semantic + full-text search
"""

from docsift.tools.docs import (
    fetch_documentation,
    format_page,
    get_page,
    list_sources,
    search_documentation,
)

__all__ = [
    "fetch_documentation",
    "list_sources",
    "get_page",
    "search_documentation",
    "format_page",
]
