"""Documentation tools exposed over MCP.

Each tool takes the service container and returns the text handed back to
the caller. Input problems raise ValidationError; the server turns any
exception into an MCP error result.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any
from uuid import UUID

import structlog

from docsift.db.models import SourceStatus
from docsift.errors import ValidationError

if TYPE_CHECKING:
    from docsift.services import Services

log = structlog.get_logger()

MAX_CRAWL_PAGES = 500
MAX_SEARCH_LIMIT = 20
DEFAULT_SEARCH_LIMIT = 5
DEFAULT_SEARCH_THRESHOLD = 0.3

NO_SOURCES_MESSAGE = "No documentation sources found. Use fetch_documentation to add one."
PAGE_NOT_FOUND_MESSAGE = "Page not found."
NO_RESULTS_MESSAGE = "No results found for your query."


def _to_json(data: Any) -> str:
    return json.dumps(data, indent=2, default=str)


def _parse_uuid(value: str, field_name: str) -> UUID:
    try:
        return UUID(value)
    except ValueError as e:
        raise ValidationError(f"Invalid {field_name}: {value}") from e


def _iso(value: Any) -> str | None:
    return value.isoformat() if value is not None else None


# =============================================================================
# TOOL 1: fetch_documentation
# =============================================================================


async def fetch_documentation(
    services: Services,
    url: str,
    name: str,
    max_pages: int | None = None,
    include_patterns: list[str] | None = None,
    exclude_patterns: list[str] | None = None,
) -> str:
    """Start crawling a documentation site and return its job summary."""
    if not url.startswith(("http://", "https://")):
        raise ValidationError(f"Invalid url: {url}")
    if not name.strip():
        raise ValidationError("name must not be empty")
    if max_pages is not None and not 1 <= max_pages <= MAX_CRAWL_PAGES:
        raise ValidationError(f"max_pages must be between 1 and {MAX_CRAWL_PAGES}")

    job_id = await services.orchestrator.start_crawl(
        url,
        name,
        max_pages=max_pages,
        include_patterns=include_patterns,
        exclude_patterns=exclude_patterns,
    )
    job = await services.tracker.get_job(job_id)

    return _to_json(
        {
            "jobId": job_id,
            "message": f'Crawl started for "{name}" ({url})',
            "status": job.status.value if job else "pending",
            "totalPages": job.total_pages if job else 0,
            "processedPages": job.processed_pages if job else 0,
        }
    )


# =============================================================================
# TOOL 2: list_sources
# =============================================================================


async def list_sources(services: Services) -> str:
    """List every documentation source, with live progress for running crawls."""
    sources = await services.store.list_sources()
    if not sources:
        return NO_SOURCES_MESSAGE

    items: list[dict[str, Any]] = []
    for source in sources:
        item: dict[str, Any] = {
            "id": str(source.id),
            "name": source.name,
            "baseUrl": source.base_url,
            "status": str(source.status),
            "pageCount": source.page_count,
            "createdAt": _iso(source.created_at),
            "updatedAt": _iso(source.updated_at),
        }

        if source.job_id and source.status == SourceStatus.CRAWLING:
            job = await services.tracker.get_job(source.job_id)
            if job is not None:
                item["crawlProgress"] = {
                    "totalPages": job.total_pages,
                    "processedPages": job.processed_pages,
                    "failedPages": job.failed_pages,
                }

        items.append(item)

    return _to_json(items)


# =============================================================================
# TOOL 3: get_page
# =============================================================================


def format_page(title: str | None, source_name: str, url: str, word_count: int, markdown: str) -> str:
    header = (
        f"# {title or 'Untitled'}\n\n"
        f"Source: {source_name} | URL: {url} | Words: {word_count}\n\n"
        "---\n\n"
    )
    return header + markdown


async def get_page(
    services: Services,
    url: str | None = None,
    page_id: str | None = None,
) -> str:
    """Return a stored page as markdown with a short header."""
    if not url and not page_id:
        raise ValidationError("Either url or page_id must be provided")

    page = await services.store.get_page(
        url=url,
        page_id=_parse_uuid(page_id, "page_id") if page_id else None,
    )
    if page is None:
        return PAGE_NOT_FOUND_MESSAGE

    return format_page(page.title, page.source_name, page.url, page.word_count, page.markdown)


# =============================================================================
# TOOL 4: search_documentation
# =============================================================================


async def search_documentation(
    services: Services,
    query: str,
    source_id: str | None = None,
    limit: int = DEFAULT_SEARCH_LIMIT,
    threshold: float = DEFAULT_SEARCH_THRESHOLD,
) -> str:
    """Hybrid search across stored documentation chunks."""
    if not query.strip():
        raise ValidationError("query must not be empty")
    if not 1 <= limit <= MAX_SEARCH_LIMIT:
        raise ValidationError(f"limit must be between 1 and {MAX_SEARCH_LIMIT}")
    if not 0 <= threshold <= 1:
        raise ValidationError("threshold must be between 0 and 1")

    results = await services.search.search(
        query,
        source_id=_parse_uuid(source_id, "source_id") if source_id else None,
        limit=limit,
        threshold=threshold,
    )
    if not results:
        return NO_RESULTS_MESSAGE

    return _to_json([result.to_dict() for result in results])
