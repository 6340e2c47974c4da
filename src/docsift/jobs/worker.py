"""arq worker - executes crawls in the background.

Run with: docsift worker   (or: arq docsift.jobs.worker.WorkerSettings)
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

import structlog

from docsift.config import settings
from docsift.crawler.pipeline import CrawlRequest
from docsift.jobs.queue import get_redis_settings

log = structlog.get_logger()


async def startup(ctx: dict[str, Any]) -> None:
    """Worker startup - build the service container."""
    from docsift import configure_logging
    from docsift.services import Services

    configure_logging(settings.log_level, json_output=settings.log_json)

    ctx["services"] = await Services.create(settings)
    ctx["start_time"] = datetime.now(UTC)
    log.info("Crawl worker online")


async def shutdown(ctx: dict[str, Any]) -> None:
    """Worker shutdown - release connections."""
    services = ctx.get("services")
    if services is not None:
        await services.close()
    log.info("Crawl worker shutting down")


async def run_crawl(ctx: dict[str, Any], request: dict[str, Any]) -> dict[str, Any]:
    """Execute one crawl.

    Args:
        ctx: arq context (holds the service container)
        request: Serialized CrawlRequest

    Returns:
        Dict with the crawl outcome
    """
    services = ctx["services"]
    crawl = CrawlRequest.from_dict(request)

    log.info("Starting crawl job", job_id=crawl.job_id, url=crawl.url, max_pages=crawl.max_pages)
    outcome = await services.orchestrator.execute_crawl(crawl)

    return {
        "job_id": outcome.job_id,
        "source_id": str(outcome.source_id),
        "status": outcome.status.value,
        "total_pages": outcome.total_pages,
        "processed_pages": outcome.processed_pages,
        "failed_pages": outcome.failed_pages,
        "error": outcome.error,
    }


class WorkerSettings:
    """arq worker settings."""

    redis_settings = get_redis_settings(settings)

    functions = [run_crawl]

    on_startup = startup
    on_shutdown = shutdown

    max_jobs = 3  # Concurrent crawls per worker
    job_timeout = 3600  # 1 hour timeout for crawl jobs
    keep_result = 86400
    poll_delay = 0.5
