"""Job queue client - hand crawls to the arq worker.

The crawl orchestrator only knows a launcher callable; ``ArqLauncher`` is the
production one and enqueues ``run_crawl`` for the worker process.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from arq import ArqRedis, create_pool
from arq.connections import RedisSettings

if TYPE_CHECKING:
    from docsift.config import Settings
    from docsift.crawler.pipeline import CrawlRequest

log = structlog.get_logger()

CRAWL_FUNCTION = "run_crawl"


def get_redis_settings(settings: Settings) -> RedisSettings:
    """Get Redis connection settings for arq from the configured URL."""
    return RedisSettings.from_dsn(settings.redis_url)


class ArqLauncher:
    """Launches crawls by enqueueing them on the arq queue."""

    def __init__(self, pool: ArqRedis) -> None:
        self._pool = pool

    @classmethod
    async def create(cls, settings: Settings) -> ArqLauncher:
        return cls(await create_pool(get_redis_settings(settings)))

    async def __call__(self, request: CrawlRequest) -> None:
        # Job id is unique per crawl, so a duplicate enqueue is a no-op
        job = await self._pool.enqueue_job(
            CRAWL_FUNCTION,
            request.to_dict(),
            _job_id=f"crawl:{request.job_id}",
        )
        if job is None:
            log.info("Crawl job already queued", job_id=request.job_id)
            return
        log.info("Enqueued crawl job", job_id=request.job_id, url=request.url)

    async def close(self) -> None:
        await self._pool.close()
