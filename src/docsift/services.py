"""Service container - owns every long-lived connection.

The MCP server and the arq worker each build one container at startup and
close it at shutdown. Tests assemble the same dataclass from doubles.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog
from redis.asyncio import Redis

from docsift.crawler.browser import Crawl4AIBackend
from docsift.crawler.embedder import EmbeddingService
from docsift.crawler.pipeline import CrawlOrchestrator
from docsift.db.connection import Database
from docsift.db.store import DocumentStore
from docsift.jobs.queue import ArqLauncher
from docsift.jobs.tracker import JobTracker
from docsift.retrieval.hybrid import HybridSearch

if TYPE_CHECKING:
    from docsift.config import Settings

log = structlog.get_logger()


@dataclass
class Services:
    """Explicitly created and closed application services."""

    store: DocumentStore
    tracker: JobTracker
    embedder: EmbeddingService
    orchestrator: CrawlOrchestrator
    search: HybridSearch
    database: Database | None = None
    redis: Redis | None = None
    launcher: ArqLauncher | None = None

    @classmethod
    async def create(cls, settings: Settings, *, enqueue_crawls: bool = False) -> Services:
        """Connect to Postgres, Redis and the embeddings API.

        Args:
            settings: Application settings
            enqueue_crawls: Hand new crawls to the arq worker instead of
                running them in this process
        """
        database = Database.from_settings(settings)
        redis = Redis.from_url(settings.redis_url)
        store = DocumentStore(database)
        tracker = JobTracker(redis, ttl_seconds=settings.job_ttl_seconds)
        embedder = EmbeddingService.from_settings(settings)

        launcher = await ArqLauncher.create(settings) if enqueue_crawls else None

        orchestrator = CrawlOrchestrator.from_settings(
            settings,
            store=store,
            tracker=tracker,
            embedder=embedder,
            backend_factory=lambda: Crawl4AIBackend(settings.browser_ws_url),
            launcher=launcher,
        )

        log.info(
            "Services ready",
            postgres=f"{settings.postgres_host}:{settings.postgres_port}",
            embedding_model=settings.embedding_model,
            crawl_mode="queue" if launcher else "in-process",
        )
        return cls(
            store=store,
            tracker=tracker,
            embedder=embedder,
            orchestrator=orchestrator,
            search=HybridSearch(store, embedder),
            database=database,
            redis=redis,
            launcher=launcher,
        )

    async def close(self) -> None:
        """Wait for in-process crawls, then release every connection."""
        await self.orchestrator.wait_for_background()
        if self.launcher is not None:
            await self.launcher.close()
        await self.embedder.close()
        if self.redis is not None:
            await self.redis.aclose()
        if self.database is not None:
            await self.database.close()
        log.info("Services closed")
