"""Crawl orchestration - discover, fetch, process, and store a documentation site.

Orchestrates one crawl:
1. Connect to the rendering backend (retried)
2. Render the seed page and discover same-site links
3. Push every URL through extract -> dedup -> chunk -> embed -> store
   with a bounded worker pool
4. Record progress and the final state in the job tracker and store

Starting a crawl only records the source and job and hands the crawl to a
launcher; the crawl itself runs in the background (arq worker, or an
in-process task when no launcher is configured).
"""

from __future__ import annotations

import asyncio
import hashlib
import time
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any
from uuid import UUID

import structlog

from docsift.crawler.chunker import MarkdownChunker
from docsift.crawler.discovery import build_crawl_list, filter_discovered_urls
from docsift.crawler.extractor import process_html
from docsift.db.models import SourceStatus
from docsift.errors import BrowserConnectionError
from docsift.jobs.tracker import JobStatus
from docsift.utils.resilience import BROWSER_CONNECT_RETRY, PAGE_RETRY, retry_call

if TYPE_CHECKING:
    from docsift.config import Settings
    from docsift.crawler.browser import RenderingBackend
    from docsift.crawler.embedder import EmbeddingService
    from docsift.db.store import DocumentStore
    from docsift.jobs.tracker import JobTracker

log = structlog.get_logger()

DEFAULT_CONCURRENCY = 3
DEFAULT_MAX_PAGES = 100
DEFAULT_PAGE_TIMEOUT_MS = 30000

CANCELLED_MESSAGE = "Crawl cancelled before completion"


@dataclass
class CrawlRequest:
    """Everything the execution step needs to run a crawl."""

    job_id: str
    source_id: UUID
    url: str
    max_pages: int
    include_patterns: list[str] = field(default_factory=list)
    exclude_patterns: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "job_id": self.job_id,
            "source_id": str(self.source_id),
            "url": self.url,
            "max_pages": self.max_pages,
            "include_patterns": list(self.include_patterns),
            "exclude_patterns": list(self.exclude_patterns),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CrawlRequest:
        return cls(
            job_id=data["job_id"],
            source_id=UUID(str(data["source_id"])),
            url=data["url"],
            max_pages=int(data["max_pages"]),
            include_patterns=list(data.get("include_patterns") or []),
            exclude_patterns=list(data.get("exclude_patterns") or []),
        )


@dataclass
class CrawlOutcome:
    """Result (or progress snapshot) of a crawl."""

    job_id: str
    source_id: UUID
    status: JobStatus
    total_pages: int = 0
    processed_pages: int = 0
    failed_pages: int = 0
    error: str | None = None

    def __str__(self) -> str:
        base = (
            f"Crawl {self.job_id} {self.status.value}: "
            f"{self.processed_pages}/{self.total_pages} pages"
        )
        if self.failed_pages:
            base += f", {self.failed_pages} failed"
        if self.error:
            base += f" ({self.error})"
        return base


ProgressCallback = Callable[[CrawlOutcome], Awaitable[None]]
CrawlLauncher = Callable[[CrawlRequest], Awaitable[None]]
BackendFactory = Callable[[], "RenderingBackend"]


def generate_job_id(url: str) -> str:
    """First 16 hex chars of sha256("{url}:{epoch millis}")."""
    seed = f"{url}:{int(time.time() * 1000)}"
    return hashlib.sha256(seed.encode()).hexdigest()[:16]


def content_hash(markdown: str) -> str:
    return hashlib.sha256(markdown.encode()).hexdigest()


class CrawlOrchestrator:
    """Runs documentation crawls.

    Collaborators are injected so the orchestrator can run against real
    infrastructure or in-memory doubles alike.
    """

    def __init__(
        self,
        *,
        store: DocumentStore,
        tracker: JobTracker,
        embedder: EmbeddingService,
        backend_factory: BackendFactory,
        launcher: CrawlLauncher | None = None,
        concurrency: int = DEFAULT_CONCURRENCY,
        default_max_pages: int = DEFAULT_MAX_PAGES,
        page_timeout_ms: int = DEFAULT_PAGE_TIMEOUT_MS,
        chunker: MarkdownChunker | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            store: Document store for sources, pages and chunks
            tracker: Job progress tracker
            embedder: Embedding service for chunk vectors
            backend_factory: Creates one rendering backend per crawl
            launcher: Schedules execute_crawl in the background; None runs
                it as an in-process asyncio task
            concurrency: Maximum pages processed at once
            default_max_pages: Page cap when a request does not set one
            page_timeout_ms: Navigation timeout per page
            chunker: Markdown chunker (defaults to 500/800 token limits)
            sleep: Sleep function for retry delays (injectable for tests)
        """
        self.store = store
        self.tracker = tracker
        self.embedder = embedder
        self.backend_factory = backend_factory
        self.launcher = launcher
        self.concurrency = max(1, concurrency)
        self.default_max_pages = default_max_pages
        self.page_timeout_ms = page_timeout_ms
        self._chunker = chunker or MarkdownChunker()
        self._sleep = sleep
        self._background: set[asyncio.Task[CrawlOutcome]] = set()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        store: DocumentStore,
        tracker: JobTracker,
        embedder: EmbeddingService,
        backend_factory: BackendFactory,
        launcher: CrawlLauncher | None = None,
    ) -> CrawlOrchestrator:
        return cls(
            store=store,
            tracker=tracker,
            embedder=embedder,
            backend_factory=backend_factory,
            launcher=launcher,
            concurrency=settings.crawl_concurrency,
            default_max_pages=settings.crawl_max_pages,
            page_timeout_ms=settings.crawl_page_timeout_ms,
        )

    # =========================================================================
    # Starting crawls
    # =========================================================================

    async def start_crawl(
        self,
        url: str,
        name: str,
        max_pages: int | None = None,
        include_patterns: list[str] | None = None,
        exclude_patterns: list[str] | None = None,
    ) -> str:
        """Start crawling a documentation site in the background.

        A source that is already crawling keeps its running job; its job id
        is returned and nothing else happens.

        Returns:
            The job id to poll for progress
        """
        existing = await self.store.get_source_by_url(url)
        if existing is not None and existing.status == SourceStatus.CRAWLING and existing.job_id:
            log.info("Crawl already running", url=url, job_id=existing.job_id)
            return existing.job_id

        job_id = generate_job_id(url)
        source_id = await self.store.begin_source_crawl(url, name, job_id)
        await self.tracker.create_job(job_id)

        request = CrawlRequest(
            job_id=job_id,
            source_id=source_id,
            url=url,
            max_pages=max_pages or self.default_max_pages,
            include_patterns=list(include_patterns or []),
            exclude_patterns=list(exclude_patterns or []),
        )

        if self.launcher is not None:
            try:
                await self.launcher(request)
            except Exception as e:
                log.error("Failed to launch crawl", url=url, job_id=job_id, error=str(e))  # noqa: TRY400
                await self._record_failure(request, f"Failed to launch crawl: {e}")
                raise
        else:
            task = asyncio.create_task(self.execute_crawl(request))
            self._background.add(task)
            task.add_done_callback(self._background.discard)

        log.info("Crawl started", url=url, name=name, job_id=job_id, max_pages=request.max_pages)
        return job_id

    async def wait_for_background(self) -> None:
        """Wait for in-process crawls started without a launcher."""
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)

    # =========================================================================
    # Execution
    # =========================================================================

    async def execute_crawl(
        self,
        request: CrawlRequest,
        on_progress: ProgressCallback | None = None,
    ) -> CrawlOutcome:
        """Run a crawl to completion.

        Failures are recorded on the job and source rather than raised.
        Cancellation (e.g. a worker job timeout) is recorded the same way
        and then propagated.

        Args:
            request: What to crawl
            on_progress: Awaited after every finished page

        Returns:
            CrawlOutcome with the final status and counters
        """
        job_id = request.job_id
        outcome = CrawlOutcome(
            job_id=job_id,
            source_id=request.source_id,
            status=JobStatus.CRAWLING,
        )
        backend = self.backend_factory()

        try:
            await self._connect(backend, job_id)
            await self.tracker.update_job(job_id, status=JobStatus.CRAWLING)

            links = await backend.collect_links(request.url, self.page_timeout_ms)
            discovered = filter_discovered_urls(
                links,
                request.url,
                request.include_patterns,
                request.exclude_patterns,
            )
            urls = build_crawl_list(request.url, discovered, request.max_pages)

            outcome.status = JobStatus.PROCESSING
            outcome.total_pages = len(urls)
            await self.tracker.update_job(
                job_id, status=JobStatus.PROCESSING, total_pages=len(urls)
            )
            log.info(
                "Discovered pages",
                job_id=job_id,
                url=request.url,
                discovered=len(discovered),
                total_pages=len(urls),
            )

            await self._run_pool(backend, urls, request, outcome, on_progress)

            await self.store.mark_source_ready(request.source_id, outcome.processed_pages)
            await self.tracker.update_job(job_id, status=JobStatus.COMPLETED)
            outcome.status = JobStatus.COMPLETED
            log.info("Crawl complete", job_id=job_id, outcome=str(outcome))

        except asyncio.CancelledError:
            outcome.status = JobStatus.FAILED
            outcome.error = CANCELLED_MESSAGE
            log.warning("Crawl cancelled", job_id=job_id, url=request.url)
            await self._record_failure(request, CANCELLED_MESSAGE)
            raise

        except Exception as e:
            outcome.status = JobStatus.FAILED
            outcome.error = str(e)
            log.error("Crawl failed", job_id=job_id, url=request.url, error=str(e))  # noqa: TRY400
            await self._record_failure(request, str(e))

        finally:
            try:
                await backend.close()
            except Exception as e:
                log.warning("Failed to close rendering backend", job_id=job_id, error=str(e))

        return outcome

    async def _record_failure(self, request: CrawlRequest, error: str) -> None:
        """Mark both the job and its source failed."""
        await self.tracker.update_job(request.job_id, status=JobStatus.FAILED, error=error)
        await self.store.mark_source_failed(request.source_id)

    async def _connect(self, backend: RenderingBackend, job_id: str) -> None:
        try:
            await retry_call(
                backend.connect,
                BROWSER_CONNECT_RETRY,
                operation="browser_connect",
                sleep=self._sleep,
                job_id=job_id,
            )
        except Exception as e:
            raise BrowserConnectionError(
                f"Could not connect to rendering backend after "
                f"{BROWSER_CONNECT_RETRY.max_attempts} attempts: {e}",
            ) from e

    async def _run_pool(
        self,
        backend: RenderingBackend,
        urls: list[str],
        request: CrawlRequest,
        outcome: CrawlOutcome,
        on_progress: ProgressCallback | None,
    ) -> None:
        """Process URLs with at most ``concurrency`` pages in flight."""
        pending = deque(urls)
        in_flight: set[asyncio.Task[bool]] = set()

        try:
            while pending or in_flight:
                while pending and len(in_flight) < self.concurrency:
                    url = pending.popleft()
                    in_flight.add(
                        asyncio.create_task(
                            self.process_page(
                                backend,
                                url,
                                request.source_id,
                                self.page_timeout_ms,
                                job_id=request.job_id,
                            )
                        )
                    )

                done, in_flight = await asyncio.wait(
                    in_flight, return_when=asyncio.FIRST_COMPLETED
                )
                for task in done:
                    if task.result():
                        outcome.processed_pages += 1
                        await self.tracker.increment(request.job_id, processed=1)
                    else:
                        outcome.failed_pages += 1
                        await self.tracker.increment(request.job_id, failed=1)

                    if on_progress is not None:
                        await on_progress(outcome)
        finally:
            for task in in_flight:
                task.cancel()
            if in_flight:
                await asyncio.gather(*in_flight, return_exceptions=True)

    async def process_page(
        self,
        backend: RenderingBackend,
        url: str,
        source_id: UUID,
        timeout_ms: int,
        *,
        job_id: str | None = None,
    ) -> bool:
        """Fetch, process and store one page.

        The whole sequence is retried on failure. A page without readable
        content fails immediately.

        Returns:
            True if the page is stored (or unchanged), False if it failed
        """

        async def attempt() -> bool:
            html = await backend.render(url, timeout_ms)
            content = process_html(html, url)
            if content is None:
                log.warning("No readable content on page", url=url, job_id=job_id)
                return False

            digest = content_hash(content.markdown)
            existing = await self.store.get_page_fingerprint(url)
            if existing is not None and existing.content_hash == digest:
                log.debug("Page unchanged, skipping", url=url)
                return True

            chunks = self._chunker.chunk(content.markdown)
            embeddings = (
                await self.embedder.embed_texts([chunk.content for chunk in chunks])
                if chunks
                else []
            )

            await self.store.save_page(
                source_id=source_id,
                url=url,
                content=content,
                content_hash=digest,
                chunks=chunks,
                embeddings=embeddings,
                existing_page_id=existing.page_id if existing else None,
            )
            log.debug("Stored page", url=url, chunks=len(chunks), words=content.word_count)
            return True

        try:
            return await retry_call(
                attempt,
                PAGE_RETRY,
                operation="process_page",
                sleep=self._sleep,
                url=url,
                job_id=job_id,
            )
        except Exception as e:
            log.error("Failed to process page", url=url, job_id=job_id, error=str(e))  # noqa: TRY400
            return False
