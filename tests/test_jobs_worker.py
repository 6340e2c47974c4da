"""Tests for the arq worker and launcher."""

from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest

from docsift.crawler.pipeline import CrawlOutcome, CrawlRequest
from docsift.jobs.queue import CRAWL_FUNCTION, ArqLauncher
from docsift.jobs.tracker import JobStatus
from docsift.jobs.worker import WorkerSettings, run_crawl, shutdown


def make_request() -> CrawlRequest:
    return CrawlRequest(
        job_id="0123456789abcdef",
        source_id=uuid4(),
        url="https://docs.example.com/guide/",
        max_pages=10,
        exclude_patterns=["/v1/"],
    )


class TestRunCrawl:
    """Tests for the run_crawl job."""

    @pytest.mark.asyncio
    async def test_executes_request(self) -> None:
        request = make_request()
        services = MagicMock()
        services.orchestrator.execute_crawl = AsyncMock(
            return_value=CrawlOutcome(
                job_id=request.job_id,
                source_id=request.source_id,
                status=JobStatus.COMPLETED,
                total_pages=10,
                processed_pages=9,
                failed_pages=1,
            )
        )

        result = await run_crawl({"services": services}, request.to_dict())

        services.orchestrator.execute_crawl.assert_awaited_once_with(request)
        assert result == {
            "job_id": request.job_id,
            "source_id": str(request.source_id),
            "status": "completed",
            "total_pages": 10,
            "processed_pages": 9,
            "failed_pages": 1,
            "error": None,
        }

    @pytest.mark.asyncio
    async def test_reports_failure(self) -> None:
        request = make_request()
        services = MagicMock()
        services.orchestrator.execute_crawl = AsyncMock(
            return_value=CrawlOutcome(
                job_id=request.job_id,
                source_id=request.source_id,
                status=JobStatus.FAILED,
                error="browser down",
            )
        )

        result = await run_crawl({"services": services}, request.to_dict())

        assert result["status"] == "failed"
        assert result["error"] == "browser down"

    @pytest.mark.asyncio
    async def test_shutdown_closes_services(self) -> None:
        services = MagicMock()
        services.close = AsyncMock()

        await shutdown({"services": services})

        services.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_shutdown_without_services(self) -> None:
        await shutdown({})

    def test_worker_settings(self) -> None:
        assert WorkerSettings.functions == [run_crawl]
        assert WorkerSettings.max_jobs == 3


class TestArqLauncher:
    """Tests for enqueueing crawls."""

    @pytest.mark.asyncio
    async def test_enqueues_serialized_request(self) -> None:
        pool = MagicMock()
        pool.enqueue_job = AsyncMock()
        launcher = ArqLauncher(pool)
        request = make_request()

        await launcher(request)

        pool.enqueue_job.assert_awaited_once_with(
            CRAWL_FUNCTION,
            request.to_dict(),
            _job_id=f"crawl:{request.job_id}",
        )
        assert CRAWL_FUNCTION == run_crawl.__name__
