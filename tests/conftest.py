"""Pytest configuration and fixtures."""

from collections.abc import Callable

import pytest

from docsift.crawler.pipeline import CrawlOrchestrator, CrawlRequest
from docsift.jobs.tracker import JobTracker
from docsift.retrieval.hybrid import HybridSearch
from docsift.services import Services
from tests.harness import (
    MockDocumentStore,
    MockEmbeddingService,
    MockRedis,
    MockRenderingBackend,
)

SEED_URL = "https://docs.example.com/guide/"


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Skip integration tests unless explicitly selected."""
    if "integration" in (config.getoption("-m") or ""):
        return
    skip = pytest.mark.skip(reason="integration tests need live services (run with -m integration)")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip)


# =============================================================================
# Doubles
# =============================================================================


@pytest.fixture
def redis() -> MockRedis:
    return MockRedis()


@pytest.fixture
def tracker(redis: MockRedis) -> JobTracker:
    return JobTracker(redis, ttl_seconds=86400)  # type: ignore[arg-type]


@pytest.fixture
def store() -> MockDocumentStore:
    return MockDocumentStore()


@pytest.fixture
def embedder() -> MockEmbeddingService:
    return MockEmbeddingService()


@pytest.fixture
def backend() -> MockRenderingBackend:
    return MockRenderingBackend()


@pytest.fixture
def sleeps() -> list[float]:
    """Delays requested by retry loops (nothing actually sleeps)."""
    return []


@pytest.fixture
def launched() -> list[CrawlRequest]:
    """Crawl requests handed to the launcher."""
    return []


@pytest.fixture
def make_orchestrator(
    store: MockDocumentStore,
    tracker: JobTracker,
    embedder: MockEmbeddingService,
    backend: MockRenderingBackend,
    sleeps: list[float],
    launched: list[CrawlRequest],
) -> Callable[..., CrawlOrchestrator]:
    """Build an orchestrator wired to the doubles.

    The launcher only records requests; tests call execute_crawl themselves.
    """

    async def fake_sleep(delay: float) -> None:
        sleeps.append(delay)

    async def launcher(request: CrawlRequest) -> None:
        launched.append(request)

    def _make(**kwargs: object) -> CrawlOrchestrator:
        options: dict[str, object] = {
            "store": store,
            "tracker": tracker,
            "embedder": embedder,
            "backend_factory": lambda: backend,
            "launcher": launcher,
            "concurrency": 3,
            "sleep": fake_sleep,
        }
        options.update(kwargs)
        return CrawlOrchestrator(**options)  # type: ignore[arg-type]

    return _make


@pytest.fixture
def orchestrator(make_orchestrator: Callable[..., CrawlOrchestrator]) -> CrawlOrchestrator:
    return make_orchestrator()


@pytest.fixture
def services(
    store: MockDocumentStore,
    tracker: JobTracker,
    embedder: MockEmbeddingService,
    orchestrator: CrawlOrchestrator,
) -> Services:
    return Services(
        store=store,  # type: ignore[arg-type]
        tracker=tracker,
        embedder=embedder,  # type: ignore[arg-type]
        orchestrator=orchestrator,
        search=HybridSearch(store, embedder),  # type: ignore[arg-type]
    )
