"""Rendering backend - headless browser access for the crawler.

The orchestrator only depends on the ``RenderingBackend`` protocol. The
production implementation drives a shared remote browser (browserless or any
CDP endpoint) through crawl4ai's AsyncWebCrawler.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

import structlog

from docsift.errors import PageProcessingError

if TYPE_CHECKING:
    from crawl4ai import AsyncWebCrawler, CrawlerRunConfig

log = structlog.get_logger()


class RenderingBackend(Protocol):
    """A connection to a browser able to render pages.

    One backend instance is shared by every worker of a crawl; each render
    call uses its own tab.
    """

    async def connect(self) -> None: ...

    async def render(self, url: str, timeout_ms: int) -> str:
        """Navigate to ``url``, wait for network idle, return the page HTML."""
        ...

    async def collect_links(self, url: str, timeout_ms: int) -> list[str]:
        """Navigate to ``url`` and return the absolute href of every anchor."""
        ...

    async def close(self) -> None: ...


class Crawl4AIBackend:
    """RenderingBackend over crawl4ai in CDP mode."""

    def __init__(self, cdp_url: str) -> None:
        self.cdp_url = cdp_url
        self._crawler: AsyncWebCrawler | None = None

    async def connect(self) -> None:
        from crawl4ai import AsyncWebCrawler, BrowserConfig

        browser_config = BrowserConfig(
            browser_mode="cdp",
            cdp_url=self.cdp_url,
            headless=True,
            verbose=False,
        )
        crawler = AsyncWebCrawler(config=browser_config)
        await crawler.start()
        self._crawler = crawler
        log.info("Connected to rendering backend", cdp_url=self.cdp_url)

    def _run_config(self, timeout_ms: int) -> CrawlerRunConfig:
        from crawl4ai import CacheMode, CrawlerRunConfig

        return CrawlerRunConfig(
            cache_mode=CacheMode.BYPASS,
            wait_until="networkidle",
            page_timeout=timeout_ms,
            verbose=False,
        )

    async def _arun(self, url: str, timeout_ms: int):  # type: ignore[no-untyped-def]
        if self._crawler is None:
            raise RuntimeError("Backend not connected. Call connect() first")

        result = await self._crawler.arun(url=url, config=self._run_config(timeout_ms))
        if not result.success:
            raise PageProcessingError(url, result.error_message or "navigation failed")
        return result

    async def render(self, url: str, timeout_ms: int) -> str:
        result = await self._arun(url, timeout_ms)
        return result.html or ""

    async def collect_links(self, url: str, timeout_ms: int) -> list[str]:
        result = await self._arun(url, timeout_ms)
        links = result.links or {}
        return [
            link["href"]
            for group in ("internal", "external")
            for link in links.get(group, [])
            if link.get("href")
        ]

    async def close(self) -> None:
        if self._crawler is not None:
            await self._crawler.close()
            self._crawler = None
            log.debug("Rendering backend closed")
