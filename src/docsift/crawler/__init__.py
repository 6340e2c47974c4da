"""docsift crawler module - documentation ingestion.

This module provides:
- Article extraction and markdown conversion
- Heading-aware chunking for retrieval
- Embedding generation through an OpenAI-compatible API
- URL discovery and the crawl orchestrator

Usage:
    from docsift.crawler import CrawlOrchestrator

    job_id = await orchestrator.start_crawl(
        "https://docs.example.com/guide/",
        "Example Docs",
        max_pages=50,
    )
"""

from docsift.crawler.browser import Crawl4AIBackend, RenderingBackend
from docsift.crawler.chunker import Chunk, MarkdownChunker, chunk_markdown, estimate_tokens
from docsift.crawler.discovery import build_crawl_list, filter_discovered_urls
from docsift.crawler.embedder import EmbeddingService
from docsift.crawler.extractor import ProcessedContent, process_html
from docsift.crawler.pipeline import (
    CrawlOrchestrator,
    CrawlOutcome,
    CrawlRequest,
    generate_job_id,
)

__all__ = [
    # Orchestration
    "CrawlOrchestrator",
    "CrawlOutcome",
    "CrawlRequest",
    "generate_job_id",
    # Discovery
    "filter_discovered_urls",
    "build_crawl_list",
    # Rendering
    "RenderingBackend",
    "Crawl4AIBackend",
    # Processing
    "ProcessedContent",
    "process_html",
    "Chunk",
    "MarkdownChunker",
    "chunk_markdown",
    "estimate_tokens",
    "EmbeddingService",
]
