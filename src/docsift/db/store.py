"""Document store - sources, pages, and chunk sets in PostgreSQL.

All writes for one page (page row + its full chunk set) happen inside a
single transaction, so readers never observe a mix of old and new chunks.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

import structlog
from sqlalchemy import delete, func, select
from sqlmodel import col

from docsift.db.models import Page, PageChunk, Source, SourceStatus, utcnow_naive

if TYPE_CHECKING:
    from collections.abc import Sequence

    from docsift.crawler.chunker import Chunk
    from docsift.crawler.extractor import ProcessedContent
    from docsift.db.connection import Database

log = structlog.get_logger()


@dataclass(frozen=True)
class PageFingerprint:
    """Identity and content hash of a stored page."""

    page_id: UUID
    content_hash: str


@dataclass
class PageView:
    """A stored page with its source name denormalized."""

    id: UUID
    url: str
    title: str | None
    markdown: str
    word_count: int
    source_name: str
    updated_at: datetime


@dataclass
class ChunkHit:
    """One chunk returned by a search primitive, with display context."""

    chunk_id: UUID
    content: str
    heading: str | None
    similarity: float
    page_title: str | None
    page_url: str
    source_name: str


class DocumentStore:
    """Persistence operations for the ingestion pipeline and search."""

    def __init__(self, database: Database) -> None:
        self._db = database

    # =========================================================================
    # Sources
    # =========================================================================

    async def get_source_by_url(self, base_url: str) -> Source | None:
        """Get a source by its base URL."""
        async with self._db.session() as session:
            result = await session.execute(
                select(Source).where(col(Source.base_url) == base_url)
            )
            return result.scalar_one_or_none()

    async def begin_source_crawl(self, base_url: str, name: str, job_id: str) -> UUID:
        """Create or reset a source for a new crawl.

        Existing sources are reused: the name is refreshed, status set to
        crawling and the job pointer moved to the new job.

        Returns:
            The source id
        """
        async with self._db.session() as session:
            result = await session.execute(
                select(Source).where(col(Source.base_url) == base_url)
            )
            source = result.scalar_one_or_none()
            if source is None:
                source = Source(
                    name=name,
                    base_url=base_url,
                    status=SourceStatus.CRAWLING,
                    job_id=job_id,
                )
                session.add(source)
                log.info("Created source", name=name, url=base_url)
            else:
                source.name = name
                source.status = SourceStatus.CRAWLING
                source.job_id = job_id
                source.updated_at = utcnow_naive()
            await session.flush()
            return source.id

    async def mark_source_ready(self, source_id: UUID, page_count: int) -> None:
        async with self._db.session() as session:
            source = await session.get(Source, source_id)
            if source:
                source.status = SourceStatus.READY
                source.page_count = page_count
                source.updated_at = utcnow_naive()

    async def mark_source_failed(self, source_id: UUID) -> None:
        async with self._db.session() as session:
            source = await session.get(Source, source_id)
            if source:
                source.status = SourceStatus.FAILED
                source.updated_at = utcnow_naive()

    async def list_sources(self) -> list[Source]:
        """List all sources ordered by name."""
        async with self._db.session() as session:
            result = await session.execute(select(Source).order_by(col(Source.name)))
            return list(result.scalars().all())

    # =========================================================================
    # Pages
    # =========================================================================

    async def get_page_fingerprint(self, url: str) -> PageFingerprint | None:
        """Get the id and content hash of the page stored for a URL."""
        async with self._db.session() as session:
            result = await session.execute(
                select(Page.id, Page.content_hash).where(col(Page.url) == url).limit(1)
            )
            row = result.first()
            if row is None:
                return None
            return PageFingerprint(page_id=row[0], content_hash=row[1])

    async def save_page(
        self,
        *,
        source_id: UUID,
        url: str,
        content: ProcessedContent,
        content_hash: str,
        chunks: Sequence[Chunk],
        embeddings: Sequence[list[float]],
        existing_page_id: UUID | None = None,
    ) -> UUID:
        """Insert or update a page and replace its whole chunk set.

        Runs in one transaction: the page row update, deletion of the old
        chunks and insertion of the new ones commit together.

        Returns:
            The page id
        """
        async with self._db.session() as session:
            page = await session.get(Page, existing_page_id) if existing_page_id else None

            if page is not None:
                page.title = content.title
                page.markdown = content.markdown
                page.content_hash = content_hash
                page.word_count = content.word_count
                page.updated_at = utcnow_naive()
                await session.execute(delete(PageChunk).where(col(PageChunk.page_id) == page.id))
            else:
                page = Page(
                    source_id=source_id,
                    url=url,
                    title=content.title,
                    markdown=content.markdown,
                    content_hash=content_hash,
                    word_count=content.word_count,
                )
                session.add(page)
            await session.flush()

            session.add_all(
                PageChunk(
                    page_id=page.id,
                    chunk_index=chunk.index,
                    content=chunk.content,
                    token_count=chunk.token_count,
                    heading=chunk.heading,
                    embedding=embeddings[i] if i < len(embeddings) else None,
                )
                for i, chunk in enumerate(chunks)
            )
            return page.id

    async def get_page(
        self,
        *,
        url: str | None = None,
        page_id: UUID | None = None,
    ) -> PageView | None:
        """Get a page by id (preferred) or URL, joined with its source name."""
        query = select(Page, Source.name).join(Source, col(Page.source_id) == col(Source.id))
        if page_id is not None:
            query = query.where(col(Page.id) == page_id)
        elif url is not None:
            query = query.where(col(Page.url) == url)
        else:
            return None

        async with self._db.session() as session:
            result = await session.execute(query.limit(1))
            row = result.first()
            if row is None:
                return None
            page, source_name = row
            return PageView(
                id=page.id,
                url=page.url,
                title=page.title,
                markdown=page.markdown,
                word_count=page.word_count,
                source_name=source_name,
                updated_at=page.updated_at,
            )

    # =========================================================================
    # Search primitives
    # =========================================================================

    async def vector_search(
        self,
        embedding: list[float],
        *,
        limit: int,
        threshold: float,
        source_id: UUID | None = None,
    ) -> list[ChunkHit]:
        """Nearest chunks by cosine similarity (1 - cosine distance)."""
        distance = col(PageChunk.embedding).cosine_distance(embedding)
        similarity = (1 - distance).label("similarity")

        query = (
            select(
                PageChunk.id,
                PageChunk.content,
                PageChunk.heading,
                similarity,
                Page.title,
                Page.url,
                Source.name,
            )
            .join(Page, col(PageChunk.page_id) == col(Page.id))
            .join(Source, col(Page.source_id) == col(Source.id))
            .where(col(PageChunk.embedding).is_not(None))
            .where((1 - distance) >= threshold)
        )
        if source_id is not None:
            query = query.where(col(Page.source_id) == source_id)
        query = query.order_by(distance).limit(limit)

        async with self._db.session() as session:
            result = await session.execute(query)
            return [_row_to_hit(row) for row in result.all()]

    async def fulltext_search(
        self,
        ts_query: str,
        *,
        limit: int,
        source_id: UUID | None = None,
    ) -> list[ChunkHit]:
        """Chunks matching a to_tsquery expression, ranked by ts_rank."""
        ts_vector = func.to_tsvector("english", PageChunk.content)
        query_expr = func.to_tsquery("english", ts_query)
        rank = func.ts_rank(ts_vector, query_expr).label("rank")

        query = (
            select(
                PageChunk.id,
                PageChunk.content,
                PageChunk.heading,
                rank,
                Page.title,
                Page.url,
                Source.name,
            )
            .join(Page, col(PageChunk.page_id) == col(Page.id))
            .join(Source, col(Page.source_id) == col(Source.id))
            .where(ts_vector.bool_op("@@")(query_expr))
        )
        if source_id is not None:
            query = query.where(col(Page.source_id) == source_id)
        query = query.order_by(rank.desc()).limit(limit)

        async with self._db.session() as session:
            result = await session.execute(query)
            return [_row_to_hit(row) for row in result.all()]


def _row_to_hit(row: Sequence[object]) -> ChunkHit:
    chunk_id, content, heading, score, title, url, source_name = row
    return ChunkHit(
        chunk_id=chunk_id,  # type: ignore[arg-type]
        content=content,  # type: ignore[arg-type]
        heading=heading,  # type: ignore[arg-type]
        similarity=float(score),  # type: ignore[arg-type]
        page_title=title,  # type: ignore[arg-type]
        page_url=url,  # type: ignore[arg-type]
        source_name=source_name,  # type: ignore[arg-type]
    )
