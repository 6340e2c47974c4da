"""Hybrid search over documentation chunks.

Semantic search runs first. When it finds fewer than two chunks above the
similarity threshold, a PostgreSQL full-text query fills the gap. Lexical
hits keep their ts_rank score, so the ``similarity`` field of a merged list
mixes cosine similarities and text ranks.
"""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING, Any
from uuid import UUID

import structlog

from docsift.errors import SearchError

if TYPE_CHECKING:
    from docsift.crawler.embedder import EmbeddingService
    from docsift.db.store import ChunkHit, DocumentStore

log = structlog.get_logger()

DEFAULT_LIMIT = 5
DEFAULT_THRESHOLD = 0.3

# Fewer vector hits than this triggers the lexical fallback
MIN_VECTOR_RESULTS = 2

_NON_ALNUM = re.compile(r"[^a-zA-Z0-9]")


@dataclass
class SearchResult:
    """A single search result."""

    chunk_id: UUID
    source: str
    page_title: str | None
    page_url: str
    heading: str | None
    similarity: float
    content: str

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        return {
            "source": data["source"],
            "pageTitle": data["page_title"],
            "pageUrl": data["page_url"],
            "heading": data["heading"],
            "similarity": data["similarity"],
            "content": data["content"],
        }


def build_ts_query(query: str) -> str:
    """Turn free text into a to_tsquery AND expression.

    Terms are split on whitespace and stripped of anything but ASCII
    letters and digits; empty terms are dropped. Returns "" when nothing
    is left.
    """
    terms = (_NON_ALNUM.sub("", term) for term in query.split())
    return " & ".join(term for term in terms if term)


def merge_hits(primary: list[ChunkHit], secondary: list[ChunkHit], limit: int) -> list[ChunkHit]:
    """Primary hits first, then unseen secondary hits, truncated to limit."""
    seen = {hit.chunk_id for hit in primary}
    merged = list(primary)
    for hit in secondary:
        if hit.chunk_id not in seen:
            seen.add(hit.chunk_id)
            merged.append(hit)
    return merged[:limit]


def _to_result(hit: ChunkHit) -> SearchResult:
    return SearchResult(
        chunk_id=hit.chunk_id,
        source=hit.source_name,
        page_title=hit.page_title,
        page_url=hit.page_url,
        heading=hit.heading,
        similarity=round(hit.similarity, 3),
        content=hit.content,
    )


class HybridSearch:
    """Vector search with a full-text fallback."""

    def __init__(self, store: DocumentStore, embedder: EmbeddingService) -> None:
        self.store = store
        self.embedder = embedder

    async def search(
        self,
        query: str,
        source_id: UUID | None = None,
        limit: int = DEFAULT_LIMIT,
        threshold: float = DEFAULT_THRESHOLD,
    ) -> list[SearchResult]:
        """Search documentation chunks.

        Args:
            query: Natural language query
            source_id: Restrict results to one source
            limit: Maximum results
            threshold: Minimum cosine similarity for vector hits

        Returns:
            Up to ``limit`` results, vector hits first

        Raises:
            SearchError: If the query embedding cannot be produced
        """
        try:
            embedding = await self.embedder.embed_text(query)
        except Exception as e:
            raise SearchError(f"Failed to embed query: {e}", details={"query": query}) from e

        hits = await self.store.vector_search(
            embedding,
            limit=limit,
            threshold=threshold,
            source_id=source_id,
        )

        if len(hits) < MIN_VECTOR_RESULTS:
            ts_query = build_ts_query(query)
            lexical = (
                await self.store.fulltext_search(ts_query, limit=limit, source_id=source_id)
                if ts_query
                else []
            )
            log.debug(
                "Lexical fallback",
                query=query,
                vector_hits=len(hits),
                lexical_hits=len(lexical),
            )
            hits = merge_hits(hits, lexical, limit)

        log.info("Search complete", query=query, results=len(hits))
        return [_to_result(hit) for hit in hits]
