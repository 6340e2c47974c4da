"""SQLModel schemas for documentation storage with pgvector support.

Architecture:
- Source: A crawlable documentation site and its aggregate crawl state
- Page: One crawled, deduplicated markdown document
- PageChunk: Token-bounded slice of a page with its embedding
"""

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any
from uuid import UUID, uuid4

from pgvector.sqlalchemy import Vector
from sqlalchemy import Column, Index, String, Text, UniqueConstraint, text
from sqlmodel import Field, Relationship, SQLModel

EMBEDDING_DIMENSIONS = 1536


def utcnow_naive() -> datetime:
    """Get current UTC time as naive datetime (for TIMESTAMP WITHOUT TIME ZONE)."""
    return datetime.now(UTC).replace(tzinfo=None)


class SourceStatus(StrEnum):
    """Lifecycle status of a documentation source."""

    PENDING = "pending"
    CRAWLING = "crawling"
    PROCESSING = "processing"
    READY = "ready"
    FAILED = "failed"


class TimestampMixin(SQLModel):
    """Mixin for created/updated timestamps."""

    created_at: datetime = Field(
        default_factory=utcnow_naive,
        description="When this record was created",
    )
    updated_at: datetime = Field(
        default_factory=utcnow_naive,
        description="When this record was last updated",
        sa_column_kwargs={"onupdate": utcnow_naive},
    )


class Source(TimestampMixin, table=True):
    """A documentation site. One source has many pages."""

    __tablename__ = "sources"  # type: ignore[assignment]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    name: str = Field(max_length=255, index=True, description="Human-readable source name")
    base_url: str = Field(sa_type=Text, unique=True, description="Seed URL of the crawl")
    status: str = Field(
        default=SourceStatus.PENDING,
        sa_type=String(20),
        description="Current lifecycle status",
    )
    job_id: str | None = Field(default=None, max_length=64, description="Most recent crawl job")
    page_count: int = Field(default=0, ge=0, description="Pages processed by the last crawl")

    pages: list["Page"] = Relationship(
        back_populates="source",
        sa_relationship_kwargs={"cascade": "all, delete-orphan", "passive_deletes": True},
    )

    def __repr__(self) -> str:
        return f"<Source {self.name} ({self.base_url})>"


class Page(TimestampMixin, table=True):
    """A crawled page stored as normalized markdown."""

    __tablename__ = "pages"  # type: ignore[assignment]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    source_id: UUID = Field(foreign_key="sources.id", ondelete="CASCADE", index=True)
    url: str = Field(sa_type=Text, unique=True, description="Full page URL")
    title: str | None = Field(default=None, max_length=1000, description="Article title")
    markdown: str = Field(sa_type=Text, description="Normalized markdown body")
    content_hash: str = Field(max_length=64, index=True, description="SHA256 of markdown")
    word_count: int = Field(default=0, ge=0, description="Whitespace-delimited word count")

    source: Source = Relationship(back_populates="pages")
    chunks: list["PageChunk"] = Relationship(
        back_populates="page",
        sa_relationship_kwargs={"cascade": "all, delete-orphan", "passive_deletes": True},
    )

    def __repr__(self) -> str:
        return f"<Page {self.title or self.url[:50]}>"


class PageChunk(SQLModel, table=True):
    """A chunk of page content with its embedding.

    Stored for hybrid retrieval:
    - Dense vector for semantic search (pgvector, cosine)
    - Full text for lexical search (tsvector)
    """

    __tablename__ = "page_chunks"  # type: ignore[assignment]
    __table_args__ = (
        UniqueConstraint("page_id", "chunk_index", name="uq_page_chunks_page_index"),
        Index(
            "ix_page_chunks_content_fts",
            text("to_tsvector('english', content)"),
            postgresql_using="gin",
        ),
        Index(
            "ix_page_chunks_embedding_hnsw",
            "embedding",
            postgresql_using="hnsw",
            postgresql_with={"m": 16, "ef_construction": 64},
            postgresql_ops={"embedding": "vector_cosine_ops"},
        ),
    )

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    page_id: UUID = Field(foreign_key="pages.id", ondelete="CASCADE", index=True)
    chunk_index: int = Field(ge=0, description="Position in page (0-based, contiguous)")
    content: str = Field(sa_type=Text, description="Chunk text content")
    token_count: int = Field(default=0, ge=0, description="Estimated token count")
    heading: str | None = Field(default=None, max_length=500, description="Nearest heading")
    embedding: Any = Field(
        default=None,
        sa_column=Column(Vector(EMBEDDING_DIMENSIONS), nullable=True),
        description="Dense embedding vector",
    )
    created_at: datetime = Field(default_factory=utcnow_naive)

    page: Page = Relationship(back_populates="chunks")

    def __repr__(self) -> str:
        return f"<PageChunk {self.page_id}#{self.chunk_index}>"
