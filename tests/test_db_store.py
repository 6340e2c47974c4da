"""Tests for DocumentStore query construction and write grouping.

Runs the store against a recording session, so the SQL it builds and the
statements it groups into one session are checked without PostgreSQL.
Behaviour against a live database lives in test_db_store_integration.py.
"""

from contextlib import asynccontextmanager
from typing import Any
from unittest.mock import MagicMock
from uuid import uuid4

import pytest
from sqlalchemy.dialects import postgresql
from sqlalchemy.sql.dml import Delete

from docsift.crawler.chunker import Chunk
from docsift.crawler.extractor import ProcessedContent
from docsift.db.models import Page, PageChunk
from docsift.db.store import ChunkHit, DocumentStore

URL = "https://docs.example.com/guide/install"


class RecordingSession:
    """AsyncSession stand-in that records statements and added rows."""

    def __init__(self, rows: list[tuple[Any, ...]], existing: Any = None) -> None:
        self.rows = rows
        self.existing = existing
        self.executed: list[Any] = []
        self.added: list[Any] = []
        self.flushes = 0
        self.committed = False

    async def execute(self, statement: Any) -> MagicMock:
        self.executed.append(statement)
        result = MagicMock()
        result.all.return_value = list(self.rows)
        result.first.return_value = self.rows[0] if self.rows else None
        return result

    async def get(self, model: Any, ident: Any) -> Any:
        return self.existing

    def add(self, obj: Any) -> None:
        self.added.append(obj)

    def add_all(self, objs: Any) -> None:
        self.added.extend(objs)

    async def flush(self) -> None:
        self.flushes += 1


class RecordingDatabase:
    """Database stand-in handing out RecordingSessions."""

    def __init__(self, rows: list[tuple[Any, ...]] | None = None, existing: Any = None) -> None:
        self.rows = rows or []
        self.existing = existing
        self.sessions: list[RecordingSession] = []

    @asynccontextmanager
    async def session(self):  # type: ignore[no-untyped-def]
        session = RecordingSession(self.rows, self.existing)
        self.sessions.append(session)
        yield session
        session.committed = True


def compile_sql(statement: Any) -> tuple[str, dict[str, Any]]:
    compiled = statement.compile(dialect=postgresql.dialect())
    return str(compiled), dict(compiled.params)


def content(markdown: str = "## Setup\n\nRun the installer.") -> ProcessedContent:
    return ProcessedContent(title="Install", markdown=markdown, word_count=len(markdown.split()))


def chunks(*texts: str) -> list[Chunk]:
    return [
        Chunk(content=text, heading="Setup", token_count=len(text) // 4 + 1, index=i)
        for i, text in enumerate(texts)
    ]


# =============================================================================
# save_page
# =============================================================================


class TestSavePage:
    """Tests for page upsert with chunk-set replacement."""

    @pytest.mark.asyncio
    async def test_new_page_and_chunks_in_one_session(self) -> None:
        database = RecordingDatabase()
        store = DocumentStore(database)  # type: ignore[arg-type]
        source_id = uuid4()

        page_id = await store.save_page(
            source_id=source_id,
            url=URL,
            content=content(),
            content_hash="h1",
            chunks=chunks("first", "second"),
            embeddings=[[0.1], [0.2]],
        )

        [session] = database.sessions
        assert session.committed
        assert not any(isinstance(s, Delete) for s in session.executed)

        page, *stored_chunks = session.added
        assert isinstance(page, Page)
        assert page.id == page_id
        assert page.source_id == source_id
        assert page.content_hash == "h1"
        assert [c.chunk_index for c in stored_chunks] == [0, 1]
        assert [c.embedding for c in stored_chunks] == [[0.1], [0.2]]
        assert all(c.page_id == page_id for c in stored_chunks)

    @pytest.mark.asyncio
    async def test_update_replaces_chunk_set_in_same_session(self) -> None:
        existing = Page(
            source_id=uuid4(),
            url=URL,
            title="Old",
            markdown="old",
            content_hash="h1",
            word_count=1,
        )
        original_updated_at = existing.updated_at
        database = RecordingDatabase(existing=existing)
        store = DocumentStore(database)  # type: ignore[arg-type]

        page_id = await store.save_page(
            source_id=existing.source_id,
            url=URL,
            content=content("## Upgrade\n\nRun pip."),
            content_hash="h2",
            chunks=chunks("replacement"),
            embeddings=[[0.3]],
            existing_page_id=existing.id,
        )

        [session] = database.sessions
        assert session.committed
        assert page_id == existing.id
        assert existing.content_hash == "h2"
        assert existing.markdown == "## Upgrade\n\nRun pip."
        assert existing.updated_at >= original_updated_at

        [delete_stmt] = [s for s in session.executed if isinstance(s, Delete)]
        assert delete_stmt.table.name == PageChunk.__tablename__
        sql, params = compile_sql(delete_stmt)
        assert "page_chunks.page_id" in sql
        assert existing.id in params.values()

        [new_chunk] = session.added
        assert isinstance(new_chunk, PageChunk)
        assert new_chunk.page_id == existing.id
        assert new_chunk.content == "replacement"

    @pytest.mark.asyncio
    async def test_missing_embeddings_are_stored_as_null(self) -> None:
        database = RecordingDatabase()
        store = DocumentStore(database)  # type: ignore[arg-type]

        await store.save_page(
            source_id=uuid4(),
            url=URL,
            content=content(),
            content_hash="h1",
            chunks=chunks("a", "b"),
            embeddings=[[0.5]],
        )

        stored_chunks = database.sessions[0].added[1:]
        assert [c.embedding for c in stored_chunks] == [[0.5], None]


# =============================================================================
# Search primitives
# =============================================================================


ROW = (uuid4(), "Run the installer.", "Setup", 0.8765, "Install", URL, "Example Docs")


class TestVectorSearch:
    """Tests for the cosine-similarity query."""

    @pytest.mark.asyncio
    async def test_query_shape(self) -> None:
        database = RecordingDatabase(rows=[ROW])
        store = DocumentStore(database)  # type: ignore[arg-type]
        source_id = uuid4()

        hits = await store.vector_search([0.1, 0.2], limit=7, threshold=0.45, source_id=source_id)

        sql, params = compile_sql(database.sessions[0].executed[0])
        assert "<=>" in sql
        assert "page_chunks.embedding IS NOT NULL" in sql
        # One from the sources join, one from the filter
        assert sql.count("pages.source_id =") == 2
        assert "ORDER BY" in sql
        assert "LIMIT" in sql
        assert 0.45 in params.values()
        assert 7 in params.values()
        assert source_id in params.values()

        assert hits == [
            ChunkHit(
                chunk_id=ROW[0],
                content="Run the installer.",
                heading="Setup",
                similarity=0.8765,
                page_title="Install",
                page_url=URL,
                source_name="Example Docs",
            )
        ]

    @pytest.mark.asyncio
    async def test_no_source_filter(self) -> None:
        database = RecordingDatabase()
        store = DocumentStore(database)  # type: ignore[arg-type]

        assert await store.vector_search([0.1], limit=5, threshold=0.3) == []

        sql, _ = compile_sql(database.sessions[0].executed[0])
        assert sql.count("pages.source_id =") == 1


class TestFulltextSearch:
    """Tests for the ts_rank query."""

    @pytest.mark.asyncio
    async def test_query_shape(self) -> None:
        database = RecordingDatabase(rows=[ROW])
        store = DocumentStore(database)  # type: ignore[arg-type]

        hits = await store.fulltext_search("install & guide", limit=3)

        sql, params = compile_sql(database.sessions[0].executed[0])
        assert "to_tsvector" in sql
        assert "to_tsquery" in sql
        assert "@@" in sql
        assert "ts_rank" in sql
        assert "DESC" in sql
        assert "install & guide" in params.values()
        assert "english" in params.values()
        assert sql.count("pages.source_id =") == 1
        assert [hit.similarity for hit in hits] == [0.8765]

    @pytest.mark.asyncio
    async def test_source_filter(self) -> None:
        database = RecordingDatabase()
        store = DocumentStore(database)  # type: ignore[arg-type]
        source_id = uuid4()

        await store.fulltext_search("install", limit=3, source_id=source_id)

        sql, params = compile_sql(database.sessions[0].executed[0])
        assert sql.count("pages.source_id =") == 2
        assert source_id in params.values()
