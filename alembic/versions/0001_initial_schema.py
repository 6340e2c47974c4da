"""Initial docsift schema.

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19

Sources, pages and page chunks with a pgvector embedding column, an HNSW
cosine index for semantic search and a GIN index for full-text search.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from pgvector.sqlalchemy import Vector

# revision identifiers, used by Alembic.
revision: str = "0001_initial_schema"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.execute("CREATE EXTENSION IF NOT EXISTS vector")

    op.create_table(
        "sources",
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("base_url", sa.Text(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("job_id", sa.String(length=64), nullable=True),
        sa.Column("page_count", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("base_url"),
    )
    op.create_index("ix_sources_name", "sources", ["name"])

    op.create_table(
        "pages",
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("source_id", sa.UUID(), nullable=False),
        sa.Column("url", sa.Text(), nullable=False),
        sa.Column("title", sa.String(length=1000), nullable=True),
        sa.Column("markdown", sa.Text(), nullable=False),
        sa.Column("content_hash", sa.String(length=64), nullable=False),
        sa.Column("word_count", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["source_id"], ["sources.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("url"),
    )
    op.create_index("ix_pages_source_id", "pages", ["source_id"])
    op.create_index("ix_pages_content_hash", "pages", ["content_hash"])

    op.create_table(
        "page_chunks",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("page_id", sa.UUID(), nullable=False),
        sa.Column("chunk_index", sa.Integer(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("token_count", sa.Integer(), nullable=False),
        sa.Column("heading", sa.String(length=500), nullable=True),
        sa.Column("embedding", Vector(1536), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["page_id"], ["pages.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("page_id", "chunk_index", name="uq_page_chunks_page_index"),
    )
    op.create_index("ix_page_chunks_page_id", "page_chunks", ["page_id"])
    op.create_index(
        "ix_page_chunks_embedding_hnsw",
        "page_chunks",
        ["embedding"],
        postgresql_using="hnsw",
        postgresql_with={"m": 16, "ef_construction": 64},
        postgresql_ops={"embedding": "vector_cosine_ops"},
    )
    op.execute(
        "CREATE INDEX ix_page_chunks_content_fts ON page_chunks "
        "USING gin (to_tsvector('english', content))"
    )


def downgrade() -> None:
    op.drop_index("ix_page_chunks_content_fts", table_name="page_chunks")
    op.drop_index("ix_page_chunks_embedding_hnsw", table_name="page_chunks")
    op.drop_index("ix_page_chunks_page_id", table_name="page_chunks")
    op.drop_table("page_chunks")
    op.drop_index("ix_pages_content_hash", table_name="pages")
    op.drop_index("ix_pages_source_id", table_name="pages")
    op.drop_table("pages")
    op.drop_index("ix_sources_name", table_name="sources")
    op.drop_table("sources")
