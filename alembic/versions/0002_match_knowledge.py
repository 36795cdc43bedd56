"""Add vector index and match_knowledge similarity function.

Revision ID: 0002_match_knowledge
Revises: 0001_knowledge_tables
Create Date: 2026-10-18
"""

from alembic import op

import core.config as config


revision = "0002_match_knowledge"
down_revision = "0001_knowledge_tables"
branch_labels = None
depends_on = None


def _vector_enabled() -> bool:
    bind = op.get_bind()
    return bind.dialect.name == "postgresql" and config.VECTOR_BACKEND_EFFECTIVE == "pgvector"


def upgrade() -> None:
    if not _vector_enabled():
        return

    op.execute(
        """
        CREATE INDEX IF NOT EXISTS ix_knowledge_embeddings_hnsw
        ON knowledge_embeddings USING hnsw (content_embedding vector_cosine_ops)
        """
    )
    op.execute(
        f"""
        CREATE OR REPLACE FUNCTION match_knowledge(
            query_embedding vector({config.EMBEDDING_DIM}),
            match_threshold float,
            match_count int,
            p_owner_id text
        )
        RETURNS TABLE (
            id uuid,
            user_id varchar,
            project_id varchar,
            title text,
            content text,
            tags jsonb,
            metadata jsonb,
            refs jsonb,
            traits jsonb,
            time_start timestamptz,
            time_end timestamptz,
            created_at timestamptz,
            updated_at timestamptz,
            similarity float
        )
        LANGUAGE sql STABLE
        AS $$
            SELECT
                k.id,
                k.user_id,
                k.project_id,
                k.title,
                k.content,
                k.tags,
                k.metadata,
                k.refs,
                k.traits,
                k.time_start,
                k.time_end,
                k.created_at,
                k.updated_at,
                1 - (e.content_embedding <=> query_embedding) AS similarity
            FROM knowledge_embeddings e
            JOIN knowledge k ON k.id = e.knowledge_id
            WHERE k.user_id = p_owner_id
              AND 1 - (e.content_embedding <=> query_embedding) > match_threshold
            ORDER BY e.content_embedding <=> query_embedding
            LIMIT match_count
        $$
        """
    )


def downgrade() -> None:
    if not _vector_enabled():
        return
    op.execute("DROP FUNCTION IF EXISTS match_knowledge(vector, float, int, text)")
    op.execute("DROP INDEX IF EXISTS ix_knowledge_embeddings_hnsw")
