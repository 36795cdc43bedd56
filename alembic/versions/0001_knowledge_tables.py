"""Create knowledge and knowledge_embeddings tables.

Revision ID: 0001_knowledge_tables
Revises:
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

import core.config as config


revision = "0001_knowledge_tables"
down_revision = None
branch_labels = None
depends_on = None


def _embedding_type(is_postgres: bool):
    if is_postgres and config.VECTOR_BACKEND_EFFECTIVE == "pgvector":
        from pgvector.sqlalchemy import Vector

        return Vector(config.EMBEDDING_DIM)
    return sa.JSON


def upgrade() -> None:
    bind = op.get_bind()
    is_postgres = bind.dialect.name == "postgresql"
    json_type = postgresql.JSONB if is_postgres else sa.JSON
    uuid_type = postgresql.UUID(as_uuid=True) if is_postgres else sa.String(length=36)
    id_default = sa.text("gen_random_uuid()") if is_postgres else None

    op.create_table(
        "knowledge",
        sa.Column("id", uuid_type, primary_key=True, server_default=id_default),
        sa.Column("user_id", sa.String(length=100), nullable=False),
        sa.Column("project_id", sa.String(length=255)),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("tags", json_type, nullable=False),
        sa.Column("metadata", json_type, nullable=False),
        sa.Column("refs", json_type, nullable=False),
        sa.Column("traits", json_type, nullable=False),
        sa.Column("time_start", sa.DateTime(timezone=True)),
        sa.Column("time_end", sa.DateTime(timezone=True)),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_knowledge_user_created", "knowledge", ["user_id", "created_at"])
    op.create_index("ix_knowledge_project_id", "knowledge", ["project_id"])

    op.create_table(
        "knowledge_embeddings",
        sa.Column(
            "knowledge_id",
            uuid_type,
            sa.ForeignKey("knowledge.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("model_name", sa.String(length=100), primary_key=True),
        sa.Column("content_embedding", _embedding_type(is_postgres), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )

    if is_postgres:
        op.create_index("ix_knowledge_tags_gin", "knowledge", ["tags"], postgresql_using="gin")
        op.create_index(
            "ix_knowledge_refs_gin",
            "knowledge",
            ["refs"],
            postgresql_using="gin",
            postgresql_ops={"refs": "jsonb_path_ops"},
        )
        op.create_index(
            "ix_knowledge_traits_gin",
            "knowledge",
            ["traits"],
            postgresql_using="gin",
            postgresql_ops={"traits": "jsonb_path_ops"},
        )


def downgrade() -> None:
    bind = op.get_bind()
    if bind.dialect.name == "postgresql":
        op.drop_index("ix_knowledge_traits_gin", table_name="knowledge")
        op.drop_index("ix_knowledge_refs_gin", table_name="knowledge")
        op.drop_index("ix_knowledge_tags_gin", table_name="knowledge")
    op.drop_table("knowledge_embeddings")
    op.drop_index("ix_knowledge_project_id", table_name="knowledge")
    op.drop_index("ix_knowledge_user_created", table_name="knowledge")
    op.drop_table("knowledge")
