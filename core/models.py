"""
Knowledger Database Models
PostgreSQL + pgvector schema (JSON fallbacks for SQLite)
"""

from datetime import datetime, timezone
import uuid

from sqlalchemy import (
    Column, String, Text, DateTime, ForeignKey, Index, JSON,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import declarative_base

import core.config as config

DB_BACKEND_EFFECTIVE = config.DB_BACKEND_EFFECTIVE
VECTOR_BACKEND_EFFECTIVE = config.VECTOR_BACKEND_EFFECTIVE

try:
    from pgvector.sqlalchemy import Vector as PgVector
    PGVECTOR_AVAILABLE = True
except ImportError:
    PgVector = None
    PGVECTOR_AVAILABLE = False

if (
    DB_BACKEND_EFFECTIVE == "postgres"
    and VECTOR_BACKEND_EFFECTIVE == "pgvector"
    and PGVECTOR_AVAILABLE
):
    EMBEDDING_COLUMN_TYPE = PgVector(config.EMBEDDING_DIM)
else:
    EMBEDDING_COLUMN_TYPE = JSON

JSON_TYPE = JSONB if DB_BACKEND_EFFECTIVE == "postgres" else JSON
UUID_TYPE = UUID(as_uuid=True) if DB_BACKEND_EFFECTIVE == "postgres" else String(36)


def _uuid_default() -> str | uuid.UUID:
    value = uuid.uuid4()
    return value if DB_BACKEND_EFFECTIVE == "postgres" else str(value)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


Base = declarative_base()

REFERENCE_TYPES = ("citation", "testimony")


# =============================================================================
# Knowledge entries
# =============================================================================

class Knowledge(Base):
    __tablename__ = "knowledge"

    id = Column(UUID_TYPE, primary_key=True, default=_uuid_default)
    user_id = Column(String(100), nullable=False)  # owner, set once at creation
    project_id = Column(String(255))
    title = Column(Text, nullable=False)
    content = Column(Text, nullable=False)
    tags = Column(JSON_TYPE, nullable=False, default=list)
    metadata_ = Column("metadata", JSON_TYPE, nullable=False, default=dict)
    refs = Column(JSON_TYPE, nullable=False, default=list)  # [{uri, title, attributed_to, type, statement}]
    traits = Column(JSON_TYPE, nullable=False, default=list)  # [{key, value, confidence, parent_id}]
    time_start = Column(DateTime(timezone=True))
    time_end = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        Index("ix_knowledge_user_created", "user_id", "created_at"),
        Index("ix_knowledge_project_id", "project_id"),
    )


# =============================================================================
# Embeddings (one row per entry and model)
# =============================================================================

class KnowledgeEmbedding(Base):
    __tablename__ = "knowledge_embeddings"

    knowledge_id = Column(
        UUID_TYPE,
        ForeignKey("knowledge.id", ondelete="CASCADE"),
        primary_key=True,
    )
    model_name = Column(String(100), primary_key=True, default=config.EMBEDDING_MODEL)
    content_embedding = Column(EMBEDDING_COLUMN_TYPE, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)


def _isoformat(value):
    return value.isoformat() if value is not None else None


def serialize_knowledge(row: Knowledge) -> dict:
    """Shape a knowledge row into its JSON envelope."""
    return {
        "id": str(row.id),
        "user_id": row.user_id,
        "project_id": row.project_id,
        "title": row.title,
        "content": row.content,
        "tags": list(row.tags or []),
        "metadata": dict(row.metadata_ or {}),
        "refs": list(row.refs or []),
        "traits": list(row.traits or []),
        "time_start": _isoformat(row.time_start),
        "time_end": _isoformat(row.time_end),
        "created_at": _isoformat(row.created_at),
        "updated_at": _isoformat(row.updated_at),
    }


__all__ = [
    "Base",
    "Knowledge",
    "KnowledgeEmbedding",
    "REFERENCE_TYPES",
    "PGVECTOR_AVAILABLE",
    "serialize_knowledge",
]
