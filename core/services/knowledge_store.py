"""
Datastore gateway for knowledge entries and their embeddings.

All reads and writes are scoped to an owner id. Single-row lookups that match
nothing raise RecordNotFound; any other datastore fault is rolled back and
re-raised as StorageError.
"""

from __future__ import annotations

import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterator, Optional, Sequence

from sqlalchemy import and_, func, literal, or_, select, text
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.types import Text

import core.config as config
from core.errors import RecordNotFound, StorageError
from core.models import Knowledge, KnowledgeEmbedding, serialize_knowledge

logger = config.logger

_WRITABLE_FIELDS = {
    "user_id": "user_id",
    "project_id": "project_id",
    "title": "title",
    "content": "content",
    "tags": "tags",
    "metadata": "metadata_",
    "refs": "refs",
    "traits": "traits",
    "time_start": "time_start",
    "time_end": "time_end",
}


@dataclass
class KnowledgeQuery:
    """Logical filter set for a knowledge select."""

    owner_id: str
    project_id: Optional[str] = None
    text: Optional[str] = None
    tags_any: Optional[Sequence[str]] = None
    refs_contains: list[dict] = field(default_factory=list)
    traits_contains: list[dict] = field(default_factory=list)
    limit: Optional[int] = None
    offset: int = 0
    with_count: bool = False


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class KnowledgeGateway:
    def __init__(self, session_factory, backend: Optional[str] = None):
        self._session_factory = session_factory
        self.backend = backend or config.DB_BACKEND_EFFECTIVE

    @contextmanager
    def _session(self) -> Iterator:
        db = self._session_factory()
        try:
            yield db
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error("storage_error", extra={"detail": str(exc)})
            raise StorageError(str(exc)) from exc
        finally:
            db.close()

    def _coerce_id(self, knowledge_id) -> str | uuid.UUID:
        try:
            value = knowledge_id if isinstance(knowledge_id, uuid.UUID) else uuid.UUID(str(knowledge_id))
        except (TypeError, ValueError) as exc:
            raise RecordNotFound(f"knowledge {knowledge_id} not found") from exc
        return value if self.backend == "postgres" else str(value)

    # ------------------------------------------------------------------
    # JSON array filters
    # ------------------------------------------------------------------

    def _tags_overlap(self, column, tags: Sequence[str]):
        if self.backend == "postgres":
            return column.has_any(postgresql.array(list(tags), type_=Text))
        elems = func.json_each(column).table_valued("value")
        return (
            select(literal(1))
            .select_from(elems)
            .where(elems.c.value.in_(list(tags)))
            .exists()
        )

    def _contains_element(self, column, pattern: dict):
        if self.backend == "postgres":
            return column.contains([pattern])
        elems = func.json_each(column).table_valued("value")
        conditions = [
            func.json_extract(elems.c.value, f"$.{key}") == value
            for key, value in pattern.items()
        ]
        return select(literal(1)).select_from(elems).where(and_(*conditions)).exists()

    def _filters(self, query: KnowledgeQuery) -> list:
        filters = [Knowledge.user_id == query.owner_id]
        if query.project_id:
            filters.append(Knowledge.project_id == query.project_id)
        if query.text:
            pattern = f"%{_escape_like(query.text)}%"
            filters.append(
                or_(
                    Knowledge.title.ilike(pattern, escape="\\"),
                    Knowledge.content.ilike(pattern, escape="\\"),
                )
            )
        if query.tags_any:
            filters.append(self._tags_overlap(Knowledge.tags, query.tags_any))
        for pattern in query.refs_contains:
            filters.append(self._contains_element(Knowledge.refs, pattern))
        for pattern in query.traits_contains:
            filters.append(self._contains_element(Knowledge.traits, pattern))
        return filters

    # ------------------------------------------------------------------
    # Entries
    # ------------------------------------------------------------------

    def insert(self, values: dict) -> dict:
        row = Knowledge()
        _apply_values(row, values)
        with self._session() as db:
            db.add(row)
            db.commit()
            db.refresh(row)
            return serialize_knowledge(row)

    def fetch_owned(self, knowledge_id, owner_id: str) -> dict:
        row_id = self._coerce_id(knowledge_id)
        with self._session() as db:
            row = _owned_row(db, row_id, owner_id)
            return serialize_knowledge(row)

    def select(self, query: KnowledgeQuery) -> tuple[list[dict], Optional[int]]:
        filters = self._filters(query)
        stmt = (
            select(Knowledge)
            .where(*filters)
            .order_by(Knowledge.created_at.desc(), Knowledge.id.desc())
        )
        if query.limit is not None:
            stmt = stmt.offset(query.offset).limit(query.limit)
        elif query.offset:
            stmt = stmt.offset(query.offset)

        with self._session() as db:
            rows = [serialize_knowledge(row) for row in db.scalars(stmt).all()]
            total = None
            if query.with_count:
                total = db.scalar(
                    select(func.count()).select_from(Knowledge).where(*filters)
                )
        return rows, total

    def update_owned(self, knowledge_id, owner_id: str, values: dict) -> dict:
        row_id = self._coerce_id(knowledge_id)
        with self._session() as db:
            row = _owned_row(db, row_id, owner_id)
            _apply_values(row, values)
            db.commit()
            db.refresh(row)
            return serialize_knowledge(row)

    def delete_owned(self, knowledge_id, owner_id: str) -> bool:
        try:
            row_id = self._coerce_id(knowledge_id)
        except RecordNotFound:
            return False
        with self._session() as db:
            deleted = (
                db.query(Knowledge)
                .filter(Knowledge.id == row_id, Knowledge.user_id == owner_id)
                .delete(synchronize_session=False)
            )
            if deleted:
                db.query(KnowledgeEmbedding).filter(
                    KnowledgeEmbedding.knowledge_id == row_id
                ).delete(synchronize_session=False)
            db.commit()
            return bool(deleted)

    # ------------------------------------------------------------------
    # Embeddings
    # ------------------------------------------------------------------

    def upsert_embedding(
        self,
        knowledge_id,
        vector: list[float],
        model_name: str = config.EMBEDDING_MODEL,
    ) -> None:
        row_id = self._coerce_id(knowledge_id)
        dialect = postgresql if self.backend == "postgres" else sqlite
        now = datetime.now(timezone.utc)
        stmt = dialect.insert(KnowledgeEmbedding).values(
            knowledge_id=row_id,
            model_name=model_name,
            content_embedding=vector,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["knowledge_id", "model_name"],
            set_={
                "content_embedding": stmt.excluded.content_embedding,
                "updated_at": stmt.excluded.updated_at,
            },
        )
        with self._session() as db:
            db.execute(stmt)
            db.commit()

    def match_knowledge(
        self,
        owner_id: str,
        vector: list[float],
        threshold: float,
        limit: int,
    ) -> list[dict]:
        """Run the datastore-side similarity function; rows ordered by similarity."""
        if not config.vector_search_enabled() or self.backend != "postgres":
            raise StorageError("semantic search unavailable on this backend")
        sql = text(
            """
            SELECT * FROM match_knowledge(
                cast(:query_embedding as vector),
                :match_threshold,
                :match_count,
                :owner_id
            )
            """
        )
        with self._session() as db:
            rows = db.execute(
                sql,
                {
                    "query_embedding": str(list(vector)),
                    "match_threshold": threshold,
                    "match_count": limit,
                    "owner_id": owner_id,
                },
            ).mappings().all()
        return [_serialize_match(row) for row in rows]

    def embedding_stats(self, owner_id: str) -> list[dict]:
        stmt = (
            select(
                KnowledgeEmbedding.model_name,
                func.count().label("count"),
                func.avg(func.length(Knowledge.content)).label("average_content_length"),
                func.max(KnowledgeEmbedding.updated_at).label("last_updated"),
            )
            .join(Knowledge, Knowledge.id == KnowledgeEmbedding.knowledge_id)
            .where(Knowledge.user_id == owner_id)
            .group_by(KnowledgeEmbedding.model_name)
        )
        with self._session() as db:
            return [dict(row) for row in db.execute(stmt).mappings().all()]

    def entries_missing_embeddings(
        self,
        owner_id: Optional[str] = None,
        limit: Optional[int] = None,
        model_name: str = config.EMBEDDING_MODEL,
    ) -> list[dict]:
        stmt = (
            select(Knowledge)
            .outerjoin(
                KnowledgeEmbedding,
                and_(
                    KnowledgeEmbedding.knowledge_id == Knowledge.id,
                    KnowledgeEmbedding.model_name == model_name,
                ),
            )
            .where(KnowledgeEmbedding.knowledge_id.is_(None))
            .order_by(Knowledge.created_at.asc())
        )
        if owner_id:
            stmt = stmt.where(Knowledge.user_id == owner_id)
        if limit is not None:
            stmt = stmt.limit(limit)
        with self._session() as db:
            return [serialize_knowledge(row) for row in db.scalars(stmt).all()]

    def ping(self) -> None:
        with self._session() as db:
            db.execute(text("SELECT 1"))


def _owned_row(db, row_id, owner_id: str) -> Knowledge:
    row = (
        db.query(Knowledge)
        .filter(Knowledge.id == row_id, Knowledge.user_id == owner_id)
        .one_or_none()
    )
    if row is None:
        raise RecordNotFound(f"knowledge {row_id} not found")
    return row


def _apply_values(row: Knowledge, values: dict) -> None:
    for key, value in values.items():
        attr = _WRITABLE_FIELDS.get(key)
        if attr is None:
            raise ValueError(f"unknown knowledge field: {key}")
        setattr(row, attr, value)


def _serialize_match(row) -> dict:
    data = dict(row)
    if "id" in data:
        data["id"] = str(data["id"])
    for key in ("created_at", "updated_at", "time_start", "time_end"):
        if data.get(key) is not None and hasattr(data[key], "isoformat"):
            data[key] = data[key].isoformat()
    if data.get("similarity") is not None:
        data["similarity"] = float(data["similarity"])
    return data


__all__ = ["KnowledgeGateway", "KnowledgeQuery"]
