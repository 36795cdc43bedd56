"""
Knowledge entry business rules.

Every operation takes the caller's owner id explicitly; the gateway scopes
every query by it, so entries owned by someone else look exactly like entries
that do not exist.
"""

from __future__ import annotations

from concurrent.futures import Executor, ThreadPoolExecutor
from typing import Any, Mapping, Optional, Sequence

import core.config as config
from core.errors import RecordNotFound, ValidationIssue
from core.models import REFERENCE_TYPES
from core.schemas import KnowledgeCreate, KnowledgeUpdate, dump_records, parse_model
from core.services.embeddings import EmbeddingClient
from core.services.knowledge_store import KnowledgeGateway, KnowledgeQuery
from core.validators import (
    validate_limit,
    validate_metadata,
    validate_offset,
    validate_optional_text,
    validate_record_list,
    validate_required_text,
    validate_string_list,
    validate_threshold,
)

logger = config.logger


def _empty_stats() -> dict:
    return {
        "total_embeddings": 0,
        "average_content_length": 0,
        "models_used": [],
        "last_updated": None,
    }


def _has_more(total: int, offset: int, limit: Optional[int]) -> bool:
    if limit is None:
        return False
    return total > offset + limit


class KnowledgeService:
    def __init__(
        self,
        gateway: KnowledgeGateway,
        embedder: Optional[EmbeddingClient] = None,
        executor: Optional[Executor] = None,
    ):
        self.gateway = gateway
        self.embedder = embedder
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=max(1, config.EMBEDDING_REFRESH_WORKERS),
            thread_name_prefix="embedding-refresh",
        )

    # ------------------------------------------------------------------
    # Background embedding refresh
    # ------------------------------------------------------------------

    def refresh_embedding(self, knowledge_id: str, title: str, content: str) -> None:
        """Embed an entry and upsert its vector. Failures are logged only."""
        if self.embedder is None:
            return
        try:
            vector = self.embedder.embed_entry(title, content)
            self.gateway.upsert_embedding(knowledge_id, vector, self.embedder.model)
        except Exception as exc:
            logger.warning(
                "embedding_refresh_failed",
                extra={"knowledge_id": knowledge_id, "detail": str(exc)},
            )
            return
        logger.debug("embedding_refreshed", extra={"knowledge_id": knowledge_id})

    def _schedule_refresh(self, entry: dict) -> None:
        if self.embedder is None:
            return
        try:
            self._executor.submit(
                self.refresh_embedding,
                entry["id"],
                entry["title"],
                entry["content"],
            )
        except RuntimeError as exc:
            logger.warning(
                "embedding_refresh_not_scheduled",
                extra={"knowledge_id": entry["id"], "detail": str(exc)},
            )

    def shutdown(self) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=True)

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    def create(self, data: KnowledgeCreate | Mapping[str, Any], owner_id: str) -> dict:
        payload = parse_model(KnowledgeCreate, data)
        validate_required_text(payload.title, "title", config.MAX_TITLE_LENGTH)
        validate_required_text(payload.content, "content", config.MAX_TEXT_LENGTH)
        validate_string_list(payload.tags, "tags", config.MAX_TAG_ITEMS, config.MAX_LIST_ITEM_LENGTH)
        validate_optional_text(payload.project_id, "project_id", config.MAX_SHORT_TEXT_LENGTH)
        validate_metadata(payload.metadata, "metadata")
        refs = dump_records(payload.refs) or []
        traits = dump_records(payload.traits) or []
        validate_record_list(refs, "refs", config.MAX_LIST_ITEMS)
        validate_record_list(traits, "traits", config.MAX_LIST_ITEMS)

        entry = self.gateway.insert(
            {
                "user_id": owner_id,
                "title": payload.title,
                "content": payload.content,
                "tags": list(payload.tags or []),
                "project_id": payload.project_id or None,
                "metadata": payload.metadata or {},
                "refs": refs,
                "traits": traits,
                "time_start": payload.time_start,
                "time_end": payload.time_end,
            }
        )
        logger.info("knowledge_created", extra={"knowledge_id": entry["id"]})
        self._schedule_refresh(entry)
        return entry

    def list(
        self,
        owner_id: str,
        project_id: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> dict:
        if limit is not None:
            validate_limit(limit, "limit", config.MAX_RESULT_LIMIT)
        validate_offset(offset)
        entries, total = self.gateway.select(
            KnowledgeQuery(
                owner_id=owner_id,
                project_id=project_id,
                limit=limit,
                offset=offset,
                with_count=True,
            )
        )
        total = total or 0
        return {
            "entries": entries,
            "total": total,
            "has_more": _has_more(total, offset, limit),
        }

    def get_by_id(self, knowledge_id: str, owner_id: str) -> Optional[dict]:
        try:
            return self.gateway.fetch_owned(knowledge_id, owner_id)
        except RecordNotFound:
            return None

    def update(
        self,
        knowledge_id: str,
        patch: KnowledgeUpdate | Mapping[str, Any],
        owner_id: str,
    ) -> Optional[dict]:
        """Apply only the fields present in ``patch``."""
        payload = parse_model(KnowledgeUpdate, patch)
        present = payload.model_fields_set

        values: dict[str, Any] = {}
        for name in ("title", "content"):
            if name in present:
                limit = config.MAX_TITLE_LENGTH if name == "title" else config.MAX_TEXT_LENGTH
                validate_required_text(getattr(payload, name), name, limit)
                values[name] = getattr(payload, name)
        if "tags" in present:
            validate_string_list(payload.tags, "tags", config.MAX_TAG_ITEMS, config.MAX_LIST_ITEM_LENGTH)
            values["tags"] = list(payload.tags or [])
        for name in ("refs", "traits"):
            if name in present:
                records = dump_records(getattr(payload, name)) or []
                validate_record_list(records, name, config.MAX_LIST_ITEMS)
                values[name] = records
        if "metadata" in present:
            validate_metadata(payload.metadata, "metadata")
            values["metadata"] = payload.metadata or {}
        if "project_id" in present:
            validate_optional_text(payload.project_id, "project_id", config.MAX_SHORT_TEXT_LENGTH)
            values["project_id"] = payload.project_id or None
        for name in ("time_start", "time_end"):
            if name in present:
                values[name] = getattr(payload, name)

        try:
            if not values:
                return self.gateway.fetch_owned(knowledge_id, owner_id)
            entry = self.gateway.update_owned(knowledge_id, owner_id, values)
        except RecordNotFound:
            return None

        logger.info(
            "knowledge_updated",
            extra={"knowledge_id": entry["id"], "fields": sorted(values)},
        )
        if "title" in values or "content" in values:
            self._schedule_refresh(entry)
        return entry

    def delete(self, knowledge_id: str, owner_id: str) -> bool:
        deleted = self.gateway.delete_owned(knowledge_id, owner_id)
        if deleted:
            logger.info("knowledge_deleted", extra={"knowledge_id": str(knowledge_id)})
        return deleted

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def search(
        self,
        owner_id: str,
        query: Optional[str] = None,
        tags: Optional[Sequence[str]] = None,
        project_id: Optional[str] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> dict:
        validate_optional_text(query, "query", config.MAX_QUERY_LENGTH)
        validate_string_list(tags, "tags", config.MAX_TAG_ITEMS, config.MAX_LIST_ITEM_LENGTH)
        validate_limit(limit, "limit", config.MAX_RESULT_LIMIT)
        validate_offset(offset)

        entries, total = self.gateway.select(
            KnowledgeQuery(
                owner_id=owner_id,
                project_id=project_id,
                text=query.strip() if query else None,
                tags_any=list(tags) if tags else None,
                limit=limit,
                offset=offset,
                with_count=True,
            )
        )
        total = total or 0
        return {
            "entries": entries,
            "total": total,
            "has_more": _has_more(total, offset, limit),
        }

    def search_semantic(
        self,
        owner_id: str,
        query: str,
        threshold: float = 0.7,
        limit: int = 10,
    ) -> dict:
        """Similarity search; any failure falls back to text search."""
        validate_required_text(query, "query", config.MAX_QUERY_LENGTH)
        validate_threshold(threshold, "threshold")
        validate_limit(limit, "limit", config.MAX_RESULT_LIMIT)

        try:
            if self.embedder is None:
                raise RuntimeError("embedding provider disabled")
            vector = self.embedder.embed(query)
            results = self.gateway.match_knowledge(owner_id, vector, threshold, limit)
        except Exception as exc:
            logger.warning("semantic_search_fallback", extra={"detail": str(exc)})
            fallback = self.search(owner_id, query=query, limit=limit)
            return {
                "query": query,
                "search_type": "text",
                "results": fallback["entries"],
                "count": len(fallback["entries"]),
            }
        return {
            "query": query,
            "search_type": "semantic",
            "results": results,
            "count": len(results),
        }

    def get_by_tags(self, owner_id: str, tags: Sequence[str]) -> list[dict]:
        validate_string_list(tags, "tags", config.MAX_TAG_ITEMS, config.MAX_LIST_ITEM_LENGTH)
        if not tags:
            raise ValidationIssue("At least one tag is required", field="tags", error_type="required")
        entries, _ = self.gateway.select(KnowledgeQuery(owner_id=owner_id, tags_any=list(tags)))
        return entries

    def get_by_reference(
        self,
        owner_id: str,
        uri: Optional[str] = None,
        attributed_to: Optional[str] = None,
        ref_type: Optional[str] = None,
    ) -> list[dict]:
        patterns = []
        if uri:
            patterns.append({"uri": uri})
        if attributed_to:
            patterns.append({"attributed_to": attributed_to})
        if ref_type:
            if ref_type not in REFERENCE_TYPES:
                raise ValidationIssue(
                    "type must be 'citation' or 'testimony'",
                    field="type",
                    error_type="invalid_value",
                )
            patterns.append({"type": ref_type})
        if not patterns:
            raise ValidationIssue(
                "uri, attributed_to or type is required",
                field="uri",
                error_type="required",
            )
        entries, _ = self.gateway.select(KnowledgeQuery(owner_id=owner_id, refs_contains=patterns))
        return entries

    def get_by_traits(
        self,
        owner_id: str,
        trait_key: Optional[str] = None,
        trait_value: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[dict]:
        pattern = {}
        if trait_key:
            pattern["key"] = trait_key
        if trait_value:
            pattern["value"] = trait_value
        if not pattern:
            raise ValidationIssue(
                "trait_key or trait_value is required",
                field="trait_key",
                error_type="required",
            )
        if limit is not None:
            validate_limit(limit, "limit", config.MAX_RESULT_LIMIT)
        entries, _ = self.gateway.select(
            KnowledgeQuery(owner_id=owner_id, traits_contains=[pattern], limit=limit)
        )
        return entries

    # ------------------------------------------------------------------
    # Embedding stats
    # ------------------------------------------------------------------

    def get_embedding_stats(self, owner_id: str) -> dict:
        try:
            rows = self.gateway.embedding_stats(owner_id)
        except Exception as exc:
            logger.warning("embedding_stats_failed", extra={"detail": str(exc)})
            return _empty_stats()

        total = sum(int(row["count"] or 0) for row in rows)
        if total == 0:
            return _empty_stats()
        weighted = sum(
            float(row["average_content_length"] or 0) * int(row["count"] or 0)
            for row in rows
        )
        last_updated = max(
            (row["last_updated"] for row in rows if row["last_updated"] is not None),
            default=None,
        )
        if last_updated is not None and hasattr(last_updated, "isoformat"):
            last_updated = last_updated.isoformat()
        return {
            "total_embeddings": total,
            "average_content_length": round(weighted / total),
            "models_used": sorted(row["model_name"] for row in rows),
            "last_updated": last_updated,
        }


__all__ = ["KnowledgeService"]
