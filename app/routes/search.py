"""
Text and semantic search endpoint.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

import core.config as config
from core.errors import ValidationIssue
from core.services.knowledge_service import KnowledgeService
from app.deps import get_knowledge_service, get_owner_id, parse_tags


router = APIRouter(prefix="/api", tags=["search"])


@router.get("/search")
def search_knowledge(
    q: Optional[str] = None,
    tags: Optional[str] = None,
    project_id: Optional[str] = None,
    limit: Optional[int] = Query(default=None),
    offset: int = Query(default=0),
    semantic: bool = False,
    threshold: float = Query(default=config.SEMANTIC_THRESHOLD_DEFAULT),
    owner_id: str = Depends(get_owner_id),
    service: KnowledgeService = Depends(get_knowledge_service),
):
    if semantic:
        if not q or not q.strip():
            raise ValidationIssue(
                "Query parameter 'q' is required for semantic search",
                field="q",
                error_type="required",
            )
        result = service.search_semantic(
            owner_id,
            q,
            threshold=threshold,
            limit=limit if limit is not None else config.SEMANTIC_LIMIT_DEFAULT,
        )
        return {
            "query": result["query"],
            "searchType": result["search_type"],
            "results": result["results"],
            "count": result["count"],
        }

    return service.search(
        owner_id,
        query=q,
        tags=parse_tags(tags),
        project_id=project_id,
        limit=limit if limit is not None else config.DEFAULT_PAGE_LIMIT,
        offset=offset,
    )
