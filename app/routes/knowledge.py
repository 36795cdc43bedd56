"""
Knowledge entry CRUD and lookup endpoints.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

import core.config as config
from core.schemas import KnowledgeCreate, KnowledgeUpdate
from core.services.knowledge_service import KnowledgeService
from app.deps import get_knowledge_service, get_owner_id, parse_tags


router = APIRouter(prefix="/api/knowledge", tags=["knowledge"])

NOT_FOUND_MESSAGE = "Knowledge entry not found"


@router.get("")
def list_knowledge(
    project_id: Optional[str] = None,
    limit: int = Query(default=config.DEFAULT_PAGE_LIMIT),
    offset: int = Query(default=0),
    owner_id: str = Depends(get_owner_id),
    service: KnowledgeService = Depends(get_knowledge_service),
):
    return service.list(owner_id, project_id=project_id, limit=limit, offset=offset)


@router.post("", status_code=201)
def create_knowledge(
    payload: KnowledgeCreate,
    owner_id: str = Depends(get_owner_id),
    service: KnowledgeService = Depends(get_knowledge_service),
):
    return service.create(payload, owner_id)


@router.get("/by-tags")
def knowledge_by_tags(
    tags: Optional[str] = None,
    owner_id: str = Depends(get_owner_id),
    service: KnowledgeService = Depends(get_knowledge_service),
):
    entries = service.get_by_tags(owner_id, parse_tags(tags))
    return {"entries": entries, "total": len(entries)}


@router.get("/by-reference")
def knowledge_by_reference(
    uri: Optional[str] = None,
    attributed_to: Optional[str] = None,
    ref_type: Optional[str] = Query(default=None, alias="type"),
    owner_id: str = Depends(get_owner_id),
    service: KnowledgeService = Depends(get_knowledge_service),
):
    entries = service.get_by_reference(
        owner_id,
        uri=uri,
        attributed_to=attributed_to,
        ref_type=ref_type,
    )
    return {"entries": entries, "total": len(entries)}


@router.get("/by-traits")
def knowledge_by_traits(
    trait_key: Optional[str] = None,
    trait_value: Optional[str] = None,
    limit: int = Query(default=config.SEMANTIC_LIMIT_DEFAULT),
    owner_id: str = Depends(get_owner_id),
    service: KnowledgeService = Depends(get_knowledge_service),
):
    entries = service.get_by_traits(
        owner_id,
        trait_key=trait_key,
        trait_value=trait_value,
        limit=limit,
    )
    return {"entries": entries, "total": len(entries)}


@router.get("/{knowledge_id}")
def get_knowledge(
    knowledge_id: str,
    owner_id: str = Depends(get_owner_id),
    service: KnowledgeService = Depends(get_knowledge_service),
):
    entry = service.get_by_id(knowledge_id, owner_id)
    if entry is None:
        raise HTTPException(status_code=404, detail=NOT_FOUND_MESSAGE)
    return entry


@router.put("/{knowledge_id}")
def update_knowledge(
    knowledge_id: str,
    payload: KnowledgeUpdate,
    owner_id: str = Depends(get_owner_id),
    service: KnowledgeService = Depends(get_knowledge_service),
):
    entry = service.update(knowledge_id, payload, owner_id)
    if entry is None:
        raise HTTPException(status_code=404, detail=NOT_FOUND_MESSAGE)
    return entry


@router.delete("/{knowledge_id}")
def delete_knowledge(
    knowledge_id: str,
    owner_id: str = Depends(get_owner_id),
    service: KnowledgeService = Depends(get_knowledge_service),
):
    if not service.delete(knowledge_id, owner_id):
        raise HTTPException(status_code=404, detail=NOT_FOUND_MESSAGE)
    return {"message": "Knowledge entry deleted successfully"}
