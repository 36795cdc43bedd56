"""
Embedding statistics endpoint.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from core.services.knowledge_service import KnowledgeService
from app.deps import get_knowledge_service, get_owner_id


router = APIRouter(prefix="/api/embeddings", tags=["embeddings"])


@router.get("/stats")
def embedding_stats(
    owner_id: str = Depends(get_owner_id),
    service: KnowledgeService = Depends(get_knowledge_service),
):
    return service.get_embedding_stats(owner_id)
