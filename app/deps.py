"""
Dependency helpers for the FastAPI app.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Depends, Request

from core.context import ANONYMOUS, AuthContext, resolve_owner_id
from core.services.knowledge_service import KnowledgeService
from app.auth import get_current_user


def get_knowledge_service(request: Request) -> KnowledgeService:
    service = getattr(request.app.state, "knowledge_service", None)
    if service is None:
        raise RuntimeError("Knowledge service not initialized")
    return service


def get_auth_context(
    user: Optional[dict] = Depends(get_current_user),
) -> AuthContext:
    if user:
        email = user.get("email")
        return AuthContext(user_id=user["id"], email=email, actor=email or "user")
    return ANONYMOUS


def get_owner_id(auth: AuthContext = Depends(get_auth_context)) -> str:
    return resolve_owner_id(auth)


def parse_tags(tags: Optional[str]) -> list[str]:
    """Split a comma-joined ``tags`` query parameter, dropping blanks."""
    if not tags:
        return []
    return [tag.strip() for tag in tags.split(",") if tag.strip()]
