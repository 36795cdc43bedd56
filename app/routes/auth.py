"""
Current-user endpoint.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from core.context import AuthContext
from core.errors import AuthenticationError
from app.deps import get_auth_context


router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.get("/me")
def me(auth: AuthContext = Depends(get_auth_context)):
    if not auth.authenticated:
        raise AuthenticationError("User not authenticated")
    return {
        "id": auth.user_id,
        "email": auth.email,
        "authenticated": True,
    }
