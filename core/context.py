"""
Request-scoped context objects for core services.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import core.config as config


@dataclass(frozen=True)
class AuthContext:
    user_id: Optional[str] = None
    email: Optional[str] = None
    actor: Optional[str] = None

    @property
    def authenticated(self) -> bool:
        return self.user_id is not None


ANONYMOUS = AuthContext(actor="anonymous")


def resolve_owner_id(auth: Optional[AuthContext]) -> str:
    """Return the owner id for an auth context, falling back to the anonymous owner."""
    if auth is not None and auth.user_id:
        return auth.user_id
    config.logger.warning(
        "anonymous_request",
        extra={"fallback_user_id": config.ANONYMOUS_USER_ID},
    )
    return config.ANONYMOUS_USER_ID


__all__ = [
    "AuthContext",
    "ANONYMOUS",
    "resolve_owner_id",
]
