"""
Bearer-token authentication against the external identity provider.
"""

from __future__ import annotations

from typing import Optional

import httpx
from fastapi import Header, Request

import core.config as config
from core.errors import AuthenticationError

logger = config.logger

BEARER_PREFIX = "Bearer "


class IdentityProvider:
    """Resolves access tokens to users via ``GET {base_url}/auth/v1/user``."""

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        http_client: Optional[httpx.Client] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self._http = http_client or httpx.Client(
            timeout=httpx.Timeout(timeout or config.AUTH_TIMEOUT_SECONDS),
        )

    def get_user(self, token: str) -> dict:
        headers = {"Authorization": f"{BEARER_PREFIX}{token}"}
        if self.api_key:
            headers["apikey"] = self.api_key
        try:
            response = self._http.get(f"{self.base_url}/auth/v1/user", headers=headers)
        except httpx.RequestError as exc:
            logger.error("auth_provider_unreachable", extra={"detail": str(exc)})
            raise AuthenticationError("Authentication failed") from exc

        if response.status_code in (401, 403):
            raise AuthenticationError("Invalid or expired token")
        if response.status_code >= 400:
            logger.error("auth_provider_error", extra={"status_code": response.status_code})
            raise AuthenticationError("Authentication failed")
        try:
            user = response.json()
        except ValueError as exc:
            raise AuthenticationError("Authentication failed") from exc
        if not isinstance(user, dict) or not user.get("id"):
            raise AuthenticationError("Invalid or expired token")
        return user

    def close(self) -> None:
        self._http.close()


def create_identity_provider() -> Optional[IdentityProvider]:
    if not config.AUTH_PROVIDER_URL:
        return None
    return IdentityProvider(config.AUTH_PROVIDER_URL, config.AUTH_PROVIDER_KEY)


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        return None
    token = authorization[len(BEARER_PREFIX):].strip()
    return token or None


def get_current_user(
    request: Request,
    authorization: Optional[str] = Header(default=None),
) -> Optional[dict]:
    """Return the caller's identity-provider user, or None when anonymous is allowed."""
    provider: Optional[IdentityProvider] = getattr(request.app.state, "identity", None)
    mode = getattr(request.app.state, "auth_mode", None) or config.AUTH_MODE
    token = bearer_token(authorization)

    if mode == config.AUTH_REQUIRED:
        if token is None:
            raise AuthenticationError("Missing or invalid Authorization header")
        if provider is None:
            raise AuthenticationError("Authentication failed")
        return provider.get_user(token)

    if token is None or provider is None:
        return None
    try:
        return provider.get_user(token)
    except AuthenticationError as exc:
        logger.warning("optional_auth_failed", extra={"detail": str(exc)})
        return None
