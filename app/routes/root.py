"""
Root endpoint with service metadata.
"""

from __future__ import annotations

from fastapi import APIRouter

import core.config as config


router = APIRouter()


@router.get("/")
async def root():
    """Root endpoint with service info."""
    return {
        "service": config.SERVICE_NAME,
        "version": config.API_VERSION,
        "description": "Knowledge entry storage and search API",
        "auth_mode": config.AUTH_MODE,
        "embedding_model": config.EMBEDDING_MODEL,
        "endpoints": {
            "health": "/health",
            "health_deps": "/health/deps",
            "knowledge": "/api/knowledge",
            "search": "/api/search",
            "embedding_stats": "/api/embeddings/stats",
            "me": "/api/auth/me",
        },
    }
