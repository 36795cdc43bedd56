"""
Health and dependency endpoints.
"""

from __future__ import annotations

import time
from datetime import datetime, timezone

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

import core.config as config


router = APIRouter()


def _check_db_health(service) -> dict:
    if service is None:
        return {"ok": False, "error": "db_not_initialized"}
    try:
        service.gateway.ping()
    except Exception as exc:
        return {"ok": False, "error": str(exc)}
    return {
        "ok": True,
        "backend": service.gateway.backend,
        "vector_search": config.vector_search_enabled(),
    }


def _check_embedding_health(service) -> dict:
    embedder = service.embedder if service is not None else None
    embedding_status = {
        "status": "unknown",
        "provider": config.EMBEDDING_PROVIDER,
        "model": config.EMBEDDING_MODEL,
        "checked": False,
    }
    if embedder is None:
        embedding_status["status"] = "disabled"
        return embedding_status

    if config.EMBEDDING_HEALTHCHECK_ENABLED:
        embedding_status["checked"] = True
        start = time.time()
        ok = embedder.test_connection()
        embedding_status["status"] = "ok" if ok else "error"
        embedding_status["latency_ms"] = int((time.time() - start) * 1000)
        return embedding_status

    embedding_status["status"] = "ready"
    return embedding_status


@router.get("/health")
async def health():
    """Liveness check."""
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": config.API_VERSION,
    }


@router.get("/health/deps")
def health_deps(request: Request):
    """Dependency health checks (optional embedding provider probe)."""
    service = getattr(request.app.state, "knowledge_service", None)
    db_health = _check_db_health(service)
    embedding_status = _check_embedding_health(service)
    if not db_health.get("ok"):
        return JSONResponse(
            status_code=503,
            content={
                "error": "Database unavailable",
                "database": db_health,
                "embedding_provider": embedding_status,
            },
        )
    return {
        "status": "healthy",
        "service": config.SERVICE_NAME,
        "database": db_health,
        "embedding_provider": embedding_status,
    }
