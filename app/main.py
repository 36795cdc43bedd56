"""
FastAPI app wiring for Knowledger.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

import core.config as config
from core.db import Database, init_db
from core.services.embeddings import create_embedding_client
from core.services.knowledge_service import KnowledgeService
from core.services.knowledge_store import KnowledgeGateway
from app.auth import IdentityProvider, create_identity_provider
from app.errors import register_exception_handlers
from app.middleware import configure_middleware
from app.routes.auth import router as auth_router
from app.routes.embeddings import router as embeddings_router
from app.routes.health import router as health_router
from app.routes.knowledge import router as knowledge_router
from app.routes.root import router as root_router
from app.routes.search import router as search_router


def attach_services(
    app: FastAPI,
    service: KnowledgeService,
    identity: Optional[IdentityProvider] = None,
    database: Optional[Database] = None,
    auth_mode: Optional[str] = None,
) -> None:
    app.state.knowledge_service = service
    app.state.identity = identity
    app.state.database = database
    app.state.auth_mode = auth_mode or config.AUTH_MODE


def _build_services(app: FastAPI) -> None:
    database = init_db()
    gateway = KnowledgeGateway(database.SessionLocal, backend=database.backend)
    service = KnowledgeService(gateway, create_embedding_client())
    attach_services(app, service, create_identity_provider(), database)


def _close_services(app: FastAPI) -> None:
    service = getattr(app.state, "knowledge_service", None)
    if service is not None:
        service.shutdown()
        if service.embedder is not None:
            service.embedder.close()
    identity = getattr(app.state, "identity", None)
    if identity is not None:
        identity.close()
    database = getattr(app.state, "database", None)
    if database is not None:
        database.dispose()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize on startup, cleanup on shutdown."""
    if getattr(app.state, "knowledge_service", None) is None:
        await asyncio.to_thread(_build_services, app)
    try:
        yield
    finally:
        await asyncio.to_thread(_close_services, app)


def create_app() -> FastAPI:
    app = FastAPI(
        title=config.SERVICE_NAME,
        version=config.API_VERSION,
        redirect_slashes=False,
        lifespan=lifespan,
    )
    configure_middleware(app)
    register_exception_handlers(app)

    app.include_router(health_router)
    app.include_router(root_router)
    app.include_router(knowledge_router)
    app.include_router(search_router)
    app.include_router(embeddings_router)
    app.include_router(auth_router)
    return app


app = create_app()
