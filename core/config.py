"""
Shared configuration for Knowledger core.
"""

from __future__ import annotations

import logging
import os

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("knowledger")


def _get_bool(env_name: str, default: bool) -> bool:
    value = os.environ.get(env_name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int(env_name: str, default: int) -> int:
    value = os.environ.get(env_name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _get_float(env_name: str, default: float) -> float:
    value = os.environ.get(env_name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _get_list(env_name: str) -> list[str]:
    value = os.environ.get(env_name, "")
    return [item.strip() for item in value.split(",") if item.strip()]


def _derive_effective_backends(db_backend: str, vector_backend: str) -> tuple[str, str]:
    db_effective = db_backend if db_backend in {"postgres", "sqlite"} else "postgres"
    vector_effective = vector_backend if vector_backend in {"pgvector", "none"} else "none"
    if db_effective == "sqlite":
        vector_effective = "none"
    return db_effective, vector_effective


SERVICE_NAME = "Knowledger"
API_VERSION = "0.1.0"

# Database settings
DB_BACKEND = os.environ.get("DB_BACKEND", "postgres").strip().lower()
VECTOR_BACKEND = os.environ.get("VECTOR_BACKEND", "pgvector").strip().lower()
SQLITE_PATH = os.environ.get("SQLITE_PATH", "./knowledger.db")
DATABASE_URL = os.environ.get("DATABASE_URL")
DB_BACKEND_EFFECTIVE, VECTOR_BACKEND_EFFECTIVE = _derive_effective_backends(
    DB_BACKEND,
    VECTOR_BACKEND,
)

# Database initialization controls
AUTO_CREATE_EXTENSIONS = _get_bool("AUTO_CREATE_EXTENSIONS", True)
AUTO_MIGRATE_ON_STARTUP = _get_bool("AUTO_MIGRATE_ON_STARTUP", True)

# Embedding settings
EMBEDDING_PROVIDER = os.environ.get("EMBEDDING_PROVIDER", "google").strip().lower()
EMBEDDING_API_KEY = os.environ.get("VERTEX_API_KEY")
EMBEDDING_MODEL = os.environ.get("EMBEDDING_MODEL", "text-embedding-004")
EMBEDDING_DIM = _get_int("EMBEDDING_DIM", 768)
EMBEDDING_BASE_URL = os.environ.get(
    "EMBEDDING_BASE_URL",
    "https://generativelanguage.googleapis.com/v1beta/models",
)
EMBEDDING_TIMEOUT_SECONDS = _get_float("EMBEDDING_TIMEOUT_SECONDS", 30.0)
MAX_EMBEDDING_TEXT_LENGTH = _get_int("MAX_EMBEDDING_TEXT_LENGTH", 10000)
EMBEDDING_REFRESH_WORKERS = _get_int("EMBEDDING_REFRESH_WORKERS", 2)
EMBEDDING_BACKFILL_DELAY_SECONDS = _get_float("EMBEDDING_BACKFILL_DELAY_SECONDS", 0.1)
EMBEDDING_HEALTHCHECK_ENABLED = _get_bool("EMBEDDING_HEALTHCHECK_ENABLED", False)

# Authentication
AUTH_REQUIRED = "required"
AUTH_OPTIONAL = "optional"
AUTH_MODE = os.environ.get("AUTH_MODE", AUTH_OPTIONAL).strip().lower()
AUTH_PROVIDER_URL = os.environ.get("AUTH_PROVIDER_URL")
AUTH_PROVIDER_KEY = os.environ.get("AUTH_PROVIDER_KEY")
AUTH_TIMEOUT_SECONDS = _get_float("AUTH_TIMEOUT_SECONDS", 10.0)
# Fallback owner for unauthenticated requests in optional mode (testing only).
ANONYMOUS_USER_ID = os.environ.get(
    "ANONYMOUS_USER_ID",
    "550e8400-e29b-41d4-a716-446655440000",
)

# HTTP server
API_HOST = os.environ.get("API_HOST", "0.0.0.0")
API_PORT = _get_int("API_PORT", 8000)
CORS_ALLOWED_ORIGINS = _get_list("CORS_ALLOWED_ORIGINS") or ["*"]
TRUSTED_HOSTS = _get_list("TRUSTED_HOSTS")

# Request/input limits
DEFAULT_PAGE_LIMIT = _get_int("KNOWLEDGER_DEFAULT_PAGE_LIMIT", 20)
MAX_RESULT_LIMIT = _get_int("KNOWLEDGER_MAX_RESULT_LIMIT", 100)
MAX_QUERY_LENGTH = _get_int("KNOWLEDGER_MAX_QUERY_LENGTH", 4000)
MAX_TITLE_LENGTH = _get_int("KNOWLEDGER_MAX_TITLE_LENGTH", 500)
MAX_TEXT_LENGTH = _get_int("KNOWLEDGER_MAX_TEXT_LENGTH", 100000)
MAX_SHORT_TEXT_LENGTH = _get_int("KNOWLEDGER_MAX_SHORT_TEXT_LENGTH", 255)
MAX_METADATA_BYTES = _get_int("KNOWLEDGER_MAX_METADATA_BYTES", 20000)
MAX_LIST_ITEMS = _get_int("KNOWLEDGER_MAX_LIST_ITEMS", 50)
MAX_LIST_ITEM_LENGTH = _get_int("KNOWLEDGER_MAX_LIST_ITEM_LENGTH", 1000)
MAX_TAG_ITEMS = _get_int("KNOWLEDGER_MAX_TAG_ITEMS", MAX_LIST_ITEMS)

# Search defaults
SEMANTIC_THRESHOLD_DEFAULT = _get_float("SEMANTIC_THRESHOLD_DEFAULT", 0.7)
SEMANTIC_LIMIT_DEFAULT = _get_int("SEMANTIC_LIMIT_DEFAULT", 10)


def validate_and_prepare_config() -> None:
    """Validate configuration and apply derived settings at startup."""
    global DATABASE_URL, DB_BACKEND_EFFECTIVE, VECTOR_BACKEND_EFFECTIVE

    errors = []
    if DB_BACKEND not in {"postgres", "sqlite"}:
        errors.append("DB_BACKEND must be 'postgres' or 'sqlite'")

    if VECTOR_BACKEND not in {"pgvector", "none"}:
        errors.append("VECTOR_BACKEND must be 'pgvector' or 'none'")

    if DB_BACKEND == "sqlite" and VECTOR_BACKEND == "pgvector":
        logger.warning("VECTOR_BACKEND=pgvector ignored for sqlite; semantic search falls back to text search")

    if not DATABASE_URL:
        if DB_BACKEND == "sqlite":
            if not SQLITE_PATH:
                errors.append("SQLITE_PATH environment variable is required for sqlite")
            else:
                DATABASE_URL = f"sqlite:///{SQLITE_PATH}"
        else:
            errors.append("DATABASE_URL environment variable is required")
    else:
        is_sqlite_url = DATABASE_URL.lower().startswith("sqlite")
        if DB_BACKEND == "sqlite" and not is_sqlite_url:
            errors.append("DATABASE_URL must be a sqlite URL when DB_BACKEND=sqlite")
        if DB_BACKEND == "postgres" and is_sqlite_url:
            errors.append("DATABASE_URL must be a postgres URL when DB_BACKEND=postgres")

    DB_BACKEND_EFFECTIVE, VECTOR_BACKEND_EFFECTIVE = _derive_effective_backends(
        DB_BACKEND,
        VECTOR_BACKEND,
    )

    if EMBEDDING_PROVIDER not in {"google", "none"}:
        errors.append("EMBEDDING_PROVIDER must be 'google' or 'none'")
    if EMBEDDING_PROVIDER == "google" and not EMBEDDING_API_KEY:
        errors.append("VERTEX_API_KEY environment variable is required")

    if VECTOR_BACKEND_EFFECTIVE == "pgvector":
        from core.models import PGVECTOR_AVAILABLE

        if not PGVECTOR_AVAILABLE:
            errors.append("pgvector package is required when VECTOR_BACKEND=pgvector")

    if AUTH_MODE not in {AUTH_REQUIRED, AUTH_OPTIONAL}:
        errors.append("AUTH_MODE must be 'required' or 'optional'")
    if AUTH_MODE == AUTH_REQUIRED and not (AUTH_PROVIDER_URL and AUTH_PROVIDER_KEY):
        errors.append("AUTH_PROVIDER_URL and AUTH_PROVIDER_KEY are required when AUTH_MODE=required")

    if errors:
        raise RuntimeError("Configuration invalid: " + "; ".join(errors))


def vector_search_enabled() -> bool:
    return DB_BACKEND_EFFECTIVE == "postgres" and VECTOR_BACKEND_EFFECTIVE == "pgvector"
