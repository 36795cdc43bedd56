"""
Database initialization and migration helpers.
"""

from __future__ import annotations

import os
from typing import Optional

from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker

import core.config as config


class Database:
    """Engine and session factory for one process."""

    def __init__(self, url: Optional[str] = None, backend: Optional[str] = None):
        self.url = url or config.DATABASE_URL
        self.backend = backend or config.DB_BACKEND_EFFECTIVE
        self.engine = None
        self.SessionLocal = None

    def connect(self) -> "Database":
        if not self.url:
            raise RuntimeError("DATABASE_URL is not configured")
        engine_kwargs = {"pool_pre_ping": True}
        if self.backend == "sqlite":
            engine_kwargs["connect_args"] = {"check_same_thread": False}
        self.engine = create_engine(self.url, **engine_kwargs)
        self.SessionLocal = sessionmaker(bind=self.engine, expire_on_commit=False)
        return self

    def init(self) -> "Database":
        """Connect, ensure extensions, and bring the schema to head."""
        config.logger.info("Connecting to database...")
        self.connect()

        if (
            config.AUTO_CREATE_EXTENSIONS
            and self.backend == "postgres"
            and config.VECTOR_BACKEND_EFFECTIVE == "pgvector"
        ):
            config.logger.info("Ensuring pgvector extension...")
            with self.engine.connect() as conn:
                conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
                conn.commit()
        else:
            config.logger.info("Skipping pgvector extension creation")

        _ensure_schema_up_to_date(self.engine, self.url)

        config.logger.info("Database initialized")
        return self

    def dispose(self) -> None:
        if self.engine is not None:
            self.engine.dispose()
            config.logger.info("Database connections closed")
        self.engine = None
        self.SessionLocal = None


def _get_alembic_config(url: str):
    try:
        from alembic.config import Config
    except ImportError as exc:
        raise RuntimeError("Alembic is required for migrations") from exc

    base_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    alembic_cfg = Config(os.path.join(base_dir, "alembic.ini"))
    alembic_cfg.set_main_option("script_location", os.path.join(base_dir, "alembic"))
    alembic_cfg.set_main_option("sqlalchemy.url", url.replace("%", "%%"))
    alembic_cfg.attributes["configure_logger"] = False
    return alembic_cfg


def _get_schema_revisions(engine, url: str) -> tuple[Optional[str], Optional[str]]:
    from alembic.runtime.migration import MigrationContext
    from alembic.script import ScriptDirectory

    alembic_cfg = _get_alembic_config(url)
    script = ScriptDirectory.from_config(alembic_cfg)
    head_revision = script.get_current_head()
    with engine.connect() as conn:
        context = MigrationContext.configure(conn)
        current_revision = context.get_current_revision()
    return current_revision, head_revision


def _ensure_schema_up_to_date(engine, url: str) -> None:
    from alembic import command

    current_rev, head_rev = _get_schema_revisions(engine, url)
    if current_rev == head_rev:
        return

    if config.AUTO_MIGRATE_ON_STARTUP:
        alembic_cfg = _get_alembic_config(url)
        command.upgrade(alembic_cfg, "head")
        new_current, _ = _get_schema_revisions(engine, url)
        if new_current != head_rev:
            raise RuntimeError("Database migration did not reach expected revision")
    else:
        raise RuntimeError(
            f"Database schema out of date (current={current_rev}, expected={head_rev}). "
            "Run 'alembic upgrade head' or set AUTO_MIGRATE_ON_STARTUP=true for dev."
        )


def init_db() -> Database:
    """Validate configuration and return an initialized database."""
    config.validate_and_prepare_config()
    return Database().init()
