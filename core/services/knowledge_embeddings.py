"""
Embedding maintenance tasks.
"""

from __future__ import annotations

import time
from typing import Callable, Optional

import core.config as config
from core.services.embeddings import EmbeddingClient
from core.services.knowledge_store import KnowledgeGateway

logger = config.logger


def run_embedding_backfill(
    gateway: KnowledgeGateway,
    embedder: Optional[EmbeddingClient],
    owner_id: Optional[str] = None,
    limit: Optional[int] = None,
    dry_run: bool = False,
    delay_seconds: Optional[float] = None,
    sleep: Callable[[float], None] = time.sleep,
    on_entry: Optional[Callable[[dict, Optional[str]], None]] = None,
) -> dict:
    """Embed entries lacking a vector for the configured model, one at a time.

    ``on_entry`` is called after each entry with the error message (or None)
    so callers can report progress.
    """
    if embedder is None:
        return {"status": "skipped", "reason": "embedding_disabled"}
    if not embedder.test_connection():
        return {"status": "error", "reason": "connection_failed"}

    pending = gateway.entries_missing_embeddings(
        owner_id=owner_id,
        limit=limit,
        model_name=embedder.model,
    )
    if dry_run:
        return {"status": "dry_run", "total": len(pending), "entries": pending}

    delay = config.EMBEDDING_BACKFILL_DELAY_SECONDS if delay_seconds is None else delay_seconds
    processed = 0
    failed = 0
    for entry in pending:
        error = None
        try:
            vector = embedder.embed_entry(entry["title"], entry["content"])
            gateway.upsert_embedding(entry["id"], vector, embedder.model)
            processed += 1
        except Exception as exc:
            error = str(exc)
            failed += 1
            logger.warning(
                "embedding_backfill_failed",
                extra={"knowledge_id": entry["id"], "detail": error},
            )
        if on_entry is not None:
            on_entry(entry, error)
        if delay > 0:
            sleep(delay)

    stats = {
        "status": "ok",
        "processed": processed,
        "failed": failed,
        "total": len(pending),
    }
    logger.info("embedding_backfill_complete", extra=stats)
    return stats


__all__ = ["run_embedding_backfill"]
