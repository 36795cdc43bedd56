"""
knowledger-api: run the HTTP API and maintain embeddings.

Usage:
    knowledger-api serve --port 8000
    knowledger-api backfill-embeddings --user-id <id> --limit 10 --dry-run
"""

from __future__ import annotations

import sys
from typing import Optional

import click

import core.config as config


@click.group()
@click.version_option(version=config.API_VERSION, prog_name="knowledger-api")
def cli():
    """Knowledger API server commands."""


@cli.command()
@click.option("--host", default=None, help="Bind address (default: API_HOST)")
@click.option("--port", type=int, default=None, help="Bind port (default: API_PORT)")
def serve(host: Optional[str], port: Optional[int]):
    """Run the HTTP API under uvicorn."""
    import uvicorn

    try:
        config.validate_and_prepare_config()
    except RuntimeError as exc:
        config.logger.error(str(exc))
        sys.exit(1)

    from app.main import app

    click.echo(f"🚀 Knowledger API server starting on port {port or config.API_PORT}")
    uvicorn.run(app, host=host or config.API_HOST, port=port or config.API_PORT)


@cli.command("backfill-embeddings")
@click.option("--user-id", "-u", default=None, help="Generate embeddings for one user only")
@click.option("--limit", "-l", type=int, default=None, help="Limit number of entries to process")
@click.option("--dry-run", "-d", is_flag=True, help="Show what would be processed")
def backfill_embeddings(user_id: Optional[str], limit: Optional[int], dry_run: bool):
    """Generate embeddings for entries that do not have one yet."""
    from core.db import init_db
    from core.services.embeddings import create_embedding_client
    from core.services.knowledge_embeddings import run_embedding_backfill
    from core.services.knowledge_store import KnowledgeGateway

    click.echo("🧠 Knowledge Embeddings Generator")
    click.echo("==================================\n")
    if dry_run:
        click.echo("🔍 DRY RUN - No embeddings will be generated\n")

    try:
        database = init_db()
    except RuntimeError as exc:
        click.echo(f"❌ {exc}", err=True)
        sys.exit(1)

    embedder = create_embedding_client()
    if embedder is None:
        click.echo("❌ Embedding provider disabled (EMBEDDING_PROVIDER=none)", err=True)
        database.dispose()
        sys.exit(1)

    gateway = KnowledgeGateway(database.SessionLocal, backend=database.backend)

    def report(entry: dict, error: Optional[str]) -> None:
        if error:
            click.echo(f"  ❌ Failed: {entry['title']}: {error}", err=True)
        else:
            click.echo(f"  ✅ Generated and stored: {entry['title']}")

    click.echo("Testing Google AI connection...")
    try:
        stats = run_embedding_backfill(
            gateway,
            embedder,
            owner_id=user_id,
            limit=limit,
            dry_run=dry_run,
            on_entry=report,
        )
    finally:
        embedder.close()
        database.dispose()

    if stats["status"] == "error":
        click.echo("❌ Failed to connect to Google AI API", err=True)
        sys.exit(1)
    if stats.get("total") == 0:
        click.echo("📋 No knowledge entries found without embeddings")
        return
    if stats["status"] == "dry_run":
        click.echo(f"📁 Found {stats['total']} entries without embeddings\n")
        click.echo("Would process the following entries:")
        for index, entry in enumerate(stats["entries"], start=1):
            click.echo(f"{index}. {entry['title']} ({len(entry['content'])} chars)")
        return

    click.echo("\n🎉 Complete!")
    click.echo(f"✅ Processed: {stats['processed']}")
    click.echo(f"❌ Failed: {stats['failed']}")
    click.echo(f"📁 Total: {stats['total']}")


def main():
    """Entry point for knowledger-api."""
    cli()


if __name__ == "__main__":
    main()
