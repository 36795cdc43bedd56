"""
knowledger: MCP companion for the Knowledger API.

Usage:
    knowledger server    Start the MCP server (stdio)
    knowledger test      Test connection to the API
    knowledger config    Show current configuration
    knowledger init      Initialize .knowledgerrc in current directory
"""

from __future__ import annotations

import json
import logging
import os
import sys

import click

from companion import __version__
from companion.client import KnowledgeAPI, KnowledgeAPIError
from companion.config import CONFIG_FILENAME, ConfigManager


def _configure_logging() -> None:
    # stdout carries the MCP transport
    logging.basicConfig(
        level=os.environ.get("KNOWLEDGER_LOG_LEVEL", "WARNING").upper(),
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


@click.group()
@click.version_option(version=__version__, prog_name="knowledger")
def cli():
    """Knowledger MCP CLI."""
    _configure_logging()


@cli.command()
def server():
    """Start the MCP server for AI chat integration."""
    from companion.server import run

    run()


@cli.command()
def test():
    """Test if the API is accessible."""
    click.echo("🧪 Testing Knowledger API connection...")
    manager = ConfigManager()
    click.echo(f"📡 API Endpoint: {manager.api_endpoint}")

    api = KnowledgeAPI(manager.api_endpoint, token=manager.user_token)
    try:
        result = api.list_knowledge(limit=1)
    except KnowledgeAPIError as exc:
        click.echo(f"❌ API connection failed: {exc}", err=True)
        click.echo("", err=True)
        click.echo("Make sure:", err=True)
        click.echo("1. The Knowledger API server is running (http://localhost:8000)", err=True)
        click.echo(f"2. Your {CONFIG_FILENAME} configuration is correct", err=True)
        sys.exit(1)
    finally:
        api.close()

    click.echo("✅ API connection successful!")
    click.echo(f"📊 Found {result['total']} knowledge entries")
    if result["entries"]:
        entry = result["entries"][0]
        click.echo(f"📝 Latest entry: \"{entry.get('title')}\" ({entry.get('created_at')})")


@cli.command("config")
def show_config():
    """Show the merged configuration."""
    click.echo("⚙️ Current Knowledger Configuration:")
    manager = ConfigManager()
    click.echo("📋 Configuration:")
    click.echo(json.dumps(manager.get(), indent=2))

    errors = manager.validate()
    if errors:
        click.echo("❌ Configuration errors:")
        for error in errors:
            click.echo(f"   - {error}")
    else:
        click.echo("✅ Configuration is valid")

    if manager.loaded_paths:
        click.echo("📄 Loaded from:")
        for path in manager.loaded_paths:
            click.echo(f"   - {path}")

    project = manager.current_project()
    if project:
        click.echo(f"📁 Current project: {project}")


@cli.command()
def init():
    """Initialize .knowledgerrc in the current directory."""
    click.echo("🚀 Initializing Knowledger configuration...")
    try:
        ConfigManager().create_sample()
    except FileExistsError:
        click.echo(f"ℹ️ {CONFIG_FILENAME} already exists in current directory")
        return
    except OSError as exc:
        click.echo(f"❌ Failed to create configuration: {exc}", err=True)
        sys.exit(1)

    click.echo(f"✅ Created {CONFIG_FILENAME} in current directory")
    click.echo("")
    click.echo("You can now:")
    click.echo(f"1. Edit {CONFIG_FILENAME} to customize settings")
    click.echo('2. Run "knowledger config" to verify configuration')
    click.echo('3. Run "knowledger test" to test API connection')


def main():
    """Entry point for knowledger."""
    cli()


if __name__ == "__main__":
    main()
