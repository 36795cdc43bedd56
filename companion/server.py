"""
MCP tool server for Knowledger.

Each tool calls the Knowledger HTTP API through ``KnowledgeAPI`` and returns
a text block. Failures come back as text starting with ``❌ Error:``.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from functools import wraps
from typing import Any, Callable, Literal, Optional

import httpx
from fastmcp import FastMCP
from pydantic import ValidationError, validate_call

from companion import formatters
from companion.client import KnowledgeAPI, KnowledgeAPIError
from companion.config import ConfigManager
from core.schemas import Trait

logger = logging.getLogger("knowledger.companion")

READ_ONLY_TOOL_ANNOTATIONS = {"readOnlyHint": True}

mcp = FastMCP("knowledger")

_REGISTERED_TOOLS: dict[str, Callable[..., str]] = {}
_config_manager: Optional[ConfigManager] = None
_api: Optional[KnowledgeAPI] = None


def configure_api(api: Optional[KnowledgeAPI], config_manager: Optional[ConfigManager] = None) -> None:
    """Swap the API client and config used by the tools."""
    global _api, _config_manager
    _api = api
    if config_manager is not None:
        _config_manager = config_manager


def get_config() -> ConfigManager:
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager()
    return _config_manager


def get_api() -> KnowledgeAPI:
    global _api
    if _api is None:
        manager = get_config()
        _api = KnowledgeAPI(manager.api_endpoint, token=manager.user_token)
    return _api


def _tool_error_handler(fn: Callable[..., str]) -> Callable[..., str]:
    @wraps(fn)
    def wrapper(*args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except KnowledgeAPIError as exc:
            logger.warning(
                "tool_api_error",
                extra={"tool": fn.__name__, "status_code": exc.status_code, "detail": str(exc)},
            )
            return formatters.format_error(str(exc))
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("tool_error", extra={"tool": fn.__name__, "detail": str(exc)})
            return formatters.format_error(str(exc))
    return wrapper


def mcp_tool(*args, **kwargs):
    """Register a tool with FastMCP and keep a local registry for dispatch."""
    def decorator(fn: Callable[..., str]):
        handled = _tool_error_handler(fn)
        _REGISTERED_TOOLS[fn.__name__] = handled
        mcp.tool(*args, **kwargs)(handled)
        return handled
    return decorator


def dispatch_tool(name: str, arguments: Optional[dict[str, Any]] = None) -> str:
    """Run a registered tool by name, validating arguments against its signature."""
    fn = _REGISTERED_TOOLS.get(name)
    if fn is None:
        logger.warning("unknown_tool", extra={"tool": name})
        return formatters.format_error(f"Unknown tool: {name}")
    try:
        return validate_call(fn)(**(arguments or {}))
    except ValidationError as exc:
        first = exc.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ())) or "arguments"
        logger.info("tool_validation_error", extra={"tool": name, "field": field})
        return formatters.format_error(f"Invalid arguments for {name}: {field}: {first.get('msg')}")


def registered_tools() -> list[str]:
    return sorted(_REGISTERED_TOOLS)


# =============================================================================
# Tools
# =============================================================================

@mcp_tool(annotations=READ_ONLY_TOOL_ANNOTATIONS)
def list_knowledge(limit: int = 10, project: Optional[str] = None) -> str:
    """List recent knowledge entries, newest first."""
    results = get_api().list_knowledge(limit=limit, project=project)
    return formatters.format_list(results["entries"], results["total"])


@mcp_tool(annotations=READ_ONLY_TOOL_ANNOTATIONS)
def search_knowledge(
    query: str,
    tags: Optional[list[str]] = None,
    project: Optional[str] = None,
    limit: int = 10,
    semantic: bool = False,
) -> str:
    """Search knowledge entries by text and tags, or by meaning with semantic=true."""
    api = get_api()
    if semantic:
        results = api.search_semantic(query, limit=limit)
        entries = results.get("results") or []
        return formatters.format_search_results(query, entries, len(entries), False, limit)
    results = api.search_knowledge(query, tags=tags, project=project, limit=limit)
    return formatters.format_search_results(
        query,
        results.get("entries") or [],
        results.get("total") or 0,
        bool(results.get("has_more")),
        limit,
    )


@mcp_tool()
def save_knowledge(
    title: str,
    content: str,
    tags: Optional[list[str]] = None,
    project: Optional[str] = None,
    metadata: Optional[dict[str, Any]] = None,
    refs: Optional[list[dict[str, Any]]] = None,
    traits: Optional[list[Trait]] = None,
) -> str:
    """Save a new knowledge entry. Default tags and project come from .knowledgerrc."""
    manager = get_config()
    merged_tags = list(dict.fromkeys([*manager.default_tags, *(tags or [])]))
    entry = get_api().save_knowledge(
        title=title,
        content=content,
        tags=merged_tags,
        project=project or manager.current_project(),
        metadata={
            **(metadata or {}),
            "saved_via": "mcp",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
        refs=refs,
        traits=[trait.model_dump(exclude_none=True) for trait in traits or []],
    )
    return formatters.format_saved(entry)


@mcp_tool(annotations=READ_ONLY_TOOL_ANNOTATIONS)
def get_knowledge(knowledge_id: str) -> str:
    """Fetch one knowledge entry with its references and traits."""
    return formatters.format_entry(get_api().get_knowledge(knowledge_id))


@mcp_tool()
def add_reference_to_knowledge(
    knowledge_id: str,
    uri: str,
    title: str,
    type: Literal["citation", "testimony"] = "citation",
    attributed_to: Optional[str] = None,
    statement: Optional[str] = None,
) -> str:
    """Attach a citation or testimony reference to an entry."""
    reference = {"uri": uri, "title": title, "type": type}
    if attributed_to:
        reference["attributed_to"] = attributed_to
    if statement:
        reference["statement"] = statement
    entry = get_api().add_reference(knowledge_id, reference)
    return formatters.format_reference_added(entry, reference)


@mcp_tool()
def add_tags_to_knowledge(knowledge_id: str, tags: list[str]) -> str:
    """Add tags to an entry; existing tags are kept and duplicates skipped."""
    return formatters.format_tags_updated(get_api().add_tags(knowledge_id, tags))


@mcp_tool()
def update_knowledge_title(knowledge_id: str, title: str) -> str:
    return formatters.format_title_updated(get_api().update_title(knowledge_id, title))


@mcp_tool()
def update_knowledge_content(knowledge_id: str, content: str, append: bool = False) -> str:
    """Replace an entry's content, or append to it separated by a blank line."""
    entry = get_api().update_content(knowledge_id, content, append=append)
    return formatters.format_content_updated(entry, append)


@mcp_tool()
def add_traits_to_knowledge(knowledge_id: str, traits: list[Trait]) -> str:
    """Add traits to an entry, skipping key/value pairs it already has."""
    payload = [trait.model_dump(exclude_none=True) for trait in traits]
    return formatters.format_traits_updated(get_api().add_traits(knowledge_id, payload))


@mcp_tool()
def set_knowledge_traits(knowledge_id: str, traits: list[Trait]) -> str:
    """Replace all traits on an entry."""
    payload = [trait.model_dump(exclude_none=True) for trait in traits]
    return formatters.format_traits_updated(get_api().set_traits(knowledge_id, payload))


@mcp_tool(annotations=READ_ONLY_TOOL_ANNOTATIONS)
def search_knowledge_by_traits(
    trait_key: Optional[str] = None,
    trait_value: Optional[str] = None,
    limit: int = 10,
) -> str:
    results = get_api().search_by_traits(trait_key=trait_key, trait_value=trait_value, limit=limit)
    return formatters.format_trait_results(trait_key, trait_value, results.get("entries") or [])


@mcp_tool()
def link_trait_to_entity(knowledge_id: str, trait_key: str, trait_value: str, parent_id: str) -> str:
    """Point a trait at another entity by setting its parent_id."""
    entry = get_api().link_trait_to_entity(knowledge_id, trait_key, trait_value, parent_id)
    return formatters.format_trait_linked(entry, trait_key, trait_value, parent_id)


def run() -> None:
    logger.info("mcp_server_starting", extra={"tool_count": len(_REGISTERED_TOOLS)})
    mcp.run()
