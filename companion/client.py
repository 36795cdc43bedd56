"""
HTTP client for the Knowledger API, used by the companion tools.
"""

from __future__ import annotations

from typing import Any, Iterable, Optional

import httpx

from companion import __version__
from companion.config import DEFAULT_API_ENDPOINT

USER_AGENT = f"knowledger-mcp/{__version__}"


class KnowledgeAPIError(RuntimeError):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


# =============================================================================
# Read-modify-write helpers
# =============================================================================

def merge_tags(current: Iterable[str], new_tags: Iterable[str]) -> list[str]:
    """Union preserving first-seen order."""
    merged: list[str] = []
    for tag in [*current, *new_tags]:
        if tag not in merged:
            merged.append(tag)
    return merged


def merge_traits(current: list[dict], new_traits: list[dict]) -> list[dict]:
    """Append traits whose (key, value) pair is not already present."""
    merged = list(current)
    existing = {(trait.get("key"), trait.get("value")) for trait in current}
    for trait in new_traits:
        pair = (trait.get("key"), trait.get("value"))
        if pair not in existing:
            merged.append(trait)
            existing.add(pair)
    return merged


def link_trait(traits: list[dict], key: str, value: str, parent_id: str) -> list[dict]:
    if not traits:
        raise KnowledgeAPIError("No traits found on this entry")
    if not any(trait.get("key") == key and trait.get("value") == value for trait in traits):
        raise KnowledgeAPIError(f"Trait {key}: {value} not found on this entry")
    return [
        {**trait, "parent_id": parent_id}
        if trait.get("key") == key and trait.get("value") == value
        else trait
        for trait in traits
    ]


def _drop_none(params: dict) -> dict:
    return {key: value for key, value in params.items() if value is not None}


class KnowledgeAPI:
    def __init__(
        self,
        base_url: str = DEFAULT_API_ENDPOINT,
        token: Optional[str] = None,
        http_client: Optional[httpx.Client] = None,
        timeout: float = 30.0,
    ):
        self.base_url = base_url.rstrip("/")
        headers = {"Content-Type": "application/json", "User-Agent": USER_AGENT}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        if http_client is None:
            http_client = httpx.Client(timeout=httpx.Timeout(timeout))
        self._http = http_client
        self._headers = headers

    def _request(self, method: str, path: str, action: str, **kwargs) -> Any:
        try:
            response = self._http.request(
                method,
                f"{self.base_url}{path}",
                headers=self._headers,
                **kwargs,
            )
        except httpx.RequestError as exc:
            raise KnowledgeAPIError(f"Network error: {exc}") from exc
        if response.status_code >= 400:
            raise KnowledgeAPIError(
                f"Failed to {action}: {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
            )
        return response.json()

    def close(self) -> None:
        self._http.close()

    # ------------------------------------------------------------------
    # Entries
    # ------------------------------------------------------------------

    def save_knowledge(
        self,
        title: str,
        content: str,
        tags: Optional[list[str]] = None,
        project: Optional[str] = None,
        metadata: Optional[dict] = None,
        refs: Optional[list[dict]] = None,
        traits: Optional[list[dict]] = None,
    ) -> dict:
        body = {
            "title": title,
            "content": content,
            "tags": tags or [],
            "metadata": metadata or {},
            "refs": refs or [],
            "traits": traits or [],
        }
        if project:
            body["project_id"] = project
        return self._request("POST", "/knowledge", "save knowledge", json=body)

    def get_knowledge(self, knowledge_id: str) -> dict:
        return self._request("GET", f"/knowledge/{knowledge_id}", "get knowledge")

    def delete_knowledge(self, knowledge_id: str) -> dict:
        return self._request("DELETE", f"/knowledge/{knowledge_id}", "delete knowledge")

    def list_knowledge(self, limit: Optional[int] = None, project: Optional[str] = None) -> dict:
        data = self._request(
            "GET",
            "/knowledge",
            "list knowledge",
            params=_drop_none({"limit": limit, "project_id": project}),
        )
        return {
            "entries": data.get("entries") or [],
            "total": data.get("total") or 0,
            "has_more": bool(data.get("has_more")),
        }

    def search_knowledge(
        self,
        query: str,
        tags: Optional[list[str]] = None,
        project: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> dict:
        params = {"q": query, "project_id": project, "limit": limit}
        if tags:
            params["tags"] = ",".join(tags)
        return self._request("GET", "/search", "search knowledge", params=_drop_none(params))

    def search_semantic(self, query: str, limit: Optional[int] = None) -> dict:
        params = _drop_none({"q": query, "semantic": "true", "limit": limit})
        return self._request("GET", "/search", "search knowledge", params=params)

    def search_by_tags(self, tags: list[str], match_all: bool = False) -> dict:
        results = self._request(
            "GET",
            "/search",
            "search by tags",
            params={"q": "", "tags": ",".join(tags)},
        )
        if match_all:
            results["entries"] = [
                entry for entry in results.get("entries", [])
                if all(tag in (entry.get("tags") or []) for tag in tags)
            ]
        return results

    def search_by_traits(
        self,
        trait_key: Optional[str] = None,
        trait_value: Optional[str] = None,
        limit: int = 10,
    ) -> dict:
        params = _drop_none({"trait_key": trait_key, "trait_value": trait_value, "limit": limit})
        return self._request("GET", "/knowledge/by-traits", "search by traits", params=params)

    def _update(self, knowledge_id: str, body: dict, action: str) -> dict:
        return self._request("PUT", f"/knowledge/{knowledge_id}", action, json=body)

    def update_title(self, knowledge_id: str, title: str) -> dict:
        return self._update(knowledge_id, {"title": title}, "update title")

    def update_content(self, knowledge_id: str, content: str, append: bool = False) -> dict:
        if append:
            current = self.get_knowledge(knowledge_id)
            content = f"{current.get('content', '')}\n\n{content}"
        return self._update(knowledge_id, {"content": content}, "update content")

    # Read-modify-write updates below are not atomic; concurrent writers can
    # lose each other's changes.

    def add_reference(self, knowledge_id: str, reference: dict) -> dict:
        current = self.get_knowledge(knowledge_id)
        refs = [*(current.get("refs") or []), reference]
        return self._update(knowledge_id, {"refs": refs}, "add reference")

    def add_tags(self, knowledge_id: str, tags: list[str]) -> dict:
        current = self.get_knowledge(knowledge_id)
        merged = merge_tags(current.get("tags") or [], tags)
        return self._update(knowledge_id, {"tags": merged}, "add tags")

    def add_traits(self, knowledge_id: str, traits: list[dict]) -> dict:
        current = self.get_knowledge(knowledge_id)
        merged = merge_traits(current.get("traits") or [], traits)
        return self._update(knowledge_id, {"traits": merged}, "add traits")

    def set_traits(self, knowledge_id: str, traits: list[dict]) -> dict:
        return self._update(knowledge_id, {"traits": traits}, "set traits")

    def link_trait_to_entity(
        self,
        knowledge_id: str,
        trait_key: str,
        trait_value: str,
        parent_id: str,
    ) -> dict:
        current = self.get_knowledge(knowledge_id)
        traits = link_trait(current.get("traits") or [], trait_key, trait_value, parent_id)
        return self._update(knowledge_id, {"traits": traits}, "link trait to entity")
