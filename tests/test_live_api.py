#!/usr/bin/env python3
"""Smoke test against a running Knowledger API."""
import os

import pytest

from companion.client import KnowledgeAPI, KnowledgeAPIError

BASE_URL = os.getenv("KNOWLEDGER_API_BASE_URL")

if not BASE_URL:
    pytest.skip(
        "Set KNOWLEDGER_API_BASE_URL to run live API tests",
        allow_module_level=True,
    )


def test_live_round_trip():
    api = KnowledgeAPI(BASE_URL, token=os.getenv("KNOWLEDGER_API_TOKEN"))
    try:
        entry = api.save_knowledge(
            "Smoke test entry",
            "Created by the live smoke test",
            tags=["smoke"],
        )
        assert entry["tags"] == ["smoke"]

        updated = api.add_tags(entry["id"], ["smoke", "live"])
        assert updated["tags"] == ["smoke", "live"]

        found = api.search_knowledge("Smoke test entry")
        assert any(item["id"] == entry["id"] for item in found["entries"])

        api.delete_knowledge(entry["id"])

        with pytest.raises(KnowledgeAPIError) as excinfo:
            api.get_knowledge(entry["id"])
        assert excinfo.value.status_code == 404
    finally:
        api.close()
