import pytest

import core.config as config
from tests.conftest import OTHER_OWNER


def test_root_and_health(client):
    root = client.get("/")
    assert root.status_code == 200
    assert root.json()["endpoints"]["knowledge"] == "/api/knowledge"

    health = client.get("/health")
    assert health.status_code == 200
    assert health.json()["status"] == "ok"
    assert health.json()["version"] == config.API_VERSION


def test_health_deps_reports_database(client):
    response = client.get("/health/deps")

    assert response.status_code == 200
    body = response.json()
    assert body["database"]["ok"] is True
    assert body["database"]["vector_search"] is False
    assert body["embedding_provider"]["status"] == "ready"


def test_health_deps_database_down(client, service, monkeypatch):
    def broken():
        raise RuntimeError("connection refused")

    monkeypatch.setattr(service.gateway, "ping", broken)

    response = client.get("/health/deps")

    assert response.status_code == 503
    assert response.json()["error"] == "Database unavailable"


def test_create_delete_then_get_404(client):
    created = client.post("/api/knowledge", json={"title": "T", "content": "C"})

    assert created.status_code == 201
    body = created.json()
    assert body["id"]
    assert body["tags"] == []
    assert body["refs"] == []
    assert body["traits"] == []

    deleted = client.delete(f"/api/knowledge/{body['id']}")
    assert deleted.status_code == 200
    assert deleted.json() == {"message": "Knowledge entry deleted successfully"}

    missing = client.get(f"/api/knowledge/{body['id']}")
    assert missing.status_code == 404
    assert missing.json() == {"error": "Knowledge entry not found"}


def test_create_without_title_and_content_is_400(client):
    response = client.post("/api/knowledge", json={"tags": ["invalid"]})

    assert response.status_code == 400
    assert "error" in response.json()


def test_create_with_blank_title_is_400(client):
    response = client.post("/api/knowledge", json={"title": " ", "content": "C"})

    assert response.status_code == 400
    assert response.json()["field"] == "title"


def test_update_and_get(client):
    entry = client.post("/api/knowledge", json={"title": "T", "content": "C", "tags": ["a"]}).json()

    updated = client.put(f"/api/knowledge/{entry['id']}", json={"content": "C2"})
    assert updated.status_code == 200
    assert updated.json()["content"] == "C2"
    assert updated.json()["tags"] == ["a"]

    fetched = client.get(f"/api/knowledge/{entry['id']}").json()
    assert fetched["content"] == "C2"
    assert fetched["title"] == "T"


def test_update_unknown_entry_is_404(client):
    response = client.put(
        "/api/knowledge/00000000-0000-0000-0000-000000000000",
        json={"title": "x"},
    )

    assert response.status_code == 404


def test_entries_of_other_owners_are_invisible(client, service):
    foreign = service.create({"title": "secret", "content": "hidden"}, OTHER_OWNER)

    assert client.get(f"/api/knowledge/{foreign['id']}").status_code == 404
    assert client.delete(f"/api/knowledge/{foreign['id']}").status_code == 404
    assert client.get("/api/knowledge").json()["total"] == 0


def test_list_pagination(client):
    for index in range(3):
        client.post("/api/knowledge", json={"title": f"T{index}", "content": "C"})

    page = client.get("/api/knowledge", params={"limit": 2}).json()

    assert len(page["entries"]) == 2
    assert page["total"] == 3
    assert page["has_more"] is True


def test_list_rejects_non_numeric_limit(client):
    response = client.get("/api/knowledge", params={"limit": "many"})

    assert response.status_code == 400
    assert response.json()["field"] == "limit"


def test_search_text_and_tags(client):
    client.post("/api/knowledge", json={"title": "Postgres tuning", "content": "work_mem", "tags": ["db"]})
    client.post("/api/knowledge", json={"title": "Gardening", "content": "tomatoes", "tags": ["home"]})

    by_text = client.get("/api/search", params={"q": "postgres"}).json()
    by_tag = client.get("/api/search", params={"tags": "home, other"}).json()

    assert [entry["title"] for entry in by_text["entries"]] == ["Postgres tuning"]
    assert [entry["title"] for entry in by_tag["entries"]] == ["Gardening"]


def test_semantic_search_requires_query(client):
    response = client.get("/api/search", params={"semantic": "true"})

    assert response.status_code == 400
    assert response.json()["field"] == "q"


def test_semantic_search_falls_back_to_text(client):
    client.post("/api/knowledge", json={"title": "Embeddings", "content": "vectors"})

    response = client.get("/api/search", params={"q": "vectors", "semantic": "true"})

    assert response.status_code == 200
    body = response.json()
    assert body["searchType"] == "text"
    assert body["count"] == 1
    assert body["results"][0]["title"] == "Embeddings"


@pytest.mark.parametrize("semantic", ["true", "false"])
def test_search_rejects_zero_limit(client, semantic):
    response = client.get("/api/search", params={"q": "anything", "semantic": semantic, "limit": 0})

    assert response.status_code == 400
    assert response.json()["field"] == "limit"


def test_lookup_endpoints(client):
    client.post(
        "/api/knowledge",
        json={
            "title": "Cited",
            "content": "C",
            "tags": ["paper"],
            "refs": [{"uri": "https://doi.test/1", "title": "Paper", "type": "citation"}],
            "traits": [{"key": "type", "value": "person"}],
        },
    )

    by_tags = client.get("/api/knowledge/by-tags", params={"tags": "paper"}).json()
    by_ref = client.get("/api/knowledge/by-reference", params={"uri": "https://doi.test/1"}).json()
    by_type = client.get("/api/knowledge/by-reference", params={"type": "testimony"}).json()
    by_trait = client.get("/api/knowledge/by-traits", params={"trait_key": "type"}).json()

    assert by_tags["total"] == 1
    assert by_ref["entries"][0]["title"] == "Cited"
    assert by_type == {"entries": [], "total": 0}
    assert by_trait["entries"][0]["traits"] == [{"key": "type", "value": "person"}]


def test_lookup_endpoints_validate_criteria(client):
    assert client.get("/api/knowledge/by-tags").status_code == 400
    assert client.get("/api/knowledge/by-reference").status_code == 400
    assert client.get("/api/knowledge/by-traits").status_code == 400


def test_embedding_stats(client):
    client.post("/api/knowledge", json={"title": "T", "content": "12345"})

    stats = client.get("/api/embeddings/stats").json()

    assert stats["total_embeddings"] == 1
    assert stats["average_content_length"] == 5


def test_auth_me_anonymous_is_401(client):
    response = client.get("/api/auth/me")

    assert response.status_code == 401
    assert response.json() == {"error": "User not authenticated"}


def test_storage_failure_is_generic_500(service, api_app, monkeypatch):
    from starlette.testclient import TestClient

    from core.errors import StorageError

    def broken(query):
        raise StorageError("disk I/O error")

    monkeypatch.setattr(service.gateway, "select", broken)
    client = TestClient(api_app, raise_server_exceptions=False)

    response = client.get("/api/knowledge")

    assert response.status_code == 500
    assert response.json() == {"error": "Internal server error"}
