import pytest

from core.errors import StorageError, ValidationIssue
from core.services.knowledge_service import KnowledgeService, _empty_stats
from tests.conftest import OTHER_OWNER, OWNER, FakeEmbedder, InlineExecutor


def test_create_fills_missing_arrays(service):
    entry = service.create({"title": "T", "content": "C"}, OWNER)

    assert entry["id"]
    assert entry["tags"] == []
    assert entry["refs"] == []
    assert entry["traits"] == []
    assert entry["metadata"] == {}
    assert entry["user_id"] == OWNER


def test_create_then_get_round_trip(service):
    created = service.create(
        {
            "title": "Graph theory",
            "content": "Notes on trees",
            "tags": ["math", "graphs"],
            "project_id": "thesis",
            "refs": [{"uri": "https://example.com/a", "title": "A", "type": "testimony"}],
            "traits": [{"key": "kind", "value": "note", "confidence": 0.8}],
        },
        OWNER,
    )

    fetched = service.get_by_id(created["id"], OWNER)

    assert fetched["title"] == "Graph theory"
    assert fetched["content"] == "Notes on trees"
    assert fetched["tags"] == ["math", "graphs"]
    assert fetched["project_id"] == "thesis"
    assert fetched["refs"] == [{"uri": "https://example.com/a", "title": "A", "type": "testimony"}]
    assert fetched["traits"] == [{"key": "kind", "value": "note", "confidence": 0.8}]


def test_create_requires_title_and_content(service):
    with pytest.raises(ValidationIssue) as excinfo:
        service.create({"tags": ["invalid"]}, OWNER)
    assert excinfo.value.field in {"title", "content"}

    with pytest.raises(ValidationIssue) as excinfo:
        service.create({"title": "   ", "content": "C"}, OWNER)
    assert excinfo.value.field == "title"


def test_create_rejects_unknown_reference_type(service):
    with pytest.raises(ValidationIssue) as excinfo:
        service.create(
            {"title": "T", "content": "C", "refs": [{"uri": "u", "title": "t", "type": "rumour"}]},
            OWNER,
        )
    assert excinfo.value.field.startswith("refs")


def test_get_by_other_owner_is_not_found(service, make_entry):
    entry = make_entry()

    assert service.get_by_id(entry["id"], OTHER_OWNER) is None
    assert service.update(entry["id"], {"title": "Stolen"}, OTHER_OWNER) is None
    assert service.delete(entry["id"], OTHER_OWNER) is False
    assert service.get_by_id(entry["id"], OWNER)["title"] == "Entry"


def test_get_malformed_id_is_not_found(service):
    assert service.get_by_id("not-a-uuid", OWNER) is None
    assert service.delete("not-a-uuid", OWNER) is False


def test_update_without_tags_keeps_them(service, make_entry):
    entry = make_entry(tags=["keep", "me"])

    updated = service.update(entry["id"], {"title": "Renamed"}, OWNER)

    assert updated["title"] == "Renamed"
    assert updated["tags"] == ["keep", "me"]
    assert updated["content"] == entry["content"]


def test_update_with_empty_tags_clears_them(service, make_entry):
    entry = make_entry(tags=["a", "b"])

    updated = service.update(entry["id"], {"tags": []}, OWNER)

    assert updated["tags"] == []


def test_update_null_array_becomes_empty(service, make_entry):
    entry = make_entry(traits=[{"key": "k", "value": "v"}])

    updated = service.update(entry["id"], {"traits": None}, OWNER)

    assert updated["traits"] == []


def test_update_reflects_only_patched_fields(service, make_entry):
    entry = make_entry(tags=["x"], project_id="p1", metadata={"source": "test"})

    service.update(entry["id"], {"content": "New body", "project_id": "p2"}, OWNER)
    fetched = service.get_by_id(entry["id"], OWNER)

    assert fetched["content"] == "New body"
    assert fetched["project_id"] == "p2"
    assert fetched["title"] == entry["title"]
    assert fetched["tags"] == ["x"]
    assert fetched["metadata"] == {"source": "test"}


def test_empty_patch_returns_entry_unchanged(service, make_entry):
    entry = make_entry()

    assert service.update(entry["id"], {}, OWNER)["title"] == entry["title"]


def test_update_rejects_blank_title(service, make_entry):
    entry = make_entry()

    with pytest.raises(ValidationIssue):
        service.update(entry["id"], {"title": ""}, OWNER)


def test_delete_removes_entry(service, make_entry):
    entry = make_entry()

    assert service.delete(entry["id"], OWNER) is True
    assert service.get_by_id(entry["id"], OWNER) is None
    assert service.delete(entry["id"], OWNER) is False


def test_list_is_owner_scoped_and_newest_first(service, make_entry):
    first = make_entry(title="first")
    second = make_entry(title="second")
    make_entry(title="foreign", owner_id=OTHER_OWNER)

    result = service.list(OWNER)

    assert [entry["id"] for entry in result["entries"]] == [second["id"], first["id"]]
    assert result["total"] == 2
    assert result["has_more"] is False


def test_list_filters_by_project(service, make_entry):
    make_entry(title="in", project_id="alpha")
    make_entry(title="out", project_id="beta")

    result = service.list(OWNER, project_id="alpha")

    assert [entry["title"] for entry in result["entries"]] == ["in"]
    assert result["total"] == 1


@pytest.mark.parametrize("offset,limit", [(0, 2), (2, 2), (4, 2), (0, 5), (3, 1)])
def test_pagination_has_more(service, make_entry, offset, limit):
    for index in range(5):
        make_entry(title=f"entry {index}")

    for page in (
        service.list(OWNER, limit=limit, offset=offset),
        service.search(OWNER, query="entry", limit=limit, offset=offset),
    ):
        assert page["total"] == 5
        assert page["has_more"] == (page["total"] > offset + limit)
        assert len(page["entries"]) == min(limit, max(0, 5 - offset))


def test_list_rejects_bad_limit(service):
    with pytest.raises(ValidationIssue):
        service.list(OWNER, limit=0)
    with pytest.raises(ValidationIssue):
        service.list(OWNER, offset=-1)


def test_search_matches_title_or_content_case_insensitive(service, make_entry):
    make_entry(title="Python tips", content="generators")
    make_entry(title="Other", content="Uses PYTHON heavily")
    make_entry(title="Rust", content="ownership")

    result = service.search(OWNER, query="python")

    assert {entry["title"] for entry in result["entries"]} == {"Python tips", "Other"}


def test_search_treats_like_wildcards_literally(service, make_entry):
    make_entry(title="100% done", content="c")
    make_entry(title="1000 done", content="c")

    result = service.search(OWNER, query="100%")

    assert [entry["title"] for entry in result["entries"]] == ["100% done"]


def test_search_by_tag_overlap(service, make_entry):
    make_entry(title="a", tags=["red", "blue"])
    make_entry(title="b", tags=["green"])
    make_entry(title="c", tags=[])

    result = service.search(OWNER, tags=["blue", "green"])

    assert {entry["title"] for entry in result["entries"]} == {"a", "b"}


def test_get_by_tags_requires_tags(service, make_entry):
    make_entry(title="tagged", tags=["x"])

    assert [entry["title"] for entry in service.get_by_tags(OWNER, ["x"])] == ["tagged"]
    with pytest.raises(ValidationIssue):
        service.get_by_tags(OWNER, [])


def test_get_by_reference(service, make_entry):
    make_entry(
        title="cited",
        refs=[{"uri": "https://paper", "title": "Paper", "attributed_to": "Ada", "type": "citation"}],
    )
    make_entry(
        title="witness",
        refs=[{"uri": "https://talk", "title": "Talk", "attributed_to": "Ada", "type": "testimony"}],
    )

    assert [e["title"] for e in service.get_by_reference(OWNER, uri="https://paper")] == ["cited"]
    assert {e["title"] for e in service.get_by_reference(OWNER, attributed_to="Ada")} == {"cited", "witness"}
    assert [e["title"] for e in service.get_by_reference(OWNER, ref_type="testimony")] == ["witness"]
    with pytest.raises(ValidationIssue):
        service.get_by_reference(OWNER)
    with pytest.raises(ValidationIssue):
        service.get_by_reference(OWNER, ref_type="rumour")


def test_get_by_traits(service, make_entry):
    make_entry(title="person", traits=[{"key": "type", "value": "person"}])
    make_entry(title="place", traits=[{"key": "type", "value": "place"}])

    assert {e["title"] for e in service.get_by_traits(OWNER, trait_key="type")} == {"person", "place"}
    assert [e["title"] for e in service.get_by_traits(OWNER, trait_key="type", trait_value="place")] == ["place"]
    assert service.get_by_traits(OWNER, trait_value="unknown") == []
    with pytest.raises(ValidationIssue):
        service.get_by_traits(OWNER)


def test_semantic_search_falls_back_to_text_search(service, make_entry):
    make_entry(title="Vector databases", content="pgvector")
    make_entry(title="Cooking", content="pasta")

    semantic = service.search_semantic(OWNER, "vector", limit=5)
    plain = service.search(OWNER, query="vector", limit=5)

    assert semantic["search_type"] == "text"
    assert semantic["results"] == plain["entries"]
    assert semantic["count"] == len(plain["entries"])


def test_semantic_search_never_raises_on_provider_failure(gateway):
    failing = KnowledgeService(gateway, FakeEmbedder(fail=True), executor=InlineExecutor())
    failing.create({"title": "resilient", "content": "body"}, OWNER)

    result = failing.search_semantic(OWNER, "resilient")

    assert result["search_type"] == "text"
    assert [entry["title"] for entry in result["results"]] == ["resilient"]


def test_semantic_search_uses_match_when_available(service, gateway, monkeypatch):
    match = {"id": "abc", "title": "hit", "similarity": 0.91}
    monkeypatch.setattr(gateway, "match_knowledge", lambda owner, vector, threshold, limit: [match])

    result = service.search_semantic(OWNER, "anything", threshold=0.5, limit=3)

    assert result == {"query": "anything", "search_type": "semantic", "results": [match], "count": 1}


def test_semantic_search_validates_input(service):
    with pytest.raises(ValidationIssue):
        service.search_semantic(OWNER, "")
    with pytest.raises(ValidationIssue):
        service.search_semantic(OWNER, "q", threshold=1.5)


def test_create_and_content_update_refresh_embedding(service, embedder, make_entry):
    entry = make_entry(title="Title", content="Body")
    assert embedder.calls == ["Title\n\nTitle\n\nBody"]

    service.update(entry["id"], {"tags": ["only-tags"]}, OWNER)
    assert len(embedder.calls) == 1

    service.update(entry["id"], {"content": "New body"}, OWNER)
    assert embedder.calls[-1] == "Title\n\nTitle\n\nNew body"

    stats = service.get_embedding_stats(OWNER)
    assert stats["total_embeddings"] == 1
    assert stats["models_used"] == [embedder.model]
    assert stats["average_content_length"] == len("New body")


def test_embedding_failure_does_not_fail_create(gateway):
    failing = KnowledgeService(gateway, FakeEmbedder(fail=True), executor=InlineExecutor())

    entry = failing.create({"title": "T", "content": "C"}, OWNER)

    assert failing.get_by_id(entry["id"], OWNER) is not None
    assert failing.get_embedding_stats(OWNER)["total_embeddings"] == 0


def test_service_without_embedder(gateway):
    plain = KnowledgeService(gateway, None, executor=InlineExecutor())
    plain.create({"title": "T", "content": "C"}, OWNER)

    assert plain.search_semantic(OWNER, "T")["search_type"] == "text"
    assert plain.get_embedding_stats(OWNER) == {
        "total_embeddings": 0,
        "average_content_length": 0,
        "models_used": [],
        "last_updated": None,
    }


def test_embedding_stats_zeroed_on_storage_error(service, make_entry, monkeypatch):
    make_entry()

    def broken(owner_id):
        raise StorageError("connection lost")

    monkeypatch.setattr(service.gateway, "embedding_stats", broken)

    assert service.get_embedding_stats(OWNER) == _empty_stats()


def test_delete_removes_embedding(service, make_entry):
    entry = make_entry()
    assert service.get_embedding_stats(OWNER)["total_embeddings"] == 1

    service.delete(entry["id"], OWNER)

    assert service.get_embedding_stats(OWNER)["total_embeddings"] == 0
