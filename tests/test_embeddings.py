import json

import httpx
import pytest

from core.errors import EmbeddingProviderError, ValidationIssue
from core.services.embeddings import EmbeddingClient, entry_embedding_text


def _client(handler, **kwargs):
    http_client = httpx.Client(transport=httpx.MockTransport(handler))
    return EmbeddingClient(
        api_key="test-key",
        model="text-embedding-004",
        dimension=4,
        base_url="https://embed.test/v1beta/models",
        http_client=http_client,
        **kwargs,
    )


def test_embed_posts_google_request_shape():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"embedding": {"values": [0.1, 0.2, 0.3, 0.4]}})

    vector = _client(handler).embed("hello")

    assert vector == [0.1, 0.2, 0.3, 0.4]
    assert seen["url"] == "https://embed.test/v1beta/models/text-embedding-004:embedContent?key=test-key"
    assert seen["body"] == {
        "model": "models/text-embedding-004",
        "content": {"parts": [{"text": "hello"}]},
    }


def test_embed_truncates_long_text():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["text"] = json.loads(request.content)["content"]["parts"][0]["text"]
        return httpx.Response(200, json={"embedding": {"values": [1.0]}})

    _client(handler, max_text_length=5).embed("abcdefghij")

    assert seen["text"] == "abcde"


@pytest.mark.parametrize("text", ["", "   "])
def test_embed_rejects_empty_text(text):
    def handler(request):
        raise AssertionError("provider should not be called")

    with pytest.raises(ValidationIssue) as excinfo:
        _client(handler).embed(text)
    assert str(excinfo.value) == "Text cannot be empty"


def test_embed_provider_error_status():
    def handler(request):
        return httpx.Response(429, text="quota exceeded")

    with pytest.raises(EmbeddingProviderError) as excinfo:
        _client(handler).embed("hello")
    assert "Google AI API error: 429 - quota exceeded" in str(excinfo.value)


def test_embed_invalid_response_format():
    def handler(request):
        return httpx.Response(200, json={"unexpected": True})

    with pytest.raises(EmbeddingProviderError, match="Invalid response format"):
        _client(handler).embed("hello")


def test_embed_network_error():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(EmbeddingProviderError):
        _client(handler).embed("hello")


def test_embed_batch_zero_fills_failures():
    def handler(request):
        text = json.loads(request.content)["content"]["parts"][0]["text"]
        if text == "bad":
            return httpx.Response(500, text="boom")
        return httpx.Response(200, json={"embedding": {"values": [1.0, 1.0, 1.0, 1.0]}})

    vectors = _client(handler).embed_batch(["good", "bad"])

    assert vectors == [[1.0, 1.0, 1.0, 1.0], [0.0, 0.0, 0.0, 0.0]]


def test_entry_text_weights_title():
    assert entry_embedding_text("T", "body") == "T\n\nT\n\nbody"


def test_connection_check():
    ok = _client(lambda request: httpx.Response(200, json={"embedding": {"values": [0.5]}}))
    down = _client(lambda request: httpx.Response(503, text="unavailable"))

    assert ok.test_connection() is True
    assert down.test_connection() is False
