"""
Embedding provider client (Google Generative Language embedContent).
"""

from __future__ import annotations

from typing import List, Optional

import httpx

import core.config as config
from core.errors import EmbeddingProviderError
from core.validators import validate_embedding_text

logger = config.logger


def entry_embedding_text(title: str, content: str) -> str:
    return f"{title}\n\n{title}\n\n{content}"


class EmbeddingClient:
    """Text in, fixed-length vector out. No retries."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        dimension: Optional[int] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        max_text_length: Optional[int] = None,
        http_client: Optional[httpx.Client] = None,
    ):
        self.api_key = api_key if api_key is not None else config.EMBEDDING_API_KEY
        self.model = model or config.EMBEDDING_MODEL
        self.dimension = dimension or config.EMBEDDING_DIM
        self.base_url = (base_url or config.EMBEDDING_BASE_URL).rstrip("/")
        self.max_text_length = max_text_length or config.MAX_EMBEDDING_TEXT_LENGTH
        if http_client is None:
            http_client = httpx.Client(
                timeout=httpx.Timeout(timeout or config.EMBEDDING_TIMEOUT_SECONDS),
                limits=httpx.Limits(max_keepalive_connections=10, max_connections=100),
                headers={"Content-Type": "application/json"},
            )
            logger.info("HTTP client initialized")
        self._http = http_client

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/{self.model}:embedContent"

    def embed(self, text: str) -> List[float]:
        validate_embedding_text(text)
        truncated = text[: self.max_text_length]
        try:
            response = self._http.post(
                self.endpoint,
                params={"key": self.api_key or ""},
                json={
                    "model": f"models/{self.model}",
                    "content": {"parts": [{"text": truncated}]},
                },
            )
        except httpx.RequestError as exc:
            raise EmbeddingProviderError(f"embedding request failed: {exc}") from exc

        if response.status_code >= 400:
            raise EmbeddingProviderError(
                f"Google AI API error: {response.status_code} - {response.text}"
            )
        try:
            values = response.json()["embedding"]["values"]
        except (ValueError, KeyError, TypeError) as exc:
            raise EmbeddingProviderError("Invalid response format from Google AI API") from exc
        if not isinstance(values, list):
            raise EmbeddingProviderError("Invalid response format from Google AI API")
        return [float(v) for v in values]

    def embed_batch(self, texts: List[str]) -> List[List[float]]:
        """Embed sequentially; a failed item becomes a zero vector."""
        vectors = []
        for index, item in enumerate(texts):
            try:
                vectors.append(self.embed(item))
            except Exception as exc:
                logger.warning(
                    "embedding_batch_item_failed",
                    extra={"index": index, "detail": str(exc)},
                )
                vectors.append([0.0] * self.dimension)
        return vectors

    def embed_entry(self, title: str, content: str) -> List[float]:
        return self.embed(entry_embedding_text(title, content))

    def test_connection(self) -> bool:
        try:
            vector = self.embed("Test connection to Google AI")
        except Exception as exc:
            logger.error("embedding_connection_test_failed", extra={"detail": str(exc)})
            return False
        return len(vector) > 0

    def close(self) -> None:
        self._http.close()
        logger.info("HTTP client closed")


def create_embedding_client() -> Optional[EmbeddingClient]:
    """Build the configured client, or None when embeddings are disabled."""
    if config.EMBEDDING_PROVIDER == "none":
        logger.info("Embedding provider disabled")
        return None
    return EmbeddingClient()


__all__ = ["EmbeddingClient", "create_embedding_client", "entry_embedding_text"]
