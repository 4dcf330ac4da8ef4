from __future__ import annotations

from typing import Any, Protocol

import httpx

DIMENSION_PROBE_TEXT = "test query"


class EmbeddingClientError(RuntimeError):
    pass


class EmbeddingClient(Protocol):
    def embed_texts(self, texts: list[str]) -> list[list[float]]: ...


def _raw_vectors(payload: Any) -> list[Any]:
    if not isinstance(payload, dict):
        raise EmbeddingClientError("Invalid embeddings payload: expected an object")

    # OpenAI-compatible /v1/embeddings
    data = payload.get("data")
    if isinstance(data, list):
        return [item.get("embedding") if isinstance(item, dict) else None for item in data]

    # native /api/embed
    embeddings = payload.get("embeddings")
    if isinstance(embeddings, list):
        return embeddings

    raise EmbeddingClientError("Invalid embeddings payload: missing data")


def parse_embeddings(payload: Any, *, expected: int) -> list[list[float]]:
    vectors: list[list[float]] = []
    for embedding in _raw_vectors(payload):
        if not isinstance(embedding, list) or not embedding:
            raise EmbeddingClientError("Invalid embeddings payload: missing embedding vector")
        try:
            vectors.append([float(value) for value in embedding])
        except (TypeError, ValueError) as exc:
            raise EmbeddingClientError(
                f"Invalid embeddings payload: non-numeric embedding value ({exc})"
            ) from exc

    if len(vectors) != expected:
        raise EmbeddingClientError(
            f"Invalid embeddings payload: expected {expected} vectors, got {len(vectors)}"
        )
    return vectors


class OllamaEmbeddingClient:
    def __init__(self, *, base_url: str, model: str, timeout_seconds: float = 30.0) -> None:
        self._base_url = base_url.rstrip("/")
        self._model = model
        self._timeout_seconds = timeout_seconds

    def embed_texts(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []

        try:
            response = httpx.post(
                f"{self._base_url}/embeddings",
                json={"model": self._model, "input": texts},
                timeout=self._timeout_seconds,
            )
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise EmbeddingClientError(f"{self._model}: {exc}") from exc

        return parse_embeddings(payload, expected=len(texts))


def discover_dimensions(client: EmbeddingClient) -> int:
    """Embed a probe string once to learn the vector length the model produces."""
    vectors = client.embed_texts([DIMENSION_PROBE_TEXT])
    if not vectors or not vectors[0]:
        raise EmbeddingClientError("Embedding probe returned no vector")
    return len(vectors[0])
