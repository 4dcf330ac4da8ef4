from __future__ import annotations

from typing import Protocol

from pdfrag.services.rag.types import QueryHit


class SearchableStore(Protocol):
    def similarity_search(
        self,
        query_text: str,
        *,
        top_k: int,
        score_threshold: float | None = None,
    ) -> list[QueryHit]: ...


class Retriever:
    def __init__(
        self,
        store: SearchableStore,
        *,
        top_k: int = 20,
        score_threshold: float | None = 0.5,
    ) -> None:
        if top_k < 1:
            raise ValueError("top_k must be >= 1")
        self._store = store
        self._top_k = top_k
        self._score_threshold = score_threshold

    def retrieve(self, question: str) -> list[QueryHit]:
        return self._store.similarity_search(
            question,
            top_k=self._top_k,
            score_threshold=self._score_threshold,
        )
