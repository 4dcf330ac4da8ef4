from __future__ import annotations

from array import array
import math
from random import random
from time import sleep
from typing import Any, Sequence

from sqlalchemy import func, insert, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pdfrag.db import Base
from pdfrag.models import StoredDocument
from pdfrag.services.rag.embedding_client import EmbeddingClient, EmbeddingClientError
from pdfrag.services.rag.types import DocumentRecord, QueryHit


class StoreError(RuntimeError):
    pass


class StoreQueryError(StoreError):
    pass


class StoreWriteError(StoreError):
    pass


def _encode_embedding(values: list[float]) -> bytes:
    vector = array("f", values)
    return vector.tobytes()


def _decode_embedding(blob: bytes) -> list[float]:
    vector = array("f")
    vector.frombytes(blob)
    return vector.tolist()


def _cosine(a: list[float], b: list[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (norm_a * norm_b)


class DocumentStore:
    """Documents and their embeddings in a SQL database.

    ``document_name`` carries a unique constraint. Writes skip rows whose name
    is already stored instead of failing, so two ingestion runs racing on the
    same file leave exactly one record behind.
    """

    def __init__(
        self,
        engine: Engine,
        embedding_client: EmbeddingClient,
        *,
        vector_dimensions: int,
        write_attempts: int = 1,
        retry_base_seconds: float = 1.0,
        retry_max_seconds: float = 30.0,
    ) -> None:
        if vector_dimensions <= 0:
            raise ValueError("vector_dimensions must be > 0")
        self._engine = engine
        self._embedding_client = embedding_client
        self._vector_dimensions = vector_dimensions
        self._write_attempts = max(1, write_attempts)
        self._retry_base_seconds = retry_base_seconds
        self._retry_max_seconds = retry_max_seconds

    def initialize(self) -> None:
        try:
            Base.metadata.create_all(bind=self._engine, tables=[StoredDocument.__table__])
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to initialize document store: {exc}") from exc

    def find_by_document_name(self, document_name: str) -> list[int]:
        try:
            with Session(self._engine) as session:
                return list(
                    session.scalars(
                        select(StoredDocument.id).where(
                            StoredDocument.document_name == document_name
                        )
                    ).all()
                )
        except SQLAlchemyError as exc:
            raise StoreQueryError(f"Lookup failed for {document_name}: {exc}") from exc

    def contains(self, document_name: str) -> bool:
        return len(self.find_by_document_name(document_name)) > 0

    def count(self) -> int:
        try:
            with Session(self._engine) as session:
                return int(session.scalar(select(func.count(StoredDocument.id))) or 0)
        except SQLAlchemyError as exc:
            raise StoreQueryError(f"Count failed: {exc}") from exc

    def add_documents(self, records: Sequence[DocumentRecord]) -> int:
        """Embed ``records`` in one call and persist them in one transaction.

        Returns the number of rows actually inserted; names already present are
        skipped. Transient embedding or database failures are retried with
        exponential backoff before a ``StoreWriteError`` is raised.
        """
        if not records:
            return 0

        delay = self._retry_base_seconds
        attempt = 1
        while True:
            try:
                return self._write_batch(records)
            except (EmbeddingClientError, SQLAlchemyError) as exc:
                if attempt >= self._write_attempts:
                    raise StoreWriteError(
                        f"Batch write of {len(records)} documents failed after "
                        f"{attempt} attempt(s): {exc}"
                    ) from exc
                print(
                    f"[pdfrag] batch write failed attempt={attempt} error={exc!r}; "
                    f"retrying in {delay:.1f}s",
                    flush=True,
                )
                sleep(delay + random() * 0.2 * delay)
                delay = min(delay * 2, self._retry_max_seconds)
                attempt += 1

    def _write_batch(self, records: Sequence[DocumentRecord]) -> int:
        embeddings = self._embedding_client.embed_texts([record.content for record in records])
        if len(embeddings) != len(records):
            raise StoreWriteError(
                f"Expected {len(records)} embeddings, got {len(embeddings)}"
            )
        for record, embedding in zip(records, embeddings):
            if len(embedding) != self._vector_dimensions:
                raise StoreWriteError(
                    f"Embedding for {record.document_name} has {len(embedding)} dimensions, "
                    f"store expects {self._vector_dimensions}"
                )

        written = 0
        with self._engine.begin() as connection:
            for record, embedding in zip(records, embeddings):
                result = connection.execute(
                    self._insert_skipping_duplicates(
                        {
                            "document_name": record.document_name,
                            "content": record.content,
                            "metadata_json": dict(record.metadata),
                            "embedding": _encode_embedding(embedding),
                            "embedding_dim": len(embedding),
                        }
                    )
                )
                written += max(result.rowcount, 0)
        return written

    def _insert_skipping_duplicates(self, values: dict[str, Any]):
        dialect = self._engine.dialect.name
        if dialect == "postgresql":
            return (
                postgresql.insert(StoredDocument)
                .values(**values)
                .on_conflict_do_nothing(index_elements=["document_name"])
            )
        if dialect == "sqlite":
            return (
                sqlite.insert(StoredDocument)
                .values(**values)
                .on_conflict_do_nothing(index_elements=["document_name"])
            )
        return insert(StoredDocument).values(**values)

    def similarity_search(
        self,
        query_text: str,
        *,
        top_k: int,
        score_threshold: float | None = None,
    ) -> list[QueryHit]:
        normalized_query = query_text.strip()
        if not normalized_query:
            raise ValueError("query_text must not be empty")

        try:
            query_embedding = self._embedding_client.embed_texts([normalized_query])[0]
        except IndexError as exc:
            raise EmbeddingClientError("Failed to generate query embedding") from exc

        try:
            with Session(self._engine) as session:
                rows = session.execute(
                    select(
                        StoredDocument.id,
                        StoredDocument.document_name,
                        StoredDocument.content,
                        StoredDocument.embedding,
                        StoredDocument.embedding_dim,
                    ).order_by(StoredDocument.id)
                ).all()
        except SQLAlchemyError as exc:
            raise StoreQueryError(f"Similarity search failed: {exc}") from exc

        hits: list[QueryHit] = []
        for document_id, document_name, content, embedding_blob, embedding_dim in rows:
            embedding = _decode_embedding(embedding_blob)
            if len(embedding) != embedding_dim or embedding_dim != len(query_embedding):
                continue

            score = _cosine(query_embedding, embedding)
            if score_threshold is not None and score < score_threshold:
                continue
            hits.append(
                QueryHit(
                    document_id=document_id,
                    document_name=document_name,
                    content=content,
                    score=score,
                )
            )

        hits.sort(key=lambda hit: hit.score, reverse=True)
        return hits[: max(1, top_k)]
