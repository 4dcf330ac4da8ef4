from pathlib import Path

import pytest
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError

from pdfrag.services.rag.embedding_client import EmbeddingClientError
from pdfrag.services.rag.types import DocumentRecord
from pdfrag.services.rag.vector_store import (
    DocumentStore,
    StoreQueryError,
    StoreWriteError,
)


class ConstantEmbeddingClient:
    def __init__(self) -> None:
        self.calls: list[list[str]] = []

    def embed_texts(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        return [[1.0, 0.0, 0.0] for _ in texts]


def _record(name: str, content: str) -> DocumentRecord:
    return DocumentRecord(content=content, metadata={"document_name": name})


def test_initialize_creates_schema_and_is_idempotent(store: DocumentStore, engine: Engine) -> None:
    store.initialize()

    inspector = inspect(engine)
    assert "documents" in inspector.get_table_names()
    columns = {column["name"] for column in inspector.get_columns("documents")}
    assert {
        "id",
        "document_name",
        "content",
        "metadata_json",
        "embedding",
        "embedding_dim",
        "created_at",
    }.issubset(columns)


def test_add_documents_persists_and_finds_by_name(store: DocumentStore, engine: Engine) -> None:
    written = store.add_documents(
        [
            _record("schedule.pdf", "How to view the attendance schedule"),
            _record("grades.pdf", "Posting grades in the gradebook"),
        ]
    )

    assert written == 2
    assert store.count() == 2
    assert len(store.find_by_document_name("grades.pdf")) == 1
    assert store.contains("schedule.pdf")
    assert not store.contains("missing.pdf")

    with engine.connect() as connection:
        row = connection.execute(
            text("SELECT metadata_json, embedding_dim FROM documents WHERE document_name = 'grades.pdf'")
        ).fetchone()
    assert row is not None
    assert "grades.pdf" in str(row[0])
    assert row[1] == 3


def test_add_documents_with_empty_batch_is_a_no_op(engine: Engine) -> None:
    embedding_client = ConstantEmbeddingClient()
    store = DocumentStore(engine, embedding_client, vector_dimensions=3)
    store.initialize()

    assert store.add_documents([]) == 0
    assert store.count() == 0
    assert embedding_client.calls == []


def test_add_documents_embeds_batch_in_one_call(engine: Engine) -> None:
    embedding_client = ConstantEmbeddingClient()
    store = DocumentStore(engine, embedding_client, vector_dimensions=3)
    store.initialize()

    store.add_documents([_record("a.pdf", "alpha"), _record("b.pdf", "beta")])

    assert embedding_client.calls == [["alpha", "beta"]]


def test_duplicate_document_name_is_skipped_not_an_error(store: DocumentStore) -> None:
    assert store.add_documents([_record("a.pdf", "first version")]) == 1

    written = store.add_documents(
        [_record("a.pdf", "second version"), _record("b.pdf", "new document")]
    )

    assert written == 1
    assert store.count() == 2
    hits = store.similarity_search("first version", top_k=5)
    assert {hit.content for hit in hits} == {"first version", "new document"}


def test_dimension_mismatch_is_rejected(engine: Engine) -> None:
    store = DocumentStore(engine, ConstantEmbeddingClient(), vector_dimensions=8)
    store.initialize()

    with pytest.raises(StoreWriteError, match="store expects 8"):
        store.add_documents([_record("a.pdf", "alpha")])
    assert store.count() == 0


def test_batch_write_retries_transient_embedding_failures(
    engine: Engine, monkeypatch: pytest.MonkeyPatch
) -> None:
    class FlakyEmbeddingClient(ConstantEmbeddingClient):
        def __init__(self) -> None:
            super().__init__()
            self.failures_left = 2

        def embed_texts(self, texts: list[str]) -> list[list[float]]:
            if self.failures_left:
                self.failures_left -= 1
                raise EmbeddingClientError("connection refused")
            return super().embed_texts(texts)

    delays: list[float] = []
    monkeypatch.setattr("pdfrag.services.rag.vector_store.sleep", delays.append)

    store = DocumentStore(
        engine,
        FlakyEmbeddingClient(),
        vector_dimensions=3,
        write_attempts=3,
        retry_base_seconds=1.0,
        retry_max_seconds=30.0,
    )
    store.initialize()

    assert store.add_documents([_record("a.pdf", "alpha")]) == 1
    assert len(delays) == 2
    assert 1.0 <= delays[0] <= 1.2
    assert 2.0 <= delays[1] <= 2.4


def test_batch_write_failure_is_fatal_after_last_attempt(
    engine: Engine, monkeypatch: pytest.MonkeyPatch
) -> None:
    class DownEmbeddingClient:
        def embed_texts(self, texts: list[str]) -> list[list[float]]:
            raise EmbeddingClientError("connection refused")

    monkeypatch.setattr("pdfrag.services.rag.vector_store.sleep", lambda _: None)

    store = DocumentStore(engine, DownEmbeddingClient(), vector_dimensions=3, write_attempts=2)
    store.initialize()

    with pytest.raises(StoreWriteError, match="after 2 attempt"):
        store.add_documents([_record("a.pdf", "alpha")])


def test_similarity_search_ranks_and_applies_threshold(store: DocumentStore) -> None:
    store.add_documents(
        [
            _record("schedule.pdf", "attendance schedule attendance schedule"),
            _record("grades.pdf", "gradebook grades gradebook grades"),
            _record("intro.pdf", "welcome"),
        ]
    )

    hits = store.similarity_search("where is my schedule?", top_k=5, score_threshold=0.5)

    assert hits
    assert hits[0].document_name == "schedule.pdf"
    assert "grades.pdf" not in {hit.document_name for hit in hits}
    assert all(hit.score >= 0.5 for hit in hits)


def test_similarity_search_limits_to_top_k(store: DocumentStore) -> None:
    store.add_documents([_record(f"doc-{index}.pdf", "welcome") for index in range(4)])

    assert len(store.similarity_search("welcome", top_k=2)) == 2


def test_similarity_search_rejects_empty_query(store: DocumentStore) -> None:
    with pytest.raises(ValueError, match="must not be empty"):
        store.similarity_search("   ", top_k=3)


def test_lookup_against_missing_database_raises_store_query_error(tmp_path: Path) -> None:
    engine = create_engine(f"sqlite+pysqlite:///{tmp_path / 'missing-dir' / 'x.db'}")
    store = DocumentStore(engine, ConstantEmbeddingClient(), vector_dimensions=3)

    with pytest.raises(StoreQueryError) as excinfo:
        store.find_by_document_name("a.pdf")
    assert isinstance(excinfo.value.__cause__, OperationalError)
