from __future__ import annotations

import argparse
from pathlib import Path
import sys
from time import perf_counter

from sqlalchemy.engine import Engine

from pdfrag.config import get_settings
from pdfrag.db import get_engine
from pdfrag.llm import LLMClient, OllamaChatClient
from pdfrag.repl import run_query_loop
from pdfrag.services.rag import (
    ConversationalRetrieverChain,
    DocumentStore,
    IngestionSummary,
    PypdfExtractor,
    Retriever,
    ingest_pdfs,
)
from pdfrag.services.rag.embedding_client import (
    EmbeddingClient,
    OllamaEmbeddingClient,
    discover_dimensions,
)
from pdfrag.services.rag.extractor import TextExtractor


def get_llm_client() -> LLMClient:
    settings = get_settings()
    return OllamaChatClient(
        base_url=settings.ollama_base_url,
        default_model=settings.ollama_model,
        fallback_model=settings.ollama_fallback_model,
        timeout_seconds=settings.ollama_timeout_seconds,
    )


def get_embedding_client() -> EmbeddingClient:
    settings = get_settings()
    return OllamaEmbeddingClient(
        base_url=settings.ollama_embed_base_url,
        model=settings.ollama_embed_model,
        timeout_seconds=settings.ollama_timeout_seconds,
    )


def open_store(embedding_client: EmbeddingClient, engine: Engine | None = None) -> DocumentStore:
    settings = get_settings()

    dimensions = discover_dimensions(embedding_client)
    print(f"Discovered vector dimensions to be {dimensions}", flush=True)

    store = DocumentStore(
        engine if engine is not None else get_engine(),
        embedding_client,
        vector_dimensions=dimensions,
        write_attempts=settings.rag_write_attempts,
        retry_base_seconds=settings.rag_write_retry_base_seconds,
        retry_max_seconds=settings.rag_write_retry_max_seconds,
    )
    store.initialize()
    return store


def run_ingestion(
    store: DocumentStore,
    *,
    source_dir: Path,
    extractor: TextExtractor | None = None,
) -> IngestionSummary:
    settings = get_settings()
    return ingest_pdfs(
        source_dir=source_dir,
        store=store,
        extractor=extractor if extractor is not None else PypdfExtractor(),
        extension=settings.rag_source_extension,
        max_workers=settings.rag_max_workers,
        timeout_seconds=settings.rag_task_timeout_seconds,
    )


def build_chain(store: DocumentStore, llm_client: LLMClient) -> ConversationalRetrieverChain:
    settings = get_settings()
    retriever = Retriever(
        store,
        top_k=settings.rag_retrieval_k,
        score_threshold=settings.rag_score_threshold,
    )
    return ConversationalRetrieverChain(retriever=retriever, llm_client=llm_client)


def _build_parser() -> argparse.ArgumentParser:
    settings = get_settings()

    parser = argparse.ArgumentParser(
        prog="pdfrag",
        description="Embed new PDFs, then answer questions about them interactively",
    )
    parser.add_argument(
        "--source-dir",
        default=settings.rag_source_dir,
        help="Directory scanned (non-recursively) for PDF documents",
    )
    parser.add_argument(
        "--skip-ingest",
        action="store_true",
        help="Go straight to the question prompt without scanning for new PDFs",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)
    start = perf_counter()

    try:
        store = open_store(get_embedding_client())
        if not args.skip_ingest:
            run_ingestion(store, source_dir=Path(args.source_dir))
        chain = build_chain(store, get_llm_client())
    except Exception as exc:
        print(f"[pdfrag] failed: {exc}", file=sys.stderr, flush=True)
        raise SystemExit(1) from exc

    print(f"Startup took {int(perf_counter() - start)}s", flush=True)
    run_query_loop(chain)


if __name__ == "__main__":
    main()
