from __future__ import annotations

from pathlib import Path
from time import perf_counter
from typing import Protocol, Sequence

from pdfrag.services.rag.extractor import TextExtractor
from pdfrag.services.rag.scanner import DEFAULT_EXTENSION, scan_source_dir
from pdfrag.services.rag.task_group import TaskGroup
from pdfrag.services.rag.types import (
    DocumentRecord,
    IngestionFailure,
    IngestionOutcome,
    IngestionSuccess,
    IngestionSummary,
    SourceFile,
)
from pdfrag.services.rag.vector_store import StoreQueryError


class BlockCountError(RuntimeError):
    pass


class IngestionStore(Protocol):
    def contains(self, document_name: str) -> bool: ...

    def add_documents(self, records: Sequence[DocumentRecord]) -> int: ...


def filter_pending(
    sources: list[SourceFile],
    store: IngestionStore,
    *,
    max_workers: int,
    timeout_seconds: float | None = None,
) -> tuple[list[SourceFile], int]:
    """Split ``sources`` into files that still need ingestion and a count of stored ones.

    One lookup per file runs concurrently. A failed lookup means the store is
    unusable, so it is raised rather than treated as "missing".
    """
    with TaskGroup[bool](max_workers=max_workers, timeout_seconds=timeout_seconds) as group:
        for source in sources:
            group.spawn(source.name, store.contains, source.name)
        results = group.join_all()

    pending: list[SourceFile] = []
    already_present = 0
    for source, result in zip(sources, results):
        if not result.ok:
            raise StoreQueryError(
                f"Existence check failed for {source.name}: {result.error}"
            ) from result.error
        if result.value:
            already_present += 1
        else:
            pending.append(source)
    return pending, already_present


def _load_document(source: SourceFile, extractor: TextExtractor) -> DocumentRecord:
    blocks = extractor.extract(source.path)
    if len(blocks) != 1:
        raise BlockCountError(
            f"{source.name}: expected exactly one text block, got {len(blocks)}"
        )
    return DocumentRecord(content=blocks[0], metadata={"document_name": source.name})


def _ingest_one(source: SourceFile, extractor: TextExtractor) -> IngestionOutcome:
    try:
        record = _load_document(source, extractor)
    except Exception as exc:
        return IngestionFailure(source=source, reason=str(exc))
    return IngestionSuccess(source=source, record=record)


def load_documents(
    sources: list[SourceFile],
    extractor: TextExtractor,
    *,
    max_workers: int,
    timeout_seconds: float | None = None,
) -> list[IngestionOutcome]:
    """Extract and tag ``sources`` concurrently.

    Each file gets exactly one ✅/❌ line, printed here from its final outcome.
    A worker still running after the phase deadline prints nothing.
    """
    start = perf_counter()
    with TaskGroup[IngestionOutcome](
        max_workers=max_workers, timeout_seconds=timeout_seconds
    ) as group:
        for source in sources:
            group.spawn(source.name, _ingest_one, source, extractor)
        results = group.join_all()

    outcomes: list[IngestionOutcome] = []
    for source, result in zip(sources, results):
        if result.ok and result.value is not None:
            outcome = result.value
        else:
            outcome = IngestionFailure(source=source, reason=str(result.error))

        if isinstance(outcome, IngestionSuccess):
            print(f"{source.name} - ✅", flush=True)
        else:
            print(f"{source.name} - ❌ ({outcome.reason})", flush=True)
        outcomes.append(outcome)

    duration_ms = int((perf_counter() - start) * 1000)
    print(f"Loaded {len(sources)} documents in {duration_ms}ms", flush=True)
    return outcomes


def ingest_pdfs(
    *,
    source_dir: Path,
    store: IngestionStore,
    extractor: TextExtractor,
    extension: str = DEFAULT_EXTENSION,
    max_workers: int = 8,
    timeout_seconds: float | None = None,
) -> IngestionSummary:
    start = perf_counter()

    sources = scan_source_dir(source_dir, extension)
    pending, already_present = filter_pending(
        sources,
        store,
        max_workers=max_workers,
        timeout_seconds=timeout_seconds,
    )
    outcomes = load_documents(
        pending,
        extractor,
        max_workers=max_workers,
        timeout_seconds=timeout_seconds,
    )

    records = [outcome.record for outcome in outcomes if isinstance(outcome, IngestionSuccess)]
    failed = tuple(
        outcome.source.name for outcome in outcomes if isinstance(outcome, IngestionFailure)
    )
    written = store.add_documents(records)

    return IngestionSummary(
        scanned=len(sources),
        already_present=already_present,
        attempted=len(pending),
        succeeded=len(records),
        written=written,
        duration_ms=int((perf_counter() - start) * 1000),
        failed=failed,
    )
