from __future__ import annotations

import argparse
from pathlib import Path
import sys

from pdfrag.config import get_settings
from pdfrag.main import get_embedding_client, open_store, run_ingestion


def _build_parser() -> argparse.ArgumentParser:
    settings = get_settings()

    parser = argparse.ArgumentParser(
        prog="pdfrag-ingest",
        description="Embed PDFs that are not yet in the document store",
    )
    parser.add_argument(
        "--source-dir",
        default=settings.rag_source_dir,
        help="Directory scanned (non-recursively) for PDF documents",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)

    try:
        store = open_store(get_embedding_client())
        summary = run_ingestion(store, source_dir=Path(args.source_dir))
    except Exception as exc:
        print(f"[pdfrag-ingest] failed: {exc}", file=sys.stderr, flush=True)
        raise SystemExit(1) from exc

    print(
        "[pdfrag-ingest] completed "
        f"scanned={summary.scanned} "
        f"already_present={summary.already_present} "
        f"succeeded={summary.succeeded} "
        f"failed={len(summary.failed)} "
        f"written={summary.written} "
        f"duration_ms={summary.duration_ms}",
        flush=True,
    )
    if summary.failed:
        print(f"[pdfrag-ingest] failed files: {', '.join(summary.failed)}", flush=True)


if __name__ == "__main__":
    main()
