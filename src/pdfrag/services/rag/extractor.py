from __future__ import annotations

from pathlib import Path
from typing import Protocol

from pypdf import PdfReader


class ExtractionError(RuntimeError):
    pass


class TextExtractor(Protocol):
    def extract(self, path: Path) -> list[str]: ...


class PypdfExtractor:
    """Extract a PDF as one text block, pages joined by newlines."""

    def extract(self, path: Path) -> list[str]:
        try:
            reader = PdfReader(str(path))
            pages = [page.extract_text() or "" for page in reader.pages]
        except Exception as exc:
            raise ExtractionError(f"{path.name}: {exc}") from exc

        if not pages:
            return []
        return ["\n".join(pages)]
