from __future__ import annotations

import os
from pathlib import Path

from pdfrag.services.rag.types import SourceFile

DEFAULT_EXTENSION = ".pdf"


def scan_source_dir(source_dir: Path, extension: str = DEFAULT_EXTENSION) -> list[SourceFile]:
    """List the files directly inside ``source_dir`` whose name ends with ``extension``.

    The match is a case-sensitive suffix match and subdirectories are not
    descended into. Names that are not valid UTF-8 are skipped with a notice.
    A missing or unreadable directory raises, since the watched directory is a
    startup precondition.
    """
    if not source_dir.exists():
        raise FileNotFoundError(f"Source directory not found: {source_dir}")
    if not source_dir.is_dir():
        raise NotADirectoryError(f"Source path is not a directory: {source_dir}")
    if not os.access(source_dir, os.R_OK | os.X_OK):
        raise PermissionError(f"Source directory is not readable: {source_dir}")

    files: list[SourceFile] = []
    for path in sorted(source_dir.iterdir(), key=lambda item: item.name):
        if not path.is_file() or not path.name.endswith(extension):
            continue
        if not _is_utf8_name(path.name):
            print(f"[pdfrag] skipping {path.name!r}: file name is not valid UTF-8", flush=True)
            continue
        files.append(SourceFile(name=path.name, path=path))
    return files


def _is_utf8_name(name: str) -> bool:
    # Undecodable bytes come back from the OS as lone surrogates.
    try:
        name.encode("utf-8")
    except UnicodeEncodeError:
        return False
    return True
