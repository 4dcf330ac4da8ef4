from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping, Union


@dataclass(frozen=True)
class SourceFile:
    name: str
    path: Path


@dataclass(frozen=True)
class DocumentRecord:
    content: str
    metadata: Mapping[str, Any]

    def __post_init__(self) -> None:
        if not isinstance(self.metadata.get("document_name"), str):
            raise ValueError("document metadata must include a string document_name")
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))

    @property
    def document_name(self) -> str:
        return str(self.metadata["document_name"])


@dataclass(frozen=True)
class IngestionSuccess:
    source: SourceFile
    record: DocumentRecord


@dataclass(frozen=True)
class IngestionFailure:
    source: SourceFile
    reason: str


IngestionOutcome = Union[IngestionSuccess, IngestionFailure]


@dataclass(frozen=True)
class IngestionSummary:
    scanned: int
    already_present: int
    attempted: int
    succeeded: int
    written: int
    duration_ms: int
    failed: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class QueryHit:
    document_id: int
    document_name: str
    content: str
    score: float
