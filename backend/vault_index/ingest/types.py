"""Common indexing data structures."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Sequence


@dataclass(slots=True)
class PassageMetadata:
    """Metadata inherited by every passage of a document."""

    title: str
    headings: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    file_size: int = 0
    file_mtime: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "headings": list(self.headings),
            "tags": list(self.tags),
            "file_size": self.file_size,
            "file_mtime": self.file_mtime,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PassageMetadata":
        return cls(
            title=str(data.get("title", "")),
            headings=list(data.get("headings") or []),
            tags=list(data.get("tags") or []),
            file_size=int(data.get("file_size") or 0),
            file_mtime=int(data.get("file_mtime") or 0),
        )


@dataclass(slots=True)
class Passage:
    """A contiguous span of one document selected as a retrieval unit.

    Offsets index into the original document text, frontmatter included,
    so ``text == original[offset_start:offset_end]``. Lines are 1-indexed.
    """

    index: int
    text: str
    offset_start: int
    offset_end: int
    line_start: int
    line_end: int
    vector_id: str
    metadata: PassageMetadata


@dataclass(slots=True)
class Document:
    """A document read from the corpus."""

    path: str
    text: str
    title: str
    tags: list[str] = field(default_factory=list)
    size: int = 0
    mtime: int = 0


@dataclass(slots=True)
class VectorRecord:
    """The persisted unit: one passage plus its embedding."""

    id: str
    document_path: str
    passage_index: int
    text: str
    vector: list[float]
    metadata: PassageMetadata
    updated_at: str

    @classmethod
    def from_passage(
        cls,
        passage: Passage,
        vector: Sequence[float],
        *,
        document_path: str,
        updated_at: str,
        tags: Sequence[str] = (),
        file_size: int = 0,
        file_mtime: int = 0,
    ) -> "VectorRecord":
        metadata = PassageMetadata(
            title=passage.metadata.title,
            headings=list(passage.metadata.headings),
            tags=list(tags),
            file_size=file_size,
            file_mtime=file_mtime,
        )
        return cls(
            id=passage.vector_id,
            document_path=document_path,
            passage_index=passage.index,
            text=passage.text,
            vector=[float(value) for value in vector],
            metadata=metadata,
            updated_at=updated_at,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "document_path": self.document_path,
            "passage_index": self.passage_index,
            "text": self.text,
            "vector": list(self.vector),
            "metadata": self.metadata.to_dict(),
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "VectorRecord":
        return cls(
            id=data["id"],
            document_path=data["document_path"],
            passage_index=int(data["passage_index"]),
            text=data["text"],
            vector=[float(value) for value in data["vector"]],
            metadata=PassageMetadata.from_dict(data.get("metadata") or {}),
            updated_at=data["updated_at"],
        )


@dataclass(slots=True)
class Highlight:
    text: str
    positions: list[tuple[int, int]]


@dataclass(slots=True)
class SearchHit:
    """Read-only projection of a matching record."""

    record: VectorRecord
    score: float
    distance: float
    highlights: list[Highlight] | None = None


@dataclass(slots=True)
class IndexStats:
    """Aggregate statistics recomputed from the store."""

    total_records: int = 0
    total_documents: int = 0
    dimensions: int = 0
    size_bytes: int = 0
    last_updated: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_records": self.total_records,
            "total_documents": self.total_documents,
            "dimensions": self.dimensions,
            "size_bytes": self.size_bytes,
            "last_updated": self.last_updated,
        }


@dataclass(slots=True)
class SchedulerStatus:
    is_busy: bool
    queue_length: int
    model_ready: bool = False


__all__ = [
    "PassageMetadata",
    "Passage",
    "Document",
    "VectorRecord",
    "Highlight",
    "SearchHit",
    "IndexStats",
    "SchedulerStatus",
]
