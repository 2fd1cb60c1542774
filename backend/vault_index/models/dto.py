"""Pydantic DTOs exposed via API."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from vault_index.ingest.types import IndexStats, SchedulerStatus, SearchHit


class EnqueueRequest(BaseModel):
    paths: list[str] = Field(min_length=1, description="Vault-relative document paths")


class DeletePathRequest(BaseModel):
    path: str


class RenameRequest(BaseModel):
    old_path: str
    new_path: str


class AcceptedResponse(BaseModel):
    status: str = "accepted"
    queued: int = 0


class StatusResponse(BaseModel):
    is_busy: bool
    queue_length: int
    model_ready: bool

    @classmethod
    def from_status(cls, status: SchedulerStatus) -> "StatusResponse":
        return cls(is_busy=status.is_busy, queue_length=status.queue_length, model_ready=status.model_ready)


class QueryRequest(BaseModel):
    query: str
    top_k: int | None = Field(default=None, ge=1, le=100)
    min_score: float | None = Field(default=None, ge=0.0, le=1.0)
    include_highlights: bool = True


class HighlightOut(BaseModel):
    text: str
    positions: list[tuple[int, int]]


class SearchResultOut(BaseModel):
    id: str
    document_path: str
    passage_index: int
    text: str
    score: float
    distance: float
    metadata: dict[str, Any]
    highlights: list[HighlightOut] | None = None

    @classmethod
    def from_hit(cls, hit: SearchHit) -> "SearchResultOut":
        record = hit.record
        highlights = None
        if hit.highlights is not None:
            highlights = [HighlightOut(text=item.text, positions=item.positions) for item in hit.highlights]
        return cls(
            id=record.id,
            document_path=record.document_path,
            passage_index=record.passage_index,
            text=record.text,
            score=hit.score,
            distance=hit.distance,
            metadata=record.metadata.to_dict(),
            highlights=highlights,
        )


class QueryResponse(BaseModel):
    query: str
    results: list[SearchResultOut]


class StatsResponse(BaseModel):
    backend: str
    total_records: int
    total_documents: int
    dimensions: int
    size_bytes: int
    last_updated: str | None = None

    @classmethod
    def from_stats(cls, backend: str, stats: IndexStats) -> "StatsResponse":
        return cls(backend=backend, **stats.to_dict())


__all__ = [
    "EnqueueRequest",
    "DeletePathRequest",
    "RenameRequest",
    "AcceptedResponse",
    "StatusResponse",
    "QueryRequest",
    "HighlightOut",
    "SearchResultOut",
    "QueryResponse",
    "StatsResponse",
]
