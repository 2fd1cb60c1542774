"""Vector store contract shared by every backend."""

from __future__ import annotations

import heapq
import math
from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Iterable, Sequence

from vault_index.ingest.types import IndexStats, SearchHit, VectorRecord


class VectorStore(ABC):
    """Async persistence of :class:`VectorRecord` rows keyed by ``id``.

    ``upsert`` replaces every record of a document path in one step, so a
    path never holds records from two indexing passes. ``search`` ranks by
    cosine similarity and returns ``[]`` on an empty or uninitialised store.
    """

    name = "abstract"

    @abstractmethod
    async def init(self) -> None: ...

    @abstractmethod
    async def upsert(self, records: Sequence[VectorRecord]) -> None: ...

    @abstractmethod
    async def delete(self, document_path: str) -> None: ...

    @abstractmethod
    async def search(self, vector: Sequence[float], top_k: int = 10, min_score: float = 0.0) -> list[SearchHit]: ...

    @abstractmethod
    async def stats(self) -> IndexStats: ...

    @abstractmethod
    async def close(self) -> None: ...


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    if len(a) != len(b):
        raise ValueError("Vector dimension mismatch")
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (norm_a * norm_b)


def group_by_path(records: Iterable[VectorRecord]) -> "OrderedDict[str, list[VectorRecord]]":
    grouped: OrderedDict[str, list[VectorRecord]] = OrderedDict()
    for record in records:
        grouped.setdefault(record.document_path, []).append(record)
    return grouped


def rank(
    records: Iterable[VectorRecord],
    vector: Sequence[float],
    top_k: int,
    min_score: float,
) -> list[SearchHit]:
    """Score ``records`` against ``vector`` and keep the best ``top_k``."""
    if top_k <= 0:
        return []
    scored = (
        (cosine_similarity(record.vector, vector), position, record)
        for position, record in enumerate(records)
    )
    kept = [item for item in scored if item[0] >= min_score]
    best = heapq.nsmallest(top_k, kept, key=lambda item: (-item[0], item[1]))
    return [SearchHit(record=record, score=score, distance=1.0 - score) for score, _, record in best]


__all__ = ["VectorStore", "cosine_similarity", "group_by_path", "rank"]
