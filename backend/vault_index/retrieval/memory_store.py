"""In-memory vector store with an optional JSON snapshot."""

from __future__ import annotations

import asyncio
import os
from pathlib import Path
from typing import Sequence

import orjson

from vault_index.core.errors import StoreIOError, StoreUnavailable
from vault_index.core.logging import get_logger
from vault_index.ingest.types import IndexStats, SearchHit, VectorRecord
from vault_index.retrieval.vector_store import VectorStore, group_by_path, rank

logger = get_logger(__name__)


class MemoryVectorStore(VectorStore):
    """Dict-backed store used when SQLite cannot be opened.

    With ``snapshot_path`` set, the full record set is rewritten after every
    mutation and reloaded by :meth:`init`.
    """

    name = "memory"

    def __init__(self, snapshot_path: Path | None = None, dimension: int = 0) -> None:
        self.snapshot_path = snapshot_path.expanduser() if snapshot_path else None
        self.dimension = dimension
        self._records: dict[str, VectorRecord] = {}
        self._lock = asyncio.Lock()
        self._initialized = False

    @property
    def size(self) -> int:
        return len(self._records)

    async def init(self) -> None:
        if self._initialized:
            return
        if self.snapshot_path is not None:
            records = await asyncio.to_thread(self._load_snapshot)
            self._records = {record.id: record for record in records}
        self._initialized = True
        logger.info("Memory vector store ready with %s records", len(self._records))

    async def upsert(self, records: Sequence[VectorRecord]) -> None:
        if not records:
            return
        async with self._lock:
            for path, group in group_by_path(records).items():
                self._drop_path(path)
                for record in group:
                    self._records[record.id] = record
            await self._persist()

    async def delete(self, document_path: str) -> None:
        async with self._lock:
            if self._drop_path(document_path):
                await self._persist()

    async def search(self, vector: Sequence[float], top_k: int = 10, min_score: float = 0.0) -> list[SearchHit]:
        if not self._initialized or not self._records:
            return []
        try:
            return rank(list(self._records.values()), vector, top_k, min_score)
        except ValueError as exc:
            raise StoreIOError(f"Search failed: {exc}") from exc

    async def stats(self) -> IndexStats:
        try:
            records = list(self._records.values())
            size_bytes = self._snapshot_size()
            return IndexStats(
                total_records=len(records),
                total_documents=len({record.document_path for record in records}),
                dimensions=len(records[0].vector) if records else self.dimension,
                size_bytes=size_bytes,
                last_updated=max((record.updated_at for record in records), default=None),
            )
        except OSError as exc:
            logger.warning("Failed to compute memory store stats: %s", exc)
            return IndexStats()

    async def close(self) -> None:
        self._records.clear()
        self._initialized = False

    def _snapshot_size(self) -> int:
        if self.snapshot_path is None or not self.snapshot_path.exists():
            return 0
        return self.snapshot_path.stat().st_size

    def _drop_path(self, document_path: str) -> int:
        stale = [record_id for record_id, record in self._records.items() if record.document_path == document_path]
        for record_id in stale:
            del self._records[record_id]
        return len(stale)

    async def _persist(self) -> None:
        if self.snapshot_path is None:
            return
        payload = [record.to_dict() for record in self._records.values()]
        try:
            await asyncio.to_thread(self._write_snapshot, payload)
        except OSError as exc:
            raise StoreIOError(f"Failed to write snapshot {self.snapshot_path}: {exc}") from exc

    def _write_snapshot(self, payload: list[dict]) -> None:
        assert self.snapshot_path is not None
        self.snapshot_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.snapshot_path.with_suffix(self.snapshot_path.suffix + ".tmp")
        tmp_path.write_bytes(orjson.dumps({"records": payload}))
        os.replace(tmp_path, self.snapshot_path)

    def _load_snapshot(self) -> list[VectorRecord]:
        assert self.snapshot_path is not None
        if not self.snapshot_path.exists():
            return []
        try:
            data = orjson.loads(self.snapshot_path.read_bytes())
            return [VectorRecord.from_dict(item) for item in data.get("records", [])]
        except (OSError, orjson.JSONDecodeError, KeyError, TypeError, ValueError) as exc:
            raise StoreUnavailable(f"Cannot read snapshot {self.snapshot_path}: {exc}") from exc


__all__ = ["MemoryVectorStore"]
