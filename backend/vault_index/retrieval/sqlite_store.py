"""SQLite-backed vector store."""

from __future__ import annotations

import asyncio
import sqlite3
from pathlib import Path
from typing import Sequence

import orjson

from vault_index.core.errors import StoreIOError, StoreUnavailable
from vault_index.core.logging import get_logger
from vault_index.db.sqlite import SQLiteDatabase, blob_to_vector, iter_rows, vector_to_blob
from vault_index.ingest.types import IndexStats, PassageMetadata, SearchHit, VectorRecord
from vault_index.retrieval.vector_store import VectorStore, group_by_path, rank

logger = get_logger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS vectors (
    id TEXT PRIMARY KEY,
    document_path TEXT NOT NULL,
    passage_index INTEGER NOT NULL,
    text TEXT NOT NULL,
    vector BLOB NOT NULL,
    dim INTEGER NOT NULL,
    metadata TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_vectors_document_path ON vectors(document_path);
"""


class SQLiteVectorStore(VectorStore):
    """Durable store: float32 blobs in one ``vectors`` table, full-scan cosine search."""

    name = "sqlite"

    def __init__(self, db_path: Path, dimension: int = 0) -> None:
        self.db = SQLiteDatabase(db_path)
        self.dimension = dimension
        self._initialized = False

    async def init(self) -> None:
        if self._initialized:
            return
        try:
            await asyncio.to_thread(self.db.executescript, SCHEMA)
        except (sqlite3.Error, OSError) as exc:
            self.db.close()
            raise StoreUnavailable(f"Cannot open vector store at {self.db.db_path}: {exc}") from exc
        self._initialized = True
        logger.info("SQLite vector store ready at %s", self.db.db_path)

    async def upsert(self, records: Sequence[VectorRecord]) -> None:
        if not records:
            return
        try:
            await asyncio.to_thread(self._upsert, records)
        except sqlite3.Error as exc:
            raise StoreIOError(f"Upsert failed: {exc}") from exc

    async def delete(self, document_path: str) -> None:
        try:
            await asyncio.to_thread(self._delete, document_path)
        except sqlite3.Error as exc:
            raise StoreIOError(f"Delete of {document_path} failed: {exc}") from exc

    async def search(self, vector: Sequence[float], top_k: int = 10, min_score: float = 0.0) -> list[SearchHit]:
        if not self._initialized:
            return []
        try:
            return await asyncio.to_thread(self._search, list(vector), top_k, min_score)
        except (sqlite3.Error, ValueError) as exc:
            raise StoreIOError(f"Search failed: {exc}") from exc

    async def stats(self) -> IndexStats:
        if not self._initialized:
            return IndexStats(dimensions=self.dimension)
        try:
            return await asyncio.to_thread(self._stats)
        except (sqlite3.Error, OSError) as exc:
            logger.warning("Failed to compute vector store stats: %s", exc)
            return IndexStats()

    async def close(self) -> None:
        await asyncio.to_thread(self.db.close)
        self._initialized = False

    def _upsert(self, records: Sequence[VectorRecord]) -> None:
        with self.db.transaction() as cursor:
            for path, group in group_by_path(records).items():
                cursor.execute("DELETE FROM vectors WHERE document_path = ?", (path,))
                cursor.executemany(
                    """
                    INSERT OR REPLACE INTO vectors(id, document_path, passage_index, text, vector, dim, metadata, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    [
                        (
                            record.id,
                            record.document_path,
                            record.passage_index,
                            record.text,
                            vector_to_blob(record.vector),
                            len(record.vector),
                            orjson.dumps(record.metadata.to_dict()).decode("utf-8"),
                            record.updated_at,
                        )
                        for record in group
                    ],
                )

    def _delete(self, document_path: str) -> None:
        with self.db.transaction() as cursor:
            cursor.execute("DELETE FROM vectors WHERE document_path = ?", (document_path,))

    def _search(self, vector: list[float], top_k: int, min_score: float) -> list[SearchHit]:
        with self.db.lock:
            cursor = self.db.connect().execute(
                "SELECT id, document_path, passage_index, text, vector, metadata, updated_at FROM vectors"
            )
            records = [_row_to_record(row) for row in iter_rows(cursor)]
        return rank(records, vector, top_k, min_score)

    def _stats(self) -> IndexStats:
        row = self.db.query(
            """
            SELECT COUNT(*) AS total_records,
                   COUNT(DISTINCT document_path) AS total_documents,
                   MAX(dim) AS dimensions,
                   MAX(updated_at) AS last_updated
            FROM vectors
            """
        )[0]
        size_bytes = self.db.db_path.stat().st_size if self.db.db_path.exists() else 0
        return IndexStats(
            total_records=int(row["total_records"] or 0),
            total_documents=int(row["total_documents"] or 0),
            dimensions=int(row["dimensions"] or self.dimension),
            size_bytes=size_bytes,
            last_updated=row["last_updated"],
        )


def _row_to_record(row: sqlite3.Row) -> VectorRecord:
    return VectorRecord(
        id=row["id"],
        document_path=row["document_path"],
        passage_index=int(row["passage_index"]),
        text=row["text"],
        vector=blob_to_vector(row["vector"]),
        metadata=PassageMetadata.from_dict(orjson.loads(row["metadata"])),
        updated_at=row["updated_at"],
    )


__all__ = ["SQLiteVectorStore"]
