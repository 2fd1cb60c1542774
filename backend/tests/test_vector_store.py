"""Tests for vector store backends."""

import asyncio
import math
from pathlib import Path

import pytest

from vault_index.core.config import Settings
from vault_index.core.errors import StoreUnavailable
from vault_index.ingest.types import IndexStats, PassageMetadata, VectorRecord
from vault_index.retrieval import MemoryVectorStore, SQLiteVectorStore, open_vector_store
from vault_index.retrieval.vector_store import cosine_similarity


def _record(path: str, index: int, vector: list[float], text: str = "passage") -> VectorRecord:
    return VectorRecord(
        id=f"{path}::{index}",
        document_path=path,
        passage_index=index,
        text=text,
        vector=vector,
        metadata=PassageMetadata(title=path, headings=["# H"], tags=["t"], file_size=10, file_mtime=5),
        updated_at=f"2024-01-01T00:00:0{index}.000+00:00",
    )


@pytest.fixture(params=["memory", "sqlite"])
def store_factory(request: pytest.FixtureRequest, tmp_path: Path):
    def build():
        if request.param == "memory":
            return MemoryVectorStore(tmp_path / "snapshot.json", dimension=3)
        return SQLiteVectorStore(tmp_path / "vectors.db", dimension=3)

    return build


def test_upsert_replaces_previous_records(store_factory) -> None:
    async def scenario():
        store = store_factory()
        await store.init()
        await store.upsert([_record("a.md", i, [1.0, 0.0, 0.0]) for i in range(3)])
        await store.upsert([_record("b.md", 0, [0.0, 1.0, 0.0])])
        await store.upsert([_record("a.md", 0, [1.0, 0.0, 0.0], text="new")])
        hits = await store.search([1.0, 0.0, 0.0], top_k=10, min_score=0.0)
        stats = await store.stats()
        await store.close()
        return hits, stats

    hits, stats = asyncio.run(scenario())
    ids = sorted(hit.record.id for hit in hits)
    assert ids == ["a.md::0", "b.md::0"]
    assert next(hit for hit in hits if hit.record.id == "a.md::0").record.text == "new"
    assert stats.total_records == 2
    assert stats.total_documents == 2
    assert stats.dimensions == 3


def test_search_ranks_and_filters(store_factory) -> None:
    async def scenario():
        store = store_factory()
        await store.init()
        await store.upsert(
            [
                _record("a.md", 0, [0.5, math.sqrt(0.75), 0.0]),
                _record("b.md", 0, [0.0, 1.0, 0.0]),
                _record("c.md", 0, [0.9, 0.1, 0.0]),
            ]
        )
        ranked = await store.search([1.0, 0.0, 0.0], top_k=2, min_score=0.0)
        strict = await store.search([0.0, 0.0, 1.0], top_k=5, min_score=0.9)
        await store.close()
        return ranked, strict

    ranked, strict = asyncio.run(scenario())
    assert [hit.record.document_path for hit in ranked] == ["c.md", "a.md"]
    assert ranked[0].score >= ranked[1].score
    assert ranked[1].score == pytest.approx(0.5, abs=1e-5)
    assert ranked[1].distance == pytest.approx(1.0 - ranked[1].score)
    assert strict == []


def test_high_threshold_returns_empty_list(store_factory) -> None:
    async def scenario():
        store = store_factory()
        await store.init()
        await store.upsert([_record("a.md", 0, [0.5, math.sqrt(0.75), 0.0]), _record("b.md", 0, [0.0, 1.0, 0.0])])
        hits = await store.search([1.0, 0.0, 0.0], top_k=5, min_score=0.9)
        await store.close()
        return hits

    assert asyncio.run(scenario()) == []


def test_delete_unknown_path_is_noop(store_factory) -> None:
    async def scenario():
        store = store_factory()
        await store.init()
        await store.upsert([_record("a.md", 0, [1.0, 0.0, 0.0])])
        await store.delete("missing.md")
        await store.delete("a.md")
        await store.delete("a.md")
        stats = await store.stats()
        await store.close()
        return stats

    assert asyncio.run(scenario()).total_records == 0


def test_uninitialized_or_empty_store_searches_empty(store_factory) -> None:
    async def scenario():
        fresh = store_factory()
        before = await fresh.search([1.0, 0.0, 0.0])
        await fresh.init()
        after = await fresh.search([1.0, 0.0, 0.0])
        await fresh.close()
        return before, after

    assert asyncio.run(scenario()) == ([], [])


def test_metadata_round_trips(store_factory) -> None:
    async def scenario():
        store = store_factory()
        await store.init()
        await store.upsert([_record("a.md", 0, [0.25, 0.5, 0.75])])
        hits = await store.search([0.25, 0.5, 0.75], top_k=1)
        await store.close()
        return hits[0].record

    record = asyncio.run(scenario())
    assert record.metadata == PassageMetadata(title="a.md", headings=["# H"], tags=["t"], file_size=10, file_mtime=5)
    assert record.vector == pytest.approx([0.25, 0.5, 0.75])


def test_memory_snapshot_survives_restart(tmp_path: Path) -> None:
    snapshot = tmp_path / "snapshot.json"

    async def scenario():
        first = MemoryVectorStore(snapshot)
        await first.init()
        await first.upsert([_record("a.md", 0, [1.0, 0.0, 0.0]), _record("a.md", 1, [0.0, 1.0, 0.0])])
        second = MemoryVectorStore(snapshot)
        await second.init()
        return await second.stats()

    stats = asyncio.run(scenario())
    assert stats.total_records == 2
    assert stats.size_bytes > 0


def test_corrupt_snapshot_is_unavailable(tmp_path: Path) -> None:
    snapshot = tmp_path / "snapshot.json"
    snapshot.write_text("{not json")

    with pytest.raises(StoreUnavailable):
        asyncio.run(MemoryVectorStore(snapshot).init())


def test_open_vector_store_falls_back_to_memory(tmp_path: Path) -> None:
    blocked = tmp_path / "blocked"
    blocked.mkdir()
    settings = Settings(db_path=blocked, snapshot_path=None)

    store = asyncio.run(open_vector_store(settings, dimension=3))
    assert isinstance(store, MemoryVectorStore)


def test_open_vector_store_prefers_sqlite(tmp_path: Path) -> None:
    settings = Settings(db_path=tmp_path / "vectors.db", snapshot_path=None)

    async def scenario():
        store = await open_vector_store(settings, dimension=3)
        await store.close()
        return store

    assert isinstance(asyncio.run(scenario()), SQLiteVectorStore)


def test_cosine_similarity_edge_cases() -> None:
    assert cosine_similarity([1.0, 0.0], [1.0, 0.0]) == pytest.approx(1.0)
    assert cosine_similarity([0.0, 0.0], [1.0, 0.0]) == 0.0
    with pytest.raises(ValueError):
        cosine_similarity([1.0], [1.0, 0.0])


def test_sqlite_stats_degrade_to_zero_on_backend_error(tmp_path: Path) -> None:
    async def scenario():
        store = SQLiteVectorStore(tmp_path / "vectors.db", dimension=3)
        await store.init()
        await store.upsert([_record("a.md", 0, [1.0, 0.0, 0.0])])
        store.db.executescript("DROP TABLE vectors;")
        stats = await store.stats()
        await store.close()
        return stats

    assert asyncio.run(scenario()) == IndexStats()


def test_memory_stats_degrade_to_zero_when_snapshot_unreadable(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    store = MemoryVectorStore(tmp_path / "snapshot.json", dimension=3)

    def unreadable() -> int:
        raise PermissionError("snapshot not readable")

    async def scenario():
        await store.init()
        await store.upsert([_record("a.md", 0, [1.0, 0.0, 0.0])])
        monkeypatch.setattr(store, "_snapshot_size", unreadable)
        return await store.stats()

    assert asyncio.run(scenario()) == IndexStats()
