"""Tests for the search service."""

import asyncio

from conftest import AsyncHashedEmbedder, FakeCorpus

from vault_index.core.config import Settings
from vault_index.ingest.scheduler import IndexScheduler
from vault_index.ingest.types import PassageMetadata, SearchHit, VectorRecord
from vault_index.retrieval import MemoryVectorStore, SearchService
from vault_index.retrieval.search import apply_highlights


def _service(documents: dict[str, str]) -> tuple[SearchService, IndexScheduler, MemoryVectorStore]:
    store = MemoryVectorStore()
    embedder = AsyncHashedEmbedder(dim=384)
    scheduler = IndexScheduler(FakeCorpus(documents), store, embedder, yield_seconds=0, model_ready=True)
    service = SearchService(store, embedder, Settings(top_k=5, min_score=0.0))
    return service, scheduler, store


def test_blank_query_returns_nothing() -> None:
    service, _, _ = _service({})
    assert asyncio.run(service.search("   ")) == []


def test_search_ranks_matching_document_first() -> None:
    docs = {
        "vectors.md": "# Vectors\n\nretrieval with dense vectors and embeddings",
        "cooking.md": "# Cooking\n\npasta recipes with tomato sauce",
    }
    service, scheduler, store = _service(docs)

    async def scenario():
        await store.init()
        await scheduler.full_sync()
        return await service.search("dense retrieval")

    hits = asyncio.run(scenario())
    assert hits[0].record.document_path == "vectors.md"
    assert [hit.score for hit in hits] == sorted((hit.score for hit in hits), reverse=True)
    words = {highlight.text for highlight in hits[0].highlights}
    assert words == {"dense", "retrieval"}


def test_highlights_can_be_disabled() -> None:
    service, scheduler, store = _service({"a.md": "retrieval notes"})

    async def scenario():
        await store.init()
        await scheduler.full_sync()
        return await service.search("retrieval", include_highlights=False)

    hits = asyncio.run(scenario())
    assert hits and hits[0].highlights is None


def test_apply_highlights_positions() -> None:
    record = VectorRecord(
        id="a::0",
        document_path="a",
        passage_index=0,
        text="Retrieval is fun; retrieval again",
        vector=[1.0],
        metadata=PassageMetadata(title="a"),
        updated_at="now",
    )
    hit = SearchHit(record=record, score=1.0, distance=0.0)
    apply_highlights("retrieval a", [hit])
    assert len(hit.highlights) == 1
    assert hit.highlights[0].text == "retrieval"
    assert hit.highlights[0].positions == [(0, 9), (18, 27)]
