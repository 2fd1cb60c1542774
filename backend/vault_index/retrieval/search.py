"""Semantic search orchestration."""

from __future__ import annotations

import time
from typing import Sequence

from vault_index.core.config import Settings
from vault_index.core.logging import get_logger
from vault_index.core.metrics import REQUEST_COUNT, REQUEST_LATENCY
from vault_index.ingest.model_manager import ModelManager
from vault_index.ingest.types import Highlight, SearchHit
from vault_index.ingest.worker_pool import AsyncEmbedder
from vault_index.retrieval.vector_store import VectorStore
from vault_index.utils.text import find_positions, query_terms

logger = get_logger(__name__)


class SearchService:
    """Embeds a query with the indexing model and ranks stored passages."""

    def __init__(
        self,
        store: VectorStore,
        embedder: AsyncEmbedder,
        settings: Settings,
        model_manager: ModelManager | None = None,
    ) -> None:
        self.store = store
        self.embedder = embedder
        self.settings = settings
        self.model_manager = model_manager

    async def search(
        self,
        query: str,
        top_k: int | None = None,
        min_score: float | None = None,
        include_highlights: bool = True,
    ) -> list[SearchHit]:
        if not query or not query.strip():
            return []
        start_time = time.perf_counter()
        await self._ensure_model()
        logger.debug("Vectorizing query %r", query)
        vector = await self.embedder.embed(query)
        hits = await self.search_by_vector(
            vector,
            top_k=top_k or self.settings.top_k,
            min_score=self.settings.min_score if min_score is None else min_score,
        )
        if include_highlights:
            apply_highlights(query, hits)

        REQUEST_LATENCY.labels(endpoint="query", method="POST").observe(time.perf_counter() - start_time)
        REQUEST_COUNT.labels(endpoint="query", method="POST", status="200").inc()
        return hits

    async def search_by_vector(self, vector: Sequence[float], top_k: int = 10, min_score: float = 0.3) -> list[SearchHit]:
        hits = await self.store.search(vector, top_k, min_score)
        return sorted(hits, key=lambda hit: hit.score, reverse=True)

    async def _ensure_model(self) -> None:
        if self.model_manager is None:
            return
        model_id = self.settings.embedding_model
        if not self.model_manager.is_ready(model_id):
            logger.warning("Model %s not ready, loading before search", model_id)
            await self.model_manager.prepare(model_id)


def apply_highlights(query: str, hits: Sequence[SearchHit]) -> None:
    """Attach literal keyword matches to each hit; terms shorter than two chars are ignored."""
    terms = query_terms(query)
    if not terms:
        return
    for hit in hits:
        highlights: list[Highlight] = []
        for term in terms:
            positions = find_positions(hit.record.text, term)
            if positions:
                highlights.append(Highlight(text=term, positions=positions))
        hit.highlights = highlights


__all__ = ["SearchService", "apply_highlights"]
