"""Shared FastAPI dependencies."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from functools import lru_cache, partial

from fastapi import HTTPException

from vault_index.core.config import Settings, get_settings
from vault_index.core.logging import get_logger
from vault_index.ingest.chunker import ChunkingOptions, MarkdownChunker
from vault_index.ingest.corpus import FileSystemCorpus
from vault_index.ingest.embeddings import create_embedder, expected_dimension
from vault_index.ingest.model_manager import ModelManager
from vault_index.ingest.scheduler import IndexScheduler
from vault_index.ingest.watcher import ChangeNotifier
from vault_index.ingest.worker_pool import EmbeddingWorkerPool
from vault_index.retrieval import SearchService, VectorStore, open_vector_store

logger = get_logger(__name__)


@dataclass
class IndexRuntime:
    """Every long-lived component of a running service."""

    settings: Settings
    store: VectorStore
    pool: EmbeddingWorkerPool
    model_manager: ModelManager
    scheduler: IndexScheduler
    search: SearchService
    corpus: FileSystemCorpus
    notifier: ChangeNotifier | None = None
    _model_task: asyncio.Task[None] | None = field(default=None, repr=False)

    def start_model_load(self) -> asyncio.Task[None]:
        """Prepare the embedding model in the background."""
        if self._model_task is None or self._model_task.done():
            self._model_task = asyncio.get_running_loop().create_task(self._load_model())
        return self._model_task

    async def _load_model(self) -> None:
        try:
            await self.model_manager.prepare(self.settings.embedding_model)
        except Exception as exc:
            logger.error("Embedding model unavailable, indexing stays paused: %s", exc)

    async def shutdown(self) -> None:
        if self.notifier is not None:
            self.notifier.stop()
        if self._model_task is not None and not self._model_task.done():
            self._model_task.cancel()
        self.pool.terminate()
        await self.store.close()


_RUNTIME: IndexRuntime | None = None


@lru_cache(maxsize=1)
def get_app_settings() -> Settings:
    return get_settings()


async def build_runtime(settings: Settings) -> IndexRuntime:
    """Wire settings → store → pool → model manager → scheduler → notifier."""
    store = await open_vector_store(settings, expected_dimension(settings))
    pool = EmbeddingWorkerPool(partial(create_embedder, settings), max_workers=settings.worker_count or None)
    model_manager = ModelManager(
        pool,
        max_retries=settings.model_load_retries,
        base_delay=settings.model_retry_base_delay,
        options={"quantized": settings.quantized},
    )
    corpus = FileSystemCorpus(settings.vault_path, settings.include_glob, settings.exclude_paths)
    chunker = MarkdownChunker(
        ChunkingOptions(
            chunk_size=settings.chunk_size,
            overlap=settings.chunk_overlap,
            min_chunk_size=settings.min_chunk_size,
            keep_frontmatter=settings.keep_frontmatter,
        )
    )
    scheduler = IndexScheduler(corpus, store, pool, chunker, yield_seconds=settings.yield_seconds)
    model_manager.on_model_ready(scheduler.on_model_ready)
    search = SearchService(store, pool, settings, model_manager=model_manager)

    notifier = None
    if settings.watch_vault and corpus.root.is_dir():
        notifier = ChangeNotifier(corpus, scheduler, debounce_seconds=settings.debounce_seconds)
        notifier.start()
    return IndexRuntime(
        settings=settings,
        store=store,
        pool=pool,
        model_manager=model_manager,
        scheduler=scheduler,
        search=search,
        corpus=corpus,
        notifier=notifier,
    )


async def start_runtime() -> IndexRuntime:
    global _RUNTIME
    if _RUNTIME is None:
        _RUNTIME = await build_runtime(get_app_settings())
        _RUNTIME.start_model_load()
    return _RUNTIME


async def stop_runtime() -> None:
    global _RUNTIME
    runtime, _RUNTIME = _RUNTIME, None
    if runtime is not None:
        await runtime.shutdown()


def get_runtime() -> IndexRuntime:
    if _RUNTIME is None:
        raise HTTPException(status_code=503, detail="Index runtime not started")
    return _RUNTIME


def get_scheduler() -> IndexScheduler:
    return get_runtime().scheduler


def get_search_service() -> SearchService:
    return get_runtime().search


def get_vector_store() -> VectorStore:
    return get_runtime().store


__all__ = [
    "IndexRuntime",
    "build_runtime",
    "start_runtime",
    "stop_runtime",
    "get_app_settings",
    "get_runtime",
    "get_scheduler",
    "get_search_service",
    "get_vector_store",
]
