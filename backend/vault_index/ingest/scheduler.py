"""Incremental index scheduler.

Paths are queued with de-duplication and drained one at a time: read,
chunk, embed, upsert. Only one pass per path can be in flight, which keeps
the store's delete-then-insert upsert from interleaving with itself.
"""

from __future__ import annotations

import asyncio
import time
from collections import deque
from typing import Any, Callable

from vault_index.core.errors import ChunkingError, DocumentIndexError
from vault_index.core.logging import get_logger, log_context
from vault_index.core.metrics import DOCUMENTS_INDEXED, INDEX_DURATION, INDEX_SIZE, QUEUE_LENGTH
from vault_index.core.signals import IndexSignals
from vault_index.ingest.chunker import MarkdownChunker
from vault_index.ingest.corpus import DocumentSource
from vault_index.ingest.types import SchedulerStatus, VectorRecord
from vault_index.ingest.worker_pool import AsyncEmbedder
from vault_index.retrieval.vector_store import VectorStore
from vault_index.utils.time import utc_now_iso

logger = get_logger(__name__)


class IndexScheduler:
    """Serial drain loop over a de-duplicated queue of document paths."""

    def __init__(
        self,
        corpus: DocumentSource,
        store: VectorStore,
        embedder: AsyncEmbedder,
        chunker: MarkdownChunker | None = None,
        *,
        signals: IndexSignals | None = None,
        yield_seconds: float = 0.03,
        model_ready: bool = False,
    ) -> None:
        self.corpus = corpus
        self.store = store
        self.embedder = embedder
        self.chunker = chunker or MarkdownChunker()
        self.signals = signals or IndexSignals()
        self.yield_seconds = yield_seconds
        self._model_ready = model_ready
        self._queue: deque[str] = deque()
        self._queued: set[str] = set()
        self._busy = False
        self._drain_task: asyncio.Task[None] | None = None

    @property
    def is_busy(self) -> bool:
        return self._busy

    @property
    def model_ready(self) -> bool:
        return self._model_ready

    @property
    def queue_length(self) -> int:
        return len(self._queue)

    def status(self) -> SchedulerStatus:
        return SchedulerStatus(is_busy=self._busy, queue_length=len(self._queue), model_ready=self._model_ready)

    def on_progress(self, handler: Callable[[int, int], None]) -> Callable[[], None]:
        return self.signals.on_progress(handler)

    def on_complete(self, handler: Callable[[], None]) -> Callable[[], None]:
        return self.signals.on_complete(handler)

    def on_error(self, handler: Callable[[DocumentIndexError], None]) -> Callable[[], None]:
        return self.signals.on_error(handler)

    def enqueue(self, path: str) -> None:
        """Add ``path`` unless already queued, then start a drain if possible."""
        self._push(path)
        self._kick()

    def on_model_ready(self, model_id: str | None = None) -> None:
        self._model_ready = True
        logger.info("Model ready, resuming index queue", extra=log_context(model=model_id))
        self._kick()

    async def notify_deleted(self, path: str) -> None:
        """Remove ``path`` from the index immediately; failures are only logged."""
        self._discard(path)
        try:
            await self.store.delete(path)
        except Exception as exc:
            logger.error("Failed to delete index: %s", exc, extra=log_context(path=path))
            return
        logger.info("Removed document from index", extra=log_context(path=path))
        DOCUMENTS_INDEXED.labels(status="deleted").inc()

    async def notify_renamed(self, old_path: str, new_path: str) -> None:
        self._discard(old_path)
        try:
            await self.store.delete(old_path)
        except Exception as exc:
            logger.error(
                "Failed to handle rename to %s: %s", new_path, exc, extra=log_context(path=old_path, new_path=new_path)
            )
            return
        self.enqueue(new_path)

    # ChangeListener
    def on_changed(self, path: str) -> None:
        self.enqueue(path)

    async def on_deleted(self, path: str) -> None:
        await self.notify_deleted(path)

    async def on_renamed(self, old_path: str, new_path: str) -> None:
        await self.notify_renamed(old_path, new_path)

    async def full_sync(self) -> int:
        """Queue every indexable document and drain; returns the document count."""
        logger.info("Triggering full vault index scan")
        paths = await self.corpus.list_documents()
        for path in paths:
            self._push(path)
        total = len(paths)
        self.signals.emit_progress(0, total)
        await self.process_queue(total_for_progress=total)
        await self.wait_idle()
        return total

    async def process_queue(self, total_for_progress: int | None = None) -> None:
        if self._busy or not self._queue:
            return
        if not self._model_ready:
            logger.warning("Model not ready, indexing queue paused (%s queued)", len(self._queue))
            return

        self._busy = True
        processed = 0
        total = total_for_progress or len(self._queue)
        try:
            while self._queue:
                path = self._queue.popleft()
                self._queued.discard(path)
                QUEUE_LENGTH.set(len(self._queue))
                await self._index_one(path)
                processed += 1
                self.signals.emit_progress(processed, max(total, processed))
                await asyncio.sleep(self.yield_seconds)
        finally:
            self._busy = False
            QUEUE_LENGTH.set(len(self._queue))
            logger.info("Index queue cleared, processed %s documents", processed)
            self.signals.emit_complete()

    async def wait_idle(self) -> None:
        """Wait for a drain started by :meth:`enqueue` to finish."""
        while self._drain_task is not None and not self._drain_task.done():
            await asyncio.shield(self._drain_task)

    async def _index_one(self, path: str) -> None:
        start_time = time.perf_counter()
        try:
            status = await self.index_document(path)
        except Exception as exc:
            DOCUMENTS_INDEXED.labels(status="failed").inc()
            logger.error("Failed to index document: %s", exc, extra=log_context(path=path))
            self.signals.emit_error(DocumentIndexError(path, exc))
            return
        DOCUMENTS_INDEXED.labels(status=status).inc()
        INDEX_DURATION.observe(time.perf_counter() - start_time)

    async def index_document(self, path: str) -> str:
        """Run one end-to-end pass for ``path``; returns ``indexed`` or ``deleted``."""
        document = await self.corpus.read(path)
        if document is None:
            logger.info("Document no longer exists, removing from index", extra=log_context(path=path))
            await self.store.delete(path)
            return "deleted"

        try:
            passages = self.chunker.chunk(document.text, document.path, document.title)
        except ChunkingError as exc:
            logger.warning("Chunking failed, treating as empty: %s", exc, extra=log_context(path=path))
            passages = []
        if not passages:
            await self.store.delete(path)
            return "deleted"

        logger.debug("Embedding %s passages", len(passages), extra=log_context(path=path))
        vectors = await self.embedder.embed_batch([passage.text for passage in passages])
        updated_at = utc_now_iso()
        records = [
            VectorRecord.from_passage(
                passage,
                vector,
                document_path=path,
                updated_at=updated_at,
                tags=document.tags,
                file_size=document.size,
                file_mtime=document.mtime,
            )
            for passage, vector in zip(passages, vectors)
        ]
        await self.store.upsert(records)
        await self._refresh_size()
        return "indexed"

    async def _refresh_size(self) -> None:
        stats = await self.store.stats()
        INDEX_SIZE.set(stats.total_records)

    def _push(self, path: str) -> None:
        if path in self._queued:
            return
        self._queue.append(path)
        self._queued.add(path)
        QUEUE_LENGTH.set(len(self._queue))

    def _discard(self, path: str) -> None:
        if path in self._queued:
            self._queued.discard(path)
            self._queue.remove(path)
            QUEUE_LENGTH.set(len(self._queue))

    def _kick(self) -> None:
        if self._busy or not self._model_ready or not self._queue:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        if self._drain_task is not None and not self._drain_task.done():
            return
        self._drain_task = loop.create_task(self.process_queue())
        self._drain_task.add_done_callback(_log_drain_failure)


def _log_drain_failure(task: "asyncio.Task[Any]") -> None:
    if not task.cancelled() and task.exception() is not None:
        logger.error("Index drain failed: %s", task.exception())


__all__ = ["IndexScheduler"]
