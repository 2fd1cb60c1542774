"""Embedding worker pool.

Each :class:`EmbeddingWorker` runs on its own thread with an independently
loaded embedder. The pool keeps a FIFO of pending embed tasks and a list of
idle workers; dispatch pairs the head of one with the head of the other
whenever both are non-empty, so a slow worker never blocks the others.
"""

from __future__ import annotations

import asyncio
import functools
import os
import queue
import threading
from collections import deque
from concurrent.futures import Future
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Mapping, Protocol, Sequence

from vault_index.core.errors import EmbeddingComputeError, EmbeddingLoadError, PoolTerminated
from vault_index.core.logging import get_logger, log_context
from vault_index.ingest.embeddings import Embedder
from vault_index.ingest.protocol import (
    EmbedBatchRequest,
    EmbedRequest,
    ErrorResponse,
    InitRequest,
    ProgressResponse,
    ResultResponse,
    UnloadRequest,
    WorkerRequest,
    WorkerResponse,
    next_request_id,
)

logger = get_logger(__name__)

ProgressListener = Callable[[float], None]


class AsyncEmbedder(Protocol):
    async def embed(self, text: str) -> list[float]: ...

    async def embed_batch(self, texts: Sequence[str]) -> list[list[float]]: ...


class PoolState(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    TERMINATED = "terminated"


def default_worker_count() -> int:
    return min(os.cpu_count() or 2, 4)


class EmbeddingWorker:
    """One embedding thread with an inbox and a pending-request map."""

    def __init__(
        self,
        name: str,
        embedder: Embedder,
        on_progress: Callable[[ProgressResponse], None] | None = None,
    ) -> None:
        self.name = name
        self._embedder = embedder
        self._on_progress = on_progress
        self._inbox: queue.Queue[WorkerRequest | None] = queue.Queue()
        self._pending: dict[str, Future[WorkerResponse]] = {}
        self._lock = threading.Lock()
        self._terminated = False
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)
        self._thread.start()

    @property
    def terminated(self) -> bool:
        return self._terminated

    def submit(self, request: WorkerRequest) -> Future[WorkerResponse]:
        future: Future[WorkerResponse] = Future()
        with self._lock:
            if self._terminated:
                future.set_exception(PoolTerminated(f"Worker {self.name} terminated"))
                return future
            self._pending[request.id] = future
        self._inbox.put(request)
        return future

    def terminate(self) -> None:
        """Stop the worker and reject everything still pending."""
        with self._lock:
            if self._terminated:
                return
            self._terminated = True
            pending = list(self._pending.values())
            self._pending.clear()
        for future in pending:
            if not future.done():
                future.set_exception(PoolTerminated(f"Worker {self.name} terminated"))
        self._inbox.put(None)

    def join(self, timeout: float | None = None) -> None:
        self._thread.join(timeout)

    def _run(self) -> None:
        while True:
            request = self._inbox.get()
            if request is None or self._terminated:
                break
            self._post(self._handle(request))
        self._embedder.unload()

    def _handle(self, request: WorkerRequest) -> WorkerResponse:
        try:
            if isinstance(request, InitRequest):
                self._embedder.load(
                    request.model_id,
                    request.options,
                    on_progress=functools.partial(self._report_progress, request.id),
                )
                return ResultResponse(id=request.id, payload=self._embedder.dimension)
            if isinstance(request, EmbedRequest):
                return ResultResponse(id=request.id, payload=self._embedder.embed(request.text))
            if isinstance(request, EmbedBatchRequest):
                return ResultResponse(id=request.id, payload=self._embedder.embed_batch(list(request.texts)))
            if isinstance(request, UnloadRequest):
                self._embedder.unload()
                return ResultResponse(id=request.id, payload=None)
            return ErrorResponse(id=request.id, error=f"Unsupported request {type(request).__name__}")
        except Exception as exc:
            logger.debug("Request %s failed: %s", request.id, exc, extra=log_context(worker=self.name))
            return ErrorResponse(id=request.id, error=str(exc), kind=type(exc).__name__)

    def _report_progress(self, request_id: str, percent: float) -> None:
        self._post(ProgressResponse(id=request_id, percent=percent))

    def _post(self, response: WorkerResponse) -> None:
        if isinstance(response, ProgressResponse):
            if self._on_progress is not None:
                try:
                    self._on_progress(response)
                except Exception:
                    logger.exception("Progress listener failed", extra=log_context(worker=self.name))
            return
        with self._lock:
            future = self._pending.pop(response.id, None)
        if future is not None and not future.done():
            future.set_result(response)


@dataclass(slots=True)
class _Task:
    request: EmbedRequest
    future: Future[list[float]]


class EmbeddingWorkerPool:
    """Pull-based load balancer exposing an async embed/embed_batch interface."""

    def __init__(
        self,
        embedder_factory: Callable[[], Embedder],
        max_workers: int | None = None,
    ) -> None:
        self._factory = embedder_factory
        self.max_workers = max_workers or default_worker_count()
        self.model_id: str | None = None
        self._state = PoolState.UNINITIALIZED
        self._dimension = 0
        self._workers: list[EmbeddingWorker] = []
        self._idle: deque[EmbeddingWorker] = deque()
        self._tasks: deque[_Task] = deque()
        self._lock = threading.Lock()

    @property
    def state(self) -> PoolState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state is PoolState.READY

    @property
    def dimension(self) -> int:
        return self._dimension

    @property
    def size(self) -> int:
        return len(self._workers)

    async def init(
        self,
        model_id: str,
        options: Mapping[str, Any] | None = None,
        on_progress: ProgressListener | None = None,
    ) -> None:
        """Load the model into every worker; ready only once all succeed."""
        with self._lock:
            if self._state is PoolState.READY:
                return
            if self._state is PoolState.TERMINATED:
                raise PoolTerminated("Embedding pool terminated")
            if self._state is PoolState.INITIALIZING:
                raise EmbeddingLoadError("Embedding pool is already initializing")
            self._state = PoolState.INITIALIZING
            workers = [
                EmbeddingWorker(
                    f"embed-worker-{position}",
                    self._factory(),
                    on_progress=_progress_adapter(on_progress) if position == 0 else None,
                )
                for position in range(self.max_workers)
            ]
            self._workers = workers

        logger.info("Loading model into %s embedding workers", len(workers), extra=log_context(model=model_id))
        payload = dict(options or {})
        futures = [worker.submit(InitRequest(id=next_request_id("init"), model_id=model_id, options=payload)) for worker in workers]
        responses = await asyncio.gather(*(asyncio.wrap_future(future) for future in futures))

        failures = [response for response in responses if isinstance(response, ErrorResponse)]
        if failures:
            error = EmbeddingLoadError(
                f"{len(failures)} of {len(workers)} workers failed to load {model_id}: {failures[0].error}"
            )
            self._discard_workers(workers, error)
            raise error

        with self._lock:
            if self._state is PoolState.TERMINATED:
                raise PoolTerminated("Embedding pool terminated during initialization")
            self._idle = deque(workers)
            self._dimension = int(responses[0].payload or 0)
            self.model_id = model_id
            self._state = PoolState.READY
        logger.info("Embedding pool ready: %s workers, dim=%s", len(workers), self._dimension)
        self._dispatch()

    async def embed(self, text: str) -> list[float]:
        return await asyncio.wrap_future(self._submit(text))

    async def embed_batch(self, texts: Sequence[str]) -> list[list[float]]:
        """Element-wise parallel embed across the workers."""
        if not texts:
            return []
        futures = [asyncio.wrap_future(self._submit(text)) for text in texts]
        return list(await asyncio.gather(*futures))

    def terminate(self) -> None:
        """Stop all workers; queued and in-flight tasks fail with PoolTerminated."""
        with self._lock:
            if self._state is PoolState.TERMINATED:
                return
            self._state = PoolState.TERMINATED
            tasks = list(self._tasks)
            self._tasks.clear()
            self._idle.clear()
            workers = list(self._workers)
            self._workers = []
        for task in tasks:
            if task.future.set_running_or_notify_cancel():
                task.future.set_exception(PoolTerminated("Embedding pool terminated"))
        for worker in workers:
            worker.terminate()
        logger.info("Embedding pool terminated (%s queued tasks rejected)", len(tasks))

    def _submit(self, text: str) -> Future[list[float]]:
        future: Future[list[float]] = Future()
        with self._lock:
            if self._state is PoolState.TERMINATED:
                raise PoolTerminated("Embedding pool terminated")
            if self._state is PoolState.UNINITIALIZED:
                raise EmbeddingComputeError("Embedding pool is not initialized")
            self._tasks.append(_Task(request=EmbedRequest(id=next_request_id("embed"), text=text), future=future))
        self._dispatch()
        return future

    def _dispatch(self) -> None:
        # Critical section: task completion and submission both trigger dispatch.
        assignments: list[tuple[EmbeddingWorker, _Task]] = []
        with self._lock:
            if self._state is not PoolState.READY:
                return
            while self._tasks and self._idle:
                task = self._tasks.popleft()
                if not task.future.set_running_or_notify_cancel():
                    continue
                assignments.append((self._idle.popleft(), task))
        for worker, task in assignments:
            worker_future = worker.submit(task.request)
            worker_future.add_done_callback(functools.partial(self._on_task_done, worker, task))

    def _on_task_done(self, worker: EmbeddingWorker, task: _Task, worker_future: Future[WorkerResponse]) -> None:
        try:
            response = worker_future.result()
        except PoolTerminated as exc:
            task.future.set_exception(exc)
        else:
            if isinstance(response, ErrorResponse):
                task.future.set_exception(EmbeddingComputeError(response.error))
            else:
                task.future.set_result(response.payload)
        with self._lock:
            if self._state is PoolState.READY and not worker.terminated:
                self._idle.append(worker)
        self._dispatch()

    def _discard_workers(self, workers: Sequence[EmbeddingWorker], error: EmbeddingLoadError) -> None:
        """Drop workers after a failed init and fail tasks queued while loading."""
        for worker in workers:
            worker.terminate()
        with self._lock:
            if self._state is not PoolState.TERMINATED:
                self._state = PoolState.UNINITIALIZED
            self._workers = []
            tasks = list(self._tasks)
            self._tasks.clear()
        for task in tasks:
            if task.future.set_running_or_notify_cancel():
                task.future.set_exception(error)


def _progress_adapter(listener: ProgressListener | None) -> Callable[[ProgressResponse], None] | None:
    if listener is None:
        return None

    def forward(response: ProgressResponse) -> None:
        listener(response.percent)

    return forward


__all__ = [
    "AsyncEmbedder",
    "EmbeddingWorker",
    "EmbeddingWorkerPool",
    "PoolState",
    "default_worker_count",
]
