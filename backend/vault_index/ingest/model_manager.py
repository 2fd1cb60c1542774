"""Embedding model preparation with bounded retries."""

from __future__ import annotations

import asyncio
import functools
from dataclasses import dataclass
from typing import Any, Callable, Literal, Mapping

from vault_index.core.errors import EmbeddingLoadError, PoolTerminated
from vault_index.core.logging import get_logger
from vault_index.core.signals import Signal
from vault_index.ingest.worker_pool import EmbeddingWorkerPool, ProgressListener

logger = get_logger(__name__)

ModelReadyHandler = Callable[[str], None]


@dataclass(slots=True)
class ModelStatus:
    model_id: str
    status: Literal["loading", "ready", "error"] = "loading"
    progress: float = 0.0
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "model_id": self.model_id,
            "status": self.status,
            "progress": self.progress,
            "error": self.error,
        }


class ModelManager:
    """Loads a model into the worker pool and announces readiness."""

    def __init__(
        self,
        pool: EmbeddingWorkerPool,
        *,
        max_retries: int = 3,
        base_delay: float = 1.0,
        options: Mapping[str, Any] | None = None,
    ) -> None:
        self.pool = pool
        self.max_retries = max(1, max_retries)
        self.base_delay = base_delay
        self.options = dict(options or {})
        self._statuses: dict[str, ModelStatus] = {}
        self._loads: dict[str, asyncio.Task[None]] = {}
        self._ready = Signal[ModelReadyHandler]("model.ready")

    def on_model_ready(self, handler: ModelReadyHandler) -> Callable[[], None]:
        return self._ready.connect(handler)

    def is_ready(self, model_id: str) -> bool:
        status = self._statuses.get(model_id)
        return status is not None and status.status == "ready"

    def get_status(self, model_id: str) -> ModelStatus | None:
        return self._statuses.get(model_id)

    async def prepare(self, model_id: str, on_progress: ProgressListener | None = None) -> None:
        """Initialise the pool, retrying with exponential backoff.

        Concurrent callers for the same model share one in-flight load.
        Raises :class:`EmbeddingLoadError` once every attempt has failed.
        """
        if self.is_ready(model_id):
            return
        load = self._loads.get(model_id)
        if load is None or load.done():
            load = asyncio.get_running_loop().create_task(self._load(model_id, on_progress))
            load.add_done_callback(functools.partial(self._load_finished, model_id))
            self._loads[model_id] = load
        await asyncio.shield(load)

    def _load_finished(self, model_id: str, load: "asyncio.Task[None]") -> None:
        if self._loads.get(model_id) is load:
            del self._loads[model_id]
        if not load.cancelled():
            # Every waiter may have been cancelled.
            load.exception()

    async def _load(self, model_id: str, on_progress: ProgressListener | None) -> None:
        status = ModelStatus(model_id=model_id)
        self._statuses[model_id] = status

        def track(percent: float) -> None:
            status.progress = percent
            if on_progress is not None:
                on_progress(percent)

        last_error: Exception | None = None
        for attempt in range(1, self.max_retries + 1):
            try:
                await self.pool.init(model_id, self.options, on_progress=track)
            except PoolTerminated:
                status.status = "error"
                status.error = "Embedding pool terminated"
                raise
            except EmbeddingLoadError as exc:
                last_error = exc
                if attempt < self.max_retries:
                    delay = self.base_delay * 2 ** (attempt - 1)
                    logger.warning(
                        "Model %s failed to load, retrying in %.1fs (%s/%s): %s",
                        model_id,
                        delay,
                        attempt,
                        self.max_retries,
                        exc,
                    )
                    await asyncio.sleep(delay)
                continue
            status.status = "ready"
            status.progress = 100.0
            status.error = None
            logger.info("Model %s ready", model_id)
            self._ready.emit(model_id)
            return

        message = f"Model {model_id} failed to load after {self.max_retries} attempts: {last_error}"
        status.status = "error"
        status.progress = 0.0
        status.error = message
        logger.error(message)
        raise EmbeddingLoadError(message) from last_error


__all__ = ["ModelManager", "ModelStatus"]
