"""Typed observer registration for indexing progress signals."""

from __future__ import annotations

import threading
from typing import Callable, Generic, TypeVar

from vault_index.core.errors import DocumentIndexError
from vault_index.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

ProgressHandler = Callable[[int, int], None]
CompleteHandler = Callable[[], None]
ErrorHandler = Callable[[DocumentIndexError], None]


class Signal(Generic[T]):
    """A single observable channel; handler failures are logged, never raised."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._handlers: list[T] = []
        self._lock = threading.Lock()

    def connect(self, handler: T) -> Callable[[], None]:
        with self._lock:
            self._handlers.append(handler)

        def disconnect() -> None:
            self.disconnect(handler)

        return disconnect

    def disconnect(self, handler: T) -> None:
        with self._lock:
            if handler in self._handlers:
                self._handlers.remove(handler)

    def emit(self, *args: object) -> None:
        with self._lock:
            handlers = list(self._handlers)
        for handler in handlers:
            try:
                handler(*args)  # type: ignore[operator]
            except Exception:
                logger.exception("Handler for signal %s failed", self.name)

    def clear(self) -> None:
        with self._lock:
            self._handlers.clear()


class IndexSignals:
    """Progress ``(processed, total)``, completion and error channels."""

    def __init__(self) -> None:
        self.progress: Signal[ProgressHandler] = Signal("index.progress")
        self.complete: Signal[CompleteHandler] = Signal("index.complete")
        self.error: Signal[ErrorHandler] = Signal("index.error")

    def on_progress(self, handler: ProgressHandler) -> Callable[[], None]:
        return self.progress.connect(handler)

    def on_complete(self, handler: CompleteHandler) -> Callable[[], None]:
        return self.complete.connect(handler)

    def on_error(self, handler: ErrorHandler) -> Callable[[], None]:
        return self.error.connect(handler)

    def emit_progress(self, processed: int, total: int) -> None:
        self.progress.emit(processed, total)

    def emit_complete(self) -> None:
        self.complete.emit()

    def emit_error(self, error: DocumentIndexError) -> None:
        self.error.emit(error)

    def clear(self) -> None:
        self.progress.clear()
        self.complete.clear()
        self.error.clear()


__all__ = ["Signal", "IndexSignals", "ProgressHandler", "CompleteHandler", "ErrorHandler"]
