"""Filesystem watcher that feeds debounced change events to the scheduler."""

from __future__ import annotations

import asyncio
import inspect
import threading
from pathlib import Path
from typing import Any, Protocol

from watchdog.events import FileSystemEvent, PatternMatchingEventHandler
from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver

from vault_index.core.logging import get_logger
from vault_index.ingest.corpus import FileSystemCorpus

logger = get_logger(__name__)


class ChangeListener(Protocol):
    def on_changed(self, path: str) -> Any: ...

    def on_deleted(self, path: str) -> Any: ...

    def on_renamed(self, old_path: str, new_path: str) -> Any: ...


class VaultEventHandler(PatternMatchingEventHandler):
    """Forward watchdog events from the observer thread to the notifier."""

    def __init__(self, notifier: "ChangeNotifier") -> None:
        super().__init__(
            patterns=[notifier.corpus.include_glob],
            ignore_directories=True,
            case_sensitive=False,
        )
        self.notifier = notifier

    def on_created(self, event: FileSystemEvent) -> None:  # pragma: no cover - requires filesystem
        self.notifier.post("changed", _as_str(event.src_path))

    def on_modified(self, event: FileSystemEvent) -> None:  # pragma: no cover - requires filesystem
        self.notifier.post("changed", _as_str(event.src_path))

    def on_moved(self, event: FileSystemEvent) -> None:  # pragma: no cover - requires filesystem
        self.notifier.post("moved", _as_str(event.src_path), _as_str(event.dest_path))

    def on_deleted(self, event: FileSystemEvent) -> None:  # pragma: no cover - requires filesystem
        self.notifier.post("deleted", _as_str(event.src_path))


class ChangeNotifier:
    """Debounces per-path edits and reports deletes and renames immediately.

    Event handling methods (``changed``, ``deleted``, ``moved``) must run on
    the event loop; the watchdog thread reaches them through :meth:`post`.
    """

    def __init__(
        self,
        corpus: FileSystemCorpus,
        listener: ChangeListener,
        *,
        debounce_seconds: float = 0.5,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self.corpus = corpus
        self.listener = listener
        self.debounce_seconds = debounce_seconds
        self._loop = loop
        self._timers: dict[str, asyncio.TimerHandle] = {}
        self._tasks: set[asyncio.Task[Any]] = set()
        self._observer: BaseObserver | None = None
        self._lock = threading.Lock()

    @property
    def pending(self) -> list[str]:
        return sorted(self._timers)

    def start(self) -> None:
        with self._lock:
            if self._observer is not None:
                return
            if self._loop is None:
                self._loop = asyncio.get_running_loop()
            observer = Observer()
            observer.schedule(VaultEventHandler(self), str(self.corpus.root), recursive=True)
            observer.start()
            self._observer = observer
        logger.info("Watching %s for changes", self.corpus.root)

    def stop(self) -> None:
        with self._lock:
            observer, self._observer = self._observer, None
        if observer is not None:
            observer.stop()
            observer.join(timeout=5)
        for handle in self._timers.values():
            handle.cancel()
        self._timers.clear()

    def post(self, kind: str, *paths: str) -> None:
        """Thread-safe entry point used by the watchdog handler."""
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        handler = {"changed": self.changed, "deleted": self.deleted, "moved": self.moved}[kind]
        relative = [self._relative(path) for path in paths]
        loop.call_soon_threadsafe(handler, *relative)

    def changed(self, path: str | None) -> None:
        if path is None or not self.corpus.is_indexable(path):
            return
        loop = self._require_loop()
        existing = self._timers.pop(path, None)
        if existing is not None:
            existing.cancel()
        self._timers[path] = loop.call_later(self.debounce_seconds, self._fire_changed, path)

    def deleted(self, path: str | None) -> None:
        if path is None or not self.corpus.is_indexable(path):
            return
        pending = self._timers.pop(path, None)
        if pending is not None:
            pending.cancel()
        self._invoke(self.listener.on_deleted, path)

    def moved(self, old_path: str | None, new_path: str | None) -> None:
        old_ok = old_path is not None and self.corpus.is_indexable(old_path)
        new_ok = new_path is not None and self.corpus.is_indexable(new_path)
        if old_ok and new_ok:
            pending = self._timers.pop(old_path, None)
            if pending is not None:
                pending.cancel()
            self._invoke(self.listener.on_renamed, old_path, new_path)
        elif old_ok:
            self.deleted(old_path)
        elif new_ok:
            self.changed(new_path)

    def _fire_changed(self, path: str) -> None:
        self._timers.pop(path, None)
        self._invoke(self.listener.on_changed, path)

    def _invoke(self, callback: Any, *args: str) -> None:
        try:
            result = callback(*args)
        except Exception:
            logger.exception("Change listener failed for %s", args)
            return
        if inspect.isawaitable(result):
            task = self._require_loop().create_task(result)
            self._tasks.add(task)
            task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Change listener task failed: %s", task.exception())

    def _require_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def _relative(self, path: str) -> str | None:
        return self.corpus.relative_path(Path(path))


def _as_str(path: str | bytes) -> str:
    return path.decode() if isinstance(path, bytes) else path


__all__ = ["ChangeListener", "ChangeNotifier", "VaultEventHandler"]
