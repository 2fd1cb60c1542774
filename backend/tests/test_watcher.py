"""Tests for debounced change notification."""

import asyncio
import threading
from pathlib import Path

from vault_index.ingest.corpus import FileSystemCorpus
from vault_index.ingest.watcher import ChangeNotifier


class RecordingListener:
    def __init__(self) -> None:
        self.changed: list[str] = []
        self.deleted: list[str] = []
        self.renamed: list[tuple[str, str]] = []

    def on_changed(self, path: str) -> None:
        self.changed.append(path)

    async def on_deleted(self, path: str) -> None:
        self.deleted.append(path)

    async def on_renamed(self, old_path: str, new_path: str) -> None:
        self.renamed.append((old_path, new_path))


def _notifier(vault_dir: Path, listener: RecordingListener, **kwargs) -> ChangeNotifier:
    corpus = FileSystemCorpus(vault_dir, exclude_paths=["templates"])
    return ChangeNotifier(corpus, listener, debounce_seconds=0.05, loop=asyncio.get_running_loop(), **kwargs)


def test_rapid_changes_are_debounced(vault_dir: Path) -> None:
    listener = RecordingListener()

    async def scenario() -> None:
        notifier = _notifier(vault_dir, listener)
        for _ in range(3):
            notifier.changed("a.md")
            await asyncio.sleep(0.01)
        notifier.changed("b.md")
        assert notifier.pending == ["a.md", "b.md"]
        await asyncio.sleep(0.15)

    asyncio.run(scenario())
    assert sorted(listener.changed) == ["a.md", "b.md"]


def test_delete_cancels_pending_change(vault_dir: Path) -> None:
    listener = RecordingListener()

    async def scenario() -> None:
        notifier = _notifier(vault_dir, listener)
        notifier.changed("a.md")
        notifier.deleted("a.md")
        await asyncio.sleep(0.15)

    asyncio.run(scenario())
    assert listener.changed == []
    assert listener.deleted == ["a.md"]


def test_moves_map_to_rename_delete_or_change(vault_dir: Path) -> None:
    listener = RecordingListener()

    async def scenario() -> None:
        notifier = _notifier(vault_dir, listener)
        notifier.moved("a.md", "b.md")
        notifier.moved("c.md", "c.md.tmp")
        notifier.moved("d.tmp", "d.md")
        await asyncio.sleep(0.15)

    asyncio.run(scenario())
    assert listener.renamed == [("a.md", "b.md")]
    assert listener.deleted == ["c.md"]
    assert listener.changed == ["d.md"]


def test_ignored_paths_are_filtered(vault_dir: Path) -> None:
    listener = RecordingListener()

    async def scenario() -> None:
        notifier = _notifier(vault_dir, listener)
        notifier.changed("image.png")
        notifier.changed("templates/daily.md")
        notifier.deleted("templates/daily.md")
        notifier.changed(None)
        await asyncio.sleep(0.15)

    asyncio.run(scenario())
    assert listener.changed == []
    assert listener.deleted == []


def test_post_marshals_events_from_other_threads(vault_dir: Path) -> None:
    listener = RecordingListener()

    async def scenario() -> None:
        notifier = _notifier(vault_dir, listener)
        thread = threading.Thread(target=notifier.post, args=("deleted", str(vault_dir / "notes" / "x.md")))
        thread.start()
        thread.join()
        await asyncio.sleep(0.05)

    asyncio.run(scenario())
    assert listener.deleted == ["notes/x.md"]
