"""Tests for filesystem corpus access."""

import asyncio
from pathlib import Path

from vault_index.ingest.corpus import FileSystemCorpus


def _write(root: Path, relative: str, text: str) -> Path:
    path = root / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def test_lists_markdown_and_skips_excluded(vault_dir: Path) -> None:
    _write(vault_dir, "notes/a.md", "# A")
    _write(vault_dir, "b.md", "# B")
    _write(vault_dir, "c.txt", "plain")
    _write(vault_dir, ".obsidian/workspace.md", "internal")
    corpus = FileSystemCorpus(vault_dir, exclude_paths=[".obsidian/"])

    assert asyncio.run(corpus.list_documents()) == ["b.md", "notes/a.md"]
    assert corpus.is_indexable("notes/a.md")
    assert not corpus.is_indexable(".obsidian/workspace.md")
    assert not corpus.is_indexable("c.txt")


def test_read_extracts_title_tags_and_stats(vault_dir: Path, sample_markdown: str) -> None:
    path = _write(vault_dir, "notes/sample.md", sample_markdown)
    corpus = FileSystemCorpus(vault_dir)

    document = asyncio.run(corpus.read("notes/sample.md"))
    assert document is not None
    assert document.path == "notes/sample.md"
    assert document.title == "Sample Note"
    assert document.tags == ["alpha", "beta", "gamma"]
    assert document.size == len(sample_markdown.encode("utf-8"))
    assert document.mtime == int(path.stat().st_mtime * 1000)
    assert document.text == sample_markdown


def test_title_falls_back_to_stem(vault_dir: Path) -> None:
    _write(vault_dir, "plain note.md", "no front matter here")
    document = asyncio.run(FileSystemCorpus(vault_dir).read("plain note.md"))
    assert document.title == "plain note"
    assert document.tags == []


def test_missing_document_reads_as_none(vault_dir: Path) -> None:
    assert asyncio.run(FileSystemCorpus(vault_dir).read("gone.md")) is None


def test_missing_root_lists_nothing(tmp_path: Path) -> None:
    assert asyncio.run(FileSystemCorpus(tmp_path / "absent").list_documents()) == []
