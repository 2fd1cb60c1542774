"""Test fixtures for Vault Index."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Sequence

import pytest

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from vault_index.ingest.embeddings import HashedEmbedder  # noqa: E402
from vault_index.ingest.types import Document, IndexStats, SearchHit, VectorRecord  # noqa: E402
from vault_index.retrieval.vector_store import VectorStore  # noqa: E402


@pytest.fixture(autouse=True)
def reset_state(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Reset global singletons and environment between tests."""
    vault = tmp_path / "vault"
    vault.mkdir()
    monkeypatch.setenv("VIDX_VAULT_PATH", str(vault))
    monkeypatch.setenv("VIDX_DB_PATH", str(tmp_path / "vectors.db"))
    monkeypatch.setenv("VIDX_SNAPSHOT_PATH", str(tmp_path / "vectors.json"))
    monkeypatch.setenv("VIDX_WORKER_COUNT", "2")
    monkeypatch.setenv("VIDX_EMBEDDING_BACKEND", "hashed")
    monkeypatch.setenv("VIDX_WATCH_VAULT", "false")
    monkeypatch.setenv("VIDX_YIELD_SECONDS", "0")
    monkeypatch.delenv("VIDX_CONFIG", raising=False)

    from vault_index.api import dependencies as deps
    from vault_index.core.config import get_settings

    get_settings.cache_clear()
    deps.get_app_settings.cache_clear()
    deps._RUNTIME = None
    yield
    get_settings.cache_clear()
    deps.get_app_settings.cache_clear()
    deps._RUNTIME = None


@pytest.fixture
def vault_dir(tmp_path: Path) -> Path:
    return tmp_path / "vault"


class FakeCorpus:
    """In-memory document source keyed by path."""

    def __init__(self, documents: dict[str, str] | None = None) -> None:
        self.documents = dict(documents or {})
        self.reads: list[str] = []

    async def list_documents(self) -> list[str]:
        return sorted(self.documents)

    async def read(self, path: str) -> Document | None:
        self.reads.append(path)
        text = self.documents.get(path)
        if text is None:
            return None
        return Document(path=path, text=text, title=Path(path).stem, tags=["note"], size=len(text), mtime=1000)


class AsyncHashedEmbedder:
    """Async facade over :class:`HashedEmbedder` for scheduler and search tests."""

    def __init__(self, dim: int = 64, fail_on: str | None = None) -> None:
        self._embedder = HashedEmbedder(dim=dim)
        self._embedder.load("hashed")
        self.fail_on = fail_on
        self.calls = 0

    async def embed(self, text: str) -> list[float]:
        return (await self.embed_batch([text]))[0]

    async def embed_batch(self, texts: Sequence[str]) -> list[list[float]]:
        self.calls += 1
        if self.fail_on is not None and any(self.fail_on in text for text in texts):
            raise RuntimeError("embedding failed")
        return self._embedder.embed_batch(texts)


class FailingStore(VectorStore):
    name = "failing"

    async def init(self) -> None:
        return None

    async def upsert(self, records: Sequence[VectorRecord]) -> None:
        raise OSError("disk full")

    async def delete(self, document_path: str) -> None:
        raise OSError("disk full")

    async def search(self, vector: Sequence[float], top_k: int = 10, min_score: float = 0.0) -> list[SearchHit]:
        return []

    async def stats(self) -> IndexStats:
        return IndexStats()

    async def close(self) -> None:
        return None


@pytest.fixture(scope="session")
def sample_markdown() -> str:
    return (
        "---\ntitle: Sample Note\ntags: [alpha, beta]\n---\n"
        "# Intro\n\nThis note talks about retrieval and vectors. #gamma\n\n"
        "## Details\n\nEmbedding models map passages into vector space.\n"
    )
