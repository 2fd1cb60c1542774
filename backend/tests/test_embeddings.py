"""Tests for embedding utilities."""

import sys

import pytest

from vault_index.core.config import Settings
from vault_index.core.errors import EmbeddingComputeError, EmbeddingLoadError
from vault_index.ingest.embeddings import (
    HashedEmbedder,
    SentenceTransformerEmbedder,
    create_embedder,
    expected_dimension,
)


def test_hashed_embedder_is_normalized_and_deterministic() -> None:
    embedder = HashedEmbedder(dim=32)
    progress: list[float] = []
    embedder.load("dummy-model", on_progress=progress.append)
    vectors = embedder.embed_batch(["hello", "world"])
    assert len(vectors) == 2
    assert all(len(vec) == 32 for vec in vectors)
    assert abs(sum(value * value for value in vectors[0]) - 1.0) < 1e-6
    assert embedder.embed("hello") == vectors[0]
    assert progress == [100.0]


def test_hashed_embedder_requires_load() -> None:
    with pytest.raises(EmbeddingComputeError):
        HashedEmbedder().embed("text")


def test_blank_text_embeds_to_zero_vector() -> None:
    embedder = HashedEmbedder(dim=8)
    embedder.load("hashed")
    assert embedder.embed("   ") == [0.0] * 8


def test_missing_sentence_transformers_raises_load_error(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setitem(sys.modules, "sentence_transformers", None)
    with pytest.raises(EmbeddingLoadError):
        SentenceTransformerEmbedder().load("sentence-transformers/all-MiniLM-L6-v2")


def test_factory_follows_backend() -> None:
    hashed = Settings(embedding_backend="hashed", embedding_dim=16)
    assert isinstance(create_embedder(hashed), HashedEmbedder)
    assert expected_dimension(hashed) == 16

    st = Settings(embedding_backend="sentence-transformers", embedding_model="BAAI/bge-base-en-v1.5")
    assert isinstance(create_embedder(st), SentenceTransformerEmbedder)
    assert expected_dimension(st) == 768
