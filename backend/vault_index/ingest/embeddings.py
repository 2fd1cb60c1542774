"""Embedding runtimes.

Each worker of the embedding pool owns one :class:`Embedder` instance, so
implementations only need to be safe for use from a single thread.
"""

from __future__ import annotations

import hashlib
import math
import re
from typing import Any, Callable, Mapping, Protocol, Sequence

from vault_index.core.config import Settings
from vault_index.core.errors import EmbeddingComputeError, EmbeddingLoadError
from vault_index.core.logging import get_logger

logger = get_logger(__name__)

_TOKEN_RE = re.compile(r"\w+")

ProgressCallback = Callable[[float], None]

MODEL_DIMENSIONS: Mapping[str, int] = {
    "sentence-transformers/all-MiniLM-L6-v2": 384,
    "sentence-transformers/all-MiniLM-L12-v2": 384,
    "BAAI/bge-small-en-v1.5": 384,
    "BAAI/bge-base-en-v1.5": 768,
    "intfloat/multilingual-e5-small": 384,
}


class Embedder(Protocol):
    """Single-model embedding runtime."""

    @property
    def dimension(self) -> int: ...

    def load(
        self,
        model_id: str,
        options: Mapping[str, Any] | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> None: ...

    def embed(self, text: str) -> list[float]: ...

    def embed_batch(self, texts: Sequence[str]) -> list[list[float]]: ...

    def unload(self) -> None: ...


class HashedEmbedder:
    """Lightweight hashed bag-of-words embedder with deterministic output."""

    def __init__(self, dim: int = 384) -> None:
        self._dim = dim
        self.model_id: str | None = None

    @property
    def dimension(self) -> int:
        return self._dim

    def load(
        self,
        model_id: str,
        options: Mapping[str, Any] | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> None:
        self.model_id = model_id or "hashed"
        if on_progress is not None:
            on_progress(100.0)

    def embed(self, text: str) -> list[float]:
        if self.model_id is None:
            raise EmbeddingComputeError("Model not initialized")
        vector = [0.0] * self._dim
        for token in _tokenize(text):
            vector[_hash_token(token, self._dim)] += 1.0
        _normalize(vector)
        return vector

    def embed_batch(self, texts: Sequence[str]) -> list[list[float]]:
        return [self.embed(text) for text in texts]

    def unload(self) -> None:
        self.model_id = None


class SentenceTransformerEmbedder:
    """Embedder backed by a ``sentence_transformers`` model loaded on demand."""

    def __init__(self, device: str | None = None) -> None:
        self.device = device
        self.model_id: str | None = None
        self._model: Any = None
        self._dim = 0

    @property
    def dimension(self) -> int:
        return self._dim

    def load(
        self,
        model_id: str,
        options: Mapping[str, Any] | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> None:
        if self._model is not None and self.model_id == model_id:
            return
        if on_progress is not None:
            on_progress(0.0)
        try:
            from sentence_transformers import SentenceTransformer
        except ImportError as exc:
            raise EmbeddingLoadError("sentence-transformers is not installed") from exc
        try:
            model = SentenceTransformer(model_id, device=self.device)
        except Exception as exc:
            raise EmbeddingLoadError(f"Failed to load {model_id}: {exc}") from exc
        self._model = model
        self.model_id = model_id
        self._dim = int(model.get_sentence_embedding_dimension() or MODEL_DIMENSIONS.get(model_id, 0))
        logger.info("Loaded embedding model %s (dim=%s)", model_id, self._dim)
        if on_progress is not None:
            on_progress(100.0)

    def embed(self, text: str) -> list[float]:
        return self.embed_batch([text])[0]

    def embed_batch(self, texts: Sequence[str]) -> list[list[float]]:
        if self._model is None:
            raise EmbeddingComputeError("Model not initialized")
        embeddings = self._model.encode(
            list(texts),
            convert_to_numpy=True,
            normalize_embeddings=True,
            show_progress_bar=False,
        )
        return [[float(value) for value in row] for row in embeddings]

    def unload(self) -> None:
        self._model = None
        self.model_id = None


def create_embedder(settings: Settings) -> Embedder:
    """Build a fresh embedder instance for the configured backend."""
    if settings.embedding_backend == "sentence-transformers":
        return SentenceTransformerEmbedder()
    return HashedEmbedder(dim=settings.embedding_dim)


def expected_dimension(settings: Settings) -> int:
    if settings.embedding_backend == "sentence-transformers":
        return MODEL_DIMENSIONS.get(settings.embedding_model, settings.embedding_dim)
    return settings.embedding_dim


def _tokenize(text: str) -> list[str]:
    return _TOKEN_RE.findall(text.lower())


def _hash_token(token: str, dim: int) -> int:
    digest = hashlib.blake2b(token.encode("utf-8"), digest_size=8).digest()
    value = int.from_bytes(digest, "big")
    return value % dim


def _normalize(vector: list[float]) -> None:
    norm = math.sqrt(sum(value * value for value in vector))
    if norm == 0:
        return
    inv = 1.0 / norm
    for idx, value in enumerate(vector):
        vector[idx] = value * inv


__all__ = [
    "Embedder",
    "HashedEmbedder",
    "SentenceTransformerEmbedder",
    "MODEL_DIMENSIONS",
    "create_embedder",
    "expected_dimension",
]
