"""Error taxonomy for Vault Index."""

from __future__ import annotations


class VaultIndexError(Exception):
    """Base class for all indexing errors."""

    code = "VAULT_INDEX_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class StoreUnavailable(VaultIndexError):
    """The vector store backend could not be opened."""

    code = "STORE_UNAVAILABLE"


class StoreIOError(VaultIndexError):
    """A single upsert, delete or search call failed."""

    code = "STORE_IO_ERROR"


class EmbeddingLoadError(VaultIndexError):
    """The embedding model failed to load."""

    code = "EMBEDDING_LOAD_ERROR"


class EmbeddingComputeError(VaultIndexError):
    """A single embed call failed."""

    code = "EMBEDDING_COMPUTE_ERROR"


class PoolTerminated(EmbeddingComputeError):
    """Raised for embedding work rejected by a pool shutdown."""

    code = "POOL_TERMINATED"


class ChunkingError(VaultIndexError):
    """The chunker could not segment a document."""

    code = "CHUNKING_ERROR"


class DocumentIndexError(VaultIndexError):
    """Failure of one document's indexing pass, reported via the error signal."""

    code = "DOCUMENT_INDEX_ERROR"

    def __init__(self, path: str, cause: BaseException) -> None:
        super().__init__(f"Failed to index {path}: {cause}")
        self.path = path
        self.cause = cause


__all__ = [
    "VaultIndexError",
    "StoreUnavailable",
    "StoreIOError",
    "EmbeddingLoadError",
    "EmbeddingComputeError",
    "PoolTerminated",
    "ChunkingError",
    "DocumentIndexError",
]
