"""Vector store selection with fallback."""

from __future__ import annotations

from vault_index.core.config import Settings
from vault_index.core.errors import StoreUnavailable
from vault_index.core.logging import get_logger
from vault_index.retrieval.memory_store import MemoryVectorStore
from vault_index.retrieval.sqlite_store import SQLiteVectorStore
from vault_index.retrieval.vector_store import VectorStore

logger = get_logger(__name__)


async def open_vector_store(settings: Settings, dimension: int) -> VectorStore:
    """Open the SQLite store, or the memory store when SQLite is unavailable.

    A failure of the fallback propagates to the caller.
    """
    primary = SQLiteVectorStore(settings.db_path, dimension=dimension)
    try:
        await primary.init()
        return primary
    except StoreUnavailable as exc:
        logger.warning("SQLite vector store unavailable, falling back to memory store: %s", exc)

    fallback = MemoryVectorStore(settings.snapshot_path, dimension=dimension)
    await fallback.init()
    return fallback


__all__ = ["open_vector_store"]
