"""Retrieval orchestration components."""

from .factory import open_vector_store
from .memory_store import MemoryVectorStore
from .search import SearchService
from .sqlite_store import SQLiteVectorStore
from .vector_store import VectorStore, cosine_similarity

__all__ = [
    "VectorStore",
    "SQLiteVectorStore",
    "MemoryVectorStore",
    "SearchService",
    "open_vector_store",
    "cosine_similarity",
]
