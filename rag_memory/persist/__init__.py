"""
Persistence and caching helpers.

Provides:
- Stable hashing for content-addressable cache keys
- SQLite-backed KV store
- Embedding cache with TTL and LRU bounds
"""

from .hashing import stable_hash
from .sqlite_store import KVStore
from .embedding_cache import CachingEmbedder

__all__ = ["stable_hash", "KVStore", "CachingEmbedder"]
