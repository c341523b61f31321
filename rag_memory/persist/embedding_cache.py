"""
Embedding cache - wrap an embedder with a SQLite-backed cache.

Caches vectors by content hash so repeated queries and re-upserts of the
same fact skip the embedding call.
"""

import asyncio
import logging
from typing import List, Optional

import numpy as np

from rag_memory.compute.vector_ops import to_float_list
from rag_memory.embeddings.backends import Embedder
from .hashing import stable_hash
from .sqlite_store import KVStore

logger = logging.getLogger(__name__)

_TABLE = "embeddings"


class CachingEmbedder:
    """
    Embedder wrapper with TTL expiry and a bounded entry count.

    Key = blake2b(text + model_name)
    Value = float32 vector bytes

    Usage:
        >>> kv = KVStore(Path("data/cache/embeddings.db"))
        >>> embedder = CachingEmbedder(HashingEmbedder(), kv, ttl_seconds=3600)
        >>> vec = await embedder.embed("likes jazz")
        >>> vec2 = await embedder.embed("likes jazz")  # cache hit
    """

    def __init__(
        self,
        embedder: Embedder,
        kv: KVStore,
        ttl_seconds: float = 7 * 24 * 3600.0,
        max_entries: int = 50_000,
    ):
        """
        Initialize caching embedder.

        Args:
            embedder: Underlying embedding backend
            kv: KVStore with an 'embeddings' table
            ttl_seconds: Entries idle for longer than this are misses
            max_entries: Upper bound on cached vectors (LRU eviction)
        """
        self.embedder = embedder
        self.kv = kv
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self.model_name = embedder.model_name

        # Track cache hits/misses
        self.hits = 0
        self.misses = 0

    def _cache_key(self, text: str) -> str:
        return stable_hash({"text": text, "model": self.model_name})

    def _lookup(self, key: str) -> Optional[List[float]]:
        cached = self.kv.get(_TABLE, key, max_age=self.ttl_seconds)
        if cached is None:
            return None
        return np.frombuffer(cached, dtype=np.float32).astype(float).tolist()

    def _store(self, key: str, vector: List[float]) -> None:
        self.kv.set(_TABLE, key, np.asarray(vector, dtype=np.float32).tobytes())
        if self.kv.count(_TABLE) > self.max_entries:
            evicted = self.kv.evict_lru(_TABLE, self.max_entries)
            logger.debug("Evicted %d cached embeddings", evicted)

    async def embed(self, text: str) -> Optional[List[float]]:
        """Return the cached vector for `text`, computing it on a miss."""
        if not text or not text.strip():
            return None

        key = self._cache_key(text)
        cached = await asyncio.to_thread(self._lookup, key)
        if cached is not None:
            self.hits += 1
            return cached

        self.misses += 1
        vector = to_float_list(await self.embedder.embed(text))
        if vector is not None:
            await asyncio.to_thread(self._store, key, vector)
        return vector

    def evict_expired(self) -> int:
        """Remove entries idle for longer than the TTL. Returns rows removed."""
        return self.kv.purge_older_than(_TABLE, self.ttl_seconds)

    def get_stats(self) -> dict:
        """Get cache statistics."""
        total = self.hits + self.misses
        return {
            "hits": self.hits,
            "misses": self.misses,
            "total": total,
            "hit_rate": self.hits / total if total > 0 else 0.0,
            "entries": self.kv.count(_TABLE),
        }

    def reset_stats(self) -> None:
        self.hits = 0
        self.misses = 0

    def close(self) -> None:
        self.kv.close()
