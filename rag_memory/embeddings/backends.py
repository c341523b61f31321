"""
Text embedding backends.

Every backend exposes `async embed(text) -> list[float] | None`. Backends may
raise on transport or model errors; the engine treats any failure as "no
embedding" and carries on.
"""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Any, List, Optional, Protocol, runtime_checkable

import numpy as np

from rag_memory.config.settings import EmbeddingCfg

logger = logging.getLogger(__name__)

_TOKEN_RE = re.compile(r"\W+")
_FNV_OFFSET = 2166136261
_FNV_PRIME = 16777619


@runtime_checkable
class Embedder(Protocol):
    """Anything that turns text into a fixed-length vector."""

    model_name: str

    async def embed(self, text: str) -> Optional[List[float]]:
        ...


class SentenceTransformerEmbedder:
    """
    sentence-transformers encoder, loaded lazily on first use.

    Encoding is CPU/GPU bound, so it runs in a worker thread to keep the event
    loop responsive.
    """

    def __init__(self, model_name: str = "all-MiniLM-L6-v2", model: Any = None, normalize: bool = True):
        self.model_name = model_name
        self.normalize = normalize
        self._model = model

    def _get_model(self) -> Any:
        if self._model is None:
            from sentence_transformers import SentenceTransformer
            logger.info("Loading sentence-transformers model %s", self.model_name)
            self._model = SentenceTransformer(self.model_name)
        return self._model

    def _encode(self, text: str) -> List[float]:
        vector = self._get_model().encode(
            [text],
            convert_to_numpy=True,
            normalize_embeddings=self.normalize,
            show_progress_bar=False,
        )
        return np.asarray(vector[0], dtype=np.float32).astype(float).tolist()

    async def embed(self, text: str) -> Optional[List[float]]:
        if not text or not text.strip():
            return None
        return await asyncio.to_thread(self._encode, text)


class HashingEmbedder:
    """
    Deterministic bag-of-tokens embedding, no model required.

    Each lower-cased word token is hashed with 32-bit FNV-1a into one of
    `dims` buckets; the count vector is L2-normalised. Texts sharing words get
    positive similarity, which is enough for offline use and tests.
    """

    def __init__(self, dims: int = 1536):
        if dims < 1:
            raise ValueError("dims must be positive")
        self.dims = dims
        self.model_name = f"fnv-hash-{dims}"

    @staticmethod
    def _fnv1a(token: str) -> int:
        h = _FNV_OFFSET
        for ch in token:
            h ^= ord(ch)
            h = (h * _FNV_PRIME) & 0xFFFFFFFF
        return h

    def encode(self, text: str) -> List[float]:
        vector = np.zeros(self.dims, dtype=np.float64)
        for token in _TOKEN_RE.split((text or "").lower()):
            if token:
                vector[self._fnv1a(token) % self.dims] += 1.0
        norm = np.linalg.norm(vector)
        if norm > 0:
            vector /= norm
        return vector.tolist()

    async def embed(self, text: str) -> Optional[List[float]]:
        if not text or not text.strip():
            return None
        return self.encode(text)


def create_embedder(cfg: EmbeddingCfg) -> Embedder:
    """Build the configured embedding backend (without caching)."""
    if cfg.backend == "hashing":
        return HashingEmbedder(dims=cfg.hashing_dims)
    if cfg.backend == "sentence-transformers":
        return SentenceTransformerEmbedder(model_name=cfg.model_name)
    raise ValueError(f"Unsupported embedding backend: {cfg.backend}")
