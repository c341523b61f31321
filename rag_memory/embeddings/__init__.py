"""Text embedding backends."""

from .backends import Embedder, HashingEmbedder, SentenceTransformerEmbedder, create_embedder

__all__ = ["Embedder", "HashingEmbedder", "SentenceTransformerEmbedder", "create_embedder"]
