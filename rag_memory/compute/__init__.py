"""Vector math primitives."""

from .vector_ops import as_vector, cosine_similarity, l2_normalize, pairwise_cosine, to_float_list

__all__ = ["as_vector", "cosine_similarity", "l2_normalize", "pairwise_cosine", "to_float_list"]
