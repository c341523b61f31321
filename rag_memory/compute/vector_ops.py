"""Vector primitives: cosine similarity and normalisation."""

from typing import Any, List, Optional, Sequence

import numpy as np

from rag_memory.errors import DimensionMismatch

Vector = Sequence[float] | np.ndarray


def as_vector(values: Vector) -> np.ndarray:
    """Convert a sequence of numbers to a 1-D float64 array."""
    arr = np.asarray(values, dtype=np.float64)
    if arr.ndim != 1:
        raise ValueError(f"Expected a 1-D vector, got shape {arr.shape}")
    return arr


def cosine_similarity(a: Vector, b: Vector) -> float:
    """
    Cosine similarity between two equal-length vectors.

    Args:
        a: First vector
        b: Second vector

    Returns:
        Similarity in [-1, 1]; 0.0 when either vector has zero norm

    Raises:
        DimensionMismatch: If the vectors differ in length
    """
    va = as_vector(a)
    vb = as_vector(b)
    if va.shape[0] != vb.shape[0]:
        raise DimensionMismatch(va.shape[0], vb.shape[0])

    norm_a = np.linalg.norm(va)
    norm_b = np.linalg.norm(vb)
    if norm_a == 0 or norm_b == 0:
        return 0.0

    sim = float(np.dot(va, vb) / (norm_a * norm_b))
    # Rounding can push identical vectors just past 1.0
    return max(-1.0, min(1.0, sim))


def l2_normalize(values: Vector) -> np.ndarray:
    """Scale a vector to unit length (zero vectors are returned unchanged)."""
    arr = as_vector(values)
    norm = np.linalg.norm(arr)
    if norm == 0:
        return arr
    return arr / norm


def pairwise_cosine(vectors: Sequence[Vector]) -> np.ndarray:
    """
    Cosine similarity matrix for a list of equal-length vectors.

    Zero vectors get similarity 0 with everything, including themselves.
    """
    if not vectors:
        return np.zeros((0, 0))

    lengths = {len(v) for v in vectors}
    if len(lengths) > 1:
        ordered = sorted(lengths)
        raise DimensionMismatch(ordered[0], ordered[-1])

    matrix = np.vstack([as_vector(v) for v in vectors])
    norms = np.linalg.norm(matrix, axis=1)
    safe = np.where(norms == 0, 1.0, norms)
    unit = matrix / safe[:, None]
    sims = unit @ unit.T
    zero = norms == 0
    sims[zero, :] = 0.0
    sims[:, zero] = 0.0
    return np.clip(sims, -1.0, 1.0)


def to_float_list(values: Any) -> Optional[List[float]]:
    """
    Normalise embedder output (list, tuple or numpy array) to a list of floats.

    Returns None for missing, empty, non-numeric or multi-dimensional output.
    """
    if values is None:
        return None
    try:
        arr = np.asarray(values, dtype=np.float64)
    except (TypeError, ValueError):
        return None
    if arr.ndim != 1 or arr.size == 0:
        return None
    return arr.tolist()
