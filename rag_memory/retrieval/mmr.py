"""
Maximal Marginal Relevance (MMR) reranking.

Picks a bounded subset of relevant memories that are also mutually
dissimilar, so near-duplicate facts don't crowd out everything else.
"""

import logging
from typing import List, Sequence

import numpy as np

from rag_memory.compute.vector_ops import cosine_similarity, pairwise_cosine
from rag_memory.errors import DimensionMismatch
from rag_memory.memory.schemas import ScoredMemory

logger = logging.getLogger(__name__)


class DiversityReranker:
    """
    Greedy MMR selection.

    At each step the remaining candidate with the highest

        lambda * sim(c, query) - (1 - lambda) * max(sim(c, s) for s in selected)

    is moved to the selection (the penalty is 0 while nothing is selected).
    Ties go to the higher raw query similarity, then to the most recently
    updated memory.
    """

    def __init__(self, k: int = 10, lambda_: float = 0.7):
        """
        Args:
            k: Maximum number of memories to select
            lambda_: Relevance/diversity trade-off in [0, 1]; 1.0 is pure relevance
        """
        if k < 1:
            raise ValueError("k must be at least 1")
        if not 0.0 <= lambda_ <= 1.0:
            raise ValueError("lambda_ must be within [0, 1]")
        self.k = k
        self.lambda_ = lambda_

    def rerank(self, candidates: Sequence[ScoredMemory], k: int | None = None) -> List[ScoredMemory]:
        """
        Select up to `k` candidates in MMR order.

        Args:
            candidates: Relevance-filtered candidates (with embeddings)
            k: Override for the configured output size

        Returns:
            Selected candidates, most relevant/diverse first
        """
        limit = self.k if k is None else k
        if not candidates or limit < 1:
            return []

        pool = list(candidates)
        sims = self._candidate_similarities(pool)

        remaining = list(range(len(pool)))
        selected: List[int] = []
        # Highest similarity of each candidate to anything selected so far
        max_sim = np.zeros(len(pool))

        while remaining and len(selected) < limit:
            penalty_weight = (1.0 - self.lambda_) if selected else 0.0
            best = max(
                remaining,
                key=lambda i: (
                    self.lambda_ * pool[i].similarity - penalty_weight * max_sim[i],
                    pool[i].similarity,
                    pool[i].memory.updated_at,
                ),
            )
            remaining.remove(best)
            selected.append(best)
            if len(selected) == 1:
                max_sim = sims[best].copy()
            else:
                max_sim = np.maximum(max_sim, sims[best])

        return [pool[i] for i in selected]

    @staticmethod
    def _candidate_similarities(pool: List[ScoredMemory]) -> np.ndarray:
        """Pairwise cosine matrix between candidate embeddings."""
        vectors = [s.memory.embedding or [] for s in pool]
        try:
            return pairwise_cosine(vectors)
        except DimensionMismatch:
            logger.warning("Mixed embedding sizes in MMR pool; scoring pairs individually")

        n = len(pool)
        sims = np.zeros((n, n))
        for i in range(n):
            for j in range(i, n):
                try:
                    value = cosine_similarity(vectors[i], vectors[j])
                except DimensionMismatch:
                    value = 0.0
                sims[i, j] = sims[j, i] = value
        return sims
