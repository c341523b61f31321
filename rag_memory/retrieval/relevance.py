"""
Relevance scoring of stored memories against a query vector.
"""

import logging
from typing import List, Sequence

from rag_memory.compute.vector_ops import Vector, cosine_similarity
from rag_memory.errors import DimensionMismatch, MalformedCandidate
from rag_memory.memory.schemas import Memory, ScoredMemory

logger = logging.getLogger(__name__)


class RelevanceScorer:
    """
    Scores candidates by cosine similarity to the query.

    Candidates with no embedding, an empty one, or one whose length differs
    from the query are skipped, so one bad record never aborts a retrieval.
    """

    def score(self, candidates: Sequence[Memory], query_vector: Vector) -> List[ScoredMemory]:
        """
        Pair each comparable candidate with its similarity to the query.

        Args:
            candidates: Memories to score
            query_vector: Embedding of the query text

        Returns:
            ScoredMemory list in candidate order (not sorted)
        """
        scored = []
        for memory in candidates:
            try:
                scored.append(ScoredMemory(memory=memory, similarity=self._similarity(memory, query_vector)))
            except MalformedCandidate as e:
                logger.debug("%s", e)
        return scored

    @staticmethod
    def _similarity(memory: Memory, query_vector: Vector) -> float:
        if not memory.embedding:
            raise MalformedCandidate(memory.id, "missing embedding")
        try:
            return cosine_similarity(query_vector, memory.embedding)
        except DimensionMismatch as e:
            raise MalformedCandidate(memory.id, str(e)) from e


def filter_relevant(scored: Sequence[ScoredMemory], floor: float) -> List[ScoredMemory]:
    """Keep candidates whose similarity is at least `floor`."""
    return [s for s in scored if s.similarity >= floor]


def rank_by_similarity(scored: Sequence[ScoredMemory], limit: int | None = None) -> List[ScoredMemory]:
    """
    Sort by similarity (highest first), newest update breaking ties.

    Args:
        scored: Scored candidates
        limit: Optional cap on the number returned

    Returns:
        Sorted, truncated list
    """
    ranked = sorted(
        scored,
        key=lambda s: (s.similarity, s.memory.updated_at),
        reverse=True,
    )
    if limit is not None:
        ranked = ranked[:limit]
    return ranked
