"""Relevance scoring and diversity reranking for memory retrieval."""

from .relevance import RelevanceScorer, filter_relevant, rank_by_similarity
from .mmr import DiversityReranker

__all__ = [
    "RelevanceScorer",
    "filter_relevant",
    "rank_by_similarity",
    "DiversityReranker",
]
