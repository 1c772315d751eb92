"""Similarity search over stored vector records."""

from agrisearch.search.engine import SimilaritySearchEngine, matches_filters, rank_records
from agrisearch.search.models import SearchOptions, SearchResult
from agrisearch.search.similarity import cosine_similarity, similarity_score

__all__ = [
    "SearchOptions",
    "SearchResult",
    "SimilaritySearchEngine",
    "cosine_similarity",
    "matches_filters",
    "rank_records",
    "similarity_score",
]
