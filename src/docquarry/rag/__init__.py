"""docquarry retrieval: hybrid ranking and the search front door."""

from docquarry.rag.adapter import DocumentSearchResult, SearchAdapter
from docquarry.rag.hybrid import (
    HybridSearch,
    RankedChunk,
    SearchOptions,
    SemanticSearch,
    build_keyword_scores,
    cosine_similarity,
    tokenize,
)

__all__ = [
    "DocumentSearchResult",
    "HybridSearch",
    "RankedChunk",
    "SearchAdapter",
    "SearchOptions",
    "SemanticSearch",
    "build_keyword_scores",
    "cosine_similarity",
    "tokenize",
]
