"""Hybrid ranking: cosine similarity + normalised keyword frequency.

  score = 0.7 * semantic + 0.3 * keyword

``keyword`` is the summed term frequency of the query terms in a chunk,
divided by the largest such sum among the candidates. If the query cannot be
embedded the ranking falls back to keyword scores alone. Ties break on the
chunk id, so equal inputs always rank identically.
"""

from __future__ import annotations

import logging
import math
import re
from collections import Counter
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from docquarry.db.models import IndexedChunk
from docquarry.ingest.embeddings import EmbeddingProvider

logger = logging.getLogger(__name__)

SEMANTIC_WEIGHT = 0.7
KEYWORD_WEIGHT = 0.3
DEFAULT_TOP_K = 10

# A letter followed by letters, digits, '_' or '-'.
_TOKEN_RE = re.compile(r"[^\W\d_][\w-]*")


@dataclass(frozen=True)
class SearchOptions:
    """Ranking options.

    Attributes:
        top_k:         Maximum results; ``<= 0`` returns nothing.
        min_score:     Drop results scoring below this (after weighting).
        source_filter: Keep chunks whose ``source_path`` equals this or lies
                       below it (``prefix + "/"``).
    """

    top_k: int = DEFAULT_TOP_K
    min_score: float | None = None
    source_filter: str | None = None


@dataclass(frozen=True)
class RankedChunk:
    chunk: IndexedChunk
    score: float
    semantic_score: float
    keyword_score: float

    @property
    def source_path(self) -> str:
        return self.chunk.source_path

    @property
    def heading(self) -> str | None:
        return self.chunk.heading


def tokenize(text: str) -> list[str]:
    """Lower-cased word tokens of *text*."""
    return _TOKEN_RE.findall(text.lower())


def build_keyword_scores(query: str, chunks: Sequence[IndexedChunk]) -> dict[str, float]:
    """Map chunk id → keyword score in ``[0, 1]``.

    All scores are 0 when the query has no terms or no chunk contains any.
    """
    terms = tokenize(query)
    raw: dict[str, int] = {}
    for chunk in chunks:
        if not terms:
            raw[chunk.id] = 0
            continue
        counts = Counter(tokenize(chunk.content))
        raw[chunk.id] = sum(counts[t] for t in terms)

    top = max(raw.values(), default=0)
    if top == 0:
        return {chunk_id: 0.0 for chunk_id in raw}
    return {chunk_id: score / top for chunk_id, score in raw.items()}


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity of two vectors; 0.0 if either has zero magnitude.

    Raises:
        ValueError: The vectors differ in length.
    """
    if len(a) != len(b):
        raise ValueError(f"Vector dimension mismatch: {len(a)} != {len(b)}")
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (norm_a * norm_b)


def matches_source(chunk: IndexedChunk, source_filter: str | None) -> bool:
    if not source_filter:
        return True
    return chunk.source_path == source_filter or chunk.source_path.startswith(
        source_filter.rstrip("/") + "/"
    )


class SemanticSearch:
    """Rank chunks by cosine similarity alone.

    Chunks without an embedding, or with one of a different dimension, are
    skipped.
    """

    def search(
        self,
        query_embedding: Sequence[float],
        chunks: Iterable[IndexedChunk],
        options: SearchOptions | None = None,
    ) -> list[RankedChunk]:
        opts = options or SearchOptions()
        if opts.top_k <= 0:
            return []

        ranked: list[RankedChunk] = []
        for chunk in chunks:
            if not matches_source(chunk, opts.source_filter) or not chunk.embedding:
                continue
            try:
                similarity = cosine_similarity(query_embedding, chunk.embedding)
            except ValueError:
                continue
            if opts.min_score is not None and similarity < opts.min_score:
                continue
            ranked.append(RankedChunk(chunk, similarity, similarity, 0.0))

        ranked.sort(key=lambda r: (-r.score, r.chunk.id))
        return ranked[: opts.top_k]


class HybridSearch:
    """Blend semantic and keyword relevance over a candidate set.

    Args:
        embedding_provider: Embeds the query text.
        semantic_search:    Cosine ranker; a default one is created if omitted.
    """

    def __init__(
        self,
        embedding_provider: EmbeddingProvider,
        semantic_search: SemanticSearch | None = None,
    ) -> None:
        self.embedding_provider = embedding_provider
        self.semantic_search = semantic_search or SemanticSearch()

    def search(
        self,
        query: str,
        chunks: Iterable[IndexedChunk],
        options: SearchOptions | None = None,
    ) -> list[RankedChunk]:
        opts = options or SearchOptions()
        if opts.top_k <= 0:
            return []

        candidates = [c for c in chunks if matches_source(c, opts.source_filter)]
        if not candidates:
            return []

        keyword = build_keyword_scores(query, candidates)
        semantic = self._semantic_scores(query, candidates)

        ranked: list[RankedChunk] = []
        for chunk in candidates:
            kw = keyword.get(chunk.id, 0.0)
            if semantic is None:
                sem = 0.0
                score = kw
            else:
                sem = semantic.get(chunk.id, 0.0)
                score = SEMANTIC_WEIGHT * sem + KEYWORD_WEIGHT * kw
            if opts.min_score is not None and score < opts.min_score:
                continue
            ranked.append(RankedChunk(chunk, score, sem, kw))

        ranked.sort(key=lambda r: (-r.score, r.chunk.id))
        return ranked[: opts.top_k]

    def _semantic_scores(
        self, query: str, candidates: list[IndexedChunk]
    ) -> dict[str, float] | None:
        """Cosine scores by chunk id, or None when the query cannot be embedded."""
        try:
            query_embedding = self.embedding_provider.embed(query)
        except Exception as exc:
            logger.warning("Query embedding failed, ranking by keywords only: %s", exc)
            return None
        results = self.semantic_search.search(
            query_embedding, candidates, SearchOptions(top_k=len(candidates))
        )
        return {r.chunk.id: r.semantic_score for r in results}
