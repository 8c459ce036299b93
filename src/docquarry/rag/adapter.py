"""Retrieval front door: query text in, flat search results out."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from docquarry.errors import SearchError
from docquarry.ingest.indexer import Indexer
from docquarry.rag.hybrid import DEFAULT_TOP_K, HybridSearch, SearchOptions
from docquarry.sources.registry import SourceRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DocumentSearchResult:
    chunk_id: str
    content: str
    score: float
    source_path: str
    heading: str | None
    heading_hierarchy: list[str] = field(default_factory=list)
    source_id: str = ""
    chunk_index: int = 0


class SearchAdapter:
    """Search the chunks of every indexed source.

    Only sources whose status is ``indexed`` contribute candidates.
    """

    def __init__(
        self, hybrid_search: HybridSearch, indexer: Indexer, registry: SourceRegistry
    ) -> None:
        self.hybrid_search = hybrid_search
        self.indexer = indexer
        self.registry = registry

    def search(
        self,
        query: str,
        top_k: int = DEFAULT_TOP_K,
        source_ids: list[str] | None = None,
        min_score: float | None = None,
    ) -> list[DocumentSearchResult]:
        """Rank indexed chunks for *query*.

        Args:
            query:      Free-text query.
            top_k:      Maximum results.
            source_ids: Restrict candidates to these sources (None or empty
                        means all indexed sources).
            min_score:  Drop results scoring below this before truncating.

        Raises:
            SearchError: Anything below failed unexpectedly.
        """
        try:
            wanted = set(source_ids) if source_ids else None
            candidates = []
            for source in self.registry.list(status="indexed"):
                if wanted is not None and source.id not in wanted:
                    continue
                candidates.extend(self.indexer.get_chunks_by_source(source.id))

            ranked = self.hybrid_search.search(
                query, candidates, SearchOptions(top_k=top_k, min_score=min_score)
            )
        except Exception as exc:
            logger.error("Document search failed: %s", exc)
            raise SearchError("Document search provider query failed") from exc

        return [
            DocumentSearchResult(
                chunk_id=r.chunk.id,
                content=r.chunk.content,
                score=r.score,
                source_path=r.chunk.source_path,
                heading=r.chunk.heading,
                heading_hierarchy=list(r.chunk.heading_hierarchy),
                source_id=r.chunk.source_id,
                chunk_index=r.chunk.chunk_index,
            )
            for r in ranked
        ]
