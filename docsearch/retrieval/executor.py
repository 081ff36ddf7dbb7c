from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from docsearch.core.config import (
    DEFAULT_FIELD_WEIGHTS,
    DEFAULT_SCORE_BLENDS,
    DEFAULT_SEARCH_CATEGORY,
    ScoreBlend,
)
from docsearch.core.errors import SearchEngineError
from docsearch.core.logging_ import preview
from docsearch.core.protocols import Embedder, SearchEngine
from docsearch.core.types import (
    FieldWeights,
    HybridQuery,
    RawHit,
    SearchCriterion,
    SearchResult,
    SearchType,
)
from docsearch.retrieval.parsing import deduplicate, parse_hits

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _PlannedQuery:
    search_type: SearchType
    query: HybridQuery


class QueryExecutor:
    """
    Runs every active search criterion as a hybrid query in one batched
    engine call. The query vector is embedded once, from the Content
    criterion only, and shared by all queries.
    """

    def __init__(
        self,
        engine: SearchEngine,
        embedder: Embedder,
        field_weights: Optional[Mapping[SearchType, FieldWeights]] = None,
        score_blends: Optional[Mapping[SearchType, ScoreBlend]] = None,
        category_filter: Optional[Dict[str, str]] = None,
    ):
        self.engine = engine
        self.embedder = embedder
        self.field_weights = dict(field_weights or DEFAULT_FIELD_WEIGHTS)
        self.score_blends = dict(score_blends or DEFAULT_SCORE_BLENDS)
        self.category_filter = dict(category_filter) if category_filter is not None else {"type": DEFAULT_SEARCH_CATEGORY}

    def _active(self, criteria: Iterable[Optional[SearchCriterion]]) -> List[SearchCriterion]:
        by_type: Dict[SearchType, SearchCriterion] = {}
        for c in criteria:
            if c is None or c.is_empty():
                continue
            if c.search_type in by_type:
                raise ValueError(f"duplicate criterion for type {c.search_type.value}")
            by_type[c.search_type] = c
        return [by_type[t] for t in SearchType if t in by_type]

    def _embed_content(self, active: List[SearchCriterion]) -> Tuple[float, ...]:
        content = next((c for c in active if c.search_type.embeds_query), None)
        if content is None:
            logger.debug("no content criterion; lexical-only search")
            return ()
        vector = tuple(self.embedder.embed(content.to_query()))
        logger.debug("embedding generated with dimension %d", len(vector))
        return vector

    def _plan(self, active: List[SearchCriterion], vector: Tuple[float, ...], top_k: int) -> List[_PlannedQuery]:
        return [
            _PlannedQuery(
                search_type=c.search_type,
                query=HybridQuery(
                    text=c.to_query(),
                    vector=vector,
                    field_weights=self.field_weights[c.search_type],
                    filters=dict(self.category_filter),
                    limit=top_k,
                ),
            )
            for c in active
        ]

    def execute(
        self,
        criteria: Iterable[Optional[SearchCriterion]],
        top_k: int,
    ) -> Dict[SearchType, List[RawHit]]:
        active = self._active(criteria)
        if not active:
            logger.info("no active search criteria; skipping search")
            return {}

        logger.info(
            "multi-search topK=%d: %s",
            top_k, ", ".join(f"{c.search_type.value}={c.size()}" for c in active),
        )

        vector = self._embed_content(active)
        planned = self._plan(active, vector, top_k)

        responses = self.engine.batch_hybrid_search([p.query for p in planned])
        if len(responses) != len(planned):
            raise SearchEngineError(
                f"engine returned {len(responses)} results for {len(planned)} queries"
            )

        return {p.search_type: list(r.hits) for p, r in zip(planned, responses)}

    def multi_search(
        self,
        criteria: Iterable[Optional[SearchCriterion]],
        top_k: int,
    ) -> Dict[SearchType, List[SearchResult]]:
        raw = self.execute(criteria, top_k)

        out: Dict[SearchType, List[SearchResult]] = {}
        for search_type, hits in raw.items():
            blend = self.score_blends.get(search_type) or ScoreBlend()
            out[search_type] = deduplicate(parse_hits(hits, blend.combine))

        if logger.isEnabledFor(logging.DEBUG):
            for search_type, results in out.items():
                prefix = search_type.name[0]
                for i, r in enumerate(results[:5], start=1):
                    logger.debug(
                        "[%s%d] %s (score=%.4f, content=%d chars)",
                        prefix, i, r.title, r.score, len(r.content),
                    )
        return out

    def search(self, criterion: SearchCriterion, top_k: int) -> List[SearchResult]:
        """Single-criterion search; embeds the criterion's own query and applies no category filter."""
        query_text = criterion.to_query()
        if not query_text.strip():
            logger.warning("empty query from %s criterion; returning no results", criterion.search_type.value)
            return []

        logger.info("%s search: '%s' (topK=%d)", criterion.search_type.value, preview(query_text), top_k)
        vector = tuple(self.embedder.embed(query_text))
        query = HybridQuery(
            text=query_text,
            vector=vector,
            field_weights=self.field_weights[criterion.search_type],
            filters={},
            limit=top_k,
        )

        responses = self.engine.batch_hybrid_search([query])
        if len(responses) != 1:
            raise SearchEngineError(f"engine returned {len(responses)} results for 1 query")

        blend = self.score_blends.get(criterion.search_type) or ScoreBlend()
        results = deduplicate(parse_hits(responses[0].hits, blend.combine))
        logger.info("%s search returned %d results", criterion.search_type.value, len(results))
        return results
