from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from docsearch.core.errors import PipelineStateError
from docsearch.core.metrics import record_search
from docsearch.core.types import QueryAnalysis, SearchCriterion, SearchResult, SearchType
from docsearch.permissions.filter import PermissionFilter
from docsearch.rerank.semantic_reranker import SemanticReranker, rerank_fused
from docsearch.retrieval.executor import QueryExecutor
from docsearch.retrieval.fusion import RankFusion

logger = logging.getLogger(__name__)


class DocumentRetriever:
    def __init__(
        self,
        executor: QueryExecutor,
        fusion: RankFusion,
        permission_filter: PermissionFilter,
    ):
        self.executor = executor
        self.fusion = fusion
        self.permission_filter = permission_filter

    def multi_search(
        self,
        criteria: Iterable[Optional[SearchCriterion]],
        top_k: int,
    ) -> Dict[SearchType, List[SearchResult]]:
        return self.executor.multi_search(criteria, top_k)

    def fuse_and_rank(
        self,
        per_type: Mapping[SearchType, Sequence[SearchResult]],
        date_keywords: Sequence[str] = (),
        path_keywords: Sequence[str] = (),
    ) -> List[SearchResult]:
        return self.fusion.fuse(per_type, date_keywords=date_keywords, path_keywords=path_keywords)

    def filter_for_user(self, ranking: Sequence[SearchResult], user_id: int) -> List[SearchResult]:
        return self.permission_filter.filter_for_user(ranking, user_id)


@dataclass
class RetrievalOutcome:
    results: List[SearchResult]
    counts_by_type: Dict[SearchType, int] = field(default_factory=dict)
    fused_count: int = 0
    elapsed_ms: int = 0
    reranked: bool = False


class RetrievalPipeline:
    """analysis -> multi search -> RRF fusion -> truncate -> permission filter -> (rerank)"""

    def __init__(
        self,
        retriever: DocumentRetriever,
        top_k: int = 50,
        max_results: int = 50,
        reranker: Optional[SemanticReranker] = None,
        rerank_top_n: int = 20,
    ):
        self.retriever = retriever
        self.top_k = top_k
        self.max_results = max_results
        self.reranker = reranker
        self.rerank_top_n = rerank_top_n

    def run(
        self,
        analysis: Optional[QueryAnalysis],
        user_id: Optional[int] = None,
        rerank: bool = False,
        message: Optional[str] = None,
    ) -> RetrievalOutcome:
        """
        rerank is opt-in per request; it needs a reranker and re-scores the
        top rerank_top_n results against message (or the content terms).
        """
        if analysis is None:
            raise PipelineStateError("query analysis is not available")

        started = time.monotonic()

        per_type = self.retriever.multi_search(analysis.criteria(), self.top_k)
        counts = {t: len(r) for t, r in per_type.items()}
        logger.info(
            "multi-search completed: %s",
            ", ".join(f"{t.value}={counts.get(t, 0)}" for t in SearchType),
        )

        fused = self.retriever.fuse_and_rank(
            per_type,
            date_keywords=analysis.date_keywords,
            path_keywords=analysis.keywords,
        )
        results = fused[: self.max_results]
        record_search(time.monotonic() - started, len(results))

        if user_id is not None:
            results = self.retriever.filter_for_user(results, user_id)

        reranked = False
        if rerank and results:
            if self.reranker is None:
                logger.warning("rerank requested but no reranker is configured")
            else:
                query = message or " ".join(analysis.contents or analysis.titles or analysis.keywords)
                reranked = len(results) > 1
                results = rerank_fused(query, results, self.reranker, rerank_top_n=self.rerank_top_n)

        elapsed_ms = int((time.monotonic() - started) * 1000)
        logger.info("found %d documents via RRF in %dms", len(results), elapsed_ms)
        if results:
            logger.info(
                "top 5: %s",
                ", ".join(f"{r.title}({r.score:.4f})" for r in results[:5]),
            )

        return RetrievalOutcome(
            results=results,
            counts_by_type=counts,
            fused_count=len(fused),
            elapsed_ms=elapsed_ms,
            reranked=reranked,
        )
