from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Sequence

from docsearch.core.errors import EmbeddingError
from docsearch.core.protocols import Embedder
from docsearch.core.types import SearchResult
from docsearch.indexing.bm25_index import cosine

logger = logging.getLogger(__name__)


@dataclass
class RerankResult:
    result: SearchResult
    score: float
    original_rank: int


class SemanticReranker:
    """
    Re-scores fused results against the query embedding.

    score = rrf_weight * min(rrf_score * rrf_scale, 1) + semantic_weight * cosine(query, content)

    The fused score already carries the date/path boosts, so it is blended in
    rather than replaced. Documents with blank content cannot be embedded and
    are dropped.
    """

    def __init__(
        self,
        embedder: Embedder,
        rrf_weight: float = 0.4,
        semantic_weight: float = 0.6,
        rrf_scale: float = 5.0,
    ):
        if rrf_weight < 0 or semantic_weight < 0:
            raise ValueError("rerank weights must be >= 0")
        self.embedder = embedder
        self.rrf_weight = rrf_weight
        self.semantic_weight = semantic_weight
        self.rrf_scale = rrf_scale

    def rerank(self, query: str, results: Sequence[SearchResult]) -> List[RerankResult]:
        query_vec = self.embedder.embed(query)

        out: List[RerankResult] = []
        for rank, r in enumerate(results, start=1):
            if not r.content.strip():
                logger.warning("skipping document with empty content: %s (id=%s)", r.title, r.id)
                continue
            try:
                doc_vec = self.embedder.embed(r.content)
            except EmbeddingError as exc:
                # keep the fused score for this document
                logger.warning("rerank embedding failed for id=%s: %s", r.id, exc)
                out.append(RerankResult(result=r, score=r.score, original_rank=rank))
                continue

            similarity = cosine(query_vec, doc_vec)
            normalized = min(r.score * self.rrf_scale, 1.0)
            score = normalized * self.rrf_weight + similarity * self.semantic_weight
            logger.debug(
                "%s: rrf=%.4f (norm=%.4f) semantic=%.4f hybrid=%.4f",
                r.title, r.score, normalized, similarity, score,
            )
            out.append(RerankResult(result=r, score=score, original_rank=rank))

        out.sort(key=lambda x: x.score, reverse=True)
        return out


def rerank_fused(
    query: str,
    fused: Sequence[SearchResult],
    reranker: SemanticReranker,
    rerank_top_n: int = 20,
) -> List[SearchResult]:
    # only the head is re-scored; the tail keeps its fused order
    if len(fused) <= 1:
        logger.info("skipping rerank: only %d results", len(fused))
        return list(fused)

    candidates = fused[:rerank_top_n]
    reranked = reranker.rerank(query, candidates)
    head = [r.result.with_score(r.score) for r in reranked]

    logger.info("rerank completed: %d input -> %d output", len(candidates), len(head))
    if head:
        logger.info("top 5 after rerank: %s", ", ".join(f"{r.title}({r.score:.4f})" for r in head[:5]))
    return head + list(fused[rerank_top_n:])
