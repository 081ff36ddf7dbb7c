from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence

from docsearch.core.config import RRFConfig
from docsearch.core.types import SearchResult, SearchType, path_segments

logger = logging.getLogger(__name__)


@dataclass
class _Accumulator:
    representative: SearchResult
    rrf_score: float = 0.0


def _rrf_contribution(rank: int, k: float, weight: float) -> float:
    # rank is 0-based here
    return weight / (rank + k)


def date_matches(title: str, date_keywords: Sequence[str]) -> bool:
    if not date_keywords:
        return False
    lowered = title.lower()
    return any(dk and dk.lower() in lowered for dk in date_keywords)


def path_matches(path: str, path_keywords: Sequence[str]) -> bool:
    # ancestors only: the last segment is the document itself
    ancestors = path_segments(path)[:-1]
    if not ancestors or not path_keywords:
        return False
    return any(kw in ancestors for kw in path_keywords)


class RankFusion:
    def __init__(self, config: Optional[RRFConfig] = None):
        self.config = config or RRFConfig()

    def boost_multiplier(
        self,
        result: SearchResult,
        date_keywords: Sequence[str],
        path_keywords: Sequence[str],
    ) -> float:
        multiplier = 1.0
        if date_matches(result.title, date_keywords):
            multiplier *= self.config.date_boost
        if path_matches(result.path, path_keywords):
            multiplier *= self.config.path_boost
        return multiplier

    def fuse(
        self,
        per_type: Mapping[SearchType, Sequence[SearchResult]],
        date_keywords: Sequence[str] = (),
        path_keywords: Sequence[str] = (),
    ) -> List[SearchResult]:
        """
        Weighted Reciprocal Rank Fusion across search types.

        RRF(d) = sum over types of w_type / (rank_type(d) + k), rank from 0.

        The fused score is then multiplied by the contextual boosts (date
        keyword in title, plain keyword on an ancestor path segment).
        Nothing is truncated; callers cut the list.
        """
        acc: Dict[str, _Accumulator] = {}
        k = self.config.k

        for search_type in SearchType:
            ranked = per_type.get(search_type) or []
            weight = self.config.weight(search_type)
            for rank, result in enumerate(ranked):
                entry = acc.get(result.id)
                if entry is None:
                    entry = _Accumulator(representative=result)
                    acc[result.id] = entry
                entry.rrf_score += _rrf_contribution(rank, k, weight)

        if not acc:
            return []

        fused: List[SearchResult] = []
        date_boosted = 0
        path_boosted = 0
        both = 0

        for doc_id, entry in acc.items():
            doc = entry.representative
            multiplier = self.boost_multiplier(doc, date_keywords, path_keywords)
            dm = date_matches(doc.title, date_keywords)
            pm = path_matches(doc.path, path_keywords)
            date_boosted += dm
            path_boosted += pm
            both += dm and pm

            score = entry.rrf_score * multiplier
            if multiplier != 1.0:
                logger.debug(
                    "boost '%s' (id=%s): %.6f -> %.6f (x%.2f)",
                    doc.title, doc_id, entry.rrf_score, score, multiplier,
                )
            fused.append(doc.with_score(score))

        if date_boosted or path_boosted:
            logger.info(
                "boost statistics: date=%d docs (%.1fx), path=%d docs (%.1fx), both=%d docs (%.2fx)",
                date_boosted, self.config.date_boost,
                path_boosted, self.config.path_boost,
                both, self.config.date_boost * self.config.path_boost,
            )

        fused.sort(key=lambda r: r.score, reverse=True)
        return fused


def weighted_rrf_fuse(
    per_type: Mapping[SearchType, Sequence[SearchResult]],
    config: RRFConfig,
    date_keywords: Sequence[str] = (),
    path_keywords: Sequence[str] = (),
) -> List[SearchResult]:
    return RankFusion(config).fuse(per_type, date_keywords=date_keywords, path_keywords=path_keywords)
