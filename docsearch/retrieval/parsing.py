from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterable, List, Optional

from docsearch.core.config import ScoreBlend
from docsearch.core.types import RawHit, SearchResult, logical_id

logger = logging.getLogger(__name__)

ScoreCombiner = Callable[[float, float], float]


def linear_blend(text_weight: float = 0.5, vector_weight: float = 0.5) -> ScoreCombiner:
    return ScoreBlend(text_weight=text_weight, vector_weight=vector_weight).combine


def _field(document: Dict[str, Any], name: str) -> Optional[str]:
    # flat ("metadata.title"), nested ({"metadata": {"title": ...}}) or top-level
    value = document.get(f"metadata.{name}")
    if value is None:
        metadata = document.get("metadata")
        if isinstance(metadata, dict):
            value = metadata.get(name)
    if value is None:
        value = document.get(name)
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value)
    return str(value)


def parse_hits(hits: Iterable[RawHit], combiner: Optional[ScoreCombiner] = None) -> List[SearchResult]:
    """
    Convert engine hits into SearchResults sorted by combined score (desc).
    Chunk ids are collapsed to their logical document id.
    """
    combine = combiner or linear_blend()
    results: List[SearchResult] = []

    for hit in hits:
        doc = hit.document or {}
        raw_id = str(doc.get("id") or _field(doc, "id") or "")
        if not raw_id:
            logger.debug("skipping hit without id: title=%s", _field(doc, "title"))
            continue
        score = combine(float(hit.lexical_score), float(hit.vector_score))

        result = SearchResult(
            id=logical_id(raw_id),
            title=_field(doc, "title") or "Untitled",
            content=str(doc.get("content") or ""),
            path=_field(doc, "path") or "",
            collection_key=_field(doc, "collection_key") or _field(doc, "spaceKey") or "",
            score=score,
            keywords=_field(doc, "keywords") or "",
        )
        logger.debug(
            "parse id=%s title=%s lexical=%.4f vector=%.4f combined=%.4f",
            result.id, result.title, hit.lexical_score, hit.vector_score, score,
        )
        results.append(result)

    # sort is stable: equal scores keep engine order
    results.sort(key=lambda r: r.score, reverse=True)
    return results


def deduplicate(results: Iterable[SearchResult]) -> List[SearchResult]:
    """
    Merge results that share a logical id.

    The first occurrence is kept as the representative; later chunks append
    their content (blank-line separated) and may raise the score to the
    group maximum.
    """
    merged: Dict[str, SearchResult] = {}
    chunk_counts: Dict[str, int] = {}

    for r in results:
        base = merged.get(r.id)
        if base is None:
            # copy so merging never mutates the caller's records
            merged[r.id] = SearchResult(
                id=r.id,
                title=r.title,
                content=r.content,
                path=r.path,
                collection_key=r.collection_key,
                score=r.score,
                keywords=r.keywords,
            )
            chunk_counts[r.id] = 1
            continue

        base.combine_content(r.content)
        base.score = max(base.score, r.score)
        chunk_counts[r.id] += 1

    for doc_id, n in chunk_counts.items():
        if n > 1:
            logger.debug(
                "merge page %s (%s): %d chunks, %d chars",
                doc_id, merged[doc_id].title, n, len(merged[doc_id].content),
            )

    out = list(merged.values())
    out.sort(key=lambda r: r.score, reverse=True)
    return out
