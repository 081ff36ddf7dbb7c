from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

import requests

from docsearch.core.errors import SearchEngineError
from docsearch.core.types import HybridQuery, HybridQueryResult, RawHit

logger = logging.getLogger(__name__)


def _vector_query(query: HybridQuery) -> Optional[str]:
    if not query.vector:
        return None
    values = ",".join(f"{x:.8f}" for x in query.vector)
    return f"embedding:([{values}], k:{query.limit})"


def _filter_by(filters: Dict[str, str]) -> Optional[str]:
    if not filters:
        return None
    return " && ".join(f"{k}:={v}" for k, v in filters.items())


def to_search_params(query: HybridQuery, collection: str) -> Dict[str, Any]:
    params: Dict[str, Any] = {
        "collection": collection,
        "q": query.text,
        "query_by": ",".join(query.field_weights.fields),
        "query_by_weights": ",".join(str(w) for w in query.field_weights.weights),
        "per_page": query.limit,
        "page": 1,
        "prefix": True,  # "2508" matches "250804"
        "num_typos": 2,
        "typo_tokens_threshold": 0,
        "exclude_fields": "embedding",
    }
    vq = _vector_query(query)
    if vq is not None:
        params["vector_query"] = vq
    fb = _filter_by(query.filters)
    if fb is not None:
        params["filter_by"] = fb
    return params


def to_query_result(payload: Dict[str, Any]) -> HybridQueryResult:
    hits = payload.get("hits") or []
    max_match = max((float(h.get("text_match") or 0) for h in hits), default=0.0)

    out: List[RawHit] = []
    for h in hits:
        text_match = float(h.get("text_match") or 0)
        distance = h.get("vector_distance")
        out.append(
            RawHit(
                document=h.get("document") or {},
                lexical_score=text_match / max_match if max_match > 0 else 0.0,
                vector_score=1.0 / (1.0 + float(distance)) if distance is not None else 0.0,
            )
        )
    return HybridQueryResult(hits=out)


class TypesenseSearchClient:
    """Hybrid search over a Typesense collection using the multi_search endpoint."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        collection: str,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.collection = collection
        self.timeout = timeout
        self.session = session or requests.Session()

    def batch_hybrid_search(self, queries: Sequence[HybridQuery]) -> List[HybridQueryResult]:
        if not queries:
            return []

        body = {"searches": [to_search_params(q, self.collection) for q in queries]}
        logger.debug("typesense multi-search with %d queries", len(queries))

        try:
            r = self.session.post(
                f"{self.base_url}/multi_search",
                json=body,
                headers={"X-TYPESENSE-API-KEY": self.api_key},
                timeout=self.timeout,
            )
            r.raise_for_status()
            payload = r.json()
        except requests.RequestException as exc:
            logger.error("typesense multi-search failed: %s", exc)
            raise SearchEngineError(f"Typesense multi-search failed: {exc}") from exc
        except ValueError as exc:
            raise SearchEngineError("Typesense returned a non-JSON response") from exc

        results = payload.get("results") or []
        out: List[HybridQueryResult] = []
        for i, res in enumerate(results):
            if "error" in res:
                # one failed search fails the whole batch
                raise SearchEngineError(f"Typesense search {i} failed: {res.get('error')}")
            out.append(to_query_result(res))
        return out
