from __future__ import annotations

import json
import math
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from rank_bm25 import BM25Okapi
from sqlalchemy import text
from sqlalchemy.engine import Engine

from docsearch.core.types import HybridQuery, HybridQueryResult, RawHit


_WORD_RE = re.compile(r"\w+", re.UNICODE)
_OR_RE = re.compile(r"\s+OR\s+")


def simple_tokenize(s: str) -> List[str]:
    return [t.lower() for t in _WORD_RE.findall(s or "")]


def query_tokens(query_text: str) -> List[str]:
    # "a OR b c" -> ["a", "b", "c"]; the OR joiner is not a term
    tokens: List[str] = []
    for part in _OR_RE.split(query_text or ""):
        tokens.extend(simple_tokenize(part))
    return tokens


def cosine(a: Sequence[float], b: Sequence[float]) -> float:
    if not a or not b or len(a) != len(b):
        return 0.0
    dot = sum(x * y for x, y in zip(a, b))
    na = math.sqrt(sum(x * x for x in a))
    nb = math.sqrt(sum(y * y for y in b))
    if na == 0 or nb == 0:
        return 0.0
    return dot / (na * nb)


@dataclass
class IndexedDocument:
    id: str
    fields: Dict[str, Any]
    embedding: List[float] = field(default_factory=list)

    def field_text(self, name: str) -> str:
        value = self.fields.get(name)
        if value is None:
            return ""
        if isinstance(value, (list, tuple)):
            return " ".join(str(v) for v in value)
        return str(value)

    def as_hit_document(self) -> Dict[str, Any]:
        return {"id": self.id, **self.fields}


class BM25Index:
    """
    In-process hybrid engine: per-field BM25 for the lexical side, cosine
    similarity against stored embeddings for the vector side.
    Both scores are reported in [0, 1].
    """

    def __init__(self, documents: Sequence[IndexedDocument], text_weight: float = 0.5, vector_weight: float = 0.5):
        self.documents = list(documents)
        self.text_weight = text_weight
        self.vector_weight = vector_weight
        self._bm25: Dict[str, Optional[BM25Okapi]] = {}

    def _field_index(self, name: str) -> Optional[BM25Okapi]:
        if name not in self._bm25:
            tokenized = [simple_tokenize(d.field_text(name)) for d in self.documents]
            # BM25Okapi divides by average doc length; a field with no tokens has no index
            self._bm25[name] = BM25Okapi(tokenized) if any(tokenized) else None
        return self._bm25[name]

    def _lexical_scores(self, query: HybridQuery) -> List[float]:
        tokens = query_tokens(query.text)
        totals = [0.0] * len(self.documents)
        if not tokens:
            return totals

        for name, weight in zip(query.field_weights.fields, query.field_weights.weights):
            bm25 = self._field_index(name)
            if bm25 is None:
                continue
            for i, s in enumerate(bm25.get_scores(tokens)):
                totals[i] += weight * max(float(s), 0.0)

        top = max(totals, default=0.0)
        if top <= 0:
            return [0.0] * len(self.documents)
        return [t / top for t in totals]

    def _matches_filters(self, doc: IndexedDocument, filters: Dict[str, str]) -> bool:
        return all(str(doc.fields.get(k, "")) == v for k, v in filters.items())

    def search(self, query: HybridQuery) -> HybridQueryResult:
        if not self.documents:
            return HybridQueryResult(hits=[])

        lexical = self._lexical_scores(query)
        scored: List[Tuple[float, int, RawHit]] = []
        for i, doc in enumerate(self.documents):
            if not self._matches_filters(doc, query.filters):
                continue
            vec = max(cosine(query.vector, doc.embedding), 0.0) if query.vector else 0.0
            if lexical[i] == 0.0 and vec == 0.0:
                continue
            rank_score = self.text_weight * lexical[i] + self.vector_weight * vec
            scored.append((rank_score, i, RawHit(document=doc.as_hit_document(), lexical_score=lexical[i], vector_score=vec)))

        scored.sort(key=lambda t: (-t[0], t[1]))
        return HybridQueryResult(hits=[hit for _, _, hit in scored[: query.limit]])

    def batch_hybrid_search(self, queries: Sequence[HybridQuery]) -> List[HybridQueryResult]:
        return [self.search(q) for q in queries]

    @classmethod
    def build_from_pg(cls, engine: Engine, category: Optional[str] = None) -> "BM25Index":
        where_clause = ""
        params: Dict[str, Any] = {}
        if category:
            where_clause = "WHERE type = :type"
            params["type"] = category

        sql = text(f"""
        SELECT id, title, content, path, keywords, collection_key, type, embedding
        FROM search_documents
        {where_clause}
        ORDER BY id;
        """)

        docs: List[IndexedDocument] = []
        with engine.connect() as conn:
            rows = conn.execute(sql, params).mappings().all()
            for r in rows:
                embedding = r["embedding"]
                if isinstance(embedding, str):
                    embedding = json.loads(embedding)
                docs.append(
                    IndexedDocument(
                        id=r["id"],
                        fields={
                            "title": r["title"] or "",
                            "content": r["content"] or "",
                            "path": r["path"] or "",
                            "keywords": r["keywords"] or "",
                            "collection_key": r["collection_key"] or "",
                            "type": r["type"] or "",
                        },
                        embedding=[float(x) for x in (embedding or [])],
                    )
                )
        return cls(docs)
