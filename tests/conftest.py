from __future__ import annotations

from typing import Dict, List, Optional, Sequence

import pytest

from docsearch.core.types import Grant, HybridQuery, HybridQueryResult, PermissionLevel, RawHit


def hit(doc_id: str, title: str = "", content: str = "", path: str = "", lexical: float = 0.5, vector: float = 0.5, **extra) -> RawHit:
    document = {
        "id": doc_id,
        "content": content or f"content of {doc_id}",
        "metadata": {"title": title or doc_id, "path": path, **extra},
    }
    return RawHit(document=document, lexical_score=lexical, vector_score=vector)


class FakeEmbedder:
    def __init__(self, dim: int = 4):
        self.dim = dim
        self.calls: List[str] = []

    def embed(self, text: str) -> List[float]:
        self.calls.append(text)
        return [float(len(text) % 7 + 1)] * self.dim


class FakeEngine:
    """Answers each query from a table keyed by query text."""

    def __init__(self, responses: Optional[Dict[str, List[RawHit]]] = None, error: Optional[Exception] = None):
        self.responses = responses or {}
        self.error = error
        self.batches: List[List[HybridQuery]] = []

    def batch_hybrid_search(self, queries: Sequence[HybridQuery]) -> List[HybridQueryResult]:
        self.batches.append(list(queries))
        if self.error is not None:
            raise self.error
        return [HybridQueryResult(hits=list(self.responses.get(q.text, []))) for q in queries]


class FakePermissionStore:
    def __init__(self, grants: Optional[List[Grant]] = None, error: Optional[Exception] = None):
        self.grants = grants or []
        self.error = error
        self.lookups: List[int] = []

    def find_grants_for_user(self, user_id: int) -> List[Grant]:
        self.lookups.append(user_id)
        if self.error is not None:
            raise self.error
        return [g for g in self.grants if g.user_id == user_id]


def read(path: str, user_id: int = 1) -> Grant:
    return Grant(user_id=user_id, document_path=path, level=PermissionLevel.READ)


def deny(path: str, user_id: int = 1) -> Grant:
    return Grant(user_id=user_id, document_path=path, level=PermissionLevel.DENY)


@pytest.fixture
def embedder() -> FakeEmbedder:
    return FakeEmbedder()
