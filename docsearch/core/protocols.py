from __future__ import annotations

from typing import List, Protocol, Sequence, runtime_checkable

from docsearch.core.types import Grant, HybridQuery, HybridQueryResult


@runtime_checkable
class Embedder(Protocol):
    def embed(self, text: str) -> List[float]: ...


@runtime_checkable
class SearchEngine(Protocol):
    def batch_hybrid_search(self, queries: Sequence[HybridQuery]) -> List[HybridQueryResult]:
        """One round trip; result i answers query i."""
        ...


@runtime_checkable
class PermissionStore(Protocol):
    def find_grants_for_user(self, user_id: int) -> List[Grant]: ...
