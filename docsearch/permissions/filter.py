from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from docsearch.core.protocols import PermissionStore
from docsearch.core.types import Grant, PermissionLevel, SearchResult, path_segments

logger = logging.getLogger(__name__)


def is_path_matching_or_parent(document_path: str, granted_path: str) -> bool:
    """True if granted_path equals document_path or is one of its ancestors."""
    doc = path_segments(document_path)
    granted = path_segments(granted_path)
    if not doc or not granted or len(granted) > len(doc):
        return False
    return doc[: len(granted)] == granted


def most_specific_grant(document_path: str, grants: Sequence[Grant]) -> Optional[Grant]:
    best: Optional[Grant] = None
    best_depth = -1
    for g in grants:
        if not is_path_matching_or_parent(document_path, g.document_path):
            continue
        depth = len(path_segments(g.document_path))
        if depth > best_depth:
            best, best_depth = g, depth
    return best


def filter_by_grants(ranking: Sequence[SearchResult], grants: Sequence[Grant]) -> List[SearchResult]:
    """
    Keep documents whose most specific matching grant is READ.
    Documents with no matching grant are dropped (fail closed).
    """
    if not ranking or not grants:
        return []

    kept: List[SearchResult] = []
    for result in ranking:
        grant = most_specific_grant(result.path, grants)
        if grant is None:
            logger.debug("no grant matches path=%s", result.path)
            continue
        if grant.level is PermissionLevel.READ:
            kept.append(result)
        else:
            logger.debug(
                "denied by most specific grant: path=%s matched=%s level=%s",
                result.path, grant.document_path, grant.level.value,
            )
    return kept


class PermissionFilter:
    def __init__(self, store: PermissionStore):
        self.store = store

    def filter_for_user(self, ranking: Sequence[SearchResult], user_id: int) -> List[SearchResult]:
        if not ranking:
            logger.debug("no results to filter")
            return []

        # store errors propagate: never return unfiltered results
        grants = self.store.find_grants_for_user(user_id)
        reads = sum(1 for g in grants if g.level is PermissionLevel.READ)
        logger.debug(
            "user_id=%s has %d path grants (READ: %d, DENY: %d)",
            user_id, len(grants), reads, len(grants) - reads,
        )

        filtered = filter_by_grants(ranking, grants)
        removed = len(ranking) - len(filtered)
        if removed:
            logger.info(
                "filtered out %d documents for user_id=%s (%d -> %d)",
                removed, user_id, len(ranking), len(filtered),
            )
        return filtered
