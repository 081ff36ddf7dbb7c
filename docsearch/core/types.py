from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple


CHUNK_MARKER = "_chunk_"
PATH_SEPARATOR = ">"


class SearchType(str, Enum):
    # Declaration order is the fusion order
    KEYWORD = "keyword"
    TITLE = "title"
    CONTENT = "content"
    PATH = "path"

    @property
    def embeds_query(self) -> bool:
        return self is SearchType.CONTENT


class PermissionLevel(str, Enum):
    READ = "READ"
    DENY = "DENY"


@dataclass(frozen=True)
class SearchCriterion:
    search_type: SearchType
    terms: Tuple[str, ...] = ()

    @classmethod
    def from_strings(cls, search_type: SearchType, values: Optional[Iterable[str]]) -> "SearchCriterion":
        terms = tuple(v.strip() for v in (values or []) if v and v.strip())
        return cls(search_type=search_type, terms=terms)

    def to_query(self) -> str:
        return " OR ".join(self.terms)

    def is_empty(self) -> bool:
        return len(self.terms) == 0

    def size(self) -> int:
        return len(self.terms)


def keywords(*values: str) -> SearchCriterion:
    return SearchCriterion.from_strings(SearchType.KEYWORD, values)


def titles(*values: str) -> SearchCriterion:
    return SearchCriterion.from_strings(SearchType.TITLE, values)


def contents(*values: str) -> SearchCriterion:
    return SearchCriterion.from_strings(SearchType.CONTENT, values)


def paths(*values: str) -> SearchCriterion:
    return SearchCriterion.from_strings(SearchType.PATH, values)


@dataclass(frozen=True)
class FieldWeights:
    fields: Tuple[str, ...]
    weights: Tuple[int, ...]

    def __post_init__(self) -> None:
        if len(self.fields) != len(self.weights):
            raise ValueError("fields and weights must have same length")

    @classmethod
    def parse(cls, query_by: str, weights: str) -> "FieldWeights":
        # "title,content" + "10,3"
        return cls(
            fields=tuple(f.strip() for f in query_by.split(",") if f.strip()),
            weights=tuple(int(w.strip()) for w in weights.split(",") if w.strip()),
        )


@dataclass(frozen=True)
class HybridQuery:
    text: str
    vector: Tuple[float, ...]
    field_weights: FieldWeights
    filters: Dict[str, str] = field(default_factory=dict)
    limit: int = 10


@dataclass(frozen=True)
class RawHit:
    document: Dict[str, Any]
    lexical_score: float = 0.0
    vector_score: float = 0.0


@dataclass(frozen=True)
class HybridQueryResult:
    hits: List[RawHit] = field(default_factory=list)


@dataclass
class SearchResult:
    id: str
    title: str
    content: str
    path: str
    collection_key: str = ""
    score: float = 0.0
    keywords: str = ""

    def combine_content(self, other: str) -> None:
        self.content = self.content + "\n\n" + other

    def with_score(self, score: float) -> "SearchResult":
        return replace(self, score=score)


@dataclass(frozen=True)
class Grant:
    user_id: int
    document_path: str
    level: PermissionLevel = PermissionLevel.READ
    collection_key: Optional[str] = None
    granted_at: Optional[datetime] = None
    granted_by: Optional[int] = None


@dataclass(frozen=True)
class QueryAnalysis:
    """Facets extracted from the user message before retrieval."""
    keywords: Tuple[str, ...] = ()
    titles: Tuple[str, ...] = ()
    contents: Tuple[str, ...] = ()
    paths: Tuple[str, ...] = ()
    date_keywords: Tuple[str, ...] = ()

    def all_keywords(self) -> List[str]:
        # plain keywords first, then date hints; duplicates dropped
        seen = set()
        out: List[str] = []
        for kw in list(self.keywords) + list(self.date_keywords):
            if kw not in seen:
                seen.add(kw)
                out.append(kw)
        return out

    def criteria(self) -> List[SearchCriterion]:
        return [
            SearchCriterion.from_strings(SearchType.KEYWORD, self.all_keywords()),
            SearchCriterion.from_strings(SearchType.TITLE, self.titles),
            SearchCriterion.from_strings(SearchType.CONTENT, self.contents),
            SearchCriterion.from_strings(SearchType.PATH, self.paths),
        ]


def logical_id(raw_id: str) -> str:
    # "page42_chunk_3" -> "page42"
    if CHUNK_MARKER in raw_id:
        return raw_id.split(CHUNK_MARKER, 1)[0]
    return raw_id


def path_segments(path: str) -> List[str]:
    return [s.strip() for s in path.split(PATH_SEPARATOR) if s.strip()]
