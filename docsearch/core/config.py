from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache
from types import MappingProxyType
from typing import Dict, Mapping, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from docsearch.core.types import FieldWeights, SearchType


@dataclass(frozen=True)
class ScoreBlend:
    text_weight: float = 0.5
    vector_weight: float = 0.5

    def __post_init__(self) -> None:
        if not 0.0 <= self.text_weight <= 1.0:
            raise ValueError("text_weight must be between 0.0 and 1.0")
        if not 0.0 <= self.vector_weight <= 1.0:
            raise ValueError("vector_weight must be between 0.0 and 1.0")

    def combine(self, text_score: float, vector_score: float) -> float:
        return text_score * self.text_weight + vector_score * self.vector_weight


def _default_rrf_weights() -> Dict[SearchType, float]:
    return {
        SearchType.KEYWORD: 1.3,
        SearchType.TITLE: 1.5,
        SearchType.CONTENT: 0.8,
        SearchType.PATH: 3.0,
    }


@dataclass(frozen=True)
class RRFConfig:
    k: float = 60.0
    # stored as a read-only view; left out of the hash
    weights: Mapping[SearchType, float] = field(default_factory=_default_rrf_weights, hash=False)
    date_boost: float = 3.0
    path_boost: float = 2.0

    def __post_init__(self) -> None:
        if self.k <= 0:
            raise ValueError("k must be positive")
        if self.date_boost < 0 or self.path_boost < 0:
            raise ValueError("boost factors must be >= 0")
        object.__setattr__(self, "weights", MappingProxyType(dict(self.weights)))

    def weight(self, search_type: SearchType) -> float:
        return self.weights.get(search_type, 1.0)


DEFAULT_FIELD_WEIGHTS: Mapping[SearchType, FieldWeights] = MappingProxyType({
    SearchType.KEYWORD: FieldWeights.parse("keywords,title,content", "10,5,1"),
    SearchType.TITLE: FieldWeights.parse("title,content,keywords", "10,3,1"),
    SearchType.CONTENT: FieldWeights.parse("content,title,keywords", "10,5,3"),
    SearchType.PATH: FieldWeights.parse("path", "10"),
})

DEFAULT_SCORE_BLENDS: Mapping[SearchType, ScoreBlend] = MappingProxyType({
    SearchType.KEYWORD: ScoreBlend(text_weight=0.7, vector_weight=0.3),
    SearchType.TITLE: ScoreBlend(text_weight=0.7, vector_weight=0.3),
    SearchType.CONTENT: ScoreBlend(text_weight=0.4, vector_weight=0.6),
    SearchType.PATH: ScoreBlend(),
})

DEFAULT_SEARCH_CATEGORY = "confluence-page"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Embeddings (OpenAI)
    openai_api_key: Optional[str] = Field(None, alias="OPENAI_API_KEY")
    embedding_model: str = Field("text-embedding-3-small", alias="EMBEDDING_MODEL")

    # Search engine (Typesense)
    typesense_url: str = Field("http://localhost:8108", alias="TYPESENSE_URL")
    typesense_api_key: Optional[str] = Field(None, alias="TYPESENSE_API_KEY")
    typesense_collection: str = Field("documents", alias="TYPESENSE_COLLECTION")
    typesense_timeout: float = Field(10.0, alias="TYPESENSE_TIMEOUT")
    search_category: str = Field(DEFAULT_SEARCH_CATEGORY, alias="SEARCH_CATEGORY")

    # Permission store
    pg_dsn: str = Field("sqlite:///./docsearch.db", alias="PG_DSN")

    # Retrieval parameters
    search_top_k: int = Field(50, alias="SEARCH_TOP_K")
    max_results: int = Field(50, alias="MAX_RESULTS")

    # RRF fusion parameters
    rrf_k: float = Field(60.0, alias="RRF_K")
    w_keyword: float = Field(1.3, alias="W_KEYWORD")
    w_title: float = Field(1.5, alias="W_TITLE")
    w_content: float = Field(0.8, alias="W_CONTENT")
    w_path: float = Field(3.0, alias="W_PATH")
    date_boost_factor: float = Field(3.0, alias="DATE_BOOST_FACTOR")
    path_boost_factor: float = Field(2.0, alias="PATH_BOOST_FACTOR")

    # Semantic re-ranking (opt-in per request)
    rerank_enabled: bool = Field(True, alias="RERANK_ENABLED")
    rerank_top_n: int = Field(20, alias="RERANK_TOP_N")
    rerank_rrf_weight: float = Field(0.4, alias="RERANK_RRF_WEIGHT")
    rerank_semantic_weight: float = Field(0.6, alias="RERANK_SEMANTIC_WEIGHT")

    log_level: str = Field("INFO", alias="LOG_LEVEL")

    def rrf_config(self) -> RRFConfig:
        return RRFConfig(
            k=self.rrf_k,
            weights={
                SearchType.KEYWORD: self.w_keyword,
                SearchType.TITLE: self.w_title,
                SearchType.CONTENT: self.w_content,
                SearchType.PATH: self.w_path,
            },
            date_boost=self.date_boost_factor,
            path_boost=self.path_boost_factor,
        )

    def category_filter(self) -> Dict[str, str]:
        return {"type": self.search_category}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
