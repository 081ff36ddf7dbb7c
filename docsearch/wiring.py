from __future__ import annotations

from typing import Optional

from docsearch.core.config import Settings, get_settings
from docsearch.core.protocols import Embedder, PermissionStore, SearchEngine
from docsearch.permissions.filter import PermissionFilter
from docsearch.rerank.semantic_reranker import SemanticReranker
from docsearch.retrieval.executor import QueryExecutor
from docsearch.retrieval.fusion import RankFusion
from docsearch.retrieval.hybrid import DocumentRetriever, RetrievalPipeline


def build_retriever(
    settings: Optional[Settings] = None,
    engine: Optional[SearchEngine] = None,
    embedder: Optional[Embedder] = None,
    store: Optional[PermissionStore] = None,
) -> DocumentRetriever:
    """Compose the retriever; any collaborator not passed in is built from settings."""
    settings = settings or get_settings()

    if engine is None:
        from docsearch.indexing.typesense_client import TypesenseSearchClient
        engine = TypesenseSearchClient(
            base_url=settings.typesense_url,
            api_key=settings.typesense_api_key or "",
            collection=settings.typesense_collection,
            timeout=settings.typesense_timeout,
        )

    if embedder is None:
        from docsearch.embeddings.openai_embedder import OpenAIEmbedder
        embedder = OpenAIEmbedder(api_key=settings.openai_api_key, model=settings.embedding_model)

    if store is None:
        from docsearch.permissions.store import SqlPermissionStore
        store = SqlPermissionStore(settings.pg_dsn)

    executor = QueryExecutor(engine, embedder, category_filter=settings.category_filter())
    return DocumentRetriever(
        executor=executor,
        fusion=RankFusion(settings.rrf_config()),
        permission_filter=PermissionFilter(store),
    )


def build_pipeline(settings: Optional[Settings] = None, **collaborators) -> RetrievalPipeline:
    settings = settings or get_settings()
    retriever = build_retriever(settings, **collaborators)

    reranker = None
    if settings.rerank_enabled:
        reranker = SemanticReranker(
            retriever.executor.embedder,
            rrf_weight=settings.rerank_rrf_weight,
            semantic_weight=settings.rerank_semantic_weight,
        )

    return RetrievalPipeline(
        retriever,
        top_k=settings.search_top_k,
        max_results=settings.max_results,
        reranker=reranker,
        rerank_top_n=settings.rerank_top_n,
    )
