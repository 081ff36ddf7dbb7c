from __future__ import annotations


class DocsearchError(Exception):
    """Base class for retrieval errors raised by this package."""


class SearchEngineError(DocsearchError):
    """Search backend call failed or returned a malformed response."""


class EmbeddingError(DocsearchError):
    """Embedding model call failed."""


class PermissionStoreError(DocsearchError):
    """Grant lookup or update failed. Filtering must not proceed."""


class PipelineStateError(DocsearchError):
    """A pipeline stage ran without its prerequisite state."""
