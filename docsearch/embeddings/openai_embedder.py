from __future__ import annotations

from typing import List, Optional

from openai import OpenAI, OpenAIError

from docsearch.core.errors import EmbeddingError


class OpenAIEmbedder:
    def __init__(self, api_key: Optional[str] = None, model: str = "text-embedding-3-small", client: Optional[OpenAI] = None):
        self.client = client or OpenAI(api_key=api_key)
        self.model = model

    def embed(self, text: str) -> List[float]:
        try:
            r = self.client.embeddings.create(model=self.model, input=text)
        except OpenAIError as exc:
            raise EmbeddingError(f"embedding failed with model={self.model}") from exc
        return list(r.data[0].embedding)
