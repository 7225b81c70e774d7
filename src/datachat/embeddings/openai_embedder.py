"""OpenAI embedding provider."""

from __future__ import annotations

from openai import AsyncOpenAI

from datachat.exceptions import EmbeddingError
from datachat.observability.logger import get_logger

logger = get_logger("embeddings")


class OpenAIEmbedder:
    def __init__(
        self,
        api_key: str,
        model: str = "text-embedding-3-small",
        dimensions: int = 1536,
    ) -> None:
        self._client = AsyncOpenAI(api_key=api_key)
        self._model = model
        self._dimensions = dimensions

    @property
    def dimensions(self) -> int:
        return self._dimensions

    async def embed_query(self, query: str) -> list[float]:
        try:
            response = await self._client.embeddings.create(
                input=[query], model=self._model, dimensions=self._dimensions
            )
        except Exception as e:
            raise EmbeddingError(f"Failed to embed query: {e}") from e
        logger.debug("embedded_query", model=self._model, chars=len(query))
        return response.data[0].embedding
