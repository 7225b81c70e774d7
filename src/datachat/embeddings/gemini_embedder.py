"""Google Gemini embedding provider using the google-genai SDK."""

from __future__ import annotations

from google import genai
from google.genai import types

from datachat.exceptions import EmbeddingError
from datachat.observability.logger import get_logger

logger = get_logger("embeddings")


class GeminiEmbedder:
    def __init__(
        self,
        api_key: str,
        model: str = "text-embedding-004",
        dimensions: int = 768,
    ) -> None:
        self._client = genai.Client(api_key=api_key)
        self._model = model
        self._dimensions = dimensions

    @property
    def dimensions(self) -> int:
        return self._dimensions

    async def embed_query(self, query: str) -> list[float]:
        try:
            response = await self._client.aio.models.embed_content(
                model=self._model,
                contents=query,
                config=types.EmbedContentConfig(
                    task_type="RETRIEVAL_QUERY",
                    output_dimensionality=self._dimensions,
                ),
            )
        except Exception as e:
            raise EmbeddingError(f"Gemini embedding failed: {e}") from e
        if not response.embeddings or not response.embeddings[0].values:
            raise EmbeddingError("Gemini returned no embedding values")
        logger.debug("embedded_query", model=self._model, chars=len(query))
        return list(response.embeddings[0].values)
