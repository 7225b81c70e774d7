"""Google Gemini LLM provider using the google-genai SDK."""

from __future__ import annotations

import base64
from collections.abc import AsyncIterator

from google import genai
from google.genai import types

from datachat.exceptions import GenerationError
from datachat.models.domain import ImageAttachment, StreamFragment, TokenUsage
from datachat.observability.logger import get_logger

logger = get_logger("gemini")


class GeminiProvider:
    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.5-flash",
        temperature: float = 0.1,
        max_tokens: int = 4096,
    ) -> None:
        self._client = genai.Client(api_key=api_key)
        self._model = model
        self._temperature = temperature
        self._max_tokens = max_tokens

    async def generate(
        self,
        prompt: str,
        system: str | None = None,
        temperature: float = 0.1,
        max_tokens: int = 4096,
    ) -> str:
        try:
            config = types.GenerateContentConfig(
                temperature=temperature,
                max_output_tokens=max_tokens,
            )
            if system:
                config.system_instruction = system

            response = await self._client.aio.models.generate_content(
                model=self._model,
                contents=prompt,
                config=config,
            )
            return response.text or ""
        except Exception as e:
            raise GenerationError(f"Gemini generation failed: {e}") from e

    async def generate_stream(
        self,
        prompt: str,
        system: str | None = None,
        image: ImageAttachment | None = None,
    ) -> AsyncIterator[StreamFragment]:
        """Yield text fragments; the last fragment carries usage metadata when available."""
        config = types.GenerateContentConfig(
            temperature=self._temperature,
            max_output_tokens=self._max_tokens,
        )
        if system:
            config.system_instruction = system

        contents: list = [prompt]
        if image is not None:
            contents.insert(
                0,
                types.Part.from_bytes(
                    data=base64.b64decode(image.data), mime_type=image.mime_type
                ),
            )

        usage: TokenUsage | None = None
        try:
            stream = await self._client.aio.models.generate_content_stream(
                model=self._model,
                contents=contents,
                config=config,
            )
            async for chunk in stream:
                if chunk.usage_metadata is not None:
                    usage = _to_usage(chunk.usage_metadata) or usage
                if chunk.text:
                    yield StreamFragment(text=chunk.text)
        except Exception as e:
            raise GenerationError(f"Gemini stream failed: {e}") from e

        if usage is None:
            logger.warning("stream_usage_missing", model=self._model)
        else:
            yield StreamFragment(text="", usage=usage)


def _to_usage(metadata: types.GenerateContentResponseUsageMetadata) -> TokenUsage | None:
    if not metadata.total_token_count:
        return None
    return TokenUsage(
        prompt_tokens=metadata.prompt_token_count or 0,
        completion_tokens=metadata.candidates_token_count or 0,
        total_tokens=metadata.total_token_count,
    )
