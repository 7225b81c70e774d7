"""Protocol for LLM providers."""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Protocol

from datachat.models.domain import ImageAttachment, StreamFragment


class LLMProvider(Protocol):
    async def generate(
        self,
        prompt: str,
        system: str | None = None,
        temperature: float = 0.1,
        max_tokens: int = 4096,
    ) -> str: ...

    def generate_stream(
        self,
        prompt: str,
        system: str | None = None,
        image: ImageAttachment | None = None,
    ) -> AsyncIterator[StreamFragment]: ...
