"""Protocol for chat message persistence."""

from __future__ import annotations

from typing import Protocol

from datachat.models.domain import ChatMessage


class MessageStore(Protocol):
    async def add_message(
        self,
        chat_id: str,
        role: str,
        content: str,
        image_url: str | None = None,
        is_streaming: bool = False,
    ) -> ChatMessage: ...

    async def update_message(
        self,
        message_id: str,
        content: str,
        is_streaming: bool = False,
        is_error: bool = False,
        token_usage: dict | None = None,
    ) -> None: ...

    async def get_messages_by_chat(self, chat_id: str) -> list[ChatMessage]: ...
