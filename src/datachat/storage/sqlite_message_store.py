"""SQLite-backed chat message store."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from uuid import uuid4

import aiosqlite

from datachat.models.domain import ChatMessage
from datachat.storage.migrations import initialize_message_db


def _now() -> datetime:
    return datetime.now(timezone.utc)


class SQLiteMessageStore:
    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    async def initialize(self) -> None:
        await initialize_message_db(self._db_path)

    async def add_message(
        self,
        chat_id: str,
        role: str,
        content: str,
        image_url: str | None = None,
        is_streaming: bool = False,
    ) -> ChatMessage:
        now = _now()
        message = ChatMessage(
            id=str(uuid4()),
            chat_id=chat_id,
            role=role,
            content=content,
            image_url=image_url,
            is_streaming=is_streaming,
            created_at=now,
            updated_at=now,
        )
        async with aiosqlite.connect(self._db_path) as db:
            await db.execute(
                "INSERT INTO messages (id, chat_id, role, content, image_url, is_streaming, "
                "is_error, token_usage, created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?, 0, NULL, ?, ?)",
                (
                    message.id,
                    chat_id,
                    role,
                    content,
                    image_url,
                    int(is_streaming),
                    now.isoformat(),
                    now.isoformat(),
                ),
            )
            await db.commit()
        return message

    async def update_message(
        self,
        message_id: str,
        content: str,
        is_streaming: bool = False,
        is_error: bool = False,
        token_usage: dict | None = None,
    ) -> None:
        async with aiosqlite.connect(self._db_path) as db:
            await db.execute(
                "UPDATE messages SET content = ?, is_streaming = ?, is_error = ?, "
                "token_usage = ?, updated_at = ? WHERE id = ?",
                (
                    content,
                    int(is_streaming),
                    int(is_error),
                    json.dumps(token_usage) if token_usage is not None else None,
                    _now().isoformat(),
                    message_id,
                ),
            )
            await db.commit()

    async def get_message(self, message_id: str) -> ChatMessage | None:
        async with aiosqlite.connect(self._db_path) as db:
            db.row_factory = aiosqlite.Row
            async with db.execute("SELECT * FROM messages WHERE id = ?", (message_id,)) as cursor:
                row = await cursor.fetchone()
                return self._row_to_message(row) if row else None

    async def get_messages_by_chat(self, chat_id: str) -> list[ChatMessage]:
        async with aiosqlite.connect(self._db_path) as db:
            db.row_factory = aiosqlite.Row
            async with db.execute(
                "SELECT * FROM messages WHERE chat_id = ? ORDER BY created_at, rowid",
                (chat_id,),
            ) as cursor:
                rows = await cursor.fetchall()
                return [self._row_to_message(r) for r in rows]

    @staticmethod
    def _row_to_message(row: aiosqlite.Row) -> ChatMessage:
        return ChatMessage(
            id=row["id"],
            chat_id=row["chat_id"],
            role=row["role"],
            content=row["content"],
            image_url=row["image_url"],
            is_streaming=bool(row["is_streaming"]),
            is_error=bool(row["is_error"]),
            token_usage=json.loads(row["token_usage"]) if row["token_usage"] else None,
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )
