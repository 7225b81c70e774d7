"""Idempotent database schema creation."""

from __future__ import annotations

import aiosqlite

MESSAGES_TABLE = """
CREATE TABLE IF NOT EXISTS messages (
    id TEXT PRIMARY KEY,
    chat_id TEXT NOT NULL,
    role TEXT NOT NULL,
    content TEXT NOT NULL,
    image_url TEXT,
    is_streaming INTEGER NOT NULL DEFAULT 0,
    is_error INTEGER NOT NULL DEFAULT 0,
    token_usage TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
)
"""

MESSAGES_CHAT_INDEX = """
CREATE INDEX IF NOT EXISTS idx_messages_chat_id ON messages(chat_id, created_at)
"""


async def initialize_message_db(db_path: str) -> None:
    async with aiosqlite.connect(db_path) as db:
        await db.execute(MESSAGES_TABLE)
        await db.execute(MESSAGES_CHAT_INDEX)
        await db.commit()
