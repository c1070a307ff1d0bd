"""SQLite conversation store backend.

Provides persistent conversation storage using a SQLite database.
Uses aiosqlite for async access.
"""

import json
import logging
from pathlib import Path

import aiosqlite
from pydantic import ValidationError

from .base import ConversationStore
from .exceptions import StorageError
from .models import Conversation, Message

logger = logging.getLogger(__name__)


class SQLiteConversationStore(ConversationStore):
    """SQLite-backed conversation store.

    Conversation attributes live in the ``conversations`` table; each
    message is one JSON payload row in ``messages``, ordered by position.
    """

    def __init__(self, path: str | Path = "./conversations.db"):
        self._db_path = Path(path).expanduser()
        self._connection: aiosqlite.Connection | None = None

    async def connect(self) -> None:
        """Open the database connection and create the schema."""
        if self._connection is not None:
            return

        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            self._connection = await aiosqlite.connect(self._db_path)
            await self._connection.execute("PRAGMA foreign_keys = ON")
            await self._create_schema()
        except (OSError, aiosqlite.Error) as e:
            raise StorageError(f"Cannot open conversation database {self._db_path}") from e

    async def _create_schema(self) -> None:
        """Create database tables."""
        await self._connection.execute("""
            CREATE TABLE IF NOT EXISTS conversations (
                id TEXT PRIMARY KEY,
                title TEXT NOT NULL,
                source TEXT NOT NULL DEFAULT 'local',
                user_id TEXT,
                summary TEXT,
                is_favorite INTEGER NOT NULL DEFAULT 0,
                tags TEXT NOT NULL DEFAULT '[]',
                folder_id TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)

        await self._connection.execute("""
            CREATE TABLE IF NOT EXISTS messages (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                conversation_id TEXT NOT NULL,
                position INTEGER NOT NULL,
                payload TEXT NOT NULL,
                FOREIGN KEY (conversation_id) REFERENCES conversations(id) ON DELETE CASCADE
            )
        """)

        await self._connection.execute("""
            CREATE INDEX IF NOT EXISTS idx_messages_conversation
            ON messages(conversation_id, position)
        """)

        await self._connection.commit()

    async def disconnect(self) -> None:
        """Close database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None

    def _db(self) -> aiosqlite.Connection:
        if self._connection is None:
            raise StorageError("SQLite conversation store is not connected")
        return self._connection

    async def _read(self, conversation_id: str) -> Conversation | None:
        db = self._db()
        try:
            async with db.execute(
                """
                SELECT id, title, source, user_id, summary, is_favorite,
                       tags, folder_id, created_at, updated_at
                FROM conversations
                WHERE id = ?
                """,
                (conversation_id,)
            ) as cursor:
                row = await cursor.fetchone()

            if row is None:
                return None

            async with db.execute(
                "SELECT payload FROM messages WHERE conversation_id = ? ORDER BY position ASC",
                (conversation_id,)
            ) as cursor:
                payloads = await cursor.fetchall()
        except aiosqlite.Error as e:
            raise StorageError(f"Failed to load conversation {conversation_id}") from e

        (
            id_, title, source, user_id, summary, is_favorite,
            tags_json, folder_id, created_at, updated_at,
        ) = row

        try:
            return Conversation(
                id=id_,
                title=title,
                source=source,
                user_id=user_id,
                summary=summary,
                is_favorite=bool(is_favorite),
                tags=json.loads(tags_json),
                folder_id=folder_id,
                created_at=created_at,
                updated_at=updated_at,
                messages=[Message.model_validate_json(p[0]) for p in payloads],
            )
        except (ValueError, ValidationError) as e:
            raise StorageError(f"Corrupt conversation record {conversation_id}") from e

    async def _read_all(self) -> list[Conversation]:
        try:
            async with self._db().execute("SELECT id FROM conversations") as cursor:
                ids = [row[0] for row in await cursor.fetchall()]
        except aiosqlite.Error as e:
            raise StorageError("Failed to list conversations") from e

        conversations = []
        for conversation_id in ids:
            try:
                conversation = await self._read(conversation_id)
            except StorageError as e:
                logger.warning("Skipping unreadable conversation %s: %s", conversation_id, e.__cause__)
                continue
            if conversation is not None:
                conversations.append(conversation)
        return conversations

    async def _write(self, conversation: Conversation) -> None:
        db = self._db()
        try:
            await db.execute("""
                INSERT INTO conversations
                (id, title, source, user_id, summary, is_favorite, tags, folder_id, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    title = excluded.title,
                    source = excluded.source,
                    user_id = excluded.user_id,
                    summary = excluded.summary,
                    is_favorite = excluded.is_favorite,
                    tags = excluded.tags,
                    folder_id = excluded.folder_id,
                    created_at = excluded.created_at,
                    updated_at = excluded.updated_at
            """, (
                conversation.id,
                conversation.title,
                conversation.source.value,
                conversation.user_id,
                conversation.summary,
                int(conversation.is_favorite),
                json.dumps(conversation.tags, ensure_ascii=False),
                conversation.folder_id,
                conversation.created_at.isoformat(),
                conversation.updated_at.isoformat(),
            ))

            await db.execute(
                "DELETE FROM messages WHERE conversation_id = ?",
                (conversation.id,)
            )

            await db.executemany("""
                INSERT INTO messages (conversation_id, position, payload)
                VALUES (?, ?, ?)
            """, [
                (conversation.id, position, message.model_dump_json())
                for position, message in enumerate(conversation.messages)
            ])

            await db.commit()
        except aiosqlite.Error as e:
            await db.rollback()
            raise StorageError(f"Failed to save conversation {conversation.id}") from e

    async def _remove(self, conversation_id: str) -> bool:
        db = self._db()
        try:
            cursor = await db.execute(
                "DELETE FROM conversations WHERE id = ?",
                (conversation_id,)
            )
            removed = cursor.rowcount > 0
            await db.commit()
        except aiosqlite.Error as e:
            raise StorageError(f"Failed to delete conversation {conversation_id}") from e
        return removed

    @property
    def backend_type(self) -> str:
        return "sqlite"

    @property
    def db_path(self) -> Path:
        return self._db_path
