"""Abstract base class for conversation store backends.

This module defines the interface for conversation persistence.
The abstraction hides:
- Storage format (JSON files, SQLite, in-memory dicts)
- Persistence mechanism and connection management

Backends only implement the four record primitives. The store
operations, and the invariants they enforce (append-only history,
read-only sources, monotonic timestamps, last-write-wins imports),
live here so every backend behaves the same.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any

from .exceptions import NotFoundError, ReadOnlyError
from .models import (
    DEFAULT_TITLE,
    Conversation,
    ConversationFilter,
    ConversationSource,
    ConversationSummary,
    Message,
)

logger = logging.getLogger(__name__)


class ConversationStore(ABC):
    """Abstract conversation store.

    Provides a unified interface for creating, listing, updating and
    deleting conversations across different storage backends.

    Supports the async context manager protocol:
        async with create_conversation_store("sqlite", path=db) as store:
            conversation = await store.create()
    """

    @abstractmethod
    async def connect(self) -> None:
        """Initialize the store backend.

        Raises:
            StorageError: If the backing storage cannot be opened
        """

    @abstractmethod
    async def disconnect(self) -> None:
        """Close the store backend gracefully."""

    @property
    @abstractmethod
    def backend_type(self) -> str:
        """Get the backend type identifier."""

    @abstractmethod
    async def _read(self, conversation_id: str) -> Conversation | None:
        """Load one conversation, or None if it does not exist.

        Raises:
            StorageError: If the record exists but cannot be read
        """

    @abstractmethod
    async def _read_all(self) -> list[Conversation]:
        """Load every readable conversation.

        Corrupt records are logged and skipped.
        """

    @abstractmethod
    async def _write(self, conversation: Conversation) -> None:
        """Insert or replace a conversation.

        Raises:
            StorageError: If the write fails
        """

    @abstractmethod
    async def _remove(self, conversation_id: str) -> bool:
        """Remove a conversation. Returns True if something was removed."""

    async def __aenter__(self) -> "ConversationStore":
        await self.connect()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.disconnect()

    async def create(
        self,
        title: str | None = None,
        source: ConversationSource = ConversationSource.LOCAL,
        user_id: str | None = None,
    ) -> Conversation:
        """Create and persist a new, empty conversation.

        Args:
            title: Explicit title (None keeps the placeholder until the
                first user message names it)
            source: Origin of the conversation
            user_id: Optional owning user

        Returns:
            The persisted conversation
        """
        conversation = Conversation(
            title=title.strip() if title and title.strip() else DEFAULT_TITLE,
            source=source,
            user_id=user_id,
        )
        await self._write(conversation)
        logger.debug("Created conversation %s", conversation.id)
        return conversation

    async def get(self, conversation_id: str) -> Conversation:
        """Retrieve a conversation by id.

        Raises:
            NotFoundError: If the id is unknown
            StorageError: If the record cannot be read
        """
        conversation = await self._read(conversation_id)
        if conversation is None:
            raise NotFoundError(conversation_id)
        return conversation

    async def exists(self, conversation_id: str) -> bool:
        return await self._read(conversation_id) is not None

    async def append(self, conversation_id: str, message: Message) -> Conversation:
        """Append a message to a conversation.

        Args:
            conversation_id: Target conversation
            message: The message to append

        Returns:
            The updated conversation

        Raises:
            NotFoundError: If the id is unknown
            ReadOnlyError: If the conversation source forbids writes
            StorageError: If persisting fails
        """
        conversation = await self.get(conversation_id)
        if not conversation.is_writable:
            raise ReadOnlyError(conversation_id, conversation.source.value)

        conversation.add_message(message)
        await self._write(conversation)
        logger.debug(
            "Appended %s message %s to conversation %s",
            message.role.value,
            message.id,
            conversation_id,
        )
        return conversation

    async def delete(self, conversation_id: str) -> bool:
        """Delete a conversation. Deleting an absent id is a no-op.

        Returns:
            True if a conversation was removed
        """
        removed = await self._remove(conversation_id)
        if removed:
            logger.debug("Deleted conversation %s", conversation_id)
        return removed

    async def rename(self, conversation_id: str, title: str) -> Conversation:
        """Set a user-chosen title.

        Raises:
            NotFoundError: If the id is unknown
            ValueError: If the title is blank
        """
        title = title.strip()
        if not title:
            raise ValueError("Title must not be blank")

        conversation = await self.get(conversation_id)
        conversation.title = title
        conversation.touch()
        await self._write(conversation)
        return conversation

    async def set_favorite(self, conversation_id: str, is_favorite: bool) -> Conversation:
        """Mark or unmark a conversation as favorite."""
        conversation = await self.get(conversation_id)
        conversation.is_favorite = is_favorite
        await self._write(conversation)
        return conversation

    async def set_tags(self, conversation_id: str, tags: list[str]) -> Conversation:
        """Replace the tags of a conversation.

        Blank tags are dropped and duplicates removed, keeping first-seen order.
        """
        conversation = await self.get(conversation_id)
        cleaned = [t.strip() for t in tags if t.strip()]
        conversation.tags = list(dict.fromkeys(cleaned))
        await self._write(conversation)
        return conversation

    async def move_to_folder(self, conversation_id: str, folder_id: str | None) -> Conversation:
        """Move a conversation into a folder, or out of any folder with None."""
        conversation = await self.get(conversation_id)
        conversation.folder_id = folder_id
        await self._write(conversation)
        return conversation

    async def import_conversation(self, conversation: Conversation) -> bool:
        """Merge a conversation from another writer (last write wins).

        The incoming copy replaces the stored one only when it is strictly
        newer by ``updated_at``. Source restrictions do not apply here:
        this is how externally sourced conversations enter the store.

        Args:
            conversation: The incoming conversation

        Returns:
            True if the incoming copy was stored
        """
        existing = await self._read(conversation.id)
        if existing is not None and conversation.updated_at <= existing.updated_at:
            logger.debug(
                "Kept stored copy of conversation %s (incoming is not newer)",
                conversation.id,
            )
            return False

        await self._write(conversation)
        logger.debug("Imported conversation %s", conversation.id)
        return True

    # Defined last: the name shadows the builtin inside the class body.
    async def list(self, filter: ConversationFilter | None = None) -> list[ConversationSummary]:
        """List conversations, most recently updated first.

        Args:
            filter: Optional criteria; conversations that do not match are omitted

        Returns:
            Conversation summaries ordered by ``updated_at`` descending
        """
        conversations = await self._read_all()
        if filter is not None and filter.is_active:
            conversations = [c for c in conversations if filter.matches(c)]
        conversations.sort(key=lambda c: (c.updated_at, c.created_at), reverse=True)
        return [c.to_summary() for c in conversations]

