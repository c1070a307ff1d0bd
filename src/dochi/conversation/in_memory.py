"""In-memory conversation store backend.

Simple dict-based storage for session-only use.
Data is lost when the application exits.
"""

from .base import ConversationStore
from .models import Conversation


class InMemoryConversationStore(ConversationStore):
    """In-memory conversation store (session-only).

    Conversations are copied on the way in and out, so callers never
    share mutable state with the store. Suitable for tests and
    single-session use.
    """

    def __init__(self) -> None:
        self._conversations: dict[str, Conversation] = {}

    async def connect(self) -> None:
        """Initialize store (no-op for in-memory)."""
        pass

    async def disconnect(self) -> None:
        """Close store (no-op for in-memory)."""
        pass

    async def _read(self, conversation_id: str) -> Conversation | None:
        conversation = self._conversations.get(conversation_id)
        return conversation.model_copy(deep=True) if conversation is not None else None

    async def _read_all(self) -> list[Conversation]:
        return [c.model_copy(deep=True) for c in self._conversations.values()]

    async def _write(self, conversation: Conversation) -> None:
        self._conversations[conversation.id] = conversation.model_copy(deep=True)

    async def _remove(self, conversation_id: str) -> bool:
        return self._conversations.pop(conversation_id, None) is not None

    @property
    def backend_type(self) -> str:
        return "memory"
