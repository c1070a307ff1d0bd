"""Factory for creating conversation store backends."""

from typing import Any

from .base import ConversationStore

SUPPORTED_BACKENDS = ("memory", "json_files", "sqlite")


def create_conversation_store(
    backend: str = "json_files",
    **kwargs: Any
) -> ConversationStore:
    """Create a conversation store backend.

    Args:
        backend: Backend type ("memory", "json_files" or "sqlite")
        **kwargs: Backend-specific configuration (``directory`` for
            json_files, ``path`` for sqlite)

    Returns:
        ConversationStore instance (not yet connected)

    Raises:
        ValueError: If backend type is not supported
    """
    if backend == "memory":
        from .in_memory import InMemoryConversationStore
        return InMemoryConversationStore(**kwargs)

    elif backend == "json_files":
        from .json_files import JSONFileConversationStore
        return JSONFileConversationStore(**kwargs)

    elif backend == "sqlite":
        from .sqlite import SQLiteConversationStore
        return SQLiteConversationStore(**kwargs)

    raise ValueError(
        f"Unsupported conversation store backend: {backend}. "
        f"Supported backends: {', '.join(SUPPORTED_BACKENDS)}"
    )
