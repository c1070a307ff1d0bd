"""
Dochi: conversation and session core for the Dochi assistant.

Each module hides one design decision: the conversation model and its
storage format, the export formats, and the session orchestration that
drives responders and tools.
"""

__version__ = "0.1.0"

from .conversation import (
    Conversation,
    ConversationFilter,
    ConversationSource,
    ConversationStore,
    ConversationSummary,
    Message,
    MessageRole,
    NotFoundError,
    ReadOnlyError,
    StorageError,
    create_conversation_store,
)
from .session import ConversationSession, InteractionState, SessionController

__all__ = [
    "Conversation",
    "ConversationFilter",
    "ConversationSession",
    "ConversationSource",
    "ConversationStore",
    "ConversationSummary",
    "InteractionState",
    "Message",
    "MessageRole",
    "NotFoundError",
    "ReadOnlyError",
    "SessionController",
    "StorageError",
    "create_conversation_store",
]
