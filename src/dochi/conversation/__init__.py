"""Conversation model and persistence for dochi.

Provides the message and conversation data model, pluggable stores
and Markdown/JSON export.
"""

from .base import ConversationStore
from .exceptions import ConversationError, NotFoundError, ReadOnlyError, StorageError
from .export import ExportFormat, ExportOptions, export_conversation, parse_json, to_json, to_markdown
from .factory import create_conversation_store
from .models import (
    DEFAULT_TITLE,
    Conversation,
    ConversationFilter,
    ConversationSource,
    ConversationSummary,
    ImageContent,
    Message,
    MessageMetadata,
    MessageRole,
    ToolCall,
    ToolExecutionRecord,
    ToolResult,
    derive_title,
)

__all__ = [
    "DEFAULT_TITLE",
    "Conversation",
    "ConversationError",
    "ConversationFilter",
    "ConversationSource",
    "ConversationStore",
    "ConversationSummary",
    "ExportFormat",
    "ExportOptions",
    "ImageContent",
    "Message",
    "MessageMetadata",
    "MessageRole",
    "NotFoundError",
    "ReadOnlyError",
    "StorageError",
    "ToolCall",
    "ToolExecutionRecord",
    "ToolResult",
    "create_conversation_store",
    "derive_title",
    "export_conversation",
    "parse_json",
    "to_json",
    "to_markdown",
]
