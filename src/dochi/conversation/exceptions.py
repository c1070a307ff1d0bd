"""Errors raised by conversation stores."""


class ConversationError(Exception):
    """Base class for conversation errors."""


class NotFoundError(ConversationError, LookupError):
    """The referenced conversation does not exist."""

    def __init__(self, conversation_id: str):
        self.conversation_id = conversation_id
        super().__init__(f"Conversation not found: {conversation_id}")


class ReadOnlyError(ConversationError):
    """A write was attempted on a conversation whose source forbids it."""

    def __init__(self, conversation_id: str, source: str):
        self.conversation_id = conversation_id
        self.source = source
        super().__init__(
            f"Conversation {conversation_id} is read-only (source: {source})"
        )


class StorageError(ConversationError):
    """The persistence layer failed.

    The underlying exception is chained as ``__cause__``.
    """
