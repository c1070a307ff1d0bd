"""Session layer for dochi.

The session controller owns the active conversation and the
interaction state, and drives responders and tools supplied by the host.
"""

from .base import Responder, SessionBusyError, SessionController, Speaker, ToolExecutor
from .controller import ConversationSession, ToolRoundLimitError
from .models import (
    AssistantStream,
    ConversationChanged,
    ErrorReported,
    InteractionState,
    MessageAppended,
    PartialText,
    SessionEvent,
    StateChanged,
)

__all__ = [
    "AssistantStream",
    "ConversationChanged",
    "ConversationSession",
    "ErrorReported",
    "InteractionState",
    "MessageAppended",
    "PartialText",
    "Responder",
    "SessionBusyError",
    "SessionController",
    "SessionEvent",
    "Speaker",
    "StateChanged",
    "ToolExecutor",
    "ToolRoundLimitError",
]
