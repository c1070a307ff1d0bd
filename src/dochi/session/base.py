"""Abstract interfaces for the session layer.

This module hides which LLM provider, tool runtime and speech output a
host wires in. The session controller depends only on these classes:
- Responder: produces a streaming assistant response for a history
- ToolExecutor: runs one tool call
- Speaker: speaks the final assistant text
- SessionController: the contract consumed by presentation code
"""

from abc import ABC, abstractmethod
from collections.abc import Callable

from ..conversation.exceptions import ConversationError
from ..conversation.models import Conversation, ImageContent, Message, ToolCall, ToolResult
from .models import AssistantStream, InteractionState, SessionEvent


class SessionBusyError(ConversationError):
    """The operation is not allowed while a request is running."""


class Responder(ABC):
    """Produces assistant responses, typically by calling an LLM provider."""

    @abstractmethod
    async def stream(self, messages: list[Message]) -> AssistantStream:
        """Start a streaming response for the given history.

        Args:
            messages: Conversation history, oldest first

        Returns:
            AssistantStream yielding text chunks. Tool calls and metadata
            are recorded on it by the time iteration ends.
        """


class ToolExecutor(ABC):
    """Runs tool calls requested by the assistant."""

    @abstractmethod
    async def execute(self, call: ToolCall) -> ToolResult:
        """Execute one tool call."""

    def display_name(self, tool_name: str) -> str:
        """Human-readable tool name for execution records."""
        return tool_name


class Speaker(ABC):
    """Speech output for final assistant text."""

    @abstractmethod
    async def speak(self, text: str) -> None:
        """Speak the text, returning when playback finishes."""


class SessionController(ABC):
    """Contract between presentation code and the conversation session.

    Views read the properties and set ``input_text``. Every other change
    goes through the methods below, and views learn about changes by
    subscribing to the event stream.
    """

    input_text: str

    @property
    @abstractmethod
    def state(self) -> InteractionState:
        """Current interaction state."""

    @property
    @abstractmethod
    def conversation(self) -> Conversation | None:
        """The active conversation, if any."""

    @property
    @abstractmethod
    def partial_text(self) -> str:
        """Assistant text streamed so far for the running request."""

    @property
    @abstractmethod
    def last_error(self) -> str | None:
        """Message of the most recent request failure."""

    @abstractmethod
    async def send_message(
        self,
        text: str | None = None,
        images: list[ImageContent] | None = None,
    ) -> Message | None:
        """Send a user message and drive the assistant response."""

    @abstractmethod
    async def new_conversation(self, title: str | None = None) -> Conversation:
        """Create a conversation and make it active."""

    @abstractmethod
    async def select_conversation(self, conversation_id: str) -> Conversation:
        """Load a stored conversation and make it active."""

    @abstractmethod
    async def delete_conversation(self, conversation_id: str) -> bool:
        """Delete a stored conversation."""

    @abstractmethod
    def cancel_request(self) -> bool:
        """Cancel the running request. Returns False if nothing was running."""

    @abstractmethod
    def subscribe(self, callback: Callable[[SessionEvent], None]) -> Callable[[], None]:
        """Register an event callback. Returns a function that unsubscribes it."""
