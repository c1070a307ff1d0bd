"""Interaction state, streaming responses and session events."""

from collections.abc import AsyncIterator
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict

from ..conversation.models import Message, MessageMetadata, ToolCall


class InteractionState(str, Enum):
    """What the session is doing right now."""

    IDLE = "idle"
    LISTENING = "listening"
    PROCESSING = "processing"
    EXECUTING_TOOL = "executing_tool"
    SPEAKING = "speaking"


class AssistantStream:
    """Wrapper for a streaming assistant response.

    Acts as an async iterator of text chunks. Tool calls and response
    metadata only become known when the stream ends, so the responder
    records them on the stream and the session reads them afterwards.

    Usage:
        stream = await responder.stream(messages)
        async for chunk in stream:
            print(chunk, end="")
        # After iteration
        print(stream.tool_calls, stream.metadata)
    """

    def __init__(self, async_iter: AsyncIterator[str]):
        """Initialize with an async iterator of text chunks.

        Args:
            async_iter: Async iterator yielding text chunks
        """
        self._iter = async_iter
        self._tool_calls: list[ToolCall] = []
        self._metadata: MessageMetadata | None = None

    @property
    def tool_calls(self) -> list[ToolCall]:
        """Tool calls requested by the assistant (available after iteration)."""
        return self._tool_calls

    @property
    def metadata(self) -> MessageMetadata | None:
        """Provider metadata (available after iteration)."""
        return self._metadata

    def set_tool_calls(self, tool_calls: list[ToolCall]) -> None:
        self._tool_calls = list(tool_calls)

    def set_metadata(self, metadata: MessageMetadata) -> None:
        self._metadata = metadata

    def __aiter__(self) -> "AssistantStream":
        return self

    async def __anext__(self) -> str:
        return await self._iter.__anext__()


class StateChanged(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["state_changed"] = "state_changed"
    state: InteractionState


class PartialText(BaseModel):
    """The whole streamed text so far; each event replaces the previous one."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["partial_text"] = "partial_text"
    text: str


class MessageAppended(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["message_appended"] = "message_appended"
    conversation_id: str
    message: Message


class ConversationChanged(BaseModel):
    """The active conversation was replaced (None when cleared)."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["conversation_changed"] = "conversation_changed"
    conversation_id: str | None


class ErrorReported(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["error_reported"] = "error_reported"
    message: str


SessionEvent = StateChanged | PartialText | MessageAppended | ConversationChanged | ErrorReported
