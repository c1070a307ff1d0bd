"""Conversation session controller.

Owns the active conversation and the interaction state, streams
assistant responses, dispatches tool calls and supports cancellation.
All persistence goes through the conversation store, so a failed or
cancelled request never touches messages that were already saved.
"""

import asyncio
import logging
import time
from collections.abc import Callable

from ..conversation.base import ConversationStore
from ..conversation.exceptions import ConversationError
from ..conversation.models import (
    Conversation,
    ImageContent,
    Message,
    MessageRole,
    ToolCall,
    ToolExecutionRecord,
    ToolResult,
)
from ..conversation.tool_summary import generate_input_summary, generate_result_summary
from .base import Responder, SessionBusyError, SessionController, Speaker, ToolExecutor
from .models import (
    ConversationChanged,
    ErrorReported,
    InteractionState,
    MessageAppended,
    PartialText,
    SessionEvent,
    StateChanged,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_TOOL_ROUNDS = 10
CANCELLED_TOOL_RESULT = "Cancelled by user"


class ToolRoundLimitError(RuntimeError):
    """The assistant kept requesting tools past the round limit."""


def _tool_message(call: ToolCall, result: ToolResult) -> Message:
    """Tool result as fed back to the assistant; failures are labeled."""
    content = result.content
    if result.is_error and not content.startswith("Error:"):
        content = f"Error: {content}"
    return Message(role=MessageRole.TOOL, content=content, tool_call_id=call.id)


class ConversationSession(SessionController):
    """Default session controller backed by a conversation store.

    Args:
        store: Connected conversation store
        responder: Source of assistant responses
        tool_executor: Runs tool calls (None reports every call as failed)
        speaker: Optional speech output for final responses
        max_tool_rounds: Maximum tool round trips per user message
    """

    def __init__(
        self,
        store: ConversationStore,
        responder: Responder,
        tool_executor: ToolExecutor | None = None,
        speaker: Speaker | None = None,
        max_tool_rounds: int = DEFAULT_MAX_TOOL_ROUNDS,
    ) -> None:
        self._store = store
        self._responder = responder
        self._tool_executor = tool_executor
        self._speaker = speaker
        self._max_tool_rounds = max_tool_rounds

        self._state = InteractionState.IDLE
        self._conversation: Conversation | None = None
        self._partial_text = ""
        self._last_error: str | None = None
        self._task: asyncio.Task | None = None
        self._cancel_requested = False
        self._sending = False
        self._subscribers: list[Callable[[SessionEvent], None]] = []

        self.input_text = ""

    @property
    def state(self) -> InteractionState:
        return self._state

    @property
    def conversation(self) -> Conversation | None:
        return self._conversation

    @property
    def partial_text(self) -> str:
        return self._partial_text

    @property
    def last_error(self) -> str | None:
        return self._last_error

    @property
    def is_busy(self) -> bool:
        return self._sending or (self._task is not None and not self._task.done())

    def subscribe(self, callback: Callable[[SessionEvent], None]) -> Callable[[], None]:
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _emit(self, event: SessionEvent) -> None:
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception:
                logger.exception("Session event subscriber failed on %s", event.kind)

    def _set_state(self, state: InteractionState) -> None:
        if state is self._state:
            return
        logger.debug("Session state %s -> %s", self._state.value, state.value)
        self._state = state
        self._emit(StateChanged(state=state))

    def _set_partial_text(self, text: str) -> None:
        self._partial_text = text
        self._emit(PartialText(text=text))

    def _set_conversation(self, conversation: Conversation | None) -> None:
        self._conversation = conversation
        self._emit(ConversationChanged(conversation_id=conversation.id if conversation else None))

    def _ensure_idle(self) -> None:
        if self.is_busy:
            raise SessionBusyError("A request is already running")

    async def new_conversation(self, title: str | None = None) -> Conversation:
        self._ensure_idle()
        conversation = await self._store.create(title=title)
        self._set_conversation(conversation)
        return conversation

    async def select_conversation(self, conversation_id: str) -> Conversation:
        self._ensure_idle()
        conversation = await self._store.get(conversation_id)
        self._set_conversation(conversation)
        return conversation

    async def delete_conversation(self, conversation_id: str) -> bool:
        self._ensure_idle()
        removed = await self._store.delete(conversation_id)
        if self._conversation is not None and self._conversation.id == conversation_id:
            self._set_conversation(None)
        return removed

    def begin_listening(self) -> bool:
        """Enter the listening state for speech input. Only allowed when idle."""
        if self._state is not InteractionState.IDLE or self.is_busy:
            return False
        self._set_state(InteractionState.LISTENING)
        return True

    def end_listening(self) -> None:
        if self._state is InteractionState.LISTENING:
            self._set_state(InteractionState.IDLE)

    async def send_message(
        self,
        text: str | None = None,
        images: list[ImageContent] | None = None,
    ) -> Message | None:
        """Send a user message and wait for the assistant's final message.

        Args:
            text: Message text; None takes and clears ``input_text``
            images: Optional image attachments

        Returns:
            The final assistant message, or None if nothing was sent, the
            request failed (see ``last_error``) or it was cancelled

        Raises:
            SessionBusyError: If a request is already running
            ReadOnlyError: If the active conversation does not accept messages
        """
        self._ensure_idle()
        if text is None:
            text = self.input_text
            self.input_text = ""
        text = text.strip()
        if not text and not images:
            return None

        # Busy from here on, before the first await
        self._sending = True
        self._cancel_requested = False
        try:
            self.end_listening()
            if self._conversation is None:
                self._set_conversation(await self._store.create())

            await self._append(Message(role=MessageRole.USER, content=text, images=images or None))
            if self._cancel_requested:
                return None

            self._last_error = None
            self._task = asyncio.create_task(self._respond())
            try:
                return await self._task
            except asyncio.CancelledError:
                if self._cancel_requested:
                    return None
                raise
        finally:
            self._task = None
            self._sending = False

    def cancel_request(self) -> bool:
        if not self.is_busy:
            return False
        logger.info("Cancelling request")
        self._cancel_requested = True
        if self._task is not None:
            self._task.cancel()
        return True

    async def _append(self, message: Message) -> None:
        self._conversation = await self._store.append(self._conversation.id, message)
        self._emit(MessageAppended(conversation_id=self._conversation.id, message=message))

    async def _respond(self) -> Message | None:
        records: list[ToolExecutionRecord] = []
        unanswered: list[ToolCall] = []
        try:
            rounds = 0
            while True:
                self._set_state(InteractionState.PROCESSING)
                if self._partial_text:
                    self._set_partial_text("")
                stream = await self._responder.stream(list(self._conversation.messages))
                async for chunk in stream:
                    self._set_partial_text(self._partial_text + chunk)

                if not stream.tool_calls:
                    break
                if rounds >= self._max_tool_rounds:
                    raise ToolRoundLimitError(
                        f"Assistant requested tools after {self._max_tool_rounds} rounds"
                    )
                rounds += 1

                await self._append(Message(
                    role=MessageRole.ASSISTANT,
                    content=self._partial_text,
                    tool_calls=stream.tool_calls,
                    metadata=stream.metadata,
                ))
                self._set_partial_text("")
                self._set_state(InteractionState.EXECUTING_TOOL)
                unanswered = list(stream.tool_calls)
                for call in stream.tool_calls:
                    result, record = await self._execute_tool(call)
                    records.append(record)
                    await self._append(_tool_message(call, result))
                    unanswered.remove(call)

            final = Message(
                role=MessageRole.ASSISTANT,
                content=self._partial_text,
                metadata=stream.metadata,
                tool_executions=records or None,
            )
            await self._append(final)
            self._set_partial_text("")

            if self._speaker is not None and final.content:
                self._set_state(InteractionState.SPEAKING)
                await self._speaker.speak(final.content)
            return final
        except asyncio.CancelledError:
            logger.info("Request cancelled; discarded %d streamed characters", len(self._partial_text))
            await self._answer_cancelled(unanswered)
            raise
        except Exception as e:
            logger.exception("Request failed for conversation %s", self._conversation.id)
            self._last_error = str(e) or type(e).__name__
            self._emit(ErrorReported(message=self._last_error))
            return None
        finally:
            if self._partial_text:
                self._set_partial_text("")
            self._set_state(InteractionState.IDLE)

    async def _answer_cancelled(self, calls: list[ToolCall]) -> None:
        # Every tool call in the history must keep a matching result
        for call in calls:
            result = ToolResult(tool_call_id=call.id, content=CANCELLED_TOOL_RESULT, is_error=True)
            try:
                await self._append(_tool_message(call, result))
            except ConversationError:
                logger.exception("Could not record cancelled tool call %s", call.id)

    async def _execute_tool(self, call: ToolCall) -> tuple[ToolResult, ToolExecutionRecord]:
        started = time.monotonic()
        display_name = call.name
        if self._tool_executor is None:
            result = ToolResult(
                tool_call_id=call.id,
                content=f"No tool executor is available to run {call.name}",
                is_error=True,
            )
        else:
            display_name = self._tool_executor.display_name(call.name)
            try:
                result = await self._tool_executor.execute(call)
            except Exception as e:
                logger.warning("Tool %s failed: %s", call.name, e)
                result = ToolResult(tool_call_id=call.id, content=str(e), is_error=True)

        record = ToolExecutionRecord(
            tool_name=call.name,
            display_name=display_name,
            input_summary=generate_input_summary(call.arguments),
            result_summary=generate_result_summary(result.content, result.is_error),
            is_error=result.is_error,
            duration_seconds=time.monotonic() - started,
        )
        return result, record
