"""Data models for conversations.

These models define the structure of messages and conversations,
independent of the storage backend used. Every model serializes to the
JSON layout used on disk and by the JSON exporter.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from uuid_extensions import uuid7

DEFAULT_TITLE = "New conversation"
TITLE_PREFIX_LENGTH = 10
PREVIEW_LENGTH = 80


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    """Read naive timestamps as UTC so all timestamps stay comparable."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _new_id() -> str:
    # Time-ordered, so ids sort by creation
    return str(uuid7())


class MessageRole(str, Enum):
    """Role of the message author."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"
    TOOL = "tool"


class ConversationSource(str, Enum):
    """Where a conversation originated."""

    LOCAL = "local"
    TELEGRAM = "telegram"

    @property
    def is_writable(self) -> bool:
        """Only locally authored conversations accept new messages."""
        return self is ConversationSource.LOCAL

    @property
    def display_name(self) -> str:
        return {
            ConversationSource.LOCAL: "Local",
            ConversationSource.TELEGRAM: "Telegram",
        }[self]


class ToolCall(BaseModel):
    """A structured request emitted by the assistant to invoke a tool."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Provider-assigned tool call identifier")
    name: str = Field(description="Name of the tool to invoke")
    arguments_json: str = Field(default="{}", description="JSON-encoded arguments object")

    @classmethod
    def from_arguments(cls, id: str, name: str, arguments: dict[str, Any]) -> "ToolCall":
        """Build a tool call from an already decoded arguments dict."""
        return cls(id=id, name=name, arguments_json=json.dumps(arguments, ensure_ascii=False))

    @property
    def arguments(self) -> dict[str, Any]:
        """Decoded arguments. Malformed or non-object JSON yields an empty dict."""
        try:
            parsed = json.loads(self.arguments_json)
        except ValueError:
            return {}
        return parsed if isinstance(parsed, dict) else {}


class ToolResult(BaseModel):
    """Result returned by a tool executor."""

    model_config = ConfigDict(frozen=True)

    tool_call_id: str
    content: str
    is_error: bool = False


class ImageContent(BaseModel):
    """An image attached to a message, inline (base64) or by URL."""

    model_config = ConfigDict(frozen=True)

    base64_data: str | None = None
    mime_type: str = "image/jpeg"
    width: int | None = None
    height: int | None = None
    url: str | None = None

    @model_validator(mode="after")
    def _exactly_one_source(self) -> "ImageContent":
        if (self.base64_data is None) == (self.url is None):
            raise ValueError("ImageContent needs exactly one of base64_data or url")
        return self

    @property
    def is_inline(self) -> bool:
        return self.base64_data is not None


class MessageMetadata(BaseModel):
    """Provider details recorded for an assistant response."""

    model_config = ConfigDict(frozen=True)

    provider: str
    model: str
    input_tokens: int | None = None
    output_tokens: int | None = None
    total_latency: float | None = Field(default=None, description="Seconds until completion")
    was_fallback: bool = False

    @property
    def short_display(self) -> str:
        """Compact label, e.g. ``gpt-4o · 1.5s``."""
        if self.total_latency is None:
            return self.model
        return f"{self.model} · {self.total_latency:.1f}s"


class ToolExecutionRecord(BaseModel):
    """Summary of one tool execution, archived by value on an assistant message."""

    model_config = ConfigDict(frozen=True)

    tool_name: str
    display_name: str
    input_summary: str
    result_summary: str | None = None
    is_error: bool = False
    duration_seconds: float | None = None


class Message(BaseModel):
    """One turn in a conversation.

    Messages are immutable once created. Streaming assistant output is
    represented by replacing the whole message through :meth:`with_content`.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_id)
    role: MessageRole
    content: str = ""
    tool_calls: list[ToolCall] | None = None
    tool_call_id: str | None = Field(
        default=None,
        description="Identifier of the tool call this message answers (tool role only)",
    )
    images: list[ImageContent] | None = None
    metadata: MessageMetadata | None = None
    tool_executions: list[ToolExecutionRecord] | None = None
    timestamp: datetime = Field(default_factory=_utcnow)

    @field_validator("timestamp")
    @classmethod
    def _aware_timestamp(cls, value: datetime) -> datetime:
        return _as_utc(value)

    @property
    def is_unlabeled_tool_result(self) -> bool:
        """A tool message with no link back to the originating call."""
        return self.role is MessageRole.TOOL and not self.tool_call_id

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)

    def with_content(self, content: str) -> "Message":
        """Return a copy of this message with its content replaced."""
        return self.model_copy(update={"content": content})


class Conversation(BaseModel):
    """A titled, ordered sequence of messages.

    Messages are only ever appended; the store enforces that and the
    read-only rule for externally sourced conversations.
    """

    id: str = Field(default_factory=_new_id)
    title: str = DEFAULT_TITLE
    messages: list[Message] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
    source: ConversationSource = ConversationSource.LOCAL
    user_id: str | None = None
    summary: str | None = None
    is_favorite: bool = False
    tags: list[str] = Field(default_factory=list)
    folder_id: str | None = None

    @field_validator("created_at", "updated_at")
    @classmethod
    def _aware_dates(cls, value: datetime) -> datetime:
        return _as_utc(value)

    @property
    def is_writable(self) -> bool:
        return self.source.is_writable

    @property
    def has_default_title(self) -> bool:
        return self.title == DEFAULT_TITLE

    def touch(self, when: datetime | None = None) -> None:
        """Advance ``updated_at``; the timestamp never moves backwards."""
        now = _as_utc(when) if when is not None else _utcnow()
        if now > self.updated_at:
            self.updated_at = now

    def add_message(self, message: Message) -> None:
        """Append a message, deriving the title from the first user turn.

        Args:
            message: The message to append
        """
        self.messages.append(message)
        if self.has_default_title and message.role is MessageRole.USER:
            self.title = derive_title(self.messages)
        self.touch()

    def to_summary(self) -> "ConversationSummary":
        preview = self.messages[-1].content if self.messages else ""
        if len(preview) > PREVIEW_LENGTH:
            preview = preview[:PREVIEW_LENGTH]
        return ConversationSummary(
            id=self.id,
            title=self.title,
            created_at=self.created_at,
            updated_at=self.updated_at,
            source=self.source,
            message_count=len(self.messages),
            is_favorite=self.is_favorite,
            tags=list(self.tags),
            folder_id=self.folder_id,
            preview=preview,
        )


class ConversationSummary(BaseModel):
    """Listing projection of a conversation, without its messages."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    created_at: datetime
    updated_at: datetime
    source: ConversationSource = ConversationSource.LOCAL
    message_count: int = 0
    is_favorite: bool = False
    tags: list[str] = Field(default_factory=list)
    folder_id: str | None = None
    preview: str = ""


class ConversationFilter(BaseModel):
    """Criteria for narrowing a conversation listing."""

    favorites_only: bool = False
    tags: set[str] = Field(default_factory=set)
    source: ConversationSource | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None
    query: str | None = None

    @field_validator("date_from", "date_to")
    @classmethod
    def _aware_bounds(cls, value: datetime | None) -> datetime | None:
        return _as_utc(value) if value is not None else None

    @property
    def is_active(self) -> bool:
        return self.active_count > 0

    @property
    def active_count(self) -> int:
        count = 0
        if self.favorites_only:
            count += 1
        count += len(self.tags)
        if self.source is not None:
            count += 1
        if self.date_from is not None or self.date_to is not None:
            count += 1
        if self.query:
            count += 1
        return count

    def matches(self, conversation: Conversation) -> bool:
        if self.favorites_only and not conversation.is_favorite:
            return False
        if self.tags and self.tags.isdisjoint(conversation.tags):
            return False
        if self.source is not None and conversation.source != self.source:
            return False
        if self.date_from is not None and conversation.updated_at < self.date_from:
            return False
        if self.date_to is not None and conversation.updated_at > self.date_to:
            return False
        if self.query:
            needle = self.query.lower()
            haystacks = [conversation.title, *(m.content for m in conversation.messages)]
            if not any(needle in text.lower() for text in haystacks):
                return False
        return True


def derive_title(messages: list[Message]) -> str:
    """Derive a display title from the first user message.

    Args:
        messages: Conversation messages in order

    Returns:
        The trimmed first user message, shortened to ten characters plus
        an ellipsis, or the default title when there is nothing to use.
    """
    first_user = next((m for m in messages if m.role is MessageRole.USER), None)
    if first_user is None:
        return DEFAULT_TITLE
    content = first_user.content.strip()
    if not content:
        return DEFAULT_TITLE
    if len(content) <= TITLE_PREFIX_LENGTH:
        return content
    return content[:TITLE_PREFIX_LENGTH] + "..."
