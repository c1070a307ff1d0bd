"""Pytest configuration and shared fixtures."""
from datetime import datetime, timezone

import pytest

from dochi.conversation import (
    Conversation,
    ConversationSource,
    Message,
    MessageRole,
    create_conversation_store,
)


@pytest.fixture(scope="session")
def fixed_date():
    """Return a fixed timestamp (2023-11-14 22:13:20 UTC)."""
    return datetime.fromtimestamp(1700000000, tz=timezone.utc)


@pytest.fixture
def make_conversation(fixed_date):
    """Return a factory for conversations with fixed timestamps."""
    def _make(
        title: str = "Test conversation",
        messages: list[Message] | None = None,
        source: ConversationSource = ConversationSource.LOCAL,
    ) -> Conversation:
        return Conversation(
            title=title,
            messages=messages or [],
            created_at=fixed_date,
            updated_at=fixed_date,
            source=source,
        )
    return _make


@pytest.fixture
def make_message(fixed_date):
    """Return a factory for messages with a fixed timestamp."""
    def _make(role: MessageRole = MessageRole.USER, content: str = "", **kwargs) -> Message:
        return Message(role=role, content=content, timestamp=fixed_date, **kwargs)
    return _make


@pytest.fixture(params=["memory", "json_files", "sqlite"])
async def store(request, tmp_path):
    """Connected conversation store, once per backend."""
    options = {
        "memory": {},
        "json_files": {"directory": tmp_path / "conversations"},
        "sqlite": {"path": tmp_path / "conversations.db"},
    }[request.param]

    conversation_store = create_conversation_store(request.param, **options)
    await conversation_store.connect()
    yield conversation_store
    await conversation_store.disconnect()
