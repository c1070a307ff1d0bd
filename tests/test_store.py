"""Unit tests for conversation stores.

Every test in the store-fixture classes runs once per backend.
"""
import asyncio
from datetime import datetime, timedelta

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from dochi.conversation import (
    DEFAULT_TITLE,
    Conversation,
    ConversationFilter,
    ConversationSource,
    ConversationStore,
    Message,
    MessageRole,
    NotFoundError,
    ReadOnlyError,
    StorageError,
    ToolCall,
    create_conversation_store,
)
from dochi.conversation.in_memory import InMemoryConversationStore
from dochi.conversation.json_files import JSONFileConversationStore
from dochi.conversation.sqlite import SQLiteConversationStore


class TestConversationStoreInterface:
    """Tests for the abstract ConversationStore interface."""

    def test_store_is_abstract(self):
        """Test that ConversationStore cannot be instantiated directly."""
        with pytest.raises(TypeError):
            ConversationStore()  # type: ignore


class TestStoreFactory:
    """Tests for create_conversation_store."""

    def test_create_memory_store(self):
        assert isinstance(create_conversation_store("memory"), InMemoryConversationStore)

    def test_create_json_files_store(self, tmp_path):
        store = create_conversation_store("json_files", directory=tmp_path)
        assert isinstance(store, JSONFileConversationStore)
        assert store.backend_type == "json_files"

    def test_create_sqlite_store(self, tmp_path):
        store = create_conversation_store("sqlite", path=tmp_path / "c.db")
        assert isinstance(store, SQLiteConversationStore)
        assert store.backend_type == "sqlite"

    def test_unknown_backend_raises_error(self):
        with pytest.raises(ValueError, match="Unsupported conversation store backend"):
            create_conversation_store("postgres")


class TestCreateAndGet:
    """Tests for create and get."""

    async def test_create_persists_immediately(self, store):
        conversation = await store.create()
        loaded = await store.get(conversation.id)

        assert loaded.id == conversation.id
        assert loaded.title == DEFAULT_TITLE
        assert loaded.messages == []

    async def test_create_with_title_and_source(self, store):
        conversation = await store.create(
            title="  Imported  ",
            source=ConversationSource.TELEGRAM,
            user_id="user-1",
        )
        loaded = await store.get(conversation.id)

        assert loaded.title == "Imported"
        assert loaded.source is ConversationSource.TELEGRAM
        assert loaded.user_id == "user-1"

    async def test_create_gives_fresh_ids(self, store):
        first = await store.create()
        second = await store.create()
        assert first.id != second.id

    async def test_get_unknown_id_raises_not_found(self, store):
        with pytest.raises(NotFoundError) as exc_info:
            await store.get("does-not-exist")
        assert exc_info.value.conversation_id == "does-not-exist"

    async def test_returned_conversation_is_detached(self, store):
        """Test that mutating a returned conversation does not change the store."""
        conversation = await store.create()
        conversation.title = "changed locally"

        assert (await store.get(conversation.id)).title == DEFAULT_TITLE


class TestAppend:
    """Tests for append."""

    @pytest.mark.parametrize("count", [1, 5, 20])
    async def test_append_preserves_order(self, store, count):
        """Test that N appended messages read back identically, in order."""
        conversation = await store.create()
        sent = [
            Message(role=MessageRole.USER if i % 2 == 0 else MessageRole.ASSISTANT, content=f"m{i}")
            for i in range(count)
        ]
        for message in sent:
            await store.append(conversation.id, message)

        loaded = await store.get(conversation.id)
        assert loaded.messages == sent

    async def test_append_round_trips_rich_messages(self, store):
        conversation = await store.create()
        call = ToolCall.from_arguments("tc1", "weather", {"city": "Seoul"})
        assistant = Message(role=MessageRole.ASSISTANT, content="", tool_calls=[call])
        tool = Message(role=MessageRole.TOOL, content="sunny", tool_call_id="tc1")

        await store.append(conversation.id, assistant)
        await store.append(conversation.id, tool)

        loaded = await store.get(conversation.id)
        assert loaded.messages[0].tool_calls[0].arguments == {"city": "Seoul"}
        assert loaded.messages[1].tool_call_id == "tc1"

    async def test_append_updates_timestamp(self, store):
        conversation = await store.create()
        updated = await store.append(conversation.id, Message(role=MessageRole.USER, content="hi"))
        assert updated.updated_at >= conversation.updated_at

    async def test_append_unknown_id_raises_not_found(self, store):
        with pytest.raises(NotFoundError):
            await store.append("missing", Message(role=MessageRole.USER, content="hi"))

    async def test_append_to_read_only_fails(self, store):
        """Test that read-only conversations reject appends and stay unchanged."""
        conversation = await store.create(source=ConversationSource.TELEGRAM)

        for role in MessageRole:
            with pytest.raises(ReadOnlyError):
                await store.append(conversation.id, Message(role=role, content="nope"))

        assert (await store.get(conversation.id)).messages == []

    async def test_hello_scenario(self, store):
        """Test create, user 'hello', assistant 'hi there', then list."""
        conversation = await store.create()
        await store.append(conversation.id, Message(role=MessageRole.USER, content="hello"))
        await store.append(conversation.id, Message(role=MessageRole.ASSISTANT, content="hi there"))

        summaries = await store.list()
        assert summaries[0].id == conversation.id
        assert summaries[0].title == "hello"
        assert summaries[0].message_count == 2
        assert summaries[0].preview == "hi there"


class TestDeleteAndRename:
    """Tests for delete and rename."""

    async def test_delete_is_idempotent(self, store):
        conversation = await store.create()

        assert await store.delete(conversation.id) is True
        assert await store.delete(conversation.id) is False
        assert await store.delete("never-existed") is False
        with pytest.raises(NotFoundError):
            await store.get(conversation.id)

    async def test_rename(self, store):
        conversation = await store.create()
        await store.rename(conversation.id, "Weekend plans")
        await store.append(conversation.id, Message(role=MessageRole.USER, content="hello"))

        assert (await store.get(conversation.id)).title == "Weekend plans"

    async def test_rename_unknown_id_raises_not_found(self, store):
        with pytest.raises(NotFoundError):
            await store.rename("missing", "Title")

    async def test_rename_blank_title_fails(self, store):
        conversation = await store.create()
        with pytest.raises(ValueError):
            await store.rename(conversation.id, "   ")


class TestListing:
    """Tests for list ordering and filtering."""

    async def test_list_orders_by_updated_at_descending(self, store, make_conversation):
        base = make_conversation()
        for offset, title in [(1, "older"), (3, "newest"), (2, "middle")]:
            conversation = Conversation(
                title=title,
                created_at=base.created_at,
                updated_at=base.updated_at + timedelta(hours=offset),
            )
            await store.import_conversation(conversation)

        titles = [summary.title for summary in await store.list()]
        assert titles == ["newest", "middle", "older"]

    async def test_list_empty_store(self, store):
        assert await store.list() == []

    async def test_list_with_filter(self, store):
        work = await store.create(title="Work")
        await store.create(title="Home")
        await store.set_tags(work.id, ["job"])
        await store.set_favorite(work.id, True)

        favorites = await store.list(ConversationFilter(favorites_only=True))
        tagged = await store.list(ConversationFilter(tags={"job"}))
        searched = await store.list(ConversationFilter(query="hom"))

        assert [s.title for s in favorites] == ["Work"]
        assert [s.title for s in tagged] == ["Work"]
        assert [s.title for s in searched] == ["Home"]


class TestOrganization:
    """Tests for favorites, tags and folders."""

    async def test_set_tags_deduplicates(self, store):
        conversation = await store.create()
        await store.set_tags(conversation.id, ["work", " urgent ", "work", ""])

        assert (await store.get(conversation.id)).tags == ["work", "urgent"]

    async def test_move_to_folder(self, store):
        conversation = await store.create()
        await store.move_to_folder(conversation.id, "folder-1")
        assert (await store.get(conversation.id)).folder_id == "folder-1"

        await store.move_to_folder(conversation.id, None)
        assert (await store.get(conversation.id)).folder_id is None

    async def test_organizing_read_only_conversation_is_allowed(self, store):
        conversation = await store.create(source=ConversationSource.TELEGRAM)
        await store.set_favorite(conversation.id, True)

        assert (await store.get(conversation.id)).is_favorite

    async def test_organization_unknown_id_raises_not_found(self, store):
        with pytest.raises(NotFoundError):
            await store.set_favorite("missing", True)
        with pytest.raises(NotFoundError):
            await store.set_tags("missing", ["a"])
        with pytest.raises(NotFoundError):
            await store.move_to_folder("missing", "f")


class TestImport:
    """Tests for last-write-wins import."""

    async def test_import_new_conversation(self, store, make_conversation, make_message):
        incoming = make_conversation(
            source=ConversationSource.TELEGRAM,
            messages=[make_message(MessageRole.USER, "from telegram")],
        )
        assert await store.import_conversation(incoming) is True

        loaded = await store.get(incoming.id)
        assert loaded.messages[0].content == "from telegram"

    async def test_newer_copy_wins(self, store, make_conversation):
        stored = make_conversation(title="old")
        await store.import_conversation(stored)

        newer = stored.model_copy(update={"title": "new", "updated_at": stored.updated_at + timedelta(minutes=1)})
        assert await store.import_conversation(newer) is True
        assert (await store.get(stored.id)).title == "new"

    async def test_naive_import_keeps_listing_usable(self, store):
        """Test that a synced copy without timezones does not break listing."""
        local = await store.create(title="Local")
        naive = datetime(2024, 1, 1)
        await store.import_conversation(Conversation(title="Synced", created_at=naive, updated_at=naive))

        titles = [summary.title for summary in await store.list()]
        assert titles[0] == local.title
        assert "Synced" in titles

    async def test_older_or_equal_copy_is_ignored(self, store, make_conversation):
        stored = make_conversation(title="current")
        await store.import_conversation(stored)

        same_time = stored.model_copy(update={"title": "same time"})
        older = stored.model_copy(update={"title": "older", "updated_at": stored.updated_at - timedelta(minutes=1)})

        assert await store.import_conversation(same_time) is False
        assert await store.import_conversation(older) is False
        assert (await store.get(stored.id)).title == "current"


class TestPersistence:
    """Tests for data surviving a reconnect."""

    @pytest.mark.integration
    @pytest.mark.parametrize("backend,option", [("json_files", "directory"), ("sqlite", "path")])
    async def test_conversations_survive_reconnect(self, tmp_path, backend, option):
        location = tmp_path / ("conversations" if backend == "json_files" else "c.db")

        async with create_conversation_store(backend, **{option: location}) as store:
            conversation = await store.create()
            await store.append(conversation.id, Message(role=MessageRole.USER, content="remember me"))
            await store.set_tags(conversation.id, ["keep"])

        async with create_conversation_store(backend, **{option: location}) as store:
            loaded = await store.get(conversation.id)

        assert loaded.title == "remember me"
        assert loaded.tags == ["keep"]
        assert [m.content for m in loaded.messages] == ["remember me"]


class TestJSONFileStore:
    """Tests specific to the JSON file backend."""

    async def test_file_layout(self, tmp_path):
        async with JSONFileConversationStore(tmp_path) as store:
            conversation = await store.create()

        path = tmp_path / f"{conversation.id}.json"
        assert path.exists()
        assert '\n  "created_at"' in path.read_text(encoding="utf-8")

    async def test_corrupt_file_is_skipped_in_list(self, tmp_path):
        async with JSONFileConversationStore(tmp_path) as store:
            good = await store.create(title="Good")
            (tmp_path / "broken.json").write_text("{not json", encoding="utf-8")

            summaries = await store.list()
            assert [s.id for s in summaries] == [good.id]

            with pytest.raises(StorageError):
                await store.get("broken")

    async def test_path_like_ids_are_not_found(self, tmp_path):
        async with JSONFileConversationStore(tmp_path / "inner") as store:
            with pytest.raises(NotFoundError):
                await store.get("../secrets")
            assert await store.delete("../secrets") is False


class TestSQLiteStore:
    """Tests specific to the SQLite backend."""

    async def test_operations_require_connection(self, tmp_path):
        store = SQLiteConversationStore(tmp_path / "c.db")
        with pytest.raises(StorageError, match="not connected"):
            await store.create()

    async def test_corrupt_message_row_is_skipped_in_list(self, tmp_path):
        async with SQLiteConversationStore(tmp_path / "c.db") as store:
            good = await store.create(title="Good")
            bad = await store.create(title="Bad")
            await store.append(bad.id, Message(role=MessageRole.USER, content="x"))
            await store._connection.execute("UPDATE messages SET payload = '{oops' WHERE conversation_id = ?", (bad.id,))
            await store._connection.commit()

            assert [s.id for s in await store.list()] == [good.id]
            with pytest.raises(StorageError):
                await store.get(bad.id)


class TestAppendProperty:
    """Property tests for append ordering."""

    @given(st.lists(st.tuples(st.sampled_from(list(MessageRole)), st.text(max_size=40)), max_size=30))
    @settings(max_examples=50, deadline=None)
    def test_read_back_matches_append_order(self, turns):
        """Property test: reading back yields exactly the appended messages in order."""
        async def scenario():
            store = InMemoryConversationStore()
            conversation = await store.create()
            sent = [Message(role=role, content=content) for role, content in turns]
            for message in sent:
                await store.append(conversation.id, message)
            return sent, await store.get(conversation.id)

        sent, loaded = asyncio.run(scenario())
        assert loaded.messages == sent
