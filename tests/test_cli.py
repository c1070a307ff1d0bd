"""Tests for the dochi command line interface."""
import json

import pytest
from typer.testing import CliRunner

from dochi.cli import app

runner = CliRunner()


@pytest.fixture
def env(tmp_path):
    """Environment pointing the CLI at a temporary JSON file store."""
    return {
        "DOCHI_STORE_BACKEND": "json_files",
        "DOCHI_DATA_DIR": str(tmp_path / "data"),
        "DOCHI_EXPORT_DIR": str(tmp_path / "exports"),
        "DOCHI_LOG_LEVEL": "WARNING",
        "COLUMNS": "200",
    }


@pytest.fixture
def invoke(env):
    def _invoke(*args):
        return runner.invoke(app, list(args), env=env)
    return _invoke


@pytest.fixture
def conversation_id(invoke):
    result = invoke("new")
    assert result.exit_code == 0, result.output
    return result.output.split()[-1]


class TestConversationCommands:
    """Tests for creating, listing and editing conversations."""

    def test_new_and_list(self, invoke, conversation_id):
        result = invoke("list")

        assert result.exit_code == 0
        assert conversation_id in result.output
        assert "New conversation" in result.output

    def test_list_empty(self, invoke):
        result = invoke("list")
        assert "No conversations found" in result.output

    def test_say_derives_title(self, invoke, conversation_id):
        result = invoke("say", conversation_id, "hello")

        assert result.exit_code == 0
        assert "1 total, title: hello" in result.output

        shown = invoke("show", conversation_id)
        assert "hello" in shown.output

    def test_say_with_role(self, invoke, conversation_id):
        result = invoke("say", conversation_id, "hi there", "--role", "assistant")
        assert "Appended assistant message" in result.output

    def test_unknown_conversation(self, invoke):
        result = invoke("show", "missing")

        assert result.exit_code == 1
        assert "Conversation not found: missing" in result.output

    def test_rename(self, invoke, conversation_id):
        result = invoke("rename", conversation_id, "Trip")
        assert result.exit_code == 0
        assert "Trip" in invoke("list").output

    def test_blank_rename_fails(self, invoke, conversation_id):
        result = invoke("rename", conversation_id, "  ")
        assert result.exit_code == 1

    def test_favorite_and_tag_filters(self, invoke, conversation_id):
        invoke("new", "--title", "Other")
        invoke("favorite", conversation_id)
        tagged = invoke("tag", conversation_id, "work", "work", "home")

        assert "Tags: work, home" in tagged.output
        favorites = invoke("list", "--favorites").output
        assert conversation_id in favorites
        assert "Other" not in favorites
        assert "Other" in invoke("list", "--query", "oth").output

    def test_delete_is_idempotent(self, invoke, conversation_id):
        assert "Deleted" in invoke("delete", conversation_id).output

        again = invoke("delete", conversation_id)
        assert again.exit_code == 0
        assert "Nothing to delete" in again.output


class TestExportCommand:
    """Tests for the export command."""

    def test_export_markdown_to_default_directory(self, invoke, conversation_id, tmp_path):
        invoke("say", conversation_id, "hello")
        result = invoke("export", conversation_id)

        assert result.exit_code == 0
        files = list((tmp_path / "exports").glob("*.md"))
        assert len(files) == 1
        assert files[0].read_text(encoding="utf-8").startswith("# hello")

    def test_export_json_to_output_directory(self, invoke, conversation_id, tmp_path):
        result = invoke("export", conversation_id, "--format", "json", "--output", str(tmp_path / "out"))

        assert result.exit_code == 0
        [path] = (tmp_path / "out").glob("*.json")
        assert json.loads(path.read_text(encoding="utf-8"))["id"] == conversation_id


class TestConfiguration:
    """Tests for configuration errors."""

    def test_invalid_backend(self, env):
        result = runner.invoke(app, ["list"], env={**env, "DOCHI_STORE_BACKEND": "postgres"})

        assert result.exit_code == 1
        assert "invalid configuration" in result.output
