"""JSON file conversation store backend.

Stores each conversation as a pretty-printed JSON document named
``<conversation_id>.json`` inside one directory. Writes go through a
temporary file and an atomic rename so a crash never leaves a
half-written conversation behind.
"""

import asyncio
import json
import logging
import os
import tempfile
from pathlib import Path

from pydantic import ValidationError

from .base import ConversationStore
from .exceptions import StorageError
from .models import Conversation

logger = logging.getLogger(__name__)


class JSONFileConversationStore(ConversationStore):
    """Directory of JSON documents, one per conversation.

    File I/O runs in worker threads so the event loop is never blocked.
    """

    def __init__(self, directory: str | Path = "./conversations"):
        self._directory = Path(directory).expanduser()

    async def connect(self) -> None:
        """Create the conversation directory if needed."""
        try:
            await asyncio.to_thread(self._directory.mkdir, parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot create conversation directory {self._directory}") from e

    async def disconnect(self) -> None:
        """Nothing to release; files are closed after every operation."""
        pass

    def _path_for(self, conversation_id: str) -> Path | None:
        if not conversation_id or conversation_id.startswith(".") or any(
            sep in conversation_id for sep in ("/", "\\", os.sep)
        ):
            return None
        return self._directory / f"{conversation_id}.json"

    @staticmethod
    def _decode(path: Path) -> Conversation:
        return Conversation.model_validate_json(path.read_text(encoding="utf-8"))

    @staticmethod
    def _encode(conversation: Conversation) -> str:
        return json.dumps(
            conversation.model_dump(mode="json"),
            indent=2,
            sort_keys=True,
            ensure_ascii=False,
        )

    def _read_sync(self, path: Path) -> Conversation | None:
        if not path.exists():
            return None
        try:
            return self._decode(path)
        except (OSError, ValueError, ValidationError) as e:
            raise StorageError(f"Failed to load conversation from {path}") from e

    def _read_all_sync(self) -> list[Conversation]:
        if not self._directory.exists():
            return []

        conversations = []
        for path in sorted(self._directory.glob("*.json")):
            try:
                conversations.append(self._decode(path))
            except (OSError, ValueError, ValidationError) as e:
                logger.warning("Skipping unreadable conversation file %s: %s", path.name, e)
        return conversations

    def _write_sync(self, path: Path, payload: str) -> None:
        self._directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self._directory, prefix=".", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    async def _read(self, conversation_id: str) -> Conversation | None:
        path = self._path_for(conversation_id)
        if path is None:
            return None
        return await asyncio.to_thread(self._read_sync, path)

    async def _read_all(self) -> list[Conversation]:
        try:
            return await asyncio.to_thread(self._read_all_sync)
        except OSError as e:
            raise StorageError(f"Failed to list conversations in {self._directory}") from e

    async def _write(self, conversation: Conversation) -> None:
        path = self._path_for(conversation.id)
        if path is None:
            raise StorageError(f"Invalid conversation id: {conversation.id!r}")
        try:
            await asyncio.to_thread(self._write_sync, path, self._encode(conversation))
        except OSError as e:
            raise StorageError(f"Failed to save conversation {conversation.id}") from e
        logger.debug("Wrote %s", path)

    async def _remove(self, conversation_id: str) -> bool:
        path = self._path_for(conversation_id)
        if path is None:
            return False
        try:
            await asyncio.to_thread(path.unlink)
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StorageError(f"Failed to delete conversation {conversation_id}") from e
        return True

    @property
    def backend_type(self) -> str:
        return "json_files"

    @property
    def directory(self) -> Path:
        return self._directory
