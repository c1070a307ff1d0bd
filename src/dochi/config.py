"""Runtime configuration.

Settings come from environment variables, optionally loaded from a
``.env`` file. Centralizes defaults so commands never read the
environment directly.
"""

import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .conversation.factory import SUPPORTED_BACKENDS

DEFAULT_DATA_DIR = "~/.dochi"
DEFAULT_LOG_LEVEL = "WARNING"


class DochiSettings(BaseModel):
    """Resolved dochi settings."""

    model_config = ConfigDict(validate_default=True)

    store_backend: str = Field(default="json_files", description="Conversation store backend")
    data_dir: Path = Field(default=Path(DEFAULT_DATA_DIR), description="Root directory for stored data")
    export_dir: Path = Field(default=Path("."), description="Default directory for exports")
    log_level: str = DEFAULT_LOG_LEVEL

    @field_validator("store_backend")
    @classmethod
    def _known_backend(cls, value: str) -> str:
        if value not in SUPPORTED_BACKENDS:
            raise ValueError(
                f"Unsupported store backend {value!r}; expected one of {', '.join(SUPPORTED_BACKENDS)}"
            )
        return value

    @field_validator("data_dir", "export_dir")
    @classmethod
    def _expand_user(cls, value: Path) -> Path:
        return value.expanduser()

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        level = value.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {value}")
        return level

    @property
    def conversations_dir(self) -> Path:
        return self.data_dir / "conversations"

    @property
    def database_path(self) -> Path:
        return self.data_dir / "conversations.db"

    def store_options(self) -> dict:
        """Keyword arguments for ``create_conversation_store``."""
        if self.store_backend == "json_files":
            return {"directory": self.conversations_dir}
        if self.store_backend == "sqlite":
            return {"path": self.database_path}
        return {}


def load_settings(dotenv: bool = True) -> DochiSettings:
    """Build settings from the environment.

    Environment variables:
        DOCHI_STORE_BACKEND: memory, json_files or sqlite (default: json_files)
        DOCHI_DATA_DIR: Data root (default: ~/.dochi)
        DOCHI_EXPORT_DIR: Export directory (default: current directory)
        DOCHI_LOG_LEVEL: Logging level (default: WARNING)
    """
    if dotenv:
        load_dotenv()

    return DochiSettings(
        store_backend=os.getenv("DOCHI_STORE_BACKEND", "json_files"),
        data_dir=os.getenv("DOCHI_DATA_DIR", DEFAULT_DATA_DIR),
        export_dir=os.getenv("DOCHI_EXPORT_DIR", "."),
        log_level=os.getenv("DOCHI_LOG_LEVEL", DEFAULT_LOG_LEVEL),
    )
