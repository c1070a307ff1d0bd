"""Provider factory functions for CLI.

Centralizes creation of settings, logging and the conversation store
from environment variables. Hides configuration details from command
implementations.
"""

import logging

from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler

from ..config import DochiSettings, load_settings
from ..conversation import ConversationStore, create_conversation_store

# Default console for output
_console = Console()


def get_settings(console: Console | None = None) -> DochiSettings:
    """Load settings, exiting with an error message if they are invalid.

    Raises:
        SystemExit: If an environment variable holds an invalid value
    """
    import typer

    con = console or _console
    try:
        return load_settings()
    except ValidationError as e:
        con.print(f"[red]Error: invalid configuration: {e}[/red]")
        raise typer.Exit(code=1)


def configure_logging(settings: DochiSettings) -> None:
    """Route log records through Rich at the configured level."""
    logging.basicConfig(
        level=settings.log_level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
        force=True,
    )


def get_store(settings: DochiSettings) -> ConversationStore:
    """Create the configured conversation store (not yet connected).

    Environment variables:
        DOCHI_STORE_BACKEND: Backend type (memory, json_files, sqlite)
        DOCHI_DATA_DIR: Where json_files and sqlite keep their data
    """
    return create_conversation_store(settings.store_backend, **settings.store_options())
