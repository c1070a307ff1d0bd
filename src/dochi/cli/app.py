"""Main CLI application using Typer."""
import asyncio
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..config import DochiSettings
from ..conversation import (
    ConversationError,
    ConversationFilter,
    ConversationStore,
    ExportFormat,
    ExportOptions,
    Message,
    MessageRole,
    export_conversation,
)
from .providers import configure_logging, get_settings, get_store

# Create Typer app
app = typer.Typer(
    name="dochi",
    help="Manage stored Dochi assistant conversations",
    no_args_is_help=True,
    add_completion=True,
)

# Console for rich output
console = Console()

ROLE_STYLES = {
    MessageRole.USER: "cyan",
    MessageRole.ASSISTANT: "green",
    MessageRole.SYSTEM: "magenta",
    MessageRole.TOOL: "yellow",
}


@app.callback()
def main_callback(ctx: typer.Context):
    """Load settings and configure logging for every command."""
    settings = get_settings(console)
    configure_logging(settings)
    ctx.obj = settings


def _run(
    settings: DochiSettings,
    operation: Callable[[ConversationStore], Awaitable[Any]],
) -> Any:
    """Run an operation against a connected store, reporting domain errors."""
    async def _with_store():
        store = get_store(settings)
        try:
            await store.connect()
            return await operation(store)
        finally:
            await store.disconnect()

    try:
        return asyncio.run(_with_store())
    except (ConversationError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1)


@app.command()
def new(
    ctx: typer.Context,
    title: str | None = typer.Option(
        None,
        "--title",
        "-t",
        help="Title (derived from the first user message when omitted)"
    )
):
    """Create a new, empty conversation."""
    conversation = _run(ctx.obj, lambda store: store.create(title=title))
    console.print(f"[green]Created conversation[/green] {conversation.id}")


@app.command("list")
def list_conversations(
    ctx: typer.Context,
    favorites: bool = typer.Option(False, "--favorites", "-f", help="Only favorites"),
    tag: list[str] | None = typer.Option(None, "--tag", help="Only conversations with this tag (repeatable)"),
    query: str | None = typer.Option(None, "--query", "-q", help="Text to search for"),
):
    """List conversations, most recently updated first."""
    conversation_filter = ConversationFilter(
        favorites_only=favorites,
        tags=set(tag or []),
        query=query,
    )
    summaries = _run(ctx.obj, lambda store: store.list(conversation_filter))

    if not summaries:
        console.print("[yellow]No conversations found[/yellow]")
        return

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("ID", style="dim")
    table.add_column("Title", style="cyan")
    table.add_column("Messages", justify="right", width=8)
    table.add_column("Updated", style="green")
    table.add_column("Tags", style="yellow")

    for summary in summaries:
        star = "* " if summary.is_favorite else ""
        table.add_row(
            summary.id,
            f"{star}{summary.title}",
            str(summary.message_count),
            summary.updated_at.strftime("%Y-%m-%d %H:%M"),
            ", ".join(summary.tags),
        )

    console.print(table)


@app.command()
def show(
    ctx: typer.Context,
    conversation_id: str = typer.Argument(..., help="Conversation ID"),
):
    """Show a conversation and its messages."""
    conversation = _run(ctx.obj, lambda store: store.get(conversation_id))

    source = "" if conversation.is_writable else f" [dim]({conversation.source.display_name}, read-only)[/dim]"
    console.print(f"[bold]{conversation.title}[/bold]{source}\n")

    if not conversation.messages:
        console.print("[dim]No messages yet.[/dim]")
        return

    for message in conversation.messages:
        subtitle = message.metadata.short_display if message.metadata else None
        body = message.content
        if message.tool_calls:
            calls = "\n".join(f"-> {call.name} {call.arguments_json}" for call in message.tool_calls)
            body = f"{body}\n{calls}" if body else calls
        console.print(Panel(
            body or "[dim](empty)[/dim]",
            title=message.role.value,
            subtitle=subtitle,
            border_style=ROLE_STYLES[message.role],
        ))


@app.command()
def say(
    ctx: typer.Context,
    conversation_id: str = typer.Argument(..., help="Conversation ID"),
    text: str = typer.Argument(..., help="Message text"),
    role: MessageRole = typer.Option(MessageRole.USER, "--role", "-r", help="Message role"),
    tool_call_id: str | None = typer.Option(None, "--tool-call-id", help="Linked tool call (tool role)"),
):
    """Append a message to a conversation."""
    message = Message(role=role, content=text, tool_call_id=tool_call_id)
    conversation = _run(ctx.obj, lambda store: store.append(conversation_id, message))
    console.print(
        f"[green]Appended {role.value} message[/green] "
        f"({len(conversation.messages)} total, title: {conversation.title})"
    )


@app.command()
def rename(
    ctx: typer.Context,
    conversation_id: str = typer.Argument(..., help="Conversation ID"),
    title: str = typer.Argument(..., help="New title"),
):
    """Rename a conversation."""
    conversation = _run(ctx.obj, lambda store: store.rename(conversation_id, title))
    console.print(f"[green]Renamed to[/green] {conversation.title}")


@app.command()
def delete(
    ctx: typer.Context,
    conversation_id: str = typer.Argument(..., help="Conversation ID"),
):
    """Delete a conversation (no error if it does not exist)."""
    removed = _run(ctx.obj, lambda store: store.delete(conversation_id))
    if removed:
        console.print(f"[green]Deleted[/green] {conversation_id}")
    else:
        console.print(f"[dim]Nothing to delete for {conversation_id}[/dim]")


@app.command()
def favorite(
    ctx: typer.Context,
    conversation_id: str = typer.Argument(..., help="Conversation ID"),
    off: bool = typer.Option(False, "--off", help="Remove the favorite mark"),
):
    """Mark a conversation as favorite."""
    _run(ctx.obj, lambda store: store.set_favorite(conversation_id, not off))
    console.print("[green]Favorite removed[/green]" if off else "[green]Marked as favorite[/green]")


@app.command()
def tag(
    ctx: typer.Context,
    conversation_id: str = typer.Argument(..., help="Conversation ID"),
    tags: list[str] | None = typer.Argument(None, help="Tags to set (none clears all tags)"),
):
    """Replace the tags of a conversation."""
    conversation = _run(ctx.obj, lambda store: store.set_tags(conversation_id, tags or []))
    console.print(f"[green]Tags:[/green] {', '.join(conversation.tags) or '(none)'}")


@app.command()
def export(
    ctx: typer.Context,
    conversation_id: str = typer.Argument(..., help="Conversation ID"),
    format: ExportFormat = typer.Option(ExportFormat.MARKDOWN, "--format", "-f", help="Export format"),
    output: Path | None = typer.Option(
        None,
        "--output",
        "-o",
        file_okay=False,
        dir_okay=True,
        help="Output directory (default: DOCHI_EXPORT_DIR)"
    ),
    include_system: bool = typer.Option(False, "--include-system", help="Include system messages"),
    no_tools: bool = typer.Option(False, "--no-tools", help="Leave out tool calls and results"),
    metadata: bool = typer.Option(False, "--metadata", help="Include response metadata"),
):
    """Export a conversation to Markdown or JSON."""
    settings: DochiSettings = ctx.obj
    options = ExportOptions(
        include_system_messages=include_system,
        include_tool_messages=not no_tools,
        include_metadata=metadata,
    )
    conversation = _run(settings, lambda store: store.get(conversation_id))

    try:
        path = export_conversation(conversation, output or settings.export_dir, format, options)
    except OSError as e:
        console.print(f"[red]Error: cannot write export: {e}[/red]")
        raise typer.Exit(code=1)

    console.print(f"[green]Exported to[/green] {path}")


def main():
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
