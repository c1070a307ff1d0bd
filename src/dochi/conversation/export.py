"""Conversation export to Markdown and JSON.

Exports are read-only views over a conversation: the options decide
which messages and details are included, never what is stored.
"""

import json
import logging
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel

from .models import Conversation, ConversationSource, Message, MessageRole

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M"
FILE_DATE_FORMAT = "%Y%m%d"
FILE_TITLE_LIMIT = 40

ROLE_LABELS = {
    MessageRole.SYSTEM: "System",
    MessageRole.USER: "User",
    MessageRole.ASSISTANT: "Assistant",
    MessageRole.TOOL: "Tool",
}


class ExportFormat(str, Enum):
    """Supported export formats."""

    MARKDOWN = "markdown"
    JSON = "json"

    @property
    def file_extension(self) -> str:
        return "md" if self is ExportFormat.MARKDOWN else "json"


class ExportOptions(BaseModel):
    """What to include in an export."""

    include_system_messages: bool = False
    include_tool_messages: bool = True
    include_metadata: bool = False

    def includes(self, message: Message) -> bool:
        if message.role is MessageRole.SYSTEM:
            return self.include_system_messages
        if message.role is MessageRole.TOOL:
            return self.include_tool_messages
        if not self.include_tool_messages and message.has_tool_calls and not message.content:
            # Nothing left to show once the tool calls are hidden
            return False
        return True


def _included_messages(conversation: Conversation, options: ExportOptions) -> list[Message]:
    return [m for m in conversation.messages if options.includes(m)]


def _pretty_arguments(arguments_json: str) -> list[str]:
    try:
        parsed = json.loads(arguments_json)
    except ValueError:
        return [arguments_json]
    return json.dumps(parsed, indent=2, ensure_ascii=False).split("\n")


def to_markdown(conversation: Conversation, options: ExportOptions | None = None) -> str:
    """Render a conversation as a Markdown document.

    Args:
        conversation: Conversation to render
        options: Inclusion options (defaults to ``ExportOptions()``)

    Returns:
        Markdown text
    """
    options = options or ExportOptions()
    lines = [
        f"# {conversation.title}",
        "",
        f"- Created: {conversation.created_at.strftime(TIMESTAMP_FORMAT)}",
        f"- Updated: {conversation.updated_at.strftime(TIMESTAMP_FORMAT)}",
    ]
    if conversation.source is not ConversationSource.LOCAL:
        lines.append(f"- Source: {conversation.source.display_name}")
    lines += ["", "---", ""]

    for message in _included_messages(conversation, options):
        label = ROLE_LABELS[message.role]
        lines.append(f"### {label} ({message.timestamp.strftime(TIMESTAMP_FORMAT)})")
        lines.append("")

        if message.content:
            lines.append(message.content)
            lines.append("")

        if options.include_tool_messages and message.tool_calls:
            for call in message.tool_calls:
                lines.append(f"> **Tool call**: `{call.name}`")
                if call.arguments_json and call.arguments_json.strip() != "{}":
                    lines.append("> ```json")
                    lines += [f"> {line}" for line in _pretty_arguments(call.arguments_json)]
                    lines.append("> ```")
                lines.append("")

        if message.role is MessageRole.TOOL and message.tool_call_id:
            lines.append(f"> **Tool result** (ID: `{message.tool_call_id}`)")
            lines.append("")

        if options.include_metadata:
            if message.metadata is not None:
                fallback = " (fallback)" if message.metadata.was_fallback else ""
                lines.append(f"> _{message.metadata.short_display}{fallback}_")
                lines.append("")
            for record in message.tool_executions or []:
                status = "failed" if record.is_error else "ok"
                lines.append(f"> - {record.display_name} ({status}): {record.input_summary}")
            if message.tool_executions:
                lines.append("")

    return "\n".join(lines)


def _message_to_json(message: Message, options: ExportOptions) -> dict[str, Any]:
    exclude = set()
    if not options.include_metadata:
        exclude |= {"metadata", "tool_executions"}
    if not options.include_tool_messages:
        exclude.add("tool_calls")
    return message.model_dump(mode="json", exclude=exclude)


def to_json(conversation: Conversation, options: ExportOptions | None = None) -> str:
    """Render a conversation as pretty-printed, key-sorted JSON.

    The output is a valid conversation document and can be read back
    with :func:`parse_json`.
    """
    options = options or ExportOptions()
    data = conversation.model_dump(mode="json", exclude={"messages"})
    data["messages"] = [
        _message_to_json(m, options) for m in _included_messages(conversation, options)
    ]
    return json.dumps(data, indent=2, sort_keys=True, ensure_ascii=False)


def parse_json(text: str) -> Conversation:
    """Parse a JSON export back into a conversation.

    Raises:
        pydantic.ValidationError: If the document is not a valid conversation
    """
    return Conversation.model_validate_json(text)


def render(conversation: Conversation, format: ExportFormat, options: ExportOptions | None = None) -> str:
    if format is ExportFormat.MARKDOWN:
        return to_markdown(conversation, options)
    return to_json(conversation, options)


def suggested_file_name(conversation: Conversation, format: ExportFormat) -> str:
    """File name of the form ``YYYYMMDD_<title>.<ext>``.

    Path separators and colons in the title are replaced with underscores
    and the title is cut to 40 characters.
    """
    date_str = conversation.created_at.strftime(FILE_DATE_FORMAT)
    safe_title = conversation.title
    for char in ("/", ":", "\\"):
        safe_title = safe_title.replace(char, "_")
    return f"{date_str}_{safe_title[:FILE_TITLE_LIMIT]}.{format.file_extension}"


def export_conversation(
    conversation: Conversation,
    directory: str | Path,
    format: ExportFormat = ExportFormat.MARKDOWN,
    options: ExportOptions | None = None,
) -> Path:
    """Write a conversation export to ``directory``.

    Returns:
        Path of the written file
    """
    directory = Path(directory).expanduser()
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / suggested_file_name(conversation, format)
    path.write_text(render(conversation, format, options), encoding="utf-8")
    logger.info("Exported conversation %s to %s", conversation.id, path)
    return path
