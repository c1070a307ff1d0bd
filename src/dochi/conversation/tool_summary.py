"""Human-readable summaries of tool executions.

Summaries are archived on assistant messages, so sensitive argument
values are masked before they are ever stored.
"""

from typing import Any

SENSITIVE_KEY_PATTERNS = ("api_key", "apikey", "password", "secret", "token", "credential", "auth")

INPUT_SUMMARY_LIMIT = 80
RESULT_SUMMARY_LIMIT = 100
STRING_VALUE_LIMIT = 30
OTHER_VALUE_LIMIT = 20


def _is_sensitive(key: str) -> bool:
    lowered = key.lower()
    return any(pattern in lowered for pattern in SENSITIVE_KEY_PATTERNS)


def _display_value(value: Any) -> str:
    # bool before int/float: bool is an int subclass
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return value[:STRING_VALUE_LIMIT]
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, list):
        return f"[{len(value)}items]"
    if isinstance(value, dict):
        return f"{{{len(value)}keys}}"
    return str(value)[:OTHER_VALUE_LIMIT]


def _truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[:limit - 3] + "..."


def generate_input_summary(arguments: dict[str, Any]) -> str:
    """Summarize tool arguments as ``key=value`` pairs.

    Args:
        arguments: Decoded tool call arguments

    Returns:
        Comma-separated pairs with sensitive values masked, at most
        80 characters long
    """
    if not arguments:
        return ""

    parts = [
        f"{key}={'****' if _is_sensitive(key) else _display_value(value)}"
        for key, value in arguments.items()
    ]
    return _truncate(", ".join(parts), INPUT_SUMMARY_LIMIT)


def generate_result_summary(content: str, is_error: bool = False) -> str:
    """Summarize a tool result, prefixed with ``Error: `` for failures."""
    prefix = "Error: " if is_error else ""
    return prefix + _truncate(content.strip(), RESULT_SUMMARY_LIMIT)
