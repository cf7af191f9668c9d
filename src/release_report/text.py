"""Text helpers for report rendering."""

from __future__ import annotations

MESSAGE_LIMIT = 256


def truncate_message(text: str, limit: int = MESSAGE_LIMIT) -> str:
    """Bound a commit message to ``limit`` characters.

    If the message contains a newline before ``limit``, only the first line is
    kept. Otherwise the message is hard-cut at ``limit`` characters.

    Args:
        text: The raw commit message (may be empty or multi-line)
        limit: Maximum number of characters to keep

    Returns:
        The bounded message
    """
    newline_index = text.find("\n")
    if newline_index != -1 and newline_index < limit:
        return text[:newline_index]
    return text[:limit]
