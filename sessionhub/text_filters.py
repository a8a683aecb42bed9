"""Message text helpers shared by the transcript parser."""
from __future__ import annotations

# Prefixes of injected/internal content that should never count as conversation.
SYSTEM_MESSAGE_PREFIXES: tuple[str, ...] = (
    "<command-name>",
    "<command-message>",
    "<command-args>",
    "<local-command-stdout>",
    "<system-reminder>",
    "Caveat:",
    "This session is being continued from a previous",
    "Invalid API key",
    '{"subtasks":',
    "CRITICAL: You MUST respond with ONLY a JSON",
    "Warmup",
)

TRUNCATION_MARKER = "..."


def is_system_message(content: str) -> bool:
    if not content:
        return False
    return content.startswith(SYSTEM_MESSAGE_PREFIXES)


def truncate_text(text: str, max_chars: int) -> str:
    """Cut ``text`` to ``max_chars`` code points, appending a marker when cut."""
    if len(text) <= max_chars:
        return text
    return f"{text[:max_chars]}{TRUNCATION_MARKER}"
