"""Transcript parser registry for platform-specific implementations."""
from __future__ import annotations

from pathlib import Path

from sessionhub.models import ChatMessage, SessionInfo
from sessionhub.parsers.platforms.claude_code import parser as claude_code_parser


def is_transcript_file(path: Path) -> bool:
    return path.suffix.lower() == ".jsonl"


def summarize_session_file(path: Path) -> SessionInfo | None:
    """Summarize a transcript by delegating to the matching platform parser.

    Current implementation routes Claude Code `.jsonl` transcripts to the
    Claude-specific parser module. Additional platforms can be registered here.
    """
    if is_transcript_file(path):
        return claude_code_parser.summarize_session_file(path)
    return None


def load_session_messages(path: Path, max_items: int | None = None) -> list[ChatMessage]:
    if is_transcript_file(path):
        return claude_code_parser.load_session_messages(path, max_items=max_items)
    return []
