"""Parse Claude Code JSONL transcripts into catalog entries and chat history."""
from __future__ import annotations

import json
import logging
import uuid
from pathlib import Path
from typing import Any, Iterator

from sessionhub import config
from sessionhub.date_utils import file_modified_iso, iso_to_epoch_ms, now_epoch_ms
from sessionhub.models import ChatMessage, MessageRole, SessionInfo
from sessionhub.observability import record_parser_failure
from sessionhub.text_filters import is_system_message, truncate_text

logger = logging.getLogger("sessionhub.parser")

PARSER_NAME = "claude_code"
DEFAULT_SUMMARY = "New Session"


def extract_text_content(content: Any) -> str | None:
    """Decode ``message.content`` into plain text.

    Exactly two shapes are recognized: a bare string, or a list whose first
    element is either a block carrying a string ``text`` field or a string.
    Anything else yields ``None``.
    """
    if isinstance(content, str):
        return content
    if isinstance(content, list) and content:
        first = content[0]
        if isinstance(first, dict):
            text = first.get("text")
            return text if isinstance(text, str) else None
        if isinstance(first, str):
            return first
    return None


def _iter_entries(path: Path) -> Iterator[dict[str, Any]]:
    """Yield each JSON object line of a transcript, skipping malformed lines.

    Raises ``OSError`` if the file cannot be opened or read.
    """
    with path.open("r", encoding="utf-8", errors="replace") as handle:
        for line_number, line in enumerate(handle, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                entry = json.loads(line)
            except json.JSONDecodeError:
                logger.debug("Skipping malformed line %s in %s", line_number, path)
                continue
            if isinstance(entry, dict):
                yield entry


def _has_session_id(entry: dict[str, Any]) -> bool:
    return isinstance(entry.get("sessionId"), str)


def _str_field(entry: dict[str, Any], key: str) -> str:
    value = entry.get(key)
    return value if isinstance(value, str) else ""


def summarize_session_file(path: Path, summary_max_chars: int | None = None) -> SessionInfo | None:
    """Summarize one transcript for the session catalog.

    Returns ``None`` when the file holds no countable message lines or cannot be
    read. The returned entry is historical (``active=False``) and has no project
    key; the caller decides both.
    """
    max_chars = config.SUMMARY_MAX_CHARS if summary_max_chars is None else summary_max_chars

    summary = DEFAULT_SUMMARY
    summary_found = False
    message_count = 0
    last_activity = ""
    cwd = ""
    last_user_message: str | None = None
    last_assistant_message: str | None = None
    # leafUuid -> summary text, waiting for a later line whose parentUuid matches
    pending_summaries: dict[str, str] = {}

    try:
        for entry in _iter_entries(path):
            entry_type = entry.get("type")
            summary_text = _str_field(entry, "summary") if entry_type == "summary" else ""

            if summary_text:
                leaf_uuid = _str_field(entry, "leafUuid")
                if leaf_uuid:
                    pending_summaries[leaf_uuid] = summary_text

            if not _has_session_id(entry):
                continue

            if not cwd:
                cwd = _str_field(entry, "cwd")

            if not summary_found:
                parent_uuid = _str_field(entry, "parentUuid")
                if parent_uuid and parent_uuid in pending_summaries:
                    summary = pending_summaries[parent_uuid]
                    summary_found = True

            if summary_text:
                summary = summary_text
                summary_found = True

            message = entry.get("message")
            if isinstance(message, dict):
                text = extract_text_content(message.get("content"))
                if text is None or not is_system_message(text):
                    message_count += 1
                    if text:
                        role = message.get("role")
                        if role == "user":
                            last_user_message = text
                        elif role == "assistant" and entry.get("isApiErrorMessage") is not True:
                            last_assistant_message = text

            timestamp = _str_field(entry, "timestamp")
            if timestamp:
                last_activity = timestamp
    except OSError as exc:
        logger.debug("Failed to read session file %s: %s", path, exc)
        record_parser_failure(PARSER_NAME, "io")
        return None

    if message_count == 0:
        logger.debug("Skipping empty session file: %s", path)
        return None

    if not summary_found:
        fallback = last_user_message or last_assistant_message
        if fallback:
            summary = truncate_text(fallback, max_chars)

    if not last_activity:
        last_activity = file_modified_iso(path)

    return SessionInfo(
        id=path.stem,
        summary=summary,
        messageCount=message_count,
        lastActivity=last_activity,
        cwd=cwd,
        active=False,
        lastUserMessage=last_user_message,
        lastAssistantMessage=last_assistant_message,
    )


def load_session_messages(path: Path, max_items: int | None = None) -> list[ChatMessage]:
    """Load the most recent user/assistant messages of a transcript in file order."""
    limit = config.MAX_HISTORY_ITEMS if max_items is None else max(0, max_items)
    messages: list[ChatMessage] = []

    try:
        for entry in _iter_entries(path):
            if not _has_session_id(entry):
                continue
            if entry.get("isApiErrorMessage") is True:
                continue

            message = entry.get("message")
            if not isinstance(message, dict):
                continue
            text = extract_text_content(message.get("content"))
            if text is None or is_system_message(text):
                continue
            try:
                role = MessageRole(message.get("role"))
            except ValueError:
                continue

            timestamp = iso_to_epoch_ms(_str_field(entry, "timestamp"))
            messages.append(
                ChatMessage(
                    id=_str_field(entry, "uuid") or str(uuid.uuid4()),
                    role=role,
                    content=text,
                    timestamp=timestamp if timestamp is not None else now_epoch_ms(),
                )
            )
    except OSError as exc:
        logger.debug("Failed to open session file %s: %s", path, exc)
        record_parser_failure(PARSER_NAME, "io")
        return []

    total = len(messages)
    if total > limit:
        messages = messages[total - limit:]
        logger.info("Loaded %d chat items (truncated from %d) from %s", len(messages), total, path)
    else:
        logger.info("Loaded %d chat items from %s", total, path)
    return messages
