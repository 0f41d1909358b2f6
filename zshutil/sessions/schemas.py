"""Transcript event and search result schemas.

Transcript lines are produced by Claude Code, so the event model is lenient:
unknown fields are ignored and every field is optional. A line that is not
JSON, or whose known fields have the wrong shape, is reported as a
``parse-error`` event instead of failing the scan.
"""

from __future__ import annotations

import pydantic
from pydantic.alias_generators import to_camel

PARSE_ERROR_TYPE = "parse-error"


class TranscriptModel(pydantic.BaseModel):
    model_config = pydantic.ConfigDict(extra="ignore", frozen=True)


class ContentBlock(TranscriptModel):
    type: str
    text: str | None = None


class Message(TranscriptModel):
    content: str | list[ContentBlock] | None = None


class TranscriptEvent(TranscriptModel):
    """One line of a session transcript."""

    type: str | None = None
    message: Message | None = None
    cwd: str | None = None
    timestamp: str | None = None
    summary: str | None = None

    def extract_content(self) -> str | None:
        """Return the searchable text of the event.

        Plain string content is returned as is. For content blocks, the text
        blocks are joined with newlines; tool_use and tool_result blocks are
        skipped. Returns None when there is no text at all.
        """
        if self.message is None or self.message.content is None:
            return None
        content = self.message.content
        if isinstance(content, str):
            return content
        text_parts = [block.text for block in content if block.type == "text" and block.text]
        if text_parts:
            return "\n".join(text_parts)
        return None

    @property
    def is_human_text(self) -> bool:
        """True for user events typed by a human (not tool results)."""
        if self.type != "user" or self.message is None or not self.message.content:
            return False
        return isinstance(self.message.content, str)


def parse_event(line: str) -> tuple[TranscriptEvent | None, str | None]:
    """Parse one transcript line.

    Returns:
        (event, None) on success, (None, error_message) for malformed lines.
    """
    try:
        return TranscriptEvent.model_validate_json(line), None
    except pydantic.ValidationError as e:
        return None, str(e)


# --- Search output records (serialized with camelCase keys) ---


class RecordModel(pydantic.BaseModel):
    model_config = pydantic.ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SessionMetadata(RecordModel):
    cwd: str | None = None
    summary: str | None = None
    created_at: str | None = None
    last_modified_at: str | None = None
    human_message_count: int = 0


class ContextLine(RecordModel):
    line_number: int
    type: str
    content: str


class SearchResult(RecordModel):
    """A single matching transcript line and its surroundings."""

    session_file: str
    session_id: str
    metadata: SessionMetadata
    line_number: int
    type: str
    match_context: str
    # Highlight span inside match_context; not part of the JSON output
    match_span: tuple[int, int] | None = pydantic.Field(default=None, exclude=True)
    context_before: list[ContextLine] = pydantic.Field(default_factory=list)
    context_after: list[ContextLine] = pydantic.Field(default_factory=list)
