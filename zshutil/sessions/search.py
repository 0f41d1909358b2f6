"""Search Claude Code session transcripts.

Transcripts live under ~/.claude/projects/<cwd-slug>/<session-id>.jsonl, one
JSON event per line. Subagent runs are stored next to them as agent-*.jsonl
and are not searched.

Usage as module:
    from zshutil.sessions.search import find_session_files, search_sessions
    results = search_sessions(find_session_files(days=7), "flaky test")
"""

from __future__ import annotations

import sys
import time
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from zshutil.sessions.schemas import (
    PARSE_ERROR_TYPE,
    ContextLine,
    SearchResult,
    SessionMetadata,
    TranscriptEvent,
    parse_event,
)

CONTEXT_LINES = 2
MATCH_LEAD_CHARS = 100
MATCH_TRAIL_CHARS = 200
CONTEXT_MAX_CHARS = 150
NEWLINE_MARKER = "\\n"
SUBAGENT_PREFIX = "agent-"

# Role filter values mapped to raw event types
ROLE_TYPES = {
    "user": frozenset({"user"}),
    "assistant": frozenset({"assistant"}),
}


def log(message: str) -> None:
    """Print message to stderr."""
    print(message, file=sys.stderr)


def get_projects_dir() -> Path:
    """Default root of the transcript tree."""
    return Path.home() / ".claude" / "projects"


@dataclass(frozen=True)
class TranscriptLine:
    """A non-empty transcript line, parsed once."""

    line_number: int
    event: TranscriptEvent | None
    content: str | None

    @property
    def raw_type(self) -> str:
        if self.event is None or not self.event.type:
            return PARSE_ERROR_TYPE
        return self.event.type

    @property
    def display_type(self) -> str:
        """Event type shown on context lines; 'assistant' becomes 'agent'."""
        return "agent" if self.raw_type == "assistant" else self.raw_type


def parse_lines(text: str) -> list[TranscriptLine]:
    """Split transcript text into parsed lines, dropping blank ones.

    Line numbers count non-empty lines only, starting at 1.
    """
    lines = []
    for raw in text.split("\n"):
        if not raw.strip():
            continue
        event, _ = parse_event(raw)
        content = event.extract_content() if event is not None else None
        lines.append(TranscriptLine(line_number=len(lines) + 1, event=event, content=content))
    return lines


def extract_session_metadata(lines: Iterable[TranscriptLine]) -> SessionMetadata:
    """Derive session metadata from all parsed lines of a transcript."""
    metadata = SessionMetadata()
    for line in lines:
        event = line.event
        if event is None:
            continue

        # The last summary in the file wins
        if event.type == "summary" and event.summary:
            metadata.summary = event.summary

        if metadata.cwd is None and event.cwd:
            metadata.cwd = event.cwd

        if event.type in ("user", "assistant") and event.timestamp:
            if metadata.created_at is None:
                metadata.created_at = event.timestamp
            metadata.last_modified_at = event.timestamp

        if event.is_human_text:
            metadata.human_message_count += 1
    return metadata


def mark_newlines(text: str) -> str:
    """Replace newlines with a visible marker for single-line display."""
    return text.replace("\n", NEWLINE_MARKER)


def truncate_line(text: str, max_len: int = CONTEXT_MAX_CHARS) -> str:
    escaped = mark_newlines(text)
    if len(escaped) <= max_len:
        return escaped
    return f"{escaped[:max_len]}..."


def locate_match(content: str, search_string: str) -> tuple[str, tuple[int, int] | None]:
    """Cut an excerpt around the first case-insensitive match.

    Returns the excerpt and the (start, end) span of the match inside it, or
    None for the span when there is nothing to highlight. The span is taken
    before newlines are marked, so it never lands inside a ``\\n`` marker or
    an ellipsis.
    """
    match_index = content.lower().find(search_string.lower())
    found = match_index != -1 and bool(search_string)
    if match_index == -1:
        match_index = 0
    start = max(0, match_index - MATCH_LEAD_CHARS)
    end = min(len(content), match_index + len(search_string) + MATCH_TRAIL_CHARS)
    prefix = "..." if start > 0 else ""
    lead = mark_newlines(content[start:match_index])
    matched = mark_newlines(content[match_index : match_index + len(search_string)])
    excerpt = prefix + mark_newlines(content[start:end])
    if end < len(content):
        excerpt = f"{excerpt}..."
    if not found:
        return excerpt, None
    span_start = len(prefix) + len(lead)
    return excerpt, (span_start, span_start + len(matched))


def build_match_context(content: str, search_string: str) -> str:
    """Cut an excerpt around the first case-insensitive match."""
    return locate_match(content, search_string)[0]


def gather_context(
    lines: list[TranscriptLine], index: int, count: int = CONTEXT_LINES
) -> tuple[list[ContextLine], list[ContextLine]]:
    """Collect the nearest content-bearing lines before and after ``index``.

    Lines without extractable text (tool calls, tool results) are skipped, so
    the context may come from non-adjacent line numbers.
    """

    def to_context(line: TranscriptLine) -> ContextLine:
        return ContextLine(
            line_number=line.line_number,
            type=line.display_type,
            content=truncate_line(line.content or ""),
        )

    before: list[ContextLine] = []
    for j in range(index - 1, -1, -1):
        if len(before) >= count:
            break
        if lines[j].content:
            before.insert(0, to_context(lines[j]))

    after: list[ContextLine] = []
    for j in range(index + 1, len(lines)):
        if len(after) >= count:
            break
        if lines[j].content:
            after.append(to_context(lines[j]))

    return before, after


def search_lines(
    lines: list[TranscriptLine],
    search_string: str,
    session_file: str,
    session_id: str,
    type_filter: frozenset[str] | None = None,
    context_lines: int = CONTEXT_LINES,
) -> list[SearchResult]:
    """Search already parsed transcript lines."""
    metadata = extract_session_metadata(lines)
    needle = search_string.lower()
    results = []

    for i, line in enumerate(lines):
        if type_filter is not None and line.raw_type not in type_filter:
            continue
        if not line.content or needle not in line.content.lower():
            continue

        before, after = gather_context(lines, i, context_lines)
        match_context, match_span = locate_match(line.content, search_string)
        results.append(
            SearchResult(
                session_file=session_file,
                session_id=session_id,
                metadata=metadata,
                line_number=line.line_number,
                type=line.raw_type,
                match_context=match_context,
                match_span=match_span,
                context_before=before,
                context_after=after,
            )
        )
    return results


def search_session_file(
    path: Path,
    search_string: str,
    type_filter: frozenset[str] | None = None,
    context_lines: int = CONTEXT_LINES,
) -> list[SearchResult]:
    """Search one transcript file.

    Raises:
        OSError: If the file cannot be read.
    """
    text = path.read_text(encoding="utf-8", errors="replace")
    return search_lines(
        parse_lines(text),
        search_string,
        session_file=str(path),
        session_id=path.stem,
        type_filter=type_filter,
        context_lines=context_lines,
    )


def find_session_files(projects_dir: Path | None = None, days: int | None = None) -> list[Path]:
    """Find all top-level session transcripts under the projects directory.

    Args:
        projects_dir: Root of the transcript tree. Defaults to ~/.claude/projects.
        days: Only keep files modified within the last ``days`` days.

    Returns:
        Sorted list of transcript paths.

    Raises:
        FileNotFoundError: If the projects directory does not exist.
    """
    root = projects_dir if projects_dir is not None else get_projects_dir()
    if not root.is_dir():
        raise FileNotFoundError(f"Claude projects directory not found: {root}")

    cutoff = time.time() - days * 24 * 60 * 60 if days is not None else None

    session_files = []
    for path in sorted(root.rglob("*.jsonl")):
        if not path.is_file() or path.stem.startswith(SUBAGENT_PREFIX):
            continue
        if cutoff is not None and path.stat().st_mtime < cutoff:
            continue
        session_files.append(path)
    return session_files


def build_type_filter(user_only: bool, assistant_only: bool) -> frozenset[str] | None:
    """Translate --user/--assistant into the set of event types to search."""
    if user_only == assistant_only:
        return None
    return ROLE_TYPES["user"] if user_only else ROLE_TYPES["assistant"]


def search_sessions(
    session_files: Iterable[Path],
    search_string: str,
    type_filter: frozenset[str] | None = None,
) -> list[SearchResult]:
    """Search every transcript, skipping files that cannot be read."""
    all_results: list[SearchResult] = []
    for path in session_files:
        try:
            all_results.extend(search_session_file(path, search_string, type_filter))
        except OSError as e:
            log(f"Warning: skipping unreadable session file {path}: {e}")
    return all_results


def sessions_with_matches(results: Iterable[SearchResult]) -> list[str]:
    """Unique session ids, in first-match order."""
    return list(dict.fromkeys(result.session_id for result in results))


def group_by_session(results: Iterable[SearchResult]) -> list[tuple[str, SessionMetadata, list[SearchResult]]]:
    """Group results by session, oldest session first.

    Sessions without a creation timestamp sort first.
    """
    grouped: dict[str, tuple[SessionMetadata, list[SearchResult]]] = {}
    for result in results:
        if result.session_id not in grouped:
            grouped[result.session_id] = (result.metadata, [])
        grouped[result.session_id][1].append(result)

    ordered = sorted(grouped.items(), key=lambda item: item[1][0].created_at or "")
    return [(session_id, metadata, session_results) for session_id, (metadata, session_results) in ordered]
