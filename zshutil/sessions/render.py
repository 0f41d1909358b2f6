"""Human-readable rendering of session search results."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import click

from zshutil.sessions.schemas import ContextLine, SearchResult, SessionMetadata
from zshutil.sessions.search import NEWLINE_MARKER, group_by_session

MATCH_POINTER = "►"


@dataclass(frozen=True)
class Theme:
    """Terminal styles for the report, as ``click.style`` keyword arguments.

    An empty style dict leaves the text untouched, so ``Theme.plain()`` renders
    without any escape codes.
    """

    match: dict[str, Any] = field(default_factory=lambda: {"fg": "bright_white", "bg": 27})
    header: dict[str, Any] = field(default_factory=lambda: {"fg": "bright_white", "bg": 23})
    dim: dict[str, Any] = field(default_factory=lambda: {"dim": True})
    newline: dict[str, Any] = field(default_factory=lambda: {"fg": "bright_white", "bold": True})

    @classmethod
    def plain(cls) -> Theme:
        return cls(match={}, header={}, dim={}, newline={})

    @staticmethod
    def apply(text: str, style: dict[str, Any]) -> str:
        if not style or not text:
            return text
        return click.style(text, **style)


DEFAULT_THEME = Theme()


def style_markers(text: str, theme: Theme, base: dict[str, Any] | None = None) -> str:
    """Style newline markers, and the text between them with ``base``."""
    parts = text.split(NEWLINE_MARKER)
    marker = theme.apply(NEWLINE_MARKER, theme.newline)
    return marker.join(theme.apply(part, base or {}) for part in parts)


def highlight_match(text: str, span: tuple[int, int] | None, theme: Theme) -> str:
    """Highlight ``text[start:end]``; newline markers outside it are styled too."""
    if span is None or span[0] == span[1]:
        return style_markers(text, theme)
    start, end = span
    match = theme.apply(text[start:end], theme.match)
    return f"{style_markers(text[:start], theme)}{match}{style_markers(text[end:], theme)}"


def format_timestamp(timestamp: str | None) -> str:
    """Render an ISO-8601 timestamp in local time, or 'unknown'."""
    if not timestamp:
        return "unknown"
    try:
        parsed = datetime.fromisoformat(timestamp.replace("Z", "+00:00"))
    except ValueError:
        return timestamp
    return parsed.astimezone().strftime("%Y-%m-%d %H:%M:%S")


def resume_command(session_id: str, metadata: SessionMetadata) -> str:
    cwd = metadata.cwd or "~"
    return f"(cd {cwd} && claude --resume {session_id})"


def render_context_line(ctx: ContextLine, theme: Theme) -> str:
    """Context lines are dimmed and indented under the match."""
    return "    " + style_markers(f"{ctx.line_number} ({ctx.type}): {ctx.content}", theme, theme.dim)


def render_session(
    session_id: str,
    metadata: SessionMetadata,
    results: Iterable[SearchResult],
    theme: Theme = DEFAULT_THEME,
) -> list[str]:
    """Render one session block: resume hint, metadata, then each match."""
    out = [
        theme.apply(f" {resume_command(session_id, metadata)} ", theme.header),
        f"Created: {format_timestamp(metadata.created_at)} | "
        f"Modified: {format_timestamp(metadata.last_modified_at)} | "
        f"Messages: {metadata.human_message_count}",
        f"Summary: {metadata.summary or '(no summary)'}",
        "",
    ]

    for result in results:
        out.append(f"  Line {result.line_number} ({result.type}):")
        out.extend(render_context_line(ctx, theme) for ctx in result.context_before)
        highlighted = highlight_match(result.match_context, result.match_span, theme)
        out.append(f"  {MATCH_POINTER} {result.line_number} ({result.type}): {highlighted}")
        out.extend(render_context_line(ctx, theme) for ctx in result.context_after)
        out.append("")
    return out


def render_report(results: list[SearchResult], theme: Theme = DEFAULT_THEME) -> str:
    """Render all results grouped by session, oldest session first."""
    out: list[str] = []
    for session_id, metadata, session_results in group_by_session(results):
        out.extend(render_session(session_id, metadata, session_results, theme))
    return "\n".join(out)
