"""Session transcript CLI commands."""

import json
import sys
from pathlib import Path

import click

from zshutil.sessions.render import DEFAULT_THEME, Theme, render_report
from zshutil.sessions.search import (
    build_type_filter,
    find_session_files,
    get_projects_dir,
    search_sessions,
    sessions_with_matches,
)

USAGE = """Usage: claude-session-search <search-string> [options]

Options:
  --json          Output results as JSON
  --sessions-only Only show session IDs with matches
  --user          Only search in user messages
  --assistant     Only search in assistant messages
  --days <n>      Only search sessions modified in last n days

Searches all Claude Code session files in ~/.claude/projects/"""


@click.group()
def sessions() -> None:
    """Claude Code session transcript commands."""
    pass


@sessions.command("search")
@click.argument("search_string", required=False)
@click.option("--json", "output_json", is_flag=True, help="Output results as JSON")
@click.option("--sessions-only", is_flag=True, help="Only show session IDs with matches")
@click.option("--user", "user_only", is_flag=True, help="Only search in user messages")
@click.option("--assistant", "assistant_only", is_flag=True, help="Only search in assistant messages")
@click.option("--days", type=click.IntRange(min=0), help="Only search sessions modified in last n days")
@click.option("--projects-dir", help="Path to the transcript root (default: ~/.claude/projects)")
@click.option("--no-color", is_flag=True, help="Disable highlighting in the text report")
def sessions_search(
    search_string: str | None,
    output_json: bool,
    sessions_only: bool,
    user_only: bool,
    assistant_only: bool,
    days: int | None,
    projects_dir: str | None,
    no_color: bool,
) -> None:
    """Search all Claude Code sessions for a string (case-insensitive).

    Examples:

        # Grouped report with context
        zshutil sessions search "flaky test"

        # Only what you typed, in the last week
        zshutil sessions search "migration" --user --days 7

        # Session IDs as JSON
        zshutil sessions search "redis" --sessions-only --json
    """
    if not search_string:
        click.echo("Error: No search string provided", err=True)
        click.echo("", err=True)
        click.echo(USAGE, err=True)
        sys.exit(1)

    type_filter = build_type_filter(user_only, assistant_only)

    click.echo(f'Searching for: "{search_string}"', err=True)
    if type_filter:
        click.echo(f"Filtering by type: {', '.join(sorted(type_filter))}", err=True)
    if days is not None:
        click.echo(f"Limiting to sessions modified in last {days} days", err=True)

    root = Path(projects_dir) if projects_dir else get_projects_dir()
    try:
        session_files = find_session_files(root, days)
    except FileNotFoundError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    click.echo(f"Found {len(session_files)} session files", err=True)

    results = search_sessions(session_files, search_string, type_filter)
    session_ids = sessions_with_matches(results)

    if sessions_only:
        if output_json:
            click.echo(json.dumps(session_ids, indent=2))
        else:
            for session_id in session_ids:
                click.echo(session_id)
    elif output_json:
        click.echo(json.dumps([result.model_dump(by_alias=True) for result in results], indent=2))
    else:
        click.echo(f"\nFound {len(results)} matches in {len(session_ids)} sessions:\n", err=True)
        theme = Theme.plain() if no_color else DEFAULT_THEME
        if results:
            click.echo(render_report(results, theme))
