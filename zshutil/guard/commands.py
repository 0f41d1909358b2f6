"""Hook guard CLI command."""

import sys

import click

from zshutil.guard.engine import get_rules, run_hook


@click.command("hook")
@click.argument("tool_name")
@click.argument("hook_event_name")
def hook(tool_name: str, hook_event_name: str) -> None:
    """Evaluate a tool call read from stdin and print the permission decision.

    Reads the hook JSON payload from stdin and writes a hookSpecificOutput
    document to stdout. Deny and ask verdicts still exit 0; malformed input
    exits 1 without printing a decision.

    Examples:

        # Register as a PreToolUse hook for the Bash tool
        zshutil hook bash PreToolUse

        # Try a command by hand
        echo '{"tool_name": "Bash", "tool_input": {"command": "cd src"}}' | \\
            zshutil hook bash PreToolUse
    """
    try:
        get_rules(hook_event_name, tool_name)
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        click.echo("Usage: zshutil hook <toolName> <hookEventName>", err=True)
        click.echo("Example: zshutil hook bash PreToolUse", err=True)
        sys.exit(1)

    try:
        raw_input = sys.stdin.read()
    except UnicodeDecodeError as e:
        click.echo(f"Error: Invalid hook input: {e}", err=True)
        sys.exit(1)

    try:
        output = run_hook(tool_name, hook_event_name, raw_input)
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click.echo(output.model_dump_json(by_alias=True))
