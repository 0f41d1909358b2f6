"""Main CLI entry point for zshutil."""

import click

from zshutil.guard import commands as guard_commands
from zshutil.sessions import commands as sessions_commands


@click.group()
@click.version_option(package_name="zshutil")
def cli() -> None:
    """Claude Code hook guards and session tools."""
    pass


cli.add_command(guard_commands.hook, name="hook")
cli.add_command(sessions_commands.sessions, name="sessions")


def main() -> None:
    """Entry point."""
    cli()


if __name__ == "__main__":
    main()
