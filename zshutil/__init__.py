"""Claude Code hook guards and session transcript search."""
