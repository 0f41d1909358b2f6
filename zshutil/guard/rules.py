"""Bash command rules for the PreToolUse guard.

Each rule looks at one command and either returns a Decision or None (no
opinion). Rules never see each other's output; the engine picks the winner by
priority, and the first registered rule wins a tie.

Rules:
- git-multiline-commit: deny commit messages spanning several lines
- git-add-without-commit: deny a solitary git add (chain it with the commit)
- git-mutation: ask before git commands that may modify the repository
- find-node-modules / grep-node-modules: deny tree walks that include node_modules
- cd-subshell: deny bare cd (use a subshell instead)
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass

from zshutil.guard.schemas import PermissionDecision

# Read-only git commands that are safe to run without approval
GIT_READONLY_COMMANDS = frozenset(
    {
        "status",
        "diff",
        "show",
        "log",
        "shortlog",
        "reflog",
        "blame",
        "annotate",
        "grep",
        "ls-files",
        "ls-tree",
        "ls-remote",
        "cat-file",
        "rev-parse",
        "rev-list",
        "describe",
        "name-rev",
        "for-each-ref",
        "var",
        "fsck",
        "verify-commit",
        "verify-tag",
        "check-ignore",
        "check-attr",
        "check-mailmap",
        "diff-tree",
        "diff-files",
        "diff-index",
        "range-diff",
        "help",
        "version",
        "count-objects",
        "cherry",
        "whatchanged",
        "merge-base",
        "get-tar-commit-id",
    }
)

# Global git options that consume the following token
GIT_FLAGS_WITH_ARG = (
    "-C",
    "-c",
    "--git-dir",
    "--work-tree",
    "--namespace",
    "--super-prefix",
    "--exec-path",
)

GIT_STANDALONE_FLAGS = frozenset(
    {
        "--no-pager",
        "--bare",
        "--no-replace-objects",
        "--literal-pathspecs",
        "--glob-pathspecs",
        "--noglob-pathspecs",
        "--icase-pathspecs",
        "--no-optional-locks",
    }
)

MULTILINE_COMMIT_REASON = (
    "Commit messages should be one line only. Add `&& git push` if pushing immediately after."
)

GIT_ADD_REASON = (
    "Solitary git add is disallowed to avoid permission spam. "
    "Commit messages must be single-line or will be rejected. "
    "Chain git operations with `&&`. Include `&& git push` if pushing after.\n"
    'Example: git add foo.ts && git commit -m "Message" && git push'
)

GIT_MUTATION_REASON = (
    "Git Mutation Guard: This git command potentially modifies repository state and requires approval."
)

FIND_REASON = "Find Guard: To avoid excessive delays, do not use `find` without excluding `node_modules`"

GREP_REASON = "Grep Guard: To avoid excessive delays, do not use `grep -r` without excluding `node_modules`"

CD_REASON = "CD Guard: cd commands should be wrapped in a subshell: (cd subdir && command)"


@dataclass(frozen=True)
class RuleContext:
    """The command under evaluation."""

    tool_name: str
    command: str
    normalized_command: str

    @classmethod
    def from_command(cls, tool_name: str, command: str) -> RuleContext:
        return cls(tool_name=tool_name, command=command, normalized_command=command.strip())


@dataclass(frozen=True)
class Decision:
    """A rule's verdict on a command."""

    decision: PermissionDecision
    reason: str
    priority: int
    rule: str


@dataclass(frozen=True)
class Rule:
    """A named check; ``check`` returns None when the rule has no opinion."""

    name: str
    check: Callable[[RuleContext], Decision | None]

    def __call__(self, context: RuleContext) -> Decision | None:
        return self.check(context)


def is_git_subcommand(command: str, subcommand: str) -> bool:
    """Check if command contains a git subcommand.

    Matches 'git <subcommand>' where subcommand is the first non-flag token.
    Allows optional flags like '-C /path' or '-c key=value' before the subcommand.

    Pattern explanation:
      \\bgit\\b                           - 'git' as a word
      (?:\\s+(?:-[a-zA-Z]\\s+\\S+|-\\S+))*  - zero or more flag patterns:
        -[a-zA-Z]\\s+\\S+                 - short flag with space-separated value: -C /path
        -\\S+                            - any other flag (--verbose, -v, --config=x)
      \\s+<subcommand>\\b                 - followed by the subcommand
    """
    pattern = rf"\bgit\b(?:\s+(?:-[a-zA-Z]\s+\S+|-\S+))*\s+{re.escape(subcommand)}\b"
    return bool(re.search(pattern, command))


def extract_git_subcommand(command: str) -> str:
    """Return the git subcommand, skipping global flags such as ``-C <path>``.

    Returns an empty string when the command has no subcommand.
    """
    parts = command.split()
    i = 1  # skip 'git'
    while i < len(parts):
        part = parts[i]
        if part in GIT_FLAGS_WITH_ARG:
            i += 2
        elif part.startswith(tuple(f"{flag}=" for flag in GIT_FLAGS_WITH_ARG)):
            i += 1
        elif part in GIT_STANDALONE_FLAGS:
            i += 1
        else:
            return part
    return ""


def check_multiline_commit(context: RuleContext) -> Decision | None:
    cmd = context.normalized_command
    if not is_git_subcommand(cmd, "commit"):
        return None
    if not re.search(r"\s(?:-[a-zA-Z]*m|--message)(?:\s|=)", cmd):
        return None
    if "\n" not in cmd:
        return None
    return Decision("deny", MULTILINE_COMMIT_REASON, 120, "git-multiline-commit")


def check_git_add_without_commit(context: RuleContext) -> Decision | None:
    cmd = context.normalized_command
    if not re.match(r"git\s+add\b", cmd):
        return None
    if is_git_subcommand(cmd, "commit"):
        return None
    return Decision("deny", GIT_ADD_REASON, 110, "git-add-without-commit")


def check_git_mutation(context: RuleContext) -> Decision | None:
    cmd = context.normalized_command
    if not re.match(r"git\s", cmd):
        return None
    if extract_git_subcommand(cmd) in GIT_READONLY_COMMANDS:
        return None
    return Decision("ask", GIT_MUTATION_REASON, 100, "git-mutation")


def check_find_without_exclusion(context: RuleContext) -> Decision | None:
    cmd = context.normalized_command
    if not re.match(r"find\s", cmd) or "node_modules" in cmd:
        return None
    return Decision("deny", FIND_REASON, 50, "find-node-modules")


def check_grep_without_exclusion(context: RuleContext) -> Decision | None:
    cmd = context.normalized_command
    if not re.match(r"grep\s", cmd):
        return None
    if not re.search(r"\s-[a-zA-Z]*[rR]|\s--recursive\b", cmd):
        return None
    if "node_modules" in cmd:
        return None
    return Decision("deny", GREP_REASON, 50, "grep-node-modules")


def check_cd(context: RuleContext) -> Decision | None:
    if not re.match(r"cd(\s|$)", context.normalized_command):
        return None
    return Decision("deny", CD_REASON, 30, "cd-subshell")


# Registration order is the tie-break order
BASH_RULES: tuple[Rule, ...] = (
    Rule("git-multiline-commit", check_multiline_commit),
    Rule("git-add-without-commit", check_git_add_without_commit),
    Rule("git-mutation", check_git_mutation),
    Rule("find-node-modules", check_find_without_exclusion),
    Rule("grep-node-modules", check_grep_without_exclusion),
    Rule("cd-subshell", check_cd),
)

# Rule sets by (hook event, lower-cased tool name)
RULESETS: dict[tuple[str, str], tuple[Rule, ...]] = {
    ("PreToolUse", "bash"): BASH_RULES,
}
