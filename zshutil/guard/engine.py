"""Evaluate a command against a rule set and produce one hook decision.

Flow for a single hook invocation:
1. Save the raw stdin to ~/.claude.lasttool.json for inspection
2. Validate the input (malformed input is a hard error, no decision is emitted)
3. Skip calls for other tools
4. Run every rule, keep the highest-priority decision (first registered wins ties)
"""

from __future__ import annotations

import sys
from collections.abc import Iterable
from pathlib import Path

from zshutil.guard.rules import RULESETS, Decision, Rule, RuleContext
from zshutil.guard.schemas import HookOutput, build_hook_output, parse_hook_input

# Complete list of Claude Code hook event names
VALID_HOOK_EVENT_NAMES = (
    "PreToolUse",
    "PostToolUse",
    "UserPromptSubmit",
    "PermissionRequest",
    "Notification",
    "Stop",
    "SubagentStop",
    "PreCompact",
    "SessionStart",
    "SessionEnd",
)

DEFAULT_ALLOW_REASON = "Command allowed"


def print_stderr(msg: str) -> None:
    """Print message to stderr."""
    print(msg, file=sys.stderr)


def get_debug_input_file() -> Path:
    """Path holding the last raw hook input."""
    return Path.home() / ".claude.lasttool.json"


def get_git_mutation_log() -> Path:
    """Path of the append-only log of commands the git mutation rule asked about."""
    return Path.home() / "_claude_git_mutations.txt"


def save_debug_input(raw: str) -> None:
    """Write the raw hook input for later inspection. Never raises."""
    path = get_debug_input_file()
    try:
        path.write_text(raw, encoding="utf-8")
    except OSError as e:
        print_stderr(f"Warning: could not write debug input to {path}: {e}")


def log_git_mutation(command: str) -> None:
    """Append a git mutation command to the mutation log. Never raises."""
    path = get_git_mutation_log()
    try:
        with path.open("a", encoding="utf-8") as f:
            f.write(command + "\n\n")
    except OSError as e:
        print_stderr(f"Warning: could not append to {path}: {e}")


def get_rules(hook_event_name: str, tool_name: str) -> tuple[Rule, ...]:
    """Look up the registered rule set.

    Raises:
        ValueError: If the hook event name is unknown or no rules are
            registered for the combination.
    """
    if hook_event_name not in VALID_HOOK_EVENT_NAMES:
        raise ValueError(
            f"Unknown hook event name: {hook_event_name}\n"
            f"Valid hook event names: {', '.join(VALID_HOOK_EVENT_NAMES)}"
        )
    rules = RULESETS.get((hook_event_name, tool_name.lower()))
    if rules is None:
        raise ValueError(f"No rules registered for {tool_name.lower()}/{hook_event_name}")
    return rules


def collect_decisions(context: RuleContext, rules: Iterable[Rule]) -> list[Decision]:
    """Run every rule, dropping the ones with no opinion."""
    decisions = []
    for rule in rules:
        decision = rule(context)
        if decision is not None:
            decisions.append(decision)
    return decisions


def select_decision(decisions: Iterable[Decision]) -> Decision | None:
    """Pick the highest priority decision; the earliest one wins a tie."""
    winner: Decision | None = None
    for decision in decisions:
        if winner is None or decision.priority > winner.priority:
            winner = decision
    return winner


def evaluate_command(command: str, rules: Iterable[Rule], tool_name: str = "Bash") -> Decision | None:
    """Evaluate a command; None means no rule had an opinion."""
    context = RuleContext.from_command(tool_name, command)
    return select_decision(collect_decisions(context, rules))


def expected_tool_name(tool_name: str) -> str:
    """Map the CLI tool name to the name the assistant reports ('bash' -> 'Bash')."""
    lowered = tool_name.lower()
    return lowered[:1].upper() + lowered[1:]


def run_hook(tool_name: str, hook_event_name: str, raw_input: str) -> HookOutput:
    """Produce the hook output for one raw stdin payload.

    Raises:
        ValueError: If the event/tool combination is not registered or the
            input is not valid hook JSON.
    """
    rules = get_rules(hook_event_name, tool_name)

    save_debug_input(raw_input)

    hook_input, error = parse_hook_input(raw_input)
    if hook_input is None:
        raise ValueError(f"Invalid hook input: {error}")

    expected = expected_tool_name(tool_name)
    if hook_input.tool_name != expected:
        return build_hook_output(hook_event_name, "allow", f"Not a {expected} tool call")

    command = hook_input.command
    decision = evaluate_command(command, rules, tool_name=expected)
    if decision is None:
        return build_hook_output(hook_event_name, "allow", DEFAULT_ALLOW_REASON)

    if decision.rule == "git-mutation":
        log_git_mutation(command.strip())

    return build_hook_output(hook_event_name, decision.decision, decision.reason)
