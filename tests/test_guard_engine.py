"""Tests for the guard engine and the `hook` command."""

import json
from pathlib import Path
from typing import Any

import pytest
from click.testing import CliRunner

from zshutil.guard import engine
from zshutil.guard.commands import hook
from zshutil.guard.engine import (
    DEFAULT_ALLOW_REASON,
    evaluate_command,
    expected_tool_name,
    get_rules,
    run_hook,
    select_decision,
)
from zshutil.guard.rules import BASH_RULES, Decision, Rule, RuleContext
from zshutil.guard.schemas import parse_hook_input


@pytest.fixture
def mock_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Mock Path.home() to return tmp_path."""
    monkeypatch.setattr(Path, "home", lambda: tmp_path)
    return tmp_path


def bash_input(command: Any, tool_name: str = "Bash") -> str:
    return json.dumps({"tool_name": tool_name, "tool_input": {"command": command}})


def invoke_hook(stdin: str | bytes, *args: str) -> Any:
    runner = CliRunner()
    return runner.invoke(hook, list(args or ("bash", "PreToolUse")), input=stdin)


# =============================================================================
# Tests for select_decision()
# =============================================================================


class TestSelectDecision:
    """Tests for priority selection and tie-breaking."""

    def test_empty(self) -> None:
        assert select_decision([]) is None

    def test_highest_priority_wins(self) -> None:
        low = Decision("deny", "low", 30, "a")
        high = Decision("ask", "high", 100, "b")
        assert select_decision([low, high]) is high
        assert select_decision([high, low]) is high

    def test_first_registered_wins_tie(self) -> None:
        first = Decision("deny", "first", 50, "first")
        second = Decision("allow", "second", 50, "second")
        assert select_decision([first, second]) is first
        assert select_decision([second, first]) is second

    def test_equal_priority_rules_are_deterministic(self) -> None:
        """Two rules firing with the same priority resolve to the first registered."""
        rules = (
            Rule("always-deny", lambda context: Decision("deny", "deny first", 10, "always-deny")),
            Rule("always-ask", lambda context: Decision("ask", "ask second", 10, "always-ask")),
        )
        for _ in range(5):
            decision = evaluate_command("anything", rules)
            assert decision is not None
            assert decision.rule == "always-deny"


# =============================================================================
# Tests for evaluate_command() with BASH_RULES
# =============================================================================


class TestEvaluateCommand:
    """Rule interplay over the full bash rule set."""

    @pytest.mark.parametrize(
        "command",
        ["git add .", "git add -A", "git add . && git push", "git add src && git -C . status"],
    )
    def test_git_add_without_commit_beats_mutation(self, command: str) -> None:
        decision = evaluate_command(command, BASH_RULES)
        assert decision is not None
        assert decision.decision == "deny"
        assert decision.priority >= 110

    def test_add_with_commit_asks(self) -> None:
        decision = evaluate_command('git add . && git commit -m "msg"', BASH_RULES)
        assert decision is not None
        assert decision.decision == "ask"
        assert decision.rule == "git-mutation"

    def test_multiline_commit_beats_everything(self) -> None:
        decision = evaluate_command('git add . && git commit -m "a\nb"', BASH_RULES)
        assert decision is not None
        assert decision.rule == "git-multiline-commit"

    @pytest.mark.parametrize("command", ["git status", "git -C somedir status", "git log --oneline", "  git diff  "])
    def test_readonly_git_is_allowed(self, command: str) -> None:
        assert evaluate_command(command, BASH_RULES) is None

    @pytest.mark.parametrize("command", ["cd", "cd src", "cd src && git push"])
    def test_cd_always_denied(self, command: str) -> None:
        decision = evaluate_command(command, BASH_RULES)
        assert decision is not None
        assert decision.decision == "deny"

    def test_cd_and_git_higher_priority_wins(self) -> None:
        """A command tripping both cd and git rules resolves by priority."""
        rules = (
            Rule("cd", lambda context: Decision("deny", "cd", 30, "cd")),
            Rule("git", lambda context: Decision("ask", "git", 100, "git")),
        )
        decision = evaluate_command("cd x", rules)
        assert decision is not None
        assert decision.rule == "git"

    def test_find_examples(self) -> None:
        decision = evaluate_command('find . -name "*.ts"', BASH_RULES)
        assert decision is not None
        assert decision.decision == "deny"
        assert evaluate_command('find . -not -path "*/node_modules/*"', BASH_RULES) is None

    @pytest.mark.parametrize("command", ["", "   ", "ls -la", "npm test"])
    def test_no_rule_fires(self, command: str) -> None:
        assert evaluate_command(command, BASH_RULES) is None

    def test_rules_see_trimmed_command(self) -> None:
        seen: list[RuleContext] = []

        def spy(context: RuleContext) -> None:
            seen.append(context)

        evaluate_command("  ls  ", (Rule("spy", spy),))
        assert seen[0].command == "  ls  "
        assert seen[0].normalized_command == "ls"


# =============================================================================
# Tests for rule lookup and input parsing
# =============================================================================


class TestGetRules:
    def test_bash_pretooluse(self) -> None:
        assert get_rules("PreToolUse", "bash") is BASH_RULES
        assert get_rules("PreToolUse", "BASH") is BASH_RULES

    def test_unknown_event(self) -> None:
        with pytest.raises(ValueError, match="Unknown hook event name"):
            get_rules("BeforeToolUse", "bash")

    def test_unregistered_tool(self) -> None:
        with pytest.raises(ValueError, match="No rules registered"):
            get_rules("PreToolUse", "edit")

    def test_expected_tool_name(self) -> None:
        assert expected_tool_name("bash") == "Bash"
        assert expected_tool_name("BASH") == "Bash"


class TestParseHookInput:
    def test_full_input(self) -> None:
        hook_input, error = parse_hook_input(bash_input("ls"))
        assert error is None
        assert hook_input is not None
        assert hook_input.tool_name == "Bash"
        assert hook_input.command == "ls"

    def test_extra_fields_ignored(self) -> None:
        raw = json.dumps(
            {
                "session_id": "abc",
                "hook_event_name": "PreToolUse",
                "tool_name": "Bash",
                "tool_input": {"command": "ls", "description": "List files"},
            }
        )
        hook_input, error = parse_hook_input(raw)
        assert error is None
        assert hook_input is not None
        assert hook_input.command == "ls"

    @pytest.mark.parametrize("raw", ["{}", '{"tool_name": "Bash"}', '{"tool_name": "Bash", "tool_input": {}}'])
    def test_missing_command_is_empty(self, raw: str) -> None:
        hook_input, error = parse_hook_input(raw)
        assert error is None
        assert hook_input is not None
        assert hook_input.command == ""

    @pytest.mark.parametrize(
        "raw",
        ["", "not json", "[]", '{"tool_name": 3}', '{"tool_input": {"command": ["ls"]}}'],
    )
    def test_invalid_input(self, raw: str) -> None:
        hook_input, error = parse_hook_input(raw)
        assert hook_input is None
        assert error


# =============================================================================
# Tests for run_hook()
# =============================================================================


class TestRunHook:
    def test_output_envelope(self, mock_home: Path) -> None:
        output = run_hook("bash", "PreToolUse", bash_input("cd src"))
        data = json.loads(output.model_dump_json(by_alias=True))
        assert data == {
            "hookSpecificOutput": {
                "hookEventName": "PreToolUse",
                "permissionDecision": "deny",
                "permissionDecisionReason": (
                    "CD Guard: cd commands should be wrapped in a subshell: (cd subdir && command)"
                ),
            }
        }

    def test_other_tool_is_allowed(self, mock_home: Path) -> None:
        output = run_hook("bash", "PreToolUse", bash_input("cd src", tool_name="Edit"))
        assert output.hook_specific_output.permission_decision == "allow"
        assert output.hook_specific_output.permission_decision_reason == "Not a Bash tool call"

    def test_missing_tool_name_is_allowed(self, mock_home: Path) -> None:
        output = run_hook("bash", "PreToolUse", json.dumps({"tool_input": {"command": "cd src"}}))
        assert output.hook_specific_output.permission_decision == "allow"

    def test_default_allow(self, mock_home: Path) -> None:
        output = run_hook("bash", "PreToolUse", bash_input("ls"))
        assert output.hook_specific_output.permission_decision == "allow"
        assert output.hook_specific_output.permission_decision_reason == DEFAULT_ALLOW_REASON

    def test_saves_debug_input(self, mock_home: Path) -> None:
        raw = bash_input("ls")
        run_hook("bash", "PreToolUse", raw)
        assert (mock_home / ".claude.lasttool.json").read_text(encoding="utf-8") == raw

    def test_debug_write_failure_does_not_block(
        self, mock_home: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
    ) -> None:
        monkeypatch.setattr(engine, "get_debug_input_file", lambda: mock_home / "missing" / "dir" / "x.json")
        output = run_hook("bash", "PreToolUse", bash_input("cd src"))
        assert output.hook_specific_output.permission_decision == "deny"
        assert "Warning: could not write debug input" in capsys.readouterr().err

    def test_git_mutation_logged(self, mock_home: Path) -> None:
        run_hook("bash", "PreToolUse", bash_input("  git push origin main  "))
        run_hook("bash", "PreToolUse", bash_input("git status"))
        log_text = (mock_home / "_claude_git_mutations.txt").read_text(encoding="utf-8")
        assert log_text == "git push origin main\n\n"

    def test_invalid_input_raises(self, mock_home: Path) -> None:
        with pytest.raises(ValueError, match="Invalid hook input"):
            run_hook("bash", "PreToolUse", "{not json")


# =============================================================================
# Tests for the hook command
# =============================================================================


class TestHookCommand:
    """End-to-end tests through the click command."""

    def test_deny_exits_zero(self, mock_home: Path) -> None:
        result = invoke_hook(bash_input("git add ."))
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["hookSpecificOutput"]["permissionDecision"] == "deny"
        assert data["hookSpecificOutput"]["hookEventName"] == "PreToolUse"

    def test_ask(self, mock_home: Path) -> None:
        result = invoke_hook(bash_input("git push"))
        assert result.exit_code == 0
        assert json.loads(result.stdout)["hookSpecificOutput"]["permissionDecision"] == "ask"

    def test_allow(self, mock_home: Path) -> None:
        result = invoke_hook(bash_input("git -C somedir status"))
        assert result.exit_code == 0
        output = json.loads(result.stdout)["hookSpecificOutput"]
        assert output["permissionDecision"] == "allow"
        assert output["permissionDecisionReason"] == "Command allowed"

    def test_event_name_echoed(self, mock_home: Path) -> None:
        result = invoke_hook(bash_input("ls"), "Bash", "PreToolUse")
        assert result.exit_code == 0
        assert json.loads(result.stdout)["hookSpecificOutput"]["hookEventName"] == "PreToolUse"

    @pytest.mark.parametrize("stdin", ["", "{not json", '{"tool_input": "ls"}'])
    def test_malformed_input_exits_nonzero_without_decision(self, mock_home: Path, stdin: str) -> None:
        result = invoke_hook(stdin)
        assert result.exit_code == 1
        assert result.stdout == ""
        assert "Invalid hook input" in result.stderr

    def test_non_utf8_stdin_exits_nonzero_without_decision(self, mock_home: Path) -> None:
        result = invoke_hook(b'{"tool_name": "Bash", "tool_input": {"command": "ls \xff"}}')
        assert result.exit_code == 1
        assert result.stdout == ""
        assert "Error: Invalid hook input" in result.stderr
        assert isinstance(result.exception, SystemExit)

    def test_unknown_event_is_usage_error(self, mock_home: Path) -> None:
        result = invoke_hook(bash_input("ls"), "bash", "Whenever")
        assert result.exit_code == 1
        assert result.stdout == ""
        assert "Unknown hook event name" in result.stderr
        assert not (mock_home / ".claude.lasttool.json").exists()

    def test_unregistered_tool_is_usage_error(self, mock_home: Path) -> None:
        result = invoke_hook(bash_input("ls"), "write", "PreToolUse")
        assert result.exit_code == 1
        assert result.stdout == ""

    def test_missing_arguments(self) -> None:
        result = CliRunner().invoke(hook, ["bash"], input="{}")
        assert result.exit_code != 0
