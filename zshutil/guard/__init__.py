"""PreToolUse command guard.

Usage:
    from zshutil.guard import BASH_RULES, evaluate_command
    decision = evaluate_command("git push", BASH_RULES)
"""

from zshutil.guard.engine import evaluate_command, run_hook, select_decision
from zshutil.guard.rules import BASH_RULES, Decision, Rule, RuleContext

__all__ = ["BASH_RULES", "Decision", "Rule", "RuleContext", "evaluate_command", "run_hook", "select_decision"]
